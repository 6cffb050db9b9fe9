from __future__ import annotations

import re
from pathlib import Path

_IDENTIFIER_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.\-]{0,127}$")


def is_safe_identifier(value: str) -> bool:
    text = str(value or "")
    return bool(_IDENTIFIER_RE.match(text)) and ".." not in text


def validate_identifier(value: str, kind: str = "identifier") -> str:
    if not is_safe_identifier(value):
        raise ValueError(f"Unsafe {kind}: {value!r}")
    return str(value)


def ensure_within_root(path: Path | str, root: Path | str) -> Path:
    resolved = Path(path).resolve()
    base = Path(root).resolve()
    if base == resolved or base in resolved.parents:
        return resolved
    raise PermissionError(f"Path traversal blocked: {resolved}")
