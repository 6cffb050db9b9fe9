from __future__ import annotations

from pathlib import Path
import json
import os
import shutil
import tempfile
from typing import Any


def ensure_dirs(*directories: Path) -> None:
    for directory in directories:
        Path(directory).mkdir(parents=True, exist_ok=True)


def write_text_file(target: Path, content: str) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")


def write_json_file(target: Path, payload: Any) -> None:
    write_text_file(target, json.dumps(payload, indent=2))


def read_json_file(target: Path) -> Any:
    return json.loads(target.read_text(encoding="utf-8"))


def atomic_write_text(target: Path, content: str) -> None:
    """Write ``content`` beside ``target`` and rename it into place.

    Readers see either the previous file or the complete new one.
    """
    target.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        delete=False,
        dir=str(target.parent),
        prefix=target.name + ".",
        suffix=".tmp",
    ) as handle:
        handle.write(content)
        temp_path = Path(handle.name)
    try:
        os.replace(temp_path, target)
    except OSError:
        temp_path.unlink(missing_ok=True)
        raise


def reset_directory(target: Path) -> None:
    if target.exists():
        shutil.rmtree(target)
    target.mkdir(parents=True, exist_ok=True)


def list_subdirectories(root: Path) -> list[Path]:
    base = Path(root)
    if not base.exists():
        return []
    return sorted(p for p in base.iterdir() if p.is_dir())
