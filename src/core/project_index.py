from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Protocol

from src.core.errors import IndexCorruptError
from src.core.file_manager import atomic_write_text, ensure_dirs
from src.core.logger import get_logger
from src.core.security import ensure_within_root, validate_identifier
from src.state.report_state import ReportIndexEntry

logger = get_logger(__name__)


class IndexStore(Protocol):
    def read_text(self, project_id: str) -> str | None: ...

    def write_text(self, project_id: str, content: str) -> None: ...

    def project_ids(self) -> list[str]: ...


class FileIndexStore:
    """One ``<project_id>.json`` ledger per project, replaced atomically."""

    def __init__(self, index_dir: Path):
        self.index_dir = Path(index_dir)
        ensure_dirs(self.index_dir)

    def ledger_path(self, project_id: str) -> Path:
        validate_identifier(project_id, "project id")
        return ensure_within_root(self.index_dir / f"{project_id}.json", self.index_dir)

    def read_text(self, project_id: str) -> str | None:
        path = self.ledger_path(project_id)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def write_text(self, project_id: str, content: str) -> None:
        atomic_write_text(self.ledger_path(project_id), content)

    def project_ids(self) -> list[str]:
        if not self.index_dir.exists():
            return []
        return sorted(p.stem for p in self.index_dir.glob("*.json") if p.is_file())


class InMemoryIndexStore:
    def __init__(self, ledgers: dict[str, str] | None = None):
        self.ledgers: dict[str, str] = dict(ledgers or {})

    def read_text(self, project_id: str) -> str | None:
        return self.ledgers.get(project_id)

    def write_text(self, project_id: str, content: str) -> None:
        self.ledgers[project_id] = content

    def project_ids(self) -> list[str]:
        return sorted(self.ledgers)


def _parse_ledger(project_id: str, raw: str | None) -> list[ReportIndexEntry]:
    if raw is None or not raw.strip():
        return []
    try:
        data: Any = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise IndexCorruptError(f"Ledger for project {project_id} is not valid JSON: {exc}") from exc
    if not isinstance(data, list):
        raise IndexCorruptError(f"Ledger for project {project_id} is not a list")
    return [item for item in data if isinstance(item, dict) and item.get("id")]


class ProjectIndex:
    """Per-project ledger of generated reports, newest first, one entry per run.

    Nothing here raises: unreadable ledgers read as empty and failed writes
    are logged. Two appends racing on one project keep the last write.
    """

    def __init__(self, store: IndexStore):
        self.store = store

    def read(self, project_id: str) -> list[ReportIndexEntry]:
        try:
            return _parse_ledger(project_id, self.store.read_text(project_id))
        except (OSError, ValueError, IndexCorruptError) as exc:
            logger.warning("index.read.error", project_id=project_id, error=str(exc))
            return []

    def append(self, project_id: str, entry: ReportIndexEntry) -> bool:
        try:
            try:
                current = _parse_ledger(project_id, self.store.read_text(project_id))
            except IndexCorruptError as exc:
                logger.warning("index.parse_error.reset", project_id=project_id, error=str(exc))
                current = []
            current = [item for item in current if item.get("id") != entry["id"]]
            current.insert(0, dict(entry))
            self.store.write_text(project_id, json.dumps(current, indent=2))
        except Exception as exc:
            logger.error("index.append.error", project_id=project_id, run_id=entry.get("id"), error=str(exc))
            return False
        logger.info("index.append", project_id=project_id, run_id=entry["id"], entries=len(current))
        return True

    def list_all(self) -> list[dict[str, Any]]:
        try:
            project_ids = self.store.project_ids()
        except OSError as exc:
            logger.warning("index.list.error", error=str(exc))
            return []
        return [{"project_id": pid, "entries": self.read(pid)} for pid in project_ids]
