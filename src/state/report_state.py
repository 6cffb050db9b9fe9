from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, TypedDict


class RunStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    COMPLETED = "completed"


TERMINAL_RUN_STATUSES = frozenset({RunStatus.PASSED.value, RunStatus.FAILED.value, RunStatus.COMPLETED.value})


class Run(TypedDict):
    id: str
    script_id: str
    project_id: Optional[str]
    user_id: Optional[str]
    status: str
    started_at: str
    completed_at: Optional[str]
    report_url: Optional[str]


class ScriptInfo(TypedDict):
    id: str
    name: str
    project_id: Optional[str]
    user_id: Optional[str]


class ResultStep(TypedDict):
    name: str
    status: str
    statusDetails: dict[str, Any]
    stage: str
    start: int
    stop: int


class RawResult(TypedDict, total=False):
    uuid: str
    testCaseId: str
    historyId: str
    fullName: str
    name: str
    status: str
    statusDetails: dict[str, Any]
    stage: str
    start: int
    stop: int
    steps: list[ResultStep]


class ReportIndexEntry(TypedDict):
    id: str
    projectId: str
    scriptId: Optional[str]
    scriptName: Optional[str]
    status: Optional[str]
    startedAt: Optional[str]
    completedAt: Optional[str]
    reportUrl: str
    createdAt: str


class ReportListItem(TypedDict):
    id: str
    scriptName: Optional[str]
    status: Optional[str]
    startedAt: Optional[str]
    completedAt: Optional[str]
    reportUrl: str


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def status_value(value: Any) -> str:
    return value.value if hasattr(value, "value") else str(value or "")


def is_terminal_status(status: Any) -> bool:
    return status_value(status) in TERMINAL_RUN_STATUSES


def parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value or "").strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def new_index_entry(run: Run, project_id: str, report_url: str, script_name: str | None = None) -> ReportIndexEntry:
    return {
        "id": run["id"],
        "projectId": project_id,
        "scriptId": run.get("script_id"),
        "scriptName": script_name,
        "status": status_value(run.get("status")) or None,
        "startedAt": run.get("started_at"),
        "completedAt": run.get("completed_at"),
        "reportUrl": report_url,
        "createdAt": utc_now_iso(),
    }


def to_list_item(entry: ReportIndexEntry) -> ReportListItem:
    return {
        "id": entry["id"],
        "scriptName": entry.get("scriptName"),
        "status": entry.get("status"),
        "startedAt": entry.get("startedAt"),
        "completedAt": entry.get("completedAt"),
        "reportUrl": entry.get("reportUrl", ""),
    }
