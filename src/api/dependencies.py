from __future__ import annotations

from fastapi import Header, Request

from src.config.settings import settings
from src.core.report_service import ReportService, build_report_service
from src.core.result_store import ResultStore


def get_request_id(request: Request) -> str:
    rid = getattr(request.state, "request_id", "")
    return rid or "req_local"


def get_user_id(request: Request, x_user_id: str | None = Header(default=None)) -> str | None:
    bound = getattr(request.state, "user_id", None)
    if bound:
        return bound
    value = str(x_user_id or "").strip()
    return value or None


def get_report_service() -> ReportService:
    return build_report_service()


def get_result_store() -> ResultStore:
    return ResultStore(settings.results_dir_path)
