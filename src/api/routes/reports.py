from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from src.api.dependencies import get_report_service, get_request_id, get_user_id
from src.core.errors import NotFoundError, PersistenceFailureError
from src.core.logger import get_logger
from src.core.report_service import ReportService, resolve_retention_days
from src.schemas.request_schemas import CleanupRequest
from src.schemas.response_schemas import error_payload, response_envelope

router = APIRouter()
logger = get_logger(__name__)


@router.post("/reports/generate/{run_id}")
async def post_generate(
    run_id: str,
    request_id: str = Depends(get_request_id),
    user_id: str | None = Depends(get_user_id),
    service: ReportService = Depends(get_report_service),
):
    logger.info("api.reports.generate", request_id=request_id, run_id=run_id)
    try:
        result = await service.generate_report(run_id, user_id=user_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=error_payload("RUN_NOT_FOUND", str(exc)))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=error_payload("INVALID_RUN_ID", str(exc)))
    except PersistenceFailureError as exc:
        logger.error("api.reports.generate.persistence_failed", request_id=request_id, run_id=run_id, error=str(exc))
        raise HTTPException(status_code=500, detail=error_payload("REPORT_PERSISTENCE_FAILED", str(exc)))

    data = {
        "run_id": run_id,
        "report_path": result["report_path"],
        "report_url": result["report_url"],
        "message": "Execution report generated successfully",
    }
    return response_envelope(True, data=data, request_id=request_id)


@router.post("/reports/scripts/{script_id}/generate")
async def post_generate_for_script(
    script_id: str,
    project_id: str | None = Query(default=None),
    request_id: str = Depends(get_request_id),
    service: ReportService = Depends(get_report_service),
):
    logger.info("api.reports.generate_for_script", request_id=request_id, script_id=script_id, project_id=project_id)
    try:
        selection = await service.generate_for_script(script_id, project_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=error_payload("SCRIPT_NOT_FOUND", str(exc)))
    except PersistenceFailureError as exc:
        raise HTTPException(status_code=500, detail=error_payload("REPORT_PERSISTENCE_FAILED", str(exc)))
    return response_envelope(True, data={"script_id": script_id, **selection.as_dict()}, request_id=request_id)


@router.get("/reports/by-project")
async def get_reports_by_project(
    project_id: str | None = Query(default=None),
    request_id: str = Depends(get_request_id),
    user_id: str | None = Depends(get_user_id),
    service: ReportService = Depends(get_report_service),
):
    logger.info("api.reports.by_project", request_id=request_id, project_id=project_id)
    reports = await service.list_reports(project_id, user_id)
    return response_envelope(True, data=reports, request_id=request_id)


@router.get("/reports/{run_id}/url")
async def get_report_url(
    run_id: str,
    request_id: str = Depends(get_request_id),
    service: ReportService = Depends(get_report_service),
):
    report_url = service.get_report_url(run_id)
    if not report_url:
        raise HTTPException(status_code=404, detail=error_payload("REPORT_NOT_FOUND", f"No report for run {run_id}"))
    return response_envelope(True, data={"run_id": run_id, "report_url": report_url}, request_id=request_id)


@router.get("/reports")
async def get_all_reports(
    request_id: str = Depends(get_request_id),
    service: ReportService = Depends(get_report_service),
):
    reports = service.list_artifacts()
    return response_envelope(True, data={"reports": reports, "total": len(reports)}, request_id=request_id)


@router.post("/reports/cleanup")
async def post_cleanup(
    request: CleanupRequest | None = None,
    request_id: str = Depends(get_request_id),
    service: ReportService = Depends(get_report_service),
):
    days = resolve_retention_days(request.days if request is not None else None)
    logger.info("api.reports.cleanup", request_id=request_id, days=days)
    removed = service.cleanup(days)
    data = {
        "days_to_keep": days,
        "removed": removed,
        "message": f"Cleaned up reports older than {days} days",
    }
    return response_envelope(True, data=data, request_id=request_id)
