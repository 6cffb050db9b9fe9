from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from src.api.dependencies import get_request_id, get_result_store
from src.core.errors import NotFoundError
from src.core.logger import get_logger
from src.core.result_store import ResultStore
from src.core.security import is_safe_identifier
from src.db.repository import RunRepository
from src.schemas.request_schemas import EndResultRequest, RecordStepRequest, StartResultRequest
from src.schemas.response_schemas import error_payload, response_envelope
from src.state.report_state import RunStatus

router = APIRouter()
logger = get_logger(__name__)

_RUN_STATUS_FOR_RESULT = {
    "passed": RunStatus.PASSED,
    "failed": RunStatus.FAILED,
    "broken": RunStatus.FAILED,
}


def _checked_run_id(run_id: str) -> str:
    if not is_safe_identifier(run_id):
        raise HTTPException(status_code=400, detail=error_payload("INVALID_RUN_ID", f"Unsafe run id: {run_id}"))
    return run_id


@router.post("/results/{run_id}/start", status_code=201)
async def post_start_result(
    run_id: str,
    request: StartResultRequest,
    request_id: str = Depends(get_request_id),
    store: ResultStore = Depends(get_result_store),
):
    result = store.start_result(_checked_run_id(run_id), request.script_name)
    return response_envelope(True, data=result, request_id=request_id)


@router.post("/results/{run_id}/steps")
async def post_record_step(
    run_id: str,
    request: RecordStepRequest,
    request_id: str = Depends(get_request_id),
    store: ResultStore = Depends(get_result_store),
):
    recorded = store.record_step(_checked_run_id(run_id), request.name, request.status, request.duration_ms)
    return response_envelope(recorded, data={"run_id": run_id, "recorded": recorded}, request_id=request_id)


@router.post("/results/{run_id}/end")
async def post_end_result(
    run_id: str,
    request: EndResultRequest,
    request_id: str = Depends(get_request_id),
    store: ResultStore = Depends(get_result_store),
):
    recorded = store.end_result(_checked_run_id(run_id), request.status, request.error_message)
    run_status = None
    try:
        run = await RunRepository.update_status(run_id, _RUN_STATUS_FOR_RESULT[request.status])
        run_status = run["status"]
    except NotFoundError:
        # Results may be recorded for runs this service does not track.
        logger.info("api.results.end.untracked_run", request_id=request_id, run_id=run_id)
    data = {"run_id": run_id, "recorded": recorded, "run_status": run_status}
    return response_envelope(recorded, data=data, request_id=request_id)


@router.get("/results/{run_id}")
async def get_result(
    run_id: str,
    request_id: str = Depends(get_request_id),
    store: ResultStore = Depends(get_result_store),
):
    result = store.read_result(_checked_run_id(run_id))
    if result is None:
        raise HTTPException(status_code=404, detail=error_payload("RESULT_NOT_FOUND", f"No result for run {run_id}"))
    return response_envelope(True, data=result, request_id=request_id)
