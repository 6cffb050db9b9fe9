from __future__ import annotations

import shutil

from fastapi import APIRouter, Depends

from src.api.dependencies import get_request_id
from src.config.settings import settings
from src.core.logger import get_logger
from src.db.database import get_connection
from src.schemas.response_schemas import API_VERSION, response_envelope

router = APIRouter()
logger = get_logger(__name__)


@router.get("/system/health")
async def get_health(request_id: str = Depends(get_request_id)):
    logger.info("api.system.health", request_id=request_id)
    db_status = "up"
    db_size_mb = 0.0
    try:
        conn = get_connection()
        conn.execute("SELECT 1").fetchone()
        conn.close()
        db_path = settings.state_db_path
        if db_path.exists():
            db_size_mb = round(db_path.stat().st_size / 1e6, 2)
    except Exception as exc:
        logger.warning("api.system.database_unavailable", error=str(exc))
        db_status = "down"

    reports_root = settings.reports_root_path
    reports_root.mkdir(parents=True, exist_ok=True)
    free_gb = round(shutil.disk_usage(reports_root).free / (1024**3), 2)
    index_dir = settings.index_dir_path
    project_ledgers = len(list(index_dir.glob("*.json"))) if index_dir.exists() else 0
    tool_available = settings.report_tool_available

    data = {
        "status": "healthy" if db_status == "up" else "degraded",
        "version": API_VERSION,
        "components": {
            "api": {"status": "up"},
            "database": {"status": db_status, "type": "sqlite", "size_mb": db_size_mb},
            "filesystem": {"status": "up", "free_gb": free_gb, "reports_root": str(reports_root)},
            # A missing tool only downgrades reports to the basic page.
            "report_tool": {
                "status": "up" if tool_available else "degraded",
                "command": settings.REPORT_TOOL_COMMAND,
            },
            "index": {"status": "up", "project_ledgers": project_ledgers},
        },
    }
    return response_envelope(True, data=data, request_id=request_id)
