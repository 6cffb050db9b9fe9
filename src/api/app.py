from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from src.api.middleware import register_middleware
from src.api.router import api_router
from src.config.settings import settings
from src.core.file_manager import ensure_dirs
from src.core.logging import configure_logging
from src.core.logger import get_logger
from src.db.database import init_db
from src.schemas.response_schemas import API_VERSION

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.LOG_LEVEL)
    logger.info(
        "app.startup",
        env=settings.APP_ENV,
        version=API_VERSION,
        reports_root=str(settings.reports_root_path),
        report_tool_available=settings.report_tool_available,
    )
    await init_db()
    yield
    logger.info("app.shutdown")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Execution Report Engine",
        version=API_VERSION,
        description="Generates, indexes and serves execution reports for test script runs",
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_middleware(app)
    app.include_router(api_router, prefix="/api/v1")

    ensure_dirs(settings.reports_root_path, settings.results_dir_path, settings.index_dir_path)
    app.mount(
        settings.report_url_prefix,
        StaticFiles(directory=str(settings.reports_root_path), html=True),
        name="execution-reports",
    )
    return app


app = create_app()
