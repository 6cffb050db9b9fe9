from __future__ import annotations

import time
import uuid

import structlog
from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware

from src.config.settings import settings
from src.core.logger import get_logger
from src.core.security import is_safe_identifier

logger = get_logger(__name__)


def _request_id(request: Request) -> str:
    incoming = (request.headers.get("x-request-id") or "").strip()
    if incoming and is_safe_identifier(incoming):
        return incoming
    return f"req_{uuid.uuid4().hex[:12]}"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tags every request with an id and binds it, plus the caller, to the log context.

    Generator, index and repository events emitted while serving the request
    carry ``request_id`` and ``user_id`` through structlog's contextvars.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = _request_id(request)
        user_id = (request.headers.get("x-user-id") or "").strip() or None
        request.state.request_id = request_id
        request.state.user_id = user_id
        report_asset = request.url.path.startswith(settings.report_url_prefix + "/")

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id, user_id=user_id)
        start = time.time()
        if not report_asset:
            logger.info("http.request.start", method=request.method, path=request.url.path)
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("http.request.error", method=request.method, path=request.url.path)
            structlog.contextvars.clear_contextvars()
            raise

        duration = time.time() - start
        response.headers["X-Request-Id"] = request_id
        response.headers["X-Process-Time"] = f"{duration:.4f}"
        logger.info(
            "report.asset.served" if report_asset else "http.request.end",
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(duration * 1000, 2),
        )
        structlog.contextvars.clear_contextvars()
        return response


def register_middleware(app: FastAPI) -> None:
    app.add_middleware(RequestContextMiddleware)
