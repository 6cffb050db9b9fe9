from __future__ import annotations

import logging
import sys

from src.core.logger import configure_structlog


def configure_logging(level: str = "INFO") -> None:
    log_level = getattr(logging, str(level or "INFO").upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )
    # Third-party access logs duplicate http.request.* events.
    logging.getLogger("uvicorn.access").setLevel(max(log_level, logging.WARNING))
    configure_structlog()
