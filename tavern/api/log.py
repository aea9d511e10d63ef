"""Logging configuration using loguru.

Intercepts stdlib logging so that uvicorn, sqlalchemy, alembic, etc. all
flow through loguru with a unified format.  Every line carries the request
id and calling user bound by :func:`request_context`; lines emitted outside
a request show ``-`` for both.
"""

from __future__ import annotations

import logging
import sys
import uuid
from contextlib import AbstractContextManager

from loguru import logger

REQUEST_ID_HEADER = "X-Request-Id"
MAX_REQUEST_ID_LENGTH = 64

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>{extra[request_id]}</magenta> <blue>{extra[user_id]}</blue> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


class _InterceptHandler(logging.Handler):
    """Bridge stdlib logging records into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Walk the call stack so loguru reports the real call-site
        frame = logging.currentframe()
        depth = 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def resolve_request_id(incoming: str | None) -> str:
    """Reuse the gateway's request id when it looks sane, else mint one."""
    if incoming and len(incoming) <= MAX_REQUEST_ID_LENGTH and incoming.isprintable():
        return incoming
    return uuid.uuid4().hex


def request_context(request_id: str, user_id: str | None) -> AbstractContextManager[None]:
    """Bind *request_id* and *user_id* to every log line in the block."""
    return logger.contextualize(request_id=request_id, user_id=user_id or "-")


def setup_logging(level: str = "INFO") -> None:
    """Configure loguru as the sole logging sink.

    Call this once at process startup (before uvicorn starts).
    """
    level = level.upper()

    logger.remove()
    logger.configure(extra={"request_id": "-", "user_id": "-"})
    logger.add(sys.stderr, level=level, format=LOG_FORMAT)

    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)

    # SQL echo is opt-in via the engine, not via the root logger level.
    for name in ("uvicorn.access", "sqlalchemy.engine", "alembic.runtime.migration"):
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info("Logging initialised (level={})", level)
