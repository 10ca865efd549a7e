from __future__ import annotations

import logging
import time
from pathlib import Path

import watchtower
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from . import __version__, config
from .errors import TimedExamError
from .routes import exams, frontend, system

logger = logging.getLogger(__name__)

SENSITIVE_HEADERS = {"authorization", "x-authorization", "cookie", "set-cookie"}


def setup_logging() -> None:
    """Configure the root logger from LOG_LEVEL / LOG_FILE / CLOUDWATCH_LOG_GROUP."""
    level = logging.getLevelName(config.LOG_LEVEL)
    if not isinstance(level, int):
        level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level)

    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")

    if config.LOG_FILE:
        log_path = Path(config.LOG_FILE)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(log_path, encoding="utf-8")
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    if config.CLOUDWATCH_LOG_GROUP:
        try:
            cloudwatch = watchtower.CloudWatchLogHandler(
                log_group_name=config.CLOUDWATCH_LOG_GROUP,
                log_stream_name="timed-exam-{strftime:%Y-%m-%d}",
            )
        except Exception as e:
            logger.warning(f"CloudWatch logging unavailable: {e}")
        else:
            cloudwatch.setFormatter(formatter)
            root_logger.addHandler(cloudwatch)


def redact_headers(headers) -> dict:
    return {
        k: ("[REDACTED]" if k.lower() in SENSITIVE_HEADERS else v) for k, v in headers.items()
    }


class LoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request with its status and latency; credentials are redacted."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start = time.perf_counter()
        logger.debug(f"Headers: {redact_headers(request.headers)}")
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f}ms)"
        )
        return response


async def timed_exam_error_handler(request: Request, exc: TimedExamError) -> JSONResponse:
    logger.warning(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse({"detail": exc.message}, status_code=exc.status_code)


def create_app() -> FastAPI:
    application = FastAPI(
        title="Timed Exam Links",
        description="Share a PDF exam through a link that stays valid for 24 hours.",
        version=__version__,
    )
    application.add_middleware(LoggingMiddleware)
    application.add_exception_handler(TimedExamError, timed_exam_error_handler)
    application.include_router(system.router)
    application.include_router(exams.router)
    frontend.register_routes(application)
    return application


setup_logging()
app = create_app()
