from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.activities import router as activities_router
from app.api.admin import router as admin_router
from app.api.assignments import router as assignments_router
from app.api.courses import router as courses_router
from app.api.enrollments import router as enrollments_router
from app.api.health import router as health_router
from app.api.live_sessions import router as live_sessions_router
from app.api.mentor import router as mentor_router
from app.api.metrics_endpoint import router as metrics_router
from app.api.progress import router as progress_router
from app.api.quizzes import router as quizzes_router
from app.api.users import router as users_router
from app.api.webhooks import router as webhooks_router
from app.core.config import SETTINGS
from app.core.errors import LmsError
from app.core.logging import setup_logging
from app.db.engine import lifespan_db
from app.db.redis import lifespan_redis
from app.middleware.metrics import MetricsMiddleware
from app.middleware.request_context import RequestContextMiddleware

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # nested so teardown runs in reverse order even if one side fails
    async with lifespan_db():
        async with lifespan_redis():
            yield


app = FastAPI(
    title="lms-service",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[SETTINGS.app_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Last added runs first: RequestContext -> Metrics -> CORS -> route
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)


# ---- error responses: {"status": "error", "message": ...} everywhere ----


def _error_response(
    status_code: int,
    message: str,
    *,
    extra: dict | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = {"status": "error", "message": message, **(extra or {})}
    return JSONResponse(
        status_code=status_code, content=jsonable_encoder(body), headers=headers
    )


@app.exception_handler(LmsError)
async def lms_error_handler(request: Request, exc: LmsError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _error_response(
        exc.status_code, exc.message, extra=exc.extra(), headers=exc.headers()
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(
    _request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return _error_response(
        exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None)
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    return _error_response(422, "Invalid request", extra={"errors": exc.errors()})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(500, "Internal server error")


app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(admin_router)
app.include_router(courses_router)
app.include_router(enrollments_router)
app.include_router(webhooks_router)
app.include_router(progress_router)
app.include_router(activities_router)
app.include_router(quizzes_router)
app.include_router(live_sessions_router)
app.include_router(assignments_router)
app.include_router(mentor_router)
app.include_router(users_router)

logger.info(
    "lms-service started  env=%s log_level=%s port=%d docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
)
