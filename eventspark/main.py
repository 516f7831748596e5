import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST
from pythonjsonlogger.json import JsonFormatter
from redis.exceptions import RedisError
from sqlalchemy.exc import OperationalError
from starlette.middleware.cors import CORSMiddleware

from eventspark.core.config import settings
from eventspark.core.database_manager import db_manager
from eventspark.core.errors import DomainError
from eventspark.middleware.monitoring import (
    MonitoringMiddleware,
    get_health_status,
    get_prometheus_metrics,
)
from eventspark.utils.cache import close_redis, init_redis

from .api.api import api_router

# Configure structured logging
log_handler = logging.StreamHandler()
formatter = JsonFormatter(
    "%(levelname)s %(asctime)s %(message)s %(name)s %(processName)s %(filename)s %(lineno)d",
    rename_fields={"levelname": "level", "asctime": "time", "name": "loggerName"},
)
log_handler.setFormatter(formatter)
logging.basicConfig(handlers=[log_handler], level=settings.monitoring.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info("Starting EventSpark")

    if settings.CACHE_ENABLED:
        await init_redis(settings.REDIS_URL)
        logger.info("Redis connection initialized")

    if settings.ENVIRONMENT == "development" and not settings.TESTING:
        # Migrations own the schema elsewhere
        await db_manager.create_all()

    db_health = await db_manager.health_check()
    if db_health.get("status") == "healthy":
        logger.info("Database connection verified")
    else:
        logger.warning("Database health check failed")

    try:
        yield
    finally:
        logger.info("Shutting down EventSpark")
        await close_redis()
        await db_manager.close()


app = FastAPI(
    title="EventSpark",
    description="""
    **EventSpark** is an event ticketing API: organizers publish events with
    seat maps and dynamic pricing, attendees book seats and pay for them.

    Most endpoints require a bearer token from `/api/v1/auth/signin` or
    `/api/v1/auth/login/access-token`:

    ```
    Authorization: Bearer <your_jwt_token>
    ```
    """,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    docs_url=f"{settings.API_V1_PREFIX}/docs",
    redoc_url=f"{settings.API_V1_PREFIX}/redoc",
    lifespan=lifespan,
)

app.add_middleware(MonitoringMiddleware)

if settings.BACKEND_CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(api_router, prefix=settings.API_V1_PREFIX)


def _error_body(code: str, message: str) -> dict[str, Any]:
    return {"success": False, "error": {"code": code, "message": message}}


@app.exception_handler(DomainError)  # type: ignore[misc]
async def domain_exception_handler(request: Request, exc: DomainError) -> JSONResponse:
    logger.info(
        "Request rejected: %s",
        exc,
        extra={"status_code": exc.status_code, "path": request.url.path},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.code.value, exc.message),
    )


@app.exception_handler(OperationalError)  # type: ignore[misc]
@app.exception_handler(RedisError)  # type: ignore[misc]
async def unavailable_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    logger.error("Backing service unavailable: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=_error_body(
            "SERVICE_UNAVAILABLE", "Service temporarily unavailable. Please retry."
        ),
        headers={"Retry-After": "5"},
    )


@app.exception_handler(HTTPException)  # type: ignore[misc]
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    logger.error(
        "HTTPException occurred: %s",
        exc.detail,
        extra={"status_code": exc.status_code},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=exc.headers,
    )


@app.exception_handler(Exception)  # type: ignore[misc]
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception occurred: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal Server Error"},
    )


@app.get("/", tags=["Root"], summary="API Welcome Message")  # type: ignore[misc]
async def root() -> dict[str, Any]:
    return {
        "message": "Welcome to EventSpark",
        "version": settings.VERSION,
        "docs": f"{settings.API_V1_PREFIX}/docs",
        "status": "operational",
    }


@app.get("/health", tags=["Health"], summary="Health Check")  # type: ignore[misc]
async def health_check() -> dict[str, Any]:
    """
    Operational status of the database and the cache.
    """
    return await get_health_status()


@app.get("/metrics", tags=["Monitoring"], summary="Prometheus Metrics")  # type: ignore[misc]
async def metrics() -> Response:
    """
    Prometheus metrics in exposition format.
    """
    if not settings.monitoring.ENABLE_PROMETHEUS:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Metrics endpoint is disabled"
        )

    return Response(content=get_prometheus_metrics(), media_type=CONTENT_TYPE_LATEST)
