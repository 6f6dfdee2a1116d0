"""
Application factory, lifespan and error envelope.

Every error response has the shape:
    {"success": false, "error": {"code": ..., "message": ..., "details": ...?}}
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from registration_api.config import Settings, settings as default_settings
from registration_api.db.pool import DatabasePoolManager
from registration_api.db.schema import ensure_schema
from registration_api.errors import AppError, DatabaseError, RateLimitedError, ValidationError
from registration_api.infrastructure.observability.logging import get_logger, log_request, setup_logging
from registration_api.middleware import (
    RateLimiter,
    RateLimitHeadersMiddleware,
    RequestContextMiddleware,
)
from registration_api.repositories.contact_repository import PostgresContactStore
from registration_api.repositories.registration_repository import PostgresRegistrationStore
from registration_api.routes import admin, analytics, contact, health, registration
from registration_api.services.analytics_service import AnalyticsService
from registration_api.services.contact_service import ContactService
from registration_api.services.notification_service import NotificationService
from registration_api.services.notifications import (
    ChannelChain,
    EmailLogReader,
    NotificationQueue,
    build_channels,
)
from registration_api.services.redis_client import RedisClient
from registration_api.services.registration_pipeline import RegistrationPipeline

logger = get_logger(__name__)

HTTP_ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    413: "PAYLOAD_TOO_LARGE",
    415: "UNSUPPORTED_MEDIA_TYPE",
}


def _error_response(status_code: int, error: dict, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error},
        headers=headers,
    )


def build_notification_queue(settings: Settings) -> NotificationQueue:
    timeouts = settings.get_timeout_config()
    return NotificationQueue(
        ChannelChain(build_channels(settings)),
        max_attempts=settings.NOTIFICATION_MAX_ATTEMPTS,
        backoff_base_seconds=settings.NOTIFICATION_BACKOFF_BASE_SECONDS,
        inter_job_delay_seconds=settings.NOTIFICATION_INTER_JOB_DELAY_SECONDS,
        attempt_timeout_seconds=timeouts["notification"],
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown with proper resource management."""
    settings: Settings = app.state.settings
    logger.info("Application starting", environment=settings.environment, debug=settings.debug)

    db_pool = DatabasePoolManager(settings)
    redis_client: RedisClient | None = None
    startup_tasks = []

    try:
        logger.info("Initializing database pool")
        await db_pool.initialize()
        startup_tasks.append("database_pool")
        await ensure_schema(db_pool)

        if settings.REDIS_URL:
            logger.info("Initializing Redis connection")
            redis_client = RedisClient(settings.REDIS_URL)
            try:
                await redis_client.initialize()
                startup_tasks.append("redis")
            except RuntimeError:
                logger.warning("Redis unavailable, rate limiter will use its fail mode")
                redis_client = None

        queue = build_notification_queue(settings)
        notifications = NotificationService(queue, settings)
        startup_tasks.append("notification_queue")

        app.state.db_pool = db_pool
        app.state.redis_client = redis_client
        app.state.rate_limiter = RateLimiter(
            redis_client.client if redis_client else None,
            default_limit=settings.get_rate_limits()["ip_per_minute"],
            window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
            fail_open=settings.RATE_LIMIT_FAIL_OPEN,
        )
        app.state.notification_queue = queue
        registration_store = PostgresRegistrationStore(db_pool)
        contact_store = PostgresContactStore(db_pool)
        app.state.registration_pipeline = RegistrationPipeline(
            registration_store,
            notifications,
            request_timeout_seconds=settings.get_timeout_config()["request"],
        )
        app.state.contact_service = ContactService(contact_store, notifications)
        app.state.analytics_service = AnalyticsService(registration_store, contact_store)

        logger.info("All services initialized successfully", services=startup_tasks)

    except Exception as e:
        logger.error("Failed to initialize services", error=str(e), completed_tasks=startup_tasks)

        if redis_client is not None:
            await redis_client.close()
        if "database_pool" in startup_tasks:
            try:
                await db_pool.close()
            except Exception as cleanup_error:
                logger.error("Error cleaning up database pool", error=str(cleanup_error))
        raise

    yield

    # Shutdown sequence (reverse order)
    logger.info("Application shutting down")
    shutdown_errors = []

    try:
        await queue.close()
    except Exception as e:
        logger.error("Error closing notification queue", error=str(e))
        shutdown_errors.append(f"Notification queue: {e}")

    if redis_client is not None:
        await redis_client.close()

    try:
        logger.info("Closing database pool")
        await db_pool.close()
    except Exception as e:
        logger.error("Error closing database pool", error=str(e))
        shutdown_errors.append(f"Database: {e}")

    if shutdown_errors:
        logger.warning("Some services had shutdown errors", errors=shutdown_errors)
    else:
        logger.info("All services closed successfully")


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        log = logger.error if exc.status_code >= 500 else logger.info
        log("Request failed", code=exc.code, message=exc.message, path=request.url.path)

        headers = None
        if isinstance(exc, RateLimitedError) and isinstance(exc.details, dict):
            retry_after = exc.details.get("retryAfter")
            if retry_after:
                headers = {"Retry-After": str(retry_after)}

        return _error_response(exc.status_code, exc.to_dict(), headers)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        details = []
        for error in exc.errors():
            loc = [str(part) for part in error.get("loc", ()) if part != "body"]
            message = error.get("msg", "Invalid value")
            if message.startswith("Value error, "):
                message = message[len("Value error, ") :]
            details.append({"field": ".".join(loc) or "body", "message": message})

        logger.info("Validation failed", path=request.url.path, fields=[d["field"] for d in details])
        validation_error = ValidationError("Validation failed", details=details)
        return _error_response(validation_error.status_code, validation_error.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        code = HTTP_ERROR_CODES.get(exc.status_code, "SERVER_ERROR" if exc.status_code >= 500 else "ERROR")
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        if exc.status_code == 404 and message == "Not Found":
            message = "Route not found"
        return _error_response(exc.status_code, {"code": code, "message": message}, exc.headers)

    @app.exception_handler(DatabaseError)
    async def database_error_handler(request: Request, exc: DatabaseError):
        logger.error(
            "Store error",
            path=request.url.path,
            operation=exc.operation,
            recoverable=exc.recoverable,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        error = {"code": "SERVER_ERROR", "message": "Something went wrong!"}
        if app.state.settings.debug:
            error["details"] = str(exc)
        return _error_response(500, error)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error", path=request.url.path, error_type=type(exc).__name__)
        error = {"code": "SERVER_ERROR", "message": "Something went wrong!"}
        if app.state.settings.debug:
            error["details"] = f"{type(exc).__name__}: {exc}"
        return _error_response(500, error)


def create_app(settings: Settings | None = None, *, with_lifespan: bool = True) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Settings to use (defaults to the environment-loaded settings)
        with_lifespan: Tests pass False and populate app.state / overrides themselves
    """
    settings = settings or default_settings
    setup_logging(log_level=settings.LOG_LEVEL, json_logs=settings.is_production)

    app = FastAPI(
        title="MSME Clinic Registration API",
        description="Registration intake and notification service for the MSME Clinic",
        version="1.0.0",
        lifespan=lifespan if with_lifespan else None,
    )
    app.state.settings = settings
    app.state.email_log = EmailLogReader(settings.EMAIL_LOG_PATH)

    app.include_router(health.router)
    app.include_router(registration.router)
    app.include_router(contact.router)
    app.include_router(admin.router)
    app.include_router(analytics.router)

    register_exception_handlers(app)

    app.add_middleware(RateLimitHeadersMiddleware)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log HTTP requests with timing."""
        start_time = time.time()
        response = await call_next(request)
        log_request(
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round((time.time() - start_time) * 1000, 2),
        )
        return response

    app.add_middleware(
        RequestContextMiddleware,
        trust_x_forwarded_for=settings.TRUST_X_FORWARDED_FOR,
        trusted_proxy_ips=settings.TRUSTED_PROXY_IPS,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID", "X-RateLimit-Limit", "X-RateLimit-Remaining", "Retry-After"],
    )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
