"""
FastAPI dependencies handing out the objects built in the application lifespan.

Everything lives on app.state; tests swap any of these through
app.dependency_overrides.
"""

from fastapi import Request

from registration_api.config import Settings
from registration_api.db.pool import DatabasePoolManager
from registration_api.errors import ServerError
from registration_api.middleware.rate_limiter import RateLimiter
from registration_api.services.analytics_service import AnalyticsService
from registration_api.services.contact_service import ContactService
from registration_api.services.notifications.email_log import EmailLogReader
from registration_api.services.notifications.queue import NotificationQueue
from registration_api.services.redis_client import RedisClient
from registration_api.services.registration_pipeline import RegistrationPipeline


def _state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise ServerError(f"{name} is not initialized")
    return value


def get_settings(request: Request) -> Settings:
    return _state(request, "settings")


def get_db_pool(request: Request) -> DatabasePoolManager | None:
    return getattr(request.app.state, "db_pool", None)


def get_redis_client(request: Request) -> RedisClient | None:
    return getattr(request.app.state, "redis_client", None)


def get_rate_limiter(request: Request) -> RateLimiter:
    return _state(request, "rate_limiter")


def get_notification_queue(request: Request) -> NotificationQueue:
    return _state(request, "notification_queue")


def get_registration_pipeline(request: Request) -> RegistrationPipeline:
    return _state(request, "registration_pipeline")


def get_contact_service(request: Request) -> ContactService:
    return _state(request, "contact_service")


def get_analytics_service(request: Request) -> AnalyticsService:
    return _state(request, "analytics_service")


def get_email_log(request: Request) -> EmailLogReader:
    return _state(request, "email_log")
