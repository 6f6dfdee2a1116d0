"""
admin.py
--------
Purpose:
    Admin endpoints (JWT with role admin / super_admin).

Usage:
    1. PATCH /api/admin/registrations/{id}/status - Change status, email the applicant
    2. PATCH /api/admin/contact-messages/{id}/status - Triage a contact message
    3. GET /api/admin/notifications/queue - Notification queue counters and recent failures
    4. GET /api/admin/email-logs[/{kind}] - Emails recorded by the log channel
"""

from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends

from registration_api.auth.verify import admin_auth_dependency
from registration_api.dependencies import (
    get_contact_service,
    get_email_log,
    get_notification_queue,
    get_registration_pipeline,
)
from registration_api.infrastructure.observability.logging import get_logger
from registration_api.models.api.registration_request import (
    ContactStatusUpdateRequest,
    StatusUpdateRequest,
)
from registration_api.models.api.registration_response import (
    EmailLogByKindResponse,
    EmailLogResponse,
    MessageResponse,
    QueueStatusResponse,
)
from registration_api.services.contact_service import ContactService
from registration_api.services.notifications.email_log import EmailLogReader
from registration_api.services.notifications.queue import NotificationQueue
from registration_api.services.registration_pipeline import RegistrationPipeline

router = APIRouter(prefix="/api/admin", tags=["admin"])
logger = get_logger(__name__)


@router.patch("/registrations/{registration_id}/status", response_model=MessageResponse)
async def update_registration_status(
    registration_id: str,
    payload: StatusUpdateRequest,
    background_tasks: BackgroundTasks,
    claims: dict = Depends(admin_auth_dependency),
    pipeline: RegistrationPipeline = Depends(get_registration_pipeline),
):
    """
    Raises:
        401/403: Missing or non-admin token
        404: Registration not found
    """
    record = await pipeline.update_status(registration_id, payload.status)
    background_tasks.add_task(pipeline.dispatch_status_update, record)

    logger.info(
        "Admin changed registration status",
        admin=claims.get("sub"),
        registration_id=record.registration_id,
        status=payload.status,
    )
    return MessageResponse(message="Status updated successfully")


@router.patch("/contact-messages/{contact_id}/status", response_model=MessageResponse)
async def update_contact_status(
    contact_id: UUID,
    payload: ContactStatusUpdateRequest,
    claims: dict = Depends(admin_auth_dependency),
    service: ContactService = Depends(get_contact_service),
):
    """
    Raises:
        401/403: Missing or non-admin token
        404: Contact message not found
    """
    await service.update_status(
        contact_id, payload.status, admin_notes=payload.admin_notes, admin=claims.get("sub")
    )
    return MessageResponse(message="Status updated successfully")


@router.get("/notifications/queue", response_model=QueueStatusResponse)
async def notification_queue_status(
    claims: dict = Depends(admin_auth_dependency),
    queue: NotificationQueue = Depends(get_notification_queue),
):
    return QueueStatusResponse(data=queue.status())


@router.get("/email-logs", response_model=EmailLogResponse)
async def email_logs(
    claims: dict = Depends(admin_auth_dependency),
    email_log: EmailLogReader = Depends(get_email_log),
):
    entries = await email_log.entries()
    return EmailLogResponse(count=len(entries), data=entries)


@router.get("/email-logs/{kind}", response_model=EmailLogByKindResponse)
async def email_logs_by_kind(
    kind: str,
    claims: dict = Depends(admin_auth_dependency),
    email_log: EmailLogReader = Depends(get_email_log),
):
    entries = await email_log.entries(kind)
    return EmailLogByKindResponse(count=len(entries), kind=kind, data=entries)
