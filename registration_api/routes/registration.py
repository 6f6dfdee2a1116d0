"""
registration.py
---------------
Purpose:
    Public registration endpoints.

Usage:
    1. POST /api/register - Submit a registration (201, notifications sent after the response)
    2. GET /api/register/{id} - Look up by registration ID or internal UUID
    3. POST /api/register/send-confirmation - Resend the confirmation email now
"""

from fastapi import APIRouter, BackgroundTasks, Depends, status
from fastapi.responses import JSONResponse

from registration_api.dependencies import get_registration_pipeline
from registration_api.infrastructure.observability.logging import get_logger
from registration_api.middleware.rate_limit_dependencies import rate_limit_ip
from registration_api.models.api.registration_request import (
    RegistrationRequest,
    SendConfirmationRequest,
)
from registration_api.models.api.registration_response import (
    ConfirmationSentData,
    ConfirmationSentResponse,
    PublicRegistration,
    RegistrationCreatedResponse,
    RegistrationDetailResponse,
)
from registration_api.services.registration_pipeline import RegistrationPipeline

router = APIRouter(prefix="/api/register", tags=["registration"])
logger = get_logger(__name__)


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=RegistrationCreatedResponse,
    dependencies=[Depends(rate_limit_ip)],
)
async def register(
    payload: RegistrationRequest,
    background_tasks: BackgroundTasks,
    pipeline: RegistrationPipeline = Depends(get_registration_pipeline),
):
    """
    Submit a registration.

    Raises:
        400: VALIDATION_ERROR or DUPLICATE_EMAIL
        408: REQUEST_TIMEOUT
        429: RATE_LIMITED
    """
    result = await pipeline.submit(payload.to_domain())

    # Runs after the response has been sent
    background_tasks.add_task(pipeline.dispatch_notifications, result.record)

    return JSONResponse(status_code=status.HTTP_201_CREATED, content=result.body)


@router.post(
    "/send-confirmation",
    response_model=ConfirmationSentResponse,
    dependencies=[Depends(rate_limit_ip)],
)
async def send_confirmation(
    payload: SendConfirmationRequest,
    pipeline: RegistrationPipeline = Depends(get_registration_pipeline),
):
    """
    Resend the confirmation email for an existing registration.

    Raises:
        404: No registration with that ID and email
        500: EMAIL_SEND_FAILED
    """
    record = await pipeline.resend_confirmation(payload.email, payload.registration_id)

    return ConfirmationSentResponse(
        data=ConfirmationSentData(email=record.email, registration_id=record.registration_id)
    )


@router.get("/{registration_id}", response_model=RegistrationDetailResponse)
async def get_registration(
    registration_id: str,
    pipeline: RegistrationPipeline = Depends(get_registration_pipeline),
):
    record = await pipeline.lookup(registration_id)
    return RegistrationDetailResponse(data=PublicRegistration.from_record(record))
