from fastapi import APIRouter, BackgroundTasks, Depends, status

from registration_api.dependencies import get_contact_service
from registration_api.middleware.rate_limit_dependencies import rate_limit_ip
from registration_api.models.api.registration_request import ContactRequest
from registration_api.models.api.registration_response import MessageResponse
from registration_api.services.contact_service import ContactService

router = APIRouter(prefix="/api/contact", tags=["contact"])


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=MessageResponse,
    dependencies=[Depends(rate_limit_ip)],
)
async def submit_contact(
    payload: ContactRequest,
    background_tasks: BackgroundTasks,
    service: ContactService = Depends(get_contact_service),
):
    """Store a contact-form message and alert the ops mailbox after responding."""
    message = await service.submit(payload.to_domain())
    background_tasks.add_task(service.dispatch_alert, message)
    return MessageResponse(message="Message sent successfully")
