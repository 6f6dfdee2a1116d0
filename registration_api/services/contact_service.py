from uuid import UUID

from registration_api.errors import NotFoundError, RecordNotFoundError
from registration_api.infrastructure.observability.logging import get_logger
from registration_api.models.domain.registration_domain import (
    ContactData,
    ContactMessage,
    ContactStatus,
)
from registration_api.repositories.contact_repository import ContactStore
from registration_api.services.notification_service import NotificationService

logger = get_logger(__name__)


class ContactService:
    """Contact-form intake: persist, then alert the ops mailbox in the background."""

    def __init__(self, store: ContactStore, notifications: NotificationService):
        self.store = store
        self.notifications = notifications

    async def submit(self, data: ContactData) -> ContactMessage:
        message = await self.store.create(data)
        logger.info("Contact message received", contact_id=str(message.id), subject=message.subject)
        return message

    async def dispatch_alert(self, message: ContactMessage) -> None:
        try:
            self.notifications.contact_alert(message)
        except Exception:
            logger.exception("Failed to dispatch contact alert", contact_id=str(message.id))

    async def update_status(
        self,
        contact_id: UUID,
        status: ContactStatus,
        admin_notes: str | None = None,
        admin: str | None = None,
    ) -> ContactMessage:
        """
        Raises:
            NotFoundError: no message with this id
        """
        try:
            message = await self.store.update_status(
                contact_id, status, admin_notes=admin_notes, replied_by=admin
            )
        except RecordNotFoundError as e:
            raise NotFoundError("Contact message not found") from e

        logger.info("Contact message status updated", contact_id=str(contact_id), status=status, admin=admin)
        return message
