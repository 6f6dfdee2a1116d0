"""
Builds notification messages for registration events and hands them to the queue.

Everything here except send_confirmation_now() is fire-and-forget: failures
are logged and never reach the caller.
"""

from registration_api.config import Settings
from registration_api.errors import NotificationDeliveryError
from registration_api.infrastructure.observability.logging import get_logger
from registration_api.models.domain.notification_domain import JobPriority, NotificationMessage
from registration_api.models.domain.registration_domain import ContactMessage, IntakeRecord
from registration_api.services.notifications import templates
from registration_api.services.notifications.queue import NotificationQueue

logger = get_logger(__name__)


class NotificationService:
    def __init__(self, queue: NotificationQueue, settings: Settings):
        self.queue = queue
        self.admin_email = settings.ADMIN_EMAIL
        self.event_name = settings.EVENT_NAME

    def _enqueue(self, message: NotificationMessage, priority: JobPriority = "normal") -> str | None:
        try:
            return self.queue.enqueue(message, priority=priority)
        except Exception as e:
            logger.error(
                "Failed to queue notification",
                to=message.to,
                kind=message.kind,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

    def registration_confirmation(self, record: IntakeRecord) -> str | None:
        message = templates.registration_confirmation(record, self.event_name)
        return self._enqueue(message, priority="high")

    def new_registration_alert(self, record: IntakeRecord) -> str | None:
        message = templates.new_registration_alert(record, self.admin_email, self.event_name)
        return self._enqueue(message)

    def status_update(self, record: IntakeRecord, status: str) -> str | None:
        return self._enqueue(templates.status_update(record, status))

    def contact_alert(self, contact: ContactMessage) -> str | None:
        message = templates.contact_alert(contact, self.admin_email, self.event_name)
        return self._enqueue(message)

    async def send_confirmation_now(self, record: IntakeRecord) -> str | None:
        """
        Deliver the confirmation email synchronously (resend endpoint).

        Returns:
            Provider message id, if the channel reported one

        Raises:
            NotificationDeliveryError: every channel failed or the attempt timed out
        """
        message = templates.registration_confirmation(record, self.event_name)
        result = await self.queue.deliver_now(message)

        if not result.success:
            logger.error(
                "Confirmation resend failed",
                registration_id=record.registration_id,
                error=result.error,
                errors=list(result.errors),
            )
            raise NotificationDeliveryError("Failed to send confirmation email")

        logger.info(
            "Confirmation resent",
            registration_id=record.registration_id,
            channel=result.channel,
        )
        return result.message_id
