"""
Persistence for contact-form messages. No uniqueness constraints.
"""

from typing import Protocol
from uuid import UUID

from registration_api.db.helpers import fetch_all, fetch_one, with_db_retry
from registration_api.db.pool import DatabasePoolManager
from registration_api.errors import RecordNotFoundError
from registration_api.infrastructure.observability.logging import get_logger
from registration_api.models.domain.registration_domain import (
    ContactData,
    ContactMessage,
    ContactStatus,
)

logger = get_logger(__name__)


class ContactStore(Protocol):
    async def create(self, data: ContactData) -> ContactMessage: ...

    async def update_status(
        self,
        contact_id: UUID,
        status: ContactStatus,
        admin_notes: str | None = None,
        replied_by: str | None = None,
    ) -> ContactMessage: ...

    async def count_by_status(self) -> dict[str, int]: ...


class PostgresContactStore:
    def __init__(self, db_pool: DatabasePoolManager):
        self._db = db_pool

    async def create(self, data: ContactData) -> ContactMessage:
        async with self._db.connection() as conn:
            row = await fetch_one(
                conn,
                """
                INSERT INTO contact_messages (first_name, last_name, email, subject, message)
                VALUES (%s, %s, %s, %s, %s)
                RETURNING *
                """,
                (data.first_name, data.last_name, data.email, data.subject, data.message),
            )

        message = ContactMessage.model_validate(row)
        logger.info("Contact message stored", contact_id=str(message.id), email=message.email)
        return message

    @with_db_retry()
    async def update_status(
        self,
        contact_id: UUID,
        status: ContactStatus,
        admin_notes: str | None = None,
        replied_by: str | None = None,
    ) -> ContactMessage:
        """
        Set a message's triage status. Notes are only overwritten when given;
        replied_at is stamped the first time the status becomes "replied".

        Raises:
            RecordNotFoundError: no message with this id
        """
        async with self._db.connection() as conn:
            row = await fetch_one(
                conn,
                """
                UPDATE contact_messages
                SET status = %(status)s,
                    admin_notes = COALESCE(%(admin_notes)s, admin_notes),
                    replied_at = CASE
                        WHEN %(status)s = 'replied' AND replied_at IS NULL THEN NOW()
                        ELSE replied_at
                    END,
                    replied_by = CASE
                        WHEN %(status)s = 'replied' THEN COALESCE(%(replied_by)s, replied_by)
                        ELSE replied_by
                    END,
                    updated_at = NOW()
                WHERE id = %(contact_id)s
                RETURNING *
                """,
                {
                    "status": status,
                    "admin_notes": admin_notes,
                    "replied_by": replied_by,
                    "contact_id": contact_id,
                },
            )

        if not row:
            raise RecordNotFoundError(f"Contact message {contact_id} not found", operation="update_status")

        return ContactMessage.model_validate(row)

    @with_db_retry()
    async def count_by_status(self) -> dict[str, int]:
        async with self._db.connection() as conn:
            rows = await fetch_all(
                conn, "SELECT status, COUNT(*) AS count FROM contact_messages GROUP BY status"
            )
        return {row["status"]: row["count"] for row in rows}
