"""
Registration intake pipeline.

submit() is the synchronous part of an intake request: duplicate pre-check,
persist, build the response body. It runs under a hard wall-clock budget.
Notifications are dispatched separately, after the response has been sent.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from registration_api.errors import (
    DuplicateEmailError,
    DuplicateKeyError,
    NotFoundError,
    RecordNotFoundError,
    RequestTimeoutError,
)
from registration_api.infrastructure.observability.logging import get_logger
from registration_api.models.api.registration_response import (
    CamelResponse,
    RegistrationCreatedResponse,
)
from registration_api.models.domain.registration_domain import (
    IntakeRecord,
    RegistrationData,
    RegistrationStatus,
)
from registration_api.repositories.registration_repository import RegistrationStore
from registration_api.services.notification_service import NotificationService

logger = get_logger(__name__)


@dataclass(frozen=True)
class IntakeResult:
    record: IntakeRecord
    body: dict[str, Any]


class RegistrationPipeline:
    def __init__(
        self,
        store: RegistrationStore,
        notifications: NotificationService,
        request_timeout_seconds: float = 5.0,
        response_builder: Callable[[IntakeRecord], CamelResponse] = RegistrationCreatedResponse.from_record,
    ):
        self.store = store
        self.notifications = notifications
        self.request_timeout_seconds = request_timeout_seconds
        self._response_builder = response_builder

    async def submit(self, data: RegistrationData) -> IntakeResult:
        """
        Accept a validated registration.

        Returns:
            IntakeResult with the persisted record and the 201 response body

        Raises:
            DuplicateEmailError: email already registered (pre-check or unique index)
            RequestTimeoutError: budget exceeded; a write still in flight is kept
            StoreUnavailableError / DatabaseError: store failure, nothing persisted
        """
        write_task: asyncio.Task | None = None
        orphaned = False

        async def run() -> IntakeResult:
            nonlocal write_task, orphaned

            if await self.store.find_by_email(data.email) is not None:
                logger.info("Duplicate registration rejected", email=data.email, stage="pre_check")
                raise DuplicateEmailError(data.email)

            # Shielded so a timeout abandons the wait, not the write
            write_task = asyncio.ensure_future(self._persist(data))
            record = await asyncio.shield(write_task)

            try:
                body = self._response_builder(record).to_json()
            except Exception:
                orphaned = True
                logger.exception(
                    "Failed to build registration response, removing orphaned record",
                    record_id=str(record.id),
                    registration_id=record.registration_id,
                )
                await asyncio.shield(self._compensate(record))
                raise

            return IntakeResult(record=record, body=body)

        try:
            return await asyncio.wait_for(run(), self.request_timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                "Registration request timed out",
                email=data.email,
                timeout_seconds=self.request_timeout_seconds,
                write_started=write_task is not None,
            )
            if write_task is not None and not orphaned:
                if write_task.done():
                    self._on_late_write(write_task)
                else:
                    write_task.add_done_callback(self._on_late_write)
            raise RequestTimeoutError(self.request_timeout_seconds) from None

    async def _persist(self, data: RegistrationData) -> IntakeRecord:
        try:
            record = await self.store.create(data)
        except DuplicateKeyError as e:
            if e.field != "email":
                raise
            logger.info("Duplicate registration rejected", email=data.email, stage="unique_index")
            raise DuplicateEmailError(data.email) from e

        logger.info(
            "Registration accepted",
            registration_id=record.registration_id,
            participant_id=record.participant_id,
        )
        return record

    async def _compensate(self, record: IntakeRecord) -> None:
        try:
            await self.store.delete_by_id(record.id)
        except Exception as e:
            logger.error(
                "Compensating delete failed, orphaned record remains",
                record_id=str(record.id),
                error=str(e),
                error_type=type(e).__name__,
            )

    def _on_late_write(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.info("Write after timeout did not persist", error=str(error))
            return

        record = task.result()
        logger.warning(
            "Registration persisted after request timeout",
            registration_id=record.registration_id,
            email=record.email,
        )
        self._dispatch(record)

    def _dispatch(self, record: IntakeRecord) -> None:
        self.notifications.registration_confirmation(record)
        self.notifications.new_registration_alert(record)

    async def dispatch_notifications(self, record: IntakeRecord) -> None:
        """Queue applicant confirmation and ops alert. Runs as a background task; never raises."""
        try:
            self._dispatch(record)
        except Exception:
            logger.exception("Failed to dispatch registration notifications", record_id=str(record.id))

    async def dispatch_status_update(self, record: IntakeRecord) -> None:
        try:
            self.notifications.status_update(record, record.status)
        except Exception:
            logger.exception("Failed to dispatch status update", record_id=str(record.id))

    async def lookup(self, identifier: str) -> IntakeRecord:
        """Resolve by registration id first, then by internal UUID."""
        record = await self.store.find_by_registration_id(identifier)

        if record is None:
            try:
                record_id = UUID(identifier)
            except ValueError:
                record_id = None
            if record_id is not None:
                record = await self.store.find_by_id(record_id)

        if record is None:
            raise NotFoundError("Registration not found")
        return record

    async def update_status(self, identifier: str, status: RegistrationStatus) -> IntakeRecord:
        record = await self.lookup(identifier)
        try:
            updated = await self.store.update_status(record.id, status)
        except RecordNotFoundError as e:
            raise NotFoundError("Registration not found") from e

        logger.info(
            "Registration status updated",
            registration_id=updated.registration_id,
            old_status=record.status,
            new_status=status,
        )
        return updated

    async def resend_confirmation(self, email: str, registration_id: str) -> IntakeRecord:
        record = await self.store.find_by_registration_id(registration_id)
        if record is None or record.email.lower() != email.lower():
            raise NotFoundError("Registration not found")

        await self.notifications.send_confirmation_now(record)
        return record
