"""
In-process notification queue.

Single-flight FIFO drain: one job at a time, small pause between jobs.
Failed attempts are re-queued after exponential backoff by a separate timer
task, so a job waiting for its retry never blocks the jobs behind it.

Job lifecycle: pending -> processing -> completed | pending (retry) | failed

The queue is created once in the application lifespan and shared through
app.state. enqueue() must be called from code running on the event loop.
"""

import asyncio
from collections import deque
from datetime import UTC, datetime, timedelta
from typing import Any

from registration_api.errors import NotificationError, NotificationTimeout, NotificationUnavailable
from registration_api.infrastructure.observability.logging import get_logger
from registration_api.models.domain.notification_domain import (
    DeliveryResult,
    JobPriority,
    NotificationJob,
    NotificationMessage,
)
from registration_api.services.notifications.channels import ChannelChain

logger = get_logger(__name__)

DEAD_LETTER_LIMIT = 100


class NotificationQueue:
    def __init__(
        self,
        chain: ChannelChain,
        max_attempts: int = 3,
        backoff_base_seconds: float = 5.0,
        inter_job_delay_seconds: float = 1.0,
        attempt_timeout_seconds: float = 10.0,
        dead_letter_limit: int = DEAD_LETTER_LIMIT,
    ):
        """
        Args:
            chain: Channel fallback chain used for every attempt
            max_attempts: Attempts per job before it is marked failed
            backoff_base_seconds: Retry delay is base * 2**(attempts - 1)
            inter_job_delay_seconds: Pause between consecutive jobs
            attempt_timeout_seconds: Wall-clock budget for one attempt across the chain
            dead_letter_limit: How many failed jobs to keep for inspection
        """
        self.chain = chain
        self.max_attempts = max_attempts
        self.backoff_base_seconds = backoff_base_seconds
        self.inter_job_delay_seconds = inter_job_delay_seconds
        self.attempt_timeout_seconds = attempt_timeout_seconds

        self._queue: deque[NotificationJob] = deque()
        self._drain_task: asyncio.Task | None = None
        self._retry_tasks: set[asyncio.Task] = set()
        self._processing = False
        self._closed = False
        self._completed = 0
        self._failed = 0
        self._dead_letters: deque[NotificationJob] = deque(maxlen=dead_letter_limit)

    # ------------------------------------------------------------------
    # Producer side
    # ------------------------------------------------------------------

    def enqueue(self, message: NotificationMessage, priority: JobPriority = "normal") -> str:
        """
        Queue a message and return its job id. Never blocks and never raises
        for delivery problems.
        """
        if self._closed:
            logger.warning("Notification queue closed, dropping message", to=message.to, kind=message.kind)
            raise RuntimeError("Notification queue is closed")

        job = NotificationJob(message=message, priority=priority)
        self._queue.append(job)
        logger.info(
            "Notification queued",
            job_id=job.id,
            to=message.to,
            kind=message.kind,
            queue_size=len(self._queue),
        )
        self._ensure_draining()
        return job.id

    async def deliver_now(self, message: NotificationMessage) -> DeliveryResult:
        """Send through the chain immediately, bypassing the queue, with the attempt budget."""
        try:
            return await self._send(message)
        except NotificationError as e:
            logger.warning(
                "Direct notification failed",
                to=message.to,
                error=str(e),
                error_type=type(e).__name__,
            )
            return DeliveryResult(
                success=False,
                channel=e.channel or "chain",
                error=str(e),
                unavailable=isinstance(e, NotificationUnavailable),
                errors=e.errors,
            )

    async def _send(self, message: NotificationMessage) -> DeliveryResult:
        """
        One pass through the chain within attempt_timeout_seconds.

        Raises:
            NotificationTimeout: the attempt ran out of time
            NotificationUnavailable: no channel is configured
            NotificationError: every channel failed
        """
        try:
            result = await asyncio.wait_for(self.chain.send(message), self.attempt_timeout_seconds)
        except asyncio.TimeoutError as e:
            raise NotificationTimeout(
                f"Timed out after {self.attempt_timeout_seconds}s", channel="chain"
            ) from e

        if result.success:
            return result
        if result.unavailable:
            raise NotificationUnavailable(
                result.error or "No notification channel configured",
                channel=result.channel,
                errors=result.errors,
            )
        raise NotificationError(result.error or "Delivery failed", channel=result.channel, errors=result.errors)

    # ------------------------------------------------------------------
    # Worker side
    # ------------------------------------------------------------------

    def _ensure_draining(self) -> None:
        if self._drain_task is None or self._drain_task.done():
            self._drain_task = asyncio.get_running_loop().create_task(self._drain())

    async def _drain(self) -> None:
        self._processing = True
        logger.debug("Processing notification queue", queue_size=len(self._queue))
        try:
            while self._queue:
                job = self._queue.popleft()
                await self._attempt(job)
                if self._queue and self.inter_job_delay_seconds > 0:
                    await asyncio.sleep(self.inter_job_delay_seconds)
        finally:
            self._processing = False
        logger.debug("Notification queue drained")

    async def _attempt(self, job: NotificationJob) -> None:
        job.attempts += 1
        job.status = "processing"
        logger.info("Processing notification", job_id=job.id, attempt=job.attempts, to=job.message.to)

        error: str | None = None
        retryable = True
        try:
            await self._send(job.message)
        except NotificationUnavailable as e:
            error = str(e)
            retryable = False
        except NotificationError as e:
            error = str(e)
        except Exception as e:
            # A faulty channel must not take the drain loop down with it
            logger.exception("Unexpected notification channel error", job_id=job.id)
            error = f"{type(e).__name__}: {e}"

        if error is None:
            job.status = "completed"
            job.last_error = None
            self._completed += 1
            logger.info("Notification delivered", job_id=job.id, to=job.message.to, attempts=job.attempts)
            return

        job.last_error = error
        logger.error(
            "Notification attempt failed",
            job_id=job.id,
            attempt=job.attempts,
            max_attempts=self.max_attempts,
            error=error,
        )

        if retryable and job.attempts < self.max_attempts:
            delay = self.backoff_base_seconds * (2 ** (job.attempts - 1))
            job.status = "pending"
            job.next_attempt_at = datetime.now(UTC) + timedelta(seconds=delay)
            self._schedule_retry(job, delay)
            logger.info("Notification scheduled for retry", job_id=job.id, delay_seconds=delay)
        else:
            job.status = "failed"
            job.next_attempt_at = None
            self._failed += 1
            self._dead_letters.append(job)
            logger.error(
                "Notification failed permanently",
                job_id=job.id,
                to=job.message.to,
                kind=job.message.kind,
                attempts=job.attempts,
                last_error=error,
            )

    def _schedule_retry(self, job: NotificationJob, delay: float) -> None:
        task = asyncio.get_running_loop().create_task(self._requeue_after(job, delay))
        self._retry_tasks.add(task)
        task.add_done_callback(self._retry_tasks.discard)

    async def _requeue_after(self, job: NotificationJob, delay: float) -> None:
        await asyncio.sleep(delay)
        if self._closed:
            return
        self._queue.append(job)
        self._ensure_draining()

    # ------------------------------------------------------------------
    # Introspection / lifecycle
    # ------------------------------------------------------------------

    @property
    def dead_letters(self) -> list[NotificationJob]:
        return list(self._dead_letters)

    def status(self) -> dict[str, Any]:
        return {
            "queued": len(self._queue),
            "processing": self._processing,
            "scheduled_retries": sum(1 for t in self._retry_tasks if not t.done()),
            "completed": self._completed,
            "failed": self._failed,
            "channels": self.chain.names,
            "recent_failures": [job.to_dict() for job in list(self._dead_letters)[-10:]],
        }

    def _pending_tasks(self) -> list[asyncio.Task]:
        tasks = [t for t in self._retry_tasks if not t.done()]
        if self._drain_task is not None and not self._drain_task.done():
            tasks.append(self._drain_task)
        return tasks

    async def join(self) -> None:
        """Wait until nothing is queued, processing or waiting for a retry."""
        while True:
            tasks = self._pending_tasks()
            if not tasks and not self._queue:
                return
            if not tasks:
                self._ensure_draining()
                continue
            await asyncio.gather(*tasks, return_exceptions=True)

    async def close(self) -> None:
        """Stop the worker. Jobs still queued or waiting for a retry are dropped."""
        self._closed = True
        dropped = len(self._queue) + sum(1 for t in self._retry_tasks if not t.done())
        if dropped:
            logger.warning("Notification queue closing with undelivered jobs", dropped=dropped)

        tasks = self._pending_tasks()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self._queue.clear()
        logger.info("Notification queue closed", completed=self._completed, failed=self._failed)
