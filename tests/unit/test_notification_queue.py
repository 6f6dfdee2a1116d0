"""
NotificationQueue behaviour: FIFO drain, retries with backoff, timeouts and shutdown.
Delays are scaled down so the whole module runs in well under a second.
"""

import asyncio

import pytest
from conftest import ScriptedChannel

from registration_api.models.domain.notification_domain import NotificationMessage
from registration_api.services.notifications.channels import ChannelChain
from registration_api.services.notifications.queue import NotificationQueue


def message(subject: str = "Hello", to: str = "a@b.com") -> NotificationMessage:
    return NotificationMessage(to=to, subject=subject, html=f"<p>{subject}</p>")


def make_queue(channel, **overrides) -> NotificationQueue:
    options = {
        "max_attempts": 3,
        "backoff_base_seconds": 0.001,
        "inter_job_delay_seconds": 0,
        "attempt_timeout_seconds": 1.0,
    }
    options.update(overrides)
    return NotificationQueue(ChannelChain([channel]), **options)


@pytest.mark.asyncio
async def test_enqueue_returns_before_any_attempt():
    channel = ScriptedChannel()
    queue = make_queue(channel)

    job_id = queue.enqueue(message())

    assert job_id
    assert channel.sent == []

    await queue.join()
    assert len(channel.sent) == 1
    assert queue.status()["completed"] == 1


@pytest.mark.asyncio
async def test_jobs_are_delivered_in_fifo_order():
    channel = ScriptedChannel()
    queue = make_queue(channel)

    for subject in ("first", "second", "third"):
        queue.enqueue(message(subject))
    await queue.join()

    assert [m.subject for m in channel.sent] == ["first", "second", "third"]


@pytest.mark.asyncio
async def test_always_failing_channel_fails_after_max_attempts():
    channel = ScriptedChannel(outcomes=[False] * 10)
    queue = make_queue(channel, max_attempts=3)

    queue.enqueue(message())
    await queue.join()

    assert len(channel.sent) == 3
    status = queue.status()
    assert status["failed"] == 1
    assert status["completed"] == 0

    [job] = queue.dead_letters
    assert job.status == "failed"
    assert job.attempts == 3
    assert job.last_error == "All notification channels failed"


@pytest.mark.asyncio
async def test_job_is_processing_while_channel_sends():
    queue = None
    seen = []

    class ObservingChannel(ScriptedChannel):
        async def send(self, msg):
            seen.append(queue.status()["processing"])
            return await super().send(msg)

    queue = make_queue(ObservingChannel())
    queue.enqueue(message())
    await queue.join()

    assert seen == [True]
    assert queue.status()["processing"] is False


@pytest.mark.asyncio
async def test_retry_then_success():
    channel = ScriptedChannel(outcomes=[False, True])
    queue = make_queue(channel)

    queue.enqueue(message())
    await queue.join()

    assert len(channel.sent) == 2
    assert queue.status()["completed"] == 1
    assert queue.status()["failed"] == 0


@pytest.mark.asyncio
async def test_backoff_does_not_block_later_jobs():
    channel = ScriptedChannel(outcomes=[False, True, True])
    queue = make_queue(channel, backoff_base_seconds=0.05)

    queue.enqueue(message("A"))
    queue.enqueue(message("B"))
    await queue.join()

    assert [m.subject for m in channel.sent] == ["A", "B", "A"]


@pytest.mark.asyncio
async def test_attempt_timeout_counts_as_failure():
    channel = ScriptedChannel(delay=0.2)
    queue = make_queue(channel, max_attempts=2, attempt_timeout_seconds=0.01)

    queue.enqueue(message())
    await queue.join()

    [job] = queue.dead_letters
    assert job.attempts == 2
    assert job.last_error.startswith("Timed out")


@pytest.mark.asyncio
async def test_channel_exception_does_not_stop_the_queue():
    channel = ScriptedChannel(outcomes=[RuntimeError("boom"), True])
    queue = make_queue(channel, max_attempts=1)

    queue.enqueue(message("broken"))
    queue.enqueue(message("fine"))
    await queue.join()

    status = queue.status()
    assert status["failed"] == 1
    assert status["completed"] == 1
    assert queue.dead_letters[0].last_error == "RuntimeError: boom"


@pytest.mark.asyncio
async def test_close_drops_scheduled_retries():
    channel = ScriptedChannel(outcomes=[False] * 5)
    queue = make_queue(channel, backoff_base_seconds=30)

    queue.enqueue(message())
    while not channel.sent:
        await asyncio.sleep(0.001)
    await asyncio.sleep(0.01)

    assert queue.status()["scheduled_retries"] == 1

    await queue.close()

    assert queue.status()["scheduled_retries"] == 0
    assert len(channel.sent) == 1
    with pytest.raises(RuntimeError):
        queue.enqueue(message())


@pytest.mark.asyncio
async def test_deliver_now_times_out():
    queue = make_queue(ScriptedChannel(delay=0.2), attempt_timeout_seconds=0.01)

    result = await queue.deliver_now(message())

    assert result.success is False
    assert "Timed out" in result.error


@pytest.mark.asyncio
async def test_status_reports_channels_and_failures():
    queue = make_queue(ScriptedChannel(name="primary", outcomes=[False]), max_attempts=1)

    queue.enqueue(message(to="x@y.com"))
    await queue.join()

    status = queue.status()
    assert status["channels"] == ["primary"]
    assert status["recent_failures"][0]["to"] == "x@y.com"
    assert status["recent_failures"][0]["status"] == "failed"


@pytest.mark.asyncio
async def test_unconfigured_chain_fails_without_retrying():
    channel = ScriptedChannel(configured=False, outcomes=[False] * 5)
    queue = make_queue(channel, max_attempts=3)

    queue.enqueue(message())
    await queue.join()

    assert len(channel.sent) == 1
    [job] = queue.dead_letters
    assert job.status == "failed"
    assert job.attempts == 1


@pytest.mark.asyncio
async def test_deliver_now_reports_every_channel_error():
    queue = NotificationQueue(
        ChannelChain([ScriptedChannel(name="a", outcomes=[False]), ScriptedChannel(name="b", outcomes=[False])]),
        attempt_timeout_seconds=1.0,
    )

    result = await queue.deliver_now(message())

    assert result.success is False
    assert result.error == "All notification channels failed"
    assert result.errors == ("a: connection refused", "b: connection refused")
    assert result.unavailable is False
