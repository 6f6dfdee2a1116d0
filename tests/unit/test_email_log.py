import json

import pytest

from registration_api.errors import ServerError
from registration_api.models.domain.notification_domain import NotificationMessage
from registration_api.services.notifications.channels import LogChannel
from registration_api.services.notifications.email_log import EmailLogReader


@pytest.mark.asyncio
async def test_reads_what_the_log_channel_wrote(tmp_path):
    log_path = str(tmp_path / "logs" / "emails.jsonl")
    channel = LogChannel(log_path)
    await channel.send(
        NotificationMessage(to="a@b.com", subject="Hi", html="<p>Hi</p>", kind="registration_confirmation")
    )
    await channel.send(
        NotificationMessage(to="ops@x.com", subject="New", html="<p>New</p>", kind="new_registration_alert")
    )

    reader = EmailLogReader(log_path)

    assert [entry["to"] for entry in await reader.entries()] == ["a@b.com", "ops@x.com"]
    [alert] = await reader.entries("new_registration_alert")
    assert alert["subject"] == "New"
    assert await reader.entries("status_update") == []


@pytest.mark.asyncio
async def test_malformed_lines_are_skipped(tmp_path):
    log_path = tmp_path / "emails.jsonl"
    log_path.write_text(
        "\n".join([json.dumps({"to": "a@b.com", "kind": "contact_alert"}), "{not json", "[1, 2]", ""]),
        encoding="utf-8",
    )

    entries = await EmailLogReader(str(log_path)).entries()

    assert entries == [{"to": "a@b.com", "kind": "contact_alert"}]


@pytest.mark.asyncio
async def test_missing_or_unset_log_reads_as_empty(tmp_path):
    assert await EmailLogReader(str(tmp_path / "absent.jsonl")).entries() == []
    assert await EmailLogReader(None).entries() == []


@pytest.mark.asyncio
async def test_unreadable_log_is_a_server_error(tmp_path):
    with pytest.raises(ServerError):
        await EmailLogReader(str(tmp_path)).entries()
