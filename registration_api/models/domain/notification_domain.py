"""
Notification domain models: the message to deliver, the queued job that
tracks delivery attempts, and the per-channel delivery result.
"""

import re
import uuid
from html import unescape
from dataclasses import dataclass, field
from datetime import UTC, datetime
from email.utils import make_msgid
from typing import Literal

JobStatus = Literal["pending", "processing", "completed", "failed"]
JobPriority = Literal["normal", "high"]

_TAG_RE = re.compile(r"<[^>]*>")
_STYLE_RE = re.compile(r"<(style|head)[^>]*>.*?</\1>", re.IGNORECASE | re.DOTALL)
_WS_RE = re.compile(r"\s+")


def html_to_text(html: str) -> str:
    """Plain-text alternative: drop head/style blocks and tags, decode entities, collapse whitespace."""
    text = _STYLE_RE.sub(" ", html)
    text = _TAG_RE.sub(" ", text)
    return _WS_RE.sub(" ", unescape(text)).strip()


@dataclass(frozen=True)
class NotificationMessage:
    to: str
    subject: str
    html: str
    text: str | None = None
    kind: str = "email"
    # Fixed per message so a retried send carries the same Message-ID
    message_id: str = field(default_factory=lambda: make_msgid(domain="msmeclinic"))

    @property
    def plain_text(self) -> str:
        return self.text or html_to_text(self.html)


@dataclass
class NotificationJob:
    message: NotificationMessage
    priority: JobPriority = "normal"
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    attempts: int = 0
    status: JobStatus = "pending"
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    next_attempt_at: datetime | None = None
    last_error: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "to": self.message.to,
            "subject": self.message.subject,
            "kind": self.message.kind,
            "priority": self.priority,
            "attempts": self.attempts,
            "status": self.status,
            "created_at": self.created_at.isoformat(),
            "last_error": self.last_error,
        }


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of one channel (or a whole chain) attempting delivery."""

    success: bool
    channel: str
    message_id: str | None = None
    error: str | None = None
    # Channel had no credentials; no network call was made
    unavailable: bool = False
    errors: tuple[str, ...] = ()

    @classmethod
    def ok(cls, channel: str, message_id: str | None = None) -> "DeliveryResult":
        return cls(success=True, channel=channel, message_id=message_id)

    @classmethod
    def failed(cls, channel: str, error: str, unavailable: bool = False) -> "DeliveryResult":
        return cls(success=False, channel=channel, error=error, unavailable=unavailable)
