"""
Notification channels.

Every channel exposes `name`, `configured` and `async send(message) -> DeliveryResult`.
A channel never raises for delivery problems; failures come back as a
DeliveryResult so ChannelChain can move on to the next channel.

Fallback order built by build_channels():
    1. SMTP accounts (primary, backup 1, backup 2)
    2. Transactional email HTTP API
    3. LogChannel, only when nothing above is configured
"""

import asyncio
import json
import smtplib
from datetime import UTC, datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from pathlib import Path
from typing import Protocol

import httpx

from registration_api.config import Settings
from registration_api.infrastructure.observability.logging import get_logger
from registration_api.models.domain.notification_domain import DeliveryResult, NotificationMessage

logger = get_logger(__name__)


class NotificationChannel(Protocol):
    name: str

    @property
    def configured(self) -> bool: ...

    async def send(self, message: NotificationMessage) -> DeliveryResult: ...


class SmtpChannel:
    """
    One SMTP account. smtplib is blocking, so the exchange runs in a worker
    thread; `timeout` bounds connect, greeting and every socket operation.

    The thread can't be cancelled: if the queue abandons an attempt, a slow
    server may still accept the message after the retry has gone out.
    Delivery is therefore at-least-once; both copies share the message's
    Message-ID so mail clients can collapse them.
    """

    def __init__(
        self,
        name: str,
        host: str,
        port: int,
        user: str | None,
        password: str | None,
        from_name: str,
        from_email: str | None = None,
        timeout: float = 10.0,
    ):
        self.name = name
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.from_name = from_name
        self.from_email = from_email or user
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.user and self.password)

    def _build_mime(self, message: NotificationMessage) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["From"] = formataddr((self.from_name, self.from_email))
        msg["To"] = message.to
        msg["Subject"] = message.subject
        msg["Message-ID"] = message.message_id
        msg.attach(MIMEText(message.plain_text, "plain", "utf-8"))
        msg.attach(MIMEText(message.html, "html", "utf-8"))
        return msg

    def _send_sync(self, msg: MIMEMultipart) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            smtp.ehlo()
            if self.port == 587:
                smtp.starttls()
                smtp.ehlo()
            smtp.login(self.user, self.password)
            smtp.send_message(msg)

    async def send(self, message: NotificationMessage) -> DeliveryResult:
        if not self.configured:
            return DeliveryResult.failed(self.name, "SMTP credentials not configured", unavailable=True)

        msg = self._build_mime(message)
        logger.info("Trying SMTP account", channel=self.name, account=self.user, to=message.to)

        try:
            await asyncio.to_thread(self._send_sync, msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.warning(
                "SMTP delivery failed",
                channel=self.name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return DeliveryResult.failed(self.name, f"{type(e).__name__}: {e}")

        logger.info("Email sent", channel=self.name, to=message.to, message_id=msg["Message-ID"])
        return DeliveryResult.ok(self.name, msg["Message-ID"])


class HttpEmailChannel:
    """Transactional email provider reached over HTTPS with a bearer API key."""

    def __init__(
        self,
        url: str | None,
        api_key: str | None,
        from_name: str,
        from_email: str | None,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
        name: str = "Email API",
    ):
        self.name = name
        self.url = url
        self.api_key = api_key
        self.from_name = from_name
        self.from_email = from_email
        self.timeout = timeout
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.url and self.api_key and self.from_email)

    def _payload(self, message: NotificationMessage) -> dict:
        return {
            "from": {"name": self.from_name, "email": self.from_email},
            "to": [{"email": message.to}],
            "subject": message.subject,
            "html": message.html,
            "text": message.plain_text,
        }

    async def _post(self, client: httpx.AsyncClient, message: NotificationMessage) -> httpx.Response:
        return await client.post(
            self.url,
            json=self._payload(message),
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout=self.timeout,
        )

    async def send(self, message: NotificationMessage) -> DeliveryResult:
        if not self.configured:
            return DeliveryResult.failed(self.name, "Email API not configured", unavailable=True)

        try:
            if self._client is not None:
                response = await self._post(self._client, message)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await self._post(client, message)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning(
                "Email API rejected message",
                channel=self.name,
                status_code=e.response.status_code,
                body=e.response.text[:200],
            )
            return DeliveryResult.failed(self.name, f"HTTP {e.response.status_code}")
        except httpx.HTTPError as e:
            logger.warning("Email API request failed", channel=self.name, error=str(e))
            return DeliveryResult.failed(self.name, f"{type(e).__name__}: {e}")

        try:
            message_id = response.json().get("id")
        except ValueError:
            message_id = None

        logger.info("Email sent", channel=self.name, to=message.to, message_id=message_id)
        return DeliveryResult.ok(self.name, message_id)


class LogChannel:
    """Delivery disabled: record the message in the logs (and optionally a JSONL file)."""

    name = "log"

    def __init__(self, log_path: str | None = None):
        self.log_path = Path(log_path) if log_path else None

    @property
    def configured(self) -> bool:
        return True

    def _append(self, line: str) -> None:
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        with self.log_path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")

    async def send(self, message: NotificationMessage) -> DeliveryResult:
        logger.info(
            "Notification logged (delivery disabled)",
            to=message.to,
            subject=message.subject,
            kind=message.kind,
        )

        if self.log_path:
            entry = {
                "timestamp": datetime.now(UTC).isoformat(),
                "to": message.to,
                "subject": message.subject,
                "kind": message.kind,
                "text": message.plain_text,
            }
            try:
                await asyncio.to_thread(self._append, json.dumps(entry))
            except OSError as e:
                logger.error("Failed to write email log", path=str(self.log_path), error=str(e))
                return DeliveryResult.failed(self.name, f"{type(e).__name__}: {e}")

        return DeliveryResult.ok(self.name)


class ChannelChain:
    """Ordered fallback across channels; first success wins."""

    def __init__(self, channels: list[NotificationChannel]):
        self.channels = list(channels)

    @property
    def names(self) -> list[str]:
        return [channel.name for channel in self.channels]

    async def send(self, message: NotificationMessage) -> DeliveryResult:
        if not self.channels:
            return DeliveryResult.failed("chain", "No notification channels configured", unavailable=True)

        errors: list[str] = []
        for index, channel in enumerate(self.channels):
            result = await channel.send(message)
            if result.success:
                if index:
                    logger.info("Delivered via fallback channel", channel=channel.name, skipped=index)
                return result

            errors.append(f"{channel.name}: {result.error}")
            if index < len(self.channels) - 1:
                logger.info("Trying next notification channel", failed=channel.name)

        logger.error("All notification channels failed", to=message.to, errors=errors)
        return DeliveryResult(
            success=False,
            channel="chain",
            error="All notification channels failed",
            unavailable=all(not channel.configured for channel in self.channels),
            errors=tuple(errors),
        )


def build_channels(settings: Settings) -> list[NotificationChannel]:
    """Channels in fallback order; log-only when no delivery channel is configured."""
    timeouts = settings.get_timeout_config()
    sender = settings.sender_name()

    channels: list[NotificationChannel] = [
        SmtpChannel(
            name=account["name"],
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            user=account["user"],
            password=account["password"],
            from_name=sender,
            from_email=settings.FROM_EMAIL,
            timeout=timeouts["smtp"],
        )
        for account in settings.smtp_accounts()
    ]

    api_channel = HttpEmailChannel(
        url=settings.EMAIL_API_URL,
        api_key=settings.EMAIL_API_KEY,
        from_name=sender,
        from_email=settings.FROM_EMAIL,
        timeout=timeouts["email_api"],
    )
    if api_channel.configured:
        channels.append(api_channel)

    if not channels:
        logger.warning("No email channels configured - notifications will be logged only")
        channels.append(LogChannel(settings.EMAIL_LOG_PATH))

    logger.info("Notification channels ready", channels=[c.name for c in channels])
    return channels
