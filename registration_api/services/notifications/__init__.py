"""
Notification delivery: channels, the fallback chain and the in-process queue.
"""

from registration_api.services.notifications.channels import (
    ChannelChain,
    HttpEmailChannel,
    LogChannel,
    SmtpChannel,
    build_channels,
)
from registration_api.services.notifications.email_log import EmailLogReader
from registration_api.services.notifications.queue import NotificationQueue

__all__ = [
    "ChannelChain",
    "EmailLogReader",
    "HttpEmailChannel",
    "LogChannel",
    "SmtpChannel",
    "build_channels",
    "NotificationQueue",
]
