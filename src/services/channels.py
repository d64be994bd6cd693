"""
Delivery transports for each notification channel.

Every ``send`` either returns normally (delivered) or raises; the dispatcher
turns exceptions into FAILED records. Timeouts are enforced at the transport
so a dead endpoint cannot pin a worker.
"""

from __future__ import annotations

from typing import Optional

import boto3
import requests
from botocore.config import Config

from models.notification import NotificationChannel, NotificationSettings
from utils.logging_config import get_logger

logger = get_logger(__name__)

BOT_USERNAME = "IT Helpdesk Bot"
DISCORD_CONTENT_LIMIT = 2000
LINE_API_BASE = "https://api.line.me/v2/bot"


class ChannelNotConfiguredError(RuntimeError):
    """Channel is disabled or missing connection parameters."""


class ChannelDeliveryError(RuntimeError):
    """Remote endpoint refused the message."""


class EmailChannel:
    """Amazon SES transport."""

    channel = NotificationChannel.EMAIL

    def __init__(self, settings: NotificationSettings, timeout_seconds: float = 10.0,
                 client=None):
        self.settings = settings
        self.timeout_seconds = timeout_seconds
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client(
                "ses",
                region_name=self.settings.ses_region,
                config=Config(
                    connect_timeout=self.timeout_seconds,
                    read_timeout=self.timeout_seconds,
                    retries={"max_attempts": 1},
                ),
            )
        return self._client

    def send(self, recipient: str, subject: str, body: str) -> None:
        if not (self.settings.email_enabled and self.settings.from_email):
            raise ChannelNotConfiguredError("Email service not configured")
        if not recipient or "@" not in recipient:
            raise ChannelDeliveryError(f"invalid e-mail recipient: {recipient!r}")
        response = self.client.send_email(
            Source=f"{self.settings.from_name} <{self.settings.from_email}>",
            Destination={"ToAddresses": [recipient]},
            Message={
                "Subject": {"Data": subject, "Charset": "UTF-8"},
                "Body": {"Html": {"Data": body, "Charset": "UTF-8"}},
            },
        )
        logger.info("Email sent", extra={"message_id": response.get("MessageId")})

    def test_connection(self) -> bool:
        if not (self.settings.email_enabled and self.settings.from_email):
            return False
        try:
            self.client.get_send_quota()
            return True
        except Exception as exc:
            logger.warning("Email connection test failed", extra={"error": str(exc)})
            return False


class LineChannel:
    """LINE Messaging API push to the configured user or group."""

    channel = NotificationChannel.LINE

    def __init__(self, settings: NotificationSettings, timeout_seconds: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.settings = settings
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.settings.line_access_token}",
        }

    def send(self, recipient: str, subject: str, body: str) -> None:
        if not (
            self.settings.line_enabled
            and self.settings.line_access_token
            and self.settings.line_user_id
        ):
            raise ChannelNotConfiguredError("LINE Messaging API service not configured")
        response = self.session.post(
            f"{LINE_API_BASE}/message/push",
            json={
                "to": self.settings.line_user_id,
                "messages": [{"type": "text", "text": body}],
            },
            headers=self._headers(),
            timeout=self.timeout_seconds,
        )
        if not response.ok:
            raise ChannelDeliveryError(
                f"LINE Messaging API error: {response.status_code} {response.text[:200]}"
            )

    def test_connection(self) -> bool:
        if not (self.settings.line_enabled and self.settings.line_access_token):
            return False
        try:
            response = self.session.get(
                f"{LINE_API_BASE}/info", headers=self._headers(), timeout=self.timeout_seconds
            )
            return response.ok
        except requests.RequestException as exc:
            logger.warning("LINE connection test failed", extra={"error": str(exc)})
            return False


class DiscordChannel:
    """Discord incoming webhook."""

    channel = NotificationChannel.DISCORD

    def __init__(self, settings: NotificationSettings, timeout_seconds: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.settings = settings
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()

    def _post(self, content: str) -> requests.Response:
        return self.session.post(
            self.settings.discord_webhook,
            json={"content": content[:DISCORD_CONTENT_LIMIT], "username": BOT_USERNAME},
            timeout=self.timeout_seconds,
        )

    def send(self, recipient: str, subject: str, body: str) -> None:
        if not (self.settings.discord_enabled and self.settings.discord_webhook):
            raise ChannelNotConfiguredError("Discord webhook service not configured")
        response = self._post(body)
        if not response.ok:
            raise ChannelDeliveryError(
                f"Discord webhook error: {response.status_code} {response.reason}"
            )

    def test_connection(self) -> bool:
        if not (self.settings.discord_enabled and self.settings.discord_webhook):
            return False
        try:
            return self._post("Test connection from IT Helpdesk").ok
        except requests.RequestException as exc:
            logger.warning("Discord connection test failed", extra={"error": str(exc)})
            return False


def build_channel(channel: NotificationChannel, settings: NotificationSettings,
                  timeout_seconds: float):
    if channel == NotificationChannel.EMAIL:
        return EmailChannel(settings, timeout_seconds)
    if channel == NotificationChannel.LINE:
        return LineChannel(settings, timeout_seconds)
    return DiscordChannel(settings, timeout_seconds)
