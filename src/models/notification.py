"""Notification settings, templates, variables and delivery records."""

from __future__ import annotations

import os
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class NotificationChannel(str, Enum):
    EMAIL = "EMAIL"
    LINE = "LINE"
    DISCORD = "DISCORD"


class NotificationStatus(str, Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


class NotificationEvent(str, Enum):
    TICKET_CREATED = "ticket_created"
    TICKET_STATUS_CHANGED = "ticket_status_changed"
    COMMENT_ADDED = "comment_added"


class NotificationSettings(BaseModel):
    """Per-channel switches and connection parameters, edited by admins."""

    email_enabled: bool = False
    ses_region: Optional[str] = None
    from_email: Optional[str] = None
    from_name: str = "IT Helpdesk"

    line_enabled: bool = False
    line_access_token: Optional[str] = None
    line_user_id: Optional[str] = None

    discord_enabled: bool = False
    discord_webhook: Optional[str] = None

    default_recipients: list[str] = []

    def enabled_channels(self) -> list[NotificationChannel]:
        channels = []
        if self.email_enabled:
            channels.append(NotificationChannel.EMAIL)
        if self.line_enabled:
            channels.append(NotificationChannel.LINE)
        if self.discord_enabled:
            channels.append(NotificationChannel.DISCORD)
        return channels

    @classmethod
    def from_environment(cls) -> "NotificationSettings":
        def flag(name: str) -> bool:
            return os.environ.get(name, "false").lower() == "true"

        recipients = os.environ.get("NOTIFY_DEFAULT_RECIPIENTS", "")
        return cls(
            email_enabled=flag("NOTIFY_EMAIL_ENABLED"),
            ses_region=os.environ.get("SES_REGION") or os.environ.get("AWS_REGION"),
            from_email=os.environ.get("NOTIFY_FROM_EMAIL"),
            from_name=os.environ.get("NOTIFY_FROM_NAME", "IT Helpdesk"),
            line_enabled=flag("NOTIFY_LINE_ENABLED"),
            line_access_token=os.environ.get("LINE_ACCESS_TOKEN"),
            line_user_id=os.environ.get("LINE_USER_ID"),
            discord_enabled=flag("NOTIFY_DISCORD_ENABLED"),
            discord_webhook=os.environ.get("DISCORD_WEBHOOK_URL"),
            default_recipients=[r.strip() for r in recipients.split(",") if r.strip()],
        )


class NotificationTemplate(BaseModel):
    name: NotificationEvent
    channel: NotificationChannel
    subject: str = ""
    body: str
    is_active: bool = True


class TemplateVariables(BaseModel):
    """
    The closed set of values a template may reference.

    Placeholders accept the field name (``{{ticket_code}}``) or its camelCase
    alias (``{{ticketCode}}``) used by templates edited in the admin screens.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    ticket_code: str = ""
    subject: str = ""
    description: str = ""
    status: str = ""
    priority: str = ""
    category: str = ""
    assignee_name: str = ""
    requester_name: str = ""
    comment: str = ""
    url: str = ""
    date: str = ""
    time: str = ""


class NotificationRecord(BaseModel):
    """One delivery attempt for (event, channel, recipient)."""

    id: str
    ticket_id: Optional[str] = None
    template_name: NotificationEvent
    channel: NotificationChannel
    recipient: str
    subject: str = ""
    body: str = ""
    status: NotificationStatus = NotificationStatus.PENDING
    error: Optional[str] = None
    sent_at: Optional[datetime] = None
    created_at: datetime


class NotificationJob(BaseModel):
    """A notify call handed from a request Lambda to the dispatcher Lambda."""

    event: NotificationEvent
    variables: TemplateVariables
    recipients: list[str] = []
    ticket_id: Optional[str] = None
