"""Notification templates and per-attempt delivery records."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import insert, select, update
from sqlalchemy.engine import Engine

from models.notification import (
    NotificationChannel,
    NotificationEvent,
    NotificationRecord,
    NotificationStatus,
    NotificationTemplate,
)
from repositories.schema import notification_templates, notifications
from utils.clock import as_utc


class NotificationRepository:
    def __init__(self, engine: Engine):
        self.engine = engine

    def active_template(
        self, name: NotificationEvent, channel: NotificationChannel
    ) -> Optional[NotificationTemplate]:
        stmt = select(notification_templates).where(
            notification_templates.c.name == name.value,
            notification_templates.c.channel == channel.value,
            notification_templates.c.is_active.is_(True),
        )
        with self.engine.connect() as conn:
            row = conn.execute(stmt).first()
        if not row:
            return None
        data = dict(row._mapping)
        data["subject"] = data.get("subject") or ""
        return NotificationTemplate.model_validate(data)

    def save_template(self, template: NotificationTemplate) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                insert(notification_templates).values(
                    name=template.name.value,
                    channel=template.channel.value,
                    subject=template.subject,
                    body=template.body,
                    is_active=template.is_active,
                )
            )

    def add_record(self, record: NotificationRecord) -> None:
        row = record.model_dump()
        for name in ("template_name", "channel", "status"):
            row[name] = row[name].value
        with self.engine.begin() as conn:
            conn.execute(insert(notifications).values(**row))

    def finalize(
        self,
        record_id: str,
        status: NotificationStatus,
        error: Optional[str] = None,
        sent_at: Optional[datetime] = None,
    ) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                update(notifications)
                .where(notifications.c.id == record_id)
                .values(status=status.value, error=error, sent_at=sent_at)
            )

    def for_ticket(self, ticket_id: str) -> List[NotificationRecord]:
        stmt = (
            select(notifications)
            .where(notifications.c.ticket_id == ticket_id)
            .order_by(notifications.c.created_at.asc())
        )
        with self.engine.connect() as conn:
            rows = [dict(r._mapping) for r in conn.execute(stmt)]
        for row in rows:
            row["created_at"] = as_utc(row["created_at"])
            row["sent_at"] = as_utc(row["sent_at"])
            row["subject"] = row["subject"] or ""
            row["body"] = row["body"] or ""
        return [NotificationRecord.model_validate(row) for row in rows]
