"""
Best-effort notification dispatch.

``notify`` never waits on delivery. Deployed, it hands the call to the
dispatcher Lambda (``handlers.notification_worker``) with an asynchronous
invoke, because a request container is frozen as soon as its handler returns.
Without a handoff the calls go straight to the in-process worker pool, which
is how local runs and tests work.

Each delivery job renders the channel's template, writes a PENDING record,
calls the transport and finalizes the record. Nothing raised inside a job
reaches the caller.
"""

from __future__ import annotations

import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from typing import Any, Callable, Iterable, List, Optional
from zoneinfo import ZoneInfo

import boto3
import requests

from models.notification import (
    NotificationChannel,
    NotificationEvent,
    NotificationJob,
    NotificationRecord,
    NotificationSettings,
    NotificationStatus,
    NotificationTemplate,
    TemplateVariables,
)
from models.ticket import Ticket
from repositories.notification_repo import NotificationRepository
from services.channels import build_channel
from services.templates import DEFAULT_TEMPLATES, render_template
from utils.clock import Clock, utc_now
from utils.logging_config import get_logger, with_context

logger = get_logger(__name__)

SettingsProvider = Callable[[], NotificationSettings]


class LambdaHandoff:
    """Queues notify calls on the dispatcher Lambda (``InvocationType="Event"``)."""

    def __init__(self, function_name: str, client: Any = None):
        self.function_name = function_name
        self.client = client if client is not None else boto3.client("lambda")

    def send(self, job: NotificationJob) -> None:
        self.client.invoke(
            FunctionName=self.function_name,
            InvocationType="Event",
            Payload=job.model_dump_json().encode("utf-8"),
        )


class NotificationDispatcher:
    def __init__(
        self,
        repository: NotificationRepository,
        settings_provider: SettingsProvider = NotificationSettings.from_environment,
        max_workers: int = 4,
        timeout_seconds: float = 10.0,
        clock: Clock = utc_now,
        channel_factory=build_channel,
        public_base_url: str = "http://localhost:3000",
        display_timezone: str = "Asia/Bangkok",
        executor: Optional[ThreadPoolExecutor] = None,
        handoff: Optional[LambdaHandoff] = None,
    ):
        self.repository = repository
        self.settings_provider = settings_provider
        self.timeout_seconds = timeout_seconds
        self.clock = clock
        self.channel_factory = channel_factory
        self.public_base_url = public_base_url.rstrip("/")
        self.display_timezone = ZoneInfo(display_timezone)
        self.executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="notify"
        )
        self.handoff = handoff

    def tracking_url(self, ticket_code: str) -> str:
        return f"{self.public_base_url}/track/{ticket_code}"

    def build_variables(
        self,
        ticket: Ticket,
        category: Optional[str] = None,
        priority: Optional[str] = None,
        assignee_name: Optional[str] = None,
        comment: Optional[str] = None,
    ) -> TemplateVariables:
        local_now = self.clock().astimezone(self.display_timezone)
        return TemplateVariables(
            ticket_code=ticket.ticket_code,
            subject=ticket.subject,
            description=ticket.description,
            status=ticket.status.value,
            priority=priority or "",
            category=category or "",
            assignee_name=assignee_name or "",
            requester_name=ticket.full_name,
            comment=comment or "",
            url=self.tracking_url(ticket.ticket_code),
            date=local_now.strftime("%d/%m/%Y"),
            time=local_now.strftime("%H:%M:%S"),
        )

    def notify(
        self,
        event: NotificationEvent,
        variables: TemplateVariables,
        recipients: Optional[Iterable[str]] = None,
        ticket_id: Optional[str] = None,
    ) -> List[Future]:
        """
        Hand the call off, or submit its delivery jobs to the pool; never blocks on delivery.

        Returns the pool futures, or an empty list when the call was handed off.
        """
        if self.handoff is None:
            return self._submit(event, variables, recipients, ticket_id)

        job = NotificationJob(
            event=event,
            variables=variables,
            recipients=[r for r in (recipients or []) if r],
            ticket_id=ticket_id,
        )
        try:
            self.handoff.send(job)
        except Exception:
            logger.exception(
                "Notification handoff failed",
                extra={"event": event.value, "ticket_id": ticket_id},
            )
            return []
        logger.info(
            "Notifications handed off",
            extra={
                "event": event.value,
                "ticket_id": ticket_id,
                "function_name": self.handoff.function_name,
            },
        )
        return []

    def run_job(self, job: NotificationJob) -> List[NotificationRecord]:
        """Deliver a handed-off call and wait for every attempt to finish."""
        futures = self._submit(job.event, job.variables, job.recipients, job.ticket_id)
        return [record for record in (f.result() for f in futures) if record is not None]

    def _submit(
        self,
        event: NotificationEvent,
        variables: TemplateVariables,
        recipients: Optional[Iterable[str]],
        ticket_id: Optional[str],
    ) -> List[Future]:
        """One job per (recipient, enabled channel); no recipients means the default list."""
        try:
            settings = self.settings_provider()
        except Exception:
            logger.exception("Notification settings unavailable", extra={"event": event.value})
            return []

        channels = settings.enabled_channels()
        targets = list(dict.fromkeys(r for r in (recipients or []) if r))
        if not targets:
            targets = list(settings.default_recipients)
        if not channels or not targets:
            logger.info(
                "No notification targets",
                extra={"event": event.value, "channels": len(channels), "recipients": len(targets)},
            )
            return []

        futures = []
        for recipient in targets:
            for channel in channels:
                futures.append(
                    self.executor.submit(
                        self.deliver, event, channel, recipient, variables, ticket_id, settings
                    )
                )
        logger.info(
            "Notifications queued",
            extra={"event": event.value, "ticket_id": ticket_id, "jobs": len(futures)},
        )
        return futures

    def deliver(
        self,
        event: NotificationEvent,
        channel: NotificationChannel,
        recipient: str,
        variables: TemplateVariables,
        ticket_id: Optional[str],
        settings: NotificationSettings,
    ) -> Optional[NotificationRecord]:
        """Run one attempt to completion and return its final record."""
        try:
            return self._deliver(event, channel, recipient, variables, ticket_id, settings)
        except Exception:
            logger.exception(
                "Notification job crashed",
                extra={"event": event.value, "channel": channel.value, "ticket_id": ticket_id},
            )
            return None

    def _deliver(self, event, channel, recipient, variables, ticket_id, settings):
        template = self._template(event, channel)
        subject, body = render_template(template, variables) if template else ("", "")

        record = NotificationRecord(
            id=str(uuid.uuid4()),
            ticket_id=ticket_id,
            template_name=event,
            channel=channel,
            recipient=recipient,
            subject=subject,
            body=body,
            created_at=self.clock(),
        )
        self.repository.add_record(record)
        log = with_context(
            logger,
            event=event.value,
            channel=channel.value,
            ticket_id=ticket_id,
            notification_id=record.id,
        )

        if template is None:
            log.warning("Notification template not found")
            return self._finish(record, NotificationStatus.FAILED, "template not found")

        try:
            transport = self.channel_factory(channel, settings, self.timeout_seconds)
            transport.send(recipient, subject, body)
        except requests.Timeout:
            log.warning("Notification timed out", extra={"timeout_seconds": self.timeout_seconds})
            return self._finish(
                record, NotificationStatus.FAILED, f"timed out after {self.timeout_seconds}s"
            )
        except Exception as exc:
            log.warning("Notification delivery failed", extra={"error": str(exc)})
            return self._finish(record, NotificationStatus.FAILED, str(exc) or type(exc).__name__)

        log.info("Notification sent")
        return self._finish(record, NotificationStatus.SENT, sent_at=self.clock())

    def _template(
        self, event: NotificationEvent, channel: NotificationChannel
    ) -> Optional[NotificationTemplate]:
        return self.repository.active_template(event, channel) or DEFAULT_TEMPLATES.get(
            (event, channel)
        )

    def _finish(
        self,
        record: NotificationRecord,
        status: NotificationStatus,
        error: Optional[str] = None,
        sent_at: Optional[datetime] = None,
    ) -> NotificationRecord:
        self.repository.finalize(record.id, status, error=error, sent_at=sent_at)
        return record.model_copy(update={"status": status, "error": error, "sent_at": sent_at})

    def test_channel(self, channel: NotificationChannel) -> bool:
        settings = self.settings_provider()
        transport = self.channel_factory(channel, settings, self.timeout_seconds)
        ok = transport.test_connection()
        logger.info("Channel connection test", extra={"channel": channel.value, "ok": ok})
        return ok

    def shutdown(self, wait: bool = True) -> None:
        self.executor.shutdown(wait=wait)
