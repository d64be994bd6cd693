"""
Notification dispatcher and channel transport tests.

Transports are replaced by fakes or mocked sessions/clients; no network access.

Run with: pytest tests/unit/test_notifications.py -v
"""

from concurrent.futures import ThreadPoolExecutor, wait
from unittest.mock import MagicMock

import pytest
import requests

from conftest import START, FakeChannel
from models.notification import (
    NotificationChannel,
    NotificationEvent,
    NotificationJob,
    NotificationSettings,
    NotificationStatus,
    NotificationTemplate,
    TemplateVariables,
)
from services.channels import (
    ChannelDeliveryError,
    ChannelNotConfiguredError,
    DiscordChannel,
    EmailChannel,
    LineChannel,
)
from services.notification_service import LambdaHandoff, NotificationDispatcher

VARIABLES = TemplateVariables(ticket_code="IT-AB12CD", subject="VPN down", status="NEW")


def _all(notification_repo):
    from sqlalchemy import select

    from repositories.schema import notifications

    with notification_repo.engine.connect() as conn:
        return [dict(r._mapping) for r in conn.execute(select(notifications))]


class TestDispatcher:
    def test_one_record_per_recipient_and_channel(self, dispatcher, notification_repo, channels):
        futures = dispatcher.notify(
            NotificationEvent.TICKET_CREATED, VARIABLES, ["a@example.org", "b@example.org"]
        )
        assert len(futures) == 4
        rows = _all(notification_repo)
        assert len(rows) == 4
        assert {(r["channel"], r["recipient"]) for r in rows} == {
            ("EMAIL", "a@example.org"),
            ("EMAIL", "b@example.org"),
            ("DISCORD", "a@example.org"),
            ("DISCORD", "b@example.org"),
        }
        assert all(r["status"] == "SENT" and r["sent_at"] is not None for r in rows)
        assert len(channels[NotificationChannel.EMAIL].sent) == 2

    def test_failing_channel_does_not_affect_others(self, dispatcher, notification_repo, channels):
        channels[NotificationChannel.DISCORD].error = ConnectionError("webhook unreachable")

        dispatcher.notify(NotificationEvent.TICKET_CREATED, VARIABLES, ["a@example.org"])

        by_channel = {r["channel"]: r for r in _all(notification_repo)}
        assert by_channel["EMAIL"]["status"] == "SENT"
        assert by_channel["DISCORD"]["status"] == "FAILED"
        assert "webhook unreachable" in by_channel["DISCORD"]["error"]
        assert by_channel["DISCORD"]["sent_at"] is None

    def test_timeout_recorded_as_failed(self, dispatcher, notification_repo, channels):
        channels[NotificationChannel.EMAIL].error = requests.Timeout("read timed out")
        channels[NotificationChannel.DISCORD].error = requests.Timeout("read timed out")

        dispatcher.notify(NotificationEvent.TICKET_CREATED, VARIABLES, ["a@example.org"])

        rows = _all(notification_repo)
        assert {r["status"] for r in rows} == {"FAILED"}
        assert all("timed out after 2.0s" in r["error"] for r in rows)

    def test_rendered_content_is_recorded(self, dispatcher, notification_repo, channels):
        dispatcher.notify(NotificationEvent.TICKET_CREATED, VARIABLES, ["a@example.org"])

        email = next(r for r in _all(notification_repo) if r["channel"] == "EMAIL")
        assert email["subject"] == "New ticket #IT-AB12CD - VPN down"
        recipient, subject, body = channels[NotificationChannel.EMAIL].sent[0]
        assert (recipient, subject) == ("a@example.org", email["subject"])
        assert "IT-AB12CD" in body

    def test_stored_template_overrides_default(self, dispatcher, notification_repo, channels):
        notification_repo.save_template(
            NotificationTemplate(
                name=NotificationEvent.TICKET_CREATED,
                channel=NotificationChannel.DISCORD,
                body="Ticket {{ticketCode}} opened",
            )
        )
        dispatcher.notify(NotificationEvent.TICKET_CREATED, VARIABLES, ["a@example.org"])
        assert channels[NotificationChannel.DISCORD].sent[0][2] == "Ticket IT-AB12CD opened"

    def test_missing_template_is_failed_attempt(self, dispatcher, notification_repo, monkeypatch):
        monkeypatch.setattr("services.notification_service.DEFAULT_TEMPLATES", {})

        dispatcher.notify(NotificationEvent.COMMENT_ADDED, VARIABLES, ["a@example.org"])

        rows = _all(notification_repo)
        assert {r["status"] for r in rows} == {"FAILED"}
        assert {r["error"] for r in rows} == {"template not found"}

    def test_default_recipients_when_none_given(self, dispatcher, notification_repo):
        dispatcher.notify(NotificationEvent.TICKET_CREATED, VARIABLES, [])
        assert {r["recipient"] for r in _all(notification_repo)} == {"it-lead@example.org"}

    def test_no_enabled_channels(self, notification_repo, clock):
        dispatcher = NotificationDispatcher(
            notification_repo, settings_provider=NotificationSettings, clock=clock
        )
        try:
            assert dispatcher.notify(NotificationEvent.TICKET_CREATED, VARIABLES, ["a@x.org"]) == []
        finally:
            dispatcher.shutdown()

    def test_settings_failure_is_contained(self, notification_repo, clock):
        def broken():
            raise RuntimeError("settings store down")

        dispatcher = NotificationDispatcher(notification_repo, settings_provider=broken, clock=clock)
        try:
            assert dispatcher.notify(NotificationEvent.TICKET_CREATED, VARIABLES, ["a@x.org"]) == []
        finally:
            dispatcher.shutdown()

    def test_runs_on_worker_threads(self, notification_repo, notification_settings, clock):
        channel = FakeChannel()
        dispatcher = NotificationDispatcher(
            notification_repo,
            settings_provider=lambda: notification_settings,
            clock=clock,
            channel_factory=lambda c, s, t: channel,
            executor=ThreadPoolExecutor(max_workers=3),
        )
        try:
            futures = dispatcher.notify(
                NotificationEvent.TICKET_STATUS_CHANGED, VARIABLES, ["a@x.org", "b@x.org", "c@x.org"]
            )
            done, not_done = wait(futures, timeout=10)
            assert not not_done
            statuses = [f.result().status for f in done]
            assert statuses == [NotificationStatus.SENT] * 6
        finally:
            dispatcher.shutdown()

    def test_variables_use_display_timezone(self, dispatcher, ticket_service):
        from conftest import submission_payload
        from models.ticket import TicketSubmission

        ticket = ticket_service.submit(TicketSubmission.model_validate(submission_payload()))
        variables = dispatcher.build_variables(ticket, category="Network", priority="Normal")
        # 09:00 UTC is 16:00 in Bangkok.
        assert variables.time == "16:00:00"
        assert variables.date == START.strftime("%d/%m/%Y")
        assert variables.url == f"https://helpdesk.example.org/track/{ticket.ticket_code}"
        assert variables.requester_name == "Suda Wongsa"

    def test_test_channel(self, dispatcher, channels):
        channels[NotificationChannel.LINE].connected = False
        assert dispatcher.test_channel(NotificationChannel.EMAIL) is True
        assert dispatcher.test_channel(NotificationChannel.LINE) is False


class TestLambdaHandoff:
    @pytest.fixture
    def lambda_client(self):
        return MagicMock()

    @pytest.fixture
    def handed_off(self, dispatcher, lambda_client):
        dispatcher.handoff = LambdaHandoff("helpdesk-notify", client=lambda_client)
        return dispatcher

    def test_notify_invokes_dispatcher_asynchronously(self, handed_off, lambda_client,
                                                      notification_repo, channels):
        futures = handed_off.notify(
            NotificationEvent.TICKET_CREATED, VARIABLES, ["a@example.org", ""], ticket_id="t-1"
        )

        assert futures == []
        kwargs = lambda_client.invoke.call_args.kwargs
        assert kwargs["FunctionName"] == "helpdesk-notify"
        assert kwargs["InvocationType"] == "Event"
        job = NotificationJob.model_validate_json(kwargs["Payload"])
        assert job.event is NotificationEvent.TICKET_CREATED
        assert job.recipients == ["a@example.org"]
        assert job.ticket_id == "t-1"
        assert job.variables.ticket_code == "IT-AB12CD"
        # Nothing is delivered or recorded by the request itself.
        assert _all(notification_repo) == []
        assert channels[NotificationChannel.EMAIL].sent == []

    def test_invoke_failure_is_contained(self, handed_off, lambda_client):
        lambda_client.invoke.side_effect = RuntimeError("throttled")
        assert handed_off.notify(NotificationEvent.TICKET_CREATED, VARIABLES, ["a@x.org"]) == []

    def test_run_job_delivers_and_waits(self, dispatcher, notification_repo):
        job = NotificationJob(
            event=NotificationEvent.COMMENT_ADDED,
            variables=VARIABLES,
            recipients=["a@example.org"],
            ticket_id=None,
        )

        records = dispatcher.run_job(job)

        assert {(r.channel, r.status) for r in records} == {
            (NotificationChannel.EMAIL, NotificationStatus.SENT),
            (NotificationChannel.DISCORD, NotificationStatus.SENT),
        }
        assert {r["status"] for r in _all(notification_repo)} == {"SENT"}


class TestChannels:
    def test_discord_posts_truncated_content_with_timeout(self):
        session = MagicMock()
        session.post.return_value = MagicMock(ok=True)
        settings = NotificationSettings(discord_enabled=True, discord_webhook="https://d.example/w")

        DiscordChannel(settings, timeout_seconds=3, session=session).send("x", "s", "a" * 2500)

        args, kwargs = session.post.call_args
        assert args[0] == "https://d.example/w"
        assert len(kwargs["json"]["content"]) == 2000
        assert kwargs["json"]["username"] == "IT Helpdesk Bot"
        assert kwargs["timeout"] == 3

    def test_discord_error_status_raises(self):
        session = MagicMock()
        session.post.return_value = MagicMock(ok=False, status_code=404, reason="Not Found")
        settings = NotificationSettings(discord_enabled=True, discord_webhook="https://d.example/w")

        with pytest.raises(ChannelDeliveryError):
            DiscordChannel(settings, session=session).send("x", "s", "body")

    def test_line_push_message(self):
        session = MagicMock()
        session.post.return_value = MagicMock(ok=True)
        settings = NotificationSettings(
            line_enabled=True, line_access_token="tok", line_user_id="U123"
        )

        LineChannel(settings, timeout_seconds=4, session=session).send("x", "s", "hello")

        args, kwargs = session.post.call_args
        assert args[0] == "https://api.line.me/v2/bot/message/push"
        assert kwargs["json"] == {"to": "U123", "messages": [{"type": "text", "text": "hello"}]}
        assert kwargs["headers"]["Authorization"] == "Bearer tok"
        assert kwargs["timeout"] == 4

    def test_unconfigured_channels_raise(self):
        empty = NotificationSettings()
        for cls in (EmailChannel, LineChannel, DiscordChannel):
            with pytest.raises(ChannelNotConfiguredError):
                cls(empty).send("a@example.org", "s", "b")

    def test_email_uses_ses(self):
        client = MagicMock()
        client.send_email.return_value = {"MessageId": "m-1"}
        settings = NotificationSettings(
            email_enabled=True, from_email="helpdesk@example.org", from_name="IT Helpdesk"
        )

        EmailChannel(settings, client=client).send("a@example.org", "Subject", "<p>Body</p>")

        kwargs = client.send_email.call_args.kwargs
        assert kwargs["Source"] == "IT Helpdesk <helpdesk@example.org>"
        assert kwargs["Destination"] == {"ToAddresses": ["a@example.org"]}
        assert kwargs["Message"]["Body"]["Html"]["Data"] == "<p>Body</p>"

    def test_email_connection_test_failure(self):
        client = MagicMock()
        client.get_send_quota.side_effect = RuntimeError("no credentials")
        settings = NotificationSettings(email_enabled=True, from_email="helpdesk@example.org")
        assert EmailChannel(settings, client=client).test_connection() is False
