"""
HTTP handler tests against the real service graph on SQLite.

The shared TicketService is swapped in through handlers.common so no
database URL or AWS credentials are needed.

Run with: pytest tests/unit/test_handlers.py -v
"""

import base64
import json

import pytest

from conftest import submission_payload
from handlers import (
    common,
    notification_worker,
    notifications,
    sla_report,
    ticket_admin,
    ticket_intake,
    ticket_tracking,
)
from models.ticket import TicketStatus


@pytest.fixture(autouse=True)
def service(ticket_service):
    common.set_ticket_service(ticket_service)
    yield ticket_service
    common.set_ticket_service(None)


def _event(body=None, path_params=None, headers=None, actor=None, ip="10.0.0.1"):
    request_context = {"http": {"sourceIp": ip, "userAgent": "pytest"}}
    if actor:
        request_context["authorizer"] = {"jwt": {"claims": {"sub": actor}}}
    return {
        "requestContext": request_context,
        "headers": headers or {},
        "pathParameters": path_params,
        "body": json.dumps(body) if body is not None else None,
    }


def _body(response):
    return json.loads(response["body"])


def _create(headers=None, ip="10.0.0.1", **overrides):
    return ticket_intake.lambda_handler(
        _event(submission_payload(**overrides), headers=headers, ip=ip), None
    )


class TestIntake:
    def test_created(self, service):
        response = _create()
        assert response["statusCode"] == 201
        body = _body(response)
        assert body["success"] is True
        assert body["ticket_code"].startswith("IT-")
        assert body["message"] == "Your report has been submitted"
        assert service.tickets.get_by_code(body["ticket_code"]).source_ip == "10.0.0.1"

    def test_thai_message(self):
        response = _create(headers={"Accept-Language": "th-TH,th;q=0.9"})
        assert _body(response)["message"] == "สร้างรายการแจ้งปัญหาเรียบร้อยแล้ว"

    def test_base64_body(self):
        event = _event()
        event["body"] = base64.b64encode(json.dumps(submission_payload()).encode()).decode()
        event["isBase64Encoded"] = True
        assert ticket_intake.lambda_handler(event, None)["statusCode"] == 201

    def test_validation_error(self):
        response = ticket_intake.lambda_handler(_event({"full_name": "S"}), None)
        assert response["statusCode"] == 400
        body = _body(response)
        assert body["code"] == "validation_error"
        assert "employee_code" in body["errors"]

    def test_malformed_json(self):
        event = _event()
        event["body"] = "{not json"
        response = ticket_intake.lambda_handler(event, None)
        assert response["statusCode"] == 400

    def test_base64_body_that_is_not_utf8(self):
        event = _event()
        event["body"] = base64.b64encode(b"\xff\xfe{}").decode()
        event["isBase64Encoded"] = True
        response = ticket_intake.lambda_handler(event, None)
        assert response["statusCode"] == 400
        assert _body(response)["code"] == "validation_error"

    def test_rate_limited(self):
        for i in range(3):
            assert _create(subject=f"Printer jam number {i}")["statusCode"] == 201
        response = _create(subject="Printer jam number 3")
        assert response["statusCode"] == 429
        body = _body(response)
        assert body["code"] == "rate_limited"
        assert body["retryable"] is True
        assert body["correlation_id"]

    def test_duplicate(self):
        assert _create()["statusCode"] == 201
        response = _create(ip="10.0.0.2")
        assert response["statusCode"] == 409
        assert _body(response)["code"] == "duplicate"

    def test_unexpected_error_is_generic(self, service, monkeypatch):
        def explode(*args, **kwargs):
            raise RuntimeError("connection pool exhausted at db-1.internal")

        monkeypatch.setattr(service, "submit", explode)
        response = _create()
        assert response["statusCode"] == 500
        body = _body(response)
        assert body["code"] == "internal_error"
        assert "db-1.internal" not in response["body"]


class TestTracking:
    def _code(self):
        return _body(_create())["ticket_code"]

    def test_track(self):
        code = self._code()
        response = ticket_tracking.track_handler(
            _event({"ticket_code": code, "employee_code": "6401234"}), None
        )
        assert response["statusCode"] == 200
        body = _body(response)
        assert body["ticket_code"] == code
        assert body["status"] == "NEW"
        assert body["employee_code_masked"] == "640***34"
        assert "employee_code_hash" not in body

    def test_track_wrong_employee_code(self):
        code = self._code()
        response = ticket_tracking.track_handler(
            _event({"ticket_code": code, "employee_code": "6400000"}), None
        )
        assert response["statusCode"] == 404
        assert _body(response)["message"] == "Ticket not found or employee code does not match"

    def test_comment_uses_path_code(self):
        code = self._code()
        response = ticket_tracking.comment_handler(
            _event(
                {"employee_code": "6401234", "message": "Still happening"},
                path_params={"ticketCode": code},
            ),
            None,
        )
        assert response["statusCode"] == 201
        assert _body(response)["message"] == "Comment added"

    def test_survey_before_resolution(self):
        code = self._code()
        response = ticket_tracking.survey_handler(
            _event(
                {"employee_code": "6401234", "rating": 4},
                path_params={"ticketCode": code},
                headers={"accept-language": "th"},
            ),
            None,
        )
        assert response["statusCode"] == 409
        body = _body(response)
        assert body["code"] == "survey_not_allowed"
        assert body["message"] == "สามารถประเมินได้เมื่อสถานะเป็น แก้ไขแล้ว หรือ ปิดงาน เท่านั้น"


class TestAdmin:
    def _ticket(self, service):
        code = _body(_create())["ticket_code"]
        return service.tickets.get_by_code(code)

    def test_requires_principal(self, service):
        ticket = self._ticket(service)
        response = ticket_admin.status_handler(
            _event({"status": "CLOSED"}, path_params={"id": ticket.id}), None
        )
        assert response["statusCode"] == 401
        assert service.tickets.get(ticket.id).status is TicketStatus.NEW

    def test_status_change(self, service):
        ticket = self._ticket(service)
        response = ticket_admin.status_handler(
            _event(
                {"status": "RESOLVED", "note": "Replaced cable"},
                path_params={"id": ticket.id},
                actor="staff-1",
            ),
            None,
        )
        assert response["statusCode"] == 200
        data = _body(response)["data"]
        assert data["status"] == "RESOLVED"
        assert data["resolved_at"] is not None
        assert "employee_code_hash" not in data
        assert "employee_code_encrypted" not in data
        assert service.tickets.status_logs(ticket.id)[-1].changed_by == "staff-1"

    def test_invalid_status(self, service):
        ticket = self._ticket(service)
        response = ticket_admin.status_handler(
            _event({"status": "DONE"}, path_params={"id": ticket.id}, actor="staff-1"), None
        )
        assert response["statusCode"] == 400

    def test_unknown_ticket(self):
        response = ticket_admin.status_handler(
            _event({"status": "CLOSED"}, path_params={"id": "missing"}, actor="staff-1"), None
        )
        assert response["statusCode"] == 404

    def test_assign(self, service):
        ticket = self._ticket(service)
        response = ticket_admin.assign_handler(
            _event({"assignee_id": "staff-2"}, path_params={"id": ticket.id}, actor="staff-1"),
            None,
        )
        assert response["statusCode"] == 200
        data = _body(response)["data"]
        assert (data["assignee_id"], data["status"]) == ("staff-2", "IN_PROGRESS")

    def test_staff_create_and_comment(self, service):
        response = ticket_admin.create_handler(
            _event(submission_payload(team_id="team-helpdesk"), actor="staff-1"), None
        )
        assert response["statusCode"] == 201
        ticket_id = _body(response)["data"]["id"]

        response = ticket_admin.comment_handler(
            _event(
                {"message": "Called the user", "visibility": "INTERNAL"},
                path_params={"id": ticket_id},
                actor="staff-1",
            ),
            None,
        )
        assert response["statusCode"] == 201
        assert _body(response)["data"]["visibility"] == "INTERNAL"

    def test_sla_report(self):
        _create()
        response = sla_report.lambda_handler(_event(actor="staff-1"), None)
        assert response["statusCode"] == 200
        body = _body(response)
        assert body["summary"]["total"] == 1
        assert body["summary"]["on_track"] == 1

    def test_sla_report_requires_principal(self):
        assert sla_report.lambda_handler(_event(), None)["statusCode"] == 401

    def test_employee_code_lookup(self, service):
        service.settings.employee_code_enc_key = "ab" * 32
        ticket = self._ticket(service)

        response = ticket_admin.employee_code_handler(
            _event(path_params={"id": ticket.id}, actor="staff-1"), None
        )
        assert response["statusCode"] == 200
        assert _body(response)["data"] == {"employee_code": "6401234"}

    def test_employee_code_lookup_requires_principal(self, service):
        ticket = self._ticket(service)
        response = ticket_admin.employee_code_handler(_event(path_params={"id": ticket.id}), None)
        assert response["statusCode"] == 401


class TestChannelConnectionCheck:
    def test_known_channel(self):
        event = _event(path_params={"channel": "line"}, actor="staff-1")
        response = notifications.channel_test_handler(event, None)
        assert response["statusCode"] == 200
        body = _body(response)
        assert (body["success"], body["channel"]) == (True, "LINE")

    def test_failed_connection(self, channels):
        from models.notification import NotificationChannel

        channels[NotificationChannel.EMAIL].connected = False
        response = notifications.channel_test_handler(
            _event(path_params={"channel": "email"}, actor="staff-1"), None
        )
        assert _body(response)["success"] is False
        assert _body(response)["message"] == "Connection failed"

    def test_unknown_channel(self):
        response = notifications.channel_test_handler(
            _event(path_params={"channel": "sms"}, actor="staff-1"), None
        )
        assert response["statusCode"] == 400
        assert _body(response)["errors"]["channel"] == ["must be one of: email, line, discord"]


class TestNotificationWorker:
    def test_delivers_handed_off_job(self, service):
        ticket = service.tickets.get_by_code(_body(_create())["ticket_code"])
        job = {
            "event": "ticket_status_changed",
            "variables": {"ticket_code": ticket.ticket_code, "status": "RESOLVED"},
            "recipients": ["suda@example.org"],
            "ticket_id": ticket.id,
        }

        result = notification_worker.lambda_handler(job, None)

        assert result == {"status": "done", "attempts": 2, "sent": 2}
        records = service.notifier.repository.for_ticket(ticket.id)
        assert {r.recipient for r in records if r.body and "RESOLVED" in r.body} == {
            "suda@example.org"
        }

    def test_malformed_job_is_rejected(self):
        assert notification_worker.lambda_handler({"event": "nope"}, None) == {
            "status": "rejected"
        }
