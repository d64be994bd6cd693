import json
from unittest.mock import MagicMock

from handlers import common, health_check


def test_health_check_returns_ok(ticket_service):
    common.set_ticket_service(ticket_service)
    try:
        resp = health_check.lambda_handler({}, None)
    finally:
        common.set_ticket_service(None)
    assert resp["statusCode"] == 200
    body = json.loads(resp["body"])
    assert body["status"] == "ok"
    assert body["database"] == "ok"


def test_health_check_reports_degraded_database():
    service = MagicMock()
    service.tickets.engine.connect.side_effect = RuntimeError("could not connect to server")
    common.set_ticket_service(service)
    try:
        resp = health_check.lambda_handler({}, None)
    finally:
        common.set_ticket_service(None)
    assert resp["statusCode"] == 503
    body = json.loads(resp["body"])
    assert body["status"] == "degraded"
    assert body["database"] == "unavailable"
