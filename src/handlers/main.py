"""
Single entrypoint Lambda that routes HTTP API requests to thin handler modules.

Why one Lambda?
- Keeps the engine, intake cache and notification pool warm across routes.
- Simpler to deploy while still keeping code organized by delegating to modules.
"""

import json
import re
from typing import Callable, Dict, Tuple

from . import health_check, notifications, sla_report, ticket_admin, ticket_intake, ticket_tracking


def _response(status: int, body: Dict) -> Dict:
    """Format a JSON API Gateway HTTP API response."""
    return {
        "statusCode": status,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body),
    }


def _route(method: str, template: str) -> Tuple[str, "re.Pattern[str]"]:
    # "/tickets/{ticketCode}/comment" -> named group per path parameter
    pattern = re.sub(r"\{(\w+)\}", r"(?P<\1>[^/]+)", template)
    return method, re.compile(f"^{pattern}/?$")


# Handlers are looked up by name at dispatch time so tests can monkeypatch them.
ROUTES: Tuple[Tuple[str, "re.Pattern[str]", Callable[[], Callable]], ...] = (
    (*_route("GET", "/health"), lambda: health_check.lambda_handler),
    (*_route("POST", "/tickets"), lambda: ticket_intake.lambda_handler),
    (*_route("POST", "/tickets/track"), lambda: ticket_tracking.track_handler),
    (*_route("POST", "/tickets/{ticketCode}/comment"), lambda: ticket_tracking.comment_handler),
    (*_route("POST", "/tickets/{ticketCode}/survey"), lambda: ticket_tracking.survey_handler),
    (*_route("POST", "/admin/tickets"), lambda: ticket_admin.create_handler),
    (*_route("PUT", "/admin/tickets/{id}/status"), lambda: ticket_admin.status_handler),
    (*_route("PUT", "/admin/tickets/{id}/assign"), lambda: ticket_admin.assign_handler),
    (*_route("POST", "/admin/tickets/{id}/comment"), lambda: ticket_admin.comment_handler),
    (
        *_route("GET", "/admin/tickets/{id}/employee-code"),
        lambda: ticket_admin.employee_code_handler,
    ),
    (*_route("GET", "/admin/reports/sla"), lambda: sla_report.lambda_handler),
    (
        *_route("POST", "/admin/notifications/test/{channel}"),
        lambda: notifications.channel_test_handler,
    ),
)


def lambda_handler(event, context):
    """
    Entry point invoked by API Gateway HTTP API.

    The event contains the HTTP method and path; we route it to the correct
    handler and merge matched path segments into ``pathParameters``.
    """
    http = event.get("requestContext", {}).get("http", {})
    method = http.get("method", "").upper()
    path = http.get("path", "")

    path_matched = False
    for route_method, pattern, resolve in ROUTES:
        match = pattern.match(path)
        if not match:
            continue
        path_matched = True
        if route_method != method:
            continue
        params = {**(event.get("pathParameters") or {}), **match.groupdict()}
        return resolve()({**event, "pathParameters": params}, context)

    if path_matched:
        return _response(405, {"message": "Method not allowed", "route": f"{method} {path}"})
    return _response(404, {"message": "Route not found", "route": f"{method} {path}"})
