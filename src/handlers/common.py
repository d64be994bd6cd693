"""Helpers shared by the HTTP handlers: service wiring, request parsing, responses."""

from __future__ import annotations

import base64
import binascii
import json
import uuid
from typing import Any, Callable, Dict, Optional, Tuple

from pydantic import BaseModel

from utils.error_handling import AppError, UnauthorizedError, ValidationError, to_response
from utils.logging_config import get_logger, with_context
from utils.messages import MESSAGES, language_from_headers, message

logger = get_logger(__name__)

# Lazy-loaded service to avoid import-time DB connections
_ticket_service = None


def get_ticket_service():
    """Lazy-load the TicketService shared by every route in this container."""
    global _ticket_service
    if _ticket_service is None:
        from services.ticket_service import build_ticket_service

        _ticket_service = build_ticket_service()
    return _ticket_service


def set_ticket_service(service) -> None:
    """Swap the shared service (tests, warm reconfiguration)."""
    global _ticket_service
    _ticket_service = service


def json_response(status: int, body: Any) -> Dict[str, Any]:
    """Format a JSON API Gateway HTTP API response."""
    if isinstance(body, BaseModel):
        payload = body.model_dump_json()
    else:
        payload = json.dumps(body, ensure_ascii=False, default=str)
    return {
        "statusCode": status,
        "headers": {"Content-Type": "application/json"},
        "body": payload,
    }


def parse_body(event: Dict[str, Any]) -> Any:
    raw = event.get("body") or "{}"
    try:
        if event.get("isBase64Encoded"):
            raw = base64.b64decode(raw).decode("utf-8")
        return json.loads(raw)
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ValidationError("Request body is not valid JSON") from exc


def request_source(event: Dict[str, Any]) -> Tuple[Optional[str], Optional[str]]:
    """(source IP, user agent) as seen by the gateway."""
    http = (event.get("requestContext") or {}).get("http") or {}
    headers = {k.lower(): v for k, v in (event.get("headers") or {}).items()}
    ip = http.get("sourceIp")
    if not ip and headers.get("x-forwarded-for"):
        ip = headers["x-forwarded-for"].split(",")[0].strip()
    return ip, http.get("userAgent") or headers.get("user-agent")


def require_actor(event: Dict[str, Any]) -> str:
    """Principal injected by the gateway JWT authorizer."""
    authorizer = (event.get("requestContext") or {}).get("authorizer") or {}
    claims = (authorizer.get("jwt") or {}).get("claims") or {}
    actor = claims.get("sub")
    if not actor:
        raise UnauthorizedError()
    return actor


def path_param(event: Dict[str, Any], name: str) -> str:
    value = (event.get("pathParameters") or {}).get(name)
    if not value:
        raise ValidationError(f"{name} is required", errors={name: [f"{name} is required"]})
    return value


def run(
    event: Dict[str, Any],
    action: Callable[[str], Dict[str, Any]],
    name: str,
    localize: bool = False,
):
    """
    Execute ``action(correlation_id)`` and map failures to responses.

    AppErrors keep their status code; anything else is logged and becomes a
    generic 500 so internals never leak to callers. With ``localize`` the
    user-facing message follows the Accept-Language header.
    """
    correlation_id = str(uuid.uuid4())
    log = with_context(logger, correlation_id=correlation_id)
    language = language_from_headers(event.get("headers")) if localize else "en"
    try:
        return action(correlation_id)
    except AppError as exc:
        if localize and exc.code in MESSAGES["en"]:
            exc.message = message(exc.code, language)
        log.warning(f"{name} rejected", extra={"code": exc.code, "status": exc.status_code})
        return to_response(exc, correlation_id)
    except Exception:
        log.exception(f"{name} failed")
        text = message("internal_error", language) if localize else "Internal server error"
        return json_response(
            500,
            {
                "status": "error",
                "code": "internal_error",
                "message": text,
                "correlation_id": correlation_id,
            },
        )
