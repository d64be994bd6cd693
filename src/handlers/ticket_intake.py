"""
Public ticket intake handler.

POST /tickets validates the report, runs it through the intake guard and
returns the new public ticket code. Notification delivery happens in the
background and never delays or fails this response.
"""

from __future__ import annotations

import time

from handlers.common import get_ticket_service, json_response, parse_body, request_source, run
from models.ticket import TicketCreated, TicketSubmission
from utils.logging_config import get_logger
from utils.messages import language_from_headers, message
from utils.validators import parse_model

logger = get_logger(__name__)


def lambda_handler(event, context):
    """Handle POST /tickets."""
    start = time.perf_counter()

    def action(correlation_id: str):
        submission = parse_model(TicketSubmission, parse_body(event))
        source_ip, user_agent = request_source(event)
        ticket = get_ticket_service().submit(submission, source_ip, user_agent)

        logger.info(
            "Ticket intake accepted",
            extra={
                "correlation_id": correlation_id,
                "ticket_code": ticket.ticket_code,
                "processing_time_ms": int((time.perf_counter() - start) * 1000),
            },
        )
        language = language_from_headers(event.get("headers"))
        return json_response(
            201,
            TicketCreated(ticket_code=ticket.ticket_code, message=message("created", language)),
        )

    return run(event, action, "Ticket intake", localize=True)
