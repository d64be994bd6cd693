"""
Staff ticket operations.

Every route requires the principal injected by the gateway authorizer; the
principal becomes the actor on status entries, comments and audit records.
"""

from __future__ import annotations

from handlers.common import (
    get_ticket_service,
    json_response,
    parse_body,
    path_param,
    request_source,
    require_actor,
    run,
)
from models.response import ApiResponse
from models.ticket import (
    AssignmentRequest,
    StaffCommentRequest,
    StaffTicketSubmission,
    StatusChangeRequest,
    Ticket,
)
from utils.logging_config import get_logger
from utils.validators import parse_model

logger = get_logger(__name__)


def _ticket_payload(ticket: Ticket) -> dict:
    return ticket.model_dump(
        mode="json", exclude={"employee_code_hash", "employee_code_encrypted"}
    )


def create_handler(event, context):
    """Handle POST /admin/tickets."""

    def action(correlation_id: str):
        actor_id = require_actor(event)
        submission = parse_model(StaffTicketSubmission, parse_body(event))
        source_ip, user_agent = request_source(event)
        ticket = get_ticket_service().create_by_staff(submission, actor_id, source_ip, user_agent)
        return json_response(
            201,
            ApiResponse(
                message="Ticket created",
                data=_ticket_payload(ticket),
                correlation_id=correlation_id,
            ),
        )

    return run(event, action, "Staff ticket creation")


def status_handler(event, context):
    """Handle PUT /admin/tickets/{id}/status."""

    def action(correlation_id: str):
        actor_id = require_actor(event)
        ticket_id = path_param(event, "id")
        request = parse_model(StatusChangeRequest, parse_body(event))
        source_ip, user_agent = request_source(event)
        ticket = get_ticket_service().change_status(
            ticket_id, request, actor_id, source_ip, user_agent
        )
        return json_response(
            200,
            ApiResponse(
                message="Status updated",
                data=_ticket_payload(ticket),
                correlation_id=correlation_id,
            ),
        )

    return run(event, action, "Status change")


def assign_handler(event, context):
    """Handle PUT /admin/tickets/{id}/assign."""

    def action(correlation_id: str):
        actor_id = require_actor(event)
        ticket_id = path_param(event, "id")
        request = parse_model(AssignmentRequest, parse_body(event))
        source_ip, user_agent = request_source(event)
        ticket = get_ticket_service().assign(ticket_id, request, actor_id, source_ip, user_agent)
        return json_response(
            200,
            ApiResponse(
                message="Ticket assigned",
                data=_ticket_payload(ticket),
                correlation_id=correlation_id,
            ),
        )

    return run(event, action, "Ticket assignment")


def comment_handler(event, context):
    """Handle POST /admin/tickets/{id}/comment."""

    def action(correlation_id: str):
        actor_id = require_actor(event)
        ticket_id = path_param(event, "id")
        request = parse_model(StaffCommentRequest, parse_body(event))
        source_ip, user_agent = request_source(event)
        comment = get_ticket_service().add_staff_comment(
            ticket_id, request, actor_id, source_ip, user_agent
        )
        return json_response(
            201,
            ApiResponse(
                message="Comment added",
                data=comment.model_dump(mode="json"),
                correlation_id=correlation_id,
            ),
        )

    return run(event, action, "Staff comment")


def employee_code_handler(event, context):
    """Handle GET /admin/tickets/{id}/employee-code."""

    def action(correlation_id: str):
        actor_id = require_actor(event)
        ticket_id = path_param(event, "id")
        source_ip, user_agent = request_source(event)
        code = get_ticket_service().reveal_employee_code(
            ticket_id, actor_id, source_ip, user_agent
        )
        return json_response(
            200,
            ApiResponse(
                message="Employee code",
                data={"employee_code": code},
                correlation_id=correlation_id,
            ),
        )

    return run(event, action, "Employee code lookup")
