"""Submitter self-service: track a ticket, comment on it, rate the outcome."""

from __future__ import annotations

from handlers.common import (
    get_ticket_service,
    json_response,
    parse_body,
    path_param,
    request_source,
    run,
)
from models.response import ApiResponse
from models.ticket import SurveyRequest, TrackRequest, UserCommentRequest
from utils.messages import language_from_headers, message
from utils.validators import parse_model


def _with_code(event) -> dict:
    """Body merged with the ``ticketCode`` path parameter."""
    payload = parse_body(event)
    if isinstance(payload, dict):
        payload = {**payload, "ticket_code": path_param(event, "ticketCode")}
    return payload


def track_handler(event, context):
    """Handle POST /tickets/track."""

    def action(correlation_id: str):
        request = parse_model(TrackRequest, parse_body(event))
        view = get_ticket_service().track(request)
        return json_response(200, view)

    return run(event, action, "Ticket tracking", localize=True)


def comment_handler(event, context):
    """Handle POST /tickets/{ticketCode}/comment."""

    def action(correlation_id: str):
        request = parse_model(UserCommentRequest, _with_code(event))
        source_ip, user_agent = request_source(event)
        comment = get_ticket_service().add_user_comment(request, source_ip, user_agent)
        language = language_from_headers(event.get("headers"))
        return json_response(
            201,
            ApiResponse(
                message=message("comment_added", language),
                data={"id": comment.id, "created_at": comment.created_at.isoformat()},
                correlation_id=correlation_id,
            ),
        )

    return run(event, action, "User comment", localize=True)


def survey_handler(event, context):
    """Handle POST /tickets/{ticketCode}/survey."""

    def action(correlation_id: str):
        request = parse_model(SurveyRequest, _with_code(event))
        source_ip, user_agent = request_source(event)
        survey = get_ticket_service().submit_survey(request, source_ip, user_agent)
        language = language_from_headers(event.get("headers"))
        return json_response(
            201,
            ApiResponse(
                message=message("survey_thanks", language),
                data={"rating": survey.rating},
                correlation_id=correlation_id,
            ),
        )

    return run(event, action, "Satisfaction survey", localize=True)
