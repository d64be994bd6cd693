"""
Notification template rendering over a closed set of variables.

Only ``{{name}}`` placeholders naming a TemplateVariables field (snake_case or
camelCase) are substituted. Unknown placeholders render as empty text and are
logged; ``strict=True`` raises instead.
"""

from __future__ import annotations

import html
import re
from typing import Dict, Tuple

from models.notification import (
    NotificationChannel,
    NotificationEvent,
    NotificationTemplate,
    TemplateVariables,
)
from utils.logging_config import get_logger

logger = get_logger(__name__)

_PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")


class TemplateError(ValueError):
    """Template references a variable outside the known set."""


def _lookup_table(variables: TemplateVariables) -> Dict[str, str]:
    by_name = variables.model_dump()
    by_alias = variables.model_dump(by_alias=True)
    return {**by_name, **by_alias}


def render(
    template_text: str,
    variables: TemplateVariables,
    strict: bool = False,
    escape: bool = False,
) -> str:
    """Substitute placeholders; with ``escape`` values are HTML-escaped first."""
    values = _lookup_table(variables)
    if escape:
        values = {name: html.escape(value) for name, value in values.items()}

    def substitute(match: "re.Match[str]") -> str:
        name = match.group(1)
        if name in values:
            return values[name]
        if strict:
            raise TemplateError(f"unknown template variable: {name}")
        logger.warning("Unknown template variable ignored", extra={"variable": name})
        return ""

    return _PLACEHOLDER.sub(substitute, template_text or "")


def render_template(
    template: NotificationTemplate, variables: TemplateVariables, strict: bool = False
) -> Tuple[str, str]:
    """
    Return (subject, body).

    E-mail bodies are HTML, so submitter text is escaped there. Subjects and the
    chat channels stay plain text.
    """
    escape = template.channel == NotificationChannel.EMAIL
    return (
        render(template.subject, variables, strict),
        render(template.body, variables, strict, escape=escape),
    )


_EMAIL_LAYOUT = """
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <div style="background: {color}; color: white; padding: 20px; text-align: center;">
    <h1 style="margin: 0;">{heading}</h1>
  </div>
  <div style="padding: 20px; background: #f8fafc;">
    <h2 style="color: #1e293b;">Ticket #{{{{ticket_code}}}}</h2>
{rows}
    <div style="text-align: center; margin: 20px 0;">
      <a href="{{{{url}}}}" style="background: {color}; color: white; padding: 12px 24px; text-decoration: none; border-radius: 6px; display: inline-block;">View details</a>
    </div>
    <p style="color: #6b7280; font-size: 14px; text-align: center;">{{{{date}}}} {{{{time}}}}</p>
  </div>
</div>
"""


def _email(heading: str, color: str, rows: str) -> str:
    return _EMAIL_LAYOUT.format(heading=heading, color=color, rows=rows)


_CREATED_ROWS = """    <p><strong>Subject:</strong> {{subject}}</p>
    <p><strong>Requester:</strong> {{requester_name}}</p>
    <p><strong>Category:</strong> {{category}}</p>
    <p><strong>Priority:</strong> {{priority}}</p>
    <p><strong>Status:</strong> {{status}}</p>
    <p style="white-space: pre-wrap;">{{description}}</p>"""

_STATUS_ROWS = """    <p><strong>Subject:</strong> {{subject}}</p>
    <p><strong>New status:</strong> {{status}}</p>
    <p><strong>Assignee:</strong> {{assignee_name}}</p>"""

_COMMENT_ROWS = """    <p><strong>Subject:</strong> {{subject}}</p>
    <p style="white-space: pre-wrap;">{{comment}}</p>"""

DEFAULT_TEMPLATES: Dict[Tuple[NotificationEvent, NotificationChannel], NotificationTemplate] = {}


def _register(event: NotificationEvent, channel: NotificationChannel, body: str,
              subject: str = "") -> None:
    DEFAULT_TEMPLATES[(event, channel)] = NotificationTemplate(
        name=event, channel=channel, subject=subject, body=body
    )


_register(
    NotificationEvent.TICKET_CREATED,
    NotificationChannel.EMAIL,
    _email("New ticket", "#3b82f6", _CREATED_ROWS),
    subject="New ticket #{{ticket_code}} - {{subject}}",
)
_register(
    NotificationEvent.TICKET_CREATED,
    NotificationChannel.LINE,
    "New ticket #{{ticket_code}}\n\n"
    "Subject: {{subject}}\nRequester: {{requester_name}}\nCategory: {{category}}\n"
    "Priority: {{priority}}\nStatus: {{status}}\n\n{{description}}\n\n"
    "Details: {{url}}\n{{date}} {{time}}",
)
_register(
    NotificationEvent.TICKET_CREATED,
    NotificationChannel.DISCORD,
    "**New ticket #{{ticket_code}}**\n\n"
    "**Subject:** {{subject}}\n**Requester:** {{requester_name}}\n**Category:** {{category}}\n"
    "**Priority:** {{priority}}\n**Status:** {{status}}\n\n```\n{{description}}\n```\n"
    "[View details]({{url}})\n{{date}} {{time}}",
)
_register(
    NotificationEvent.TICKET_STATUS_CHANGED,
    NotificationChannel.EMAIL,
    _email("Status updated", "#059669", _STATUS_ROWS),
    subject="Status update #{{ticket_code}} - {{status}}",
)
_register(
    NotificationEvent.TICKET_STATUS_CHANGED,
    NotificationChannel.LINE,
    "Status update #{{ticket_code}}\n\nSubject: {{subject}}\nNew status: {{status}}\n"
    "Assignee: {{assignee_name}}\n\nDetails: {{url}}\n{{date}} {{time}}",
)
_register(
    NotificationEvent.TICKET_STATUS_CHANGED,
    NotificationChannel.DISCORD,
    "**Status update #{{ticket_code}}**\n\n**Subject:** {{subject}}\n"
    "**New status:** {{status}}\n**Assignee:** {{assignee_name}}\n\n"
    "[View details]({{url}})\n{{date}} {{time}}",
)
_register(
    NotificationEvent.COMMENT_ADDED,
    NotificationChannel.EMAIL,
    _email("New comment", "#7c3aed", _COMMENT_ROWS),
    subject="New comment #{{ticket_code}}",
)
_register(
    NotificationEvent.COMMENT_ADDED,
    NotificationChannel.LINE,
    "New comment #{{ticket_code}}\n\nSubject: {{subject}}\n\n{{comment}}\n\n"
    "Details: {{url}}\n{{date}} {{time}}",
)
_register(
    NotificationEvent.COMMENT_ADDED,
    NotificationChannel.DISCORD,
    "**New comment #{{ticket_code}}**\n\n**Subject:** {{subject}}\n\n> {{comment}}\n\n"
    "[View details]({{url}})\n{{date}} {{time}}",
)
