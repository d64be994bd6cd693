"""
Template rendering over the closed variable set.

Run with: pytest tests/unit/test_templates.py -v
"""

import pytest

from models.notification import (
    NotificationChannel,
    NotificationEvent,
    NotificationTemplate,
    TemplateVariables,
)
from services.templates import DEFAULT_TEMPLATES, TemplateError, render, render_template

VARIABLES = TemplateVariables(
    ticket_code="IT-AB12CD",
    subject="VPN down",
    status="NEW",
    requester_name="Suda",
    url="https://helpdesk.example.org/track/IT-AB12CD",
)


def test_snake_and_camel_placeholders():
    text = "{{ticket_code}} / {{ticketCode}} / {{ requesterName }}"
    assert render(text, VARIABLES) == "IT-AB12CD / IT-AB12CD / Suda"


def test_unknown_placeholder_renders_empty():
    assert render("Hello {{password}}!", VARIABLES) == "Hello !"


def test_strict_mode_rejects_unknown_placeholder():
    with pytest.raises(TemplateError):
        render("{{password}}", VARIABLES, strict=True)


def test_values_are_not_reexpanded():
    """A variable whose value looks like a placeholder stays literal."""
    variables = TemplateVariables(subject="{{ticket_code}}", ticket_code="IT-AB12CD")
    assert render("{{subject}}", variables) == "{{ticket_code}}"


def test_render_template_returns_subject_and_body():
    template = NotificationTemplate(
        name=NotificationEvent.TICKET_CREATED,
        channel=NotificationChannel.EMAIL,
        subject="New ticket #{{ticketCode}}",
        body="{{subject}} ({{status}})",
    )
    assert render_template(template, VARIABLES) == ("New ticket #IT-AB12CD", "VPN down (NEW)")


def test_defaults_cover_every_event_and_channel():
    for event in NotificationEvent:
        for channel in NotificationChannel:
            assert (event, channel) in DEFAULT_TEMPLATES


@pytest.mark.parametrize("key", list(DEFAULT_TEMPLATES))
def test_default_templates_only_use_known_variables(key):
    subject, body = render_template(DEFAULT_TEMPLATES[key], VARIABLES, strict=True)
    assert "{{" not in body
    assert "IT-AB12CD" in body


def test_email_body_escapes_submitted_markup():
    variables = VARIABLES.model_copy(
        update={
            "subject": "Login <b>broken</b>",
            "description": '<a href="https://evil.example">Reset password</a>',
        }
    )
    template = DEFAULT_TEMPLATES[(NotificationEvent.TICKET_CREATED, NotificationChannel.EMAIL)]

    subject, body = render_template(template, variables)

    assert '<a href="https://evil.example">' not in body
    assert "&lt;a href=&quot;https://evil.example&quot;&gt;Reset password&lt;/a&gt;" in body
    assert "Login &lt;b&gt;broken&lt;/b&gt;" in body
    assert subject == "New ticket #IT-AB12CD - Login <b>broken</b>"


@pytest.mark.parametrize("channel", [NotificationChannel.LINE, NotificationChannel.DISCORD])
def test_chat_channels_keep_text_verbatim(channel):
    variables = VARIABLES.model_copy(update={"description": "Q&A <drive> full"})
    _, body = render_template(DEFAULT_TEMPLATES[(NotificationEvent.TICKET_CREATED, channel)],
                              variables)
    assert "Q&A <drive> full" in body
