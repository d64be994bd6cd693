"""Handler for POST /admin/notifications/test/{channel}."""

from handlers.common import get_ticket_service, json_response, path_param, require_actor, run
from models.notification import NotificationChannel
from utils.error_handling import ValidationError


def channel_test_handler(event, context):
    """Check one channel's connection settings without sending a ticket notification."""

    def action(correlation_id: str):
        require_actor(event)
        raw = path_param(event, "channel").upper()
        try:
            channel = NotificationChannel(raw)
        except ValueError as exc:
            allowed = ", ".join(c.value.lower() for c in NotificationChannel)
            raise ValidationError(
                "Unknown channel", errors={"channel": [f"must be one of: {allowed}"]}
            ) from exc
        ok = get_ticket_service().test_channel(channel)
        return json_response(
            200,
            {
                "success": ok,
                "channel": channel.value,
                "message": "Connection successful" if ok else "Connection failed",
                "correlation_id": correlation_id,
            },
        )

    return run(event, action, "Channel test")
