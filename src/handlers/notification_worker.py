"""
Dispatcher Lambda for notification jobs.

Request handlers hand each notify call here with an asynchronous invoke, so
deliveries run to completion inside an invocation of their own. The payload is
a ``NotificationJob``.
"""

from pydantic import ValidationError

from handlers.common import get_ticket_service
from models.notification import NotificationJob, NotificationStatus
from utils.logging_config import get_logger

logger = get_logger(__name__)


def lambda_handler(event, context):
    try:
        job = NotificationJob.model_validate(event)
    except ValidationError as exc:
        # Async invokes are retried by Lambda; a malformed payload never succeeds.
        logger.error("Rejected notification job", extra={"errors": exc.errors(include_url=False)})
        return {"status": "rejected"}

    records = get_ticket_service().notifier.run_job(job)
    sent = sum(1 for record in records if record.status == NotificationStatus.SENT)
    logger.info(
        "Notification job finished",
        extra={
            "event": job.event.value,
            "ticket_id": job.ticket_id,
            "attempts": len(records),
            "sent": sent,
        },
    )
    return {"status": "done", "attempts": len(records), "sent": sent}
