"""Handler for GET /admin/reports/sla."""

from handlers.common import get_ticket_service, json_response, require_actor, run
from utils.logging_config import get_logger

logger = get_logger(__name__)


def lambda_handler(event, context):
    """Return open tickets bucketed into breached / at risk / on track."""

    def action(correlation_id: str):
        require_actor(event)
        report = get_ticket_service().sla_report()
        logger.info(
            "SLA report served",
            extra={
                "correlation_id": correlation_id,
                "total": report.summary.total,
                "breached": report.summary.breached,
            },
        )
        return json_response(200, report)

    return run(event, action, "SLA report")
