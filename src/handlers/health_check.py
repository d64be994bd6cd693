"""Lightweight health check handler."""

import os
import json
from datetime import datetime, timezone

from sqlalchemy import text

from handlers.common import get_ticket_service
from utils.logging_config import get_logger

logger = get_logger(__name__)


def _database_ok() -> bool:
    try:
        engine = get_ticket_service().tickets.engine
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as exc:
        logger.warning("Health check database ping failed", extra={"error": str(exc)})
        return False


def lambda_handler(event, context):
    """Return 200 when the stack and its database are reachable, 503 otherwise."""
    database_ok = _database_ok()
    return {
        "statusCode": 200 if database_ok else 503,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(
            {
                "status": "ok" if database_ok else "degraded",
                "database": "ok" if database_ok else "unavailable",
                "environment": os.environ.get("ENVIRONMENT", "dev"),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        ),
    }
