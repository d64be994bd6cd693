"""Structured logger setup shared by handlers, services and repositories."""

import logging
import os
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

SERVICE_NAME = "it-helpdesk-intake"


def get_logger(name: str) -> logging.Logger:
    """
    Configure a JSON logger once and reuse it.

    Every record carries the service and environment; ticket context travels
    in ``extra`` so CloudWatch queries can filter on ticket_code or
    correlation_id without parsing message text.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    formatter = jsonlogger.JsonFormatter(
        "%(levelname)s %(name)s %(message)s %(asctime)s",
        static_fields={
            "service": SERVICE_NAME,
            "environment": os.environ.get("ENVIRONMENT", "dev"),
        },
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(os.environ.get("LOG_LEVEL", "INFO").upper())
    logger.propagate = False
    return logger


class ContextAdapter(logging.LoggerAdapter):
    """Merges bound context into each call's ``extra``; per-call keys win."""

    def process(self, msg: Any, kwargs: Dict[str, Any]):
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def with_context(logger: logging.Logger, **context: Any) -> ContextAdapter:
    return ContextAdapter(logger, context)
