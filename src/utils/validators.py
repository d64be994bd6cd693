"""Validation helpers shared by handlers and services."""

from typing import Any, Dict, List

from pydantic import ValidationError as PydanticValidationError

from utils.error_handling import ValidationError


def flatten_errors(exc: PydanticValidationError) -> Dict[str, List[str]]:
    """Group pydantic errors by top-level field name for client display."""
    errors: Dict[str, List[str]] = {}
    for error in exc.errors():
        loc = error.get("loc") or ()
        field = str(loc[0]) if loc else "__root__"
        message = error.get("msg", "Invalid value")
        # pydantic prefixes custom ValueError messages.
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.setdefault(field, []).append(message)
    return errors


def parse_model(model_cls, payload: Any):
    """Validate ``payload`` into ``model_cls`` or raise the API ValidationError."""
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    try:
        return model_cls.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationError("Invalid input", errors=flatten_errors(exc)) from exc
