"""Common success envelope for staff-facing routes."""

from typing import Any, Optional

from pydantic import BaseModel


class ApiResponse(BaseModel):
    """Generic API response."""

    success: bool = True
    message: str
    data: Optional[Any] = None
    correlation_id: Optional[str] = None
