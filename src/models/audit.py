"""Append-only audit trail entries."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel


class AuditAction(str, Enum):
    CREATE_TICKET = "CREATE_TICKET"
    UPDATE_TICKET = "UPDATE_TICKET"
    ASSIGN_TICKET = "ASSIGN_TICKET"
    ADD_COMMENT = "ADD_COMMENT"
    SUBMIT_SURVEY = "SUBMIT_SURVEY"
    VIEW_EMPLOYEE_CODE = "VIEW_EMPLOYEE_CODE"


class AuditLogEntry(BaseModel):
    """``actor_id`` None means the system (or an anonymous submitter) acted."""

    id: str
    action: AuditAction
    entity_type: str = "system"
    entity_id: Optional[str] = None
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None
    actor_id: Optional[str] = None
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime
