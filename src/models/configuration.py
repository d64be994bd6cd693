"""Admin-owned configuration the core reads but never mutates."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class AssignmentRule(BaseModel):
    """Routes tickets to a team; null filters act as wildcards."""

    id: str
    team_id: str
    system_id: Optional[str] = None
    category_id: Optional[str] = None
    priority: int = 0
    is_active: bool = True
    created_at: Optional[datetime] = None

    @property
    def is_catch_all(self) -> bool:
        return self.system_id is None and self.category_id is None

    def matches(self, system_id: Optional[str], category_id: Optional[str]) -> bool:
        return (self.system_id is None or self.system_id == system_id) and (
            self.category_id is None or self.category_id == category_id
        )


class PriorityProfile(BaseModel):
    """SLA budgets per priority; a null budget falls back to the system default."""

    id: str
    code: str
    name: str
    severity: int = Field(ge=1)
    sla_first_response_mins: Optional[int] = Field(default=None, ge=0)
    sla_resolve_mins: Optional[int] = Field(default=None, ge=0)
    is_active: bool = True
