"""SLA views are derived on read and never persisted."""

from datetime import datetime
from enum import Enum
from typing import List

from pydantic import BaseModel, Field


class SLABucket(str, Enum):
    BREACHED = "breached"
    AT_RISK = "at_risk"
    ON_TRACK = "on_track"


class SLAView(BaseModel):
    age_minutes: int
    response_target_minutes: int
    resolve_target_minutes: int
    response_breached: bool
    resolve_breached: bool
    response_percent: int = Field(ge=0, le=100)
    resolve_percent: int = Field(ge=0, le=100)
    bucket: SLABucket


class SLAReportRow(BaseModel):
    id: str
    ticket_code: str
    subject: str
    status: str
    full_name: str
    bureau: str
    created_at: datetime
    priority: str
    team: str
    assignee: str
    age_text: str
    sla: SLAView


class SLASummary(BaseModel):
    total: int
    breached: int
    at_risk: int
    on_track: int
    breached_percent: int


class SLAReport(BaseModel):
    generated_at: datetime
    summary: SLASummary
    breached_tickets: List[SLAReportRow] = Field(default_factory=list)
    at_risk_tickets: List[SLAReportRow] = Field(default_factory=list)
    on_track_tickets: List[SLAReportRow] = Field(default_factory=list)
