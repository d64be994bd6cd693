"""Ticket entities and the public/staff payloads that create or change them."""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from utils.ticket_code import is_valid_ticket_code, normalize_ticket_code


class TicketStatus(str, Enum):
    """Lifecycle states; CLOSED and REJECTED are terminal."""

    NEW = "NEW"
    IN_PROGRESS = "IN_PROGRESS"
    WAITING_USER = "WAITING_USER"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"
    REJECTED = "REJECTED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_open(self) -> bool:
        """Still counted by the SLA report."""
        return self in OPEN_STATUSES


TERMINAL_STATUSES = frozenset({TicketStatus.CLOSED, TicketStatus.REJECTED})
OPEN_STATUSES = frozenset(
    {TicketStatus.NEW, TicketStatus.IN_PROGRESS, TicketStatus.WAITING_USER}
)
SURVEY_STATUSES = frozenset({TicketStatus.RESOLVED, TicketStatus.CLOSED})


class AuthorType(str, Enum):
    USER = "USER"
    STAFF = "STAFF"


class CommentVisibility(str, Enum):
    PUBLIC = "PUBLIC"
    INTERNAL = "INTERNAL"


class Ticket(BaseModel):
    """Aggregate root as persisted in the ``tickets`` table."""

    id: str
    ticket_code: str
    employee_code_hash: str
    employee_code_masked: str
    employee_code_encrypted: Optional[str] = None
    full_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    bureau: str
    division: str
    department: str
    org_unit_id: Optional[str] = None
    category_id: Optional[str] = None
    priority_id: Optional[str] = None
    system_id: Optional[str] = None
    subject: str
    description: str
    team_id: Optional[str] = None
    assignee_id: Optional[str] = None
    status: TicketStatus = TicketStatus.NEW
    version: int = 1
    created_at: datetime
    updated_at: datetime
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    created_by_staff_id: Optional[str] = None
    source_ip: Optional[str] = None
    user_agent: Optional[str] = None

    def audit_snapshot(self) -> dict:
        """Fields worth keeping in before/after audit payloads."""
        return self.model_dump(
            mode="json",
            include={
                "status",
                "team_id",
                "assignee_id",
                "priority_id",
                "category_id",
                "system_id",
                "resolved_at",
                "closed_at",
            },
        )


class StatusLogEntry(BaseModel):
    """One status transition; ``from_status`` is None only for the first entry."""

    id: str
    ticket_id: str
    sequence: int
    from_status: Optional[TicketStatus] = None
    to_status: TicketStatus
    note: Optional[str] = None
    changed_by: Optional[str] = None
    created_at: datetime


class Attachment(BaseModel):
    """Reference to a file already stored by the upload service."""

    file_url: str = Field(min_length=1, max_length=1024)
    file_name: str = Field(min_length=1, max_length=255)
    mime_type: str = Field(min_length=1, max_length=128)
    size_bytes: int = Field(ge=0)


class Comment(BaseModel):
    id: str
    ticket_id: str
    author_type: AuthorType
    visibility: CommentVisibility = CommentVisibility.PUBLIC
    message: str
    staff_id: Optional[str] = None
    created_at: datetime


class Survey(BaseModel):
    rating: int
    feedback: Optional[str] = None
    created_at: datetime


_EMPLOYEE_CODE = re.compile(r"^[0-9]{7}$")
_PHONE = re.compile(r"^[0-9]{9,10}$")
_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _check_employee_code(value: str) -> str:
    cleaned = (value or "").strip()
    if not _EMPLOYEE_CODE.match(cleaned):
        raise ValueError("employee code must be exactly 7 digits")
    return cleaned


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


class TicketSubmission(BaseModel):
    """Inbound public report (POST /tickets)."""

    employee_code: str
    full_name: str = Field(min_length=2, max_length=120)
    email: Optional[str] = None
    phone: Optional[str] = None
    bureau: str = Field(min_length=1)
    division: str = Field(min_length=1)
    department: str = Field(min_length=1)
    org_unit_id: Optional[str] = None
    category_id: Optional[str] = None
    priority_id: Optional[str] = None
    system_id: Optional[str] = None
    subject: str = Field(min_length=5, max_length=150)
    description: str = Field(min_length=10, max_length=4000)
    attachments: List[Attachment] = Field(default_factory=list, max_length=5)

    @field_validator("employee_code")
    @classmethod
    def validate_employee_code(cls, value: str) -> str:
        return _check_employee_code(value)

    @field_validator("full_name", "bureau", "division", "department", "subject", "description",
                     mode="before")
    @classmethod
    def strip_text(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("email", mode="before")
    @classmethod
    def validate_email(cls, value):
        value = _blank_to_none(value)
        if value is not None and not _EMAIL.match(value):
            raise ValueError("invalid e-mail address")
        return value

    @field_validator("phone", mode="before")
    @classmethod
    def validate_phone(cls, value):
        value = _blank_to_none(value)
        if value is not None and not _PHONE.match(value):
            raise ValueError("phone number must be 9-10 digits")
        return value

    @field_validator("org_unit_id", "category_id", "priority_id", "system_id", mode="before")
    @classmethod
    def blank_ids(cls, value):
        return _blank_to_none(value)


class StaffTicketSubmission(TicketSubmission):
    """Ticket keyed in by staff (POST /admin/tickets); may pin team/assignee."""

    team_id: Optional[str] = None
    assignee_id: Optional[str] = None


class TrackRequest(BaseModel):
    ticket_code: str
    employee_code: str

    @field_validator("ticket_code")
    @classmethod
    def validate_ticket_code(cls, value: str) -> str:
        if not is_valid_ticket_code(value):
            raise ValueError("invalid ticket code format (example: IT-AB12CD)")
        return normalize_ticket_code(value)

    @field_validator("employee_code")
    @classmethod
    def validate_employee_code(cls, value: str) -> str:
        return _check_employee_code(value)


class UserCommentRequest(TrackRequest):
    message: str = Field(min_length=1, max_length=2000)


class SurveyRequest(TrackRequest):
    rating: int = Field(ge=1, le=5)
    feedback: Optional[str] = Field(default=None, max_length=1000)


class StatusChangeRequest(BaseModel):
    status: TicketStatus
    note: Optional[str] = Field(default=None, max_length=2000)


class AssignmentRequest(BaseModel):
    team_id: Optional[str] = None
    assignee_id: Optional[str] = None

    @field_validator("team_id", "assignee_id", mode="before")
    @classmethod
    def blank_ids(cls, value):
        return _blank_to_none(value)

    @model_validator(mode="after")
    def require_target(self):
        if not self.team_id and not self.assignee_id:
            raise ValueError("team_id or assignee_id is required")
        return self


class StaffCommentRequest(BaseModel):
    message: str = Field(min_length=1, max_length=2000)
    visibility: CommentVisibility = CommentVisibility.PUBLIC


class TicketCreated(BaseModel):
    """Opaque success payload returned to the submitter."""

    success: bool = True
    ticket_code: str
    message: str


class PublicComment(BaseModel):
    author_type: AuthorType
    author_name: str
    message: str
    created_at: datetime


class PublicStatusEntry(BaseModel):
    """Status history as shown to the submitter; staff ids stay internal."""

    from_status: Optional[TicketStatus] = None
    to_status: TicketStatus
    note: Optional[str] = None
    created_at: datetime


class TrackingView(BaseModel):
    """What a submitter sees after proving identity."""

    ticket_code: str
    status: TicketStatus
    subject: str
    description: str
    full_name: str
    employee_code_masked: str
    bureau: str
    division: str
    department: str
    category: Optional[str] = None
    priority: Optional[str] = None
    assignee: Optional[str] = None
    attachments: List[Attachment] = Field(default_factory=list)
    comments: List[PublicComment] = Field(default_factory=list)
    status_logs: List[PublicStatusEntry] = Field(default_factory=list)
    survey: Optional[Survey] = None
    can_submit_survey: bool = False
    created_at: datetime
    updated_at: datetime
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
