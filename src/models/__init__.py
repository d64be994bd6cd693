"""Pydantic models for entities and API payloads."""

from models.audit import AuditAction, AuditLogEntry  # noqa: F401
from models.configuration import AssignmentRule, PriorityProfile  # noqa: F401
from models.notification import (  # noqa: F401
    NotificationChannel,
    NotificationEvent,
    NotificationRecord,
    NotificationSettings,
    NotificationStatus,
    NotificationTemplate,
    TemplateVariables,
)
from models.response import ApiResponse  # noqa: F401
from models.sla import SLABucket, SLAReport, SLAReportRow, SLASummary, SLAView  # noqa: F401
from models.ticket import (  # noqa: F401
    AssignmentRequest,
    Attachment,
    AuthorType,
    Comment,
    CommentVisibility,
    StaffCommentRequest,
    StaffTicketSubmission,
    StatusChangeRequest,
    StatusLogEntry,
    SurveyRequest,
    Ticket,
    TicketCreated,
    TicketStatus,
    TicketSubmission,
    TrackingView,
    TrackRequest,
    UserCommentRequest,
)
