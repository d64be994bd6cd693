"""Table definitions for the core's own entities (SQLAlchemy Core)."""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
)

metadata = MetaData()

tickets = Table(
    "tickets",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("ticket_code", String(16), nullable=False, unique=True),
    Column("employee_code_hash", String(64), nullable=False, index=True),
    Column("employee_code_masked", String(16), nullable=False),
    Column("employee_code_encrypted", String(128)),
    Column("full_name", String(120), nullable=False),
    Column("email", String(255)),
    Column("phone", String(16)),
    Column("bureau", String(255), nullable=False),
    Column("division", String(255), nullable=False),
    Column("department", String(255), nullable=False),
    Column("org_unit_id", String(64)),
    Column("category_id", String(64)),
    # Weak reference: a deleted profile degrades to SLA defaults.
    Column("priority_id", String(64)),
    Column("system_id", String(64)),
    Column("subject", String(150), nullable=False),
    Column("description", Text, nullable=False),
    Column("team_id", String(64)),
    Column("assignee_id", String(64)),
    Column("status", String(16), nullable=False),
    Column("version", Integer, nullable=False, default=1),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    Column("resolved_at", DateTime(timezone=True)),
    Column("closed_at", DateTime(timezone=True)),
    Column("created_by_staff_id", String(64)),
    Column("source_ip", String(64)),
    Column("user_agent", String(512)),
)
Index("ix_tickets_status_created", tickets.c.status, tickets.c.created_at)

ticket_status_logs = Table(
    "ticket_status_logs",
    metadata,
    Column("id", String(36), primary_key=True),
    Column(
        "ticket_id",
        String(36),
        ForeignKey("tickets.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("sequence", Integer, nullable=False),
    Column("from_status", String(16)),
    Column("to_status", String(16), nullable=False),
    Column("note", Text),
    Column("changed_by", String(64)),
    Column("created_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint("ticket_id", "sequence", name="uq_status_log_sequence"),
)

ticket_attachments = Table(
    "ticket_attachments",
    metadata,
    Column("id", String(36), primary_key=True),
    Column(
        "ticket_id",
        String(36),
        ForeignKey("tickets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("file_url", String(1024), nullable=False),
    Column("file_name", String(255), nullable=False),
    Column("mime_type", String(128), nullable=False),
    Column("size_bytes", Integer, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

ticket_comments = Table(
    "ticket_comments",
    metadata,
    Column("id", String(36), primary_key=True),
    Column(
        "ticket_id",
        String(36),
        ForeignKey("tickets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("author_type", String(8), nullable=False),
    Column("visibility", String(8), nullable=False),
    Column("message", Text, nullable=False),
    Column("staff_id", String(64)),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

satisfaction_surveys = Table(
    "satisfaction_surveys",
    metadata,
    Column("id", String(36), primary_key=True),
    Column(
        "ticket_id",
        String(36),
        ForeignKey("tickets.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    ),
    Column("rating", Integer, nullable=False),
    Column("feedback", Text),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

audit_logs = Table(
    "audit_logs",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("actor_id", String(64)),
    Column("action", String(32), nullable=False),
    Column("entity_type", String(32), nullable=False),
    Column("entity_id", String(64)),
    Column("before", JSON),
    Column("after", JSON),
    Column("ip", String(64)),
    Column("user_agent", String(512)),
    Column("created_at", DateTime(timezone=True), nullable=False),
)
Index("ix_audit_logs_entity", audit_logs.c.entity_type, audit_logs.c.entity_id)

notifications = Table(
    "notifications",
    metadata,
    Column("id", String(36), primary_key=True),
    Column(
        "ticket_id",
        String(36),
        ForeignKey("tickets.id", ondelete="CASCADE"),
        index=True,
    ),
    Column("template_name", String(64), nullable=False),
    Column("channel", String(16), nullable=False),
    Column("recipient", String(255), nullable=False),
    Column("subject", Text),
    Column("body", Text),
    Column("status", String(16), nullable=False),
    Column("error", Text),
    Column("sent_at", DateTime(timezone=True)),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

notification_templates = Table(
    "notification_templates",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(64), nullable=False),
    Column("channel", String(16), nullable=False),
    Column("subject", Text),
    Column("body", Text, nullable=False),
    Column("is_active", Boolean, nullable=False, default=True),
    UniqueConstraint("name", "channel", name="uq_template_name_channel"),
)

assignment_rules = Table(
    "assignment_rules",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("team_id", String(64), nullable=False),
    Column("system_id", String(64)),
    Column("category_id", String(64)),
    Column("priority", Integer, nullable=False, default=0),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

priority_profiles = Table(
    "priority_profiles",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("code", String(16), nullable=False, unique=True),
    Column("name", String(120), nullable=False),
    Column("severity", Integer, nullable=False),
    Column("sla_first_response_mins", Integer),
    Column("sla_resolve_mins", Integer),
    Column("is_active", Boolean, nullable=False, default=True),
)
