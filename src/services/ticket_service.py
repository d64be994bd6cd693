"""
Ticket orchestration.

Public intake runs: intake guard -> code allocation -> assignment -> durable
create (ticket + first status entry) -> audit -> notification. Staff actions
go through the lifecycle, then audit, then notification. Audit and
notification failures never reach the caller.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Callable, List, Optional

from config.settings import Settings
from models.audit import AuditAction
from models.notification import NotificationChannel, NotificationEvent, NotificationSettings
from models.sla import SLAReport
from models.ticket import (
    OPEN_STATUSES,
    SURVEY_STATUSES,
    AssignmentRequest,
    AuthorType,
    Comment,
    CommentVisibility,
    PublicComment,
    PublicStatusEntry,
    StaffCommentRequest,
    StaffTicketSubmission,
    StatusChangeRequest,
    Survey,
    SurveyRequest,
    Ticket,
    TicketStatus,
    TicketSubmission,
    TrackingView,
    TrackRequest,
    UserCommentRequest,
)
from repositories.audit_repo import AuditRepository
from repositories.config_repo import ConfigRepository
from repositories.database import create_schema, get_db_engine
from repositories.notification_repo import NotificationRepository
from repositories.ticket_repo import TicketCodeConflictError, TicketRepository
from services.assignment_service import AssignmentResolver
from services.audit_service import AuditRecorder
from services.directory import Directory, StaticDirectory
from services.intake_guard import Admission, IntakeGuard
from services.lifecycle_service import TicketLifecycle, initial_entry
from services.notification_service import LambdaHandoff, NotificationDispatcher
from services.sla_service import SLAEvaluator
from utils.clock import Clock, utc_now
from utils.error_handling import (
    CodeGenerationError,
    DuplicateSubmissionError,
    NotFoundError,
    RateLimitedError,
    SurveyExistsError,
    SurveyNotAllowedError,
)
from utils.identity import (
    decrypt_employee_code,
    encrypt_employee_code,
    hash_employee_code,
    mask_employee_code,
    submission_fingerprint,
    verify_employee_code,
)
from utils.logging_config import get_logger
from utils.ticket_code import generate_ticket_code

logger = get_logger(__name__)

STAFF_DISPLAY_NAME = "IT Staff"


class TicketService:
    def __init__(
        self,
        settings: Settings,
        tickets: TicketRepository,
        config: ConfigRepository,
        audit: AuditRecorder,
        guard: IntakeGuard,
        notifier: NotificationDispatcher,
        directory: Directory,
        sla: Optional[SLAEvaluator] = None,
        clock: Clock = utc_now,
        code_generator: Callable[[str], str] = generate_ticket_code,
    ):
        self.settings = settings
        self.tickets = tickets
        self.config = config
        self.audit = audit
        self.guard = guard
        self.notifier = notifier
        self.directory = directory
        self.sla = sla or SLAEvaluator(
            settings.sla_default_response_minutes,
            settings.sla_default_resolve_minutes,
            settings.sla_at_risk_percent,
        )
        self.clock = clock
        self.code_generator = code_generator
        self.lifecycle = TicketLifecycle(tickets, audit, clock)
        self.resolver = AssignmentResolver(config, directory.is_team_active)

    # Intake -----------------------------------------------------------------

    def submit(
        self,
        submission: TicketSubmission,
        source_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Ticket:
        """
        Admit and create a public report. Raises RateLimitedError / DuplicateSubmissionError.

        If creation fails after admission the duplicate claim is released.
        """
        identity_hash = hash_employee_code(
            submission.employee_code, self.settings.employee_code_hmac_key
        )
        fingerprint = submission_fingerprint(
            identity_hash, submission.subject, submission.description
        )
        admission = self.guard.admit(source_ip or "unknown", fingerprint)
        if admission == Admission.RATE_LIMITED:
            raise RateLimitedError()
        if admission == Admission.DUPLICATE:
            raise DuplicateSubmissionError()

        try:
            team_id = self.resolver.resolve(submission.system_id, submission.category_id)
            return self._create(
                submission,
                identity_hash,
                team_id=team_id,
                assignee_id=None,
                actor_id=None,
                source_ip=source_ip,
                user_agent=user_agent,
            )
        except Exception:
            # Nothing was stored, so the same report must stay retryable.
            self.guard.release(fingerprint)
            raise

    def create_by_staff(
        self,
        submission: StaffTicketSubmission,
        actor_id: str,
        source_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Ticket:
        """Staff keyed-in ticket: no intake guard; explicit team overrides the rules."""
        identity_hash = hash_employee_code(
            submission.employee_code, self.settings.employee_code_hmac_key
        )
        team_id = submission.team_id or self.resolver.resolve(
            submission.system_id, submission.category_id
        )
        return self._create(
            submission,
            identity_hash,
            team_id=team_id,
            assignee_id=submission.assignee_id,
            actor_id=actor_id,
            source_ip=source_ip,
            user_agent=user_agent,
        )

    def _create(
        self,
        submission: TicketSubmission,
        identity_hash: str,
        team_id: Optional[str],
        assignee_id: Optional[str],
        actor_id: Optional[str],
        source_ip: Optional[str],
        user_agent: Optional[str],
    ) -> Ticket:
        now = self.clock()
        max_attempts = self.settings.ticket_code_max_attempts
        ticket = None
        for attempt in range(1, max_attempts + 1):
            code = self.code_generator(self.settings.ticket_code_prefix)
            if self.tickets.code_exists(code):
                logger.warning("Ticket code collision", extra={"attempt": attempt})
                continue
            candidate = Ticket(
                id=str(uuid.uuid4()),
                ticket_code=code,
                employee_code_hash=identity_hash,
                employee_code_masked=mask_employee_code(submission.employee_code),
                employee_code_encrypted=encrypt_employee_code(
                    submission.employee_code, self.settings.employee_code_enc_key
                ),
                full_name=submission.full_name,
                email=submission.email,
                phone=submission.phone,
                bureau=submission.bureau,
                division=submission.division,
                department=submission.department,
                org_unit_id=submission.org_unit_id,
                category_id=submission.category_id,
                priority_id=submission.priority_id,
                system_id=submission.system_id,
                subject=submission.subject,
                description=submission.description,
                team_id=team_id,
                assignee_id=assignee_id,
                status=TicketStatus.NEW,
                created_at=now,
                updated_at=now,
                created_by_staff_id=actor_id,
                source_ip=source_ip,
                user_agent=user_agent,
            )
            try:
                self.tickets.create(
                    candidate, initial_entry(candidate, actor_id=actor_id), submission.attachments
                )
            except TicketCodeConflictError:
                # Lost the race between the existence check and the insert.
                logger.warning("Ticket code taken at insert", extra={"attempt": attempt})
                continue
            ticket = candidate
            break

        if ticket is None:
            logger.error(
                "Ticket code allocation exhausted", extra={"max_attempts": max_attempts}
            )
            raise CodeGenerationError()

        logger.info(
            "Ticket created",
            extra={
                "ticket_code": ticket.ticket_code,
                "team_id": team_id,
                "staff_created": actor_id is not None,
            },
        )
        self.audit.ticket_created(
            ticket.id,
            {**ticket.audit_snapshot(), "ticket_code": ticket.ticket_code},
            actor_id=actor_id,
            ip=source_ip,
            user_agent=user_agent,
        )
        recipients = self.directory.team_recipients(ticket.team_id)
        self._notify(NotificationEvent.TICKET_CREATED, ticket, recipients)
        return ticket

    # Submitter self-service ---------------------------------------------------

    def _authenticate(self, request: TrackRequest) -> Ticket:
        ticket = self.tickets.get_by_code(request.ticket_code)
        # Same error whether the code is unknown or the employee code is wrong.
        if ticket is None or not verify_employee_code(
            request.employee_code, ticket.employee_code_hash, self.settings.employee_code_hmac_key
        ):
            raise NotFoundError("Ticket not found or employee code does not match")
        return ticket

    def track(self, request: TrackRequest) -> TrackingView:
        ticket = self._authenticate(request)
        survey = self.tickets.get_survey(ticket.id)
        profile = self.config.get_priority(ticket.priority_id)
        comments = [
            PublicComment(
                author_type=c.author_type,
                author_name=self._author_name(ticket, c),
                message=c.message,
                created_at=c.created_at,
            )
            for c in self.tickets.comments(ticket.id, CommentVisibility.PUBLIC)
        ]
        return TrackingView(
            ticket_code=ticket.ticket_code,
            status=ticket.status,
            subject=ticket.subject,
            description=ticket.description,
            full_name=ticket.full_name,
            employee_code_masked=ticket.employee_code_masked,
            bureau=ticket.bureau,
            division=ticket.division,
            department=ticket.department,
            category=self.directory.category_name(ticket.category_id),
            priority=profile.name if profile else None,
            assignee=self.directory.staff_name(ticket.assignee_id),
            attachments=self.tickets.attachments(ticket.id),
            comments=comments,
            status_logs=[
                PublicStatusEntry(
                    from_status=entry.from_status,
                    to_status=entry.to_status,
                    note=entry.note,
                    created_at=entry.created_at,
                )
                for entry in self.tickets.status_logs(ticket.id)
            ],
            survey=survey,
            can_submit_survey=ticket.status in SURVEY_STATUSES and survey is None,
            created_at=ticket.created_at,
            updated_at=ticket.updated_at,
            resolved_at=ticket.resolved_at,
            closed_at=ticket.closed_at,
        )

    def add_user_comment(
        self,
        request: UserCommentRequest,
        source_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Comment:
        ticket = self._authenticate(request)
        return self._add_comment(
            ticket,
            request.message,
            AuthorType.USER,
            CommentVisibility.PUBLIC,
            staff_id=None,
            source_ip=source_ip,
            user_agent=user_agent,
        )

    def submit_survey(
        self,
        request: SurveyRequest,
        source_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Survey:
        ticket = self._authenticate(request)
        if ticket.status not in SURVEY_STATUSES:
            raise SurveyNotAllowedError()
        now = self.clock()
        if not self.tickets.add_survey(ticket.id, request.rating, request.feedback, now):
            raise SurveyExistsError()
        self.audit.record(
            AuditAction.SUBMIT_SURVEY,
            entity_type="ticket",
            entity_id=ticket.id,
            after={"rating": request.rating, "feedback": request.feedback},
            ip=source_ip,
            user_agent=user_agent,
        )
        logger.info(
            "Survey submitted", extra={"ticket_code": ticket.ticket_code, "rating": request.rating}
        )
        return Survey(rating=request.rating, feedback=request.feedback, created_at=now)

    # Staff actions ----------------------------------------------------------

    def get_ticket(self, ticket_id: str) -> Ticket:
        ticket = self.tickets.get(ticket_id)
        if ticket is None:
            raise NotFoundError("Ticket not found")
        return ticket

    def change_status(
        self,
        ticket_id: str,
        request: StatusChangeRequest,
        actor_id: Optional[str] = None,
        source_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Ticket:
        ticket = self.get_ticket(ticket_id)
        entry = self.lifecycle.transition(
            ticket, request.status, request.note, actor_id, source_ip, user_agent
        )
        updated = self.get_ticket(ticket_id)
        if entry is not None:
            self._notify(
                NotificationEvent.TICKET_STATUS_CHANGED, updated, self._followers(updated)
            )
        return updated

    def assign(
        self,
        ticket_id: str,
        request: AssignmentRequest,
        actor_id: Optional[str] = None,
        source_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Ticket:
        """
        Move a ticket to a team and/or staff member.

        Omitted targets keep their current value. Assigning a NEW ticket starts
        work on it, with a status note naming the new team/assignee.
        """
        if request.team_id and not self.directory.has_team(request.team_id):
            raise NotFoundError("Team not found")
        if request.assignee_id and not self.directory.has_staff(request.assignee_id):
            raise NotFoundError("Staff member not found")
        ticket = self.get_ticket(ticket_id)
        team_id = request.team_id or ticket.team_id
        assignee_id = request.assignee_id or ticket.assignee_id
        self.tickets.update_assignment(ticket.id, ticket.version, team_id, assignee_id, self.clock())
        self.audit.record(
            AuditAction.ASSIGN_TICKET,
            entity_type="ticket",
            entity_id=ticket.id,
            before={"team_id": ticket.team_id, "assignee_id": ticket.assignee_id},
            after={"team_id": team_id, "assignee_id": assignee_id},
            actor_id=actor_id,
            ip=source_ip,
            user_agent=user_agent,
        )
        logger.info(
            "Ticket assigned",
            extra={"ticket_code": ticket.ticket_code, "team_id": team_id, "assignee_id": assignee_id},
        )

        if ticket.status == TicketStatus.NEW:
            return self.change_status(
                ticket.id,
                StatusChangeRequest(
                    status=TicketStatus.IN_PROGRESS, note=self._assignment_note(request)
                ),
                actor_id,
                source_ip,
                user_agent,
            )
        return self.get_ticket(ticket_id)

    def add_staff_comment(
        self,
        ticket_id: str,
        request: StaffCommentRequest,
        actor_id: str,
        source_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Comment:
        ticket = self.get_ticket(ticket_id)
        return self._add_comment(
            ticket,
            request.message,
            AuthorType.STAFF,
            request.visibility,
            staff_id=actor_id,
            source_ip=source_ip,
            user_agent=user_agent,
        )

    def reveal_employee_code(
        self,
        ticket_id: str,
        actor_id: str,
        source_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> str:
        """Decrypt the submitter's employee code for staff; every read is audited."""
        ticket = self.get_ticket(ticket_id)
        code = decrypt_employee_code(
            ticket.employee_code_encrypted, self.settings.employee_code_enc_key
        )
        if code is None:
            raise NotFoundError("Employee code is not available for this ticket")
        self.audit.record(
            AuditAction.VIEW_EMPLOYEE_CODE,
            entity_type="ticket",
            entity_id=ticket.id,
            actor_id=actor_id,
            ip=source_ip,
            user_agent=user_agent,
        )
        return code

    def sla_report(self, now: Optional[datetime] = None) -> SLAReport:
        return self.sla.build_report(
            self.tickets.list_by_status(OPEN_STATUSES),
            self.config.get_priority,
            now or self.clock(),
            team_name=self.directory.team_name,
            staff_name=self.directory.staff_name,
        )

    def test_channel(self, channel: NotificationChannel) -> bool:
        return self.notifier.test_channel(channel)

    # Internals ----------------------------------------------------------------

    def _add_comment(
        self,
        ticket: Ticket,
        message: str,
        author_type: AuthorType,
        visibility: CommentVisibility,
        staff_id: Optional[str],
        source_ip: Optional[str],
        user_agent: Optional[str],
    ) -> Comment:
        comment = Comment(
            id=str(uuid.uuid4()),
            ticket_id=ticket.id,
            author_type=author_type,
            visibility=visibility,
            message=message,
            staff_id=staff_id,
            created_at=self.clock(),
        )
        self.tickets.add_comment(comment)
        self.audit.record(
            AuditAction.ADD_COMMENT,
            entity_type="ticket",
            entity_id=ticket.id,
            after={
                "comment_id": comment.id,
                "author_type": author_type.value,
                "visibility": visibility.value,
            },
            actor_id=staff_id,
            ip=source_ip,
            user_agent=user_agent,
        )
        if visibility == CommentVisibility.PUBLIC:
            self._notify(
                NotificationEvent.COMMENT_ADDED, ticket, self._followers(ticket), comment=message
            )
        return comment

    def _author_name(self, ticket: Ticket, comment: Comment) -> str:
        if comment.author_type == AuthorType.USER:
            return ticket.full_name
        return self.directory.staff_name(comment.staff_id) or STAFF_DISPLAY_NAME

    def _assignment_note(self, request: AssignmentRequest) -> str:
        parts = []
        if request.team_id:
            parts.append(f"Transferred to team {self.directory.team_name(request.team_id)}")
        if request.assignee_id:
            parts.append(f"Assigned to {self.directory.staff_name(request.assignee_id)}")
        return ", ".join(parts)

    def _followers(self, ticket: Ticket) -> List[str]:
        recipients = self.directory.team_recipients(ticket.team_id)
        if ticket.email:
            recipients.append(ticket.email)
        return recipients

    def _notify(
        self,
        event: NotificationEvent,
        ticket: Ticket,
        recipients: List[str],
        comment: Optional[str] = None,
    ) -> None:
        try:
            profile = self.config.get_priority(ticket.priority_id)
            variables = self.notifier.build_variables(
                ticket,
                category=self.directory.category_name(ticket.category_id),
                priority=profile.name if profile else None,
                assignee_name=self.directory.staff_name(ticket.assignee_id),
                comment=comment,
            )
            self.notifier.notify(event, variables, recipients, ticket_id=ticket.id)
        except Exception:
            logger.exception(
                "Failed to queue notifications",
                extra={"event": event.value, "ticket_code": ticket.ticket_code},
            )


def build_ticket_service(
    settings: Optional[Settings] = None,
    settings_provider: Callable[[], NotificationSettings] = NotificationSettings.from_environment,
) -> TicketService:
    """Wire the service graph from settings (used by the Lambda handlers)."""
    settings = settings or Settings.from_environment()
    engine = get_db_engine(settings)
    create_schema(engine)
    audit = AuditRecorder(AuditRepository(engine))
    handoff = (
        LambdaHandoff(settings.notification_worker_function)
        if settings.notification_worker_function
        else None
    )
    notifier = NotificationDispatcher(
        NotificationRepository(engine),
        settings_provider=settings_provider,
        max_workers=settings.notification_max_workers,
        timeout_seconds=settings.notification_timeout_seconds,
        public_base_url=settings.public_base_url,
        display_timezone=settings.display_timezone,
        handoff=handoff,
    )
    return TicketService(
        settings=settings,
        tickets=TicketRepository(engine),
        config=ConfigRepository(engine),
        audit=audit,
        guard=IntakeGuard.from_settings(settings),
        notifier=notifier,
        directory=StaticDirectory.from_settings(settings),
    )
