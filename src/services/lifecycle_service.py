"""
Ticket status state machine.

NEW -> IN_PROGRESS -> WAITING_USER -> RESOLVED -> CLOSED, with REJECTED
reachable from anywhere. The graph is intentionally permissive (staff re-open
and reject late); ``is_transition_accepted`` is the single place to tighten it.
Every accepted change appends one status entry and one audit entry.
"""

from __future__ import annotations

import uuid
from typing import Optional

from models.ticket import StatusLogEntry, Ticket, TicketStatus
from repositories.ticket_repo import TicketRepository
from services.audit_service import AuditRecorder
from utils.clock import Clock, utc_now
from utils.error_handling import InvalidTransitionError
from utils.logging_config import get_logger

logger = get_logger(__name__)

INITIAL_NOTE = "Ticket created"


def is_transition_accepted(current: TicketStatus, new: TicketStatus) -> bool:
    """Every move between known statuses is currently allowed."""
    return isinstance(current, TicketStatus) and isinstance(new, TicketStatus)


def initial_entry(ticket: Ticket, note: str = INITIAL_NOTE,
                  actor_id: Optional[str] = None) -> StatusLogEntry:
    """Synthetic first entry written together with the ticket."""
    return StatusLogEntry(
        id=str(uuid.uuid4()),
        ticket_id=ticket.id,
        sequence=1,
        from_status=None,
        to_status=TicketStatus.NEW,
        note=note,
        changed_by=actor_id,
        created_at=ticket.created_at,
    )


class TicketLifecycle:
    def __init__(
        self,
        repository: TicketRepository,
        audit: AuditRecorder,
        clock: Clock = utc_now,
    ):
        self.repository = repository
        self.audit = audit
        self.clock = clock

    def transition(
        self,
        ticket: Ticket,
        new_status: TicketStatus,
        note: Optional[str] = None,
        actor_id: Optional[str] = None,
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Optional[StatusLogEntry]:
        """
        Move ``ticket`` to ``new_status``.

        Returns the appended entry, or None for a same-status no-op (nothing is
        written, not even an audit entry). Raises ConcurrentUpdateError when
        ``ticket`` is stale.
        """
        current = ticket.status
        if new_status == current:
            return None
        if not is_transition_accepted(current, new_status):
            raise InvalidTransitionError(f"{current.value} -> {new_status.value} is not allowed")

        now = self.clock()
        changes = {"status": new_status, "updated_at": now}
        # First-reached timestamps; moving away later never clears them.
        if new_status == TicketStatus.RESOLVED and ticket.resolved_at is None:
            changes["resolved_at"] = now
        if new_status == TicketStatus.CLOSED and ticket.closed_at is None:
            changes["closed_at"] = now

        entry = self.repository.apply_transition(
            ticket.id,
            ticket.version,
            changes,
            StatusLogEntry(
                id=str(uuid.uuid4()),
                ticket_id=ticket.id,
                sequence=0,
                from_status=current,
                to_status=new_status,
                note=note,
                changed_by=actor_id,
                created_at=now,
            ),
        )

        updated = ticket.model_copy(update={**changes, "version": ticket.version + 1})
        self.audit.ticket_updated(
            ticket.id,
            before=ticket.audit_snapshot(),
            after={**updated.audit_snapshot(), "note": note},
            actor_id=actor_id,
            ip=ip,
            user_agent=user_agent,
        )
        logger.info(
            "Ticket status changed",
            extra={
                "ticket_code": ticket.ticket_code,
                "from_status": current.value,
                "to_status": new_status.value,
                "sequence": entry.sequence,
            },
        )
        return entry
