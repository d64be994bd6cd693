"""Ticket aggregate persistence: tickets plus their owned logs, comments and files."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func, insert, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from models.ticket import (
    Attachment,
    Comment,
    CommentVisibility,
    StatusLogEntry,
    Survey,
    Ticket,
    TicketStatus,
)
from repositories.schema import (
    satisfaction_surveys,
    ticket_attachments,
    ticket_comments,
    ticket_status_logs,
    tickets,
)
from utils.clock import as_utc
from utils.error_handling import ConcurrentUpdateError

_TICKET_DATETIMES = ("created_at", "updated_at", "resolved_at", "closed_at")


class TicketCodeConflictError(Exception):
    """Insert hit the unique ticket_code constraint."""


def _row_dict(row, datetime_fields: Iterable[str] = ("created_at",)) -> Dict[str, Any]:
    data = dict(row._mapping)
    for name in datetime_fields:
        if name in data:
            data[name] = as_utc(data[name])
    return data


class TicketRepository:
    """Keyed-record store for tickets, addressable by id or public code."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def code_exists(self, ticket_code: str) -> bool:
        stmt = select(tickets.c.id).where(tickets.c.ticket_code == ticket_code)
        with self.engine.connect() as conn:
            return conn.execute(stmt).first() is not None

    def create(
        self,
        ticket: Ticket,
        initial_log: StatusLogEntry,
        attachments: Optional[List[Attachment]] = None,
    ) -> None:
        """Insert the ticket, its first status entry and attachments atomically."""
        row = ticket.model_dump()
        row["status"] = ticket.status.value
        try:
            with self.engine.begin() as conn:
                conn.execute(insert(tickets).values(**row))
                conn.execute(insert(ticket_status_logs).values(**self._log_row(initial_log)))
                for attachment in attachments or []:
                    conn.execute(
                        insert(ticket_attachments).values(
                            id=str(uuid.uuid4()),
                            ticket_id=ticket.id,
                            created_at=ticket.created_at,
                            **attachment.model_dump(),
                        )
                    )
        except IntegrityError as exc:
            raise TicketCodeConflictError(ticket.ticket_code) from exc

    def get(self, ticket_id: str) -> Optional[Ticket]:
        return self._fetch_ticket(tickets.c.id == ticket_id)

    def get_by_code(self, ticket_code: str) -> Optional[Ticket]:
        return self._fetch_ticket(tickets.c.ticket_code == ticket_code)

    def list_by_status(self, statuses: Iterable[TicketStatus]) -> List[Ticket]:
        """Tickets in the given statuses, oldest first."""
        stmt = (
            select(tickets)
            .where(tickets.c.status.in_([s.value for s in statuses]))
            .order_by(tickets.c.created_at.asc(), tickets.c.id.asc())
        )
        with self.engine.connect() as conn:
            return [Ticket.model_validate(_row_dict(r, _TICKET_DATETIMES)) for r in conn.execute(stmt)]

    def apply_transition(
        self,
        ticket_id: str,
        expected_version: int,
        changes: Dict[str, Any],
        log_entry: StatusLogEntry,
    ) -> StatusLogEntry:
        """
        Update the ticket and append the status entry in one transaction.

        The version check serializes writers on a single ticket; the loser
        gets ConcurrentUpdateError and nothing is written.
        """
        values = dict(changes)
        if "status" in values and isinstance(values["status"], TicketStatus):
            values["status"] = values["status"].value
        with self.engine.begin() as conn:
            self._bump_version(conn, ticket_id, expected_version, values)
            next_sequence = conn.execute(
                select(func.coalesce(func.max(ticket_status_logs.c.sequence), 0) + 1).where(
                    ticket_status_logs.c.ticket_id == ticket_id
                )
            ).scalar_one()
            entry = log_entry.model_copy(update={"sequence": next_sequence})
            conn.execute(insert(ticket_status_logs).values(**self._log_row(entry)))
        return entry

    def update_assignment(
        self,
        ticket_id: str,
        expected_version: int,
        team_id: Optional[str],
        assignee_id: Optional[str],
        now: datetime,
    ) -> None:
        with self.engine.begin() as conn:
            self._bump_version(
                conn,
                ticket_id,
                expected_version,
                {"team_id": team_id, "assignee_id": assignee_id, "updated_at": now},
            )

    def status_logs(self, ticket_id: str) -> List[StatusLogEntry]:
        stmt = (
            select(ticket_status_logs)
            .where(ticket_status_logs.c.ticket_id == ticket_id)
            .order_by(ticket_status_logs.c.sequence.asc())
        )
        with self.engine.connect() as conn:
            return [StatusLogEntry.model_validate(_row_dict(r)) for r in conn.execute(stmt)]

    def attachments(self, ticket_id: str) -> List[Attachment]:
        stmt = (
            select(ticket_attachments)
            .where(ticket_attachments.c.ticket_id == ticket_id)
            .order_by(ticket_attachments.c.created_at.asc())
        )
        with self.engine.connect() as conn:
            return [Attachment.model_validate(dict(r._mapping)) for r in conn.execute(stmt)]

    def add_comment(self, comment: Comment) -> None:
        row = comment.model_dump()
        row["author_type"] = comment.author_type.value
        row["visibility"] = comment.visibility.value
        with self.engine.begin() as conn:
            conn.execute(insert(ticket_comments).values(**row))

    def comments(
        self, ticket_id: str, visibility: Optional[CommentVisibility] = None
    ) -> List[Comment]:
        stmt = select(ticket_comments).where(ticket_comments.c.ticket_id == ticket_id)
        if visibility is not None:
            stmt = stmt.where(ticket_comments.c.visibility == visibility.value)
        stmt = stmt.order_by(ticket_comments.c.created_at.asc())
        with self.engine.connect() as conn:
            return [Comment.model_validate(_row_dict(r)) for r in conn.execute(stmt)]

    def get_survey(self, ticket_id: str) -> Optional[Survey]:
        stmt = select(satisfaction_surveys).where(satisfaction_surveys.c.ticket_id == ticket_id)
        with self.engine.connect() as conn:
            row = conn.execute(stmt).first()
        return Survey.model_validate(_row_dict(row)) if row else None

    def add_survey(
        self, ticket_id: str, rating: int, feedback: Optional[str], now: datetime
    ) -> bool:
        """False when a survey already exists for the ticket."""
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    insert(satisfaction_surveys).values(
                        id=str(uuid.uuid4()),
                        ticket_id=ticket_id,
                        rating=rating,
                        feedback=feedback,
                        created_at=now,
                    )
                )
        except IntegrityError:
            return False
        return True

    def _fetch_ticket(self, clause) -> Optional[Ticket]:
        with self.engine.connect() as conn:
            row = conn.execute(select(tickets).where(clause)).first()
        return Ticket.model_validate(_row_dict(row, _TICKET_DATETIMES)) if row else None

    @staticmethod
    def _bump_version(conn, ticket_id: str, expected_version: int, values: Dict[str, Any]) -> None:
        result = conn.execute(
            update(tickets)
            .where(tickets.c.id == ticket_id, tickets.c.version == expected_version)
            .values(version=expected_version + 1, **values)
        )
        if result.rowcount != 1:
            raise ConcurrentUpdateError()

    @staticmethod
    def _log_row(entry: StatusLogEntry) -> Dict[str, Any]:
        row = entry.model_dump()
        row["from_status"] = entry.from_status.value if entry.from_status else None
        row["to_status"] = entry.to_status.value
        return row
