"""
Audit recorder.

Audit durability is best-effort: a failed write is logged and swallowed so an
audit-store hiccup never loses a legitimate ticket operation.
"""

from __future__ import annotations

import uuid
from typing import Any, Dict, Optional

from models.audit import AuditAction, AuditLogEntry
from repositories.audit_repo import AuditRepository
from utils.clock import Clock, utc_now
from utils.logging_config import get_logger

logger = get_logger(__name__)


class AuditRecorder:
    def __init__(self, repository: AuditRepository, clock: Clock = utc_now):
        self.repository = repository
        self.clock = clock

    def record(
        self,
        action: AuditAction,
        entity_type: str = "system",
        entity_id: Optional[str] = None,
        before: Optional[Dict[str, Any]] = None,
        after: Optional[Dict[str, Any]] = None,
        actor_id: Optional[str] = None,
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Optional[AuditLogEntry]:
        """Append one entry; returns None when the write failed."""
        entry = AuditLogEntry(
            id=str(uuid.uuid4()),
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            before=before,
            after=after,
            actor_id=actor_id,
            ip=ip,
            user_agent=user_agent,
            created_at=self.clock(),
        )
        try:
            self.repository.append(entry)
        except Exception:
            logger.exception(
                "Failed to write audit entry",
                extra={"action": action.value, "entity_type": entity_type, "entity_id": entity_id},
            )
            return None
        return entry

    def ticket_created(self, ticket_id: str, snapshot: Dict[str, Any], actor_id=None, ip=None,
                       user_agent=None) -> Optional[AuditLogEntry]:
        return self.record(
            AuditAction.CREATE_TICKET,
            entity_type="ticket",
            entity_id=ticket_id,
            after=snapshot,
            actor_id=actor_id,
            ip=ip,
            user_agent=user_agent,
        )

    def ticket_updated(self, ticket_id: str, before: Dict[str, Any], after: Dict[str, Any],
                       actor_id=None, ip=None, user_agent=None) -> Optional[AuditLogEntry]:
        return self.record(
            AuditAction.UPDATE_TICKET,
            entity_type="ticket",
            entity_id=ticket_id,
            before=before,
            after=after,
            actor_id=actor_id,
            ip=ip,
            user_agent=user_agent,
        )
