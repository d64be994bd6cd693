"""Append-only audit log storage. There is deliberately no update or delete."""

from typing import List, Optional

from sqlalchemy import insert, select
from sqlalchemy.engine import Engine

from models.audit import AuditLogEntry
from repositories.schema import audit_logs
from utils.clock import as_utc


class AuditRepository:
    def __init__(self, engine: Engine):
        self.engine = engine

    def append(self, entry: AuditLogEntry) -> None:
        row = entry.model_dump(mode="json")
        row["created_at"] = entry.created_at
        with self.engine.begin() as conn:
            conn.execute(insert(audit_logs).values(**row))

    def for_entity(self, entity_type: str, entity_id: str) -> List[AuditLogEntry]:
        stmt = (
            select(audit_logs)
            .where(audit_logs.c.entity_type == entity_type, audit_logs.c.entity_id == entity_id)
            .order_by(audit_logs.c.created_at.asc())
        )
        return self._fetch(stmt)

    def recent(self, limit: int = 100, action: Optional[str] = None) -> List[AuditLogEntry]:
        stmt = select(audit_logs)
        if action:
            stmt = stmt.where(audit_logs.c.action == action)
        return self._fetch(stmt.order_by(audit_logs.c.created_at.desc()).limit(limit))

    def _fetch(self, stmt) -> List[AuditLogEntry]:
        with self.engine.connect() as conn:
            rows = [dict(r._mapping) for r in conn.execute(stmt)]
        for row in rows:
            row["created_at"] = as_utc(row["created_at"])
        return [AuditLogEntry.model_validate(row) for row in rows]
