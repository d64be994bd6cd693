"""Read access to admin-owned configuration: assignment rules and priorities."""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy import insert, select
from sqlalchemy.engine import Engine

from models.configuration import AssignmentRule, PriorityProfile
from repositories.schema import assignment_rules, priority_profiles
from utils.clock import as_utc, utc_now


class ConfigRepository:
    """Thin wrapper keeping configuration SQL in one place."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def active_rules(self) -> List[AssignmentRule]:
        stmt = select(assignment_rules).where(assignment_rules.c.is_active.is_(True))
        with self.engine.connect() as conn:
            rows = [dict(r._mapping) for r in conn.execute(stmt)]
        for row in rows:
            row["created_at"] = as_utc(row["created_at"])
        return [AssignmentRule.model_validate(row) for row in rows]

    def get_priority(self, priority_id: Optional[str]) -> Optional[PriorityProfile]:
        if not priority_id:
            return None
        stmt = select(priority_profiles).where(priority_profiles.c.id == priority_id)
        with self.engine.connect() as conn:
            row = conn.execute(stmt).first()
        return PriorityProfile.model_validate(dict(row._mapping)) if row else None

    def priorities(self) -> List[PriorityProfile]:
        stmt = select(priority_profiles).order_by(priority_profiles.c.severity.asc())
        with self.engine.connect() as conn:
            return [PriorityProfile.model_validate(dict(r._mapping)) for r in conn.execute(stmt)]

    # Writes below exist for seeding and tests; admin screens own the data.

    def add_rule(self, rule: AssignmentRule) -> AssignmentRule:
        row = rule.model_dump()
        row["created_at"] = row["created_at"] or utc_now()
        with self.engine.begin() as conn:
            conn.execute(insert(assignment_rules).values(**row))
        return rule.model_copy(update={"created_at": row["created_at"]})

    def add_priority(self, profile: PriorityProfile) -> PriorityProfile:
        with self.engine.begin() as conn:
            conn.execute(insert(priority_profiles).values(**profile.model_dump()))
        return profile
