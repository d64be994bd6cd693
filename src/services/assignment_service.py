"""Routes new tickets to a team by evaluating active assignment rules."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from models.configuration import AssignmentRule
from repositories.config_repo import ConfigRepository
from utils.logging_config import get_logger

logger = get_logger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _precedence(rule: AssignmentRule):
    # Highest priority first; ties go to the oldest rule, then the lowest id.
    return (-rule.priority, rule.created_at or _EPOCH, rule.id)


def select_rule(
    rules: Iterable[AssignmentRule],
    system_id: Optional[str],
    category_id: Optional[str],
    is_team_active: Callable[[str], bool] = lambda team_id: True,
) -> Optional[AssignmentRule]:
    """
    Pick the winning rule among active, matching rules.

    Priority alone decides between matches: a high-priority category rule beats
    a low-priority rule that matches both system and category.
    """
    candidates = [
        rule
        for rule in rules
        if rule.is_active and rule.matches(system_id, category_id) and is_team_active(rule.team_id)
    ]
    if not candidates:
        return None
    return min(candidates, key=_precedence)


class AssignmentResolver:
    def __init__(
        self,
        repository: ConfigRepository,
        is_team_active: Callable[[str], bool] = lambda team_id: True,
    ):
        self.repository = repository
        self.is_team_active = is_team_active

    def resolve(self, system_id: Optional[str], category_id: Optional[str]) -> Optional[str]:
        """Team id for the ticket, or None to leave it unassigned."""
        rule = select_rule(
            self.repository.active_rules(), system_id, category_id, self.is_team_active
        )
        if rule is None:
            logger.info(
                "No assignment rule matched",
                extra={"system_id": system_id, "category_id": category_id},
            )
            return None
        logger.info(
            "Assignment rule matched",
            extra={"rule_id": rule.id, "team_id": rule.team_id, "priority": rule.priority},
        )
        return rule.team_id
