"""
Assignment rule resolution.

Run with: pytest tests/unit/test_assignment.py -v
"""

from datetime import datetime, timedelta, timezone

from models.configuration import AssignmentRule
from services.assignment_service import AssignmentResolver, select_rule

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _rule(rule_id, team_id, priority, system_id=None, category_id=None, created_at=T0,
          is_active=True):
    return AssignmentRule(
        id=rule_id,
        team_id=team_id,
        system_id=system_id,
        category_id=category_id,
        priority=priority,
        created_at=created_at,
        is_active=is_active,
    )


class TestSelectRule:
    def test_priority_beats_specificity(self):
        """A high-priority category rule wins over a low-priority exact match."""
        rules = [
            _rule("a", "teamA", 10, category_id="network"),
            _rule("b", "teamB", 5, system_id="vpn", category_id="network"),
        ]
        assert select_rule(rules, "vpn", "network").team_id == "teamA"

    def test_tie_goes_to_oldest_rule(self):
        rules = [
            _rule("new", "teamNew", 5, created_at=T0 + timedelta(days=1)),
            _rule("old", "teamOld", 5, created_at=T0),
        ]
        assert select_rule(rules, None, None).team_id == "teamOld"

    def test_full_tie_goes_to_lowest_id(self):
        rules = [_rule("r2", "teamTwo", 5), _rule("r1", "teamOne", 5)]
        assert select_rule(rules, None, None).team_id == "teamOne"

    def test_no_match_returns_none(self):
        rules = [_rule("a", "teamA", 10, category_id="network")]
        assert select_rule(rules, None, "hardware") is None

    def test_inactive_rules_and_teams_skipped(self):
        rules = [
            _rule("a", "teamA", 10, is_active=False),
            _rule("b", "teamRetired", 9),
            _rule("c", "teamC", 1),
        ]
        winner = select_rule(rules, None, None, is_team_active=lambda team: team != "teamRetired")
        assert winner.team_id == "teamC"


class TestAssignmentResolver:
    def test_resolves_from_repository(self, config_repo, directory):
        resolver = AssignmentResolver(config_repo, directory.is_team_active)
        assert resolver.resolve(None, "cat-network") == "team-network"
        assert resolver.resolve(None, "cat-hardware") == "team-helpdesk"

    def test_rule_for_inactive_team_falls_through(self, config_repo, directory):
        config_repo.add_rule(_rule("retired", "team-retired", 99, category_id="cat-network"))
        resolver = AssignmentResolver(config_repo, directory.is_team_active)
        assert resolver.resolve(None, "cat-network") == "team-network"

    def test_no_rules_leaves_ticket_unassigned(self, engine):
        from repositories.config_repo import ConfigRepository

        assert AssignmentResolver(ConfigRepository(engine)).resolve("vpn", "network") is None
