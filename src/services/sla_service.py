"""
SLA evaluation, computed on read from current data and never persisted.

Bucketing looks at the resolve budget only: Breached once it is exceeded,
At Risk from ``at_risk_percent`` of it, otherwise On Track. First-response
breach is reported per ticket but does not move a ticket between buckets.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Dict, List, Optional

from models.configuration import PriorityProfile
from models.sla import SLABucket, SLAReport, SLAReportRow, SLASummary, SLAView
from models.ticket import OPEN_STATUSES, Ticket
from utils.clock import as_utc


def _percent(age_minutes: int, target_minutes: int) -> int:
    if target_minutes <= 0:
        return 100
    # Half-up rounding, capped at 100.
    return min(100, (age_minutes * 200 + target_minutes) // (2 * target_minutes))


def format_age(age_minutes: int) -> str:
    hours, minutes = divmod(max(age_minutes, 0), 60)
    days, hours = divmod(hours, 24)
    if days:
        return f"{days}d {hours}h"
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


class SLAEvaluator:
    def __init__(
        self,
        default_response_minutes: int = 480,
        default_resolve_minutes: int = 1440,
        at_risk_percent: int = 75,
    ):
        self.default_response_minutes = default_response_minutes
        self.default_resolve_minutes = default_resolve_minutes
        self.at_risk_percent = at_risk_percent

    def targets(self, profile: Optional[PriorityProfile]) -> tuple:
        response = profile.sla_first_response_mins if profile else None
        resolve = profile.sla_resolve_mins if profile else None
        return (response or self.default_response_minutes, resolve or self.default_resolve_minutes)

    def evaluate(
        self, ticket: Ticket, profile: Optional[PriorityProfile], now: datetime
    ) -> SLAView:
        return self._view(ticket.created_at, profile, now)

    def evaluate_historical(
        self, ticket: Ticket, profile: Optional[PriorityProfile], now: datetime
    ) -> SLAView:
        """Measure up to the first resolution/closure for tickets that have one."""
        ends = [t for t in (ticket.resolved_at, ticket.closed_at) if t is not None]
        end = min(as_utc(t) for t in ends) if ends else now
        return self._view(ticket.created_at, profile, end)

    def classify(self, view: SLAView) -> SLABucket:
        return self._bucket(view.resolve_breached, view.resolve_percent)

    def build_report(
        self,
        tickets: List[Ticket],
        profile_lookup: Callable[[Optional[str]], Optional[PriorityProfile]],
        now: datetime,
        team_name: Callable[[Optional[str]], Optional[str]] = lambda _id: None,
        staff_name: Callable[[Optional[str]], Optional[str]] = lambda _id: None,
    ) -> SLAReport:
        """Partition open tickets (oldest first) into the three buckets."""
        buckets: Dict[SLABucket, List[SLAReportRow]] = {bucket: [] for bucket in SLABucket}
        profiles: Dict[Optional[str], Optional[PriorityProfile]] = {}

        open_tickets = sorted(
            (t for t in tickets if t.status in OPEN_STATUSES),
            key=lambda t: as_utc(t.created_at),
        )
        for ticket in open_tickets:
            if ticket.priority_id not in profiles:
                profiles[ticket.priority_id] = profile_lookup(ticket.priority_id)
            profile = profiles[ticket.priority_id]
            view = self.evaluate(ticket, profile, now)
            buckets[view.bucket].append(
                SLAReportRow(
                    id=ticket.id,
                    ticket_code=ticket.ticket_code,
                    subject=ticket.subject,
                    status=ticket.status.value,
                    full_name=ticket.full_name,
                    bureau=ticket.bureau,
                    created_at=ticket.created_at,
                    priority=profile.name if profile else "Unspecified",
                    team=team_name(ticket.team_id) or "Unspecified",
                    assignee=staff_name(ticket.assignee_id) or "Unassigned",
                    age_text=format_age(view.age_minutes),
                    sla=view,
                )
            )

        total = len(open_tickets)
        breached = len(buckets[SLABucket.BREACHED])
        return SLAReport(
            generated_at=now,
            summary=SLASummary(
                total=total,
                breached=breached,
                at_risk=len(buckets[SLABucket.AT_RISK]),
                on_track=len(buckets[SLABucket.ON_TRACK]),
                breached_percent=_percent(breached, total) if total else 0,
            ),
            breached_tickets=buckets[SLABucket.BREACHED],
            at_risk_tickets=buckets[SLABucket.AT_RISK],
            on_track_tickets=buckets[SLABucket.ON_TRACK],
        )

    def _view(
        self, created_at: datetime, profile: Optional[PriorityProfile], end: datetime
    ) -> SLAView:
        elapsed = as_utc(end) - as_utc(created_at)
        age_minutes = max(0, int(elapsed.total_seconds() // 60))
        response_target, resolve_target = self.targets(profile)

        resolve_breached = age_minutes > resolve_target
        resolve_percent = _percent(age_minutes, resolve_target)
        return SLAView(
            age_minutes=age_minutes,
            response_target_minutes=response_target,
            resolve_target_minutes=resolve_target,
            response_breached=age_minutes > response_target,
            resolve_breached=resolve_breached,
            response_percent=_percent(age_minutes, response_target),
            resolve_percent=resolve_percent,
            bucket=self._bucket(resolve_breached, resolve_percent),
        )

    def _bucket(self, resolve_breached: bool, resolve_percent: int) -> SLABucket:
        if resolve_breached:
            return SLABucket.BREACHED
        if resolve_percent >= self.at_risk_percent:
            return SLABucket.AT_RISK
        return SLABucket.ON_TRACK
