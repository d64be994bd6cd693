"""
Intake guard: per-source rate limiting and cross-source duplicate suppression.

A rejection filter only; it never touches ticket state. Both checks are
single atomic cache operations, so concurrent requests cannot both slip past
the limit.
"""

from __future__ import annotations

from enum import Enum

from config.settings import Settings
from utils.cache_service import InMemoryWindowCache, WindowCache
from utils.clock import Clock, utc_now
from utils.logging_config import get_logger

logger = get_logger(__name__)


class Admission(str, Enum):
    ALLOW = "allow"
    RATE_LIMITED = "rate_limited"
    DUPLICATE = "duplicate"


class IntakeGuard:
    def __init__(
        self,
        cache: WindowCache,
        max_requests: int = 3,
        window_seconds: int = 60,
        duplicate_window_seconds: int = 300,
        clock: Clock = utc_now,
    ):
        self.cache = cache
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.duplicate_window_seconds = duplicate_window_seconds
        self.clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, clock: Clock = utc_now) -> "IntakeGuard":
        if settings.intake_cache_backend == "dynamodb":
            from repositories.dynamodb_repo import DynamoDbWindowCache

            cache: WindowCache = DynamoDbWindowCache(settings.intake_cache_table)
        else:
            cache = InMemoryWindowCache(sweep_threshold=settings.intake_cache_sweep_threshold)
        return cls(
            cache,
            max_requests=settings.rate_limit_max_requests,
            window_seconds=settings.rate_limit_window_seconds,
            duplicate_window_seconds=settings.duplicate_window_seconds,
            clock=clock,
        )

    def admit(self, source_key: str, fingerprint: str) -> Admission:
        """Check the rate window first, then claim the fingerprint."""
        now = self.clock().timestamp()
        source = source_key or "unknown"

        count = self.cache.increment(f"rate:{source}", self.window_seconds, now)
        if count > self.max_requests:
            logger.warning(
                "Intake rate limited",
                extra={"source_key": source, "count": count, "limit": self.max_requests},
            )
            return Admission.RATE_LIMITED

        if not self.cache.add_if_absent(f"dup:{fingerprint}", self.duplicate_window_seconds, now):
            logger.warning(
                "Duplicate submission rejected",
                extra={"source_key": source, "fingerprint": fingerprint[:12]},
            )
            return Admission.DUPLICATE

        return Admission.ALLOW

    def release(self, fingerprint: str) -> None:
        """
        Give back a fingerprint claimed by ``admit`` when no ticket was created.

        The rate slot is kept. A cache failure here is logged only; the claim
        then expires with the duplicate window.
        """
        try:
            self.cache.discard(f"dup:{fingerprint}")
        except Exception:
            logger.exception(
                "Could not release duplicate claim", extra={"fingerprint": fingerprint[:12]}
            )
