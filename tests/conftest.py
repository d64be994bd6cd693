"""
Pytest configuration to ensure paths are set up correctly for tests.

This allows imports like `from handlers import health_check` to work
when running tests, simulating the Lambda environment where code
is deployed from the src/ directory.
"""

import os
import sys
from concurrent.futures import Future
from datetime import datetime, timedelta, timezone
from pathlib import Path

import boto3
import pytest


def _ensure_paths_on_sys_path() -> None:
    """Add repository root AND src/ to sys.path if missing.

    The src/ directory is added to simulate Lambda's import behavior,
    where the Lambda asset root is src/.
    """
    repo_root = Path(__file__).resolve().parents[1]
    src_root = repo_root / "src"

    root_str = str(repo_root)
    if root_str not in sys.path:
        sys.path.insert(0, root_str)

    # Add src/ for Lambda-style imports (from handlers import ...)
    src_str = str(src_root)
    if src_str not in sys.path:
        sys.path.insert(0, src_str)


_ensure_paths_on_sys_path()

# Ensure boto3 has offline-friendly defaults so tests do not require AWS access.
os.environ.setdefault("AWS_REGION", "eu-west-2")
os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-2")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "test")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "test")
os.environ.setdefault("AWS_SESSION_TOKEN", "test")
os.environ.setdefault("ENVIRONMENT", "dev")

# Create a default boto3 session so resources/clients do not error during import.
boto3.setup_default_session(region_name="eu-west-2")

from config.settings import Settings  # noqa: E402
from models.configuration import AssignmentRule, PriorityProfile  # noqa: E402
from models.notification import NotificationChannel, NotificationSettings  # noqa: E402
from repositories.audit_repo import AuditRepository  # noqa: E402
from repositories.config_repo import ConfigRepository  # noqa: E402
from repositories.database import build_engine, create_schema  # noqa: E402
from repositories.notification_repo import NotificationRepository  # noqa: E402
from repositories.ticket_repo import TicketRepository  # noqa: E402
from services.audit_service import AuditRecorder  # noqa: E402
from services.directory import DirectoryData, StaticDirectory, Team  # noqa: E402
from services.intake_guard import IntakeGuard  # noqa: E402
from services.notification_service import NotificationDispatcher  # noqa: E402
from services.ticket_service import TicketService  # noqa: E402
from utils.cache_service import InMemoryWindowCache  # noqa: E402

HMAC_KEY = "test-hmac-key"
START = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock pinned to a settable instant."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class ImmediateExecutor:
    """Runs submitted jobs inline so notification records exist on return."""

    def submit(self, fn, *args, **kwargs) -> Future:
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:  # surfaced through the future, like a pool
            future.set_exception(exc)
        return future

    def shutdown(self, wait: bool = True) -> None:
        pass


class FakeChannel:
    """Transport double recording what would have been sent."""

    def __init__(self, error: Exception = None, connected: bool = True):
        self.error = error
        self.connected = connected
        self.sent = []

    def send(self, recipient, subject, body):
        if self.error is not None:
            raise self.error
        self.sent.append((recipient, subject, body))

    def test_connection(self):
        return self.connected


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite so worker threads get their own connections."""
    eng = build_engine(f"sqlite:///{tmp_path / 'helpdesk.db'}")
    create_schema(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def settings():
    return Settings(
        employee_code_hmac_key=HMAC_KEY,
        public_base_url="https://helpdesk.example.org",
        display_timezone="Asia/Bangkok",
    )


@pytest.fixture
def ticket_repo(engine):
    return TicketRepository(engine)


@pytest.fixture
def config_repo(engine):
    repo = ConfigRepository(engine)
    repo.add_priority(
        PriorityProfile(
            id="p1", code="P1", name="Critical", severity=1,
            sla_first_response_mins=30, sla_resolve_mins=240,
        )
    )
    repo.add_priority(
        PriorityProfile(
            id="p3", code="P3", name="Normal", severity=3,
            sla_first_response_mins=480, sla_resolve_mins=1440,
        )
    )
    repo.add_rule(
        AssignmentRule(
            id="rule-network", team_id="team-network", category_id="cat-network",
            priority=10, created_at=START,
        )
    )
    repo.add_rule(
        AssignmentRule(id="rule-default", team_id="team-helpdesk", priority=0, created_at=START)
    )
    return repo


@pytest.fixture
def audit_repo(engine):
    return AuditRepository(engine)


@pytest.fixture
def notification_repo(engine):
    return NotificationRepository(engine)


@pytest.fixture
def directory():
    return StaticDirectory(
        DirectoryData(
            teams=[
                Team(id="team-network", name="Network", recipients=["network@example.org"]),
                Team(id="team-helpdesk", name="Helpdesk", recipients=["helpdesk@example.org"]),
                Team(id="team-retired", name="Retired", is_active=False),
            ],
            staff={"staff-1": "Somchai K.", "staff-2": "Anong P."},
            categories={"cat-network": "Network", "cat-hardware": "Hardware"},
        )
    )


@pytest.fixture
def notification_settings():
    return NotificationSettings(
        email_enabled=True,
        from_email="helpdesk@example.org",
        discord_enabled=True,
        discord_webhook="https://discord.example/webhook",
        default_recipients=["it-lead@example.org"],
    )


@pytest.fixture
def channels():
    return {channel: FakeChannel() for channel in NotificationChannel}


@pytest.fixture
def dispatcher(notification_repo, notification_settings, channels, clock):
    return NotificationDispatcher(
        notification_repo,
        settings_provider=lambda: notification_settings,
        timeout_seconds=2.0,
        clock=clock,
        channel_factory=lambda channel, settings, timeout: channels[channel],
        public_base_url="https://helpdesk.example.org",
        executor=ImmediateExecutor(),
    )


@pytest.fixture
def ticket_service(settings, ticket_repo, config_repo, audit_repo, dispatcher, directory, clock):
    return TicketService(
        settings=settings,
        tickets=ticket_repo,
        config=config_repo,
        audit=AuditRecorder(audit_repo, clock),
        guard=IntakeGuard(
            InMemoryWindowCache(),
            max_requests=settings.rate_limit_max_requests,
            window_seconds=settings.rate_limit_window_seconds,
            duplicate_window_seconds=settings.duplicate_window_seconds,
            clock=clock,
        ),
        notifier=dispatcher,
        directory=directory,
        clock=clock,
    )


def submission_payload(**overrides) -> dict:
    payload = {
        "employee_code": "6401234",
        "full_name": "Suda Wongsa",
        "email": "suda@example.org",
        "phone": "0812345678",
        "bureau": "Finance Bureau",
        "division": "Accounting",
        "department": "Payables",
        "category_id": "cat-network",
        "priority_id": "p3",
        "subject": "VPN disconnects every hour",
        "description": "The VPN client drops the connection roughly every hour since Monday.",
    }
    payload.update(overrides)
    return payload
