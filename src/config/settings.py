"""
Environment-specific configuration settings.

Defaults suit local development; deployed stages override through Lambda
environment variables.
"""

from dataclasses import dataclass
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    return int(raw) if raw not in (None, "") else default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    return float(raw) if raw not in (None, "") else default


@dataclass
class Settings:
    """Application settings for the ticket intake and routing core."""

    # Environment
    environment: str = "dev"

    # Database (DATABASE_URL wins over DB_SECRET_ARN)
    database_url: str = ""
    db_secret_arn: str = ""

    # Submitter identity
    employee_code_hmac_key: str = "default-hmac-key-change-in-production"
    employee_code_enc_key: str = ""  # hex AES-256 key; empty disables encryption

    # Ticket codes
    ticket_code_prefix: str = "IT"
    ticket_code_max_attempts: int = 10

    # Intake guard
    rate_limit_max_requests: int = 3
    rate_limit_window_seconds: int = 60
    duplicate_window_seconds: int = 300
    intake_cache_backend: str = "memory"  # memory | dynamodb
    intake_cache_table: str = "ticket-intake-cache"
    intake_cache_sweep_threshold: int = 1000

    # SLA defaults when a ticket has no priority
    sla_default_response_minutes: int = 480  # 8 hours
    sla_default_resolve_minutes: int = 1440  # 24 hours
    sla_at_risk_percent: int = 75

    # Notification dispatch
    notification_max_workers: int = 4
    notification_timeout_seconds: float = 10.0
    # Deployed: dispatcher Lambda that delivers notifications; empty = in-process pool
    notification_worker_function: str = ""
    public_base_url: str = "http://localhost:3000"
    display_timezone: str = "Asia/Bangkok"

    # Reference data (teams, staff, categories) owned by admin screens
    directory_file: str = ""

    @classmethod
    def from_environment(cls) -> "Settings":
        """Load settings from environment variables."""
        env = os.environ.get("ENVIRONMENT", "dev")
        settings = cls(
            environment=env,
            database_url=os.environ.get("DATABASE_URL", ""),
            db_secret_arn=os.environ.get("DB_SECRET_ARN", ""),
            employee_code_hmac_key=os.environ.get(
                "EMPLOYEE_CODE_HMAC_KEY", cls.employee_code_hmac_key
            ),
            employee_code_enc_key=os.environ.get("EMPLOYEE_CODE_ENC_KEY", ""),
            ticket_code_prefix=os.environ.get("TICKET_CODE_PREFIX", cls.ticket_code_prefix),
            ticket_code_max_attempts=_env_int(
                "TICKET_CODE_MAX_ATTEMPTS", cls.ticket_code_max_attempts
            ),
            rate_limit_max_requests=_env_int(
                "RATE_LIMIT_MAX_REQUESTS", cls.rate_limit_max_requests
            ),
            rate_limit_window_seconds=_env_int(
                "RATE_LIMIT_WINDOW_SECONDS", cls.rate_limit_window_seconds
            ),
            duplicate_window_seconds=_env_int(
                "DUPLICATE_WINDOW_SECONDS", cls.duplicate_window_seconds
            ),
            intake_cache_backend=os.environ.get(
                "INTAKE_CACHE_BACKEND", cls.intake_cache_backend
            ).lower(),
            intake_cache_table=os.environ.get("INTAKE_CACHE_TABLE", cls.intake_cache_table),
            intake_cache_sweep_threshold=_env_int(
                "INTAKE_CACHE_SWEEP_THRESHOLD", cls.intake_cache_sweep_threshold
            ),
            sla_default_response_minutes=_env_int(
                "SLA_DEFAULT_RESPONSE_MINUTES", cls.sla_default_response_minutes
            ),
            sla_default_resolve_minutes=_env_int(
                "SLA_DEFAULT_RESOLVE_MINUTES", cls.sla_default_resolve_minutes
            ),
            sla_at_risk_percent=_env_int("SLA_AT_RISK_PERCENT", cls.sla_at_risk_percent),
            notification_max_workers=_env_int(
                "NOTIFICATION_MAX_WORKERS", cls.notification_max_workers
            ),
            notification_timeout_seconds=_env_float(
                "NOTIFICATION_TIMEOUT_SECONDS", cls.notification_timeout_seconds
            ),
            notification_worker_function=os.environ.get("NOTIFICATION_WORKER_FUNCTION", ""),
            public_base_url=os.environ.get("PUBLIC_BASE_URL", cls.public_base_url).rstrip("/"),
            display_timezone=os.environ.get("DISPLAY_TIMEZONE", cls.display_timezone),
            directory_file=os.environ.get("DIRECTORY_FILE", ""),
        )

        if settings.employee_code_enc_key and len(bytes.fromhex(settings.employee_code_enc_key)) != 32:
            raise ValueError("EMPLOYEE_CODE_ENC_KEY must be 64 hex characters")

        # Production overrides
        if env == "prod":
            settings.intake_cache_backend = os.environ.get("INTAKE_CACHE_BACKEND", "dynamodb")
            settings.notification_max_workers = _env_int("NOTIFICATION_MAX_WORKERS", 8)
            if settings.employee_code_hmac_key == cls.employee_code_hmac_key:
                raise ValueError("EMPLOYEE_CODE_HMAC_KEY must be set in prod")

        return settings
