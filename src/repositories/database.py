"""
SQLAlchemy engine bootstrap.

The engine is created lazily and reused across warm invocations. Credentials
come from DATABASE_URL or, in deployed stages, from the RDS secret named by
DB_SECRET_ARN.
"""

from __future__ import annotations

import json
from typing import Optional

import boto3
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import QueuePool

from config.settings import Settings
from repositories.schema import metadata
from utils.logging_config import get_logger

logger = get_logger(__name__)

# Connection pooling for Lambda reuse.
_engine: Optional[Engine] = None


def get_db_engine(settings: Settings) -> Engine:
    """Get or create the shared engine."""
    global _engine
    if _engine is None:
        db_url = settings.database_url
        if not db_url and settings.db_secret_arn:
            db_url = _secret_to_db_url(settings.db_secret_arn)
        if not db_url:
            logger.warning("DATABASE_URL not set; using local SQLite file")
            db_url = "sqlite:///helpdesk.db"
        _engine = build_engine(db_url)
    return _engine


def build_engine(db_url: str) -> Engine:
    """Create an engine; SQLite gets foreign keys so owned rows cascade."""
    if db_url.startswith("sqlite"):
        engine = create_engine(db_url, connect_args={"check_same_thread": False})
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        return engine
    return create_engine(
        db_url,
        poolclass=QueuePool,
        pool_size=2,
        max_overflow=4,
        pool_pre_ping=True,
        pool_recycle=300,
    )


def create_schema(engine: Engine) -> None:
    metadata.create_all(engine)


def reset_engine() -> None:
    """Dispose the cached engine (tests and config reloads)."""
    global _engine
    if _engine is not None:
        _engine.dispose()
    _engine = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _secret_to_db_url(secret_arn: str) -> Optional[str]:
    """Build a SQLAlchemy URL from an RDS secret."""
    try:
        sm = boto3.client("secretsmanager")
        secret = json.loads(sm.get_secret_value(SecretId=secret_arn)["SecretString"])
    except Exception as exc:
        logger.warning("Failed to load DB secret", extra={"error": str(exc)})
        return None

    host = secret.get("host")
    port = secret.get("port", 5432)
    username = secret.get("username")
    password = secret.get("password")
    dbname = secret.get("dbname", "postgres")
    if not (host and username and password):
        return None
    return f"postgresql+psycopg2://{username}:{password}@{host}:{port}/{dbname}"
