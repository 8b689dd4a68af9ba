"""Database schema definitions using SQLAlchemy Core.

Table: sessions
    One row per orchestration session, keyed by session id. The full
    session snapshot lives in the JSON payload; state and terminal are
    duplicated as columns for querying.
"""

from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Index,
    MetaData,
    String,
    Table,
    text,
)

metadata = MetaData()

sessions_table = Table(
    "sessions",
    metadata,
    Column("session_id", String(64), primary_key=True),
    # Serialized OrchestrationSession.to_dict()
    Column("payload", JSON, nullable=False),
    Column("state", String(32), nullable=False),
    # Terminal sessions are archived, not deleted
    Column("terminal", Boolean, nullable=False, default=False),
    Column(
        "updated_at",
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("CURRENT_TIMESTAMP"),
    ),
    Index("ix_sessions_state", "state"),
    Index("ix_sessions_terminal", "terminal"),
)
