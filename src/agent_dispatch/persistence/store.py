"""Session stores: the get/set/clear persistence contract and two backends.

The orchestrator saves a session snapshot after every state change and can
restore it after a restart. The contract is a synchronous key-value store
with no transactions:

- ``get(key)`` returns the saved dict or None
- ``set(key, value)`` replaces whatever was saved
- ``clear(key)`` forgets the key (no-op when absent)

``InMemorySessionStore`` keeps snapshots in a dict; ``SQLSessionStore``
writes them to a SQLite database through SQLAlchemy Core.
"""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
import threading
from typing import Any, Protocol, runtime_checkable

from sqlalchemy import Engine, create_engine, delete, select
from sqlalchemy.pool import StaticPool

from agent_dispatch.core.errors import PersistenceError
from agent_dispatch.observability.logging import get_logger
from agent_dispatch.persistence.schema import metadata, sessions_table

log = get_logger(__name__)


@runtime_checkable
class SessionStore(Protocol):
    """Synchronous key-value contract for session snapshots."""

    def get(self, key: str) -> dict[str, Any] | None: ...

    def set(self, key: str, value: dict[str, Any]) -> None: ...

    def clear(self, key: str) -> None: ...


class InMemorySessionStore:
    """Process-local store. Snapshots are lost on exit."""

    def __init__(self) -> None:
        self._data: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> dict[str, Any] | None:
        with self._lock:
            value = self._data.get(key)
        return dict(value) if value is not None else None

    def set(self, key: str, value: dict[str, Any]) -> None:
        with self._lock:
            self._data[key] = dict(value)

    def clear(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._data)


class SQLSessionStore:
    """SQLite-backed store using SQLAlchemy Core.

    Usage:
        store = SQLSessionStore("sqlite:///sessions.db")
        store.initialize()
        store.set(session.session_id, session.to_dict())
        data = store.get(session.session_id)
        store.close()
    """

    def __init__(self, database_url: str | None = None) -> None:
        """Initialize the store.

        Args:
            database_url: SQLAlchemy URL. Defaults to
                ~/.agent_dispatch/data/sessions.db. "sqlite://" gives an
                in-memory database shared by all threads.
        """
        if database_url is None:
            db_path = Path.home() / ".agent_dispatch" / "data" / "sessions.db"
            db_path.parent.mkdir(parents=True, exist_ok=True)
            database_url = f"sqlite:///{db_path}"
        self._database_url = database_url
        self._engine: Engine | None = None

    def initialize(self) -> None:
        """Connect and create tables. Idempotent."""
        if self._engine is None:
            if self._database_url in ("sqlite://", "sqlite:///:memory:"):
                self._engine = create_engine(
                    self._database_url,
                    connect_args={"check_same_thread": False},
                    poolclass=StaticPool,
                )
            else:
                self._engine = create_engine(self._database_url)
        metadata.create_all(self._engine)

    def _require_engine(self, operation: str) -> Engine:
        if self._engine is None:
            raise PersistenceError(
                "SQLSessionStore not initialized. Call initialize() first.",
                operation=operation,
            )
        return self._engine

    def get(self, key: str) -> dict[str, Any] | None:
        engine = self._require_engine("get")
        try:
            with engine.connect() as conn:
                row = conn.execute(
                    select(sessions_table.c.payload).where(sessions_table.c.session_id == key)
                ).first()
        except Exception as e:
            raise PersistenceError(
                f"Failed to load session: {e}", operation="get", key=key
            ) from e
        return dict(row.payload) if row is not None else None

    def set(self, key: str, value: dict[str, Any]) -> None:
        engine = self._require_engine("set")
        state = str(value.get("state", ""))
        row = {
            "payload": value,
            "state": state,
            "terminal": state in ("completed", "error"),
            "updated_at": datetime.now(UTC),
        }
        try:
            with engine.begin() as conn:
                updated = conn.execute(
                    sessions_table.update()
                    .where(sessions_table.c.session_id == key)
                    .values(**row)
                )
                if updated.rowcount == 0:
                    conn.execute(sessions_table.insert().values(session_id=key, **row))
        except Exception as e:
            raise PersistenceError(
                f"Failed to save session: {e}", operation="set", key=key
            ) from e

    def clear(self, key: str) -> None:
        engine = self._require_engine("clear")
        try:
            with engine.begin() as conn:
                conn.execute(delete(sessions_table).where(sessions_table.c.session_id == key))
        except Exception as e:
            raise PersistenceError(
                f"Failed to clear session: {e}", operation="clear", key=key
            ) from e

    def keys(self, *, terminal: bool | None = None) -> list[str]:
        """Stored session ids, optionally filtered by terminal flag."""
        engine = self._require_engine("keys")
        query = select(sessions_table.c.session_id).order_by(sessions_table.c.session_id)
        if terminal is not None:
            query = query.where(sessions_table.c.terminal == terminal)
        with engine.connect() as conn:
            return [row.session_id for row in conn.execute(query)]

    def close(self) -> None:
        """Dispose of the connection pool."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
