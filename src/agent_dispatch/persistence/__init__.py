"""Session persistence: key-value stores for orchestration snapshots."""

from agent_dispatch.persistence.schema import metadata, sessions_table
from agent_dispatch.persistence.store import InMemorySessionStore, SessionStore, SQLSessionStore

__all__ = [
    "InMemorySessionStore",
    "SQLSessionStore",
    "SessionStore",
    "metadata",
    "sessions_table",
]
