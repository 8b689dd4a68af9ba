"""agent_dispatch core module - shared types and errors."""

from agent_dispatch.core.errors import (
    ConfigError,
    DispatchCancelledError,
    DispatchError,
    DispatchFailedError,
    DispatchTimeoutError,
    InvalidTransitionError,
    NoEligibleAgentError,
    PerformanceUpdateConflict,
    PersistenceError,
    UnknownAgentError,
    ValidationError,
)
from agent_dispatch.core.types import AgentId, Capability, EventPayload, Level, Result

__all__ = [
    # Types
    "Result",
    "Level",
    "AgentId",
    "Capability",
    "EventPayload",
    # Errors
    "DispatchError",
    "ConfigError",
    "PersistenceError",
    "ValidationError",
    "UnknownAgentError",
    "NoEligibleAgentError",
    "DispatchTimeoutError",
    "DispatchFailedError",
    "DispatchCancelledError",
    "PerformanceUpdateConflict",
    "InvalidTransitionError",
]
