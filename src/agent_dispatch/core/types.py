"""Core types for agent_dispatch - Result type, levels and type aliases.

This module provides:
- Result[T, E]: success-or-failure value for expected failures
- Level: the three-step low/medium/high scale used by requirement profiles
- Type aliases for agent ids and capability tags
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, cast


@dataclass(frozen=True, slots=True)
class Result[T, E]:
    """Either a success (Ok) or an expected failure (Err).

    Exceptions are reserved for programming errors and for the engine's
    public boundaries; component internals hand back a Result.

    Usage:
        result = validate(request)
        if result.is_err:
            return default_profile()
        profile = result.value
    """

    _value: T | None
    _error: E | None
    _is_ok: bool

    @classmethod
    def ok(cls, value: T) -> Result[T, E]:
        """Create a successful Result containing the given value."""
        return cls(_value=value, _error=None, _is_ok=True)

    @classmethod
    def err(cls, error: E) -> Result[T, E]:
        """Create a failed Result containing the given error."""
        return cls(_value=None, _error=error, _is_ok=False)

    @property
    def is_ok(self) -> bool:
        """Return True if this Result is Ok (success)."""
        return self._is_ok

    @property
    def is_err(self) -> bool:
        """Return True if this Result is Err (failure)."""
        return not self._is_ok

    def __repr__(self) -> str:
        if self._is_ok:
            return f"Ok({self._value!r})"
        return f"Err({self._error!r})"

    @property
    def value(self) -> T:
        """Return the Ok value; raises ValueError on an Err result."""
        if not self._is_ok:
            msg = "Cannot access value on Err result"
            raise ValueError(msg)
        return cast(T, self._value)

    @property
    def error(self) -> E:
        """Return the Err value; raises ValueError on an Ok result."""
        if self._is_ok:
            msg = "Cannot access error on Ok result"
            raise ValueError(msg)
        return cast(E, self._error)

    def unwrap_or(self, default: T) -> T:
        """Return the Ok value or the provided default if Err."""
        if self._is_ok:
            return cast(T, self._value)
        return default

    def map[U](self, fn: Callable[[T], U]) -> Result[U, E]:
        """Transform the Ok value, leaving an Err untouched."""
        if self._is_ok:
            return Result.ok(fn(cast(T, self._value)))
        return Result.err(cast(E, self._error))


class Level(StrEnum):
    """Three-step scale for complexity, urgency and compliance risk."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        """Ordinal position: low=0, medium=1, high=2."""
        return _LEVEL_RANK[self]


_LEVEL_RANK = {Level.LOW: 0, Level.MEDIUM: 1, Level.HIGH: 2}


AgentId = str
"""Type alias for a registered agent's unique identifier."""

Capability = str
"""Type alias for a capability tag, e.g. "ocr" or "fraud_detection"."""

EventPayload = dict[str, Any]
"""Type alias for event payload data - JSON-serializable dict."""
