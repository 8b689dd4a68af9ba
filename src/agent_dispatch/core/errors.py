"""Error hierarchy for agent_dispatch.

Exceptions are raised at the public API boundaries of the engine. Inside
components, expected failures travel as ``Result`` values instead.

Exception Hierarchy:
    DispatchError (base)
    ├── ConfigError                - Configuration loading/validation issues
    ├── PersistenceError           - Session store failures
    ├── ValidationError            - Malformed request/requirements data
    ├── UnknownAgentError          - Agent id not present in the registry
    ├── NoEligibleAgentError       - Registry empty or no agent can serve the request
    ├── DispatchTimeoutError       - Executor exceeded its bound after all retries
    ├── DispatchFailedError        - Executor reported failure or raised
    ├── DispatchCancelledError     - Caller aborted an in-flight dispatch
    ├── PerformanceUpdateConflict  - Concurrent stats update lost a race (internal)
    └── InvalidTransitionError     - Illegal session state transition
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from agent_dispatch.routing.requirements import TaskRequirements


class DispatchError(Exception):
    """Base exception for all agent_dispatch errors.

    Every engine error can carry the session it happened in and the
    requirement profile being served, so a single log line is enough to
    diagnose a failed routing or dispatch.

    Attributes:
        message: Human-readable error description.
        details: Additional context.
        session_id: Session the error belongs to, if any.
        requirements: Requirement profile being served, if any.
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        *,
        session_id: str | None = None,
        requirements: TaskRequirements | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.session_id = session_id
        self.requirements = requirements

    def with_context(
        self,
        *,
        session_id: str | None = None,
        requirements: TaskRequirements | None = None,
    ) -> DispatchError:
        """Attach session/requirements context that was not known at raise time.

        Existing values are kept; only missing context is filled in.

        Returns:
            The same error instance, for ``raise err.with_context(...)``.
        """
        if self.session_id is None:
            self.session_id = session_id
        if self.requirements is None:
            self.requirements = requirements
        return self

    def context(self) -> dict[str, Any]:
        """Return a flat dict suitable for structured logging."""
        data: dict[str, Any] = dict(self.details)
        if self.session_id is not None:
            data["session_id"] = self.session_id
        if self.requirements is not None:
            data["requirements"] = self.requirements.to_dict()
        return data

    def __str__(self) -> str:
        """Return string representation of the error."""
        parts = [self.message]
        if self.session_id is not None:
            parts.append(f"session: {self.session_id}")
        if self.details:
            parts.append(f"details: {self.details}")
        if len(parts) == 1:
            return self.message
        return f"{parts[0]} ({', '.join(parts[1:])})"


class ConfigError(DispatchError):
    """Raised when configuration loading, parsing, or validation fails.

    Attributes:
        config_key: The configuration key that caused the error.
        config_file: Path to the config file if applicable.
    """

    def __init__(
        self,
        message: str,
        *,
        config_key: str | None = None,
        config_file: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.config_key = config_key
        self.config_file = config_file


class PersistenceError(DispatchError):
    """Raised when a session store operation fails.

    Attributes:
        operation: The operation that failed (e.g., "get", "set", "clear").
        key: Session key involved, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        key: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details, session_id=key)
        self.operation = operation
        self.key = key


class ValidationError(DispatchError):
    """Raised (or returned in a Result) when request data is malformed.

    The requirement extractor never surfaces this; it substitutes the
    default profile instead.

    Attributes:
        field: The field that failed validation.
        value: The invalid value, if safe to include.
    """

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.field = field
        self.value = value

    def __str__(self) -> str:
        base = self.message
        if self.field:
            shown = repr(self.value)
            if len(shown) > 50:
                shown = f"{shown[:20]}...({len(shown)} chars)"
            base = f"{base} (field: {self.field}, value: {shown})"
        return base


class UnknownAgentError(DispatchError):
    """Raised when an operation names an agent id that was never registered."""

    def __init__(self, agent_id: str, **kwargs: Any) -> None:
        super().__init__(f"Unknown agent: {agent_id}", {"agent_id": agent_id}, **kwargs)
        self.agent_id = agent_id


class NoEligibleAgentError(DispatchError):
    """Raised when no agent can serve a request.

    This is the only fatal routing error: it means the registry is empty or
    no registered agent offers any of the required capabilities. Dispatch
    halts rather than picking an arbitrary agent.
    """


class DispatchTimeoutError(DispatchError):
    """Raised when the executor exceeded its time bound on every attempt.

    Attributes:
        agent_id: Agent whose executor timed out.
        timeout_seconds: The per-attempt bound that was exceeded.
        attempts: Number of attempts made.
    """

    def __init__(
        self,
        message: str,
        *,
        agent_id: str,
        timeout_seconds: float,
        attempts: int = 1,
        **kwargs: Any,
    ) -> None:
        details = {
            "agent_id": agent_id,
            "timeout_seconds": timeout_seconds,
            "attempts": attempts,
        }
        super().__init__(message, details, **kwargs)
        self.agent_id = agent_id
        self.timeout_seconds = timeout_seconds
        self.attempts = attempts


class DispatchFailedError(DispatchError):
    """Raised when the executor returned a failure or raised an exception.

    Attributes:
        agent_id: Agent whose executor failed.
    """

    def __init__(self, message: str, *, agent_id: str, **kwargs: Any) -> None:
        super().__init__(message, {"agent_id": agent_id}, **kwargs)
        self.agent_id = agent_id

    @classmethod
    def from_exception(
        cls,
        exc: Exception,
        *,
        agent_id: str,
        session_id: str | None = None,
        requirements: TaskRequirements | None = None,
    ) -> DispatchFailedError:
        """Wrap an executor exception, preserving it as ``__cause__``."""
        error = cls(
            f"Executor for {agent_id} raised {type(exc).__name__}: {exc}",
            agent_id=agent_id,
            session_id=session_id,
            requirements=requirements,
        )
        error.details["original_exception"] = type(exc).__name__
        error.__cause__ = exc
        return error


class DispatchCancelledError(DispatchError):
    """Raised to the caller whose in-flight dispatch was aborted."""


class PerformanceUpdateConflict(DispatchError):
    """A stats update raced with another update for the same agent.

    Never surfaced: the tracker retries until its update commits.
    """


class InvalidTransitionError(DispatchError):
    """Raised when a session is asked to make a transition it does not allow.

    Attributes:
        current: State the session was in.
        target: State that was requested.
    """

    def __init__(self, current: str, target: str, **kwargs: Any) -> None:
        super().__init__(
            f"Invalid session transition: {current} -> {target}",
            {"current": current, "target": target},
            **kwargs,
        )
        self.current = current
        self.target = target
