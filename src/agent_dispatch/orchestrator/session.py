"""Orchestration session state machine.

A session sequences one conversation through routing and dispatch:

    Idle -> Routing -> Dispatched -> AwaitingResponse -> Completed
                |          |               |
                |          +------+--------+--> Error
                v                 |
            Clarifying            +--> Routing (handoff / re-route)

``Clarifying`` is entered when routing confidence is too low; new caller
input moves the session back to ``Routing``. ``Completed`` and ``Error``
are terminal: once reached, every further transition is rejected and a
new session must be started.

Sessions are immutable values. Every change returns a new instance via a
``with_*`` method, and ``to_dict``/``from_dict`` round-trip through plain
JSON-compatible data for persistence.

Usage:
    session = OrchestrationSession.create()
    session = session.with_state(SessionState.ROUTING)
    session = session.with_handoff("claims-processor", reason="routed", confidence=91)
    session = session.with_state(SessionState.DISPATCHED)
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any
from uuid import uuid4

from agent_dispatch.core.errors import InvalidTransitionError
from agent_dispatch.core.types import AgentId
from agent_dispatch.routing.requirements import TaskRequirements


class SessionState(StrEnum):
    """State of an orchestration session."""

    IDLE = "idle"
    ROUTING = "routing"
    CLARIFYING = "clarifying"
    DISPATCHED = "dispatched"
    AWAITING_RESPONSE = "awaiting_response"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({SessionState.COMPLETED, SessionState.ERROR})

ALLOWED_TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.IDLE: frozenset({SessionState.ROUTING, SessionState.ERROR}),
    SessionState.ROUTING: frozenset(
        {SessionState.CLARIFYING, SessionState.DISPATCHED, SessionState.ERROR}
    ),
    SessionState.CLARIFYING: frozenset({SessionState.ROUTING, SessionState.ERROR}),
    SessionState.DISPATCHED: frozenset(
        {SessionState.AWAITING_RESPONSE, SessionState.ROUTING, SessionState.ERROR}
    ),
    SessionState.AWAITING_RESPONSE: frozenset(
        {SessionState.COMPLETED, SessionState.ROUTING, SessionState.ERROR}
    ),
    SessionState.COMPLETED: frozenset(),
    SessionState.ERROR: frozenset(),
}


@dataclass(frozen=True, slots=True)
class Handoff:
    """One assignment of the session to an agent.

    Attributes:
        agent_id: Agent the session was handed to.
        timestamp: When the handoff happened (UTC).
        reason: "routed", "override", "executor_handoff" or "manual".
        confidence: Routing confidence behind the handoff, if routed.
        from_agent_id: Agent the session was handed from, if any.
    """

    agent_id: AgentId
    timestamp: datetime
    reason: str
    confidence: int | None = None
    from_agent_id: AgentId | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "agent_id": self.agent_id,
            "timestamp": self.timestamp.isoformat(),
            "reason": self.reason,
            "confidence": self.confidence,
            "from_agent_id": self.from_agent_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Handoff:
        return cls(
            agent_id=data["agent_id"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
            reason=data.get("reason", "routed"),
            confidence=data.get("confidence"),
            from_agent_id=data.get("from_agent_id"),
        )


@dataclass(frozen=True, slots=True)
class OrchestrationSession:
    """Immutable snapshot of one conversation's orchestration state.

    Attributes:
        session_id: Unique session identifier.
        state: Current state.
        current_agent: Agent currently assigned, if any.
        history: Ordered agent handoffs, oldest first.
        extracted_data: Data accumulated across turns; later writes win.
        requirements: Requirement profile of the latest request.
        last_confidence: Routing confidence of the latest decision.
        last_response: Content returned by the latest completed dispatch.
        error_reason: Why the session ended in Error ("timeout", "cancelled", ...).
        created_at: When the session was created.
        updated_at: When the session last changed.
    """

    session_id: str
    state: SessionState = SessionState.IDLE
    current_agent: AgentId | None = None
    history: tuple[Handoff, ...] = ()
    extracted_data: dict[str, Any] = field(default_factory=dict)
    requirements: TaskRequirements | None = None
    last_confidence: int | None = None
    last_response: Any = None
    error_reason: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def create(cls, session_id: str | None = None) -> OrchestrationSession:
        """Start a new session in Idle."""
        return cls(session_id=session_id or f"sess_{uuid4().hex[:12]}")

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    def can_transition(self, target: SessionState) -> bool:
        return target in ALLOWED_TRANSITIONS[self.state]

    def _touch(self, **changes: Any) -> OrchestrationSession:
        return replace(self, updated_at=datetime.now(UTC), **changes)

    def _ensure_open(self, target: SessionState) -> None:
        if self.is_terminal:
            raise InvalidTransitionError(
                self.state.value, target.value, session_id=self.session_id
            )

    def with_state(
        self,
        target: SessionState,
        *,
        error_reason: str | None = None,
    ) -> OrchestrationSession:
        """Return the session moved to ``target``.

        Raises:
            InvalidTransitionError: If the transition is not allowed, which
                includes any transition out of a terminal state.
        """
        if not self.can_transition(target):
            raise InvalidTransitionError(
                self.state.value, target.value, session_id=self.session_id
            )
        if target == SessionState.ERROR:
            return self._touch(state=target, error_reason=error_reason or "error")
        return self._touch(state=target)

    def with_handoff(
        self,
        agent_id: AgentId,
        *,
        reason: str,
        confidence: int | None = None,
    ) -> OrchestrationSession:
        """Assign an agent, appending to history when the agent changes."""
        self._ensure_open(SessionState.DISPATCHED)
        if agent_id == self.current_agent:
            return self._touch(last_confidence=confidence)
        entry = Handoff(
            agent_id=agent_id,
            timestamp=datetime.now(UTC),
            reason=reason,
            confidence=confidence,
            from_agent_id=self.current_agent,
        )
        return self._touch(
            current_agent=agent_id,
            history=(*self.history, entry),
            last_confidence=confidence,
        )

    def with_extracted_data(self, update: dict[str, Any]) -> OrchestrationSession:
        """Merge newly extracted data; keys in ``update`` overwrite old values."""
        self._ensure_open(self.state)
        if not update:
            return self
        return self._touch(extracted_data={**self.extracted_data, **update})

    def with_requirements(
        self,
        requirements: TaskRequirements,
        confidence: int | None = None,
    ) -> OrchestrationSession:
        self._ensure_open(self.state)
        return self._touch(requirements=requirements, last_confidence=confidence)

    def with_response(self, content: Any) -> OrchestrationSession:
        self._ensure_open(self.state)
        return self._touch(last_response=content)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dict for persistence."""
        return {
            "session_id": self.session_id,
            "state": self.state.value,
            "current_agent": self.current_agent,
            "history": [h.to_dict() for h in self.history],
            "extracted_data": self.extracted_data,
            "requirements": self.requirements.to_dict() if self.requirements else None,
            "last_confidence": self.last_confidence,
            "last_response": self.last_response,
            "error_reason": self.error_reason,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OrchestrationSession:
        """Rebuild a session saved with ``to_dict``."""
        requirements = data.get("requirements")
        return cls(
            session_id=data["session_id"],
            state=SessionState(data.get("state", SessionState.IDLE)),
            current_agent=data.get("current_agent"),
            history=tuple(Handoff.from_dict(h) for h in data.get("history", [])),
            extracted_data=dict(data.get("extracted_data") or {}),
            requirements=TaskRequirements.from_dict(requirements) if requirements else None,
            last_confidence=data.get("last_confidence"),
            last_response=data.get("last_response"),
            error_reason=data.get("error_reason"),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )
