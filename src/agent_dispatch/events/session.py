"""Event definitions for orchestration session lifecycle.

Event naming follows dot.notation.past_tense convention.
"""

from __future__ import annotations

from agent_dispatch.events.base import BaseEvent


def create_session_state_changed_event(
    session_id: str,
    previous_state: str,
    new_state: str,
    *,
    agent_id: str | None = None,
    reason: str | None = None,
) -> BaseEvent:
    """Factory for a session state transition event.

    Args:
        session_id: Session that transitioned.
        previous_state: State before the transition.
        new_state: State after the transition.
        agent_id: Current agent of the session, if any.
        reason: Why the transition happened ("timeout", "cancelled", ...).

    Returns:
        BaseEvent with type "session.state.changed".
    """
    return BaseEvent(
        type="session.state.changed",
        aggregate_type="session",
        aggregate_id=session_id,
        data={
            "previous_state": previous_state,
            "new_state": new_state,
            "agent_id": agent_id,
            "reason": reason,
        },
    )


def create_session_handoff_recorded_event(
    session_id: str,
    from_agent_id: str | None,
    to_agent_id: str,
    reason: str,
) -> BaseEvent:
    """Factory for a handoff event.

    Returns:
        BaseEvent with type "session.handoff.recorded".
    """
    return BaseEvent(
        type="session.handoff.recorded",
        aggregate_type="session",
        aggregate_id=session_id,
        data={
            "from_agent_id": from_agent_id,
            "to_agent_id": to_agent_id,
            "reason": reason,
        },
    )
