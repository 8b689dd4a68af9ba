"""Event definitions for routing decisions and performance updates.

These are the two events the engine hands to observability sinks:
- A routing decision, carrying the reasoning string shown to operators
- A performance stats update, carrying the agent's new rolling stats

Event naming follows dot.notation.past_tense convention.
"""

from __future__ import annotations

from typing import Any

from agent_dispatch.events.base import BaseEvent


def create_routing_decided_event(
    agent_id: str,
    confidence: int,
    reasoning: str,
    requirements: dict[str, Any],
    *,
    session_id: str | None = None,
    alternative_agent_id: str | None = None,
    scores: dict[str, float] | None = None,
) -> BaseEvent:
    """Factory for a routing decision event.

    Emitted every time the recommender selects an agent.

    Args:
        agent_id: Selected agent.
        confidence: Routing confidence in [0, 100].
        reasoning: Deciding factors, e.g. "best capability match, lowest load".
        requirements: Serialized TaskRequirements that were scored.
        session_id: Session the decision was made for, if any.
        alternative_agent_id: Runner-up agent, if any.
        scores: Composite score per candidate.

    Returns:
        BaseEvent with type "routing.decision.made".
    """
    return BaseEvent(
        type="routing.decision.made",
        aggregate_type="session" if session_id else "routing",
        aggregate_id=session_id or agent_id,
        data={
            "agent_id": agent_id,
            "confidence": confidence,
            "reasoning": reasoning,
            "alternative_agent_id": alternative_agent_id,
            "requirements": requirements,
            "scores": dict(scores or {}),
        },
    )


def create_performance_updated_event(
    agent_id: str,
    *,
    avg_latency_ms: float,
    success_rate: float,
    quality_score: float,
    sample_count: int,
    success: bool,
) -> BaseEvent:
    """Factory for a performance stats update event.

    Emitted after each recorded outcome commits.

    Returns:
        BaseEvent with type "performance.stats.updated".
    """
    return BaseEvent(
        type="performance.stats.updated",
        aggregate_type="agent",
        aggregate_id=agent_id,
        data={
            "avg_latency_ms": avg_latency_ms,
            "success_rate": success_rate,
            "quality_score": quality_score,
            "sample_count": sample_count,
            "success": success,
        },
    )
