"""Unit tests for agent_dispatch event factories."""

from __future__ import annotations

from pydantic import ValidationError as PydanticValidationError
import pytest

from agent_dispatch.events.base import BaseEvent
from agent_dispatch.events.routing import (
    create_performance_updated_event,
    create_routing_decided_event,
)
from agent_dispatch.events.session import (
    create_session_handoff_recorded_event,
    create_session_state_changed_event,
)


class TestBaseEvent:
    """Test BaseEvent model."""

    def test_generates_id_and_timestamp(self) -> None:
        """Each event gets a unique id and a UTC timestamp."""
        first = BaseEvent(type="x.y.happened", aggregate_type="agent", aggregate_id="a")
        second = BaseEvent(type="x.y.happened", aggregate_type="agent", aggregate_id="a")
        assert first.id != second.id
        assert first.timestamp.tzinfo is not None

    def test_is_frozen(self) -> None:
        """Events are immutable."""
        event = BaseEvent(type="x.y.happened", aggregate_type="agent", aggregate_id="a")
        with pytest.raises(PydanticValidationError):
            event.type = "other"  # type: ignore[misc]

    def test_to_dict(self) -> None:
        """to_dict produces JSON-compatible primitives."""
        event = BaseEvent(
            type="x.y.happened", aggregate_type="agent", aggregate_id="a", data={"k": 1}
        )
        data = event.to_dict()
        assert data["type"] == "x.y.happened"
        assert data["data"] == {"k": 1}
        assert isinstance(data["timestamp"], str)


class TestRoutingEvents:
    """Test routing and performance event factories."""

    def test_routing_decided_for_session(self) -> None:
        """A decision made for a session is aggregated by session."""
        event = create_routing_decided_event(
            "fraud-detector",
            91,
            "best capability match",
            {"urgency": "high"},
            session_id="sess_1",
            alternative_agent_id="claims-processor",
            scores={"fraud-detector": 0.9},
        )
        assert event.type == "routing.decision.made"
        assert event.aggregate_type == "session"
        assert event.aggregate_id == "sess_1"
        assert event.data["confidence"] == 91
        assert event.data["alternative_agent_id"] == "claims-processor"
        assert event.data["requirements"] == {"urgency": "high"}

    def test_routing_decided_without_session(self) -> None:
        """A stand-alone decision is aggregated by the selected agent."""
        event = create_routing_decided_event("a", 60, "only eligible agent", {})
        assert event.aggregate_type == "routing"
        assert event.aggregate_id == "a"
        assert event.data["scores"] == {}

    def test_performance_updated(self) -> None:
        """Performance events carry the new rolling stats."""
        event = create_performance_updated_event(
            "a",
            avg_latency_ms=1200.0,
            success_rate=0.9,
            quality_score=85.0,
            sample_count=4,
            success=True,
        )
        assert event.type == "performance.stats.updated"
        assert event.aggregate_type == "agent"
        assert event.data["sample_count"] == 4
        assert event.data["success"] is True


class TestSessionEvents:
    """Test session event factories."""

    def test_state_changed(self) -> None:
        """State change events record both states and the reason."""
        event = create_session_state_changed_event(
            "sess_1", "awaiting_response", "error", agent_id="a", reason="timeout"
        )
        assert event.type == "session.state.changed"
        assert event.data == {
            "previous_state": "awaiting_response",
            "new_state": "error",
            "agent_id": "a",
            "reason": "timeout",
        }

    def test_handoff_recorded(self) -> None:
        """Handoff events record both agents."""
        event = create_session_handoff_recorded_event("sess_1", "a", "b", "manual")
        assert event.type == "session.handoff.recorded"
        assert event.data["from_agent_id"] == "a"
        assert event.data["to_agent_id"] == "b"
