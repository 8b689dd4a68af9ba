"""Base event definition.

Events are immutable (frozen Pydantic models) records of something the engine
decided or observed. They are handed to observability sinks and follow the
dot.notation.past_tense naming convention.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field


class BaseEvent(BaseModel, frozen=True):
    """Base class for all agent_dispatch events.

    Attributes:
        id: Unique event identifier (UUID).
        type: Event type, e.g. "routing.decision.made".
        timestamp: When the event occurred (UTC).
        aggregate_type: Kind of entity the event is about ("session", "agent").
        aggregate_id: Identifier of that entity.
        data: Event-specific payload data.

    Example:
        event = BaseEvent(
            type="performance.stats.updated",
            aggregate_type="agent",
            aggregate_id="fraud-detector",
            data={"success_rate": 0.91},
        )
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    type: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    aggregate_type: str
    aggregate_id: str
    data: dict[str, Any] = Field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict for sinks that forward events."""
        return {
            "id": self.id,
            "type": self.type,
            "timestamp": self.timestamp.isoformat(),
            "aggregate_type": self.aggregate_type,
            "aggregate_id": self.aggregate_id,
            "data": self.data,
        }
