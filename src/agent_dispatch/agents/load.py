"""Load accounting for registered agents.

``LoadBalancer`` is the only writer of an agent's load counter. Dispatch
code should hold load through ``lease()`` so every exit path (success,
failure, timeout, cancellation) releases what it acquired.

Usage:
    balancer = LoadBalancer(registry)
    with balancer.lease("claims-processor"):
        await executor.execute(requirements, context)

    balancer.get_load_distribution()  # {"claims-processor": 100.0, ...}
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from agent_dispatch.agents.registry import AgentRegistry
from agent_dispatch.core.types import AgentId
from agent_dispatch.observability.logging import get_logger

log = get_logger(__name__)

HIGH_UTILIZATION_PERCENT = 80.0
ELEVATED_UTILIZATION_PERCENT = 60.0


@dataclass(frozen=True, slots=True)
class LoadRecommendation:
    """Advice for an agent running hot.

    Attributes:
        agent_id: The agent concerned.
        utilization: Current utilization percentage.
        priority: "high" above the high threshold (80% by default),
            "medium" above the elevated one (60%).
        message: Operator-facing suggestion.
    """

    agent_id: AgentId
    utilization: float
    priority: str
    message: str


class LoadBalancer:
    """Acquire/release accounting over an AgentRegistry's load cells.

    Each agent's counter is guarded by that agent's own lock; there is no
    global lock across agents.
    """

    def __init__(
        self,
        registry: AgentRegistry,
        *,
        high_utilization_percent: float = HIGH_UTILIZATION_PERCENT,
        elevated_utilization_percent: float = ELEVATED_UTILIZATION_PERCENT,
    ) -> None:
        self._registry = registry
        self._high = high_utilization_percent
        self._elevated = elevated_utilization_percent

    @property
    def registry(self) -> AgentRegistry:
        return self._registry

    def acquire(self, agent_id: AgentId, amount: float = 1.0) -> float:
        """Increase an agent's load. Called at dispatch time.

        Capacity is a scoring signal, not a limit: acquiring past
        ``base_capacity`` is allowed.

        Returns:
            The load after the increment.

        Raises:
            UnknownAgentError: If the agent is not registered.
        """
        cell = self._registry.load_cell(agent_id)
        with cell.lock:
            cell.value += amount
            current = cell.value
        log.debug("load.lease.acquired", agent_id=agent_id, load=current)
        return current

    def release(self, agent_id: AgentId, amount: float = 1.0) -> float:
        """Decrease an agent's load, clamped at zero.

        Releasing an agent already at zero is a no-op.

        Returns:
            The load after the decrement.
        """
        cell = self._registry.load_cell(agent_id)
        with cell.lock:
            if cell.value <= 0:
                cell.value = 0.0
                current = 0.0
                noop = True
            else:
                cell.value = max(0.0, cell.value - amount)
                current = cell.value
                noop = False
        if noop:
            log.debug("load.release.ignored", agent_id=agent_id, reason="already_zero")
        else:
            log.debug("load.lease.released", agent_id=agent_id, load=current)
        return current

    @contextmanager
    def lease(self, agent_id: AgentId, amount: float = 1.0) -> Iterator[float]:
        """Hold load on an agent for the duration of a block.

        The load is released however the block exits, including on
        exceptions and task cancellation.

        Yields:
            The load after acquisition.
        """
        current = self.acquire(agent_id, amount)
        try:
            yield current
        finally:
            self.release(agent_id, amount)

    def get_load(self, agent_id: AgentId) -> float:
        return self._registry.get_load(agent_id)

    def relative_load(self, agent_id: AgentId) -> float:
        """Load as a fraction of base capacity.

        May exceed 1.0 for an agent over capacity. An agent with zero
        capacity reports 0 when idle and 1 when holding any load.
        """
        profile = self._registry.get_profile(agent_id)
        load = self._registry.get_load(agent_id)
        if profile.base_capacity <= 0:
            return 1.0 if load > 0 else 0.0
        return load / profile.base_capacity

    def get_load_distribution(self) -> dict[AgentId, float]:
        """Share of total relative load carried by each agent, in percent.

        Covers agents with positive capacity; the values sum to 100. When no
        agent holds any load the share is split evenly. Read-only, so two
        calls with no dispatch in between return equal results.
        """
        relative = {
            profile.id: self._registry.get_load(profile.id) / profile.base_capacity
            for profile in self._registry.profiles()
            if profile.base_capacity > 0
        }
        if not relative:
            return {}
        total = sum(relative.values())
        if total <= 0:
            share = 100.0 / len(relative)
            return dict.fromkeys(relative, share)
        return {agent_id: value / total * 100.0 for agent_id, value in relative.items()}

    def get_utilization(self) -> dict[AgentId, float]:
        """Current load as a percentage of each agent's capacity."""
        return {status.profile.id: status.utilization for status in self._registry.snapshot()}

    def get_load_recommendations(self) -> list[LoadRecommendation]:
        """Agents whose utilization warrants attention, busiest first."""
        recommendations: list[LoadRecommendation] = []
        for agent_id, utilization in self.get_utilization().items():
            if utilization > self._high:
                recommendations.append(
                    LoadRecommendation(
                        agent_id=agent_id,
                        utilization=utilization,
                        priority="high",
                        message="Agent overloaded; add capacity or redistribute work",
                    )
                )
            elif utilization > self._elevated:
                recommendations.append(
                    LoadRecommendation(
                        agent_id=agent_id,
                        utilization=utilization,
                        priority="medium",
                        message="Agent under heavy load; monitor closely",
                    )
                )
        recommendations.sort(key=lambda r: (-r.utilization, r.agent_id))
        return recommendations
