"""Agent registry: static capability profiles plus per-agent load cells.

Agents are registered once at startup. Their capability sets never change
afterwards; only the load counter mutates, and that is owned by
``LoadBalancer``. Each agent has its own lock so dispatches to unrelated
agents never serialize on each other.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
import threading

from agent_dispatch.core.errors import UnknownAgentError, ValidationError
from agent_dispatch.core.types import AgentId, Capability, Level
from agent_dispatch.observability.logging import get_logger
from agent_dispatch.routing.requirements import TaskRequirements

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class AgentProfile:
    """Static description of a worker agent.

    Attributes:
        id: Unique agent identifier.
        capabilities: Capability tags the agent offers. Fixed at registration.
        base_capacity: Load ceiling used to compute relative load.
        document_types: Document type tags the agent is tuned for.
        description: Human-readable summary for listings.
        expected_latency_ms: Latency prior for an agent with no history.
            None falls back to the tracker's configured baseline.
        complexity_level: Highest complexity the agent is designed for.
    """

    id: AgentId
    capabilities: frozenset[Capability]
    base_capacity: float = 5.0
    document_types: frozenset[str] = field(default_factory=frozenset)
    description: str = ""
    expected_latency_ms: float | None = None
    complexity_level: Level = Level.MEDIUM

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "capabilities", frozenset(c.strip().lower() for c in self.capabilities)
        )
        object.__setattr__(
            self, "document_types", frozenset(d.strip().lower() for d in self.document_types)
        )
        object.__setattr__(self, "complexity_level", Level(self.complexity_level))

    def overlap(self, requirements: TaskRequirements) -> int:
        """Number of required capabilities this agent offers."""
        return len(self.capabilities & requirements.required_capabilities)

    def missing(self, requirements: TaskRequirements) -> frozenset[Capability]:
        """Required capabilities this agent lacks."""
        return requirements.required_capabilities - self.capabilities


class LoadCell:
    """Mutable load counter guarded by its own lock."""

    __slots__ = ("lock", "value")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.value = 0.0


@dataclass(frozen=True, slots=True)
class AgentStatus:
    """Point-in-time view of one agent for listings and monitoring."""

    profile: AgentProfile
    current_load: float

    @property
    def utilization(self) -> float:
        """Current load as a percentage of base capacity (0 when capacity is 0)."""
        if self.profile.base_capacity <= 0:
            return 0.0
        return self.current_load / self.profile.base_capacity * 100


class AgentRegistry:
    """Holds every known agent and its load cell.

    Example:
        registry = AgentRegistry()
        registry.register(AgentProfile(id="fraud-detector", capabilities=frozenset({"fraud"})))
        eligible = registry.list_eligible(requirements)
    """

    def __init__(self, profiles: Iterable[AgentProfile] = ()) -> None:
        self._profiles: dict[AgentId, AgentProfile] = {}
        self._loads: dict[AgentId, LoadCell] = {}
        self._register_lock = threading.Lock()
        for profile in profiles:
            self.register(profile)

    def register(self, profile: AgentProfile) -> None:
        """Add an agent. Ids must be unique and capacity non-negative.

        Raises:
            ValidationError: If the id is already registered or capacity < 0.
        """
        if profile.base_capacity < 0:
            raise ValidationError(
                "Agent capacity must be non-negative",
                field="base_capacity",
                value=profile.base_capacity,
            )
        with self._register_lock:
            if profile.id in self._profiles:
                raise ValidationError("Agent already registered", field="id", value=profile.id)
            self._loads[profile.id] = LoadCell()
            self._profiles[profile.id] = profile
        log.debug(
            "agents.profile.registered",
            agent_id=profile.id,
            capabilities=sorted(profile.capabilities),
            base_capacity=profile.base_capacity,
        )

    def __len__(self) -> int:
        return len(self._profiles)

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._profiles

    def __iter__(self) -> Iterator[AgentProfile]:
        return iter(self.profiles())

    def ids(self) -> list[AgentId]:
        """All agent ids, sorted."""
        return sorted(self._profiles)

    def profiles(self) -> list[AgentProfile]:
        """All profiles, sorted by id."""
        return [self._profiles[agent_id] for agent_id in self.ids()]

    def get_profile(self, agent_id: AgentId) -> AgentProfile:
        """Return the profile for an agent.

        Raises:
            UnknownAgentError: If the agent was never registered.
        """
        try:
            return self._profiles[agent_id]
        except KeyError:
            raise UnknownAgentError(agent_id) from None

    def load_cell(self, agent_id: AgentId) -> LoadCell:
        """Return the agent's load cell. Only LoadBalancer mutates it."""
        try:
            return self._loads[agent_id]
        except KeyError:
            raise UnknownAgentError(agent_id) from None

    def get_load(self, agent_id: AgentId) -> float:
        """Return the agent's current load."""
        cell = self.load_cell(agent_id)
        with cell.lock:
            return cell.value

    def list_eligible(self, requirements: TaskRequirements) -> list[AgentProfile]:
        """Return agents that can serve the requirements, best overlap first.

        With no required capabilities every agent is a wildcard match
        (overlap 0) and all are returned, sorted by id. Otherwise only agents
        sharing at least one capability are returned, ranked by overlap size
        descending then id.
        """
        if requirements.is_wildcard:
            return self.profiles()
        scored = [(p.overlap(requirements), p) for p in self._profiles.values()]
        eligible = [(overlap, p) for overlap, p in scored if overlap > 0]
        eligible.sort(key=lambda item: (-item[0], item[1].id))
        return [p for _, p in eligible]

    def agents_with(self, capability: Capability) -> list[AgentProfile]:
        """Profiles offering a capability, sorted by id."""
        tag = capability.strip().lower()
        return [p for p in self.profiles() if tag in p.capabilities]

    def capabilities(self) -> frozenset[Capability]:
        """Union of every registered agent's capabilities."""
        result: set[Capability] = set()
        for profile in self._profiles.values():
            result |= profile.capabilities
        return frozenset(result)

    def snapshot(self) -> list[AgentStatus]:
        """Current status of every agent, sorted by id."""
        return [AgentStatus(profile=p, current_load=self.get_load(p.id)) for p in self.profiles()]
