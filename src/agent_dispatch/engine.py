"""The Engine: one explicit object wiring every component together.

There is no module-level orchestrator or optimizer singleton. Callers build
an ``Engine`` once (usually from configuration) and pass it where it is
needed, so tests and independent sessions never share hidden state.

Usage:
    engine = Engine.from_config(load_config_or_default(), executors={"fraud-detector": fraud})
    requirements = engine.extract("Suspicious claim, photos attached", attachments)
    decision = engine.recommend(requirements)

    session = engine.sessions.start_session()
    outcome = await engine.sessions.handle_request(session.session_id, query, attachments)
    engine.close()
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any

from agent_dispatch.agents.load import LoadBalancer
from agent_dispatch.agents.registry import AgentProfile, AgentRegistry, AgentStatus
from agent_dispatch.config.models import AgentConfig, EngineConfig
from agent_dispatch.core.types import AgentId
from agent_dispatch.observability.logging import get_logger
from agent_dispatch.observability.sink import EventPublisher, EventSink, SinkCallable
from agent_dispatch.orchestrator.executor import ExternalAgentExecutor
from agent_dispatch.orchestrator.runner import SessionOrchestrator
from agent_dispatch.performance.tracker import PerformanceStats, PerformanceTracker
from agent_dispatch.persistence.store import InMemorySessionStore, SessionStore, SQLSessionStore
from agent_dispatch.routing.recommender import RecommendationResult, Recommender
from agent_dispatch.routing.requirements import (
    AttachmentDescriptor,
    RequirementExtractor,
    TaskRequirements,
)

log = get_logger(__name__)


def profile_from_config(agent: AgentConfig, default_capacity: float) -> AgentProfile:
    """Build an AgentProfile from its config entry."""
    return AgentProfile(
        id=agent.id,
        capabilities=frozenset(agent.capabilities),
        base_capacity=default_capacity if agent.base_capacity is None else agent.base_capacity,
        document_types=frozenset(agent.document_types),
        description=agent.description,
        expected_latency_ms=agent.expected_latency_ms,
        complexity_level=agent.complexity_level,
    )


class Engine:
    """Dependency container for the dispatch engine.

    Attributes:
        config: The configuration the engine was built from.
        registry: Agent profiles and load cells.
        balancer: Load accounting.
        tracker: Rolling performance stats.
        extractor: Requirement extraction.
        recommender: Agent scoring and selection.
        sessions: The session orchestrator.
        publisher: Observability event fan-out.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        store: SessionStore | None = None,
        sinks: Iterable[EventSink | SinkCallable] = (),
    ) -> None:
        self.config = config or EngineConfig()
        self.publisher = EventPublisher(sinks, max_queue=self.config.event_queue_size)
        self.registry = AgentRegistry()
        self.balancer = LoadBalancer(
            self.registry,
            high_utilization_percent=self.config.load.high_utilization_percent,
            elevated_utilization_percent=self.config.load.elevated_utilization_percent,
        )
        self.tracker = PerformanceTracker(self.config.tracker, publisher=self.publisher)
        self.extractor = RequirementExtractor()
        self.recommender = Recommender(
            self.registry,
            self.balancer,
            self.tracker,
            self.config.recommender,
            publisher=self.publisher,
        )
        self._store = store if store is not None else self._build_store()
        self.sessions = SessionOrchestrator(
            self.extractor,
            self.recommender,
            self.balancer,
            self.tracker,
            store=self._store,
            dispatch_config=self.config.dispatch,
            session_config=self.config.session,
            publisher=self.publisher,
        )

    @classmethod
    def from_config(
        cls,
        config: EngineConfig,
        executors: Mapping[AgentId, ExternalAgentExecutor] | None = None,
        *,
        store: SessionStore | None = None,
        sinks: Iterable[EventSink | SinkCallable] = (),
    ) -> Engine:
        """Build an engine and register the configured agent roster.

        Args:
            config: Engine configuration, including ``agents``.
            executors: Executor per agent id. Agents without one can still be
                recommended but not dispatched to.
            store: Session store; defaults to the configured backend.
            sinks: Observability sinks for routing/performance events.
        """
        engine = cls(config, store=store, sinks=sinks)
        executors = executors or {}
        for agent in config.agents:
            engine.register_agent(
                profile_from_config(agent, config.load.default_capacity),
                executors.get(agent.id),
            )
        log.info("engine.lifecycle.started", agents=len(engine.registry))
        return engine

    def _build_store(self) -> SessionStore:
        persistence = self.config.persistence
        if persistence.backend == "sqlite":
            if persistence.database_path != ":memory:":
                Path(persistence.database_path).parent.mkdir(parents=True, exist_ok=True)
            store = SQLSessionStore(persistence.database_url)
            store.initialize()
            return store
        return InMemorySessionStore()

    def register_agent(
        self,
        profile: AgentProfile,
        executor: ExternalAgentExecutor | None = None,
    ) -> None:
        """Register an agent (and optionally its executor) at startup."""
        self.registry.register(profile)
        self.tracker.register(profile.id, profile.expected_latency_ms)
        if executor is not None:
            self.sessions.register_executor(profile.id, executor)

    def extract(
        self,
        query: str,
        attachments: Sequence[AttachmentDescriptor] | None = None,
    ) -> TaskRequirements:
        return self.extractor.extract(query, attachments)

    def recommend(
        self,
        requirements: TaskRequirements,
        *,
        session_id: str | None = None,
    ) -> RecommendationResult:
        return self.recommender.recommend(requirements, session_id=session_id)

    def route(
        self,
        query: str,
        attachments: Sequence[AttachmentDescriptor] | None = None,
    ) -> RecommendationResult:
        """Extract and recommend in one step, without dispatching."""
        return self.recommend(self.extract(query, attachments))

    def agent_overview(self) -> list[tuple[AgentStatus, PerformanceStats]]:
        """Status and stats of every agent, sorted by id."""
        return [
            (status, self.tracker.get_stats(status.profile.id))
            for status in self.registry.snapshot()
        ]

    def load_report(self) -> dict[str, Any]:
        """Load distribution, utilization and recommendations in one dict."""
        return {
            "distribution": self.balancer.get_load_distribution(),
            "utilization": self.balancer.get_utilization(),
            "recommendations": self.balancer.get_load_recommendations(),
        }

    def close(self) -> None:
        """Drain pending events and release the session store."""
        self.publisher.close()
        if isinstance(self._store, SQLSessionStore):
            self._store.close()

    def __enter__(self) -> Engine:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
