"""Rolling performance statistics per agent.

Every completed dispatch feeds one outcome into ``PerformanceTracker``,
which keeps an exponential moving average of latency, success rate and
quality score for each agent:

    new = old * (1 - alpha) + sample * alpha

The EMA starts at a configured prior. Until an agent has ``warmup_samples``
outcomes, each sample is folded in with a damped weight
``alpha * (sample_count + 1) / warmup_samples``, so one early failure cannot
sink an untested agent. Every success still moves the average up and every
failure moves it down.

Updates for one agent are linearized with an optimistic version check: the
new state is computed outside the lock and committed only if no other
update landed in between, otherwise the update is recomputed. Different
agents never share a lock.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, replace
from datetime import UTC, datetime
import threading

from agent_dispatch.config.models import TrackerConfig
from agent_dispatch.core.errors import PerformanceUpdateConflict, UnknownAgentError, ValidationError
from agent_dispatch.core.types import AgentId, Level
from agent_dispatch.events.routing import create_performance_updated_event
from agent_dispatch.observability.logging import get_logger
from agent_dispatch.observability.sink import EventPublisher
from agent_dispatch.routing.requirements import TaskRequirements

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class PerformanceStats:
    """Stats an agent reports to the recommender.

    Attributes:
        avg_latency_ms: Average latency in milliseconds.
        success_rate: Fraction of successful outcomes, 0-1.
        quality_score: Average quality, 0-100.
        sample_count: Outcomes recorded since the last reset.
    """

    avg_latency_ms: float
    success_rate: float
    quality_score: float
    sample_count: int


@dataclass(frozen=True, slots=True)
class _AgentState:
    ema_latency_ms: float
    ema_success_rate: float
    ema_quality_score: float
    sample_count: int
    version: int
    prior_latency_ms: float


@dataclass(frozen=True, slots=True)
class OutcomeRecord:
    """One recorded outcome, kept for audit.

    ``latency_ms`` is None for timeouts, which are excluded from the
    latency average.
    """

    agent_id: AgentId
    success: bool
    latency_ms: float | None
    quality_score: float | None
    complexity: Level
    urgency: Level
    recorded_at: datetime


class PerformanceTracker:
    """Maintains per-agent performance stats.

    Example:
        tracker = PerformanceTracker(TrackerConfig())
        tracker.register("claims-processor", baseline_latency_ms=3000)
        tracker.record_outcome("claims-processor", requirements, 2100.0, True, 92)
        tracker.get_stats("claims-processor").success_rate
    """

    def __init__(
        self,
        config: TrackerConfig | None = None,
        publisher: EventPublisher | None = None,
    ) -> None:
        self._config = config or TrackerConfig()
        self._publisher = publisher
        self._states: dict[AgentId, _AgentState] = {}
        self._locks: dict[AgentId, threading.Lock] = {}
        self._register_lock = threading.Lock()
        self._history: deque[OutcomeRecord] = deque(maxlen=self._config.history_size)

    @property
    def config(self) -> TrackerConfig:
        return self._config

    def _initial_state(self, prior_latency_ms: float, version: int = 0) -> _AgentState:
        return _AgentState(
            ema_latency_ms=prior_latency_ms,
            ema_success_rate=self._config.prior_success_rate,
            ema_quality_score=self._config.prior_quality_score,
            sample_count=0,
            version=version,
            prior_latency_ms=prior_latency_ms,
        )

    def register(self, agent_id: AgentId, baseline_latency_ms: float | None = None) -> None:
        """Start tracking an agent from the configured prior.

        Registering an agent twice keeps its existing stats.

        Args:
            agent_id: The agent to track.
            baseline_latency_ms: Agent-specific latency prior. None uses the
                configured baseline.
        """
        prior = (
            self._config.baseline_latency_ms
            if baseline_latency_ms is None
            else baseline_latency_ms
        )
        with self._register_lock:
            if agent_id in self._states:
                return
            self._locks[agent_id] = threading.Lock()
            self._states[agent_id] = self._initial_state(prior)

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._states

    def _state(self, agent_id: AgentId) -> _AgentState:
        try:
            return self._states[agent_id]
        except KeyError:
            raise UnknownAgentError(agent_id) from None

    def _alpha(self, sample_count: int) -> float:
        """Sample weight for the next outcome, damped during warm-up."""
        warmup = self._config.warmup_samples
        if warmup <= 0:
            return self._config.alpha
        return self._config.alpha * min(sample_count + 1, warmup) / warmup

    @staticmethod
    def _ema(old: float, sample: float, alpha: float) -> float:
        return old * (1 - alpha) + sample * alpha

    def _apply(
        self,
        state: _AgentState,
        latency_ms: float | None,
        success: bool,
        quality_score: float | None,
    ) -> _AgentState:
        alpha = self._alpha(state.sample_count)
        return replace(
            state,
            ema_latency_ms=(
                state.ema_latency_ms
                if latency_ms is None
                else self._ema(state.ema_latency_ms, latency_ms, alpha)
            ),
            ema_success_rate=self._ema(state.ema_success_rate, 1.0 if success else 0.0, alpha),
            ema_quality_score=(
                state.ema_quality_score
                if quality_score is None
                else self._ema(state.ema_quality_score, quality_score, alpha)
            ),
            sample_count=state.sample_count + 1,
            version=state.version + 1,
        )

    def _commit(self, agent_id: AgentId, expected_version: int, updated: _AgentState) -> None:
        with self._locks[agent_id]:
            current = self._states[agent_id]
            if current.version != expected_version:
                raise PerformanceUpdateConflict(
                    "Stats changed during update",
                    {
                        "agent_id": agent_id,
                        "expected_version": expected_version,
                        "actual_version": current.version,
                    },
                )
            self._states[agent_id] = updated

    def record_outcome(
        self,
        agent_id: AgentId,
        requirements: TaskRequirements,
        latency_ms: float | None,
        success: bool,
        quality_score: float | None = None,
    ) -> PerformanceStats:
        """Fold one dispatch outcome into the agent's stats.

        Args:
            agent_id: Agent that handled the task.
            requirements: Profile of the task that was handled.
            latency_ms: Measured latency; None (timeouts) leaves the latency
                average untouched.
            success: Whether the task succeeded.
            quality_score: Optional quality in [0, 100]; skipped when None.

        Returns:
            The agent's stats after the update.

        Raises:
            UnknownAgentError: If the agent is not tracked.
            ValidationError: If latency is negative or quality out of range.
        """
        if latency_ms is not None and latency_ms < 0:
            raise ValidationError(
                "Latency must be non-negative", field="latency_ms", value=latency_ms
            )
        if quality_score is not None and not 0 <= quality_score <= 100:
            raise ValidationError(
                "Quality score must be within [0, 100]",
                field="quality_score",
                value=quality_score,
            )

        self._state(agent_id)
        conflicts = 0
        while True:
            current = self._states[agent_id]
            updated = self._apply(current, latency_ms, success, quality_score)
            try:
                self._commit(agent_id, current.version, updated)
                break
            except PerformanceUpdateConflict:
                conflicts += 1
                log.debug("performance.update.retried", agent_id=agent_id, conflicts=conflicts)

        self._history.append(
            OutcomeRecord(
                agent_id=agent_id,
                success=success,
                latency_ms=latency_ms,
                quality_score=quality_score,
                complexity=requirements.complexity,
                urgency=requirements.urgency,
                recorded_at=datetime.now(UTC),
            )
        )

        stats = self._effective(updated)
        log.info(
            "performance.outcome.recorded",
            agent_id=agent_id,
            success=success,
            latency_ms=latency_ms,
            success_rate=round(stats.success_rate, 4),
            sample_count=stats.sample_count,
        )
        if self._publisher is not None:
            self._publisher.publish(
                create_performance_updated_event(
                    agent_id,
                    avg_latency_ms=stats.avg_latency_ms,
                    success_rate=stats.success_rate,
                    quality_score=stats.quality_score,
                    sample_count=stats.sample_count,
                    success=success,
                )
            )
        return stats

    @staticmethod
    def _effective(state: _AgentState) -> PerformanceStats:
        return PerformanceStats(
            avg_latency_ms=state.ema_latency_ms,
            success_rate=min(1.0, max(0.0, state.ema_success_rate)),
            quality_score=min(100.0, max(0.0, state.ema_quality_score)),
            sample_count=state.sample_count,
        )

    def get_stats(self, agent_id: AgentId) -> PerformanceStats:
        """Current stats for an agent."""
        return self._effective(self._state(agent_id))

    def prior_stats(self, baseline_latency_ms: float | None = None) -> PerformanceStats:
        """Stats an untracked agent would start from. Does not register it."""
        prior = (
            self._config.baseline_latency_ms
            if baseline_latency_ms is None
            else baseline_latency_ms
        )
        return self._effective(self._initial_state(prior))

    def all_stats(self) -> dict[AgentId, PerformanceStats]:
        """Current stats for every tracked agent, keyed by id."""
        return {agent_id: self.get_stats(agent_id) for agent_id in sorted(self._states)}

    def reset(self, agent_id: AgentId) -> None:
        """Discard an agent's history and return it to the prior.

        Not used in normal operation.
        """
        self._state(agent_id)
        with self._locks[agent_id]:
            current = self._states[agent_id]
            self._states[agent_id] = self._initial_state(
                current.prior_latency_ms, version=current.version + 1
            )
        log.info("performance.stats.reset", agent_id=agent_id)

    def recent_outcomes(
        self,
        agent_id: AgentId | None = None,
        limit: int | None = None,
    ) -> list[OutcomeRecord]:
        """Recorded outcomes, oldest first.

        Args:
            agent_id: Only outcomes for this agent; None returns all.
            limit: Keep only the newest ``limit`` records.
        """
        records = [r for r in list(self._history) if agent_id is None or r.agent_id == agent_id]
        if limit is not None:
            records = records[-limit:] if limit > 0 else []
        return records
