"""Agent recommendation: composite scoring, tie-break and confidence.

For each eligible agent the recommender computes

    score = w_cap  * capability_match
          + w_doc  * document_match
          + w_load * (1 - relative_load)
          + w_perf * success_rate * quality_score / 100
          + w_cx   * complexity_match
          - w_lat  * min(avg_latency / reference, 1) * urgency_multiplier

where ``capability_match`` is the fraction of required capabilities the
agent offers (minus a penalty when it covers only part of them),
``document_match`` the fraction of the request's document types the agent is
tuned for (a flat default when the request names none), and
``complexity_match`` 1.0 when the agent's complexity level equals the
request's, 0.7 one level apart and 0.3 otherwise. Weights
and multipliers come from ``RecommenderConfig``.

Candidates whose scores are within ``tie_epsilon`` are ordered by, in turn,
higher capability match, lower relative load, higher success rate, and
finally the lexicographically smallest id, so the same inputs always pick
the same winner.

Routing confidence (0-100):
- Single eligible agent: ``single_candidate_confidence`` (60 by default).
- Otherwise: ``50 + 50 * (1 - exp(-gap / confidence_scale))`` where gap is the
  winner's score lead over the runner-up. A tie reads 50; a clear lead
  approaches 100. When the winner covers only part of the required
  capabilities the value is scaled by ``0.5 + 0.5 * coverage``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import math
from typing import TYPE_CHECKING, Any

from agent_dispatch.config.models import RecommenderConfig
from agent_dispatch.core.errors import NoEligibleAgentError
from agent_dispatch.core.types import AgentId, Capability, Level
from agent_dispatch.events.routing import create_routing_decided_event
from agent_dispatch.observability.logging import get_logger
from agent_dispatch.routing.requirements import TaskRequirements

if TYPE_CHECKING:
    from agent_dispatch.agents.load import LoadBalancer
    from agent_dispatch.agents.registry import AgentProfile, AgentRegistry
    from agent_dispatch.observability.sink import EventPublisher
    from agent_dispatch.performance.tracker import PerformanceStats, PerformanceTracker

log = get_logger(__name__)

COMPLEXITY_DURATION_MULTIPLIERS = {Level.LOW: 0.8, Level.MEDIUM: 1.0, Level.HIGH: 1.5}
URGENCY_DURATION_MULTIPLIERS = {Level.LOW: 1.2, Level.MEDIUM: 1.0, Level.HIGH: 0.8}
BUSY_DURATION_MULTIPLIER = 1.3
BATCH_VOLUME_THRESHOLD_KB = 100.0
COMPLEXITY_MATCH_SCORES = (1.0, 0.7, 0.3)

_FACTOR_LABELS = {
    "capability": "best capability match",
    "document_type": "best document type fit",
    "load": "lowest load",
    "performance": "strongest track record",
    "complexity": "best complexity fit",
    "latency": "fastest response",
}


@dataclass(frozen=True, slots=True)
class ScoredCandidate:
    """One agent's composite score and the inputs that produced it."""

    agent_id: AgentId
    score: float
    capability_match: float
    overlap: int
    missing: frozenset[Capability]
    relative_load: float
    utilization: float
    success_rate: float
    quality_score: float
    avg_latency_ms: float
    latency_penalty: float
    document_match: float = 0.0
    complexity_match: float = 0.0

    @property
    def performance(self) -> float:
        return self.success_rate * self.quality_score / 100


@dataclass(frozen=True, slots=True)
class RecommendationResult:
    """The recommender's decision for one request.

    Attributes:
        agent_id: Selected agent.
        confidence: Routing confidence, integer in [0, 100].
        reasoning: The deciding factors, e.g. "best capability match, lowest load".
        alternative_agent_id: Runner-up, if there was one.
        backup_agent_ids: Ranked runners-up (first is the alternative).
        scores: Composite score per scored candidate.
        estimated_duration_ms: Expected handling time on the selected agent.
        optimizations: Processing hints ("batch_processing", ...).
        requirements: The profile that was scored.
    """

    agent_id: AgentId
    confidence: int
    reasoning: str
    alternative_agent_id: AgentId | None = None
    backup_agent_ids: tuple[AgentId, ...] = ()
    scores: dict[AgentId, float] = field(default_factory=dict)
    estimated_duration_ms: int = 0
    optimizations: tuple[str, ...] = ()
    requirements: TaskRequirements = field(default_factory=TaskRequirements.default)

    def to_dict(self) -> dict[str, Any]:
        return {
            "agent_id": self.agent_id,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "alternative_agent_id": self.alternative_agent_id,
            "backup_agent_ids": list(self.backup_agent_ids),
            "scores": dict(self.scores),
            "estimated_duration_ms": self.estimated_duration_ms,
            "optimizations": list(self.optimizations),
            "requirements": self.requirements.to_dict(),
        }


def _tie_break_key(candidate: ScoredCandidate) -> tuple[float, float, float, str]:
    return (
        -candidate.capability_match,
        candidate.relative_load,
        -candidate.success_rate,
        candidate.agent_id,
    )


def rank_candidates(candidates: list[ScoredCandidate], epsilon: float) -> list[ScoredCandidate]:
    """Order candidates best first, applying the tie-break within epsilon.

    Repeatedly takes the highest remaining score, gathers every candidate
    within epsilon of it, and picks the tie-break winner of that group.
    """
    remaining = list(candidates)
    ranked: list[ScoredCandidate] = []
    while remaining:
        best = max(c.score for c in remaining)
        group = [c for c in remaining if best - c.score <= epsilon]
        winner = min(group, key=_tie_break_key)
        ranked.append(winner)
        remaining.remove(winner)
    return ranked


class Recommender:
    """Scores eligible agents and picks one.

    Scoring reads registry, load and tracker snapshots and has no side
    effects beyond logging and the optional routing event.
    """

    def __init__(
        self,
        registry: AgentRegistry,
        balancer: LoadBalancer,
        tracker: PerformanceTracker,
        config: RecommenderConfig | None = None,
        publisher: EventPublisher | None = None,
    ) -> None:
        self._registry = registry
        self._balancer = balancer
        self._tracker = tracker
        self._config = config or RecommenderConfig()
        self._publisher = publisher

    @property
    def config(self) -> RecommenderConfig:
        return self._config

    def _stats(self, profile: AgentProfile) -> PerformanceStats:
        if profile.id in self._tracker:
            return self._tracker.get_stats(profile.id)
        return self._tracker.prior_stats(profile.expected_latency_ms)

    def _capability_match(self, profile: AgentProfile, requirements: TaskRequirements) -> float:
        if requirements.is_wildcard:
            return self._config.wildcard_match_score
        ratio = profile.overlap(requirements) / len(requirements.required_capabilities)
        if ratio < 1.0:
            ratio = max(0.0, ratio - self._config.partial_match_penalty)
        return ratio

    def _document_match(self, profile: AgentProfile, requirements: TaskRequirements) -> float:
        if not requirements.document_types:
            return self._config.document_type_default_score
        covered = requirements.document_types & profile.document_types
        return len(covered) / len(requirements.document_types)

    @staticmethod
    def _complexity_match(profile: AgentProfile, requirements: TaskRequirements) -> float:
        distance = abs(profile.complexity_level.rank - requirements.complexity.rank)
        return COMPLEXITY_MATCH_SCORES[min(distance, len(COMPLEXITY_MATCH_SCORES) - 1)]

    def score(self, profile: AgentProfile, requirements: TaskRequirements) -> ScoredCandidate:
        """Compute one agent's composite score for a requirement profile."""
        weights = self._config.weights
        stats = self._stats(profile)
        match = self._capability_match(profile, requirements)
        document_match = self._document_match(profile, requirements)
        complexity_match = self._complexity_match(profile, requirements)
        relative_load = self._balancer.relative_load(profile.id)
        latency_penalty = min(
            stats.avg_latency_ms / self._config.latency_reference_ms, 1.0
        ) * self._config.latency_multiplier(requirements.urgency)

        total = (
            weights.capability * match
            + weights.document_type * document_match
            + weights.load * (1.0 - relative_load)
            + weights.performance * stats.success_rate * stats.quality_score / 100
            + weights.complexity * complexity_match
            - weights.latency * latency_penalty
        )
        utilization = relative_load * 100 if profile.base_capacity > 0 else 0.0
        return ScoredCandidate(
            agent_id=profile.id,
            score=total,
            capability_match=match,
            overlap=profile.overlap(requirements),
            missing=profile.missing(requirements),
            relative_load=relative_load,
            utilization=utilization,
            success_rate=stats.success_rate,
            quality_score=stats.quality_score,
            avg_latency_ms=stats.avg_latency_ms,
            latency_penalty=latency_penalty,
            document_match=document_match,
            complexity_match=complexity_match,
        )

    def rank(self, requirements: TaskRequirements) -> list[ScoredCandidate]:
        """Score and order every eligible agent, best first.

        Raises:
            NoEligibleAgentError: If no agents are registered, or none offers
                any required capability.
        """
        if len(self._registry) == 0:
            raise NoEligibleAgentError("No agents registered", requirements=requirements)
        eligible = self._registry.list_eligible(requirements)
        if not eligible:
            raise NoEligibleAgentError(
                "No registered agent offers any required capability",
                {"required_capabilities": sorted(requirements.required_capabilities)},
                requirements=requirements,
            )
        candidates = [self.score(profile, requirements) for profile in eligible]
        return rank_candidates(candidates, self._config.tie_epsilon)

    def _confidence(self, ranked: list[ScoredCandidate], requirements: TaskRequirements) -> int:
        if len(ranked) < 2:
            return self._config.single_candidate_confidence
        gap = max(0.0, ranked[0].score - ranked[1].score)
        confidence = 50.0 + 50.0 * (1.0 - math.exp(-gap / self._config.confidence_scale))
        if not requirements.is_wildcard:
            coverage = ranked[0].overlap / len(requirements.required_capabilities)
            if coverage < 1.0:
                confidence *= 0.5 + 0.5 * coverage
        return max(0, min(100, round(confidence)))

    def _reasoning(self, ranked: list[ScoredCandidate]) -> str:
        winner = ranked[0]
        if len(ranked) == 1:
            reasoning = "only eligible agent"
            if winner.missing:
                reasoning += f"; lacks {', '.join(sorted(winner.missing))}"
            return reasoning

        runner_up = ranked[1]
        weights = self._config.weights
        advantages = {
            "capability": weights.capability
            * (winner.capability_match - runner_up.capability_match),
            "document_type": weights.document_type
            * (winner.document_match - runner_up.document_match),
            "load": weights.load * (runner_up.relative_load - winner.relative_load),
            "performance": weights.performance * (winner.performance - runner_up.performance),
            "complexity": weights.complexity
            * (winner.complexity_match - runner_up.complexity_match),
            "latency": weights.latency * (runner_up.latency_penalty - winner.latency_penalty),
        }
        deciding = [
            name
            for name, value in sorted(advantages.items(), key=lambda item: -item[1])
            if value > self._config.tie_epsilon
        ][:2]

        if deciding:
            reasoning = ", ".join(_FACTOR_LABELS[name] for name in deciding)
        elif winner.capability_match != runner_up.capability_match:
            reasoning = f"tied score, {_FACTOR_LABELS['capability']}"
        elif winner.relative_load != runner_up.relative_load:
            reasoning = f"tied score, {_FACTOR_LABELS['load']}"
        elif winner.success_rate != runner_up.success_rate:
            reasoning = f"tied score, {_FACTOR_LABELS['performance']}"
        else:
            reasoning = "tied on all factors, lowest agent id"

        if runner_up.missing and runner_up.missing != winner.missing:
            reasoning += (
                f"; runner-up {runner_up.agent_id} lacks {', '.join(sorted(runner_up.missing))}"
            )
        return reasoning

    def _estimate_duration(self, winner: ScoredCandidate, requirements: TaskRequirements) -> int:
        duration = (
            winner.avg_latency_ms
            * COMPLEXITY_DURATION_MULTIPLIERS[requirements.complexity]
            * URGENCY_DURATION_MULTIPLIERS[requirements.urgency]
        )
        if winner.utilization > self._config.busy_utilization_percent:
            duration *= BUSY_DURATION_MULTIPLIER
        return round(duration)

    @staticmethod
    def _optimizations(requirements: TaskRequirements) -> tuple[str, ...]:
        hints: list[str] = []
        if requirements.estimated_data_volume > BATCH_VOLUME_THRESHOLD_KB:
            hints.append("batch_processing")
        if len(requirements.document_types) == 1:
            hints.append("result_caching")
        if requirements.complexity == Level.HIGH:
            hints.append("preprocessing")
        return tuple(hints)

    def recommend(
        self,
        requirements: TaskRequirements,
        *,
        session_id: str | None = None,
    ) -> RecommendationResult:
        """Pick the best agent for a requirement profile.

        Args:
            requirements: Extracted requirement profile.
            session_id: Session the decision is for, used in logs and events.

        Returns:
            RecommendationResult for the winning agent.

        Raises:
            NoEligibleAgentError: If no agent can serve the request.
        """
        try:
            ranked = self.rank(requirements)
        except NoEligibleAgentError as e:
            log.error("routing.decision.failed", session_id=session_id, error=e.message)
            raise e.with_context(session_id=session_id) from None

        winner = ranked[0]
        backups = tuple(c.agent_id for c in ranked[1 : 1 + self._config.max_backups])
        result = RecommendationResult(
            agent_id=winner.agent_id,
            confidence=self._confidence(ranked, requirements),
            reasoning=self._reasoning(ranked),
            alternative_agent_id=ranked[1].agent_id if len(ranked) > 1 else None,
            backup_agent_ids=backups,
            scores={c.agent_id: round(c.score, 6) for c in ranked},
            estimated_duration_ms=self._estimate_duration(winner, requirements),
            optimizations=self._optimizations(requirements),
            requirements=requirements,
        )

        log.info(
            "routing.decision.made",
            session_id=session_id,
            agent_id=result.agent_id,
            confidence=result.confidence,
            reasoning=result.reasoning,
            candidates=len(ranked),
        )
        if self._publisher is not None:
            self._publisher.publish(
                create_routing_decided_event(
                    result.agent_id,
                    result.confidence,
                    result.reasoning,
                    requirements.to_dict(),
                    session_id=session_id,
                    alternative_agent_id=result.alternative_agent_id,
                    scores=result.scores,
                )
            )
        return result
