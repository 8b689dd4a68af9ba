"""Pydantic models for agent_dispatch configuration.

This module defines the configuration schema using Pydantic v2.
All configuration validation happens through these models.

Classes:
    TrackerConfig: EMA smoothing, warm-up and cold-start priors
    ScoringWeights: Composite score weights for the recommender
    RecommenderConfig: Scoring, tie-break and confidence settings
    LoadConfig: Utilization thresholds and default capacity
    DispatchConfig: Per-urgency timeouts and retry backoff
    SessionConfig: Clarification threshold and handoff limit
    PersistenceConfig: Session store backend
    AgentConfig: One agent's static profile
    EngineConfig: Top-level configuration combining all sections
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from agent_dispatch.core.types import Level
from agent_dispatch.observability.logging import LoggingConfig


class TrackerConfig(BaseModel, frozen=True):
    """Performance tracker configuration.

    Attributes:
        alpha: EMA smoothing factor; weight of the newest sample.
        warmup_samples: Samples over which the EMA sample weight ramps up to alpha.
        prior_success_rate: Assumed success rate of an untested agent.
        prior_quality_score: Assumed quality score (0-100) of an untested agent.
        baseline_latency_ms: Assumed latency when an agent declares none.
        history_size: Number of recent outcomes kept for audit.
    """

    alpha: float = Field(default=0.1, gt=0.0, le=1.0)
    warmup_samples: int = Field(default=5, ge=0)
    prior_success_rate: float = Field(default=0.85, ge=0.0, le=1.0)
    prior_quality_score: float = Field(default=80.0, ge=0.0, le=100.0)
    baseline_latency_ms: float = Field(default=2000.0, ge=0.0)
    history_size: int = Field(default=1000, ge=1)


class ScoringWeights(BaseModel, frozen=True):
    """Weights of the composite score terms.

    Attributes:
        capability: Weight of the capability match ratio.
        document_type: Weight of the document type match ratio.
        load: Weight of remaining headroom (1 - relative load).
        performance: Weight of success rate x quality.
        complexity: Weight of how closely the agent's complexity level fits.
        latency: Weight of the urgency-adjusted latency penalty.
    """

    capability: float = Field(default=0.4, ge=0.0)
    document_type: float = Field(default=0.15, ge=0.0)
    load: float = Field(default=0.15, ge=0.0)
    performance: float = Field(default=0.2, ge=0.0)
    complexity: float = Field(default=0.05, ge=0.0)
    latency: float = Field(default=0.05, ge=0.0)


class RecommenderConfig(BaseModel, frozen=True):
    """Recommender configuration.

    Attributes:
        weights: Composite score weights.
        partial_match_penalty: Subtracted from the match ratio of agents
            covering only part of the required capabilities.
        wildcard_match_score: Match ratio used when no capability is required.
        document_type_default_score: Document match used when the request
            names no document type.
        tie_epsilon: Scores closer than this are considered equal.
        confidence_scale: Score gap at which confidence has covered ~63% of
            the distance from 50 to 100.
        single_candidate_confidence: Confidence reported with one candidate.
        latency_reference_ms: Latency treated as the maximum penalty.
        urgency_latency_multipliers: Latency penalty multiplier per urgency.
        max_backups: Runners-up reported alongside the winner.
        busy_utilization_percent: Winner utilization above which the
            duration estimate is inflated.
    """

    weights: ScoringWeights = Field(default_factory=ScoringWeights)
    partial_match_penalty: float = Field(default=0.1, ge=0.0, le=1.0)
    wildcard_match_score: float = Field(default=0.5, ge=0.0, le=1.0)
    document_type_default_score: float = Field(default=0.8, ge=0.0, le=1.0)
    tie_epsilon: float = Field(default=1e-9, ge=0.0)
    confidence_scale: float = Field(default=0.1, gt=0.0)
    single_candidate_confidence: int = Field(default=60, ge=0, le=100)
    latency_reference_ms: float = Field(default=10_000.0, gt=0.0)
    urgency_latency_multipliers: dict[Level, float] = Field(
        default_factory=lambda: {Level.LOW: 0.5, Level.MEDIUM: 1.0, Level.HIGH: 2.0}
    )
    max_backups: int = Field(default=3, ge=0)
    busy_utilization_percent: float = Field(default=70.0, ge=0.0)

    @field_validator("urgency_latency_multipliers")
    @classmethod
    def validate_multipliers(cls, v: dict[Level, float]) -> dict[Level, float]:
        """Every urgency level needs a non-negative multiplier."""
        missing = [level.value for level in Level if level not in v]
        if missing:
            msg = f"Missing latency multipliers for: {', '.join(missing)}"
            raise ValueError(msg)
        if any(value < 0 for value in v.values()):
            msg = "Latency multipliers must be non-negative"
            raise ValueError(msg)
        return v

    def latency_multiplier(self, urgency: Level) -> float:
        return self.urgency_latency_multipliers[urgency]


class LoadConfig(BaseModel, frozen=True):
    """Load accounting configuration.

    Attributes:
        default_capacity: Capacity for agents configured without one.
        high_utilization_percent: Utilization flagged as high priority.
        elevated_utilization_percent: Utilization flagged as medium priority.
    """

    default_capacity: float = Field(default=5.0, ge=0.0)
    high_utilization_percent: float = Field(default=80.0, ge=0.0)
    elevated_utilization_percent: float = Field(default=60.0, ge=0.0)

    @model_validator(mode="after")
    def validate_thresholds(self) -> LoadConfig:
        """The high threshold must not be below the elevated one."""
        if self.high_utilization_percent < self.elevated_utilization_percent:
            msg = (
                f"high_utilization_percent ({self.high_utilization_percent}) must be >= "
                f"elevated_utilization_percent ({self.elevated_utilization_percent})"
            )
            raise ValueError(msg)
        return self


class DispatchConfig(BaseModel, frozen=True):
    """Executor dispatch configuration.

    Attributes:
        timeout_low_seconds: Per-attempt bound for low-urgency requests.
        timeout_medium_seconds: Per-attempt bound for medium-urgency requests.
        timeout_high_seconds: Per-attempt bound for high-urgency requests.
        max_retries: Retries after a timed-out attempt.
        retry_wait_initial: First backoff wait in seconds.
        retry_wait_max: Backoff ceiling in seconds.
        retry_wait_jitter: Maximum random jitter added to each wait.
    """

    timeout_low_seconds: float = Field(default=120.0, gt=0.0)
    timeout_medium_seconds: float = Field(default=60.0, gt=0.0)
    timeout_high_seconds: float = Field(default=30.0, gt=0.0)
    max_retries: int = Field(default=2, ge=0)
    retry_wait_initial: float = Field(default=0.5, ge=0.0)
    retry_wait_max: float = Field(default=5.0, ge=0.0)
    retry_wait_jitter: float = Field(default=0.5, ge=0.0)

    def timeout_for(self, urgency: Level) -> float:
        """Per-attempt timeout for a request of the given urgency."""
        return {
            Level.LOW: self.timeout_low_seconds,
            Level.MEDIUM: self.timeout_medium_seconds,
            Level.HIGH: self.timeout_high_seconds,
        }[urgency]


class SessionConfig(BaseModel, frozen=True):
    """Orchestration session configuration.

    Attributes:
        clarification_threshold: Routing confidence below which the session
            asks the caller for more input.
        max_handoffs: Executor-requested handoffs followed per request.
    """

    clarification_threshold: int = Field(default=50, ge=0, le=100)
    max_handoffs: int = Field(default=3, ge=0)


class PersistenceConfig(BaseModel, frozen=True):
    """Session persistence configuration.

    Attributes:
        backend: "memory" keeps sessions in-process; "sqlite" uses a database.
        database_path: SQLite file path, used by the sqlite backend.
    """

    backend: Literal["memory", "sqlite"] = "memory"
    database_path: str = "~/.agent_dispatch/data/sessions.db"

    @field_validator("database_path")
    @classmethod
    def expand_database_path(cls, v: str) -> str:
        """Expand ~ in database_path."""
        if v == ":memory:":
            return v
        return str(Path(v).expanduser())

    @property
    def database_url(self) -> str:
        if self.database_path == ":memory:":
            return "sqlite://"
        return f"sqlite:///{self.database_path}"


class AgentConfig(BaseModel, frozen=True):
    """Static profile of one agent as written in config.yaml.

    Attributes:
        id: Unique agent identifier.
        capabilities: Capability tags.
        base_capacity: Load ceiling; None uses LoadConfig.default_capacity.
        document_types: Document types the agent is tuned for.
        description: Human-readable summary.
        expected_latency_ms: Latency prior; None uses the tracker baseline.
        complexity_level: Highest complexity the agent is designed for.
    """

    id: str = Field(min_length=1)
    capabilities: list[str] = Field(default_factory=list)
    base_capacity: float | None = Field(default=None, ge=0.0)
    document_types: list[str] = Field(default_factory=list)
    description: str = ""
    expected_latency_ms: float | None = Field(default=None, ge=0.0)
    complexity_level: Level = Level.MEDIUM


class EngineConfig(BaseModel, frozen=True):
    """Top-level agent_dispatch configuration.

    It validates against config.yaml in ~/.agent_dispatch/.

    Attributes:
        tracker: Performance tracker configuration
        recommender: Recommender configuration
        load: Load accounting configuration
        dispatch: Executor dispatch configuration
        session: Orchestration session configuration
        persistence: Session persistence configuration
        logging: Structured logging configuration
        event_queue_size: Capacity of the observability event queue
        agents: Agent roster registered at startup
    """

    tracker: TrackerConfig = Field(default_factory=TrackerConfig)
    recommender: RecommenderConfig = Field(default_factory=RecommenderConfig)
    load: LoadConfig = Field(default_factory=LoadConfig)
    dispatch: DispatchConfig = Field(default_factory=DispatchConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    persistence: PersistenceConfig = Field(default_factory=PersistenceConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    event_queue_size: int = Field(default=1000, ge=1)
    agents: list[AgentConfig] = Field(default_factory=list)

    @field_validator("agents")
    @classmethod
    def validate_unique_ids(cls, v: list[AgentConfig]) -> list[AgentConfig]:
        """Agent ids must be unique."""
        seen: set[str] = set()
        for agent in v:
            if agent.id in seen:
                msg = f"Duplicate agent id: {agent.id}"
                raise ValueError(msg)
            seen.add(agent.id)
        return v


def get_default_agents() -> list[AgentConfig]:
    """Return the default insurance-operations agent roster."""
    return [
        AgentConfig(
            id="claims-processor",
            capabilities=["ocr", "document_parsing", "data_extraction", "risk_assessment"],
            document_types=["pdf", "image", "invoice", "repair-estimate", "police-report"],
            description="Processes claim documents and extracts structured data",
            expected_latency_ms=3000.0,
            complexity_level=Level.MEDIUM,
        ),
        AgentConfig(
            id="fraud-detector",
            capabilities=["fraud_detection", "pattern_analysis", "risk_scoring"],
            document_types=["image", "invoice", "assessment-report"],
            description="Identifies suspicious claims and scores fraud risk",
            expected_latency_ms=5000.0,
            complexity_level=Level.HIGH,
        ),
        AgentConfig(
            id="underwriting-assistant",
            capabilities=["risk_analysis", "premium_calculation", "document_validation"],
            document_types=["pdf", "id-document"],
            description="Evaluates proposals and calculates premiums",
            expected_latency_ms=4000.0,
            complexity_level=Level.HIGH,
        ),
        AgentConfig(
            id="policy-analyzer",
            capabilities=["ocr", "document_parsing", "terms_extraction", "coverage_analysis"],
            document_types=["pdf", "policy"],
            description="Reads policies and analyzes coverage terms",
            expected_latency_ms=2500.0,
            complexity_level=Level.MEDIUM,
        ),
        AgentConfig(
            id="contract-reviewer",
            capabilities=["legal_analysis", "risk_identification", "clause_extraction"],
            document_types=["pdf", "document", "policy"],
            description="Reviews contract clauses and flags legal risk",
            expected_latency_ms=6000.0,
            complexity_level=Level.HIGH,
        ),
        AgentConfig(
            id="customer-assistant",
            capabilities=["natural_language", "triage", "escalation"],
            description="Answers customer questions and escalates when needed",
            base_capacity=10.0,
            expected_latency_ms=1000.0,
            complexity_level=Level.LOW,
        ),
    ]


def get_default_config() -> EngineConfig:
    """Get the default configuration, including the default agent roster.

    Returns:
        EngineConfig with all default values populated.
    """
    return EngineConfig(agents=get_default_agents())


def get_config_dir() -> Path:
    """Get the agent_dispatch configuration directory path.

    Returns:
        Path to ~/.agent_dispatch/
    """
    return Path.home() / ".agent_dispatch"
