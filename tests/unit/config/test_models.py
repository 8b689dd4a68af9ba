"""Unit tests for agent_dispatch.config.models module."""

from __future__ import annotations

from pathlib import Path

from pydantic import ValidationError as PydanticValidationError
import pytest

from agent_dispatch.config.models import (
    AgentConfig,
    DispatchConfig,
    EngineConfig,
    LoadConfig,
    PersistenceConfig,
    RecommenderConfig,
    SessionConfig,
    TrackerConfig,
    get_default_agents,
    get_default_config,
)
from agent_dispatch.core.types import Level


class TestDefaults:
    """Test default configuration values."""

    def test_tracker_defaults(self) -> None:
        """Tracker defaults match the documented priors."""
        config = TrackerConfig()
        assert config.alpha == 0.1
        assert config.warmup_samples == 5
        assert config.prior_success_rate == 0.85
        assert config.prior_quality_score == 80.0

    def test_recommender_weights(self) -> None:
        """Default weights sum to one."""
        weights = RecommenderConfig().weights
        total = (
            weights.capability
            + weights.document_type
            + weights.load
            + weights.performance
            + weights.complexity
            + weights.latency
        )
        assert total == pytest.approx(1.0)

    def test_latency_multiplier(self) -> None:
        """High urgency penalizes latency most."""
        config = RecommenderConfig()
        assert config.latency_multiplier(Level.HIGH) > config.latency_multiplier(Level.LOW)

    def test_timeouts_shrink_with_urgency(self) -> None:
        """More urgent requests get shorter timeouts."""
        config = DispatchConfig()
        assert config.timeout_for(Level.LOW) == 120.0
        assert config.timeout_for(Level.MEDIUM) == 60.0
        assert config.timeout_for(Level.HIGH) == 30.0

    def test_session_defaults(self) -> None:
        """Clarification below 50, at most three executor handoffs."""
        config = SessionConfig()
        assert config.clarification_threshold == 50
        assert config.max_handoffs == 3

    def test_default_roster(self) -> None:
        """The default config ships the six insurance agents."""
        ids = [agent.id for agent in get_default_agents()]
        assert ids == [
            "claims-processor",
            "fraud-detector",
            "underwriting-assistant",
            "policy-analyzer",
            "contract-reviewer",
            "customer-assistant",
        ]
        assert len(get_default_config().agents) == 6

    def test_engine_config_has_no_agents_by_default(self) -> None:
        """A bare EngineConfig starts with an empty roster."""
        assert EngineConfig().agents == []


class TestValidation:
    """Test configuration validation."""

    def test_alpha_bounds(self) -> None:
        """alpha must be in (0, 1]."""
        with pytest.raises(PydanticValidationError):
            TrackerConfig(alpha=0)
        with pytest.raises(PydanticValidationError):
            TrackerConfig(alpha=1.5)

    def test_missing_latency_multiplier(self) -> None:
        """Every urgency level needs a multiplier."""
        with pytest.raises(PydanticValidationError):
            RecommenderConfig(urgency_latency_multipliers={Level.LOW: 1.0})

    def test_load_thresholds_order(self) -> None:
        """The high threshold cannot be below the elevated one."""
        with pytest.raises(PydanticValidationError):
            LoadConfig(high_utilization_percent=50, elevated_utilization_percent=60)

    def test_clarification_threshold_range(self) -> None:
        """Threshold is a confidence value in [0, 100]."""
        with pytest.raises(PydanticValidationError):
            SessionConfig(clarification_threshold=101)

    def test_duplicate_agent_ids(self) -> None:
        """Agent ids must be unique."""
        with pytest.raises(PydanticValidationError):
            EngineConfig(agents=[AgentConfig(id="a"), AgentConfig(id="a")])

    def test_negative_capacity(self) -> None:
        """Agent capacity must be non-negative."""
        with pytest.raises(PydanticValidationError):
            AgentConfig(id="a", base_capacity=-1)

    def test_configs_are_frozen(self) -> None:
        """Configuration objects are immutable."""
        config = SessionConfig()
        with pytest.raises(PydanticValidationError):
            config.max_handoffs = 10  # type: ignore[misc]


class TestPersistenceConfig:
    """Test persistence settings."""

    def test_memory_database_url(self) -> None:
        """:memory: maps to an in-memory SQLite URL."""
        config = PersistenceConfig(backend="sqlite", database_path=":memory:")
        assert config.database_url == "sqlite://"

    def test_path_is_expanded(self) -> None:
        """~ is expanded in the database path."""
        config = PersistenceConfig(database_path="~/sessions.db")
        assert config.database_path == str(Path.home() / "sessions.db")
        assert config.database_url.startswith("sqlite:///")

    def test_unknown_backend(self) -> None:
        """Only memory and sqlite are accepted."""
        with pytest.raises(PydanticValidationError):
            PersistenceConfig(backend="redis")  # type: ignore[arg-type]
