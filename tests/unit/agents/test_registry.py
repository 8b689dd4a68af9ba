"""Unit tests for agent_dispatch.agents.registry module."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from agent_dispatch.agents.registry import AgentProfile, AgentRegistry, AgentStatus
from agent_dispatch.core.errors import UnknownAgentError, ValidationError
from agent_dispatch.routing.requirements import TaskRequirements


def _requires(*capabilities: str) -> TaskRequirements:
    return TaskRequirements(required_capabilities=frozenset(capabilities))


class TestAgentProfile:
    """Test AgentProfile value object."""

    def test_normalizes_capabilities(self) -> None:
        """Capability tags are lower-cased and stripped."""
        profile = AgentProfile(id="a", capabilities=frozenset({" OCR", "Fraud_Detection"}))
        assert profile.capabilities == frozenset({"ocr", "fraud_detection"})

    def test_overlap_and_missing(self) -> None:
        """overlap counts shared tags and missing lists the rest."""
        profile = AgentProfile(id="a", capabilities=frozenset({"ocr", "triage"}))
        requirements = _requires("ocr", "fraud_detection")
        assert profile.overlap(requirements) == 1
        assert profile.missing(requirements) == frozenset({"fraud_detection"})


class TestAgentRegistry:
    """Test AgentRegistry registration and lookups."""

    def test_register_and_get(self, make_agent: Callable[..., AgentProfile]) -> None:
        """A registered profile can be looked up by id."""
        profile = make_agent("a", "ocr")
        registry = AgentRegistry([profile])
        assert registry.get_profile("a") is profile
        assert "a" in registry
        assert len(registry) == 1

    def test_duplicate_id_rejected(self, make_agent: Callable[..., AgentProfile]) -> None:
        """Registering the same id twice is an error."""
        registry = AgentRegistry([make_agent("a", "ocr")])
        with pytest.raises(ValidationError):
            registry.register(make_agent("a", "triage"))

    def test_negative_capacity_rejected(self, make_agent: Callable[..., AgentProfile]) -> None:
        """Capacity must be non-negative."""
        with pytest.raises(ValidationError):
            AgentRegistry([make_agent("a", "ocr", capacity=-1)])

    def test_unknown_agent(self) -> None:
        """Looking up an unregistered id raises UnknownAgentError."""
        registry = AgentRegistry()
        with pytest.raises(UnknownAgentError):
            registry.get_profile("ghost")
        with pytest.raises(UnknownAgentError):
            registry.get_load("ghost")

    def test_listings_are_sorted(self, make_agent: Callable[..., AgentProfile]) -> None:
        """ids, profiles and iteration are ordered by id."""
        registry = AgentRegistry([make_agent("c"), make_agent("a"), make_agent("b")])
        assert registry.ids() == ["a", "b", "c"]
        assert [p.id for p in registry] == ["a", "b", "c"]

    def test_list_eligible_ranks_by_overlap(
        self, make_agent: Callable[..., AgentProfile]
    ) -> None:
        """Eligible agents are ordered by overlap, then id; zero overlap is excluded."""
        registry = AgentRegistry(
            [
                make_agent("b", "ocr"),
                make_agent("a", "ocr"),
                make_agent("c", "ocr", "fraud_detection"),
                make_agent("d", "triage"),
            ]
        )
        eligible = registry.list_eligible(_requires("ocr", "fraud_detection"))
        assert [p.id for p in eligible] == ["c", "a", "b"]

    def test_list_eligible_wildcard(self, make_agent: Callable[..., AgentProfile]) -> None:
        """No required capabilities returns every agent."""
        registry = AgentRegistry([make_agent("b", "ocr"), make_agent("a")])
        assert [p.id for p in registry.list_eligible(TaskRequirements())] == ["a", "b"]

    def test_list_eligible_none(self, make_agent: Callable[..., AgentProfile]) -> None:
        """An unmatched request yields an empty list."""
        registry = AgentRegistry([make_agent("a", "ocr")])
        assert registry.list_eligible(_requires("legal_analysis")) == []

    def test_agents_with_and_capabilities(
        self, make_agent: Callable[..., AgentProfile]
    ) -> None:
        """Capability lookups cover every registered agent."""
        registry = AgentRegistry([make_agent("a", "ocr"), make_agent("b", "ocr", "triage")])
        assert [p.id for p in registry.agents_with("OCR")] == ["a", "b"]
        assert registry.capabilities() == frozenset({"ocr", "triage"})

    def test_snapshot(self, make_agent: Callable[..., AgentProfile]) -> None:
        """snapshot reports load and utilization per agent."""
        registry = AgentRegistry([make_agent("a", "ocr", capacity=4)])
        registry.load_cell("a").value = 1.0
        [status] = registry.snapshot()
        assert status.current_load == 1.0
        assert status.utilization == pytest.approx(25.0)

    def test_zero_capacity_utilization(self) -> None:
        """Zero-capacity agents report zero utilization."""
        status = AgentStatus(
            profile=AgentProfile(id="a", capabilities=frozenset(), base_capacity=0),
            current_load=2.0,
        )
        assert status.utilization == 0.0
