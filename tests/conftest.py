"""Shared fixtures for agent_dispatch tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterator, Sequence
from typing import Any

import pytest

from agent_dispatch.agents.registry import AgentProfile
from agent_dispatch.config.models import (
    DispatchConfig,
    EngineConfig,
    SessionConfig,
    TrackerConfig,
)
from agent_dispatch.engine import Engine
from agent_dispatch.observability.logging import reset_logging, set_console_logging
from agent_dispatch.orchestrator.executor import ExecutionContext, ExecutorResult
from agent_dispatch.routing.requirements import TaskRequirements


class FakeExecutor:
    """Scriptable executor that records every call.

    Each call pops the next delay (seconds) and the next result or exception.
    The last entry of each script repeats once the script runs out.
    """

    def __init__(
        self,
        results: Sequence[ExecutorResult | BaseException] | None = None,
        *,
        delays: Sequence[float] = (0.0,),
    ) -> None:
        self.results = list(results or [ExecutorResult(content="done")])
        self.delays = list(delays)
        self.calls: list[tuple[TaskRequirements, ExecutionContext]] = []
        self.started = asyncio.Event()

    async def execute(
        self,
        requirements: TaskRequirements,
        context: ExecutionContext,
    ) -> ExecutorResult:
        index = len(self.calls)
        self.calls.append((requirements, context))
        self.started.set()
        delay = self.delays[min(index, len(self.delays) - 1)]
        if delay:
            await asyncio.sleep(delay)
        outcome = self.results[min(index, len(self.results) - 1)]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


FAST_DISPATCH = DispatchConfig(
    timeout_low_seconds=0.05,
    timeout_medium_seconds=0.05,
    timeout_high_seconds=0.05,
    max_retries=1,
    retry_wait_initial=0.0,
    retry_wait_max=0.0,
    retry_wait_jitter=0.0,
)


@pytest.fixture(autouse=True)
def quiet_logging() -> Iterator[None]:
    """Keep engine logs out of captured output unless a test re-enables them."""
    reset_logging()
    set_console_logging(False)
    yield
    reset_logging()
    set_console_logging(True)


@pytest.fixture
def make_executor() -> Callable[..., FakeExecutor]:
    """Factory for FakeExecutor instances."""
    return FakeExecutor


@pytest.fixture
def make_engine() -> Iterator[Callable[..., Engine]]:
    """Factory building an Engine around explicit agent profiles.

    Keyword arguments:
        agents: AgentProfiles to register.
        executors: Executor per agent id.
        dispatch: DispatchConfig (fast timeouts by default).
        session: SessionConfig.
        tracker: TrackerConfig.
        sinks: Observability sinks.
    """
    engines: list[Engine] = []

    def _make(
        agents: Sequence[AgentProfile] = (),
        executors: dict[str, Any] | None = None,
        *,
        dispatch: DispatchConfig = FAST_DISPATCH,
        session: SessionConfig | None = None,
        tracker: TrackerConfig | None = None,
        sinks: Sequence[Any] = (),
    ) -> Engine:
        config = EngineConfig(
            dispatch=dispatch,
            session=session or SessionConfig(),
            tracker=tracker or TrackerConfig(),
        )
        engine = Engine(config, sinks=sinks)
        executors = executors or {}
        for profile in agents:
            engine.register_agent(profile, executors.get(profile.id))
        engines.append(engine)
        return engine

    yield _make
    for engine in engines:
        engine.close()


def agent(
    agent_id: str,
    *capabilities: str,
    capacity: float = 5.0,
    latency_ms: float | None = None,
) -> AgentProfile:
    """Shorthand for an AgentProfile."""
    return AgentProfile(
        id=agent_id,
        capabilities=frozenset(capabilities),
        base_capacity=capacity,
        expected_latency_ms=latency_ms,
    )


@pytest.fixture
def make_agent() -> Callable[..., AgentProfile]:
    """Factory for AgentProfile instances: make_agent("a", "ocr", capacity=3)."""
    return agent
