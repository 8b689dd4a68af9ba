"""Session orchestrator: drives requests through routing and dispatch.

For each request the orchestrator extracts requirements, asks the
recommender for an agent, and dispatches to that agent's executor under a
load lease. The performance tracker is updated from the outcome, which
closes the feedback loop for the next routing decision.

Dispatch rules:
- Each attempt is bounded by the timeout for the request's urgency.
  Timed-out attempts are retried with stamina's exponential backoff; when
  retries run out the session moves to Error, one failure is recorded
  without a latency sample, and DispatchTimeoutError is raised.
- Load is held for the whole dispatch through ``LoadBalancer.lease`` and
  released on every exit path.
- ``cancel`` and ``handoff`` interrupt an in-flight dispatch, including one
  waiting out a retry backoff. The lease is released and no outcome is
  recorded for the interrupted call.
- Low routing confidence parks the session in Clarifying until the caller
  sends more input.

Usage:
    orchestrator = SessionOrchestrator(extractor, recommender, balancer, tracker, executors)
    session = orchestrator.start_session()
    outcome = await orchestrator.handle_request(session.session_id, "Suspicious claim", attachments)
    if outcome.needs_clarification:
        ...
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
import time
from typing import Any

import stamina

from agent_dispatch.agents.load import LoadBalancer
from agent_dispatch.config.models import DispatchConfig, SessionConfig
from agent_dispatch.core.errors import (
    DispatchCancelledError,
    DispatchError,
    DispatchFailedError,
    DispatchTimeoutError,
    InvalidTransitionError,
    NoEligibleAgentError,
)
from agent_dispatch.core.types import AgentId
from agent_dispatch.events.session import (
    create_session_handoff_recorded_event,
    create_session_state_changed_event,
)
from agent_dispatch.observability.logging import bind_context, get_logger, unbind_context
from agent_dispatch.observability.sink import EventPublisher
from agent_dispatch.orchestrator.executor import (
    ExecutionContext,
    ExecutorResult,
    ExternalAgentExecutor,
)
from agent_dispatch.orchestrator.session import OrchestrationSession, SessionState
from agent_dispatch.performance.tracker import PerformanceTracker
from agent_dispatch.persistence.store import InMemorySessionStore, SessionStore
from agent_dispatch.routing.recommender import RecommendationResult, Recommender
from agent_dispatch.routing.requirements import (
    AttachmentDescriptor,
    RequirementExtractor,
    TaskRequirements,
)

log = get_logger(__name__)

_RESTARTABLE_STATES = frozenset({SessionState.IDLE, SessionState.CLARIFYING})


@dataclass(frozen=True, slots=True)
class DispatchOutcome:
    """What ``handle_request`` hands back to the caller.

    Attributes:
        session: Session snapshot after the request.
        recommendation: The routing decision, None when an agent was forced.
        result: The final executor result, None while clarifying.
        latency_ms: Latency of the final executor call.
    """

    session: OrchestrationSession
    recommendation: RecommendationResult | None = None
    result: ExecutorResult | None = None
    latency_ms: float | None = None

    @property
    def needs_clarification(self) -> bool:
        return self.session.state == SessionState.CLARIFYING

    @property
    def agent_id(self) -> AgentId | None:
        return self.session.current_agent


@dataclass(frozen=True, slots=True)
class _Interrupt:
    kind: str
    agent_id: AgentId | None = None


class _Interrupted(Exception):
    """An in-flight executor call was stopped by cancel() or handoff()."""

    def __init__(self, interrupt: _Interrupt) -> None:
        super().__init__(interrupt.kind)
        self.interrupt = interrupt


class SessionOrchestrator:
    """Owns sessions and drives them through extraction, routing and dispatch."""

    def __init__(
        self,
        extractor: RequirementExtractor,
        recommender: Recommender,
        balancer: LoadBalancer,
        tracker: PerformanceTracker,
        executors: Mapping[AgentId, ExternalAgentExecutor] | None = None,
        *,
        store: SessionStore | None = None,
        dispatch_config: DispatchConfig | None = None,
        session_config: SessionConfig | None = None,
        publisher: EventPublisher | None = None,
    ) -> None:
        self._extractor = extractor
        self._recommender = recommender
        self._balancer = balancer
        self._tracker = tracker
        self._executors: dict[AgentId, ExternalAgentExecutor] = dict(executors or {})
        self._store: SessionStore = store if store is not None else InMemorySessionStore()
        self._dispatch_config = dispatch_config or DispatchConfig()
        self._session_config = session_config or SessionConfig()
        self._publisher = publisher
        self._sessions: dict[str, OrchestrationSession] = {}
        self._active: set[str] = set()
        self._inflight: dict[str, asyncio.Future[tuple[ExecutorResult, float]]] = {}
        self._interrupts: dict[str, _Interrupt] = {}
        self._pinned: dict[str, AgentId] = {}

    # ------------------------------------------------------------------
    # Session bookkeeping
    # ------------------------------------------------------------------

    def register_executor(self, agent_id: AgentId, executor: ExternalAgentExecutor) -> None:
        """Attach the executor that performs an agent's work."""
        self._balancer.registry.get_profile(agent_id)
        self._executors[agent_id] = executor

    def start_session(self, session_id: str | None = None) -> OrchestrationSession:
        """Create a new Idle session and save it."""
        session = OrchestrationSession.create(session_id)
        if session.session_id in self._sessions:
            raise DispatchError("Session already exists", {"session_id": session.session_id})
        self._save(session)
        log.info("session.lifecycle.started", session_id=session.session_id)
        return session

    def get_session(self, session_id: str) -> OrchestrationSession:
        """Return a session, restoring it from the store if needed.

        Raises:
            DispatchError: If the session is unknown here and in the store.
        """
        session = self._sessions.get(session_id)
        if session is not None:
            return session
        restored = self.restore_session(session_id)
        if restored is None:
            raise DispatchError("Unknown session", {"session_id": session_id})
        return restored

    def restore_session(self, session_id: str) -> OrchestrationSession | None:
        """Load a saved session, e.g. after a restart.

        A session saved mid-dispatch has lost its executor call, so it is
        moved to Error with reason "interrupted".

        Returns:
            The restored session, or None if the store has no such key.
        """
        data = self._store.get(session_id)
        if data is None:
            return None
        session = OrchestrationSession.from_dict(data)
        self._sessions[session_id] = session
        if not session.is_terminal and session.state not in _RESTARTABLE_STATES:
            session = self._transition(session, SessionState.ERROR, reason="interrupted")
        log.info("session.lifecycle.restored", session_id=session_id, state=session.state)
        return session

    def clear_session(self, session_id: str) -> None:
        """Forget a session in memory and in the store."""
        if session_id in self._active:
            raise DispatchError(
                "Cannot clear a session with a request in flight", {"session_id": session_id}
            )
        self._sessions.pop(session_id, None)
        self._pinned.pop(session_id, None)
        self._store.clear(session_id)

    def _save(self, session: OrchestrationSession) -> OrchestrationSession:
        self._sessions[session.session_id] = session
        self._store.set(session.session_id, session.to_dict())
        return session

    def _transition(
        self,
        session: OrchestrationSession,
        target: SessionState,
        *,
        reason: str | None = None,
    ) -> OrchestrationSession:
        previous = session.state
        session = self._save(session.with_state(target, error_reason=reason))
        log.info(
            "session.state.changed",
            session_id=session.session_id,
            previous_state=previous,
            state=target,
            agent_id=session.current_agent,
            reason=reason,
        )
        if self._publisher is not None:
            self._publisher.publish(
                create_session_state_changed_event(
                    session.session_id,
                    previous.value,
                    target.value,
                    agent_id=session.current_agent,
                    reason=reason,
                )
            )
        return session

    def _assign(
        self,
        session: OrchestrationSession,
        agent_id: AgentId,
        *,
        reason: str,
        confidence: int | None,
    ) -> OrchestrationSession:
        previous_agent = session.current_agent
        session = self._save(session.with_handoff(agent_id, reason=reason, confidence=confidence))
        if previous_agent != agent_id:
            log.info(
                "session.handoff.recorded",
                session_id=session.session_id,
                from_agent_id=previous_agent,
                agent_id=agent_id,
                reason=reason,
            )
            if self._publisher is not None:
                self._publisher.publish(
                    create_session_handoff_recorded_event(
                        session.session_id, previous_agent, agent_id, reason
                    )
                )
        return session

    # ------------------------------------------------------------------
    # Caller controls
    # ------------------------------------------------------------------

    def cancel(self, session_id: str) -> None:
        """Abort a session.

        An in-flight dispatch is interrupted and its load released, whether
        it is waiting on the executor or on the backoff before a retry. No
        performance outcome is written. The session ends in Error with
        reason "cancelled" and the pending ``handle_request`` raises
        DispatchCancelledError.

        Raises:
            InvalidTransitionError: If the session is already terminal.
        """
        session = self.get_session(session_id)
        if session.is_terminal:
            raise InvalidTransitionError(
                session.state.value, SessionState.ERROR.value, session_id=session_id
            )
        if session_id in self._active:
            self._interrupts[session_id] = _Interrupt("cancel")
            self._interrupt_inflight(session_id)
            log.info("session.dispatch.cancel_requested", session_id=session_id)
            return
        self._pinned.pop(session_id, None)
        self._transition(session, SessionState.ERROR, reason="cancelled")

    def _interrupt_inflight(self, session_id: str) -> None:
        task = self._inflight.get(session_id)
        if task is not None and not task.done():
            task.cancel()

    def handoff(self, session_id: str, agent_id: AgentId) -> bool:
        """Hand a session to a specific agent.

        If a dispatch is in flight it is interrupted (load released, no
        outcome recorded) and re-dispatched to ``agent_id`` within the same
        ``handle_request`` call. Otherwise the agent is pinned for the
        session's next request.

        Returns:
            True if an in-flight dispatch was redirected.

        Raises:
            UnknownAgentError: If the agent is not registered.
            InvalidTransitionError: If the session is terminal.
        """
        self._balancer.registry.get_profile(agent_id)
        session = self.get_session(session_id)
        if session.is_terminal:
            raise InvalidTransitionError(
                session.state.value, SessionState.ROUTING.value, session_id=session_id
            )
        if session_id in self._active:
            self._interrupts[session_id] = _Interrupt("handoff", agent_id)
            self._interrupt_inflight(session_id)
            log.info("session.handoff.requested", session_id=session_id, agent_id=agent_id)
            return True
        self._pinned[session_id] = agent_id
        return False

    # ------------------------------------------------------------------
    # Request handling
    # ------------------------------------------------------------------

    async def handle_request(
        self,
        session_id: str,
        query: str,
        attachments: Sequence[AttachmentDescriptor] | None = None,
        *,
        override_agent: AgentId | None = None,
    ) -> DispatchOutcome:
        """Route and dispatch one request within a session.

        Args:
            session_id: Session to run the request in (Idle or Clarifying).
            query: Caller's query text.
            attachments: Attachment metadata.
            override_agent: Skip the recommender and dispatch to this agent.

        Returns:
            DispatchOutcome. ``needs_clarification`` is True when routing
            confidence was below the clarification threshold.

        Raises:
            InvalidTransitionError: If the session cannot take a new request.
            UnknownAgentError: If ``override_agent`` is not registered.
            NoEligibleAgentError: If no agent can serve the request.
            DispatchTimeoutError: If every attempt timed out.
            DispatchFailedError: If the executor failed or raised.
            DispatchCancelledError: If the session was cancelled meanwhile.
        """
        session = self.get_session(session_id)
        if session_id in self._active or session.state not in _RESTARTABLE_STATES:
            raise InvalidTransitionError(
                session.state.value, SessionState.ROUTING.value, session_id=session_id
            )
        forced_agent = override_agent or self._pinned.get(session_id)
        if forced_agent is not None:
            self._balancer.registry.get_profile(forced_agent)

        self._active.add(session_id)
        bind_context(session_id=session_id)
        try:
            return await self._handle(session, query, attachments or (), forced_agent)
        finally:
            self._active.discard(session_id)
            self._inflight.pop(session_id, None)
            self._interrupts.pop(session_id, None)
            unbind_context("session_id")

    async def _handle(
        self,
        session: OrchestrationSession,
        query: str,
        attachments: Sequence[AttachmentDescriptor],
        forced_agent: AgentId | None,
    ) -> DispatchOutcome:
        session_id = session.session_id
        requirements = self._extractor.extract(query, attachments)
        if session.state == SessionState.CLARIFYING and session.requirements is not None:
            requirements = session.requirements.merged_with(requirements)

        session = self._save(
            session.with_extracted_data(self._extractor.extract_fields(query)).with_requirements(
                requirements, session.last_confidence
            )
        )
        session = self._transition(session, SessionState.ROUTING)

        recommendation: RecommendationResult | None = None
        if forced_agent is not None:
            self._pinned.pop(session_id, None)
            agent_id, reason, confidence = forced_agent, "override", None
        else:
            try:
                recommendation = self._recommender.recommend(requirements, session_id=session_id)
            except NoEligibleAgentError as e:
                self._transition(session, SessionState.ERROR, reason="no_eligible_agent")
                raise e.with_context(session_id=session_id, requirements=requirements)
            session = self._save(session.with_requirements(requirements, recommendation.confidence))
            if recommendation.confidence < self._session_config.clarification_threshold:
                session = self._transition(
                    session, SessionState.CLARIFYING, reason="low_confidence"
                )
                return DispatchOutcome(session=session, recommendation=recommendation)
            agent_id, reason, confidence = (
                recommendation.agent_id,
                "routed",
                recommendation.confidence,
            )

        executor_handoffs = 0
        while True:
            session = self._assign(session, agent_id, reason=reason, confidence=confidence)
            session = self._transition(session, SessionState.DISPATCHED)
            try:
                result, latency_ms = await self._dispatch(session, agent_id, query, attachments)
            except _Interrupted as interrupted:
                session = self.get_session(session_id)
                if interrupted.interrupt.kind == "cancel":
                    self._transition(session, SessionState.ERROR, reason="cancelled")
                    raise DispatchCancelledError(
                        "Dispatch cancelled by caller",
                        {"agent_id": agent_id},
                        session_id=session_id,
                        requirements=requirements,
                    ) from None
                session = self._transition(session, SessionState.ROUTING, reason="handoff")
                agent_id = interrupted.interrupt.agent_id or agent_id
                reason, confidence = "manual", None
                continue

            session = self.get_session(session_id)
            session = self._save(
                session.with_extracted_data(result.extracted_fields).with_response(result.content)
            )

            next_agent = result.handoff_to
            if next_agent and next_agent != agent_id:
                if executor_handoffs >= self._session_config.max_handoffs:
                    log.warning(
                        "session.handoff.rejected",
                        session_id=session_id,
                        agent_id=next_agent,
                        reason="max_handoffs",
                    )
                elif next_agent not in self._balancer.registry:
                    log.warning(
                        "session.handoff.rejected",
                        session_id=session_id,
                        agent_id=next_agent,
                        reason="unknown_agent",
                    )
                else:
                    executor_handoffs += 1
                    session = self._transition(session, SessionState.ROUTING, reason="handoff")
                    agent_id, reason, confidence = next_agent, "executor_handoff", None
                    continue

            session = self._transition(session, SessionState.COMPLETED)
            return DispatchOutcome(
                session=session,
                recommendation=recommendation,
                result=result,
                latency_ms=latency_ms,
            )

    async def _dispatch(
        self,
        session: OrchestrationSession,
        agent_id: AgentId,
        query: str,
        attachments: Sequence[AttachmentDescriptor],
    ) -> tuple[ExecutorResult, float]:
        """Run the agent's executor with timeout, retries and a load lease.

        Records the performance outcome for completed, failed and timed-out
        calls. Interrupted calls record nothing.
        """
        session_id = session.session_id
        requirements = session.requirements or TaskRequirements.default()
        executor = self._executors.get(agent_id)
        if executor is None:
            self._transition(session, SessionState.ERROR, reason="no_executor")
            raise DispatchFailedError(
                f"No executor registered for agent {agent_id}",
                agent_id=agent_id,
                session_id=session_id,
                requirements=requirements,
            )

        timeout = self._dispatch_config.timeout_for(requirements.urgency)
        context = ExecutionContext(
            session_id=session_id,
            agent_id=agent_id,
            query=query,
            attachments=tuple(attachments),
            extracted_data=dict(session.extracted_data),
        )
        attempts = 0

        @stamina.retry(
            on=DispatchTimeoutError,
            attempts=self._dispatch_config.max_retries + 1,
            timeout=None,
            wait_initial=self._dispatch_config.retry_wait_initial,
            wait_max=self._dispatch_config.retry_wait_max,
            wait_jitter=self._dispatch_config.retry_wait_jitter,
        )
        async def _attempt() -> tuple[ExecutorResult, float]:
            nonlocal attempts
            attempts += 1
            started = time.perf_counter()
            try:
                result = await asyncio.wait_for(
                    executor.execute(requirements, replace(context, attempt=attempts)), timeout
                )
            except TimeoutError:
                log.warning(
                    "dispatch.attempt.timed_out",
                    agent_id=agent_id,
                    attempt=attempts,
                    timeout_seconds=timeout,
                )
                raise DispatchTimeoutError(
                    f"Executor for {agent_id} timed out after {timeout}s",
                    agent_id=agent_id,
                    timeout_seconds=timeout,
                    attempts=attempts,
                    session_id=session_id,
                    requirements=requirements,
                ) from None
            return result, (time.perf_counter() - started) * 1000

        async def _call() -> tuple[ExecutorResult, float]:
            # Spans every attempt and the backoff between them.
            call = asyncio.ensure_future(_attempt())
            self._inflight[session_id] = call
            try:
                outcome = await call
            except asyncio.CancelledError:
                current = asyncio.current_task()
                interrupt = self._interrupts.pop(session_id, None)
                if interrupt is None or (current is not None and current.cancelling()):
                    raise
                log.info(
                    "dispatch.attempt.interrupted",
                    agent_id=agent_id,
                    attempt=attempts,
                    interrupt=interrupt.kind,
                )
                raise _Interrupted(interrupt) from None
            finally:
                self._inflight.pop(session_id, None)
            interrupt = self._interrupts.pop(session_id, None)
            if interrupt is not None:
                log.info(
                    "dispatch.attempt.interrupted",
                    agent_id=agent_id,
                    attempt=attempts,
                    interrupt=interrupt.kind,
                )
                raise _Interrupted(interrupt)
            return outcome

        with self._balancer.lease(agent_id):
            session = self._transition(session, SessionState.AWAITING_RESPONSE)
            try:
                result, latency_ms = await _call()
            except DispatchTimeoutError as e:
                self._tracker.record_outcome(agent_id, requirements, None, False)
                self._transition(
                    self.get_session(session_id), SessionState.ERROR, reason="timeout"
                )
                raise e.with_context(session_id=session_id, requirements=requirements)
            except _Interrupted:
                raise
            except Exception as e:
                self._tracker.record_outcome(agent_id, requirements, None, False)
                self._transition(
                    self.get_session(session_id), SessionState.ERROR, reason="executor_failed"
                )
                log.error(
                    "dispatch.executor.raised",
                    agent_id=agent_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise DispatchFailedError.from_exception(
                    e, agent_id=agent_id, session_id=session_id, requirements=requirements
                ) from e

        self._tracker.record_outcome(
            agent_id, requirements, latency_ms, result.success, result.quality_score
        )
        if not result.success:
            self._transition(
                self.get_session(session_id), SessionState.ERROR, reason="executor_failed"
            )
            raise DispatchFailedError(
                f"Executor for {agent_id} reported failure",
                agent_id=agent_id,
                session_id=session_id,
                requirements=requirements,
            )
        log.info(
            "dispatch.executor.completed",
            agent_id=agent_id,
            latency_ms=round(latency_ms, 1),
            attempts=attempts,
        )
        return result, latency_ms

    def active_sessions(self) -> list[OrchestrationSession]:
        """Sessions known in memory that are not terminal, sorted by id."""
        return [s for _, s in sorted(self._sessions.items()) if not s.is_terminal]

    def describe(self) -> dict[str, Any]:
        """Small status summary for monitoring."""
        return {
            "sessions": len(self._sessions),
            "active": len(self.active_sessions()),
            "in_flight": len(self._inflight),
        }
