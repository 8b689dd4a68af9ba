"""Session state machine, executor protocol and the dispatch driver.

Classes:
    OrchestrationSession: Immutable per-conversation state snapshot
    SessionState: Session states and allowed transitions
    ExternalAgentExecutor: Protocol each agent's executor implements
    SessionOrchestrator: Drives requests through routing and dispatch
"""

from agent_dispatch.orchestrator.executor import (
    ExecutionContext,
    ExecutorResult,
    ExternalAgentExecutor,
)
from agent_dispatch.orchestrator.runner import DispatchOutcome, SessionOrchestrator
from agent_dispatch.orchestrator.session import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATES,
    Handoff,
    OrchestrationSession,
    SessionState,
)

__all__ = [
    # Session
    "ALLOWED_TRANSITIONS",
    "TERMINAL_STATES",
    "Handoff",
    "OrchestrationSession",
    "SessionState",
    # Executor
    "ExecutionContext",
    "ExecutorResult",
    "ExternalAgentExecutor",
    # Orchestrator
    "DispatchOutcome",
    "SessionOrchestrator",
]
