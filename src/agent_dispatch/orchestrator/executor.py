"""Executor protocol for the external agents that do the actual work.

The engine never implements OCR, fraud scoring or any other specialist
processing. Each registered agent is backed by an ``ExternalAgentExecutor``
that the orchestrator calls asynchronously and treats as opaque: the call
either returns an ``ExecutorResult`` or raises.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from agent_dispatch.core.types import AgentId
from agent_dispatch.routing.requirements import AttachmentDescriptor, TaskRequirements


@dataclass(frozen=True, slots=True)
class ExecutionContext:
    """What an executor gets besides the requirement profile.

    Attributes:
        session_id: Session the task belongs to.
        agent_id: Agent the executor is acting as.
        query: The caller's query text.
        attachments: Attachment descriptors of the request.
        extracted_data: Data accumulated in the session so far.
        attempt: 1-based attempt number (retries after timeouts increment it).
    """

    session_id: str
    agent_id: AgentId
    query: str
    attachments: tuple[AttachmentDescriptor, ...] = ()
    extracted_data: dict[str, Any] = field(default_factory=dict)
    attempt: int = 1


@dataclass(frozen=True, slots=True)
class ExecutorResult:
    """Outcome reported by an executor.

    Attributes:
        content: Result payload to hand back to the caller.
        extracted_fields: Fields to merge into the session's extracted data.
        confidence: The executor's own confidence (0-100), unrelated to
            routing confidence.
        success: False when the executor handled the call but failed the task.
        quality_score: Optional quality (0-100) fed to the performance tracker.
        handoff_to: Agent the executor wants the session handed to next.
    """

    content: Any = None
    extracted_fields: dict[str, Any] = field(default_factory=dict)
    confidence: float | None = None
    success: bool = True
    quality_score: float | None = None
    handoff_to: AgentId | None = None


@runtime_checkable
class ExternalAgentExecutor(Protocol):
    """Asynchronous interface to one specialist agent."""

    async def execute(
        self,
        requirements: TaskRequirements,
        context: ExecutionContext,
    ) -> ExecutorResult:
        """Run the task and report its outcome."""
        ...
