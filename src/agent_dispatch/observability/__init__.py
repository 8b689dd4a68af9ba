"""Observability module for agent_dispatch.

Main components:
- Logging: configure_logging, get_logger, bind_context, unbind_context
- Event delivery: EventPublisher, EventSink for fire-and-forget audit events
"""

from agent_dispatch.observability.logging import (
    LoggingConfig,
    LogMode,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    reset_logging,
    unbind_context,
)
from agent_dispatch.observability.sink import EventPublisher, EventSink

__all__ = [
    # Logging
    "LogMode",
    "LoggingConfig",
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "reset_logging",
    "unbind_context",
    # Events
    "EventPublisher",
    "EventSink",
]
