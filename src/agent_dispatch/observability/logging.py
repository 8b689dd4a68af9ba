"""Structured logging configuration for agent_dispatch.

Configures structlog once per process: human-readable console output in
development, JSON in production, with an optional daily-rotated JSON file log.

Standard log keys:
- session_id: Orchestration session identifier
- agent_id: Agent being scored, dispatched to, or updated
- state: Session state after a transition

Event naming convention:
- dot.notation, ``domain.entity.verb_past_tense``
  (e.g. "routing.decision.made", "load.lease.released")

Never log raw query text; log its length instead.

Usage:
    from agent_dispatch.observability import configure_logging, get_logger, bind_context

    configure_logging(LoggingConfig(mode=LogMode.PROD))
    log = get_logger(__name__)

    bind_context(session_id="sess_123")
    log.info("session.state.changed", state="routing")
"""

from __future__ import annotations

from enum import Enum
import logging
from logging.handlers import TimedRotatingFileHandler
import os
from pathlib import Path
import sys
from typing import Any

from pydantic import BaseModel, Field
import structlog

LOG_MODE_ENV_VAR = "AGENT_DISPATCH_LOG_MODE"


class LogMode(str, Enum):
    """Logging output mode."""

    DEV = "dev"
    PROD = "prod"


class LoggingConfig(BaseModel):
    """Configuration for structured logging.

    Attributes:
        mode: Output mode (dev for human-readable, prod for JSON).
        log_level: Minimum log level to output.
        log_dir: Directory for log files. Defaults to ~/.agent_dispatch/logs/.
        max_log_days: Number of days to retain log files.
        enable_file_logging: Whether to write logs to files.
    """

    mode: LogMode = Field(default=LogMode.DEV)
    log_level: str = Field(default="INFO")
    log_dir: Path = Field(default_factory=lambda: Path.home() / ".agent_dispatch" / "logs")
    max_log_days: int = Field(default=7, ge=1, le=365)
    enable_file_logging: bool = Field(default=False)

    model_config = {"frozen": True}


_configured: bool = False
_current_config: LoggingConfig | None = None
_console_logging_enabled: bool = True

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def _get_mode_from_env() -> LogMode:
    """Read the output mode from AGENT_DISPATCH_LOG_MODE (default dev)."""
    if os.environ.get(LOG_MODE_ENV_VAR, "dev").lower() == "prod":
        return LogMode.PROD
    return LogMode.DEV


def _get_log_level(level_str: str) -> int:
    """Convert a level name to its logging constant, defaulting to INFO."""
    return _LEVELS.get(level_str.upper(), logging.INFO)


def _setup_file_handler(config: LoggingConfig) -> TimedRotatingFileHandler | None:
    """Create the midnight-rotating file handler, or None when disabled."""
    if not config.enable_file_logging:
        return None

    config.log_dir.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(
        filename=str(config.log_dir / "agent_dispatch.log"),
        when="midnight",
        interval=1,
        backupCount=config.max_log_days,
        encoding="utf-8",
        utc=True,
    )
    # structlog has already rendered the line
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.setLevel(_get_log_level(config.log_level))
    return handler


def _get_processors(mode: LogMode) -> list[Any]:
    """Build the structlog processor chain ending in the mode's renderer."""
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.CallsiteParameterAdder(
            parameters=[
                structlog.processors.CallsiteParameter.FILENAME,
                structlog.processors.CallsiteParameter.LINENO,
            ]
        ),
        structlog.processors.format_exc_info,
    ]
    if mode == LogMode.DEV:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    else:
        processors.append(structlog.processors.JSONRenderer())
    return processors


def set_console_logging(enabled: bool) -> None:
    """Enable or disable console (stderr) log output."""
    global _console_logging_enabled
    _console_logging_enabled = enabled


def is_console_logging_enabled() -> bool:
    """Return True if console logging is enabled."""
    return _console_logging_enabled


class _DualLogger:
    """structlog logger writing rendered lines to stderr and an optional file."""

    def __init__(self, file_handler: TimedRotatingFileHandler | None = None) -> None:
        self._file_handler = file_handler

    def _write(self, message: str, level: int) -> None:
        if _console_logging_enabled:
            print(message, file=sys.stderr)
        if self._file_handler is not None:
            record = logging.LogRecord(
                name="agent_dispatch",
                level=level,
                pathname="",
                lineno=0,
                msg=message,
                args=(),
                exc_info=None,
            )
            self._file_handler.emit(record)

    def debug(self, message: str) -> None:
        self._write(message, logging.DEBUG)

    def info(self, message: str) -> None:
        self._write(message, logging.INFO)

    def warning(self, message: str) -> None:
        self._write(message, logging.WARNING)

    def error(self, message: str) -> None:
        self._write(message, logging.ERROR)

    def critical(self, message: str) -> None:
        self._write(message, logging.CRITICAL)

    msg = info
    warn = warning
    exception = error
    fatal = critical


class _DualLoggerFactory:
    def __init__(self, file_handler: TimedRotatingFileHandler | None = None) -> None:
        self._file_handler = file_handler

    def __call__(self, *_args: Any) -> _DualLogger:
        return _DualLogger(self._file_handler)


def configure_logging(config: LoggingConfig | None = None) -> None:
    """Configure structlog for the process.

    Call once at startup. Reconfiguring replaces handlers rather than
    stacking them.

    Args:
        config: Logging configuration. If None, uses defaults with the mode
            taken from the AGENT_DISPATCH_LOG_MODE environment variable.
    """
    global _configured, _current_config

    if config is None:
        config = LoggingConfig(mode=_get_mode_from_env())
    _current_config = config

    log_level = _get_log_level(config.log_level)
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    file_handler = _setup_file_handler(config)
    if file_handler:
        root_logger.addHandler(file_handler)

    structlog.configure(
        processors=_get_processors(config.mode),
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=_DualLoggerFactory(file_handler),
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a bound logger, configuring defaults on first use.

    Example:
        log = get_logger(__name__)
        log.info("load.lease.acquired", agent_id="fraud-detector", load=2)
    """
    if not _configured:
        configure_logging()
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind context variables included in every later log entry of this context.

    Example:
        bind_context(session_id="sess_123", agent_id="claims-processor")
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove context variables from the logging context."""
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()


def get_current_config() -> LoggingConfig | None:
    """Return the active logging configuration, if any."""
    return _current_config


def is_configured() -> bool:
    """Return True once configure_logging has run."""
    return _configured


def reset_logging() -> None:
    """Reset module state and structlog defaults. Intended for tests."""
    global _configured, _current_config
    _configured = False
    _current_config = None
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()
