"""Unit tests for agent_dispatch.observability.logging module."""

from __future__ import annotations

from collections.abc import Iterator
import json
import os
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from agent_dispatch.observability.logging import (
    LOG_MODE_ENV_VAR,
    LoggingConfig,
    LogMode,
    bind_context,
    clear_context,
    configure_logging,
    get_current_config,
    get_logger,
    is_configured,
    is_console_logging_enabled,
    reset_logging,
    set_console_logging,
    unbind_context,
)


@pytest.fixture(autouse=True)
def reset_logging_state() -> Iterator[None]:
    """Reset logging state and re-enable console output for each test."""
    reset_logging()
    set_console_logging(True)
    yield
    reset_logging()


class TestLoggingConfig:
    """Test LoggingConfig model."""

    def test_defaults(self) -> None:
        """LoggingConfig defaults to dev mode, INFO, no file logging."""
        config = LoggingConfig()
        assert config.mode == LogMode.DEV
        assert config.log_level == "INFO"
        assert config.enable_file_logging is False
        assert config.log_dir.name == "logs"

    def test_config_is_frozen(self) -> None:
        """LoggingConfig is immutable."""
        from pydantic import ValidationError as PydanticValidationError

        config = LoggingConfig()
        with pytest.raises(PydanticValidationError):
            config.mode = LogMode.PROD  # type: ignore[misc]

    def test_max_log_days_bounds(self) -> None:
        """max_log_days must stay within 1..365."""
        from pydantic import ValidationError as PydanticValidationError

        with pytest.raises(PydanticValidationError):
            LoggingConfig(max_log_days=0)
        with pytest.raises(PydanticValidationError):
            LoggingConfig(max_log_days=400)


class TestConfigureLogging:
    """Test configure_logging function."""

    def test_configure_with_defaults(self) -> None:
        """configure_logging works with default config."""
        configure_logging()
        assert is_configured()

    def test_configure_sets_current_config(self) -> None:
        """configure_logging stores the current config."""
        config = LoggingConfig(mode=LogMode.PROD, log_level="DEBUG")
        configure_logging(config)
        assert get_current_config() == config

    def test_configure_uses_env_mode(self) -> None:
        """configure_logging reads AGENT_DISPATCH_LOG_MODE."""
        with patch.dict(os.environ, {LOG_MODE_ENV_VAR: "prod"}):
            configure_logging()
        config = get_current_config()
        assert config is not None
        assert config.mode == LogMode.PROD

    def test_configure_invalid_env_defaults_to_dev(self) -> None:
        """An unknown mode value falls back to dev."""
        with patch.dict(os.environ, {LOG_MODE_ENV_VAR: "verbose"}):
            configure_logging()
        config = get_current_config()
        assert config is not None
        assert config.mode == LogMode.DEV

    def test_file_logging_creates_directory(self, tmp_path: Path) -> None:
        """Enabling file logging creates the log directory and file."""
        log_dir = tmp_path / "nested" / "logs"
        configure_logging(LoggingConfig(log_dir=log_dir, enable_file_logging=True))
        get_logger().info("test.file.written")
        assert log_dir.exists()
        assert "test.file.written" in (log_dir / "agent_dispatch.log").read_text()

    def test_reset_clears_state(self) -> None:
        """reset_logging forgets the configuration."""
        configure_logging()
        reset_logging()
        assert not is_configured()
        assert get_current_config() is None


class TestGetLogger:
    """Test get_logger function."""

    def test_get_logger_auto_configures(self) -> None:
        """get_logger configures defaults on first use."""
        assert not is_configured()
        log = get_logger(__name__)
        assert log is not None
        assert is_configured()

    def test_logger_writes_to_stderr(self, capsys: Any) -> None:
        """Log lines go to stderr."""
        configure_logging(LoggingConfig())
        get_logger().info("test.event.logged")
        captured = capsys.readouterr()
        assert "test.event.logged" in captured.err
        assert captured.out == ""

    def test_level_filters_lower_events(self, capsys: Any) -> None:
        """Events below the configured level are dropped."""
        configure_logging(LoggingConfig(log_level="WARNING"))
        log = get_logger()
        log.info("test.info.hidden")
        log.warning("test.warning.shown")
        captured = capsys.readouterr()
        assert "test.info.hidden" not in captured.err
        assert "test.warning.shown" in captured.err

    def test_console_logging_can_be_disabled(self, capsys: Any) -> None:
        """set_console_logging(False) silences stderr output."""
        configure_logging(LoggingConfig())
        set_console_logging(False)
        assert not is_console_logging_enabled()
        get_logger().info("test.silenced")
        assert "test.silenced" not in capsys.readouterr().err


class TestBindContext:
    """Test context binding functions."""

    def test_bind_context_adds_to_logs(self, capsys: Any) -> None:
        """bind_context adds keys to every later entry."""
        configure_logging(LoggingConfig())
        bind_context(session_id="sess_123", agent_id="fraud-detector")
        get_logger().info("test.event")
        captured = capsys.readouterr()
        assert "sess_123" in captured.err
        assert "fraud-detector" in captured.err

    def test_unbind_context_removes_key(self, capsys: Any) -> None:
        """unbind_context removes a single key."""
        configure_logging(LoggingConfig())
        bind_context(session_id="sess_123", agent_id="fraud-detector")
        unbind_context("agent_id")
        get_logger().info("test.event.after.unbind")
        captured = capsys.readouterr()
        assert "sess_123" in captured.err
        assert "fraud-detector" not in captured.err

    def test_clear_context_removes_all(self, capsys: Any) -> None:
        """clear_context removes every bound key."""
        configure_logging(LoggingConfig())
        bind_context(session_id="sess_123")
        clear_context()
        get_logger().info("test.event.after.clear")
        assert "sess_123" not in capsys.readouterr().err


class TestProdModeOutput:
    """Test production mode output formatting."""

    def test_prod_mode_emits_json(self, capsys: Any) -> None:
        """Prod mode writes one JSON object per line."""
        configure_logging(LoggingConfig(mode=LogMode.PROD))
        get_logger().info("routing.decision.made", agent_id="a", confidence=91)
        lines = [line for line in capsys.readouterr().err.splitlines() if line]
        data = json.loads(lines[-1])
        assert data["event"] == "routing.decision.made"
        assert data["agent_id"] == "a"
        assert data["confidence"] == 91
        assert data["level"] == "info"
        assert "timestamp" in data

    def test_dev_mode_is_not_json(self, capsys: Any) -> None:
        """Dev mode output is human-readable, not JSON."""
        configure_logging(LoggingConfig(mode=LogMode.DEV))
        get_logger().info("test.dev.mode")
        assert not capsys.readouterr().err.strip().startswith("{")
