"""CLI command implementations for agent-dispatch.

This module contains the command group implementations:
- agents: List registered agents
- route: Extract requirements and recommend an agent for a query
- load: Show load distribution
- config: Manage configuration
"""

from pathlib import Path
from typing import Annotated

import typer

from agent_dispatch.cli.formatters.panels import print_error
from agent_dispatch.config.loader import load_config_or_default
from agent_dispatch.core.errors import ConfigError
from agent_dispatch.engine import Engine
from agent_dispatch.observability.logging import configure_logging

ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="Path to config.yaml (defaults to $AGENT_DISPATCH_CONFIG or ~/.agent_dispatch).",
    ),
]


def build_engine(config_path: Path | None) -> Engine:
    """Load configuration and build an engine, exiting with code 1 on bad config."""
    try:
        config = load_config_or_default(config_path)
    except ConfigError as e:
        print_error(e.message, title="Configuration Error")
        raise typer.Exit(1) from e
    configure_logging(config.logging)
    return Engine.from_config(config)
