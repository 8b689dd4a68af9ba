"""agent-dispatch CLI module.

This module provides the command-line interface for the dispatch engine,
built with Typer for CLI framework and Rich for terminal output.
"""

from agent_dispatch.cli.main import app

__all__ = ["app"]
