"""Config command group for agent-dispatch.

Create and inspect the configuration file.
"""

from pathlib import Path
from typing import Annotated

import typer

from agent_dispatch.cli.formatters.panels import print_error, print_success
from agent_dispatch.cli.formatters.tables import create_key_value_table, print_table
from agent_dispatch.config.loader import create_default_config, get_config_path, load_config
from agent_dispatch.core.errors import ConfigError

app = typer.Typer(
    name="config",
    help="Manage agent-dispatch configuration.",
    no_args_is_help=True,
)

PathOption = Annotated[
    Path | None,
    typer.Option("--path", "-p", help="Config file path (defaults to the resolved path)."),
]


@app.command()
def init(
    path: PathOption = None,
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Overwrite an existing file.")
    ] = False,
) -> None:
    """Write a default config.yaml with the standard agent roster."""
    try:
        written = create_default_config(path, overwrite=force)
    except ConfigError as e:
        print_error(e.message, title="Configuration Error")
        raise typer.Exit(1) from e
    print_success(f"Configuration written to {written}")


@app.command()
def show(path: PathOption = None) -> None:
    """Display the effective configuration."""
    config_path = path or get_config_path()
    try:
        config = load_config(config_path)
    except ConfigError as e:
        print_error(e.message, title="Configuration Error")
        raise typer.Exit(1) from e

    print_table(
        create_key_value_table(
            {
                "config_path": config_path,
                "ema_alpha": config.tracker.alpha,
                "warmup_samples": config.tracker.warmup_samples,
                "clarification_threshold": config.session.clarification_threshold,
                "max_retries": config.dispatch.max_retries,
                "persistence": config.persistence.backend,
                "log_mode": config.logging.mode.value,
                "agents": ", ".join(agent.id for agent in config.agents) or "-",
            },
            "Current Configuration",
        )
    )


__all__ = ["app"]
