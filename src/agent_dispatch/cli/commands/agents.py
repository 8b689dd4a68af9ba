"""Agents command group: inspect the registered roster."""

import typer

from agent_dispatch.cli.commands import ConfigOption, build_engine
from agent_dispatch.cli.formatters.tables import create_agents_table, print_table

app = typer.Typer(
    name="agents",
    help="Inspect registered agents.",
    no_args_is_help=True,
)


@app.command("list")
def list_agents(config: ConfigOption = None) -> None:
    """List registered agents with capabilities, load and performance."""
    with build_engine(config) as engine:
        print_table(create_agents_table(engine.agent_overview()))


__all__ = ["app"]
