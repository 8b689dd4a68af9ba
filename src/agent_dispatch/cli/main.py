"""agent-dispatch CLI main entry point.

This module defines the main Typer application and registers
all command groups for the agent-dispatch CLI.
"""

from typing import Annotated

import typer

from agent_dispatch import __version__
from agent_dispatch.cli.commands import agents, config, load
from agent_dispatch.cli.commands.route import route
from agent_dispatch.cli.formatters import console

app = typer.Typer(
    name="agent-dispatch",
    help="Agent Dispatch - route requests to the best specialist agent.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.add_typer(agents.app, name="agents")
app.add_typer(load.app, name="load")
app.add_typer(config.app, name="config")
app.command("route")(route)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold cyan]agent-dispatch[/] version [green]{__version__}[/]")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = None,
) -> None:
    """Agent Dispatch - route requests to the best specialist agent.

    Use [bold cyan]agent-dispatch COMMAND --help[/] for command-specific help.
    """


__all__ = ["app", "main"]
