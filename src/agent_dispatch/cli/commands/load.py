"""Load command group: inspect load distribution."""

import typer

from agent_dispatch.cli.commands import ConfigOption, build_engine
from agent_dispatch.cli.formatters import console
from agent_dispatch.cli.formatters.tables import create_load_table, print_table

app = typer.Typer(
    name="load",
    help="Inspect agent load.",
    no_args_is_help=True,
)


@app.command()
def show(config: ConfigOption = None) -> None:
    """Show each agent's share of load, utilization and warnings."""
    with build_engine(config) as engine:
        report = engine.load_report()
        print_table(
            create_load_table(
                report["distribution"], report["utilization"], report["recommendations"]
            )
        )
        for recommendation in report["recommendations"]:
            style = "error" if recommendation.priority == "high" else "warning"
            console.print(f"[{style}]{recommendation.agent_id}: {recommendation.message}[/]")


__all__ = ["app"]
