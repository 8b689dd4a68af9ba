"""Rich tables for agents, routing decisions and load.

Provides table formatting utilities with consistent styling for the
agent-dispatch CLI.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from rich.table import Table

from agent_dispatch.cli.formatters import console

if TYPE_CHECKING:
    from agent_dispatch.agents.load import LoadRecommendation
    from agent_dispatch.agents.registry import AgentStatus
    from agent_dispatch.performance.tracker import PerformanceStats
    from agent_dispatch.routing.recommender import ScoredCandidate
    from agent_dispatch.routing.requirements import TaskRequirements


def create_table(
    title: str | None = None,
    *,
    show_header: bool = True,
    border_style: str = "blue",
    header_style: str = "bold cyan",
) -> Table:
    """Create a Rich Table with consistent styling.

    Example:
        table = create_table("Agents")
        table.add_column("Agent", style="cyan")
        table.add_row("claims-processor")
        print_table(table)
    """
    return Table(
        title=title,
        show_header=show_header,
        border_style=border_style,
        header_style=header_style,
        row_styles=["", "dim"],
    )


def create_key_value_table(
    data: dict[str, Any],
    title: str | None = None,
    *,
    key_style: str = "cyan",
) -> Table:
    """Create a two-column table for key-value data."""
    table = create_table(title, show_header=False)
    table.add_column("Key", style=key_style, no_wrap=True)
    table.add_column("Value")
    for key, value in data.items():
        table.add_row(str(key), str(value))
    return table


def _level_style(level: str) -> str:
    return {"low": "success", "medium": "warning", "high": "error"}.get(level, "")


def create_requirements_table(requirements: TaskRequirements) -> Table:
    """Show an extracted requirement profile."""
    table = create_table("Requirements", show_header=False)
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Value")
    data = requirements.to_dict()
    for key in ("complexity", "urgency", "compliance_risk"):
        table.add_row(key, f"[{_level_style(data[key])}]{data[key]}[/]")
    table.add_row("capabilities", ", ".join(data["required_capabilities"]) or "[muted]any[/]")
    table.add_row("document_types", ", ".join(data["document_types"]) or "[muted]none[/]")
    table.add_row("data_volume_kb", f"{data['estimated_data_volume']:.1f}")
    return table


def create_ranking_table(candidates: list[ScoredCandidate]) -> Table:
    """Show scored candidates, best first."""
    table = create_table("Ranking")
    table.add_column("#", justify="right", style="muted")
    table.add_column("Agent", style="cyan", no_wrap=True)
    table.add_column("Score", justify="right")
    table.add_column("Match", justify="right")
    table.add_column("Load", justify="right")
    table.add_column("Success", justify="right")
    table.add_column("Missing")
    for position, candidate in enumerate(candidates, start=1):
        table.add_row(
            str(position),
            candidate.agent_id,
            f"{candidate.score:.3f}",
            f"{candidate.capability_match:.2f}",
            f"{candidate.relative_load:.0%}",
            f"{candidate.success_rate:.0%}",
            ", ".join(sorted(candidate.missing)) or "-",
        )
    return table


def create_agents_table(overview: list[tuple[AgentStatus, PerformanceStats]]) -> Table:
    """Show registered agents with load and performance."""
    table = create_table("Agents")
    table.add_column("Agent", style="cyan", no_wrap=True)
    table.add_column("Capabilities")
    table.add_column("Load", justify="right")
    table.add_column("Success", justify="right")
    table.add_column("Latency", justify="right")
    table.add_column("Samples", justify="right")
    for status, stats in overview:
        table.add_row(
            status.profile.id,
            ", ".join(sorted(status.profile.capabilities)),
            f"{status.current_load:g}/{status.profile.base_capacity:g}",
            f"{stats.success_rate:.0%}",
            f"{stats.avg_latency_ms:.0f} ms",
            str(stats.sample_count),
        )
    return table


def create_load_table(
    distribution: dict[str, float],
    utilization: dict[str, float],
    recommendations: list[LoadRecommendation],
) -> Table:
    """Show load share and utilization per agent."""
    flagged = {r.agent_id: r.priority for r in recommendations}
    table = create_table("Load")
    table.add_column("Agent", style="cyan", no_wrap=True)
    table.add_column("Share", justify="right")
    table.add_column("Utilization", justify="right")
    table.add_column("Status", justify="center")
    for agent_id in sorted(utilization):
        share = distribution.get(agent_id)
        priority = flagged.get(agent_id)
        status = {"high": "[error]overloaded[/]", "medium": "[warning]busy[/]"}.get(
            priority or "", "[success]ok[/]"
        )
        table.add_row(
            agent_id,
            f"{share:.1f}%" if share is not None else "-",
            f"{utilization[agent_id]:.0f}%",
            status,
        )
    return table


def print_table(table: Table) -> None:
    """Print a Rich Table to the shared console."""
    console.print(table)


__all__ = [
    "create_agents_table",
    "create_key_value_table",
    "create_load_table",
    "create_ranking_table",
    "create_requirements_table",
    "create_table",
    "print_table",
]
