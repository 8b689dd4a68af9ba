"""Route command: show which agent a query would be dispatched to.

Runs requirement extraction and the recommender without dispatching.
"""

from typing import Annotated

import typer

from agent_dispatch.cli.commands import ConfigOption, build_engine
from agent_dispatch.cli.formatters import console
from agent_dispatch.cli.formatters.panels import message_panel, print_error
from agent_dispatch.cli.formatters.tables import (
    create_key_value_table,
    create_ranking_table,
    create_requirements_table,
    print_table,
)
from agent_dispatch.core.errors import NoEligibleAgentError
from agent_dispatch.routing.requirements import AttachmentDescriptor


def parse_attachment(value: str) -> AttachmentDescriptor:
    """Parse ``name[:type[:size]]`` into an AttachmentDescriptor.

    Raises:
        typer.BadParameter: If the name is empty or size is not a
            non-negative integer.
    """
    name, _, rest = value.partition(":")
    declared_type, _, size = rest.partition(":")
    if not name:
        raise typer.BadParameter(f"attachment needs a name: {value!r}")
    try:
        size_bytes = int(size) if size else 0
    except ValueError:
        raise typer.BadParameter(f"attachment size must be an integer: {value!r}") from None
    if size_bytes < 0:
        raise typer.BadParameter(f"attachment size must be non-negative: {value!r}")
    return AttachmentDescriptor(
        name=name, declared_type=declared_type or None, size_bytes=size_bytes
    )


def route(
    query: Annotated[str, typer.Argument(help="Request text to route.")],
    attach: Annotated[
        list[str] | None,
        typer.Option(
            "--attach",
            "-a",
            help="Attachment as name[:type[:size]]; repeat for several.",
        ),
    ] = None,
    config: ConfigOption = None,
) -> None:
    """Extract requirements from QUERY and show the recommended agent."""
    attachments = [parse_attachment(value) for value in attach or []]
    with build_engine(config) as engine:
        requirements = engine.extract(query, attachments)
        print_table(create_requirements_table(requirements))

        fields = engine.extractor.extract_fields(query)
        if fields:
            print_table(create_key_value_table(fields, "Extracted Fields"))

        try:
            ranked = engine.recommender.rank(requirements)
            decision = engine.recommend(requirements)
        except NoEligibleAgentError as e:
            print_error(e.message, title="No Eligible Agent")
            raise typer.Exit(1) from e

        print_table(create_ranking_table(ranked))
        summary = [
            f"[highlight]{decision.agent_id}[/] (confidence {decision.confidence})",
            f"Reasoning: {decision.reasoning}",
        ]
        if decision.backup_agent_ids:
            summary.append(f"Backups: {', '.join(decision.backup_agent_ids)}")
        summary.append(f"Estimated duration: {decision.estimated_duration_ms / 1000:.1f}s")
        if decision.optimizations:
            summary.append(f"Optimizations: {', '.join(decision.optimizations)}")
        console.print(message_panel("\n".join(summary), "success", title="Recommendation"))
