"""agent_dispatch - Agent Dispatch & Performance Optimization Engine.

Picks which specialist agent should handle an incoming request, tracks
each agent's performance, and balances load so routing improves over time.

Example:
    # Using CLI
    agent-dispatch route "Suspicious claim, photos attached" --attach front.jpg:image/jpeg:240000

    # Using Python
    from agent_dispatch.engine import Engine
    from agent_dispatch.config import get_default_config

    engine = Engine.from_config(get_default_config())
    decision = engine.route("Urgent: review this contract clause")
"""

__version__ = "0.4.0"

__all__ = ["__version__", "main"]


def main() -> None:
    """Main entry point for the agent-dispatch CLI.

    This function invokes the Typer app from agent_dispatch.cli.main.
    """
    from agent_dispatch.cli.main import app

    app()
