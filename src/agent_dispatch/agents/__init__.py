"""Agent registry and load accounting."""

from agent_dispatch.agents.load import LoadBalancer, LoadRecommendation
from agent_dispatch.agents.registry import AgentProfile, AgentRegistry, AgentStatus

__all__ = [
    "AgentProfile",
    "AgentRegistry",
    "AgentStatus",
    "LoadBalancer",
    "LoadRecommendation",
]
