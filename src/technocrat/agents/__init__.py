"""AI agent definitions and context-file maintenance."""

from technocrat.agents.base import AGENT_KEYS, AGENTS, CLAUDE, Agent, get_agent_by_name
from technocrat.agents.context import (
    AgentContextError,
    AgentUpdate,
    PlanData,
    parse_plan_data,
    update_agent_context,
    update_agent_file,
)

__all__ = [
    "AGENTS",
    "AGENT_KEYS",
    "CLAUDE",
    "Agent",
    "AgentContextError",
    "AgentUpdate",
    "PlanData",
    "get_agent_by_name",
    "parse_plan_data",
    "update_agent_context",
    "update_agent_file",
]
