"""AI Agents package."""

from creditflow.agents.ai_agents import (
    AdvisorAgent,
    parse_advice,
    summarize_projection,
)

__all__ = [
    "AdvisorAgent",
    "parse_advice",
    "summarize_projection",
]
