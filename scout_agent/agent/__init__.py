from scout_agent.agent.base import Agent, AgentResult, ScoutResponse, parse_scout_response
from scout_agent.agent.runner import FirecrawlClaudeAgent

__all__ = [
    "Agent",
    "AgentResult",
    "FirecrawlClaudeAgent",
    "ScoutResponse",
    "parse_scout_response",
]
