"""Natural-language gateway over Snowflake Cortex Agents.

The gateway answers free-text questions through a warehouse-hosted Cortex
Agent (generated SQL, result rows and prose) and falls back to a direct
``CORTEX.COMPLETE`` query when the agent is unavailable or too slow.
"""

from .gateway import SnowflakeCortexAgentGateway
from .schemas import (
    AgentContentItem,
    AgentResponse,
    AgentResultSet,
    AgentToolResult,
    AnalystAnswer,
)

__all__ = [
    "SnowflakeCortexAgentGateway",
    "AgentContentItem",
    "AgentResponse",
    "AgentResultSet",
    "AgentToolResult",
    "AnalystAnswer",
]
