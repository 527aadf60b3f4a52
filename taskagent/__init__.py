"""Task agent: turns a free-text task into a bounded sequence of tool calls."""

from taskagent.agent import Agent, RunResult, Step
from taskagent.router import Intent, IntentType, classify_intent
from taskagent.tools import Param, Tool, ToolContext, ToolResult
from taskagent.tools.registry import ToolRegistry

__all__ = [
    "Agent",
    "Intent",
    "IntentType",
    "Param",
    "RunResult",
    "Step",
    "Tool",
    "ToolContext",
    "ToolRegistry",
    "ToolResult",
    "classify_intent",
]
