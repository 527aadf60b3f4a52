"""Prompt text and the tool catalog shown to the Oracle."""

from __future__ import annotations

import json
from typing import Any, Dict, List

from taskagent.tools import ToolResult
from taskagent.tools.registry import ToolRegistry

FINAL_ANSWER_TOOL = "final_answer"

BASE_SYSTEM_PROMPT = (
    "You are an assistant for a community platform.\n\n"
    "Core principles:\n"
    "- Speak with knowledge and cite sources; do not fabricate or hallucinate\n"
    "- Be honest about limitations; \"I don't know\" is better than false information\n"
    "- Serve the user's task first, and be concise\n\n"
    "You help users accomplish tasks and find information from trusted sources.\n"
)

AGENT_INSTRUCTIONS = (
    "You are a task execution agent. You execute specific tasks using the available tools.\n\n"
    "Available tools:\n"
    "{catalog}\n\n"
    "You must respond with EXACTLY ONE JSON object per response:\n"
    "{{\n"
    '  "reasoning": "Why this step is needed",\n'
    '  "tool": "tool_name",\n'
    '  "parameters": {{ "param1": "value1" }}\n'
    "}}\n\n"
    "Rules:\n"
    "1. ONE TOOL PER RESPONSE - never output multiple JSON objects\n"
    "2. You execute TASKS - playing videos, searching news, creating apps, sending emails, "
    "checking prices, saving notes, etc.\n"
    "3. For news, search for articles and always cite the source\n"
    "4. For general questions without a clear tool, use final_answer to say: "
    "\"I can help with tasks like playing videos, searching news, or creating apps. "
    "For general conversation, try Chat.\"\n"
    "5. After each tool result, decide if you need more steps or can provide final_answer\n"
    "6. Always end with final_answer when done\n"
    "7. Be concise - minimize steps\n"
    "8. When providing final_answer, include the ACTUAL DATA from tool results "
    "(headlines, prices, verses, etc.) - don't just say you found them, SHOW them with sources\n"
    "9. To send something to the current user, use \"me\" as the recipient\n\n"
    "Current user: {user_id}"
)

GENERAL_REDIRECT_ANSWER = (
    "I help with tasks like searching news, playing videos, creating apps, or finding "
    "references. For general questions and conversation, try Chat where you can discuss "
    "with others."
)

FINAL_ANSWER_SPEC: Dict[str, Any] = {
    "name": FINAL_ANSWER_TOOL,
    "description": (
        "Provide the final answer to the user. Use this when you have completed the task "
        "or gathered all needed information."
    ),
    "parameters": {
        "answer": {
            "type": "string",
            "description": "The final answer or response to give the user",
            "required": True,
        }
    },
}


def build_catalog(registry: ToolRegistry) -> List[Dict[str, Any]]:
    """Describe every registered tool, in name order, followed by final_answer."""
    catalog: List[Dict[str, Any]] = []
    for tool in registry.list():
        params = {
            name: {"type": p.type, "description": p.description, "required": p.required}
            for name, p in sorted(tool.input.items())
        }
        catalog.append({"name": tool.name, "description": tool.description, "parameters": params})
    catalog.append(FINAL_ANSWER_SPEC)
    return catalog


def build_system_prompt(registry: ToolRegistry, user_id: str) -> str:
    catalog = json.dumps(build_catalog(registry), indent=2, ensure_ascii=False)
    instructions = AGENT_INSTRUCTIONS.format(catalog=catalog, user_id=user_id)
    return f"{BASE_SYSTEM_PROMPT}\n{instructions}"


def with_tool_hint(task: str, tool: str) -> str:
    return f"{task}\n\n[Hint: Consider using the {tool} tool]"


def observation_prompt(result: ToolResult) -> str:
    """Message fed back to the Oracle after a tool ran."""
    payload = json.dumps(result.to_dict(), ensure_ascii=False, default=str)
    return f"Tool result: {payload}\n\nWhat's next?"
