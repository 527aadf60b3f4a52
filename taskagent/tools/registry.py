"""
Process-wide catalog of invocable tools.

The registry is built once at startup and injected into every agent. Reads
(get/list/by_category) are short critical sections that return snapshots, and
handlers always run outside the lock so a slow tool never blocks lookups.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Iterable, List, Optional

from taskagent.tools import Tool, ToolContext

logger = logging.getLogger(__name__)

META_TOOL_NAME = "tools.list"


class ToolError(Exception):
    """Base class for recoverable tool invocation failures."""

    def __init__(self, tool: str, message: str) -> None:
        super().__init__(message)
        self.tool = tool


class ToolNotFoundError(ToolError):
    def __init__(self, tool: str) -> None:
        super().__init__(tool, f"Unknown tool: {tool}")


class MissingParameterError(ToolError):
    def __init__(self, tool: str, parameter: str) -> None:
        super().__init__(tool, f"Missing required parameter: {parameter}")
        self.parameter = parameter


class ToolHandlerError(ToolError):
    """Raised when a handler fails; the original exception is chained."""

    def __init__(self, tool: str, cause: BaseException) -> None:
        super().__init__(tool, str(cause) or type(cause).__name__)


class ToolRegistry:
    """Thread-safe name -> Tool mapping with validated dispatch."""

    def __init__(self, tools: Optional[Iterable[Tool]] = None) -> None:
        self._tools: Dict[str, Tool] = {}
        self._lock = threading.RLock()
        self.register(
            Tool(
                name=META_TOOL_NAME,
                description="List all available tools and their descriptions",
                category="system",
                handler=self._list_tools_handler,
            )
        )
        for tool in tools or ():
            self.register(tool)

    # ------------------------------------------------------------- mutation
    def register(self, tool: Tool) -> None:
        """Insert or overwrite a tool by name (last write wins)."""
        with self._lock:
            replaced = tool.name in self._tools
            self._tools[tool.name] = tool
        if replaced:
            logger.info("Re-registered tool '%s'", tool.name)
        elif logger.isEnabledFor(logging.DEBUG):
            logger.debug("Registered tool '%s' (category=%s)", tool.name, tool.category or "-")

    def unregister(self, name: str) -> bool:
        """Remove a tool; returns False when it was not registered."""
        with self._lock:
            return self._tools.pop(name, None) is not None

    # --------------------------------------------------------------- lookup
    def get(self, name: str) -> Optional[Tool]:
        with self._lock:
            return self._tools.get(name)

    def list(self) -> List[Tool]:
        """All tools sorted by name."""
        with self._lock:
            tools = list(self._tools.values())
        return sorted(tools, key=lambda t: t.name)

    def by_category(self, category: str) -> List[Tool]:
        return [t for t in self.list() if t.category == category]

    def categories(self) -> List[str]:
        with self._lock:
            cats = {t.category for t in self._tools.values() if t.category}
        return sorted(cats)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._tools

    def __len__(self) -> int:
        with self._lock:
            return len(self._tools)

    # ------------------------------------------------------------- dispatch
    def call(self, ctx: ToolContext, name: str, params: Dict[str, Any]) -> Any:
        """
        Validate and invoke a tool.

        Required parameters are checked before the handler runs, so an
        invalid call never produces a partial side effect.

        Raises
        ------
        ToolNotFoundError
            If no tool is registered under `name`.
        MissingParameterError
            If a required parameter is absent.
        ToolHandlerError
            If the handler itself raised.
        """
        tool = self.get(name)
        if tool is None:
            raise ToolNotFoundError(name)

        missing = tool.missing_parameters(params)
        if missing:
            raise MissingParameterError(name, missing[0])

        try:
            return tool.handler(ctx, params)
        except Exception as exc:
            raise ToolHandlerError(name, exc) from exc

    # ------------------------------------------------------------ meta tool
    def _list_tools_handler(self, ctx: ToolContext, params: Dict[str, Any]) -> Dict[str, Any]:
        listed = [
            {"name": t.name, "description": t.description, "category": t.category}
            for t in self.list()
            if t.name != META_TOOL_NAME
        ]
        return {"tools": listed, "count": len(listed)}


__all__ = [
    "META_TOOL_NAME",
    "MissingParameterError",
    "ToolError",
    "ToolHandlerError",
    "ToolNotFoundError",
    "ToolRegistry",
]
