"""Tool specifications and the records exchanged with the agent runtime."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

PARAM_TYPES = ("string", "number", "bool", "array", "object")


@dataclass(slots=True)
class ToolContext:
    """Execution context handed to every tool handler."""

    user_id: str
    deadline: Optional[float] = None
    cancel_event: Optional[threading.Event] = None

    def remaining(self) -> Optional[float]:
        """Seconds left before the run's deadline, or None when unbounded."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def cancelled(self) -> bool:
        if self.cancel_event is not None and self.cancel_event.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline


class ToolFn(Protocol):
    """Callable signature every tool implementation must follow."""

    def __call__(self, ctx: ToolContext, params: Dict[str, Any]) -> Any:
        ...


@dataclass(slots=True)
class Param:
    """Describes one input parameter of a tool."""

    type: str
    description: str = ""
    required: bool = False
    enum: Optional[List[str]] = None

    def __post_init__(self) -> None:
        if self.type not in PARAM_TYPES:
            raise ValueError(f"Unsupported parameter type '{self.type}'.")


@dataclass(slots=True)
class Tool:
    """Metadata wrapper used by the registry to invoke tools in a uniform way."""

    name: str
    description: str
    handler: ToolFn
    category: str = ""
    input: Dict[str, Param] = field(default_factory=dict)

    def missing_parameters(self, params: Dict[str, Any]) -> List[str]:
        """Names of required parameters absent from `params`, sorted."""
        return sorted(name for name, p in self.input.items() if p.required and name not in params)


@dataclass(slots=True)
class ToolResult:
    """Outcome of one tool invocation as seen by the agent and the UI."""

    success: bool
    data: Any = None
    error: Optional[str] = None
    fragment: Optional[str] = None
    action: Optional[str] = None
    target: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"success": self.success}
        for key in ("data", "error", "fragment", "action", "target"):
            value = getattr(self, key)
            if value is not None and value != "":
                out[key] = value
        return out


@dataclass(slots=True)
class Step:
    """One iteration of the loop: the model's reasoning, chosen tool and outcome."""

    reasoning: str
    tool: str
    parameters: Dict[str, Any] = field(default_factory=dict)
    result: Optional[ToolResult] = None

    def attach(self, result: ToolResult) -> None:
        """Record the observed result. A step's result is written once."""
        if self.result is not None:
            raise ValueError(f"Step for tool '{self.tool}' already has a result.")
        self.result = result

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "reasoning": self.reasoning,
            "tool": self.tool,
            "parameters": self.parameters,
        }
        if self.result is not None:
            out["result"] = self.result.to_dict()
        return out


__all__ = ["PARAM_TYPES", "Param", "Step", "Tool", "ToolContext", "ToolFn", "ToolResult"]
