import types
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from taskagent.oracle import OracleError  # noqa: E402
from taskagent.tools import Param, Tool  # noqa: E402
from taskagent.tools.registry import ToolRegistry  # noqa: E402


class DummyChoice:
    def __init__(self, content: str):
        self.message = types.SimpleNamespace(content=content)


class DummyCompletion:
    def __init__(self, content: str):
        self.choices = [DummyChoice(content)]


class DummyGroq:
    """
    Minimal mock for groq.Groq that supports:
    client.chat.completions.create(...)
    """
    def __init__(self, content: str = "", error: Optional[Exception] = None):
        self._content = content
        self._error = error
        self.calls: List[Dict[str, Any]] = []
        self.chat = types.SimpleNamespace(
            completions=types.SimpleNamespace(create=self._create)
        )

    def _create(self, **kwargs):
        self.calls.append(kwargs)
        if self._error is not None:
            raise self._error
        return DummyCompletion(self._content)


class ScriptedOracle:
    """Oracle double replaying canned responses and recording each request."""

    def __init__(self, responses: Sequence[str], repeat_last: bool = False):
        self.responses = list(responses)
        self.repeat_last = repeat_last
        self.calls: List[Dict[str, Any]] = []

    def ask(self, system, history, question, *, priority=0, backend="default", timeout=None):
        self.calls.append(
            {
                "system": system,
                "history": list(history),
                "question": question,
                "priority": priority,
                "backend": backend,
                "timeout": timeout,
            }
        )
        if not self.responses:
            raise OracleError("no scripted response left")
        if self.repeat_last and len(self.responses) == 1:
            response = self.responses[0]
        else:
            response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class RecordingHandler:
    """Tool handler that records every call and returns a fixed value."""

    def __init__(self, value: Any = None, error: Optional[Exception] = None):
        self.value = {} if value is None else value
        self.error = error
        self.calls: List[Tuple[Any, Dict[str, Any]]] = []

    def __call__(self, ctx, params):
        self.calls.append((ctx, dict(params)))
        if self.error is not None:
            raise self.error
        return self.value


def make_tool(name: str, handler=None, required: Sequence[str] = (), category: str = "", **optional: str) -> Tool:
    inputs = {p: Param("string", f"{p} value", required=True) for p in required}
    inputs.update({p: Param(kind, f"{p} value") for p, kind in optional.items()})
    return Tool(
        name=name,
        description=f"{name} tool",
        category=category,
        handler=handler or RecordingHandler(),
        input=inputs,
    )


@pytest.fixture
def registry() -> ToolRegistry:
    return ToolRegistry()


@pytest.fixture(autouse=True)
def set_env(monkeypatch):
    """
    Automatically set the required model env var for all tests.
    """
    monkeypatch.setenv("GROQ_MODEL", "dummy-model")
    monkeypatch.delenv("GROQ_MODEL_SPECIALIZED", raising=False)
    monkeypatch.delenv("AGENT_MAX_STEPS", raising=False)
    monkeypatch.delenv("AGENT_SELF_EMAIL_DOMAIN", raising=False)
    yield
