import json
import threading
from typing import Any, Dict, List

import pytest

from taskagent.agent import Agent, StopReason, resolve_placeholders, to_tool_result
from taskagent.oracle import PRIORITY_HIGH, OracleError
from taskagent.prompts import GENERAL_REDIRECT_ANSWER
from taskagent.router import Backend
from taskagent.tools import ToolResult
from taskagent.tools.registry import ToolRegistry
from tests.conftest import RecordingHandler, ScriptedOracle, make_tool


def step_json(tool: str, reasoning: str = "because", **parameters: Any) -> str:
    return json.dumps({"reasoning": reasoning, "tool": tool, "parameters": parameters})


def final(answer: str) -> str:
    return step_json("final_answer", answer=answer)


def make_agent(oracle, tools=(), max_steps: int = 5, user_id: str = "u1") -> Agent:
    return Agent(user_id=user_id, registry=ToolRegistry(tools), oracle=oracle, max_steps=max_steps)


def test_immediate_final_answer_is_one_step():
    oracle = ScriptedOracle(['{"tool":"final_answer","parameters":{"answer":"done"}}'], repeat_last=True)
    result = make_agent(oracle).run("do the thing")

    assert result.success is True
    assert result.answer == "done"
    assert len(result.steps) == 1
    assert result.steps[0].result == ToolResult(success=True, data="done")
    assert result.stop_reason == StopReason.FINAL_ANSWER
    assert result.degraded is False
    assert len(oracle.calls) == 1


def test_budget_exhaustion_with_noop_tool():
    noop = RecordingHandler({})
    oracle = ScriptedOracle([step_json("noop")], repeat_last=True)
    result = make_agent(oracle, [make_tool("noop", noop)], max_steps=3).run("loop forever")

    assert len(result.steps) == 3
    assert len(noop.calls) == 3
    assert len(oracle.calls) == 3
    assert result.stop_reason == StopReason.BUDGET_EXHAUSTED
    assert result.success is True
    assert result.degraded is True
    assert "noop" in result.answer


def test_budget_exhaustion_without_progress_is_failure():
    oracle = ScriptedOracle([step_json("missing.tool")], repeat_last=True)
    result = make_agent(oracle, max_steps=2).run("go")

    assert len(result.steps) == 2
    assert all(not s.result.success for s in result.steps)
    assert result.success is False
    assert result.stop_reason == StopReason.BUDGET_EXHAUSTED


def test_end_to_end_price_lookup():
    prices = RecordingHandler({"price": 65000})
    oracle = ScriptedOracle(
        [
            step_json("markets.get_price", "Need the current price", symbol="BTC"),
            final("Bitcoin is trading at $65000."),
        ]
    )
    agent = make_agent(oracle, [make_tool("markets.get_price", prices, required=["symbol"])])

    result = agent.run("check btc price")

    assert result.success is True
    assert len(result.steps) == 2
    assert "65000" in result.answer
    assert prices.calls[0][1] == {"symbol": "BTC"}
    assert result.steps[0].result.data == {"price": 65000}

    first, second = oracle.calls
    assert first["question"].startswith("check btc price")
    assert "[Hint: Consider using the markets.get_price tool]" in first["question"]
    assert first["history"] == []
    assert second["history"] == [(first["question"], step_json("markets.get_price", "Need the current price", symbol="BTC"))]
    assert second["question"].startswith('Tool result: {"success": true, "data": {"price": 65000}}')


def test_tool_errors_are_fed_back_not_fatal():
    handler = RecordingHandler(error=RuntimeError("quota exceeded"))
    oracle = ScriptedOracle(
        [
            step_json("unknown.tool"),
            step_json("mail.send", to="me"),
            step_json("video.search", query="cats"),
            final("Sorry, could not do it."),
        ]
    )
    tools = [make_tool("mail.send", required=["to", "body"]), make_tool("video.search", handler)]
    result = make_agent(oracle, tools).run("do stuff")

    assert result.success is True
    errors = [s.result.error for s in result.steps[:3]]
    assert errors == [
        "Unknown tool: unknown.tool",
        "Missing required parameter: body",
        "quota exceeded",
    ]
    assert "Unknown tool: unknown.tool" in oracle.calls[1]["question"]
    assert "quota exceeded" in oracle.calls[3]["question"]


def test_oracle_failure_aborts_run():
    oracle = ScriptedOracle([step_json("noop"), OracleError("rate limited")])
    result = make_agent(oracle, [make_tool("noop")]).run("go")

    assert result.success is False
    assert result.stop_reason == StopReason.ORACLE_FAILURE
    assert "rate limited" in result.answer
    assert len(result.steps) == 1


def test_parse_failure_uses_raw_text_as_answer():
    oracle = ScriptedOracle(["  The weather is sunny today.  "])
    result = make_agent(oracle).run("weather please")

    assert result.success is True
    assert result.answer == "The weather is sunny today."
    assert result.steps == []
    assert result.degraded is True
    assert result.stop_reason == StopReason.PARSE_FAILURE


def test_too_deeply_nested_response_is_a_parse_failure():
    response = '{"tool": "x", "parameters": {"a": ' + "[" * 100000 + "]" * 100000 + "}}"
    result = make_agent(ScriptedOracle([response])).run("do it")

    assert result.stop_reason == StopReason.PARSE_FAILURE
    assert result.success is True
    assert result.degraded is True
    assert result.steps == []


def test_general_question_skips_oracle():
    oracle = ScriptedOracle([])
    result = make_agent(oracle).run("what is the capital of France")

    assert result.success is True
    assert result.answer == GENERAL_REDIRECT_ANSWER
    assert result.stop_reason == StopReason.GENERAL_REDIRECT
    assert oracle.calls == []


def test_specialized_backend_is_requested_for_domain_tasks():
    oracle = ScriptedOracle([final("ok")])
    make_agent(oracle).run("share a hadith about kindness")
    assert oracle.calls[0]["backend"] == Backend.SPECIALIZED


def test_streaming_callback_order():
    seen: List[Dict[str, Any]] = []
    oracle = ScriptedOracle([step_json("notes.list"), step_json("notes.list"), final("2 notes")])
    agent = make_agent(oracle, [make_tool("notes.list")])

    def on_step(step, is_final):
        seen.append({"tool": step.tool, "final": is_final, "has_result": step.result is not None})

    result = agent.run_streaming("list my notes", on_step)

    assert seen == [
        {"tool": "notes.list", "final": False, "has_result": True},
        {"tool": "notes.list", "final": False, "has_result": True},
        {"tool": "final_answer", "final": True, "has_result": True},
    ]
    assert result.answer == "2 notes"


def test_streaming_callback_errors_propagate():
    oracle = ScriptedOracle([final("x")])

    def on_step(step, is_final):
        raise RuntimeError("socket closed")

    with pytest.raises(RuntimeError, match="socket closed"):
        make_agent(oracle).run_streaming("go", on_step)


def test_navigation_keys_are_hoisted():
    handler = RecordingHandler({"id": "a1", "_action": "navigate", "_url": "/apps/a1/develop", "_html": "<p>hi</p>"})
    oracle = ScriptedOracle([step_json("apps.create", name="x"), final("Creating your app.")])
    result = make_agent(oracle, [make_tool("apps.create", handler)]).run("go")

    assert result.action == "navigate"
    assert result.target == "/apps/a1/develop"
    assert result.fragment == "<p>hi</p>"
    assert result.steps[0].result.data == {"id": "a1"}

    wire = result.to_dict()
    assert wire["action"] == "navigate"
    assert wire["steps"][0]["result"]["target"] == "/apps/a1/develop"
    assert wire["duration"].endswith("s")


def test_self_placeholder_resolves_to_caller():
    mail = RecordingHandler({"sent": True})
    oracle = ScriptedOracle([step_json("mail.send", to="myself", body="hi"), final("sent")])
    result = make_agent(oracle, [make_tool("mail.send", mail, required=["to"])], user_id="alice").run("go")

    assert mail.calls[0][1] == {"to": "alice", "body": "hi"}
    assert result.steps[0].parameters["to"] == "myself"


def test_self_placeholder_uses_email_domain(monkeypatch):
    monkeypatch.setenv("AGENT_SELF_EMAIL_DOMAIN", "example.org")
    mail = RecordingHandler({"sent": True})
    oracle = ScriptedOracle([step_json("mail.send", to="me"), final("sent")])
    make_agent(oracle, [make_tool("mail.send", mail)], user_id="alice").run("go")

    assert mail.calls[0][1]["to"] == "alice@example.org"


def test_resolve_placeholders_only_touches_recipient_keys():
    params = {"to": "Me", "recipient": "self", "body": "me", "user": "bob"}
    assert resolve_placeholders(params, "u9") == {"to": "u9", "recipient": "u9", "body": "me", "user": "bob"}


def test_to_tool_result_variants():
    explicit = ToolResult(success=False, error="nope")
    assert to_tool_result(explicit) is explicit
    assert to_tool_result("plain") == ToolResult(success=True, data="plain")
    wrapped = to_tool_result({"_target": "/x", "_fragment": "<b>", "k": 1})
    assert wrapped.target == "/x"
    assert wrapped.fragment == "<b>"
    assert wrapped.data == {"k": 1}


def test_cancelled_run_stops_before_next_iteration():
    cancel = threading.Event()
    handler = RecordingHandler({})

    def cancelling(ctx, params):
        cancel.set()
        return handler(ctx, params)

    oracle = ScriptedOracle([step_json("slow")], repeat_last=True)
    result = make_agent(oracle, [make_tool("slow", cancelling)]).run("go", cancel_event=cancel)

    assert len(result.steps) == 1
    assert len(oracle.calls) == 1
    assert result.stop_reason == StopReason.CANCELLED
    assert result.success is True
    assert result.steps[0].result.success is True


class CancelThenFailOracle(ScriptedOracle):
    """Trips the cancel event, then fails the request the way a timed-out call does."""

    def __init__(self, responses, cancel: threading.Event):
        super().__init__(responses)
        self.cancel = cancel

    def ask(self, system, history, question, **kwargs):
        if not self.responses:
            self.cancel.set()
        return super().ask(system, history, question, **kwargs)


def test_oracle_error_after_cancel_is_reported_as_cancelled():
    cancel = threading.Event()
    oracle = CancelThenFailOracle([step_json("noop")], cancel)
    result = make_agent(oracle, [make_tool("noop", RecordingHandler({}))]).run("go", cancel_event=cancel)

    assert len(oracle.calls) == 2
    assert result.stop_reason == StopReason.CANCELLED
    assert result.success is True
    assert result.degraded is True
    assert len(result.steps) == 1
    assert result.steps[0].tool == "noop"


def test_oracle_calls_use_user_facing_priority():
    oracle = ScriptedOracle([step_json("noop"), final("ok")])
    make_agent(oracle, [make_tool("noop")]).run("go")

    assert [call["priority"] for call in oracle.calls] == [PRIORITY_HIGH, PRIORITY_HIGH]


def test_deadline_is_passed_to_oracle():
    oracle = ScriptedOracle([final("ok")])
    make_agent(oracle).run("go", timeout=30)

    timeout = oracle.calls[0]["timeout"]
    assert timeout is not None
    assert 0 < timeout <= 30


def test_expired_deadline_returns_without_calling_oracle():
    oracle = ScriptedOracle([final("ok")])
    result = make_agent(oracle).run("go", timeout=0)

    assert oracle.calls == []
    assert result.stop_reason == StopReason.CANCELLED
    assert result.success is False


def test_max_steps_defaults_from_env(monkeypatch):
    monkeypatch.setenv("AGENT_MAX_STEPS", "2")
    agent = Agent(user_id="u", registry=ToolRegistry(), oracle=ScriptedOracle([]))
    assert agent.max_steps == 2


def test_max_steps_must_be_positive():
    with pytest.raises(ValueError):
        make_agent(ScriptedOracle([]), max_steps=0)
