"""Agent loop orchestrating reason/act/observe over the tool registry."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from taskagent.config import get_max_steps, get_self_email_domain
from taskagent.oracle import PRIORITY_HIGH, Exchange, Oracle, OracleError
from taskagent.parser import parse_step
from taskagent.prompts import (
    FINAL_ANSWER_TOOL,
    GENERAL_REDIRECT_ANSWER,
    build_system_prompt,
    observation_prompt,
    with_tool_hint,
)
from taskagent.router import IntentType, classify_intent
from taskagent.tools import Step, ToolContext, ToolResult
from taskagent.tools.registry import ToolError, ToolRegistry

logger = logging.getLogger(__name__)

#: Called synchronously after each completed step with (step, is_final).
StepCallback = Callable[[Step, bool], None]

SELF_PLACEHOLDERS = {"me", "myself", "self"}
RECIPIENT_KEYS = {"to", "recipient", "user", "user_id"}

ACTION_KEY = "_action"
TARGET_KEYS = ("_target", "_url")
FRAGMENT_KEYS = ("_fragment", "_html")
RESERVED_KEYS = {ACTION_KEY, *TARGET_KEYS, *FRAGMENT_KEYS}


@dataclass(frozen=True)
class StopReason:
    FINAL_ANSWER: str = "final_answer"
    GENERAL_REDIRECT: str = "general_redirect"
    PARSE_FAILURE: str = "parse_failure"
    ORACLE_FAILURE: str = "oracle_failure"
    BUDGET_EXHAUSTED: str = "budget_exhausted"
    CANCELLED: str = "cancelled"


@dataclass(slots=True)
class RunResult:
    """Final output of one run: answer, step trace and UI hints."""

    success: bool = False
    answer: str = ""
    steps: List[Step] = field(default_factory=list)
    fragment: Optional[str] = None
    action: Optional[str] = None
    target: Optional[str] = None
    duration: float = 0.0
    stop_reason: str = ""
    degraded: bool = False

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "success": self.success,
            "answer": self.answer,
            "steps": [step.to_dict() for step in self.steps],
        }
        for key in ("fragment", "action", "target"):
            value = getattr(self, key)
            if value:
                out[key] = value
        out["duration"] = f"{self.duration:.3f}s"
        out["stop_reason"] = self.stop_reason
        out["degraded"] = self.degraded
        return out


@dataclass(slots=True)
class AgentState:
    """Per-run state. Owned by a single call and discarded when it returns."""

    context: ToolContext
    system: str
    prompt: str
    backend: str
    history: List[Exchange] = field(default_factory=list)


def resolve_placeholders(
    params: Mapping[str, Any],
    user_id: str,
    email_domain: Optional[str] = None,
) -> Dict[str, Any]:
    """Replace "me"/"myself" recipients with the caller's own identity."""
    resolved = dict(params)
    for key, value in params.items():
        if key not in RECIPIENT_KEYS or not isinstance(value, str):
            continue
        if value.strip().lower() not in SELF_PLACEHOLDERS:
            continue
        if key == "to" and email_domain:
            resolved[key] = f"{user_id}@{email_domain}"
        else:
            resolved[key] = user_id
    return resolved


def to_tool_result(value: Any) -> ToolResult:
    """Wrap a handler's return value, lifting reserved navigation keys out of mappings."""
    if isinstance(value, ToolResult):
        return value
    if not isinstance(value, Mapping):
        return ToolResult(success=True, data=value)

    def _first_str(*keys: str) -> Optional[str]:
        for key in keys:
            candidate = value.get(key)
            if isinstance(candidate, str) and candidate:
                return candidate
        return None

    data = {k: v for k, v in value.items() if k not in RESERVED_KEYS}
    return ToolResult(
        success=True,
        data=data,
        action=_first_str(ACTION_KEY),
        target=_first_str(*TARGET_KEYS),
        fragment=_first_str(*FRAGMENT_KEYS),
    )


class Agent:
    """ReAct-style agent: the Oracle picks one tool per turn until it answers."""

    def __init__(
        self,
        user_id: str,
        registry: ToolRegistry,
        oracle: Oracle,
        max_steps: Optional[int] = None,
    ) -> None:
        self.user_id = user_id
        self.registry = registry
        self.oracle = oracle
        self.max_steps = max_steps if max_steps is not None else get_max_steps()
        if self.max_steps <= 0:
            raise ValueError("max_steps must be positive.")

    # --------------------------------------------------------------------- run
    def run(
        self,
        task: str,
        *,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> RunResult:
        """Execute the agent loop for a task."""
        return self.run_streaming(task, None, timeout=timeout, cancel_event=cancel_event)

    def run_streaming(
        self,
        task: str,
        on_step: Optional[StepCallback],
        *,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> RunResult:
        """
        Execute the agent loop, calling `on_step(step, is_final)` after each step.

        The callback runs on the caller's thread before the next iteration
        starts; exceptions it raises propagate to the caller.
        """
        started = time.monotonic()
        result = RunResult()

        intent = classify_intent(task)
        logger.info(
            "Classified intent: %s, backend: %s, tool: %s",
            intent.type, intent.backend, intent.tool or "-",
        )

        if intent.type == IntentType.GENERAL:
            result.success = True
            result.answer = GENERAL_REDIRECT_ANSWER
            result.stop_reason = StopReason.GENERAL_REDIRECT
            return self._finish(result, started)

        deadline = started + timeout if timeout is not None else None
        state = AgentState(
            context=ToolContext(user_id=self.user_id, deadline=deadline, cancel_event=cancel_event),
            system=build_system_prompt(self.registry, self.user_id),
            prompt=with_tool_hint(task, intent.tool) if intent.tool else task,
            backend=intent.backend,
        )

        for _ in range(self.max_steps):
            if state.context.cancelled():
                logger.warning("Run for user %s stopped after %d step(s)", self.user_id, len(result.steps))
                return self._finish(self._partial(result, StopReason.CANCELLED), started)

            try:
                response = self.oracle.ask(
                    state.system,
                    state.history,
                    state.prompt,
                    priority=PRIORITY_HIGH,
                    backend=state.backend,
                    timeout=state.context.remaining(),
                )
            except OracleError as exc:
                if state.context.cancelled():
                    logger.warning("Oracle call interrupted by deadline: %s", exc)
                    return self._finish(self._partial(result, StopReason.CANCELLED), started)
                logger.exception("Oracle call failed for user %s", self.user_id)
                result.success = False
                result.answer = f"Sorry, something went wrong: {exc}"
                result.stop_reason = StopReason.ORACLE_FAILURE
                return self._finish(result, started)

            step = parse_step(response)
            if step is None:
                logger.warning("Failed to parse step, using response as answer: %.200s", response)
                result.success = True
                result.answer = response.strip()
                result.degraded = True
                result.stop_reason = StopReason.PARSE_FAILURE
                return self._finish(result, started)

            result.steps.append(step)

            if step.tool == FINAL_ANSWER_TOOL:
                answer = step.parameters.get("answer")
                result.answer = answer if isinstance(answer, str) else ("" if answer is None else str(answer))
                result.success = True
                result.stop_reason = StopReason.FINAL_ANSWER
                step.attach(ToolResult(success=True, data=result.answer))
                if on_step is not None:
                    on_step(step, True)
                return self._finish(result, started)

            tool_result = self._execute(state.context, step)
            step.attach(tool_result)
            self._hoist(result, tool_result)

            if on_step is not None:
                on_step(step, False)

            state.history.append((state.prompt, response))
            state.prompt = observation_prompt(tool_result)

        logger.info("Step budget of %d exhausted for user %s", self.max_steps, self.user_id)
        return self._finish(self._partial(result, StopReason.BUDGET_EXHAUSTED), started)

    # ------------------------------------------------------------ execute tool
    def _execute(self, ctx: ToolContext, step: Step) -> ToolResult:
        """Invoke a tool from the registry; failures become unsuccessful results."""
        params = resolve_placeholders(step.parameters, self.user_id, get_self_email_domain())
        logger.info("Executing tool '%s'", step.tool)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Tool '%s' parameters: %s", step.tool, params)
        try:
            value = self.registry.call(ctx, step.tool, params)
        except ToolError as exc:
            logger.warning("Tool '%s' failed: %s", step.tool, exc)
            return ToolResult(success=False, error=str(exc))
        return to_tool_result(value)

    # -------------------------------------------------------------- finalize
    @staticmethod
    def _hoist(result: RunResult, tool_result: ToolResult) -> None:
        """Copy navigation hints so a UI need not inspect tool payloads."""
        if tool_result.action:
            result.action = tool_result.action
        if tool_result.target:
            result.target = tool_result.target
        if tool_result.fragment:
            result.fragment = tool_result.fragment

    @staticmethod
    def _partial(result: RunResult, reason: str) -> RunResult:
        """Best-effort result for a run that ended without a final answer."""
        completed = [s.tool for s in result.steps if s.result is not None and s.result.success]
        result.success = bool(completed)
        result.degraded = True
        result.stop_reason = reason
        if not result.answer:
            if reason == StopReason.CANCELLED:
                lead = "The task was stopped before it finished."
            else:
                lead = "I couldn't finish this task within the step limit."
            if completed:
                result.answer = f"{lead} Completed steps: {', '.join(completed)}."
            else:
                result.answer = lead
        return result

    @staticmethod
    def _finish(result: RunResult, started: float) -> RunResult:
        result.duration = time.monotonic() - started
        return result
