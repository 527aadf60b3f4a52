"""
Streamlit entry-point for the task agent.

Responsibilities
- Build the tool registry and the Oracle once per session
- Run the agent loop for each task, streaming steps as they complete
- Render a simple chat interface
"""
from __future__ import annotations

import logging
from typing import List, Optional

import streamlit as st

from taskagent.agent import Agent, StepCallback
from taskagent.config import get_timeout_seconds
from taskagent.oracle import GroqOracle
from taskagent.tools.notes import notes_tools
from taskagent.tools.registry import ToolRegistry

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEFAULT_USER_ID = "guest"


# --------------------------------------------------------------------------- #
# Tool registry assembly
# --------------------------------------------------------------------------- #

def build_tool_registry() -> ToolRegistry:
    return ToolRegistry(notes_tools())


def _get_agent() -> Agent:
    if "agent_instance" not in st.session_state:
        user_id = st.session_state.get("user_id", DEFAULT_USER_ID)
        st.session_state["agent_instance"] = Agent(
            user_id=user_id,
            registry=build_tool_registry(),
            oracle=GroqOracle(),
        )
    return st.session_state["agent_instance"]


def format_trace(tools: List[str]) -> str:
    """Render the trace line appended to every answer."""
    if not tools:
        return "Trace: none"
    return "Trace: " + " -> ".join(tools)


def ask(
    query: str,
    agent: Agent,
    on_step: Optional[StepCallback] = None,
    timeout: Optional[float] = None,
) -> str:
    """
    Run the agent for a query and return the answer with its trace line.

    Parameters
    ----------
    query : str
        User's free-text task.
    agent : Agent
        Agent bound to the current user.
    on_step : Optional[StepCallback]
        Receives each step as it completes.
    timeout : Optional[float]
        Overall deadline in seconds.

    Returns
    -------
    str
        Assistant answer string.
    """
    result = agent.run_streaming(query, on_step, timeout=timeout)
    logger.info("Run finished: %s in %.2fs", result.stop_reason, result.duration)
    answer = result.answer or "I don't have an answer right now."
    if result.target:
        answer = f"{answer}\n\n[Open]({result.target})"
    return f"{answer}\n{format_trace([step.tool for step in result.steps])}"


def main() -> None:
    """Run the Streamlit chat UI."""
    st.title("Task Agent")

    if "messages" not in st.session_state:
        st.session_state["messages"] = []

    for message in st.session_state.messages:
        with st.chat_message(message["role"]):
            st.markdown(message["content"])  # type: ignore[arg-type]

    query = st.chat_input("What would you like me to do?")  # type: ignore[assignment]
    if not query:
        return

    with st.chat_message("user"):
        st.markdown(query)
    st.session_state.messages.append({"role": "user", "content": query})

    with st.chat_message("assistant"):
        status = st.status("Working...", expanded=False)

        def show_step(step, final):
            label = "final answer" if final else step.tool
            status.write(f"**{label}**: {step.reasoning or '-'}")

        try:
            response = ask(query, _get_agent(), on_step=show_step, timeout=get_timeout_seconds())
            status.update(label="Done", state="complete")
        except Exception as exc:
            logger.exception("Error while handling query: %s", exc)
            status.update(label="Failed", state="error")
            response = "Sorry, something went wrong while handling your request."
        st.markdown(response)
    st.session_state.messages.append({"role": "assistant", "content": response})


if __name__ == "__main__":
    main()
