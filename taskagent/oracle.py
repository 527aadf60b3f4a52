"""
Oracle adapter: the language-model backend the agent delegates reasoning to.

Design
- `Oracle` is the narrow protocol the agent consumes.
- `GroqOracle` implements it with Groq chat completions.
- Dependency injection for the Groq client and model names (mockable in tests).
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from groq import Groq

from taskagent.config import GROQ_MODEL_ENV, GROQ_MODEL_SPECIALIZED_ENV, require_env
from taskagent.router import Backend

logger = logging.getLogger(__name__)

#: Request priority hint for user-facing calls.
PRIORITY_HIGH = 0

#: One completed exchange: (prompt sent, raw answer received).
Exchange = Tuple[str, str]


class OracleError(RuntimeError):
    """Any failure to obtain an answer from the Oracle. Fatal to a run."""


class Oracle(Protocol):
    def ask(
        self,
        system: str,
        history: Sequence[Exchange],
        question: str,
        *,
        priority: int = PRIORITY_HIGH,
        backend: str = Backend.DEFAULT,
        timeout: Optional[float] = None,
    ) -> str:
        ...


def _build_groq(client: Optional[Groq]) -> Groq:
    """Return a Groq client, building one if not injected."""
    if client is not None:
        return client
    return Groq()


def build_messages(system: str, history: Sequence[Exchange], question: str) -> List[Dict[str, str]]:
    """Flatten a system prompt, prior exchanges and the next question into chat messages."""
    messages = [{"role": "system", "content": system}]
    for prompt, answer in history:
        messages.append({"role": "user", "content": prompt})
        messages.append({"role": "assistant", "content": answer})
    messages.append({"role": "user", "content": question})
    return messages


class GroqOracle:
    """Oracle backed by Groq chat completions."""

    def __init__(
        self,
        client: Optional[Groq] = None,
        models: Optional[Dict[str, str]] = None,
        temperature: float = 0.2,
        max_tokens: int = 1024,
    ) -> None:
        self._client = client
        self._models = dict(models or {})
        self.temperature = temperature
        self.max_tokens = max_tokens

    def _model_for(self, backend: str) -> str:
        if backend in self._models:
            return self._models[backend]
        if backend == Backend.SPECIALIZED:
            try:
                return require_env(GROQ_MODEL_SPECIALIZED_ENV)
            except RuntimeError:
                logger.debug("No specialized model configured, using default model")
        return require_env(GROQ_MODEL_ENV)

    def ask(
        self,
        system: str,
        history: Sequence[Exchange],
        question: str,
        *,
        priority: int = PRIORITY_HIGH,
        backend: str = Backend.DEFAULT,
        timeout: Optional[float] = None,
    ) -> str:
        """
        Send one turn to the model and return its raw text.

        Raises
        ------
        OracleError
            On configuration errors, SDK/network failures, or an empty completion.
        """
        try:
            model = self._model_for(backend)
            client = _build_groq(self._client)
            kwargs: Dict[str, Any] = {
                "model": model,
                "messages": build_messages(system, history, question),
                "temperature": self.temperature,
                "max_tokens": self.max_tokens,
            }
            if timeout is not None:
                kwargs["timeout"] = timeout
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(
                    "Oracle request model=%s backend=%s priority=%d history=%d",
                    model, backend, priority, len(history),
                )
            completion = client.chat.completions.create(**kwargs)
            content = completion.choices[0].message.content
        except Exception as exc:
            raise OracleError(str(exc) or type(exc).__name__) from exc

        if not content:
            raise OracleError("The model returned an empty response.")
        return content
