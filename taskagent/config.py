"""
Central configuration for the task agent.
Loads environment variables from a .env file at import time.
"""
from __future__ import annotations

import logging
import os
from typing import Optional

from dotenv import load_dotenv

# --- Load .env early so everything importing config sees the vars ---
load_dotenv()

logger = logging.getLogger(__name__)

#: Environment variable names
GROQ_MODEL_ENV = "GROQ_MODEL"
GROQ_MODEL_SPECIALIZED_ENV = "GROQ_MODEL_SPECIALIZED"
MAX_STEPS_ENV = "AGENT_MAX_STEPS"
TIMEOUT_ENV = "AGENT_TIMEOUT_SECONDS"
SELF_EMAIL_DOMAIN_ENV = "AGENT_SELF_EMAIL_DOMAIN"

#: Step budget when AGENT_MAX_STEPS is not set.
DEFAULT_MAX_STEPS = 5

#: Overall run deadline (seconds) used by the chat surface.
DEFAULT_TIMEOUT_SECONDS = 120


def require_env(var_name: str) -> str:
    """
    Return the value of an environment variable or raise a clear error.

    Raises
    ------
    RuntimeError
        If the environment variable is missing or empty.
    """
    try:
        value = os.environ[var_name]
    except KeyError as exc:
        raise RuntimeError(f"Required environment variable '{var_name}' is not set.") from exc
    if not value:
        raise RuntimeError(f"Environment variable '{var_name}' is empty.")
    return value


def get_int_env(var_name: str, default: int) -> int:
    """Read a positive integer from the environment, falling back to `default`."""
    raw = os.environ.get(var_name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r, using %d", var_name, raw, default)
        return default
    if value <= 0:
        logger.warning("Ignoring non-positive %s=%r, using %d", var_name, raw, default)
        return default
    return value


def get_max_steps() -> int:
    """Step budget for a single run."""
    return get_int_env(MAX_STEPS_ENV, DEFAULT_MAX_STEPS)


def get_timeout_seconds() -> int:
    """Overall deadline for a single run."""
    return get_int_env(TIMEOUT_ENV, DEFAULT_TIMEOUT_SECONDS)


def get_self_email_domain() -> Optional[str]:
    """Domain appended to the caller's identity when a tool is told to send 'to me'."""
    return os.environ.get(SELF_EMAIL_DOMAIN_ENV) or None
