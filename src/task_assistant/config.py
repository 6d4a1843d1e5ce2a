"""
Configuration constants for the Task Assistant.

Values come from the environment (after ``.env`` loading) and fall back to
the defaults below. They are shared by the chat server, the CLI and the
session manager.
"""

import os

from task_assistant.utils.env import load_env

load_env()  # Load environment variables from .env

DEFAULT_HOST = os.getenv("SERVER_HOST", "127.0.0.1")
DEFAULT_PORT = int(os.getenv("SERVER_PORT", "8080"))

OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o")
OPENAI_TEMPERATURE = float(os.getenv("OPENAI_TEMPERATURE", "0.7"))

# Tool invocations allowed per turn; must lie within MIN_STEPS..MAX_STEPS.
AGENT_MAX_STEPS = int(os.getenv("AGENT_MAX_STEPS", "10"))
MIN_STEPS = 1
MAX_STEPS = 20

SESSION_CACHE_SIZE = int(os.getenv("SESSION_CACHE_SIZE", "256"))

PAYMENT_MAX_ATTEMPTS = int(os.getenv("PAYMENT_MAX_ATTEMPTS", "3"))
PAYMENT_ATTEMPT_TIMEOUT = float(os.getenv("PAYMENT_ATTEMPT_TIMEOUT", "30"))
