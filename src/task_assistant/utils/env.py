"""Environment variable loading utilities."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def load_env(env_file: str | Path | None = None) -> None:
    """Load environment variables from a .env file.

    Uses ``env_file`` when given, otherwise searches upward from the current
    directory the way python-dotenv does. Variables already set in the
    process environment win.
    """
    os.environ.setdefault("PYTHONIOENCODING", "utf-8")
    if env_file is not None:
        path = Path(env_file)
        if not path.exists():
            logger.warning(f"No .env file at {path}")
            return
        load_dotenv(path)
        logger.debug(f"Loaded environment from: {path}")
    else:
        load_dotenv()


def get_openai_api_key() -> str | None:
    """Return the configured OpenAI API key, or None when unset or blank."""
    key = os.getenv("OPENAI_API_KEY", "").strip()
    return key or None
