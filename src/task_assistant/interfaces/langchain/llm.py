"""Chat model construction shared by the orchestrator and the payment estimator."""

from langchain_openai import ChatOpenAI
from pydantic import SecretStr

from task_assistant.config import OPENAI_MODEL, OPENAI_TEMPERATURE
from task_assistant.utils.env import get_openai_api_key


def create_chat_model(
    api_key: str | None = None,
    model: str | None = None,
    temperature: float | None = None,
) -> ChatOpenAI:
    """Create the OpenAI chat model used by the assistant.

    Args:
        api_key: OpenAI API key. Read from ``OPENAI_API_KEY`` if None.
        model: Model name. Defaults to ``OPENAI_MODEL``.
        temperature: Sampling temperature. Defaults to ``OPENAI_TEMPERATURE``.

    Raises:
        ValueError: No API key is configured.
    """
    api_key = api_key or get_openai_api_key()
    if not api_key:
        raise ValueError(
            "No API key found. Please set OPENAI_API_KEY in the environment or a .env file."
        )
    return ChatOpenAI(
        api_key=SecretStr(api_key),
        model=model or OPENAI_MODEL,
        temperature=OPENAI_TEMPERATURE if temperature is None else temperature,
    )
