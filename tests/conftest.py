"""Global pytest configuration and fixtures."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from task_assistant.core.datastore import InMemoryDatastore
from task_assistant.core.payments import PaymentEstimator, PaymentSuggestionService
from task_assistant.interfaces.langchain.registry import ToolRegistry
from tests.fixtures.env_helpers import empty_env, mock_env_vars, openai_api_key
from tests.fixtures.sample_data import (
    admin_context,
    alice_context,
    datastore,
    seed,
)


@pytest.fixture
def payments(datastore: InMemoryDatastore) -> PaymentSuggestionService:
    """Payment suggestion service that always uses the fallback rule."""
    return PaymentSuggestionService(datastore, PaymentEstimator())


@pytest.fixture
def registry(
    datastore: InMemoryDatastore, payments: PaymentSuggestionService
) -> ToolRegistry:
    """Tool registry over the sample datastore."""
    return ToolRegistry(datastore, payments=payments)


@pytest.fixture
def mock_llm() -> MagicMock:
    """Chat model whose tool-bound runnable is an AsyncMock.

    Tests set ``mock_llm.bound.ainvoke`` return values or side effects to
    script the model's responses.
    """
    llm = MagicMock()
    bound = MagicMock()
    bound.ainvoke = AsyncMock()
    llm.bind_tools.return_value = bound
    llm.bound = bound
    return llm
