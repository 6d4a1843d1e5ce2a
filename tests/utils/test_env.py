import logging
import os
from unittest.mock import patch

import pytest

from task_assistant.utils.env import get_openai_api_key, load_env


class TestEnvironment:
    """Test .env loading and API key lookup."""

    @pytest.mark.unit
    def test_load_env_from_file(self, tmp_path, empty_env):
        env_file = tmp_path / ".env"
        env_file.write_text("OPENAI_API_KEY=sk-from-file\n")

        load_env(env_file)

        assert os.environ["OPENAI_API_KEY"] == "sk-from-file"

    @pytest.mark.unit
    def test_existing_variables_win(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("OPENAI_API_KEY=sk-from-file\n")

        with patch.dict(os.environ, {"OPENAI_API_KEY": "sk-from-env"}):
            load_env(env_file)
            assert os.environ["OPENAI_API_KEY"] == "sk-from-env"

    @pytest.mark.unit
    def test_missing_file_warns(self, tmp_path, caplog, empty_env):
        with caplog.at_level(logging.WARNING):
            load_env(tmp_path / "missing.env")

        assert "No .env file" in caplog.text
        assert "OPENAI_API_KEY" not in os.environ

    @pytest.mark.unit
    @pytest.mark.parametrize("value,expected", [("  sk-abc  ", "sk-abc"), ("   ", None)])
    def test_get_openai_api_key(self, value, expected):
        with patch.dict(os.environ, {"OPENAI_API_KEY": value}):
            assert get_openai_api_key() == expected

    @pytest.mark.unit
    def test_get_openai_api_key_unset(self, empty_env):
        assert get_openai_api_key() is None
