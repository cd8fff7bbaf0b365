"""
Unit tests for the command-line interface.
"""

from unittest.mock import AsyncMock

import pytest
from aiorch import __version__
from aiorch.cli import app
from aiorch.llm.client import LLMClient
from typer.testing import CliRunner

runner = CliRunner()


def test_version():
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_tools_lists_builtins():
    result = runner.invoke(app, ["tools"])

    assert result.exit_code == 0
    assert "calculator" in result.stdout
    assert "get_current_time" in result.stdout


def test_config_hides_secrets(monkeypatch):
    monkeypatch.setenv("AIORCH_LLM_API_KEY", "sk-very-secret")

    result = runner.invoke(app, ["config"])

    assert result.exit_code == 0
    assert "sk-very-secret" not in result.stdout
    assert "secrets hidden" in result.stdout


class TestCalc:
    def test_evaluates(self):
        result = runner.invoke(app, ["calc", "2+2"])

        assert result.exit_code == 0
        assert "2+2 = 4" in result.stdout

    def test_failure_exits_nonzero(self):
        result = runner.invoke(app, ["calc", "1/0"])

        assert result.exit_code == 1
        assert "Division by zero" in result.stdout


class TestAsk:
    @pytest.fixture(autouse=True)
    def keep_logging_config(self, mocker):
        # structlog caches loggers bound to the runner's captured stdout
        mocker.patch("aiorch.utils.logging.setup_logging")

    def test_missing_api_key(self):
        result = runner.invoke(app, ["ask", "hello"])

        assert result.exit_code == 1
        assert "AIORCH_LLM_API_KEY" in result.stdout

    @pytest.fixture
    def fake_backend(self, mocker):
        backend = AsyncMock(
            return_value={
                "model": "test-model",
                "choices": [{"message": {"content": "Hello from the model."}, "finish_reason": "stop"}],
                "usage": {"prompt_tokens": 50, "completion_tokens": 6, "total_tokens": 56},
            }
        )
        mocker.patch.object(LLMClient, "from_settings", return_value=LLMClient(backend=backend))
        return backend

    def test_prints_answer_and_summary(self, fake_backend):
        result = runner.invoke(app, ["ask", "hello", "--model", "other-model", "--system", "Be brief."])

        assert result.exit_code == 0, result.stdout
        assert "Hello from the model." in result.stdout
        assert "Run Summary" in result.stdout
        kwargs = fake_backend.await_args.kwargs
        assert kwargs["model"] == "other-model"
        assert "Be brief." in kwargs["messages"][0]["content"]
        assert kwargs["messages"][-1] == {"role": "user", "content": "hello"}

    def test_stream_mode(self, fake_backend):
        result = runner.invoke(app, ["ask", "hello", "--stream"])

        assert result.exit_code == 0, result.stdout
        assert "Hello from the model." in result.stdout


def test_info_describes_pipeline():
    result = runner.invoke(app, ["info"])

    assert result.exit_code == 0
    assert "AI Orchestration Engine" in result.stdout
    assert "Tool Loop" in result.stdout
