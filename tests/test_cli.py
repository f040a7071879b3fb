"""
Tests for the CLI interface.
"""
import json
import logging
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from ai_content_core.cli.main import app, EXIT_CODE_PASS, EXIT_CODE_FAIL
from ai_content_core.sdk.openai_client import OpenAIAdapter

from conftest import FakeOpenAIClient, StatusError, chat_chunk, chat_usage

runner = CliRunner()


@pytest.fixture(autouse=True)
def restore_logging():
    """The CLI installs a handler on the package logger; remove it after each test."""
    logger = logging.getLogger("ai_content_core")
    handlers, level = logger.handlers[:], logger.level
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)


@pytest.fixture
def fake_client():
    """Fake vendor client behind every adapter the CLI creates."""
    client = FakeOpenAIClient()
    with patch('ai_content_core.cli.main.create_adapter') as mock_create:
        mock_create.side_effect = lambda provider, credentials, **kwargs: OpenAIAdapter(
            client, retry_policy=kwargs.get("retry_policy")
        )
        yield client


class TestCLI:
    """Test CLI commands."""

    def test_no_command(self):
        """Test the banner without a subcommand."""
        result = runner.invoke(app, [])
        assert result.exit_code == EXIT_CODE_PASS
        assert "Use --help" in result.output

    def test_models_for_provider(self):
        """Test listing one provider's models."""
        result = runner.invoke(app, ["models", "--provider", "perplexity"])
        assert result.exit_code == EXIT_CODE_PASS
        assert "Supported models" in result.output
        assert "sonar" in result.output
        assert "gemini" not in result.output

    def test_cost(self):
        """Test cost calculation including reasoning tokens."""
        result = runner.invoke(app, ["cost", "openai", "gpt-5", "-i", "1000", "-o", "2000", "-r", "500"])
        assert result.exit_code == EXIT_CODE_PASS
        assert "gpt-5: $0.065000" in result.output

    def test_cost_for_images(self):
        """Test per-image pricing."""
        result = runner.invoke(app, ["cost", "openai", "dall-e-3", "--images", "2"])
        assert result.exit_code == EXIT_CODE_PASS
        assert "$0.080000" in result.output

    def test_cost_unknown_model(self):
        """Test that unknown models fail."""
        result = runner.invoke(app, ["cost", "openai", "gpt-0"])
        assert result.exit_code == EXIT_CODE_FAIL
        assert "Unsupported model: gpt-0" in result.output

    def test_unknown_provider(self):
        """Test that unknown providers fail with the valid choices."""
        result = runner.invoke(app, ["cost", "anthropic", "claude"])
        assert result.exit_code == EXIT_CODE_FAIL
        assert "Unknown provider" in result.output
        assert "perplexity" in result.output

    def test_connection_success(self, fake_client):
        """Test a successful connectivity check."""
        result = runner.invoke(app, ["test-connection", "openai"])
        assert result.exit_code == EXIT_CODE_PASS
        assert "✓ openai reachable via gpt-4.1-mini" in result.output

    def test_connection_failure(self, fake_client):
        """Test a rejected key is reported."""
        fake_client.errors = [StatusError(401, "Invalid API key")]
        result = runner.invoke(app, ["test-connection", "openai"])
        assert result.exit_code == EXIT_CODE_FAIL
        assert "✗ openai" in result.output
        assert "Invalid API key" in result.output

    def test_connection_without_key(self, monkeypatch):
        """Test that a missing key fails before any request."""
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        result = runner.invoke(app, ["test-connection", "openai"])
        assert result.exit_code == EXIT_CODE_FAIL
        assert "No API key configured for openai" in result.output

    def test_bad_config_file(self, tmp_path):
        """Test that configuration errors are reported."""
        config = tmp_path / "config.yaml"
        config.write_text("providers:\n  openai:\n    max_retry: 1\n", encoding="utf-8")
        result = runner.invoke(app, ["test-connection", "openai", "--config", str(config)])
        assert result.exit_code == EXIT_CODE_FAIL
        assert "Configuration error" in result.output

    def test_generate(self, fake_client):
        """Test non-streaming generation prints text and usage."""
        result = runner.invoke(app, ["generate", "openai", "gpt-4.1-mini", "Write about tea"])
        assert result.exit_code == EXIT_CODE_PASS
        assert "Hello there" in result.output
        assert "30 tokens, $0.000135" in result.output
        assert fake_client.last_params("create_chat_completion")["model"] == "gpt-4.1-mini"

    def test_generate_stream(self, fake_client):
        """Test streaming generation prints chunks then usage."""
        fake_client.stream_items = [
            chat_chunk("Tea "),
            chat_chunk("time", finish_reason="stop"),
            chat_chunk(usage=chat_usage(10, 20)),
        ]
        result = runner.invoke(app, ["generate", "openai", "gpt-4.1-mini", "Write about tea", "--stream"])
        assert result.exit_code == EXIT_CODE_PASS
        assert "Tea" in result.output
        assert "time" in result.output
        assert "30 tokens" in result.output

    def test_generate_stream_error(self, fake_client):
        """Test a failed stream exits with failure."""
        fake_client.stream_items = [RuntimeError("connection reset")]
        result = runner.invoke(app, ["generate", "openai", "gpt-4.1-mini", "Hi", "--stream"])
        assert result.exit_code == EXIT_CODE_FAIL
        assert "connection reset" in result.output

    def test_generate_unknown_model(self, fake_client):
        """Test that unknown models fail without a vendor call."""
        result = runner.invoke(app, ["generate", "openai", "gpt-0", "Hi"])
        assert result.exit_code == EXIT_CODE_FAIL
        assert "Unsupported model" in result.output
        assert fake_client.calls == []

    def test_parse(self, tmp_path):
        """Test parsing saved output into JSON artifacts."""
        output = tmp_path / "output.txt"
        output.write_text('```json\n[{"synopsis": "A guide to tea", "tone": "friendly"}]\n```', encoding="utf-8")
        result = runner.invoke(app, ["parse", "synopsis", str(output), "--topic", "tea"])

        assert result.exit_code == EXIT_CODE_PASS
        assert "parsed 1 synopsis artifact(s)" in result.output
        body = result.output[result.output.index("["):]
        artifacts = json.loads(body)
        assert artifacts[0]["synopsis"] == "A guide to tea"
        assert artifacts[0]["tone"] == "friendly"

    def test_parse_fallback(self, tmp_path):
        """Test that unusable output is reported as fallback."""
        output = tmp_path / "output.txt"
        output.write_text("???", encoding="utf-8")
        result = runner.invoke(app, ["parse", "idea", str(output), "--topic", "tea", "--count", "2"])
        assert result.exit_code == EXIT_CODE_PASS
        assert "fallback 2 idea artifact(s)" in result.output

    def test_parse_unknown_kind(self, tmp_path):
        """Test that unknown artifact kinds fail."""
        output = tmp_path / "output.txt"
        output.write_text("[]", encoding="utf-8")
        result = runner.invoke(app, ["parse", "haiku", str(output)])
        assert result.exit_code == EXIT_CODE_FAIL
