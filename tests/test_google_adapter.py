"""
Unit tests for the Google Gemini / Imagen adapter.
"""

import base64
from types import SimpleNamespace

import httpx
import pytest
from google.genai import errors as genai_errors

from ai_content_core.core.errors import ErrorKind, NetworkError, ProviderError
from ai_content_core.core.models import ChunkType, GenerationOptions, GenerationRequest, ProviderName
from ai_content_core.sdk.google_client import GoogleAdapter, normalize_google_error

from conftest import FakeGoogleClient, StatusError, collect, gemini_reply


def make_request(model="gemini-2.5-flash", task="default", prompt="Summarize tea culture", **options):
    return GenerationRequest(
        task=task,
        prompt=prompt,
        provider=ProviderName.GOOGLE,
        model=model,
        options=GenerationOptions(**options),
    )


def stream_chunk(text, finish_reason=None, usage=None):
    candidates = []
    if finish_reason:
        candidates = [SimpleNamespace(finish_reason=SimpleNamespace(name=finish_reason), grounding_metadata=None)]
    return SimpleNamespace(text=text, candidates=candidates, usage_metadata=usage, prompt_feedback=None)


class TestGoogleGenerate:
    """Test Gemini text generation."""

    def setup_method(self):
        """Set up a fake client and adapter."""
        self.client = FakeGoogleClient()
        self.adapter = GoogleAdapter(self.client)

    @pytest.mark.asyncio
    async def test_text_generation(self):
        """Verify config shaping, usage and thinking-token cost."""
        self.client.reply = gemini_reply(text="Tea is...", prompt_tokens=100, output_tokens=50, thoughts_tokens=20)
        result = await self.adapter.generate(make_request(task="synopsis_generation"))

        assert result.text == "Tea is..."
        assert result.usage.reasoning_tokens == 20
        # 100 * 0.00075/1K + 50 * 0.003/1K + 20 * 0.00075/1K
        assert result.usage.cost == 0.00024
        assert result.metadata.finish_reason == "STOP"
        assert result.metadata.extra == {"thinking_budget_used": True}

        call = self.client.calls[-1][1]
        config = call["config"]
        assert call["model"] == "gemini-2.5-flash"
        assert config["temperature"] == 0.6
        assert config["max_output_tokens"] == 4000
        assert config["thinking_config"] == {"thinking_budget": 300}
        assert len(config["safety_settings"]) == 4
        assert config["system_instruction"].startswith("You are a content strategist")
        assert call["contents"][-1] == {"role": "user", "parts": [{"text": "Summarize tea culture"}]}

    @pytest.mark.asyncio
    async def test_max_tokens_capped_by_model(self):
        """Verify max_output_tokens never exceeds the model limit."""
        await self.adapter.generate(make_request(max_tokens=20000))
        assert self.client.calls[-1][1]["config"]["max_output_tokens"] == 8000

    @pytest.mark.asyncio
    async def test_no_thinking_budget_on_pro(self):
        """Verify models without budget control get no thinking config."""
        await self.adapter.generate(make_request(model="gemini-2.5-pro"))
        assert "thinking_config" not in self.client.calls[-1][1]["config"]

    @pytest.mark.asyncio
    async def test_thinking_disabled(self):
        """Verify thinking=False removes the thinking config."""
        await self.adapter.generate(make_request(thinking=False))
        assert "thinking_config" not in self.client.calls[-1][1]["config"]

    @pytest.mark.asyncio
    async def test_history_roles(self):
        """Verify assistant turns are sent with the model role."""
        await self.adapter.generate(make_request(conversation_history=(
            {"role": "user", "content": "Hi"},
            {"role": "assistant", "content": "Hello"},
        )))
        contents = self.client.calls[-1][1]["contents"]
        assert [c["role"] for c in contents] == ["user", "model", "user"]

    @pytest.mark.asyncio
    async def test_research_task_grounding(self):
        """Verify research tasks enable search and surface citations."""
        self.client.reply = gemini_reply(grounding=SimpleNamespace(
            grounding_chunks=[SimpleNamespace(web=SimpleNamespace(uri="https://example.com/tea", title="Tea"))],
            web_search_queries=["tea history"],
        ))
        result = await self.adapter.generate(make_request(task="topic_research"))

        assert self.client.calls[-1][1]["config"]["tools"] == [{"google_search": {}}]
        assert result.metadata.citations[0].url == "https://example.com/tea"
        assert result.metadata.search_results == [{"query": "tea history"}]

    @pytest.mark.asyncio
    async def test_blocked_prompt(self):
        """Verify blocked prompts raise a terminal content error."""
        self.client.reply = gemini_reply(block_reason="SAFETY")
        with pytest.raises(ProviderError) as exc_info:
            await self.adapter.generate(make_request())
        assert exc_info.value.kind == ErrorKind.CONTENT_BLOCKED
        assert "SAFETY" in exc_info.value.message
        assert len(self.client.calls) == 1

    @pytest.mark.asyncio
    async def test_transient_failure_retried(self, no_sleep):
        """Verify a 503 is retried."""
        client = FakeGoogleClient(errors=[StatusError(503)])
        result = await GoogleAdapter(client, sleep=no_sleep).generate(make_request())
        assert result.text == "Gemini text"
        assert len(client.calls) == 2


class TestImagen:
    """Test Imagen image generation."""

    @pytest.mark.asyncio
    async def test_images(self):
        """Verify images come back base64 encoded and are billed per image."""
        image = SimpleNamespace(image=SimpleNamespace(image_bytes=b"png", mime_type="image/png"), enhanced_prompt=None)
        client = FakeGoogleClient(images=SimpleNamespace(generated_images=[image, image]))
        result = await GoogleAdapter(client).generate(make_request(model="imagen-4.0-generate-001"))

        assert result.is_media
        assert len(result.content) == 2
        assert result.content[0].data == base64.b64encode(b"png").decode("ascii")
        assert result.usage.cost == 0.08
        assert client.calls[-1][1]["config"] == {"number_of_images": 2, "aspect_ratio": "1:1"}

    @pytest.mark.asyncio
    async def test_image_count_capped(self):
        """Verify the requested count is capped by the model limit."""
        client = FakeGoogleClient(images=SimpleNamespace(generated_images=[]))
        await GoogleAdapter(client).generate(make_request(model="imagen-4.0-ultra-generate-001", count=4))
        assert client.calls[-1][1]["config"]["number_of_images"] == 2


class TestGoogleStream:
    """Test Gemini streaming."""

    @pytest.mark.asyncio
    async def test_stream_completes(self):
        """Verify text chunks then one complete chunk with usage."""
        usage = SimpleNamespace(prompt_token_count=10, candidates_token_count=5, thoughts_token_count=0)
        client = FakeGoogleClient(stream_items=[
            stream_chunk("Hi "),
            stream_chunk("there", finish_reason="STOP", usage=usage),
        ])
        chunks = await collect(GoogleAdapter(client).generate_stream(make_request()))

        assert [c.type for c in chunks] == [ChunkType.CONTENT, ChunkType.CONTENT, ChunkType.COMPLETE]
        completion = chunks[-1].payload
        assert completion.content == "Hi there"
        assert completion.usage.total_tokens == 15
        assert completion.metadata.finish_reason == "STOP"

    @pytest.mark.asyncio
    async def test_stream_failure(self):
        """Verify a mid-stream failure ends with one error chunk."""
        client = FakeGoogleClient(stream_items=[stream_chunk("Hi"), RuntimeError("stream reset")])
        chunks = await collect(GoogleAdapter(client).generate_stream(make_request()))
        assert [c.type for c in chunks] == [ChunkType.CONTENT, ChunkType.ERROR]
        assert chunks[-1].payload.message == "Google error: stream reset"

    @pytest.mark.asyncio
    async def test_image_model_cannot_stream(self):
        """Verify Imagen models report an error chunk."""
        chunks = await collect(GoogleAdapter(FakeGoogleClient()).generate_stream(
            make_request(model="imagen-4.0-fast-generate-001")
        ))
        assert len(chunks) == 1
        assert chunks[0].type == ChunkType.ERROR


class TestGoogleConnection:
    """Test connectivity checks."""

    @pytest.mark.asyncio
    async def test_success(self):
        """Verify the ping uses the lite model."""
        client = FakeGoogleClient()
        result = await GoogleAdapter(client).test_connection()
        assert result.success
        assert result.model == "gemini-2.5-flash-lite"
        assert client.calls[-1][1]["config"]["max_output_tokens"] == 10

    @pytest.mark.asyncio
    async def test_failure(self):
        """Verify failures are reported in the result."""
        client = FakeGoogleClient(errors=[RuntimeError("API key not valid")])
        result = await GoogleAdapter(client).test_connection()
        assert not result.success
        assert "API key not valid" in result.error


class TestNormalizeGoogleError:
    """Test mapping of google-genai exceptions."""

    def test_rate_limit(self):
        """Verify 429 API errors are retryable rate limits."""
        exc = genai_errors.ClientError(
            429, {"error": {"code": 429, "message": "Resource exhausted", "status": "RESOURCE_EXHAUSTED"}}
        )
        error = normalize_google_error(exc)
        assert error.kind == ErrorKind.RATE_LIMIT
        assert error.retryable
        assert error.provider == "google"

    def test_auth(self):
        """Verify 401 API errors are auth failures."""
        exc = genai_errors.ClientError(
            401, {"error": {"code": 401, "message": "Unauthenticated", "status": "UNAUTHENTICATED"}}
        )
        error = normalize_google_error(exc)
        assert error.kind == ErrorKind.AUTH
        assert error.message == "Google authentication failed: Invalid API key"

    def test_transport_error(self):
        """Verify httpx transport failures are network errors."""
        error = normalize_google_error(httpx.ConnectError("refused"))
        assert isinstance(error, NetworkError)

    def test_blocked_and_quota_messages(self):
        """Verify message-only failures are classified by content."""
        assert normalize_google_error(RuntimeError("Candidate was BLOCKED")).kind == ErrorKind.CONTENT_BLOCKED
        quota = normalize_google_error(RuntimeError("quota exceeded for project"))
        assert quota.kind == ErrorKind.QUOTA
        assert not quota.retryable

    def test_status_attribute(self):
        """Verify status-bearing exceptions fall back to generic mapping."""
        error = normalize_google_error(StatusError(502))
        assert error.kind == ErrorKind.SERVER_ERROR
        assert error.retryable
