"""
Shared test fixtures.

Fake vendor clients stand in for the OpenAI and google-genai SDKs so the
adapters can be exercised without network access.
"""

from types import SimpleNamespace
from typing import Any, List, Optional

import pytest


class StatusError(Exception):
    """Exception carrying an HTTP status like vendor SDK errors do."""

    def __init__(self, status_code: int, message: str = "vendor failure"):
        super().__init__(message)
        self.status_code = status_code


def chat_completion(content="Hello there", prompt_tokens=10, completion_tokens=20,
                    reasoning_tokens=0, finish_reason="stop", response_id="chatcmpl_1", **extra):
    """Chat Completions response shaped like the OpenAI SDK object."""
    return SimpleNamespace(
        id=response_id,
        choices=[SimpleNamespace(
            message=SimpleNamespace(content=content, tool_calls=None),
            finish_reason=finish_reason,
        )],
        usage=SimpleNamespace(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            completion_tokens_details=SimpleNamespace(reasoning_tokens=reasoning_tokens),
        ),
        **extra,
    )


def chat_chunk(content=None, finish_reason=None, usage=None, chunk_id="chunk_1", tool_calls=None, **extra):
    """Streaming chat chunk; a usage-only chunk has no choices."""
    choices = []
    if content is not None or finish_reason is not None or tool_calls is not None:
        delta = SimpleNamespace(content=content, tool_calls=tool_calls)
        choices = [SimpleNamespace(delta=delta, finish_reason=finish_reason)]
    return SimpleNamespace(id=chunk_id, choices=choices, usage=usage, **extra)


def chat_usage(prompt_tokens=10, completion_tokens=20, reasoning_tokens=0):
    return SimpleNamespace(
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        completion_tokens_details=SimpleNamespace(reasoning_tokens=reasoning_tokens),
    )


def responses_reply(text="Generated text", input_tokens=100, output_tokens=200,
                    reasoning_tokens=0, status="completed", output=None):
    """Responses API reply shaped like the OpenAI SDK object."""
    return SimpleNamespace(
        id="resp_1",
        status=status,
        incomplete_details=None,
        output_text=text,
        output=output or [],
        usage=SimpleNamespace(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            output_tokens_details=SimpleNamespace(reasoning_tokens=reasoning_tokens),
        ),
    )


class FakeOpenAIClient:
    """In-memory OpenAIVendorClient.

    ``errors`` are raised, in order, by the next non-streaming calls before
    any reply is returned. Stream items that are exceptions are raised at
    that position in the stream.
    """

    def __init__(self, response=None, chat=None, image=None, stream_items=None, errors=None):
        self.response = response or responses_reply()
        self.chat = chat or chat_completion()
        self.image = image
        self.stream_items: List[Any] = list(stream_items or [])
        self.errors: List[Exception] = list(errors or [])
        self.calls: List[tuple] = []

    def _maybe_fail(self):
        if self.errors:
            raise self.errors.pop(0)

    async def create_response(self, **params):
        self.calls.append(("create_response", params))
        self._maybe_fail()
        return self.response

    async def stream_response(self, **params):
        self.calls.append(("stream_response", params))
        for item in self.stream_items:
            if isinstance(item, Exception):
                raise item
            yield item

    async def create_chat_completion(self, **params):
        self.calls.append(("create_chat_completion", params))
        self._maybe_fail()
        return self.chat

    async def stream_chat_completion(self, **params):
        self.calls.append(("stream_chat_completion", params))
        for item in self.stream_items:
            if isinstance(item, Exception):
                raise item
            yield item

    async def generate_image(self, **params):
        self.calls.append(("generate_image", params))
        self._maybe_fail()
        return self.image

    def last_params(self, method: str) -> Optional[dict]:
        for name, params in reversed(self.calls):
            if name == method:
                return params
        return None


def gemini_reply(text="Gemini text", prompt_tokens=100, output_tokens=50, thoughts_tokens=0,
                 finish_reason="STOP", grounding=None, block_reason=None):
    """generate_content response shaped like the google-genai object."""
    return SimpleNamespace(
        text=text,
        response_id="gemini_1",
        prompt_feedback=SimpleNamespace(block_reason=block_reason) if block_reason else None,
        candidates=[SimpleNamespace(
            finish_reason=SimpleNamespace(name=finish_reason),
            grounding_metadata=grounding,
            safety_ratings=[],
        )],
        usage_metadata=SimpleNamespace(
            prompt_token_count=prompt_tokens,
            candidates_token_count=output_tokens,
            thoughts_token_count=thoughts_tokens,
        ),
    )


class FakeGoogleClient:
    """In-memory GoogleVendorClient."""

    def __init__(self, reply=None, images=None, stream_items=None, errors=None):
        self.reply = reply or gemini_reply()
        self.images = images
        self.stream_items: List[Any] = list(stream_items or [])
        self.errors: List[Exception] = list(errors or [])
        self.calls: List[tuple] = []

    def _maybe_fail(self):
        if self.errors:
            raise self.errors.pop(0)

    async def generate_content(self, model, contents, config):
        self.calls.append(("generate_content", {"model": model, "contents": contents, "config": config}))
        self._maybe_fail()
        return self.reply

    async def generate_content_stream(self, model, contents, config):
        self.calls.append(("generate_content_stream", {"model": model, "contents": contents, "config": config}))
        for item in self.stream_items:
            if isinstance(item, Exception):
                raise item
            yield item

    async def generate_images(self, model, prompt, config):
        self.calls.append(("generate_images", {"model": model, "prompt": prompt, "config": config}))
        self._maybe_fail()
        return self.images


class RecordingSleep:
    """Backoff sleep that returns immediately and remembers each delay."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def no_sleep():
    return RecordingSleep()


async def collect(stream) -> list:
    """Drain an async iterator into a list."""
    return [chunk async for chunk in stream]
