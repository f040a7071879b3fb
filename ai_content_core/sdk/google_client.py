"""
Google Gemini / Imagen provider adapter.

Builds google-genai request configs from task policy (thinking budgets,
safety settings, role instructions) and normalizes Google errors.
"""

import base64
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol

import httpx
from google import genai
from google.genai import errors as genai_errors

from ..core.errors import ErrorKind, GenerationError, NetworkError, ProviderError, extract_status, normalize_error
from ..core.models import (
    Citation,
    GenerationRequest,
    MediaReference,
    ProviderName,
    StreamChunk,
)
from ..core.pricing import GOOGLE_MODELS, ApiKind, Capability, ModelDescriptor
from ..core.retry import RetryPolicy
from ..core.task_policy import GOOGLE_POLICY, build_system_instruction
from ..core.token_counter import TokenUsage
from .base import CONNECTION_TEST_MAX_TOKENS, ProviderAdapter, StreamState, VendorReply, unsupported_api_kind

logger = logging.getLogger(__name__)

DEFAULT_MAX_OUTPUT_TOKENS = 4000
DEFAULT_IMAGE_COUNT = 2
DEFAULT_ASPECT_RATIO = "1:1"

DEFAULT_SAFETY_SETTINGS = (
    {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
)


class GoogleVendorClient(Protocol):
    """The slice of the google-genai API the adapter calls."""

    async def generate_content(self, model: str, contents: Any, config: Dict[str, Any]) -> Any:
        ...

    def generate_content_stream(self, model: str, contents: Any, config: Dict[str, Any]) -> AsyncIterator[Any]:
        ...

    async def generate_images(self, model: str, prompt: str, config: Dict[str, Any]) -> Any:
        ...


class GenAIClient:
    """GoogleVendorClient backed by google.genai.Client (async surface)."""

    def __init__(self, api_key: str):
        self._client = genai.Client(api_key=api_key)

    async def generate_content(self, model: str, contents: Any, config: Dict[str, Any]) -> Any:
        return await self._client.aio.models.generate_content(model=model, contents=contents, config=config)

    async def generate_content_stream(
        self, model: str, contents: Any, config: Dict[str, Any]
    ) -> AsyncIterator[Any]:
        stream = await self._client.aio.models.generate_content_stream(
            model=model, contents=contents, config=config
        )
        async for chunk in stream:
            yield chunk

    async def generate_images(self, model: str, prompt: str, config: Dict[str, Any]) -> Any:
        return await self._client.aio.models.generate_images(model=model, prompt=prompt, config=config)


def _enum_name(value: Any) -> Optional[str]:
    if value is None:
        return None
    return getattr(value, "name", None) or str(value)


def normalize_google_error(exc: BaseException) -> ProviderError:
    """Map google-genai and transport exceptions to ProviderError."""
    if isinstance(exc, ProviderError):
        return exc
    if isinstance(exc, (httpx.TransportError, ConnectionError, TimeoutError)):
        return NetworkError(f"Google network error: {exc}", provider="google")

    if isinstance(exc, genai_errors.APIError):
        status = exc.code
        message = exc.message or str(exc)
        if status == 400:
            if "token limit" in message:
                return ProviderError(
                    f"Google token limit exceeded: {message}",
                    kind=ErrorKind.BAD_REQUEST, status=status, provider="google",
                )
            return ProviderError(
                f"Google bad request: {message}", kind=ErrorKind.BAD_REQUEST, status=status, provider="google"
            )
        if status == 401:
            return ProviderError(
                "Google authentication failed: Invalid API key",
                kind=ErrorKind.AUTH, status=status, provider="google",
            )
        if status == 403:
            return ProviderError(
                f"Google forbidden: {message}", kind=ErrorKind.AUTH, status=status, provider="google"
            )
        if status == 404:
            return ProviderError(
                f"Google not found: {message}", kind=ErrorKind.NOT_FOUND, status=status, provider="google"
            )
        if status == 429:
            return ProviderError(
                f"Google rate limit exceeded: {message}",
                kind=ErrorKind.RATE_LIMIT, status=status, provider="google",
            )
        if status and status >= 500:
            return ProviderError(
                f"Google server error ({status}): {message}",
                kind=ErrorKind.SERVER_ERROR,
                status=status,
                provider="google",
                retryable=status in (500, 502, 503, 504),
            )

    if extract_status(exc) is not None:
        return normalize_error(exc, "google")

    message = str(exc) or exc.__class__.__name__
    if "BLOCKED" in message:
        return ProviderError(f"Google content blocked: {message}", kind=ErrorKind.CONTENT_BLOCKED, provider="google")
    if "quota" in message:
        return ProviderError(
            f"Google quota exceeded: {message}", kind=ErrorKind.QUOTA, provider="google", retryable=False
        )
    return ProviderError(f"Google error: {message}", provider="google", retryable=False)


class GoogleAdapter(ProviderAdapter):
    """Adapter for Gemini text models and Imagen image models."""

    provider = ProviderName.GOOGLE
    registry = GOOGLE_MODELS
    policy = GOOGLE_POLICY
    connection_test_model = "gemini-2.5-flash-lite"

    def __init__(
        self,
        client: GoogleVendorClient,
        retry_policy: Optional[RetryPolicy] = None,
        sleep=None,
    ):
        super().__init__(retry_policy=retry_policy, sleep=sleep)
        self.client = client

    def normalize_error(self, exc: BaseException) -> ProviderError:
        if isinstance(exc, GenerationError) and not isinstance(exc, ProviderError):
            return super().normalize_error(exc)
        return normalize_google_error(exc)

    # ================================
    # REQUEST SHAPING
    # ================================

    def build_contents(self, request: GenerationRequest) -> List[Dict[str, Any]]:
        """Build the contents list: history turns, then the user turn."""
        options = request.options
        parts: List[Dict[str, Any]] = []
        if options.context:
            parts.append({"text": f"Context: {options.context}"})
        parts.append({"text": request.prompt})
        for image in options.images or ():
            if image.data:
                parts.append({"inline_data": {"mime_type": image.mime_type, "data": base64.b64decode(image.data)}})
            else:
                parts.append({"file_data": {"mime_type": image.mime_type, "file_uri": image.url}})

        contents: List[Dict[str, Any]] = []
        for turn in options.conversation_history or ():
            role = "model" if turn.get("role") in ("assistant", "model") else "user"
            contents.append({"role": role, "parts": [{"text": str(turn.get("content", ""))}]})
        contents.append({"role": "user", "parts": parts})
        return contents

    def thinking_config(self, request: GenerationRequest, descriptor: ModelDescriptor) -> Optional[Dict[str, Any]]:
        """Thinking config for the task, None for the model default."""
        thinking = request.options.thinking
        if not descriptor.supports(Capability.THINKING) or thinking is False:
            return None
        if isinstance(thinking, dict):
            return dict(thinking)
        if not descriptor.supports(Capability.THINKING_BUDGET):
            return None
        return {"thinking_budget": self.policy.thinking_budget(request.task)}

    def build_config(self, request: GenerationRequest, descriptor: ModelDescriptor) -> Dict[str, Any]:
        """Build a generate_content config dict."""
        options = request.options
        config: Dict[str, Any] = {
            "system_instruction": build_system_instruction(request.task, options),
            "temperature": self.policy.temperature(request.task, options),
            "max_output_tokens": min(options.max_tokens or DEFAULT_MAX_OUTPUT_TOKENS, descriptor.max_tokens),
            "safety_settings": [dict(s) for s in options.safety_settings or DEFAULT_SAFETY_SETTINGS],
        }
        if options.top_k is not None:
            config["top_k"] = options.top_k
        if options.top_p is not None:
            config["top_p"] = options.top_p
        if options.stop_sequences:
            config["stop_sequences"] = list(options.stop_sequences)
        if options.response_schema:
            config["response_mime_type"] = "application/json"
            config["response_schema"] = options.response_schema

        thinking = self.thinking_config(request, descriptor)
        if thinking is not None:
            config["thinking_config"] = thinking

        tools: List[Dict[str, Any]] = []
        if descriptor.supports(Capability.WEB_SEARCH) and self.policy.wants_search(request.task, options):
            tools.append({"google_search": {}})
        tools.extend(options.tools or ())
        if tools:
            config["tools"] = tools
        return config

    def build_image_config(self, request: GenerationRequest, descriptor: ModelDescriptor) -> Dict[str, Any]:
        options = request.options
        return {
            "number_of_images": min(options.count or DEFAULT_IMAGE_COUNT, descriptor.max_images or 1),
            "aspect_ratio": options.aspect_ratio or DEFAULT_ASPECT_RATIO,
        }

    # ================================
    # RESPONSE READING
    # ================================

    @staticmethod
    def _usage(response: Any) -> TokenUsage:
        usage = getattr(response, "usage_metadata", None)
        if usage is None:
            return TokenUsage()
        return TokenUsage(
            input_tokens=getattr(usage, "prompt_token_count", 0) or 0,
            output_tokens=getattr(usage, "candidates_token_count", 0) or 0,
            reasoning_tokens=getattr(usage, "thoughts_token_count", 0) or 0,
        )

    @staticmethod
    def _check_blocked(response: Any) -> None:
        feedback = getattr(response, "prompt_feedback", None)
        block_reason = _enum_name(getattr(feedback, "block_reason", None))
        if block_reason:
            raise ProviderError(
                f"Google content blocked: {block_reason}",
                kind=ErrorKind.CONTENT_BLOCKED,
                provider="google",
                retryable=False,
            )

    @staticmethod
    def _grounding(candidate: Any) -> Dict[str, Any]:
        found: Dict[str, Any] = {"citations": [], "search_results": []}
        grounding = getattr(candidate, "grounding_metadata", None)
        if grounding is None:
            return found
        for chunk in getattr(grounding, "grounding_chunks", None) or []:
            web = getattr(chunk, "web", None)
            if web is not None and getattr(web, "uri", None):
                found["citations"].append(Citation(url=web.uri, title=getattr(web, "title", None)))
        queries = getattr(grounding, "web_search_queries", None) or []
        found["search_results"] = [{"query": q} for q in queries]
        return found

    @staticmethod
    def _safety(candidate: Any) -> List[Dict[str, Any]]:
        return [
            {
                "category": _enum_name(getattr(rating, "category", None)),
                "probability": _enum_name(getattr(rating, "probability", None)),
                "blocked": bool(getattr(rating, "blocked", False)),
            }
            for rating in getattr(candidate, "safety_ratings", None) or []
        ]

    async def _generate_text(self, request: GenerationRequest, descriptor: ModelDescriptor) -> VendorReply:
        response = await self.client.generate_content(
            model=descriptor.model_id,
            contents=self.build_contents(request),
            config=self.build_config(request, descriptor),
        )
        self._check_blocked(response)

        candidates = getattr(response, "candidates", None) or []
        candidate = candidates[0] if candidates else None
        grounding = self._grounding(candidate)
        usage = self._usage(response)
        return VendorReply(
            content=getattr(response, "text", None) or "",
            usage=usage,
            metadata=self._metadata(
                descriptor,
                finish_reason=_enum_name(getattr(candidate, "finish_reason", None)),
                response_id=getattr(response, "response_id", None),
                citations=grounding["citations"],
                search_results=grounding["search_results"],
                safety_info=self._safety(candidate),
                extra={"thinking_budget_used": usage.reasoning_tokens > 0},
            ),
        )

    async def _generate_images(self, request: GenerationRequest, descriptor: ModelDescriptor) -> VendorReply:
        response = await self.client.generate_images(
            model=descriptor.model_id,
            prompt=request.prompt,
            config=self.build_image_config(request, descriptor),
        )
        media = []
        for generated in getattr(response, "generated_images", None) or []:
            image = getattr(generated, "image", None)
            image_bytes = getattr(image, "image_bytes", None)
            if not image_bytes:
                continue
            media.append(MediaReference(
                data=base64.b64encode(image_bytes).decode("ascii"),
                mime_type=getattr(image, "mime_type", None) or "image/png",
                revised_prompt=getattr(generated, "enhanced_prompt", None),
            ))
        return VendorReply(
            content=media,
            usage=TokenUsage(images_generated=len(media)),
            metadata=self._metadata(descriptor, finish_reason="completed"),
        )

    async def _dispatch(self, request: GenerationRequest, descriptor: ModelDescriptor) -> VendorReply:
        logger.debug("Google %s request via %s API (task=%s)", descriptor.model_id, descriptor.api_kind.value, request.task)
        if descriptor.api_kind == ApiKind.CHAT:
            return await self._generate_text(request, descriptor)
        if descriptor.api_kind == ApiKind.IMAGES:
            return await self._generate_images(request, descriptor)
        raise unsupported_api_kind(descriptor, "generation")

    async def _stream_text(
        self, request: GenerationRequest, descriptor: ModelDescriptor, state: StreamState
    ) -> AsyncIterator[StreamChunk]:
        stream = self.client.generate_content_stream(
            model=descriptor.model_id,
            contents=self.build_contents(request),
            config=self.build_config(request, descriptor),
        )
        async for chunk in stream:
            self._check_blocked(chunk)
            if getattr(chunk, "usage_metadata", None) is not None:
                state.usage = self._usage(chunk)
            candidates = getattr(chunk, "candidates", None) or []
            if candidates:
                candidate = candidates[0]
                reason = _enum_name(getattr(candidate, "finish_reason", None))
                if reason:
                    state.finish_reason = reason
                grounding = self._grounding(candidate)
                state.citations.extend(grounding["citations"])
                state.search_results.extend(grounding["search_results"])
            text = getattr(chunk, "text", None)
            if text:
                yield StreamChunk.content(text)

    def _stream(
        self, request: GenerationRequest, descriptor: ModelDescriptor, state: StreamState
    ) -> AsyncIterator[StreamChunk]:
        if descriptor.api_kind == ApiKind.CHAT:
            return self._stream_text(request, descriptor, state)
        raise unsupported_api_kind(descriptor, "streaming")

    async def _ping(self, model: str) -> None:
        response = await self.client.generate_content(
            model=model,
            contents="Hello",
            config={"max_output_tokens": CONNECTION_TEST_MAX_TOKENS, "temperature": 0},
        )
        self._check_blocked(response)
