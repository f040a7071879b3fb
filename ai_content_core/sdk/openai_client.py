"""
OpenAI provider adapter.

Routes each model to the Responses, Chat Completions or Images API based on
its descriptor and normalizes OpenAI errors.
"""

import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol

import openai
from openai import AsyncOpenAI

from ..core.errors import ErrorKind, NetworkError, ProviderError, normalize_error
from ..core.models import (
    Citation,
    GenerationRequest,
    MediaReference,
    ProviderName,
    StreamChunk,
)
from ..core.pricing import OPENAI_MODELS, ApiKind, Capability, ModelDescriptor
from ..core.retry import RetryPolicy
from ..core.task_policy import OPENAI_POLICY, build_prompt, has_vertical
from ..core.token_counter import TokenUsage
from .base import CONNECTION_TEST_MAX_TOKENS, ProviderAdapter, StreamState, VendorReply, unsupported_api_kind

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_SIZE = "1024x1024"
DEFAULT_IMAGE_QUALITY = "standard"


class OpenAIVendorClient(Protocol):
    """The slice of the OpenAI API the adapters call."""

    async def create_response(self, **params: Any) -> Any:
        ...

    def stream_response(self, **params: Any) -> AsyncIterator[Any]:
        ...

    async def create_chat_completion(self, **params: Any) -> Any:
        ...

    def stream_chat_completion(self, **params: Any) -> AsyncIterator[Any]:
        ...

    async def generate_image(self, **params: Any) -> Any:
        ...


class AsyncOpenAIClient:
    """OpenAIVendorClient backed by openai.AsyncOpenAI.

    Also serves OpenAI-compatible vendors through ``base_url``.
    """

    def __init__(self, api_key: str, base_url: Optional[str] = None, timeout: Optional[float] = None):
        kwargs: Dict[str, Any] = {"api_key": api_key, "max_retries": 0}
        if base_url:
            kwargs["base_url"] = base_url
        if timeout:
            kwargs["timeout"] = timeout
        # retries are handled by execute_with_retry
        self._client = AsyncOpenAI(**kwargs)

    async def create_response(self, **params: Any) -> Any:
        return await self._client.responses.create(**params)

    async def stream_response(self, **params: Any) -> AsyncIterator[Any]:
        stream = await self._client.responses.create(stream=True, **params)
        async for event in stream:
            yield event

    async def create_chat_completion(self, **params: Any) -> Any:
        return await self._client.chat.completions.create(**params)

    async def stream_chat_completion(self, **params: Any) -> AsyncIterator[Any]:
        stream = await self._client.chat.completions.create(
            stream=True,
            stream_options={"include_usage": True},
            **params,
        )
        async for chunk in stream:
            yield chunk

    async def generate_image(self, **params: Any) -> Any:
        return await self._client.images.generate(**params)


def _dump(item: Any) -> Dict[str, Any]:
    """Plain dict view of an SDK object or dict."""
    if isinstance(item, dict):
        return item
    if hasattr(item, "model_dump"):
        return item.model_dump()
    return dict(vars(item))


def _merge_tool_call_deltas(pending: Dict[int, Dict[str, Any]], deltas: Any) -> None:
    """Fold streamed tool-call fragments into whole calls keyed by index.

    The first fragment of a call carries its id and function name; later
    fragments carry pieces of the JSON arguments.
    """
    for fragment in deltas or []:
        index = getattr(fragment, "index", None) or 0
        call = pending.setdefault(index, {"id": None, "name": None, "arguments": ""})
        if getattr(fragment, "id", None):
            call["id"] = fragment.id
        function = getattr(fragment, "function", None)
        if function is None:
            continue
        if getattr(function, "name", None):
            call["name"] = function.name
        if getattr(function, "arguments", None):
            call["arguments"] += function.arguments


def _error_message(exc: Exception) -> str:
    message = getattr(exc, "message", None) or str(exc)
    body = getattr(exc, "body", None)
    if isinstance(body, dict):
        nested = body.get("error", body)
        if isinstance(nested, dict) and nested.get("message"):
            message = nested["message"]
    return message


def normalize_openai_error(exc: BaseException, label: str = "OpenAI", provider: str = "openai") -> ProviderError:
    """Map OpenAI SDK exceptions to ProviderError.

    Shared with adapters of OpenAI-compatible vendors via ``label``.
    """
    if isinstance(exc, ProviderError):
        return exc
    if isinstance(exc, openai.APIConnectionError):
        return NetworkError(f"{label} network error: {_error_message(exc)}", provider=provider)
    if not isinstance(exc, openai.APIStatusError):
        return normalize_error(exc, provider)

    status = exc.status_code
    message = _error_message(exc)
    code = getattr(exc, "code", None)

    if status == 429:
        if code == "insufficient_quota":
            return ProviderError(
                f"{label} quota exceeded: {message}",
                kind=ErrorKind.QUOTA, status=status, provider=provider, retryable=False,
            )
        retry_after = exc.response.headers.get("retry-after") if exc.response is not None else None
        suffix = f" (retry after {retry_after} seconds)" if retry_after else ""
        return ProviderError(
            f"{label} rate limit exceeded: {message}{suffix}",
            kind=ErrorKind.RATE_LIMIT, status=status, provider=provider, retryable=True,
        )
    if status == 400:
        kind = ErrorKind.CONTENT_BLOCKED if code == "content_policy_violation" else ErrorKind.BAD_REQUEST
        return ProviderError(f"{label} bad request: {message}", kind=kind, status=status, provider=provider)
    if status == 401:
        return ProviderError(
            f"{label} authentication failed: {message}", kind=ErrorKind.AUTH, status=status, provider=provider
        )
    if status == 403:
        return ProviderError(f"{label} forbidden: {message}", kind=ErrorKind.AUTH, status=status, provider=provider)
    if status == 404:
        return ProviderError(
            f"{label} not found: {message}", kind=ErrorKind.NOT_FOUND, status=status, provider=provider
        )
    if status >= 500:
        return ProviderError(
            f"{label} server error ({status}): {message}",
            kind=ErrorKind.SERVER_ERROR,
            status=status,
            provider=provider,
            retryable=status in (500, 502, 503, 504),
        )
    return ProviderError(
        f"{label} error ({status}): {message}", kind=ErrorKind.BAD_REQUEST, status=status, provider=provider
    )


class OpenAIAdapter(ProviderAdapter):
    """Adapter for OpenAI text and image models."""

    provider = ProviderName.OPENAI
    registry = OPENAI_MODELS
    policy = OPENAI_POLICY
    connection_test_model = "gpt-4.1-mini"

    def __init__(
        self,
        client: OpenAIVendorClient,
        retry_policy: Optional[RetryPolicy] = None,
        sleep=None,
    ):
        """Initialize OpenAI adapter.

        Args:
            client: Vendor client, constructed once and reused for all calls
            retry_policy: Default retry limits
            sleep: Backoff sleep, replaced in tests
        """
        super().__init__(retry_policy=retry_policy, sleep=sleep)
        self.client = client

    def normalize_error(self, exc: BaseException) -> ProviderError:
        if isinstance(exc, (openai.OpenAIError, ProviderError)):
            return normalize_openai_error(exc)
        return super().normalize_error(exc)

    # ================================
    # REQUEST SHAPING
    # ================================

    def _search_tool(self, request: GenerationRequest, descriptor: ModelDescriptor) -> Optional[Dict[str, Any]]:
        options = request.options
        if not descriptor.supports(Capability.WEB_SEARCH) or not self.policy.wants_search(request.task, options):
            return None
        tool: Dict[str, Any] = {
            "type": "web_search_preview",
            "search_context_size": self.policy.search_context_size(request.task, options),
        }
        if options.user_location:
            tool["user_location"] = {"type": "approximate", **options.user_location}
        if options.search_domains:
            tool["domains"] = list(options.search_domains)
        return tool

    def _responses_input(self, request: GenerationRequest) -> Any:
        options = request.options
        text = build_prompt(request.prompt, options)
        if not options.has_images and not options.conversation_history:
            return text

        items: List[Dict[str, Any]] = [dict(m) for m in options.conversation_history or ()]
        if options.has_images:
            content: List[Dict[str, Any]] = [{"type": "input_text", "text": text}]
            for image in options.images:
                content.append({"type": "input_image", "image_url": image.data_url, "detail": image.detail})
            items.append({"role": "user", "content": content})
        else:
            items.append({"role": "user", "content": text})
        return items

    def build_responses_params(self, request: GenerationRequest, descriptor: ModelDescriptor) -> Dict[str, Any]:
        """Build a Responses API payload."""
        options = request.options
        task = request.task
        params: Dict[str, Any] = {
            "model": descriptor.model_id,
            "input": self._responses_input(request),
        }
        if descriptor.supports(Capability.REASONING):
            params["reasoning"] = {"effort": self.policy.reasoning_effort(task, options)}
        else:
            params["temperature"] = self.policy.temperature(task, options)

        text_config: Dict[str, Any] = {"verbosity": self.policy.verbosity_for(task, options)}
        if options.response_schema:
            schema = options.response_schema
            text_config["format"] = {
                "type": "json_schema",
                "name": schema.get("name", "response"),
                "schema": schema.get("schema", schema),
                "strict": options.strict_schema,
            }
        params["text"] = text_config

        tools: List[Dict[str, Any]] = []
        search_tool = self._search_tool(request, descriptor)
        if search_tool:
            tools.append(search_tool)
        tools.extend(options.tools or ())
        tools.extend(options.custom_tools or ())
        if tools:
            params["tools"] = tools
            if options.tool_choice:
                params["tool_choice"] = options.tool_choice

        if options.max_tokens:
            params["max_output_tokens"] = options.max_tokens
        if options.system_instruction:
            params["instructions"] = options.system_instruction
        if options.previous_response_id:
            params["previous_response_id"] = options.previous_response_id
        if options.metadata:
            params["metadata"] = options.metadata
        if options.top_p is not None and not descriptor.supports(Capability.REASONING):
            params["top_p"] = options.top_p
        return params

    def build_chat_messages(self, request: GenerationRequest) -> List[Dict[str, Any]]:
        """Build Chat Completions messages with system, history and user turns."""
        options = request.options
        system_parts = []
        if options.system_instruction:
            system_parts.append(options.system_instruction)
        if options.context:
            system_parts.append(f"Context: {options.context}")
        if has_vertical(options):
            system_parts.append(f"Focus on the {options.vertical} industry.")

        messages: List[Dict[str, Any]] = []
        if system_parts:
            messages.append({"role": "system", "content": "\n\n".join(system_parts)})
        messages.extend(dict(m) for m in options.conversation_history or ())

        if options.has_images:
            content: List[Dict[str, Any]] = [{"type": "text", "text": request.prompt}]
            for image in options.images:
                content.append({"type": "image_url", "image_url": {"url": image.data_url, "detail": image.detail}})
            messages.append({"role": "user", "content": content})
        else:
            messages.append({"role": "user", "content": request.prompt})
        return messages

    def build_chat_params(self, request: GenerationRequest, descriptor: ModelDescriptor) -> Dict[str, Any]:
        """Build a Chat Completions payload."""
        options = request.options
        params: Dict[str, Any] = {
            "model": descriptor.model_id,
            "messages": self.build_chat_messages(request),
            "temperature": self.policy.temperature(request.task, options),
        }
        if options.max_tokens:
            params["max_tokens"] = options.max_tokens
        if options.top_p is not None:
            params["top_p"] = options.top_p
        if options.frequency_penalty is not None:
            params["frequency_penalty"] = options.frequency_penalty
        if options.presence_penalty is not None:
            params["presence_penalty"] = options.presence_penalty
        if options.stop_sequences:
            params["stop"] = list(options.stop_sequences)
        if options.tools:
            params["tools"] = list(options.tools)
            params["tool_choice"] = options.tool_choice or "auto"
        if options.response_format:
            params["response_format"] = options.response_format
        elif options.response_schema:
            schema = options.response_schema
            params["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": schema.get("name", "response"),
                    "schema": schema.get("schema", schema),
                    "strict": options.strict_schema,
                },
            }
        return params

    def build_image_params(self, request: GenerationRequest, descriptor: ModelDescriptor) -> Dict[str, Any]:
        options = request.options
        count = min(options.count or 1, descriptor.max_images or 1)
        params: Dict[str, Any] = {
            "model": descriptor.model_id,
            "prompt": request.prompt,
            "size": options.size or DEFAULT_IMAGE_SIZE,
            "quality": options.quality or DEFAULT_IMAGE_QUALITY,
            "n": count,
        }
        if options.style:
            params["style"] = options.style
        return params

    # ================================
    # RESPONSE READING
    # ================================

    @staticmethod
    def _responses_usage(usage: Any) -> TokenUsage:
        if usage is None:
            return TokenUsage()
        details = getattr(usage, "output_tokens_details", None)
        return TokenUsage(
            input_tokens=getattr(usage, "input_tokens", 0) or 0,
            output_tokens=getattr(usage, "output_tokens", 0) or 0,
            reasoning_tokens=getattr(details, "reasoning_tokens", 0) or 0,
        )

    @staticmethod
    def _chat_usage(usage: Any) -> TokenUsage:
        if usage is None:
            return TokenUsage()
        details = getattr(usage, "completion_tokens_details", None)
        return TokenUsage(
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
            reasoning_tokens=getattr(details, "reasoning_tokens", 0) or 0,
        )

    @staticmethod
    def _finish_reason(response: Any) -> Optional[str]:
        status = getattr(response, "status", None)
        details = getattr(response, "incomplete_details", None)
        reason = getattr(details, "reason", None)
        if status == "incomplete" and reason:
            return reason
        return status

    def _read_output_items(self, response: Any) -> Dict[str, Any]:
        """Collect tool calls, citations, search calls and reasoning summaries."""
        found: Dict[str, Any] = {"tool_calls": [], "citations": [], "search_results": [], "reasoning": []}
        for item in getattr(response, "output", None) or []:
            item_type = getattr(item, "type", None)
            if item_type in ("function_call", "custom_tool_call"):
                found["tool_calls"].append({
                    "id": getattr(item, "call_id", None) or getattr(item, "id", None),
                    "name": getattr(item, "name", None),
                    "arguments": getattr(item, "arguments", None) or getattr(item, "input", None),
                })
            elif item_type == "web_search_call":
                found["search_results"].append(_dump(getattr(item, "action", None) or {}))
            elif item_type == "reasoning":
                for summary in getattr(item, "summary", None) or []:
                    found["reasoning"].append(getattr(summary, "text", ""))
            elif item_type == "message":
                for part in getattr(item, "content", None) or []:
                    for annotation in getattr(part, "annotations", None) or []:
                        if getattr(annotation, "type", None) == "url_citation":
                            found["citations"].append(Citation(
                                url=annotation.url,
                                title=getattr(annotation, "title", None),
                            ))
        return found

    async def _generate_responses(self, request: GenerationRequest, descriptor: ModelDescriptor) -> VendorReply:
        response = await self.client.create_response(**self.build_responses_params(request, descriptor))
        found = self._read_output_items(response)
        return VendorReply(
            content=getattr(response, "output_text", None) or "",
            usage=self._responses_usage(getattr(response, "usage", None)),
            metadata=self._metadata(
                descriptor,
                finish_reason=self._finish_reason(response),
                response_id=getattr(response, "id", None),
                tool_calls=found["tool_calls"],
                citations=found["citations"],
                search_results=found["search_results"],
                reasoning="\n".join(found["reasoning"]) or None,
            ),
        )

    async def _generate_chat(self, request: GenerationRequest, descriptor: ModelDescriptor) -> VendorReply:
        response = await self.client.create_chat_completion(**self.build_chat_params(request, descriptor))
        choice = response.choices[0]
        message = choice.message
        tool_calls = [
            {"id": call.id, "name": call.function.name, "arguments": call.function.arguments}
            for call in getattr(message, "tool_calls", None) or []
        ]
        return VendorReply(
            content=message.content or "",
            usage=self._chat_usage(getattr(response, "usage", None)),
            metadata=self._metadata(
                descriptor,
                finish_reason=choice.finish_reason,
                response_id=getattr(response, "id", None),
                tool_calls=tool_calls,
            ),
        )

    async def _generate_image(self, request: GenerationRequest, descriptor: ModelDescriptor) -> VendorReply:
        response = await self.client.generate_image(**self.build_image_params(request, descriptor))
        media = [
            MediaReference(
                url=getattr(item, "url", None),
                data=getattr(item, "b64_json", None),
                revised_prompt=getattr(item, "revised_prompt", None),
            )
            for item in response.data or []
        ]
        return VendorReply(
            content=media,
            usage=TokenUsage(images_generated=len(media)),
            metadata=self._metadata(descriptor, finish_reason="completed"),
        )

    async def _dispatch(self, request: GenerationRequest, descriptor: ModelDescriptor) -> VendorReply:
        logger.debug("OpenAI %s request via %s API (task=%s)", descriptor.model_id, descriptor.api_kind.value, request.task)
        if descriptor.api_kind == ApiKind.RESPONSES:
            return await self._generate_responses(request, descriptor)
        if descriptor.api_kind == ApiKind.CHAT:
            return await self._generate_chat(request, descriptor)
        if descriptor.api_kind == ApiKind.IMAGES:
            return await self._generate_image(request, descriptor)
        raise unsupported_api_kind(descriptor, "generation")

    # ================================
    # STREAMING
    # ================================

    async def _stream_responses(
        self, request: GenerationRequest, descriptor: ModelDescriptor, state: StreamState
    ) -> AsyncIterator[StreamChunk]:
        params = self.build_responses_params(request, descriptor)
        async for event in self.client.stream_response(**params):
            event_type = getattr(event, "type", "")
            if event_type == "response.output_text.delta":
                yield StreamChunk.content(event.delta)
            elif event_type in ("response.reasoning_summary_text.delta", "response.reasoning_text.delta"):
                yield StreamChunk.reasoning(event.delta)
            elif event_type in ("response.completed", "response.incomplete"):
                response = event.response
                found = self._read_output_items(response)
                state.usage = self._responses_usage(getattr(response, "usage", None))
                state.finish_reason = self._finish_reason(response)
                state.response_id = getattr(response, "id", None)
                state.tool_calls.extend(found["tool_calls"])
                state.citations.extend(found["citations"])
                state.search_results.extend(found["search_results"])
            elif event_type in ("response.failed", "error"):
                error = getattr(getattr(event, "response", None), "error", None) or event
                message = getattr(error, "message", None) or "stream failed"
                raise ProviderError(f"OpenAI stream error: {message}", provider=self.name, retryable=False)

    async def _stream_chat(
        self, request: GenerationRequest, descriptor: ModelDescriptor, state: StreamState
    ) -> AsyncIterator[StreamChunk]:
        params = self.build_chat_params(request, descriptor)
        pending_calls: Dict[int, Dict[str, Any]] = {}
        async for chunk in self.client.stream_chat_completion(**params):
            state.response_id = getattr(chunk, "id", None) or state.response_id
            if getattr(chunk, "usage", None):
                state.usage = self._chat_usage(chunk.usage)
            if not chunk.choices:
                continue
            choice = chunk.choices[0]
            if choice.finish_reason:
                state.finish_reason = choice.finish_reason
            _merge_tool_call_deltas(pending_calls, getattr(choice.delta, "tool_calls", None))
            delta = getattr(choice.delta, "content", None)
            if delta:
                yield StreamChunk.content(delta)
        state.tool_calls.extend(pending_calls[index] for index in sorted(pending_calls))

    def _stream(
        self, request: GenerationRequest, descriptor: ModelDescriptor, state: StreamState
    ) -> AsyncIterator[StreamChunk]:
        if descriptor.api_kind == ApiKind.RESPONSES:
            return self._stream_responses(request, descriptor, state)
        if descriptor.api_kind == ApiKind.CHAT:
            return self._stream_chat(request, descriptor, state)
        raise unsupported_api_kind(descriptor, "streaming")

    async def _ping(self, model: str) -> None:
        await self.client.create_chat_completion(
            model=model,
            messages=[{"role": "user", "content": "Hello"}],
            max_tokens=CONNECTION_TEST_MAX_TOKENS,
            temperature=0,
        )
