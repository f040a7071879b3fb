"""
Provider adapter base class.

Owns the behavior shared by every vendor: model lookup, capability checks,
retry, cost accounting and the stream termination protocol. Subclasses only
shape vendor payloads and read vendor responses.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Union

from ..core.errors import (
    ErrorKind,
    GenerationError,
    ProviderError,
    UnsupportedCapabilityError,
    normalize_error as default_normalize,
)
from ..core.models import (
    ChunkType,
    Citation,
    ConnectionResult,
    GenerationRequest,
    GenerationResult,
    MediaReference,
    ProviderName,
    ResultMetadata,
    StreamChunk,
    StreamCompletion,
    UsageReport,
)
from ..core.pricing import (
    Capability,
    ModelDescriptor,
    ModelRegistry,
    calculate_cost,
    estimate_cost,
)
from ..core.retry import RetryPolicy, execute_with_retry
from ..core.task_policy import TaskPolicy
from ..core.token_counter import TokenUsage

logger = logging.getLogger(__name__)

CONNECTION_TEST_MAX_TOKENS = 10


@dataclass(frozen=True)
class VendorReply:
    """Vendor response reduced to the fields every adapter reports."""
    content: Union[str, List[MediaReference]]
    usage: TokenUsage
    metadata: ResultMetadata


@dataclass
class StreamState:
    """Accumulates usage and metadata while a stream is consumed.

    Owned by a single generate_stream call; never shared.
    """
    usage: TokenUsage = field(default_factory=TokenUsage)
    finish_reason: Optional[str] = None
    response_id: Optional[str] = None
    tool_calls: List[Dict[str, Any]] = field(default_factory=list)
    citations: List[Citation] = field(default_factory=list)
    search_results: List[Dict[str, Any]] = field(default_factory=list)
    related_questions: List[str] = field(default_factory=list)
    safety_info: List[Dict[str, Any]] = field(default_factory=list)
    reasoning: List[str] = field(default_factory=list)
    text: List[str] = field(default_factory=list)


class ProviderAdapter(ABC):
    """Uniform generate/stream/test contract over one vendor API.

    Adapters hold no per-request state, so one instance may serve any number
    of concurrent calls.
    """

    provider: ProviderName
    registry: ModelRegistry
    policy: TaskPolicy
    connection_test_model: str

    def __init__(
        self,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """Initialize adapter.

        Args:
            retry_policy: Retry limits used when a request sets none
            sleep: Backoff sleep, replaced in tests
        """
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep

    @property
    def name(self) -> str:
        return self.provider.value

    def describe(self, model: str) -> ModelDescriptor:
        """Get the descriptor for a model, raising UnsupportedModelError."""
        return self.registry.get(model)

    def list_models(self) -> List[ModelDescriptor]:
        return list(self.registry)

    def calculate_cost(self, usage: TokenUsage, model: str) -> float:
        return calculate_cost(usage, self.describe(model))

    def estimate_cost(self, tokens: int, model: str) -> float:
        return estimate_cost(tokens, self.describe(model))

    def normalize_error(self, exc: BaseException) -> ProviderError:
        """Map a raw exception to a ProviderError. Vendors override this."""
        if isinstance(exc, GenerationError) and not isinstance(exc, ProviderError):
            return ProviderError(str(exc), kind=ErrorKind.BAD_REQUEST, provider=self.name, retryable=False)
        return default_normalize(exc, self.name)

    def validate_request(self, request: GenerationRequest, descriptor: ModelDescriptor) -> None:
        """Fail fast on requests the model cannot serve.

        Raises:
            ValueError: If the request targets another provider
            UnsupportedCapabilityError: If images go to a model without vision
        """
        if request.provider != self.provider:
            raise ValueError(f"{self.name} adapter cannot serve {request.provider.value} requests")
        if request.options.has_images and not descriptor.supports(Capability.VISION):
            raise UnsupportedCapabilityError(descriptor.model_id, "image input")

    async def generate(
        self,
        request: GenerationRequest,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> GenerationResult:
        """Generate content for a request.

        Args:
            request: Generation request
            cancel_event: Optional event aborting retries when set

        Returns:
            Normalized GenerationResult with usage, cost and latency

        Raises:
            UnsupportedModelError: If the model is not in the registry
            UnsupportedCapabilityError: If the model cannot serve the request
            ProviderError: On vendor failure after retries
        """
        descriptor = self.describe(request.model)
        self.validate_request(request, descriptor)

        options = request.options
        max_retries = options.max_retries if options.max_retries is not None else self.retry_policy.max_retries
        base_delay_ms = options.retry_delay_ms if options.retry_delay_ms is not None else self.retry_policy.base_delay_ms

        started = time.perf_counter()
        reply = await execute_with_retry(
            lambda: self._dispatch(request, descriptor),
            max_retries=max_retries,
            base_delay_ms=base_delay_ms,
            normalize_error=self.normalize_error,
            cancel_event=cancel_event,
            sleep=self._sleep,
            provider=self.name,
        )
        latency_ms = (time.perf_counter() - started) * 1000

        cost = calculate_cost(reply.usage, descriptor)
        logger.debug(
            "%s %s completed in %.0fms (tokens=%d, cost=%.6f)",
            self.name,
            descriptor.model_id,
            latency_ms,
            reply.usage.total_tokens,
            cost,
        )
        return GenerationResult(
            content=reply.content,
            usage=UsageReport.from_usage(reply.usage, cost, latency_ms),
            metadata=reply.metadata,
        )

    async def generate_stream(
        self,
        request: GenerationRequest,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[StreamChunk]:
        """Stream content for a request.

        Never raises while iterating. Yields content and reasoning chunks in
        vendor order, then exactly one complete chunk or one error chunk.
        """
        started = time.perf_counter()
        state = StreamState()
        try:
            descriptor = self.describe(request.model)
            self.validate_request(request, descriptor)
            if not descriptor.supports(Capability.STREAMING):
                raise UnsupportedCapabilityError(descriptor.model_id, "streaming")

            async for chunk in self._stream(request, descriptor, state):
                if cancel_event is not None and cancel_event.is_set():
                    raise ProviderError(
                        "Request cancelled", kind=ErrorKind.CANCELLED, provider=self.name, retryable=False
                    )
                if chunk.type == ChunkType.CONTENT:
                    state.text.append(chunk.payload)
                elif chunk.type == ChunkType.REASONING:
                    state.reasoning.append(chunk.payload)
                yield chunk
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            error = self.normalize_error(exc)
            logger.error("%s stream failed for %s: %s", self.name, request.model, error.message)
            yield StreamChunk.error(error)
            return

        latency_ms = (time.perf_counter() - started) * 1000
        cost = calculate_cost(state.usage, descriptor)
        yield StreamChunk.complete(StreamCompletion(
            content="".join(state.text),
            usage=UsageReport.from_usage(state.usage, cost, latency_ms),
            metadata=ResultMetadata(
                model=descriptor.model_id,
                provider=self.provider,
                finish_reason=state.finish_reason,
                response_id=state.response_id,
                tool_calls=state.tool_calls,
                citations=state.citations,
                search_results=state.search_results,
                related_questions=state.related_questions,
                safety_info=state.safety_info,
                reasoning="".join(state.reasoning) or None,
            ),
        ))

    async def test_connection(self) -> ConnectionResult:
        """Issue a minimal request to verify credentials and network.

        Never raises; failures are reported in the result.
        """
        started = time.perf_counter()
        try:
            await self._ping(self.connection_test_model)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            error = self.normalize_error(exc)
            logger.warning("%s connection test failed: %s", self.name, error.message)
            return ConnectionResult(
                success=False,
                latency_ms=(time.perf_counter() - started) * 1000,
                error=error.message,
                model=self.connection_test_model,
            )
        return ConnectionResult(
            success=True,
            latency_ms=(time.perf_counter() - started) * 1000,
            model=self.connection_test_model,
        )

    def _metadata(self, descriptor: ModelDescriptor, **fields: Any) -> ResultMetadata:
        return ResultMetadata(model=descriptor.model_id, provider=self.provider, **fields)

    @abstractmethod
    async def _dispatch(self, request: GenerationRequest, descriptor: ModelDescriptor) -> VendorReply:
        """Perform one vendor call chosen by descriptor.api_kind."""

    @abstractmethod
    def _stream(
        self,
        request: GenerationRequest,
        descriptor: ModelDescriptor,
        state: StreamState,
    ) -> AsyncIterator[StreamChunk]:
        """Yield content/reasoning chunks, recording usage in state."""

    @abstractmethod
    async def _ping(self, model: str) -> None:
        """Send the cheapest possible request; raise on failure."""


def unsupported_api_kind(descriptor: ModelDescriptor, operation: str) -> UnsupportedCapabilityError:
    """Error for an api_kind an adapter has no handler for."""
    return UnsupportedCapabilityError(descriptor.model_id, f"{operation} via {descriptor.api_kind.value} API")
