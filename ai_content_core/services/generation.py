"""
Content generation service.

Routes requests to provider adapters, records usage, and turns model output
into parsed artifacts with an explicit degraded mode.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Union

from ..core.errors import ErrorKind, ProviderError
from ..core.models import ChunkType, GenerationRequest, GenerationResult, ProviderName, StreamChunk
from ..parsing import ArtifactKind, ParseOutcome, ParseParams, parse_artifacts
from ..parsing.artifacts import Artifact
from ..sdk.base import ProviderAdapter
from .usage import UsageRecord, UsageTracker

logger = logging.getLogger(__name__)


class OutcomeStatus(Enum):
    """How a structured generation request ended."""
    OK = "ok"
    DEGRADED = "degraded"  # Template content stands in for model output
    FAILED = "failed"


@dataclass(frozen=True)
class GenerationOutcome:
    """Artifacts of a structured generation plus how they were obtained."""
    status: OutcomeStatus
    artifacts: List[Artifact] = field(default_factory=list)
    result: Optional[GenerationResult] = None
    parse: Optional[ParseOutcome] = None
    reason: Optional[str] = None
    error: Optional[ProviderError] = None

    @property
    def ok(self) -> bool:
        return self.status == OutcomeStatus.OK

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "artifacts": [a.to_dict() for a in self.artifacts],
            "reason": self.reason,
            "error": self.error.to_dict() if self.error else None,
            "usage": self.result.usage.to_dict() if self.result else None,
        }


class ContentGenerationService:
    """Entry point for generation; construct once and inject where needed.

    Args:
        adapters: Adapter per provider
        usage_tracker: Ledger receiving one record per call
    """

    def __init__(
        self,
        adapters: Mapping[ProviderName, ProviderAdapter],
        usage_tracker: Optional[UsageTracker] = None,
    ):
        self._adapters: Dict[ProviderName, ProviderAdapter] = dict(adapters)
        self.usage_tracker = usage_tracker or UsageTracker()

    @property
    def providers(self) -> List[ProviderName]:
        return list(self._adapters)

    def adapter_for(self, provider: Union[ProviderName, str]) -> ProviderAdapter:
        """Get the adapter serving a provider.

        Raises:
            ProviderError: If no adapter is configured for the provider
        """
        provider = ProviderName(provider)
        adapter = self._adapters.get(provider)
        if adapter is None:
            raise ProviderError(
                f"No adapter configured for {provider.value}",
                kind=ErrorKind.BAD_REQUEST,
                provider=provider.value,
                retryable=False,
            )
        return adapter

    async def generate(
        self,
        request: GenerationRequest,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> GenerationResult:
        """Generate content and record usage.

        Raises:
            UnsupportedModelError: If the model is unknown
            ProviderError: On vendor failure after retries
        """
        adapter = self.adapter_for(request.provider)
        try:
            result = await adapter.generate(request, cancel_event=cancel_event)
        except ProviderError as e:
            self._record_failure(request, e)
            raise
        self.usage_tracker.track(UsageRecord(
            provider=request.provider.value,
            task=request.task,
            model=request.model,
            tokens_used=result.usage.total_tokens,
            cost=result.usage.cost,
            latency_ms=result.usage.latency_ms,
            success=True,
        ))
        return result

    async def stream(
        self,
        request: GenerationRequest,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AsyncIterator[StreamChunk]:
        """Stream content and record usage when the stream ends.

        Follows the adapter stream protocol: never raises while iterating and
        ends with one complete or one error chunk.
        """
        try:
            adapter = self.adapter_for(request.provider)
        except ProviderError as e:
            yield StreamChunk.error(e)
            return

        async for chunk in adapter.generate_stream(request, cancel_event=cancel_event):
            if chunk.type == ChunkType.COMPLETE:
                usage = chunk.payload.usage
                self.usage_tracker.track(UsageRecord(
                    provider=request.provider.value,
                    task=request.task,
                    model=request.model,
                    tokens_used=usage.total_tokens,
                    cost=usage.cost,
                    latency_ms=usage.latency_ms,
                    success=True,
                ))
            elif chunk.type == ChunkType.ERROR:
                self._record_failure(request, chunk.payload)
            yield chunk

    async def generate_artifacts(
        self,
        request: GenerationRequest,
        kind: Union[ArtifactKind, str],
        params: Optional[ParseParams] = None,
        allow_fallback: bool = True,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> GenerationOutcome:
        """Generate content and parse it into artifacts.

        Vendor failures and unparseable output become DEGRADED outcomes with
        template artifacts, or FAILED outcomes when fallback is not allowed.

        Args:
            request: Generation request
            kind: Artifact kind to parse
            params: Caller context for parsing and templates
            allow_fallback: Whether template artifacts may stand in

        Returns:
            GenerationOutcome

        Raises:
            UnsupportedModelError: If the model is unknown
            UnsupportedCapabilityError: If the model cannot serve the request
        """
        kind = ArtifactKind(kind)
        try:
            result = await self.generate(request, cancel_event=cancel_event)
        except ProviderError as e:
            reason = f"Generation failed: {e.message}"
            if not allow_fallback:
                return GenerationOutcome(status=OutcomeStatus.FAILED, reason=reason, error=e)
            logger.info("Serving fallback %s artifacts after provider error: %s", kind.value, e.message)
            parsed = parse_artifacts("", kind, params)
            return GenerationOutcome(
                status=OutcomeStatus.DEGRADED,
                artifacts=parsed.artifacts,
                parse=parsed,
                reason=reason,
                error=e,
            )

        parsed = parse_artifacts(result.text, kind, params)
        if not parsed.is_fallback:
            return GenerationOutcome(
                status=OutcomeStatus.OK, artifacts=parsed.artifacts, result=result, parse=parsed
            )

        reason = f"Model output could not be parsed as {kind.value}"
        if not allow_fallback:
            return GenerationOutcome(status=OutcomeStatus.FAILED, result=result, parse=parsed, reason=reason)
        return GenerationOutcome(
            status=OutcomeStatus.DEGRADED,
            artifacts=parsed.artifacts,
            result=result,
            parse=parsed,
            reason=reason,
        )

    def _record_failure(self, request: GenerationRequest, error: Exception) -> None:
        message = error.message if isinstance(error, ProviderError) else str(error)
        self.usage_tracker.track(UsageRecord(
            provider=request.provider.value,
            task=request.task,
            model=request.model,
            tokens_used=0,
            cost=0.0,
            latency_ms=0.0,
            success=False,
            error_message=message,
        ))
