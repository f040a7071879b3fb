"""
Perplexity provider adapter.

Perplexity serves an OpenAI-compatible chat completions endpoint, so this
adapter reuses the OpenAI vendor client with Perplexity's base URL and sends
search parameters through ``extra_body``.
"""

import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import openai

from ..core.errors import ErrorKind, GenerationError, ProviderError
from ..core.models import Citation, GenerationRequest, ProviderName, StreamChunk
from ..core.pricing import PERPLEXITY_MODELS, ApiKind, Capability, ModelDescriptor
from ..core.retry import RetryPolicy
from ..core.task_policy import PERPLEXITY_POLICY, has_vertical
from ..core.token_counter import TokenUsage
from .base import CONNECTION_TEST_MAX_TOKENS, ProviderAdapter, StreamState, VendorReply, unsupported_api_kind
from .openai_client import OpenAIVendorClient, normalize_openai_error

logger = logging.getLogger(__name__)

PERPLEXITY_BASE_URL = "https://api.perplexity.ai"
DEFAULT_MAX_TOKENS = 4000
MAX_SEARCH_DOMAINS = 10

RESEARCH_ROLES = {
    "topic_research": (
        "You are an expert researcher who provides comprehensive, accurate information with reliable sources."
    ),
    "competitor_analysis": (
        "You are a competitive intelligence analyst who identifies market trends and competitor strategies."
    ),
    "trend_analysis": "You are a trend analyst who identifies emerging patterns and market developments.",
    "fact_checking": "You are a fact-checker who verifies claims against authoritative sources.",
    "academic_research": (
        "You are an academic researcher who focuses on peer-reviewed sources and scholarly content."
    ),
    "quick_research": "You are a research assistant who provides quick, accurate answers with sources.",
}
DEFAULT_RESEARCH_ROLE = "You are a knowledgeable research assistant."

RESEARCH_DEPTH = {
    "topic_research": "Provide comprehensive research with current information and reliable sources.",
    "competitor_analysis": "Analyze competitive landscape with specific examples and recent developments.",
    "trend_analysis": "Identify current and emerging trends with supporting data and examples.",
    "fact_checking": "Verify claims with authoritative sources and provide contradicting evidence if found.",
}


def normalize_perplexity_error(exc: BaseException) -> ProviderError:
    """Map errors from the OpenAI-compatible endpoint to Perplexity messages."""
    if isinstance(exc, openai.APIStatusError):
        message = str(getattr(exc, "message", None) or exc)
        if exc.status_code == 400 and "domain filter" in message:
            return ProviderError(
                f"Perplexity domain filter error: Maximum {MAX_SEARCH_DOMAINS} domains allowed",
                kind=ErrorKind.BAD_REQUEST, status=400, provider="perplexity",
            )
        if exc.status_code == 400 and "date format" in message:
            return ProviderError(
                "Perplexity date filter error: Use MM/DD/YYYY format",
                kind=ErrorKind.BAD_REQUEST, status=400, provider="perplexity",
            )
        if exc.status_code == 401:
            return ProviderError(
                "Perplexity authentication failed: Invalid API key",
                kind=ErrorKind.AUTH, status=401, provider="perplexity",
            )
        if exc.status_code == 503:
            return ProviderError(
                f"Perplexity service unavailable: {message}",
                kind=ErrorKind.SERVER_ERROR, status=503, provider="perplexity",
            )
    error = normalize_openai_error(exc, label="Perplexity", provider="perplexity")
    if error.kind == ErrorKind.UNKNOWN and "quota" in error.message:
        return ProviderError(
            f"Perplexity quota exceeded: {error.message}",
            kind=ErrorKind.QUOTA, provider="perplexity", retryable=False,
        )
    return error


def extract_citations(search_results: List[Dict[str, Any]]) -> List[Citation]:
    """Citations from Perplexity search results, skipping entries without a URL."""
    citations = []
    for result in search_results:
        if not result.get("url"):
            continue
        citations.append(Citation(
            url=result["url"],
            title=result.get("title"),
            date=result.get("date"),
            snippet=result.get("snippet") or result.get("description"),
        ))
    return citations


def _plain(items: Any) -> List[Dict[str, Any]]:
    result = []
    for item in items or []:
        if isinstance(item, dict):
            result.append(item)
        elif hasattr(item, "model_dump"):
            result.append(item.model_dump())
        else:
            result.append(dict(vars(item)))
    return result


class PerplexityAdapter(ProviderAdapter):
    """Adapter for Perplexity Sonar search models."""

    provider = ProviderName.PERPLEXITY
    registry = PERPLEXITY_MODELS
    policy = PERPLEXITY_POLICY
    connection_test_model = "sonar"

    def __init__(
        self,
        client: OpenAIVendorClient,
        retry_policy: Optional[RetryPolicy] = None,
        sleep=None,
    ):
        """Initialize Perplexity adapter.

        Args:
            client: OpenAI-compatible client pointed at PERPLEXITY_BASE_URL
            retry_policy: Default retry limits
            sleep: Backoff sleep, replaced in tests
        """
        super().__init__(retry_policy=retry_policy, sleep=sleep)
        self.client = client

    def normalize_error(self, exc: BaseException) -> ProviderError:
        if isinstance(exc, GenerationError) and not isinstance(exc, ProviderError):
            return super().normalize_error(exc)
        return normalize_perplexity_error(exc)

    # ================================
    # REQUEST SHAPING
    # ================================

    def build_system_message(self, request: GenerationRequest) -> str:
        options = request.options
        role = RESEARCH_ROLES.get(request.task, DEFAULT_RESEARCH_ROLE)
        if has_vertical(options):
            role += f" You specialize in the {options.vertical} industry."

        guidance = [
            "Always prioritize authoritative, recent, and reliable sources.",
            "Include specific citations and source information for all factual claims.",
        ]
        if options.academic_mode:
            guidance.append("Focus on peer-reviewed sources, academic papers, and scholarly content.")
        if request.task in ("trend_analysis", "competitor_analysis"):
            guidance.append("Emphasize the most recent information and developments.")

        blocks = [role, " ".join(guidance)]
        if options.system_instruction:
            blocks.append(options.system_instruction)
        return "\n\n".join(blocks)

    def build_user_prompt(self, request: GenerationRequest) -> str:
        options = request.options
        text = request.prompt
        if options.context:
            text = f"Context:\n{options.context}\n\nTask: {text}"
        if has_vertical(options):
            text = f"Research for the {options.vertical} industry: {text}"
        if request.task in RESEARCH_DEPTH:
            text += f"\n\n{RESEARCH_DEPTH[request.task]}"
        return text

    def build_search_params(self, request: GenerationRequest, descriptor: ModelDescriptor) -> Dict[str, Any]:
        """Vendor-only search parameters sent through extra_body."""
        options = request.options
        task = request.task
        params: Dict[str, Any] = {}

        if descriptor.supports(Capability.ACADEMIC) and (options.academic_mode or task == "academic_research"):
            params["search_mode"] = "academic"

        if descriptor.supports(Capability.WEB_SEARCH) and not options.disable_search:
            web_options: Dict[str, Any] = {
                "search_context_size": self.policy.search_context_size(task, options),
            }
            if options.user_location:
                web_options["user_location"] = options.user_location
            params["web_search_options"] = web_options

        if descriptor.supports(Capability.ADVANCED_FILTERS):
            if options.search_domains:
                if len(options.search_domains) > MAX_SEARCH_DOMAINS:
                    logger.warning(
                        "Perplexity accepts at most %d search domains; dropping %d",
                        MAX_SEARCH_DOMAINS,
                        len(options.search_domains) - MAX_SEARCH_DOMAINS,
                    )
                params["search_domain_filter"] = list(options.search_domains[:MAX_SEARCH_DOMAINS])
            if options.search_recency:
                params["search_recency_filter"] = options.search_recency
            if options.search_after_date:
                params["search_after_date_filter"] = options.search_after_date
            if options.search_before_date:
                params["search_before_date_filter"] = options.search_before_date
            if options.last_updated_after:
                params["last_updated_after_filter"] = options.last_updated_after
            if options.last_updated_before:
                params["last_updated_before_filter"] = options.last_updated_before
            if options.return_related_questions is not False:
                params["return_related_questions"] = True
            params["return_images"] = options.return_images

        if descriptor.supports(Capability.REASONING):
            params["reasoning_effort"] = self.policy.reasoning_effort(task, options)
        if options.disable_search:
            params["disable_search"] = True
        return params

    def build_params(self, request: GenerationRequest, descriptor: ModelDescriptor) -> Dict[str, Any]:
        """Build a chat completions payload for Perplexity."""
        options = request.options
        messages: List[Dict[str, Any]] = [{"role": "system", "content": self.build_system_message(request)}]
        messages.extend(dict(m) for m in options.conversation_history or ())
        messages.append({"role": "user", "content": self.build_user_prompt(request)})

        params: Dict[str, Any] = {
            "model": descriptor.model_id,
            "messages": messages,
            "temperature": self.policy.temperature(request.task, options),
            "max_tokens": options.max_tokens or DEFAULT_MAX_TOKENS,
        }
        if options.top_p is not None:
            params["top_p"] = options.top_p
        if options.frequency_penalty is not None:
            params["frequency_penalty"] = options.frequency_penalty
        if options.presence_penalty is not None:
            params["presence_penalty"] = options.presence_penalty
        if options.response_format:
            params["response_format"] = options.response_format

        extra_body = self.build_search_params(request, descriptor)
        if options.top_k is not None:
            extra_body["top_k"] = options.top_k
        if extra_body:
            params["extra_body"] = extra_body
        return params

    # ================================
    # RESPONSE READING
    # ================================

    @staticmethod
    def _usage(usage: Any) -> TokenUsage:
        if usage is None:
            return TokenUsage()
        return TokenUsage(
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
            reasoning_tokens=getattr(usage, "reasoning_tokens", 0) or 0,
        )

    @staticmethod
    def _search_results(response: Any) -> List[Dict[str, Any]]:
        results = _plain(getattr(response, "search_results", None))
        if results:
            return results
        # older responses only carry a list of URLs
        return [{"url": url} for url in getattr(response, "citations", None) or [] if isinstance(url, str)]

    async def _generate_search(self, request: GenerationRequest, descriptor: ModelDescriptor) -> VendorReply:
        response = await self.client.create_chat_completion(**self.build_params(request, descriptor))
        choice = response.choices[0]
        search_results = self._search_results(response)
        return VendorReply(
            content=choice.message.content or "",
            usage=self._usage(getattr(response, "usage", None)),
            metadata=self._metadata(
                descriptor,
                finish_reason=choice.finish_reason,
                response_id=getattr(response, "id", None),
                citations=extract_citations(search_results),
                search_results=search_results,
                related_questions=list(getattr(response, "related_questions", None) or []),
            ),
        )

    async def _dispatch(self, request: GenerationRequest, descriptor: ModelDescriptor) -> VendorReply:
        if descriptor.api_kind == ApiKind.SEARCH:
            return await self._generate_search(request, descriptor)
        raise unsupported_api_kind(descriptor, "generation")

    async def _stream_search(
        self, request: GenerationRequest, descriptor: ModelDescriptor, state: StreamState
    ) -> AsyncIterator[StreamChunk]:
        async for chunk in self.client.stream_chat_completion(**self.build_params(request, descriptor)):
            state.response_id = getattr(chunk, "id", None) or state.response_id
            if getattr(chunk, "usage", None):
                state.usage = self._usage(chunk.usage)
            search_results = self._search_results(chunk)
            if search_results:
                state.search_results = search_results
                state.citations = extract_citations(search_results)
            related = getattr(chunk, "related_questions", None)
            if related:
                state.related_questions = list(related)
            if not chunk.choices:
                continue
            choice = chunk.choices[0]
            if choice.finish_reason:
                state.finish_reason = choice.finish_reason
            delta = getattr(choice.delta, "content", None)
            if delta:
                yield StreamChunk.content(delta)

    def _stream(
        self, request: GenerationRequest, descriptor: ModelDescriptor, state: StreamState
    ) -> AsyncIterator[StreamChunk]:
        if descriptor.api_kind == ApiKind.SEARCH:
            return self._stream_search(request, descriptor, state)
        raise unsupported_api_kind(descriptor, "streaming")

    async def _ping(self, model: str) -> None:
        await self.client.create_chat_completion(
            model=model,
            messages=[{"role": "user", "content": "Hello"}],
            max_tokens=CONNECTION_TEST_MAX_TOKENS,
        )
