"""
Request, result and stream data models.

Shapes shared by every provider adapter: the immutable generation request
with its options bag, the normalized result and the stream chunk protocol.
"""

import re
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from .token_counter import TokenUsage


class ProviderName(Enum):
    """Supported generative-AI vendors."""
    OPENAI = "openai"
    GOOGLE = "google"
    PERPLEXITY = "perplexity"


REASONING_EFFORTS = ("minimal", "low", "medium", "high")
VERBOSITY_LEVELS = ("low", "medium", "high")
SEARCH_CONTEXT_SIZES = ("low", "medium", "high")
RECENCY_FILTERS = ("hour", "day", "week", "month", "year")

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")

# Names used by the HTTP callers that differ from the field names
OPTION_ALIASES = {
    "reasoning": "reasoning_effort",
    "search_domain_filter": "search_domains",
    "search_recency_filter": "search_recency",
    "search_after_date_filter": "search_after_date",
    "search_before_date_filter": "search_before_date",
    "last_updated_after_filter": "last_updated_after",
    "last_updated_before_filter": "last_updated_before",
    "n": "count",
}


def to_snake_case(key: str) -> str:
    """Convert a camelCase key to snake_case; snake_case passes through."""
    return _CAMEL_BOUNDARY.sub("_", key).lower()


@dataclass(frozen=True)
class ImageInput:
    """Image attached to a request, by URL or inline base64 data."""
    url: Optional[str] = None
    data: Optional[str] = None
    mime_type: str = "image/jpeg"
    detail: str = "auto"

    def __post_init__(self):
        """Validate exactly one image source is given."""
        if bool(self.url) == bool(self.data):
            raise ValueError("image input requires exactly one of url or data")

    @property
    def data_url(self) -> str:
        """URL form of the image; inline data becomes a data: URL."""
        if self.url:
            return self.url
        return f"data:{self.mime_type};base64,{self.data}"

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in (
            ("url", self.url),
            ("data", self.data),
            ("mime_type", self.mime_type),
            ("detail", self.detail),
        ) if v is not None}

    @classmethod
    def from_dict(cls, raw: Union[str, Dict[str, Any]]) -> "ImageInput":
        """Build from a dict (camelCase accepted) or a bare URL string."""
        if isinstance(raw, str):
            if raw.startswith("data:") and ";base64," in raw:
                header, data = raw.split(";base64,", 1)
                return cls(data=data, mime_type=header[len("data:"):])
            return cls(url=raw)
        normalized = {to_snake_case(k): v for k, v in raw.items()}
        allowed = {f.name for f in fields(cls)}
        unknown = set(normalized) - allowed
        if unknown:
            raise ValueError(f"Unknown image keys: {sorted(unknown)}")
        return cls(**normalized)


# Option fields holding sequences; stored as tuples to keep options immutable
_SEQUENCE_OPTIONS = {
    "tools",
    "custom_tools",
    "search_domains",
    "images",
    "stop_sequences",
    "conversation_history",
    "safety_settings",
}


@dataclass(frozen=True)
class GenerationOptions:
    """Configuration bag of a generation request.

    Every field defaults to None meaning "let the adapter's task policy
    decide". Explicit values always override the policy.
    """
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    stream: bool = False
    vertical: Optional[str] = None
    context: Optional[str] = None
    system_instruction: Optional[str] = None
    reasoning_effort: Optional[str] = None
    verbosity: Optional[str] = None
    thinking: Optional[Union[bool, Dict[str, Any]]] = None
    tools: Optional[Tuple[Dict[str, Any], ...]] = None
    custom_tools: Optional[Tuple[Dict[str, Any], ...]] = None
    tool_choice: Optional[Union[str, Dict[str, Any]]] = None
    response_schema: Optional[Dict[str, Any]] = None
    strict_schema: bool = True
    response_format: Optional[Dict[str, Any]] = None
    enable_web_search: bool = False
    search_context_size: Optional[str] = None
    search_domains: Optional[Tuple[str, ...]] = None
    search_recency: Optional[str] = None
    search_after_date: Optional[str] = None
    search_before_date: Optional[str] = None
    last_updated_after: Optional[str] = None
    last_updated_before: Optional[str] = None
    user_location: Optional[Dict[str, Any]] = None
    academic_mode: bool = False
    return_related_questions: Optional[bool] = None
    return_images: bool = False
    disable_search: bool = False
    images: Optional[Tuple[ImageInput, ...]] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    stop_sequences: Optional[Tuple[str, ...]] = None
    conversation_history: Optional[Tuple[Dict[str, Any], ...]] = None
    previous_response_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    safety_settings: Optional[Tuple[Dict[str, Any], ...]] = None
    size: Optional[str] = None
    quality: Optional[str] = None
    style: Optional[str] = None
    count: Optional[int] = None
    aspect_ratio: Optional[str] = None
    max_retries: Optional[int] = None
    retry_delay_ms: Optional[int] = None

    def __post_init__(self):
        """Validate ranges and enumerated values."""
        if self.temperature is not None and not 0 <= self.temperature <= 2:
            raise ValueError("temperature must be between 0 and 2")
        if self.top_p is not None and not 0 <= self.top_p <= 1:
            raise ValueError("top_p must be between 0 and 1")
        if self.max_tokens is not None and self.max_tokens <= 0:
            raise ValueError("max_tokens must be > 0")
        if self.count is not None and self.count < 1:
            raise ValueError("count must be >= 1")
        if self.max_retries is not None and self.max_retries < 0:
            raise ValueError("max_retries cannot be negative")
        if self.retry_delay_ms is not None and self.retry_delay_ms < 0:
            raise ValueError("retry_delay_ms cannot be negative")
        if self.reasoning_effort is not None and self.reasoning_effort not in REASONING_EFFORTS:
            raise ValueError(f"reasoning_effort must be one of {REASONING_EFFORTS}")
        if self.verbosity is not None and self.verbosity not in VERBOSITY_LEVELS:
            raise ValueError(f"verbosity must be one of {VERBOSITY_LEVELS}")
        if self.search_context_size is not None and self.search_context_size not in SEARCH_CONTEXT_SIZES:
            raise ValueError(f"search_context_size must be one of {SEARCH_CONTEXT_SIZES}")
        if self.search_recency is not None and self.search_recency not in RECENCY_FILTERS:
            raise ValueError(f"search_recency must be one of {RECENCY_FILTERS}")

    @property
    def has_images(self) -> bool:
        return bool(self.images)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the options that differ from their defaults.

        Returns:
            Plain dict with snake_case keys; sequences become lists
        """
        result: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value == f.default:
                continue
            if f.name == "images":
                value = [image.to_dict() for image in value]
            elif f.name in _SEQUENCE_OPTIONS:
                value = list(value)
            result[f.name] = value
        return result

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> "GenerationOptions":
        """Build options from a dict.

        Accepts snake_case or camelCase keys and the caller aliases in
        OPTION_ALIASES.

        Args:
            raw: Options dict, or None for defaults

        Returns:
            Validated GenerationOptions

        Raises:
            ValueError: If a key is unknown or a value is out of range
        """
        if not raw:
            return cls()
        if not isinstance(raw, dict):
            raise ValueError("options must be a dictionary")

        allowed = {f.name for f in fields(cls)}
        values: Dict[str, Any] = {}
        unknown = []
        for key, value in raw.items():
            name = to_snake_case(key)
            name = OPTION_ALIASES.get(name, name)
            if name not in allowed:
                unknown.append(key)
                continue
            if value is not None:
                if name == "images":
                    value = tuple(ImageInput.from_dict(item) for item in value)
                elif name in _SEQUENCE_OPTIONS:
                    value = tuple(value)
            values[name] = value

        if unknown:
            raise ValueError(f"Unknown option keys: {sorted(unknown)}")
        return cls(**values)


@dataclass(frozen=True)
class GenerationRequest:
    """One call into a provider adapter."""
    task: str
    prompt: str
    provider: ProviderName
    model: str
    options: GenerationOptions = field(default_factory=GenerationOptions)

    def __post_init__(self):
        """Validate required fields and coerce the provider name."""
        if not self.prompt or not self.prompt.strip():
            raise ValueError("prompt is required and cannot be empty")
        if not self.model or not self.model.strip():
            raise ValueError("model is required and cannot be empty")
        if not isinstance(self.provider, ProviderName):
            object.__setattr__(self, "provider", ProviderName(self.provider))
        if not self.task:
            object.__setattr__(self, "task", "default")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task": self.task,
            "prompt": self.prompt,
            "provider": self.provider.value,
            "model": self.model,
            "options": self.options.to_dict(),
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "GenerationRequest":
        return cls(
            task=raw.get("task") or "default",
            prompt=raw.get("prompt", ""),
            provider=ProviderName(raw["provider"]),
            model=raw.get("model", ""),
            options=GenerationOptions.from_dict(raw.get("options")),
        )


@dataclass(frozen=True)
class MediaReference:
    """Generated media returned by an image model."""
    url: Optional[str] = None
    data: Optional[str] = None
    mime_type: str = "image/png"
    revised_prompt: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "data": self.data,
            "mime_type": self.mime_type,
            "revised_prompt": self.revised_prompt,
        }


@dataclass(frozen=True)
class Citation:
    """Web source backing generated content."""
    url: str
    title: Optional[str] = None
    date: Optional[str] = None
    snippet: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"url": self.url, "title": self.title, "date": self.date, "snippet": self.snippet}


@dataclass(frozen=True)
class UsageReport:
    """Token usage, cost and latency of one call."""
    input_tokens: int = 0
    output_tokens: int = 0
    reasoning_tokens: int = 0
    total_tokens: int = 0
    images_generated: int = 0
    cost: float = 0.0
    latency_ms: float = 0.0

    @classmethod
    def from_usage(cls, usage: TokenUsage, cost: float, latency_ms: float) -> "UsageReport":
        return cls(
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            reasoning_tokens=usage.reasoning_tokens,
            total_tokens=usage.total_tokens,
            images_generated=usage.images_generated,
            cost=cost,
            latency_ms=latency_ms,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "reasoning_tokens": self.reasoning_tokens,
            "total_tokens": self.total_tokens,
            "images_generated": self.images_generated,
            "cost": self.cost,
            "latency_ms": self.latency_ms,
        }


@dataclass(frozen=True)
class ResultMetadata:
    """Vendor details surfaced alongside generated content."""
    model: str
    provider: ProviderName
    finish_reason: Optional[str] = None
    response_id: Optional[str] = None
    tool_calls: List[Dict[str, Any]] = field(default_factory=list)
    citations: List[Citation] = field(default_factory=list)
    search_results: List[Dict[str, Any]] = field(default_factory=list)
    related_questions: List[str] = field(default_factory=list)
    safety_info: List[Dict[str, Any]] = field(default_factory=list)
    reasoning: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "provider": self.provider.value,
            "finish_reason": self.finish_reason,
            "response_id": self.response_id,
            "tool_calls": list(self.tool_calls),
            "citations": [c.to_dict() for c in self.citations],
            "search_results": list(self.search_results),
            "related_questions": list(self.related_questions),
            "safety_info": list(self.safety_info),
            "reasoning": self.reasoning,
            "extra": dict(self.extra),
        }


@dataclass(frozen=True)
class GenerationResult:
    """Normalized result of a non-streaming call."""
    content: Union[str, List[MediaReference]]
    usage: UsageReport
    metadata: ResultMetadata

    @property
    def is_media(self) -> bool:
        return not isinstance(self.content, str)

    @property
    def text(self) -> str:
        """Text content, empty for media results."""
        return self.content if isinstance(self.content, str) else ""

    def to_dict(self) -> Dict[str, Any]:
        content: Any = self.content
        if self.is_media:
            content = [m.to_dict() for m in self.content]
        return {"content": content, "usage": self.usage.to_dict(), "metadata": self.metadata.to_dict()}


class ChunkType(Enum):
    """Kinds of stream chunk."""
    CONTENT = "content"
    REASONING = "reasoning"
    ERROR = "error"
    COMPLETE = "complete"


@dataclass(frozen=True)
class StreamCompletion:
    """Payload of the final complete chunk."""
    content: str
    usage: UsageReport
    metadata: ResultMetadata


@dataclass(frozen=True)
class StreamChunk:
    """One element of a generation stream.

    Payload is text for content/reasoning chunks, a StreamCompletion for the
    complete chunk and a ProviderError for the error chunk.
    """
    type: ChunkType
    payload: Any

    @property
    def is_terminal(self) -> bool:
        return self.type in (ChunkType.ERROR, ChunkType.COMPLETE)

    @classmethod
    def content(cls, text: str) -> "StreamChunk":
        return cls(ChunkType.CONTENT, text)

    @classmethod
    def reasoning(cls, text: str) -> "StreamChunk":
        return cls(ChunkType.REASONING, text)

    @classmethod
    def error(cls, error: Exception) -> "StreamChunk":
        return cls(ChunkType.ERROR, error)

    @classmethod
    def complete(cls, completion: StreamCompletion) -> "StreamChunk":
        return cls(ChunkType.COMPLETE, completion)


@dataclass(frozen=True)
class ConnectionResult:
    """Outcome of a connectivity check."""
    success: bool
    latency_ms: Optional[float] = None
    error: Optional[str] = None
    model: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "latency_ms": self.latency_ms, "error": self.error, "model": self.model}
