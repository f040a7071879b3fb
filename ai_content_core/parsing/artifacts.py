"""
Parsed artifact types.

Typed records extracted from model output. Every artifact carries a
generated id and an ``is_fallback`` flag telling whether it came from real
generation or a static template.
"""

import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


class ArtifactKind(Enum):
    """Kinds of artifact the output parser produces."""
    SYNOPSIS = "synopsis"
    ENHANCEMENT = "enhancement"
    SOCIAL_POST = "social_post"
    RESEARCH_SUMMARY = "research_summary"
    IDEA = "idea"


class ParseState(Enum):
    """States of one parse run."""
    RECEIVED = "received"
    JSON_PARSE_ATTEMPTED = "json_parse_attempted"
    JSON_OK = "json_ok"
    TEXT_HEURISTIC_ATTEMPTED = "text_heuristic_attempted"
    ARTIFACTS_OK = "artifacts_ok"
    FALLBACK_SYNTHESIZED = "fallback_synthesized"
    VALIDATED = "validated"


TONES = ("professional", "casual", "friendly", "authoritative", "conversational", "urgent")
HOOKS = ("problem", "benefit", "curiosity", "statistic", "story", "question")
LENGTH_TARGETS = ("short", "medium", "long")
ENHANCEMENT_TYPES = ("grammar", "clarity", "tone", "length", "seo", "engagement", "readability")
IMPACTS = ("low", "medium", "high")
DIFFICULTIES = ("Beginner", "Intermediate", "Advanced")


@dataclass(frozen=True)
class PlatformConfig:
    """Posting limits of one social platform."""
    name: str
    max_length: int
    hashtag_limit: int
    optimal_length: Optional[Tuple[int, int]] = None
    thread_support: bool = False


PLATFORMS: Dict[str, PlatformConfig] = {
    "twitter": PlatformConfig("Twitter/X", 280, 5, thread_support=True),
    "linkedin": PlatformConfig("LinkedIn", 3000, 5, optimal_length=(1300, 3000)),
    "facebook": PlatformConfig("Facebook", 63206, 10, optimal_length=(200, 1000)),
    "instagram": PlatformConfig("Instagram", 2200, 30),
}


@dataclass(frozen=True)
class ParseParams:
    """Caller context used for defaults and fallback templates.

    Attributes:
        topic: Subject the content is about
        title: Working title, preferred over topic in templates
        count: Number of artifacts requested
        tones: Allowed synopsis tones
        hooks: Allowed synopsis hooks
        default_tone: Replacement for tones outside the allowed set
        default_hook: Replacement for hooks outside the allowed set
        length_target: Synopsis length target
        platform: Social platform for social posts
        mode: Enhancement mode (grammar, tone, clarity, ...)
        content: Original content being enhanced or shared
        synopsis: Short description used by social fallbacks
    """
    topic: str = ""
    title: Optional[str] = None
    count: int = 3
    tones: Tuple[str, ...] = TONES
    hooks: Tuple[str, ...] = HOOKS
    default_tone: Optional[str] = None
    default_hook: Optional[str] = None
    length_target: str = "medium"
    platform: str = "twitter"
    mode: str = "clarity"
    content: str = ""
    synopsis: str = ""

    def __post_init__(self):
        """Validate caller-supplied values."""
        if self.count < 1:
            raise ValueError("count must be >= 1")
        if not self.tones:
            raise ValueError("tones cannot be empty")
        if not self.hooks:
            raise ValueError("hooks cannot be empty")
        if self.platform not in PLATFORMS:
            raise ValueError(f"Unsupported platform: {self.platform}")
        object.__setattr__(self, "tones", tuple(self.tones))
        object.__setattr__(self, "hooks", tuple(self.hooks))

    @property
    def content_name(self) -> str:
        return self.title or self.topic or "this topic"

    @property
    def minimum(self) -> int:
        """Fewest artifacts a parse may return."""
        return min(self.count, 2)

    @property
    def platform_config(self) -> PlatformConfig:
        return PLATFORMS[self.platform]


@dataclass(frozen=True)
class Synopsis:
    id: str
    synopsis: str
    word_count: int
    character_count: int
    tone: str
    hook: str
    readability_score: float
    engagement_score: float
    length_target: str
    is_fallback: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TextPosition:
    start: int
    end: int


@dataclass(frozen=True)
class EnhancementSuggestion:
    id: str
    type: str
    original_text: str
    suggested_text: str
    reason: str
    confidence: float
    position: TextPosition
    category: str
    impact: str
    applied: bool = False
    is_fallback: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ThreadTweet:
    id: str
    content: str
    character_count: int
    is_within_limits: bool


@dataclass(frozen=True)
class SocialPost:
    id: str
    platform: str
    content: str
    hashtags: List[str]
    character_count: int
    hook: str
    cta: str
    variation: str
    is_within_limits: bool
    thread: List[ThreadTweet] = field(default_factory=list)
    is_fallback: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ResearchSummary:
    id: str
    topic: str
    summary: str
    key_points: List[str]
    sources: List[str]
    confidence: float
    is_fallback: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ContentIdea:
    id: str
    title: str
    angle: str
    description: str
    tags: List[str]
    difficulty: str
    estimated_word_count: int
    score: float
    generated_from_topic: str
    generation_index: int
    is_fallback: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


Artifact = Union[Synopsis, EnhancementSuggestion, SocialPost, ResearchSummary, ContentIdea]


@dataclass(frozen=True)
class ParseOutcome:
    """Artifacts of one parse run plus how they were obtained."""
    kind: ArtifactKind
    artifacts: List[Artifact]
    state: ParseState
    trace: Tuple[ParseState, ...]

    @property
    def is_fallback(self) -> bool:
        return self.state == ParseState.FALLBACK_SYNTHESIZED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "state": self.state.value,
            "is_fallback": self.is_fallback,
            "trace": [s.value for s in self.trace],
            "artifacts": [a.to_dict() for a in self.artifacts],
        }


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def truncate(text: Any, limit: int) -> str:
    """Coerce to str and cut to at most ``limit`` characters."""
    if text is None:
        return ""
    return str(text)[:limit]


def clamp_score(value: Any, default: float, low: float = 0.0, high: float = 100.0) -> float:
    """Clamp a numeric score into range; non-numbers become ``default``."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if value != value:  # NaN
        return default
    return float(min(high, max(low, value)))


def pick(raw: Dict[str, Any], *keys: str) -> Any:
    """First present value among snake_case / camelCase spellings."""
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return None
