"""
Output parsing pipeline.

Turns raw model text into typed artifacts. Stages run in order and the
first one producing artifacts wins; when every stage fails, the strategy
synthesizes template artifacts instead. Parsing never raises on model
output.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from ..core.errors import ParseFailureError
from .artifacts import Artifact, ArtifactKind, ParseOutcome, ParseParams, ParseState
from .extraction import extract_json, unwrap_items

logger = logging.getLogger(__name__)


class ArtifactStrategy(ABC):
    """Per-kind parsing rules.

    Subclasses map decoded JSON items and free text to artifacts, and
    provide the template artifacts used when both fail. ``normalize`` is
    the single place where untrusted values are clamped, so every path goes
    through it.
    """

    kind: ArtifactKind
    list_keys: Tuple[str, ...] = ()

    @abstractmethod
    def normalize(self, item: Any, index: int, params: ParseParams,
                  is_fallback: bool = False) -> Optional[Artifact]:
        """Build a validated artifact from one raw item, or None to drop it."""

    @abstractmethod
    def from_text(self, text: str, params: ParseParams) -> List[Artifact]:
        """Extract artifacts from unstructured text."""

    @abstractmethod
    def fallback(self, params: ParseParams) -> List[Artifact]:
        """Template artifacts, all flagged ``is_fallback``."""

    def limit(self, params: ParseParams) -> int:
        return params.count

    def from_json(self, text: str, params: ParseParams) -> List[Artifact]:
        items = unwrap_items(extract_json(text), self.list_keys)
        return self.build(items, params)

    def build(self, items: Sequence[Any], params: ParseParams,
              is_fallback: bool = False) -> List[Artifact]:
        artifacts = []
        for index, item in enumerate(items):
            artifact = self.normalize(item, index, params, is_fallback=is_fallback)
            if artifact is not None:
                artifacts.append(artifact)
        return artifacts[:self.limit(params)]


StageFn = Callable[[str, ParseParams], List[Artifact]]


@dataclass(frozen=True)
class Stage:
    """One parsing attempt and the states it records."""
    name: str
    attempted: ParseState
    succeeded: Optional[ParseState]
    run: StageFn


def first_success(stages: Sequence[Stage], text: str, params: ParseParams,
                  trace: List[ParseState]) -> Optional[List[Artifact]]:
    """Run stages until one yields artifacts.

    Returns:
        Artifacts of the first successful stage, or None if all failed
    """
    for stage in stages:
        trace.append(stage.attempted)
        try:
            artifacts = stage.run(text, params)
        except ParseFailureError as e:
            logger.debug("%s stage failed: %s", stage.name, e)
            continue
        if not artifacts:
            logger.debug("%s stage produced no artifacts", stage.name)
            continue
        if stage.succeeded is not None:
            trace.append(stage.succeeded)
        return artifacts
    return None


_STRATEGIES: Dict[ArtifactKind, ArtifactStrategy] = {}


def register_strategy(strategy: ArtifactStrategy) -> ArtifactStrategy:
    _STRATEGIES[strategy.kind] = strategy
    return strategy


def get_strategy(kind: Union[ArtifactKind, str]) -> ArtifactStrategy:
    kind = ArtifactKind(kind)
    if kind not in _STRATEGIES:
        raise ValueError(f"No parser registered for {kind.value}")
    return _STRATEGIES[kind]


def parse_artifacts(raw_text: Optional[str], kind: Union[ArtifactKind, str],
                    params: Optional[ParseParams] = None) -> ParseOutcome:
    """Parse model output into artifacts of one kind.

    Args:
        raw_text: Model output, possibly empty or malformed
        kind: Artifact kind to produce
        params: Caller context for defaults and fallback templates

    Returns:
        ParseOutcome with at least one artifact

    Raises:
        ValueError: If the kind is unknown
    """
    kind = ArtifactKind(kind)
    params = params or ParseParams()
    strategy = get_strategy(kind)
    text = (raw_text or "").strip()

    trace = [ParseState.RECEIVED]
    stages = [
        Stage("json", ParseState.JSON_PARSE_ATTEMPTED, ParseState.JSON_OK, strategy.from_json),
        Stage("text", ParseState.TEXT_HEURISTIC_ATTEMPTED, None, strategy.from_text),
    ]
    artifacts = first_success(stages, text, params, trace) if text else None

    if artifacts is None:
        if not text:
            trace.append(ParseState.JSON_PARSE_ATTEMPTED)
            trace.append(ParseState.TEXT_HEURISTIC_ATTEMPTED)
        logger.info("Using fallback %s artifacts for %r", kind.value, params.content_name)
        artifacts = strategy.fallback(params)
        state = ParseState.FALLBACK_SYNTHESIZED
    else:
        state = ParseState.ARTIFACTS_OK

    trace.append(state)
    trace.append(ParseState.VALIDATED)
    return ParseOutcome(kind=kind, artifacts=artifacts, state=state, trace=tuple(trace))
