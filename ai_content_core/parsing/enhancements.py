"""
Enhancement suggestion parsing.

Reads edit suggestions (original -> suggested) from model output. Also
holds the cleanup applied to full-content rewrites.
"""

import re
from typing import Any, Dict, List

from .artifacts import (
    ENHANCEMENT_TYPES,
    IMPACTS,
    ArtifactKind,
    EnhancementSuggestion,
    TextPosition,
    clamp_score,
    new_id,
    pick,
    truncate,
)
from .pipeline import ArtifactStrategy, register_strategy

MAX_SUGGESTIONS = 15
MAX_TEXT_CHARS = 200
MAX_REASON_CHARS = 300
DEFAULT_CONFIDENCE = 75.0

_NUMBERED = re.compile(r"^\d+[.)]\s*")
_ARROW = re.compile(r"\s+(?:->|→)\s+")
_PREAMBLE = re.compile(
    r"^(Here's|Here is|The enhanced|Enhanced|Improved|Below is|Content:|Enhanced Content:|Improved Content:)",
    re.IGNORECASE,
)

MODE_FALLBACKS: Dict[str, Dict[str, Any]] = {
    "grammar": {
        "type": "grammar", "original_text": "it's", "suggested_text": "it is",
        "reason": "Consider using the full form for formal writing",
        "confidence": 70, "position": {"start": 0, "end": 4},
        "category": "Grammar", "impact": "low",
    },
    "tone": {
        "type": "tone", "original_text": "you should", "suggested_text": "you might consider",
        "reason": "Softer tone makes the content less commanding",
        "confidence": 75, "position": {"start": 10, "end": 20},
        "category": "Tone", "impact": "medium",
    },
}

LONG_SENTENCE_FALLBACK = {
    "type": "readability", "original_text": "Long sentence that could be split",
    "suggested_text": "Shorter sentences. Better readability.",
    "reason": "Breaking long sentences improves readability",
    "confidence": 85, "position": {"start": 50, "end": 100},
    "category": "Readability", "impact": "high",
}

SHORT_CONTENT_FALLBACK = {
    "type": "seo", "original_text": "content", "suggested_text": "comprehensive content",
    "reason": "More descriptive language can improve SEO",
    "confidence": 65, "position": {"start": 20, "end": 27},
    "category": "SEO", "impact": "medium",
}

GENERIC_FALLBACKS = (
    {
        "type": "clarity", "original_text": "in order to", "suggested_text": "to",
        "reason": "Shorter phrasing reads more clearly",
        "confidence": 60, "category": "Clarity", "impact": "low",
    },
    {
        "type": "engagement", "original_text": "very important", "suggested_text": "essential",
        "reason": "A stronger word holds attention better than an intensifier",
        "confidence": 60, "category": "Engagement", "impact": "low",
    },
)


def extract_enhanced_content(raw_response: str, original: str) -> str:
    """Strip assistant preambles from a rewrite.

    Returns the original text when the cleaned rewrite is shorter than half
    of it or under 50 characters.
    """
    if not raw_response:
        return original
    lines = [line for line in raw_response.split("\n")
             if line.strip() and not _PREAMBLE.match(line.strip())]
    enhanced = "\n".join(lines).strip() if lines else raw_response
    if len(enhanced) < len(original) * 0.5 or len(enhanced) < 50:
        return original
    return enhanced


def _position(value: Any, original_text: str, index: int, content: str) -> TextPosition:
    if isinstance(value, dict):
        start, end = value.get("start"), value.get("end")
        if isinstance(start, int) and isinstance(end, int) and 0 <= start <= end:
            return TextPosition(start, end)
    found = content.find(original_text) if content and original_text else -1
    if found >= 0:
        return TextPosition(found, found + len(original_text))
    return TextPosition(index * 10, index * 10 + 20)


class EnhancementStrategy(ArtifactStrategy):
    kind = ArtifactKind.ENHANCEMENT
    list_keys = ("suggestions", "enhancements", "items")

    def limit(self, params):
        return MAX_SUGGESTIONS

    def normalize(self, item, index, params, is_fallback=False):
        if not isinstance(item, dict):
            return None
        original = truncate(pick(item, "original_text", "originalText", "original") or "", MAX_TEXT_CHARS)
        suggested = truncate(pick(item, "suggested_text", "suggestedText", "suggested") or "", MAX_TEXT_CHARS)
        if not original or not suggested or original == suggested:
            return None

        kind = item.get("type")
        if kind not in ENHANCEMENT_TYPES:
            kind = params.mode if params.mode in ENHANCEMENT_TYPES else "clarity"
        impact = item.get("impact")
        if impact not in IMPACTS:
            impact = "medium"

        return EnhancementSuggestion(
            id=new_id("enhance"),
            type=kind,
            original_text=original,
            suggested_text=suggested,
            reason=truncate(item.get("reason") or "General improvement", MAX_REASON_CHARS),
            confidence=clamp_score(item.get("confidence"), DEFAULT_CONFIDENCE),
            position=_position(item.get("position"), original, index, params.content),
            category=str(item.get("category") or "General"),
            impact=impact,
            is_fallback=is_fallback,
        )

    def from_text(self, text, params):
        items: List[Dict[str, Any]] = []
        arrow_type = "grammar" if params.mode == "grammar" else "clarity"
        for line in text.split("\n"):
            line = line.strip()
            if not line:
                continue
            numbered = bool(_NUMBERED.match(line))
            parts = _ARROW.split(_NUMBERED.sub("", line), maxsplit=1)
            if len(parts) < 2:
                continue
            items.append({
                "original_text": parts[0].strip().strip('"'),
                "suggested_text": parts[1].strip().strip('"'),
                "reason": "General improvement" if numbered else "Improvement suggested by AI",
                "confidence": 75 if numbered else 80,
                "type": "clarity" if numbered else arrow_type,
                "category": arrow_type.capitalize() if not numbered else "General",
                "impact": "medium",
            })
        return self.build(items, params)

    def fallback(self, params):
        items: List[Dict[str, Any]] = []
        if params.mode in MODE_FALLBACKS:
            items.append(MODE_FALLBACKS[params.mode])
        content = params.content
        sentences = [s for s in re.split(r"[.!?]+", content) if s.strip()]
        if any(len(s.split()) > 25 for s in sentences):
            items.append(LONG_SENTENCE_FALLBACK)
        if len(content.split()) < 300:
            items.append(SHORT_CONTENT_FALLBACK)
        for generic in GENERIC_FALLBACKS:
            if len(items) >= params.minimum:
                break
            items.append(generic)
        return self.build(items, params, is_fallback=True)


register_strategy(EnhancementStrategy())
