"""
Synopsis parsing.

Extracts blog synopses, scores their readability and engagement, and
supplies template synopses when the model output is unusable.
"""

import re
from typing import Any, Optional

from .artifacts import (
    ArtifactKind,
    ParseParams,
    Synopsis,
    clamp_score,
    new_id,
    pick,
    truncate,
)
from .pipeline import ArtifactStrategy, register_strategy

MAX_SYNOPSIS_CHARS = 1000
MIN_SECTION_CHARS = 50

_SECTION_SPLIT = re.compile(r"(?:\n\s*\n|\n\s*\d+[.):])")
_LEADING_MARKER = re.compile(r"^\s*\d+[.):]\s*")
_SENTENCE_SPLIT = re.compile(r"[.!?]+")

PASSIVE_INDICATORS = ("was", "were", "been", "being")
TRANSITION_WORDS = ("however", "therefore", "moreover", "furthermore", "additionally", "consequently")
POWER_WORDS = ("discover", "secret", "proven", "ultimate", "essential", "exclusive",
               "guaranteed", "amazing", "incredible", "revolutionary")
EMOTIONAL_WORDS = ("transform", "succeed", "master", "achieve", "overcome", "improve",
                   "boost", "maximize", "optimize")
ACTION_WORDS = ("learn", "discover", "find", "get", "create", "build", "develop", "implement")
BENEFIT_WORDS = ("results", "success", "solution", "improve", "better", "effective", "efficient")
PERSONAL_WORDS = ("you", "your", "yourself")

FALLBACK_TEMPLATES = (
    ("Discover everything you need to know about {name}. This comprehensive guide covers "
     "essential concepts, practical applications, and proven strategies that deliver real "
     "results. Learn from expert insights and actionable advice that you can implement "
     "immediately.", "professional", "benefit"),
    ("Are you struggling with {name}? You're not alone. This detailed guide addresses common "
     "challenges and provides step-by-step solutions that actually work. Get the clarity and "
     "confidence you need to succeed.", "friendly", "problem"),
    ("What if you could master {name} faster than you ever thought possible? This guide "
     "reveals the insider secrets and advanced techniques that top professionals use. "
     "Transform your approach and see immediate improvements.", "conversational", "curiosity"),
)

HOOK_TEMPLATES = {
    "problem": "Many people struggle with {name}, but it doesn't have to be difficult. This "
               "comprehensive guide breaks down complex concepts into simple, actionable steps "
               "that anyone can follow. Get the practical knowledge you need to overcome common "
               "challenges and achieve your goals.",
    "benefit": "Master {name} with this comprehensive guide that delivers real results. Learn "
               "proven strategies, expert techniques, and practical applications that you can "
               "implement immediately. Transform your understanding and achieve the success "
               "you've been looking for.",
    "curiosity": "What's the secret to succeeding with {name}? This guide reveals the insider "
                 "knowledge and advanced techniques that top experts use but rarely share. "
                 "Discover the strategies that could change everything for you.",
    "statistic": "Research shows that most people fail at {name} because they lack the right "
                 "approach. This guide provides the data-driven strategies and proven "
                 "methodologies that successful professionals use to achieve exceptional results.",
    "story": "Like many others, you might be wondering how to effectively approach {name}. This "
             "guide shares real success stories and practical lessons learned from years of "
             "experience, giving you a clear roadmap to follow.",
    "question": "How can you master {name} quickly and effectively? This comprehensive guide "
                "answers that question with detailed explanations, practical examples, and "
                "step-by-step instructions that make complex topics simple to understand and "
                "implement.",
}


def readability_score(text: str) -> float:
    """Heuristic readability in [0, 100]; shorter sentences and plain words score higher."""
    words = text.split()
    sentences = [s for s in _SENTENCE_SPLIT.split(text) if s.strip()]
    if not words or not sentences:
        return 50.0

    score = 50
    avg_words = len(words) / len(sentences)
    if avg_words <= 15:
        score += 20
    elif avg_words <= 20:
        score += 10
    elif avg_words > 25:
        score -= 15

    complex_ratio = sum(1 for w in words if len(w) > 8) / len(words)
    if complex_ratio < 0.15:
        score += 15
    elif complex_ratio > 0.35:
        score -= 15

    lowered = [w.lower() for w in words]
    passive = sum(1 for w in lowered if any(p in w for p in PASSIVE_INDICATORS))
    if passive / len(words) < 0.1:
        score += 10
    if any(t in w for w in lowered for t in TRANSITION_WORDS):
        score += 5

    return float(min(100, max(0, score)))


def engagement_score(text: str) -> float:
    """Heuristic engagement in [0, 100] from power words, questions and direct address."""
    lower = text.lower()
    score = 50
    score += 6 * sum(1 for w in POWER_WORDS if w in lower)
    score += 5 * sum(1 for w in EMOTIONAL_WORDS if w in lower)
    score += 4 * sum(1 for w in ACTION_WORDS if w in lower)
    if "?" in text:
        score += 10
    if re.search(r"\d", text):
        score += 8
    score += 3 * sum(1 for w in BENEFIT_WORDS if w in lower)
    personal = sum(lower.count(w) for w in PERSONAL_WORDS)
    if personal:
        score += min(15, personal * 3)
    return float(min(100, max(0, score)))


def _allowed(value: Any, allowed, default: Optional[str], index: int) -> str:
    if isinstance(value, str) and value in allowed:
        return value
    if default:
        return default
    return allowed[index % len(allowed)]


class SynopsisStrategy(ArtifactStrategy):
    kind = ArtifactKind.SYNOPSIS
    list_keys = ("synopses", "items", "results")

    def normalize(self, item, index, params, is_fallback=False):
        raw = item if isinstance(item, dict) else {"synopsis": item}
        text = pick(raw, "synopsis", "text", "content")
        if not isinstance(text, str) or not text.strip():
            text = (f"A comprehensive guide to {params.content_name} that covers essential "
                    "concepts and practical applications.")
        text = truncate(text.strip(), MAX_SYNOPSIS_CHARS)

        return Synopsis(
            id=new_id("synopsis"),
            synopsis=text,
            word_count=len(text.split()),
            character_count=len(text),
            tone=_allowed(raw.get("tone"), params.tones, params.default_tone, index),
            hook=_allowed(raw.get("hook"), params.hooks, params.default_hook, index),
            readability_score=clamp_score(
                pick(raw, "readability_score", "readabilityScore"), readability_score(text)),
            engagement_score=clamp_score(
                pick(raw, "engagement_score", "engagementScore"), engagement_score(text)),
            length_target=_length_target(pick(raw, "length_target", "lengthTarget"), params),
            is_fallback=is_fallback,
        )

    def from_text(self, text, params):
        sections = []
        for section in _SECTION_SPLIT.split(text):
            section = _LEADING_MARKER.sub("", section.strip())
            if len(section) > MIN_SECTION_CHARS:
                sections.append({"synopsis": section})
        return self.build(sections, params)

    def fallback(self, params):
        name = params.content_name
        items = []
        for template, tone, hook in FALLBACK_TEMPLATES[:params.count]:
            items.append({"synopsis": template.format(name=name), "tone": tone, "hook": hook})
        while len(items) < params.count:
            hook = params.hooks[len(items) % len(params.hooks)]
            items.append({"synopsis": fallback_for_hook(name, hook), "hook": hook})
        return self.build(items, params, is_fallback=True)


def _length_target(value: Any, params: ParseParams) -> str:
    if value in ("short", "medium", "long"):
        return value
    return params.length_target


def fallback_for_hook(name: str, hook: str) -> str:
    """Single template synopsis shaped by an opening hook."""
    return HOOK_TEMPLATES.get(hook, HOOK_TEMPLATES["benefit"]).format(name=name)


register_strategy(SynopsisStrategy())
