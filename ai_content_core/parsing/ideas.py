"""
Blog idea parsing.

Reads brainstormed content ideas, scores them, and supplies template ideas
when the model output cannot be used.
"""

import re
from typing import Any, Dict, List

from .artifacts import (
    DIFFICULTIES,
    ArtifactKind,
    ContentIdea,
    clamp_score,
    new_id,
    pick,
    truncate,
)
from .pipeline import ArtifactStrategy, register_strategy

MAX_TITLE_CHARS = 100
MAX_ANGLE_CHARS = 200
MAX_DESCRIPTION_CHARS = 500
MAX_TAGS = 5
MIN_WORDS, MAX_WORDS, DEFAULT_WORDS = 500, 5000, 1200

_IDEA_PATTERNS = (
    re.compile(r"^\s*\d+[.)]\s*(.*?)(?=^\s*\d+[.)]|\Z)", re.MULTILINE | re.DOTALL),
    re.compile(r"(?:Title|Headline):\s*(.*?)(?=(?:Title|Headline):|\Z)", re.DOTALL),
    re.compile(r"^(.+)$", re.MULTILINE),
)
_TITLE_PREFIX = re.compile(r"^(Title:|Headline:|Idea:|Blog:)\s*", re.IGNORECASE)

FALLBACK_TEMPLATES = (
    ("Complete Guide to {topic}", "Comprehensive overview covering all essential aspects",
     ["guide", "comprehensive", "basics"]),
    ("Top 10 {topic} Tips for Beginners", "Beginner-friendly approach with practical, actionable advice",
     ["tips", "beginners", "practical"]),
    ("{topic}: Common Mistakes and How to Avoid Them",
     "Problem-solving approach focusing on pitfalls and solutions",
     ["mistakes", "solutions", "troubleshooting"]),
    ("The Future of {topic}: Trends and Predictions", "Forward-looking analysis of industry developments",
     ["trends", "future", "predictions"]),
    ("{topic} Case Studies: Real Success Stories", "Evidence-based approach using real-world examples",
     ["case-studies", "success", "examples"]),
)

APPROACHES = (
    "How to Master",
    "The Ultimate Guide to",
    "Best Practices for",
    "5 Ways to Improve Your",
    "Understanding",
    "Advanced Techniques in",
    "The Business of",
    "Troubleshooting",
)


def idea_score(title: str, description: str, tags: List[str], word_count: int, difficulty: str) -> float:
    """Quality score in [0, 100] rewarding mid-length titles and substantive descriptions."""
    score = 50
    if 40 <= len(title) <= 80:
        score += 10
    if len(description) >= 100:
        score += 10
    if len(tags) >= 3:
        score += 10
    if 1000 <= word_count <= 3000:
        score += 10
    if difficulty == "Intermediate":
        score += 5
    return float(min(100, score))


def _slug(topic: str) -> str:
    return re.sub(r"\s+", "-", topic.lower())


def _word_count(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        return DEFAULT_WORDS
    return int(min(MAX_WORDS, max(MIN_WORDS, value)))


class IdeaStrategy(ArtifactStrategy):
    kind = ArtifactKind.IDEA
    list_keys = ("ideas", "items", "results")

    def normalize(self, item, index, params, is_fallback=False):
        raw = item if isinstance(item, dict) else {"title": item}
        topic = params.topic or params.content_name
        title = truncate(raw.get("title") or f"{topic} - Idea {index + 1}", MAX_TITLE_CHARS).strip()
        if not title:
            return None

        tags = raw.get("tags")
        tags = [str(t) for t in tags][:MAX_TAGS] if isinstance(tags, list) else ["general", "content"]
        difficulty = raw.get("difficulty")
        if difficulty not in DIFFICULTIES:
            difficulty = "Intermediate"
        words = _word_count(pick(raw, "estimated_word_count", "estimatedWordCount"))
        description = truncate(raw.get("description") or "A comprehensive exploration of the topic",
                               MAX_DESCRIPTION_CHARS)

        return ContentIdea(
            id=new_id("idea"),
            title=title,
            angle=truncate(raw.get("angle") or "Unique perspective on the topic", MAX_ANGLE_CHARS),
            description=description,
            tags=tags,
            difficulty=difficulty,
            estimated_word_count=words,
            score=clamp_score(raw.get("score"), idea_score(title, description, tags, words, difficulty)),
            generated_from_topic=topic,
            generation_index=index,
            is_fallback=is_fallback,
        )

    def from_text(self, text, params):
        topic = params.topic or params.content_name
        for pattern in _IDEA_PATTERNS:
            matches = list(pattern.finditer(text))
            if len(matches) < 2:
                continue
            items: List[Dict[str, Any]] = []
            for i, match in enumerate(matches):
                title = _TITLE_PREFIX.sub("", match.group(1).strip()).split("\n")[0][:80].strip()
                if len(title) <= 5:
                    continue
                items.append({
                    "title": title,
                    "angle": f"Creative approach to {topic}",
                    "description": (f"A comprehensive blog post exploring {title.lower()}. This "
                                    "content would provide valuable insights and practical "
                                    f"information for readers interested in {topic}."),
                    "tags": [_slug(topic), "content", "guide"],
                    "difficulty": "Intermediate",
                    "estimated_word_count": 1200 + i * 200,
                })
            if items:
                return self.build(items, params)
        return []

    def fallback(self, params):
        topic = params.topic or params.content_name
        items: List[Dict[str, Any]] = []
        for i, (title, angle, tags) in enumerate(FALLBACK_TEMPLATES[:params.count]):
            items.append({
                "title": title.format(topic=topic),
                "angle": angle,
                "description": (f"An in-depth exploration of {topic}. This post would provide "
                                "valuable insights, practical advice, and actionable information "
                                "for readers looking to understand or improve their knowledge of "
                                f"{topic}."),
                "tags": tags,
                "estimated_word_count": 1200 + i * 300,
                "difficulty": "Intermediate",
                "score": 70,
            })
        while len(items) < params.count:
            items.append(fallback_idea(topic, len(items)))
        return self.build(items, params, is_fallback=True)


def fallback_idea(topic: str, index: int) -> Dict[str, Any]:
    """Raw fields of one template idea built from a rotating approach."""
    approach = APPROACHES[index % len(APPROACHES)]
    return {
        "title": f"{approach} {topic}",
        "angle": f"{approach.lower()} approach with practical insights",
        "description": (f"A detailed exploration of {topic} using a {approach.lower()} "
                        "methodology. This content would provide readers with actionable "
                        "information and valuable insights."),
        "tags": [_slug(topic), "guide", "practical"],
        "difficulty": "Intermediate",
        "estimated_word_count": 1000 + index * 200,
        "score": 65,
    }


register_strategy(IdeaStrategy())
