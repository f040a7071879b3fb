"""
Research summary parsing.

Condenses search-grounded answers into a summary, key points and sources.
"""

import re
from typing import Any, List

from .artifacts import ArtifactKind, ResearchSummary, clamp_score, new_id, pick, truncate
from .pipeline import ArtifactStrategy, register_strategy

MAX_SUMMARY_CHARS = 2000
MAX_POINT_CHARS = 300
MAX_KEY_POINTS = 10
DEFAULT_CONFIDENCE = 70.0

_BULLET = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+(.+)$", re.MULTILINE)
_URL = re.compile(r"https?://[^\s)\]>\"']+")
_HEADING = re.compile(r"^\s*#+\s*")

FALLBACK_TEMPLATES = (
    ("Research on {topic} could not be summarized automatically. Review primary sources "
     "and recent industry publications to build an overview.",
     ["Identify authoritative sources on {topic}",
      "Collect recent statistics and trends",
      "Note open questions for follow-up research"]),
    ("Key questions about {topic} remain open. Compare expert opinions and case studies "
     "before drawing conclusions.",
     ["What problems does {topic} address?",
      "Who are the main practitioners and vendors?",
      "Which developments are expected next?"]),
)


def _strings(value: Any, limit: int) -> List[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    items = []
    for entry in value:
        if isinstance(entry, dict):
            entry = pick(entry, "url", "text", "title")
        if entry:
            items.append(truncate(entry, MAX_POINT_CHARS).strip())
    return [i for i in items if i][:limit]


class ResearchSummaryStrategy(ArtifactStrategy):
    kind = ArtifactKind.RESEARCH_SUMMARY
    list_keys = ("summaries", "research", "items")

    def normalize(self, item, index, params, is_fallback=False):
        raw = item if isinstance(item, dict) else {"summary": item}
        summary = pick(raw, "summary", "overview", "content")
        if not isinstance(summary, str) or not summary.strip():
            return None
        return ResearchSummary(
            id=new_id("research"),
            topic=str(raw.get("topic") or params.topic or params.content_name),
            summary=truncate(summary.strip(), MAX_SUMMARY_CHARS),
            key_points=_strings(pick(raw, "key_points", "keyPoints", "findings"), MAX_KEY_POINTS),
            sources=_strings(pick(raw, "sources", "citations"), MAX_KEY_POINTS),
            confidence=clamp_score(raw.get("confidence"), DEFAULT_CONFIDENCE),
            is_fallback=is_fallback,
        )

    def from_text(self, text, params):
        paragraphs = [_HEADING.sub("", p).strip() for p in re.split(r"\n\s*\n", text)]
        paragraphs = [p for p in paragraphs if p and not _BULLET.match(p)]
        if not paragraphs:
            return []
        item = {
            "summary": paragraphs[0],
            "key_points": [m.group(1).strip() for m in _BULLET.finditer(text)],
            "sources": list(dict.fromkeys(_URL.findall(text))),
        }
        return self.build([item], params)

    def fallback(self, params):
        topic = params.topic or params.content_name
        items = []
        for summary, points in FALLBACK_TEMPLATES[:params.minimum]:
            items.append({
                "summary": summary.format(topic=topic),
                "key_points": [p.format(topic=topic) for p in points],
                "confidence": 0,
            })
        return self.build(items, params, is_fallback=True)


register_strategy(ResearchSummaryStrategy())
