"""
Social post parsing.

Turns model output into platform-ready posts: content sanitised and cut to
the platform limit, hashtags cleaned and capped, Twitter threads kept.
"""

import re
from typing import Any, Dict, List

from .artifacts import (
    PLATFORMS,
    ArtifactKind,
    PlatformConfig,
    SocialPost,
    ThreadTweet,
    new_id,
)
from .pipeline import ArtifactStrategy, register_strategy

TWEET_LIMIT = 280
DEFAULT_CTA = "What do you think?"
MIN_POST_CHARS = 20
MIN_LINE_CHARS = 50

_DISALLOWED = re.compile(
    "[^\\w\\s.,!?@#$%^&*()\\-=+\\[\\]{}|\\\\:;\"'<>~`/"
    "\U0001F300-\U0001F6FF\U0001F700-\U0001F77F\U0001F780-\U0001F7FF"
    "\U0001F800-\U0001F8FF☀-⛿✀-➿]"
)
_NON_WORD = re.compile(r"[^\w]")
_HOOK_SPLIT = re.compile(r"[.!?]")
_POST_PATTERNS = (
    re.compile(r"^\s*\d+[.)]\s*(.*?)(?=^\s*\d+[.)]|\Z)", re.MULTILINE | re.DOTALL),
    re.compile(r"^\s*(?:Post|Variation)\s+\d+:\s*(.*?)(?=^\s*(?:Post|Variation)\s+\d+:|\Z)",
               re.MULTILINE | re.DOTALL | re.IGNORECASE),
    re.compile(r"^(.{%d,})$" % MIN_LINE_CHARS, re.MULTILINE),
)

DEFAULT_HASHTAGS: Dict[str, List[str]] = {
    "twitter": ["#blog", "#content", "#insights"],
    "linkedin": ["#ProfessionalDevelopment", "#Industry", "#Insights"],
    "facebook": ["#blog", "#newpost", "#insights"],
    "instagram": ["#blog", "#content", "#insights", "#tips", "#knowledge", "#learning",
                  "#growth", "#inspiration", "#community", "#share"],
}

FALLBACK_TEMPLATES: Dict[str, List[Dict[str, Any]]] = {
    "twitter": [
        {
            "content": "Just published: {title}\n\n{synopsis}\n\nWhat are your thoughts? 🧵",
            "hook": "Just published:",
            "cta": "What are your thoughts?",
            "hashtags": ["content", "blog", "thoughts"],
        },
        {
            "content": "📝 New blog post is live!\n\n{title}\n\n{synopsis}\n\nCheck it out! 👇",
            "hook": "📝 New blog post is live!",
            "cta": "Check it out!",
            "hashtags": ["newpost", "blog", "content"],
        },
    ],
    "linkedin": [
        {
            "content": "I just published a new article: {title}\n\n{synopsis}\n\nThis piece explores "
                       "key insights that I believe will be valuable for professionals in our "
                       "industry.\n\nWhat's your experience with this topic? I'd love to hear your "
                       "thoughts in the comments.\n\n#ProfessionalDevelopment #Industry #Insights",
            "hook": "I just published a new article:",
            "cta": "What's your experience with this topic?",
            "hashtags": ["ProfessionalDevelopment", "Industry", "Insights"],
        },
    ],
    "facebook": [
        {
            "content": "🎉 New blog post is here!\n\n{title}\n\n{synopsis}\n\nI'm excited to share "
                       "these insights with you. Have you experienced something similar? Let me "
                       "know in the comments!",
            "hook": "🎉 New blog post is here!",
            "cta": "Have you experienced something similar?",
            "hashtags": ["blog", "newpost", "insights"],
        },
    ],
    "instagram": [
        {
            "content": "✨ New blog post alert! ✨\n\n{title}\n\n{synopsis}\n\nSwipe to see key "
                       "takeaways! 👆 Link in bio for the full read.\n\n#blog #content #insights "
                       "#tips #knowledge #learning #growth #inspiration #community #share",
            "hook": "✨ New blog post alert! ✨",
            "cta": "Link in bio for the full read",
            "hashtags": ["blog", "content", "insights", "tips", "knowledge", "learning",
                         "growth", "inspiration", "community", "share"],
        },
    ],
}

GENERIC_TEMPLATE = {
    "content": "New content: {title}\n\n{synopsis}",
    "hook": "New content:",
    "cta": "Check it out!",
    "hashtags": ["content", "new"],
}


def sanitize_content(content: Any, max_length: int) -> str:
    """Drop unsupported characters and cut to ``max_length`` with an ellipsis."""
    if not content:
        return ""
    sanitized = _DISALLOWED.sub("", str(content)).strip()
    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length - 3] + "..."
    return sanitized


def clean_hashtags(hashtags: Any, limit: int) -> List[str]:
    """Normalise hashtags to ``#word`` form, dropping empties, capped at ``limit``."""
    if isinstance(hashtags, str):
        hashtags = hashtags.split()
    if not isinstance(hashtags, list):
        return []
    cleaned = []
    for tag in hashtags:
        tag = _NON_WORD.sub("", str(tag).lstrip("#"))
        if tag:
            cleaned.append(f"#{tag}")
    return cleaned[:limit]


def extract_hook(content: str) -> str:
    """First sentence of a post, shortened to 50 characters."""
    if not content:
        return ""
    first = _HOOK_SPLIT.split(content, maxsplit=1)[0]
    return first[:50] + "..." if len(first) > 50 else first


def _thread(value: Any, post_id: str) -> List[ThreadTweet]:
    if not isinstance(value, list):
        return []
    tweets = []
    for i, tweet in enumerate(value):
        text = tweet.get("content", "") if isinstance(tweet, dict) else str(tweet or "")
        tweets.append(ThreadTweet(
            id=f"{post_id}_thread_{i}",
            content=sanitize_content(text, TWEET_LIMIT),
            character_count=len(text),
            is_within_limits=len(text) <= TWEET_LIMIT,
        ))
    return tweets


class SocialPostStrategy(ArtifactStrategy):
    kind = ArtifactKind.SOCIAL_POST
    list_keys = ("posts", "social_posts", "socialPosts", "items")

    def normalize(self, item, index, params, is_fallback=False):
        raw = item if isinstance(item, dict) else {"content": item}
        config: PlatformConfig = params.platform_config
        original = str(raw.get("content") or "")
        content = sanitize_content(original, config.max_length)
        if not content:
            return None

        post_id = new_id(f"{params.platform}_post")
        thread = _thread(raw.get("thread"), post_id) if config.thread_support else []
        hashtags = clean_hashtags(raw.get("hashtags") or [], config.hashtag_limit)

        return SocialPost(
            id=post_id,
            platform=params.platform,
            content=content,
            hashtags=hashtags,
            character_count=len(original),
            hook=str(raw.get("hook") or extract_hook(original)),
            cta=str(raw.get("cta") or DEFAULT_CTA),
            variation=str(raw.get("variation") or f"Variation {index + 1}"),
            is_within_limits=len(original) <= config.max_length,
            thread=thread,
            is_fallback=is_fallback,
        )

    def from_text(self, text, params):
        for pattern in _POST_PATTERNS:
            matches = [m.group(1).strip() for m in pattern.finditer(text)]
            if len(matches) < 2:
                continue
            items = [
                {"content": body, "hashtags": DEFAULT_HASHTAGS.get(params.platform, ["#content"])}
                for body in matches if len(body) > MIN_POST_CHARS
            ]
            if items:
                return self.build(items, params)
        return []

    def fallback(self, params):
        title = params.title or params.topic or "Blog Content"
        synopsis = params.synopsis or "Great content to share"
        templates = list(FALLBACK_TEMPLATES.get(params.platform, []))
        while len(templates) < params.minimum:
            templates.append(GENERIC_TEMPLATE)

        items = []
        for i, template in enumerate(templates):
            item = dict(template)
            item["content"] = template["content"].format(title=title, synopsis=synopsis)
            item["variation"] = f"Fallback {i + 1}"
            items.append(item)
        return self.build(items, params, is_fallback=True)


def analyze_social_post(post: SocialPost) -> Dict[str, Any]:
    """Score a post's engagement potential and list strengths and suggestions.

    Args:
        post: Parsed social post

    Returns:
        Dict with ``score``, ``strengths``, ``suggestions`` and ``hashtag_analysis``
    """
    config = PLATFORMS[post.platform]

    score = 50
    if post.hook and len(post.hook) > 10:
        score += 15
    if post.cta and "?" in post.cta:
        score += 10
    if len(post.hashtags) >= 3:
        score += 10
    if config.optimal_length:
        low, high = config.optimal_length
        if low <= post.character_count <= high:
            score += 15

    strengths = []
    if post.hook:
        strengths.append("Strong opening hook")
    if post.hashtags:
        strengths.append("Good hashtag usage")
    if post.cta:
        strengths.append("Clear call-to-action")
    if post.is_within_limits:
        strengths.append("Within character limits")

    suggestions = []
    if not post.hook or len(post.hook) < 10:
        suggestions.append("Add a stronger opening hook")
    if not post.cta or "?" not in post.cta:
        suggestions.append("Include an engaging question or call-to-action")
    if len(post.hashtags) < 3:
        suggestions.append("Use more relevant hashtags for better reach")
    if not post.is_within_limits:
        suggestions.append("Reduce content length to fit platform limits")

    return {
        "score": min(100, score),
        "strengths": strengths,
        "suggestions": suggestions,
        "hashtag_analysis": {
            "count": len(post.hashtags),
            "within_limit": len(post.hashtags) <= config.hashtag_limit,
            "suggestions": (["Add more relevant hashtags"]
                            if len(post.hashtags) < config.hashtag_limit
                            else ["Good hashtag usage"]),
        },
    }


register_strategy(SocialPostStrategy())
