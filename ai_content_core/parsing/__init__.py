"""
Output parsing for generated content.
"""

from .artifacts import (
    ArtifactKind,
    ContentIdea,
    EnhancementSuggestion,
    ParseOutcome,
    ParseParams,
    ParseState,
    ResearchSummary,
    SocialPost,
    Synopsis,
)
from .pipeline import get_strategy, parse_artifacts
from . import enhancements, ideas, research, social, synopsis  # noqa: F401  (register strategies)
from .enhancements import extract_enhanced_content
from .social import analyze_social_post

__all__ = [
    "ArtifactKind",
    "ContentIdea",
    "EnhancementSuggestion",
    "ParseOutcome",
    "ParseParams",
    "ParseState",
    "ResearchSummary",
    "SocialPost",
    "Synopsis",
    "analyze_social_post",
    "extract_enhanced_content",
    "get_strategy",
    "parse_artifacts",
]
