"""Auto-categorization module."""

from .matching import (
    FALLBACK_DESCRIPTION,
    MATCH_THRESHOLD,
    NO_MATCH,
    MatchResult,
    clamp_confidence,
    normalize_match,
    parse_description,
    parse_match,
    strip_code_fences,
)
from .pipeline import CategorizationPipeline, ICategorizationPipeline

__all__ = [
    "CategorizationPipeline",
    "ICategorizationPipeline",
    "FALLBACK_DESCRIPTION",
    "MATCH_THRESHOLD",
    "NO_MATCH",
    "MatchResult",
    "clamp_confidence",
    "normalize_match",
    "parse_description",
    "parse_match",
    "strip_code_fences",
]
