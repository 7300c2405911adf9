"""Project-match result normalization and model-output cleanup."""

import json
import math
import re
from dataclasses import dataclass
from typing import Any, Iterable

from ..errors import ParseError
from ..logging_config import get_logger

logger = get_logger(__name__)

MATCH_THRESHOLD = 0.7
FALLBACK_DESCRIPTION = "Untitled conversation"

_FENCE_START = re.compile(r"^```(?:json)?\s*")
_FENCE_END = re.compile(r"\s*```$")


@dataclass(frozen=True)
class MatchResult:
    matched_project_id: str | None
    confidence: float

    @property
    def is_match(self) -> bool:
        return self.matched_project_id is not None and self.confidence >= MATCH_THRESHOLD

    def to_dict(self) -> dict[str, Any]:
        return {"matchedProjectId": self.matched_project_id, "confidence": self.confidence}


NO_MATCH = MatchResult(matched_project_id=None, confidence=0.0)


def strip_code_fences(text: str) -> str:
    """Remove a ```json ... ``` wrapper the model sometimes adds."""
    text = text.strip()
    text = _FENCE_START.sub("", text)
    text = _FENCE_END.sub("", text)
    return text.strip()


def clamp_confidence(value: Any) -> float:
    """Clamp to [0, 1] and round to one decimal. Non-numbers count as 0."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    if math.isnan(value):
        return 0.0
    return round(max(0.0, min(1.0, float(value))), 1)


def normalize_match(
    matched_project_id: Any, confidence: Any, project_ids: Iterable[str]
) -> MatchResult:
    """
    Validate a raw match against the projects that were offered.

    An id that is not among project_ids is treated as no match.
    """
    confidence = clamp_confidence(confidence)

    if matched_project_id is None or matched_project_id == "null":
        return MatchResult(matched_project_id=None, confidence=confidence)

    if not isinstance(matched_project_id, str) or matched_project_id not in set(project_ids):
        logger.warning(f"Matched project ID {matched_project_id} not found in projects list")
        return NO_MATCH

    return MatchResult(matched_project_id=matched_project_id, confidence=confidence)


def parse_description(content: str) -> str:
    """
    Extract the description from a model reply.

    The model is asked for {"description": "..."}; a reply that is not valid
    JSON is used as plain text once code fences are removed.
    """
    cleaned = strip_code_fences(content)
    try:
        parsed = json.loads(cleaned)
    except ValueError:
        return cleaned or FALLBACK_DESCRIPTION

    if isinstance(parsed, dict):
        description = parsed.get("description")
        if isinstance(description, str) and description.strip():
            return description.strip()
    return FALLBACK_DESCRIPTION


def parse_match(content: str) -> dict[str, Any]:
    """Parse the model's match JSON; raises ParseError on anything else."""
    try:
        parsed = json.loads(strip_code_fences(content))
    except ValueError as e:
        raise ParseError(f"Failed to parse match response: {e}") from e
    if not isinstance(parsed, dict):
        raise ParseError("Match response is not a JSON object")
    return parsed
