from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

PLACEHOLDER_PATTERNS = [
    re.compile(r"^[A-Z\s]+$"),
    re.compile(r"^[0-9\s]+$"),
    re.compile(r"^[Xx\s]+$"),
    re.compile(r"^n/?a$", re.IGNORECASE),
    re.compile(r"^tbd$", re.IGNORECASE),
    re.compile(r"^please\s+enter", re.IGNORECASE),
    re.compile(r"^enter\s+here", re.IGNORECASE),
]


def is_placeholder(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    return any(p.search(value) for p in PLACEHOLDER_PATTERNS)


def _field_confidence(value: Any, required: bool) -> float:
    if value is None or value == "":
        return 0.0
    score = 1.0
    if isinstance(value, str):
        if not value.strip():
            score *= 0.1
        if len(value) < 2:
            score *= 0.5
        if is_placeholder(value):
            score *= 0.2
    if required and value:
        score *= 1.2
    return min(score, 1.0)


def score_confidence(data: Mapping[str, Any], required: Iterable[str] = ()) -> float:
    """
    Heuristic 0..1 quality score for extracted data: the mean of per-field
    scores, where missing values count 0 and short or placeholder-looking
    strings are penalized.
    """
    if not data:
        return 0.0
    required_set = set(required)
    scores = [_field_confidence(value, name in required_set) for name, value in data.items()]
    return sum(scores) / len(scores)


def confidence_level(confidence: float) -> str:
    if confidence >= 0.9:
        return "high"
    if confidence >= 0.7:
        return "medium"
    if confidence >= 0.5:
        return "low"
    return "very_low"


@dataclass
class ExtractionResult:
    data: dict[str, Any]
    confidence: float = 0.0
    processing_time: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def confidence_level(self) -> str:
        return confidence_level(self.confidence)


@dataclass(frozen=True)
class Outcome:
    """Terminal result of running one task through the retry policy."""

    task_id: str
    success: bool
    attempts_used: int
    result: Any = None
    error: Optional[BaseException] = None

    @property
    def error_message(self) -> Optional[str]:
        if self.error is None:
            return None
        return str(self.error) or type(self.error).__name__
