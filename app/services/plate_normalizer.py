# app/services/plate_normalizer.py
"""
License plate text normalization.

Turns raw OCR output into a canonical plate candidate plus an adjusted
confidence score. Pure and stateless: safe to call from any thread.

Steps:
  1. Canonicalize: drop whitespace and non-alphanumerics, uppercase.
  2. Exact match against the known plate formats (ordered, first wins).
  3. Sliding windows of 6 then 7 characters at each offset, same formats.
  4. A 6-character string with no format match is kept as a low-confidence fallback.
  5. Confidence is raised for format matches and capped when nothing was found.
"""

import math
import re
from dataclasses import dataclass, asdict
from typing import Optional

from app.config import settings

# Colombian plate formats, in priority order
PLATE_PATTERNS = [
    re.compile(r"^[A-Z]{3}[0-9]{3}$"),          # ABC123  cars
    re.compile(r"^[A-Z]{3}[0-9]{2}[A-Z]$"),     # ABC12D  motorcycles
    re.compile(r"^[A-Z]{2}[0-9]{4}$"),          # AB1234  older motorcycles
    re.compile(r"^[0-9]{3}[A-Z]{3}$"),          # 123ABC  reversed
]

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")
WINDOW_LENGTHS = (6, 7)
FALLBACK_LENGTH = 6


@dataclass(frozen=True)
class ConfidencePolicy:
    match_floor: float = 75.0
    fallback_factor: float = 0.8
    fallback_floor: float = 50.0
    no_match_ceiling: float = 40.0

    @classmethod
    def from_settings(cls) -> "ConfidencePolicy":
        return cls(
            match_floor=settings.PLATE_MATCH_CONFIDENCE_FLOOR,
            fallback_factor=settings.PLATE_FALLBACK_CONFIDENCE_FACTOR,
            fallback_floor=settings.PLATE_FALLBACK_CONFIDENCE_FLOOR,
            no_match_ceiling=settings.PLATE_NO_MATCH_CONFIDENCE_CEILING,
        )


@dataclass
class PlateReading:
    success: bool
    plate: Optional[str]
    confidence: int
    pattern_match: bool
    cleaned_text: str
    raw_text: str

    def to_dict(self) -> dict:
        return asdict(self)


def canonicalize_plate(text: Optional[str]) -> str:
    """Uppercase alphanumeric form of ``text`` ('abc-123 ' -> 'ABC123')."""
    if not text:
        return ""
    return _NON_ALNUM.sub("", text).upper()


def matches_plate_format(candidate: str) -> bool:
    return any(pattern.match(candidate) for pattern in PLATE_PATTERNS)


def _windows(cleaned: str):
    """Substrings in offset order, 6 chars before 7 at each offset."""
    for start in range(len(cleaned) - WINDOW_LENGTHS[0] + 1):
        for length in WINDOW_LENGTHS:
            if start + length <= len(cleaned):
                yield cleaned[start:start + length]


def _find_candidate(cleaned: str):
    """Returns (candidate, pattern_match)."""
    if matches_plate_format(cleaned):
        return cleaned, True

    if len(cleaned) >= WINDOW_LENGTHS[0]:
        for window in _windows(cleaned):
            if matches_plate_format(window):
                return window, True

    if len(cleaned) == FALLBACK_LENGTH:
        return cleaned, False

    return None, False


def adjust_confidence(raw_confidence: float, candidate: Optional[str], pattern_match: bool,
                      policy: ConfidencePolicy) -> int:
    if pattern_match:
        adjusted = max(raw_confidence, policy.match_floor)
    elif candidate and len(candidate) >= FALLBACK_LENGTH:
        adjusted = max(raw_confidence * policy.fallback_factor, policy.fallback_floor)
    else:
        adjusted = min(raw_confidence, policy.no_match_ceiling)
    return int(math.floor(adjusted + 0.5))   # halves round up


def normalize(raw_text: Optional[str], raw_confidence: float = 0.0,
              policy: Optional[ConfidencePolicy] = None) -> PlateReading:
    """
    Normalize OCR output into a plate candidate. Never raises:
    an unreadable plate is reported as success=False with diagnostics.
    """
    policy = policy or ConfidencePolicy.from_settings()
    raw_text = raw_text or ""
    try:
        raw_confidence = float(raw_confidence or 0.0)
    except (TypeError, ValueError):
        raw_confidence = 0.0

    cleaned = canonicalize_plate(raw_text)
    candidate, pattern_match = _find_candidate(cleaned)

    return PlateReading(
        success=candidate is not None,
        plate=candidate,
        confidence=adjust_confidence(raw_confidence, candidate, pattern_match, policy),
        pattern_match=pattern_match,
        cleaned_text=cleaned,
        raw_text=raw_text.strip(),
    )
