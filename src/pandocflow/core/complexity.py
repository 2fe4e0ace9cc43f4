"""Static complexity assessment of LaTeX-like sources.

The assessor never converts anything: it counts structural features with
regular expressions, weights them and derives a level, a chunking decision
and a processing deadline from the resulting score.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
import logging
import math
import re

from .config import DEFAULT_SETTINGS, PipelineSettings


logger = logging.getLogger(__name__)


class ComplexityLevel(str, Enum):
    """Coarse complexity buckets derived from the weighted score."""

    BASIC = "basic"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    COMPLEX = "complex"
    UNKNOWN = "unknown"


_INDICATORS: dict[str, tuple[tuple[re.Pattern[str], ...], float]] = {
    "equations": ((re.compile(r"\$.*?\$"), re.compile(r"\\\[[\s\S]*?\\\]")), 1.0),
    "display_math": ((re.compile(r"\$\$[\s\S]*?\$\$"),), 2.0),
    "matrices": ((re.compile(r"\\begin\{[^}]*matrix[^}]*\}"),), 5.0),
    "environments": ((re.compile(r"\\begin\{[^}]*\}"),), 2.0),
    "sections": ((re.compile(r"\\section\{"), re.compile(r"\\subsection\{")), 3.0),
    "tables": ((re.compile(r"\\begin\{table[^}]*\}"),), 3.0),
    "figures": ((re.compile(r"\\begin\{figure[^}]*\}"),), 2.0),
    "commands": ((re.compile(r"\\[a-zA-Z]+"),), 0.1),
}


@dataclass(slots=True, frozen=True)
class ComplexityProfile:
    """Result of assessing a document."""

    score: float
    level: ComplexityLevel
    requires_chunking: bool
    indicators: Mapping[str, int] = field(default_factory=dict)
    length: int = 0
    lines: int = 0
    estimated_seconds: float = 0.0
    timeout: float = 0.0

    @property
    def strategy(self) -> str:
        return "chunked" if self.requires_chunking else "standard"

    @property
    def memory_impact(self) -> str:
        if self.score > 50:
            return "high"
        if self.score > 20:
            return "medium"
        return "low"


def count_indicators(text: str) -> dict[str, int]:
    """Return the raw count of every structural indicator in ``text``."""
    return {
        name: sum(len(pattern.findall(text)) for pattern in patterns)
        for name, (patterns, _weight) in _INDICATORS.items()
    }


def score_indicators(indicators: Mapping[str, int], *, length: int, lines: int) -> float:
    """Combine indicator counts and size into a single weighted score."""
    score = sum(
        indicators.get(name, 0) * weight for name, (_patterns, weight) in _INDICATORS.items()
    )
    score += math.floor(length / 1000)
    score += math.floor(lines / 100)
    return round(score, 6)


def classify_level(score: float, settings: PipelineSettings = DEFAULT_SETTINGS) -> ComplexityLevel:
    thresholds = settings.complexity
    if score < thresholds.basic_below:
        return ComplexityLevel.BASIC
    if score < thresholds.intermediate_below:
        return ComplexityLevel.INTERMEDIATE
    if score < thresholds.advanced_below:
        return ComplexityLevel.ADVANCED
    return ComplexityLevel.COMPLEX


def unknown_profile(settings: PipelineSettings = DEFAULT_SETTINGS) -> ComplexityProfile:
    """Return the degraded profile used when a source cannot be assessed."""
    return ComplexityProfile(
        score=0.0,
        level=ComplexityLevel.UNKNOWN,
        requires_chunking=False,
        indicators={name: 0 for name in _INDICATORS},
        timeout=settings.timeouts.document,
    )


def assess_complexity(
    text: object, settings: PipelineSettings = DEFAULT_SETTINGS
) -> ComplexityProfile:
    """Score ``text`` and derive its chunking decision and deadline.

    Empty or non-string input yields the zero-score ``unknown`` profile rather
    than raising.
    """
    if not isinstance(text, str) or not text:
        return unknown_profile(settings)

    try:
        indicators = count_indicators(text)
    except (re.error, RecursionError) as exc:
        logger.warning("Complexity assessment failed: %s", exc)
        return unknown_profile(settings)

    length = len(text)
    lines = text.count("\n") + 1
    score = score_indicators(indicators, length=length, lines=lines)
    thresholds = settings.complexity
    estimated = min(score * thresholds.seconds_per_point, thresholds.max_estimate)
    profile = ComplexityProfile(
        score=score,
        level=classify_level(score, settings),
        requires_chunking=score > thresholds.max_score or length > thresholds.max_length,
        indicators=indicators,
        length=length,
        lines=lines,
        estimated_seconds=estimated,
        timeout=max(estimated, settings.timeouts.document),
    )
    logger.debug(
        "Assessed document: score=%.1f level=%s chunking=%s",
        profile.score,
        profile.level.value,
        profile.requires_chunking,
    )
    return profile


def recommendations(profile: ComplexityProfile) -> list[str]:
    """Return plain-language processing notes for a profile."""
    notes: list[str] = []
    indicators = profile.indicators
    if indicators.get("matrices", 0) > 5:
        notes.append("Matrix-heavy document: matrices are processed in smaller fragments.")
    if indicators.get("sections", 0) > 10:
        notes.append("Many sections: the document is split along section boundaries.")
    if indicators.get("environments", 0) > 20:
        notes.append("Environment-heavy document: conversion may take longer than usual.")
    if profile.score > 100:
        notes.append("Very high complexity: chunked conversion is strongly advised.")
    if profile.length > 50_000:
        notes.append("Very large document: consider splitting it into several files.")
    return notes


__all__ = [
    "ComplexityLevel",
    "ComplexityProfile",
    "assess_complexity",
    "classify_level",
    "count_indicators",
    "recommendations",
    "score_indicators",
    "unknown_profile",
]
