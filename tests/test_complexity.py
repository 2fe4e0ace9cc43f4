from __future__ import annotations

import pytest

from pandocflow.core.complexity import (
    ComplexityLevel,
    ComplexityProfile,
    assess_complexity,
    classify_level,
    count_indicators,
    recommendations,
)
from pandocflow.core.config import ComplexitySettings, PipelineSettings


@pytest.mark.parametrize("text", ["", None, 42])
def test_unassessable_input_yields_unknown_profile(text: object) -> None:
    profile = assess_complexity(text)

    assert profile.level is ComplexityLevel.UNKNOWN
    assert profile.score == 0
    assert profile.requires_chunking is False
    assert profile.timeout == 10.0
    assert set(profile.indicators) >= {"equations", "matrices", "sections"}


def test_inline_math_scores_one_point() -> None:
    profile = assess_complexity("Hello $x$")

    assert profile.indicators["equations"] == 1
    assert profile.score == 1
    assert profile.level is ComplexityLevel.BASIC
    assert profile.strategy == "standard"


def test_matrix_environment_counts_matrix_environment_and_commands() -> None:
    profile = assess_complexity(r"\begin{pmatrix}a\end{pmatrix}")

    assert profile.indicators["matrices"] == 1
    assert profile.indicators["environments"] == 1
    assert profile.indicators["commands"] == 2
    assert profile.score == pytest.approx(7.2)


def test_long_source_requires_chunking_regardless_of_score() -> None:
    profile = assess_complexity("a" * 10_001)

    assert profile.score == 10
    assert profile.level is ComplexityLevel.INTERMEDIATE
    assert profile.requires_chunking is True
    assert profile.strategy == "chunked"


def test_estimate_is_capped_and_timeout_never_below_document_deadline() -> None:
    heavy = assess_complexity(r"\x " * 2000)
    light = assess_complexity("plain")

    assert heavy.level is ComplexityLevel.COMPLEX
    assert heavy.estimated_seconds == 15.0
    assert heavy.timeout == 15.0
    assert heavy.memory_impact == "high"
    assert light.timeout == 10.0


def test_adding_structure_never_lowers_the_score() -> None:
    base = r"\section{A} text $x$"
    richer = base + r" \begin{table}\end{table} $$y$$"

    assert assess_complexity(richer).score > assess_complexity(base).score


def test_lines_are_counted_from_newlines() -> None:
    profile = assess_complexity("a\nb\nc")

    assert profile.lines == 3
    assert profile.length == 5


def test_display_brackets_count_as_equations() -> None:
    indicators = count_indicators(r"\[ a \] and \[ b \]")

    assert indicators["equations"] == 2


def test_custom_threshold_switches_to_chunking() -> None:
    settings = PipelineSettings(complexity=ComplexitySettings(max_score=1))

    assert assess_complexity(r"$a$ $b$", settings).requires_chunking is True


@pytest.mark.parametrize(
    ("score", "level"),
    [
        (0, ComplexityLevel.BASIC),
        (9.9, ComplexityLevel.BASIC),
        (10, ComplexityLevel.INTERMEDIATE),
        (30, ComplexityLevel.ADVANCED),
        (70, ComplexityLevel.COMPLEX),
    ],
)
def test_level_boundaries(score: float, level: ComplexityLevel) -> None:
    assert classify_level(score) is level


@pytest.mark.parametrize(
    ("score", "impact"),
    [(0, "low"), (20, "low"), (20.5, "medium"), (50, "medium"), (51, "high")],
)
def test_memory_impact_bands(score: float, impact: str) -> None:
    profile = ComplexityProfile(
        score=score, level=classify_level(score), requires_chunking=False
    )

    assert profile.memory_impact == impact


def test_recommendations_flag_matrix_heavy_documents() -> None:
    profile = assess_complexity(r"\begin{bmatrix}1\end{bmatrix}" * 6)

    notes = recommendations(profile)

    assert any("Matrix-heavy" in note for note in notes)
    assert recommendations(assess_complexity("plain")) == []
