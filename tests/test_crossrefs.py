from __future__ import annotations

import pytest

from pandocflow.core.crossrefs import (
    CrossReferencePreprocessor,
    CrossReferenceRegistry,
    LabelType,
    ReferenceKind,
    anchor_marker,
    infer_label_type,
)


def _build(source: str) -> CrossReferenceRegistry:
    return CrossReferenceRegistry().build(source)


def test_section_anchor_injected_and_equation_numbered() -> None:
    source = (
        r"\section{A}\label{sec:a}Some text."
        r"\begin{equation}\label{eq:a}E=mc^2\end{equation}"
    )
    preprocessor = CrossReferencePreprocessor()

    result = preprocessor.preprocess(source)

    assert result.success is True
    assert result.source.count(r"\hypertarget") == 1
    assert r"\label{sec:a}\hypertarget{sec:a}{}" in result.source
    assert r"\hypertarget{eq:a}" not in result.source
    labels = preprocessor.registry.labels
    assert labels["sec:a"].type is LabelType.SECTION
    assert labels["sec:a"].injected is True
    assert labels["eq:a"].type is LabelType.EQUATION
    assert labels["eq:a"].equation_number == 1
    assert result.statistics.anchors_injected == 1
    assert result.statistics.equation_labels_with_numbers == 1


def test_rewritten_source_only_adds_anchors() -> None:
    source = r"\begin{theorem}\label{thm:x}Claim\end{theorem} see \ref{thm:x}"

    result = CrossReferencePreprocessor().preprocess(source)

    assert result.source.replace(anchor_marker("thm:x"), "") == source


def test_align_rows_are_numbered_and_trailing_break_ignored() -> None:
    source = (
        "\\begin{align}\n"
        "a &= b \\label{eq:one} \\\\\n"
        "c &= d \\label{eq:two} \\\\\n"
        "e &= f \\label{eq:three} \\\\\n"
        "\\end{align}\n"
        "\\begin{equation}\\label{eq:four}x\\end{equation}\n"
    )

    registry = _build(source)

    numbers = {name: label.equation_number for name, label in registry.labels.items()}
    assert numbers == {"eq:one": 1, "eq:two": 2, "eq:three": 3, "eq:four": 4}


def test_unlabelled_rows_still_advance_the_counter() -> None:
    source = (
        "\\begin{gather}\na \\\\\nb \\label{eq:b}\n\\end{gather}\n"
        "\\begin{equation}c\\end{equation}\n"
        "\\begin{equation}\\label{eq:d}d\\end{equation}"
    )

    registry = _build(source)

    assert registry.labels["eq:b"].equation_number == 2
    assert registry.labels["eq:d"].equation_number == 4


def test_starred_environment_label_is_equation_without_number() -> None:
    registry = _build(r"\begin{equation*}x\label{eq:s}\end{equation*}")

    label = registry.labels["eq:s"]
    assert label.type is LabelType.EQUATION
    assert label.equation_number is None


def test_split_inside_equation_shares_one_number() -> None:
    source = r"\begin{equation}\begin{split}a \\ b\end{split}\label{eq:sp}\end{equation}"

    registry = _build(source)

    assert registry.labels["eq:sp"].equation_number == 1


def test_display_brackets_make_equation_labels() -> None:
    registry = _build(r"Text \[ x \label{eq:d} \] more")

    assert registry.labels["eq:d"].type is LabelType.EQUATION
    assert registry.labels["eq:d"].equation_number is None


def test_double_dollar_display_math_labels_get_no_anchor() -> None:
    preprocessor = CrossReferencePreprocessor()

    result = preprocessor.preprocess(
        r"$$E=mc^2 \label{eq:b}$$ see \eqref{eq:b}. \section{After}\label{sec:after}"
    )

    labels = preprocessor.registry.labels
    assert labels["eq:b"].type is LabelType.EQUATION
    assert labels["eq:b"].injected is False
    assert r"\hypertarget{eq:b}" not in result.source
    assert labels["sec:after"].type is LabelType.SECTION
    assert r"\label{sec:after}\hypertarget{sec:after}{}" in result.source


def test_escaped_dollars_do_not_open_display_math() -> None:
    registry = _build(r"Costs \$$5 in \section{Price}\label{sec:price}")

    assert registry.labels["sec:price"].type is LabelType.SECTION


@pytest.mark.parametrize(
    ("source", "expected"),
    [
        (r"\begin{theorem}\label{t}Claim\end{theorem}", LabelType.THEOREM),
        (r"\begin{lemma}Claim\label{t}\end{lemma}", LabelType.THEOREM),
        (r"\begin{figure}\caption{c}\label{t}\end{figure}", LabelType.FIGURE),
        (r"\begin{table*}\caption{c}\label{t}\end{table*}", LabelType.TABLE),
        (r"\subsection{S}\label{t}", LabelType.SECTION),
        (r"Some text \label{t}", LabelType.GENERIC),
        (r"\begin{theorem}x\end{theorem} after \label{t}", LabelType.GENERIC),
        (r"\begin{theorem}a\\[2pt]b\label{t}\end{theorem}", LabelType.THEOREM),
    ],
)
def test_label_type_inference(source: str, expected: LabelType) -> None:
    assert _build(source).labels["t"].type is expected


def test_context_outside_window_is_ignored() -> None:
    source = r"\begin{figure}" + "x" * 300 + r"\label{far}"

    assert infer_label_type(source, source.index(r"\label")) is LabelType.GENERIC


def test_duplicate_labels_keep_first_occurrence() -> None:
    source = r"\section{A}\label{dup} text \section{B}\label{dup}"
    preprocessor = CrossReferencePreprocessor()

    result = preprocessor.preprocess(source)

    assert result.source.count(anchor_marker("dup")) == 1
    assert result.statistics.duplicate_labels == ["dup"]
    assert preprocessor.registry.labels["dup"].position == source.index(r"\label")


def test_references_are_recorded_and_orphans_reported() -> None:
    source = r"\label{a} \ref{a} \eqref{b} \pageref{a} \ref{b}"

    registry = _build(source)

    kinds = [reference.kind for reference in registry.references]
    assert kinds == [
        ReferenceKind.REF,
        ReferenceKind.EQREF,
        ReferenceKind.PAGEREF,
        ReferenceKind.REF,
    ]
    assert registry.orphaned == ["b"]
    assert registry.status()["references"] == 4


def test_registry_is_rebuilt_from_scratch() -> None:
    registry = CrossReferenceRegistry()
    registry.build(r"\label{old} \ref{gone}")

    registry.build(r"\label{new}")

    assert list(registry.labels) == ["new"]
    assert registry.references == []
    assert registry.orphaned == []


def test_registry_status_groups_labels_by_type() -> None:
    registry = _build(r"\section{A}\label{s} \begin{equation}\label{e}x\end{equation}")

    status = registry.status()

    assert status["labels"] == 2
    assert status["by_type"] == {"section": 1, "equation": 1}
    assert [label.name for label in registry.equation_labels()] == ["e"]


def test_preprocess_failure_returns_original_source(
    monkeypatch: pytest.MonkeyPatch, emitter
) -> None:
    registry = CrossReferenceRegistry()

    def _explode(source: str) -> CrossReferenceRegistry:
        raise ValueError("scanner broke")

    monkeypatch.setattr(registry, "build", _explode)
    preprocessor = CrossReferencePreprocessor(registry, emitter=emitter)

    result = preprocessor.preprocess(r"\label{x}")

    assert result.success is False
    assert result.source == r"\label{x}"
    assert result.error == "scanner broke"
    assert emitter.warnings


def test_successful_preprocess_records_statistics_event(emitter) -> None:
    CrossReferencePreprocessor(emitter=emitter).preprocess(r"\section{A}\label{a}")

    payloads = emitter.named("crossrefs")
    assert payloads and payloads[0]["anchors_injected"] == 1
