from __future__ import annotations

import pytest

from pandocflow.core import chunking
from pandocflow.core.chunking import (
    ChunkKind,
    balance_math_environments,
    clean_preamble,
    snap_boundary,
    split_document,
    split_windows,
    strip_title_metadata,
)
from pandocflow.core.config import ChunkSettings, PipelineSettings
from pandocflow.core.documents import MINIMAL_PREAMBLE, Document


def test_sections_with_introduction_yield_four_chunks(three_sections: str) -> None:
    chunks = split_document(three_sections)

    assert [chunk.kind for chunk in chunks] == [
        ChunkKind.INTRODUCTION,
        ChunkKind.SECTION,
        ChunkKind.SECTION,
        ChunkKind.SECTION,
    ]
    assert [chunk.title for chunk in chunks] == ["Introduction", "One", "Two", "Three"]
    assert [chunk.number for chunk in chunks] == [1, 2, 3, 4]
    body = Document.from_source(three_sections).body
    assert "".join(chunk.raw_content for chunk in chunks) == body


def test_title_metadata_only_kept_in_first_chunk(three_sections: str) -> None:
    first, *rest = split_document(three_sections)

    assert "\\title{Paper}" in first.wrapped_content
    assert "\\maketitle" in first.wrapped_content
    for chunk in rest:
        assert "\\title" not in chunk.wrapped_content
        assert "\\author" not in chunk.wrapped_content
        assert "\\maketitle" not in chunk.wrapped_content


def test_every_chunk_is_a_complete_document(three_sections: str) -> None:
    for chunk in split_document(three_sections):
        wrapped = chunk.wrapped_content
        assert wrapped.startswith("\\documentclass{article}")
        assert wrapped.count("\\begin{document}") == 1
        assert wrapped.count("\\end{document}") == 1
        assert "\\usepackage{amsmath}" in wrapped


def test_blank_introduction_is_carried_into_first_section() -> None:
    source = "\\begin{document}\n\\section{A}\nx\n\\section{B}\ny\n\\end{document}"

    chunks = split_document(source)

    assert [chunk.title for chunk in chunks] == ["A", "B"]
    assert chunks[0].raw_content.startswith("\n\\section{A}")
    assert "".join(chunk.raw_content for chunk in chunks) == Document.from_source(source).body


def test_subsections_used_when_no_sections() -> None:
    source = "\\subsection{First}\na\n\\subsection*{Second}\nb\n"

    chunks = split_document(source)

    assert [chunk.kind for chunk in chunks] == [ChunkKind.SUBSECTION, ChunkKind.SUBSECTION]
    assert chunks[0].wrapped_content.startswith(MINIMAL_PREAMBLE)


def test_long_titles_are_truncated_and_empty_titles_named() -> None:
    source = "\\section{" + "T" * 60 + "}\nx\n\\section{}\ny\n"

    chunks = split_document(source)

    assert chunks[0].title == "T" * 50 + "..."
    assert chunks[1].title == "Untitled"


def test_unstructured_body_is_windowed_on_paragraph_breaks() -> None:
    text = ("p" * 48 + "\n\n") * 5
    settings = PipelineSettings(chunking=ChunkSettings(max_size=100, snap_window=20))

    chunks = split_document(text, settings)

    assert [len(chunk.raw_content) for chunk in chunks] == [100, 100, 50]
    assert [chunk.title for chunk in chunks] == ["Part 1", "Part 2", "Part 3"]
    assert all(chunk.kind is ChunkKind.FRAGMENT for chunk in chunks)


def test_windows_without_breaks_use_hard_cuts() -> None:
    windows = split_windows("x" * 250, ChunkSettings(max_size=100, snap_window=20))

    assert [len(window) for window in windows] == [100, 100, 50]


def test_snap_prefers_nearby_paragraph_break_then_line_break() -> None:
    paragraph = "a" * 88 + "\n\n" + "b" * 200
    line = "a" * 50 + "\n" + "b" * 200

    assert snap_boundary(paragraph, 0, 100, 20) == 90
    assert snap_boundary(line, 0, 100, 20) == 51
    assert snap_boundary("c" * 300, 0, 100, 20) == 100


def test_orphaned_math_markers_are_removed() -> None:
    content = "a \\end{align} b \\begin{equation} c \\begin{gather}d\\end{gather}"

    assert balance_math_environments(content) == "a  b  c \\begin{gather}d\\end{gather}"


def test_commented_math_markers_are_ignored() -> None:
    content = "% \\end{align}\ntext"

    assert balance_math_environments(content) == content


def test_strip_title_metadata_handles_nested_braces() -> None:
    text = "\\title{A {nested} title}\n\\author[short]{B}\n\\date{\\today}\n\\maketitle\nBody"

    assert strip_title_metadata(text) == "Body"


def test_clean_preamble_adds_document_class_and_amsmath() -> None:
    preamble = clean_preamble("\\usepackage{graphicx}\n", keep_metadata=True)

    assert preamble.startswith("\\documentclass{article}\n")
    assert preamble.endswith("\\usepackage{amsmath,amssymb,amsthm}\n")


def test_failed_planning_falls_back_to_single_chunk(monkeypatch: pytest.MonkeyPatch) -> None:
    def _broken(body: str, settings: ChunkSettings) -> list:
        raise RuntimeError("planner failure")

    monkeypatch.setattr(chunking, "plan_body", _broken)
    source = "\\documentclass{report}\n\\begin{document}\nHello\n\\end{document}\n"

    chunks = split_document(source)

    assert len(chunks) == 1
    chunk = chunks[0]
    assert chunk.kind is ChunkKind.FALLBACK
    assert chunk.raw_content == source
    assert chunk.wrapped_content.startswith(MINIMAL_PREAMBLE)
    assert "report" not in chunk.wrapped_content
    assert "Hello" in chunk.wrapped_content
