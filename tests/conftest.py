from __future__ import annotations

from collections.abc import Callable, Mapping
import re
from typing import Any

import pytest

from pandocflow.core.config import (
    ComplexitySettings,
    PipelineSettings,
    TimeoutSettings,
    WatchdogSettings,
)


_SECTION_TITLE = re.compile(r"\\section\*?\{([^}]*)\}")


class ScriptedEngine:
    """Engine returning canned HTML or raising scripted faults in call order."""

    def __init__(
        self,
        responses: list[Any] | None = None,
        default: Callable[[str, str], str] | str | None = None,
    ) -> None:
        self.calls: list[tuple[str, str]] = []
        self._responses = list(responses or [])
        self._default = default if default is not None else section_echo

    def __call__(self, arguments: str, source: str) -> str:
        self.calls.append((arguments, source))
        response = self._responses.pop(0) if self._responses else self._default
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            return response(arguments, source)
        return response


def section_echo(arguments: str, source: str) -> str:
    """Render each section title of ``source`` as a heading, or a paragraph otherwise."""
    titles = _SECTION_TITLE.findall(source)
    if not titles:
        return "<p>converted</p>"
    return "\n".join(f"<h1>{title}</h1><p>{title} body</p>" for title in titles)


@pytest.fixture
def fast_settings() -> PipelineSettings:
    return PipelineSettings(
        timeouts=TimeoutSettings(document=2.0, chunk=2.0, simplified=2.0, chunk_delay=0),
        watchdog=WatchdogSettings(start_delay=0, interval=0.05, annotation_recheck=0.05),
    )


@pytest.fixture
def chunking_settings(fast_settings: PipelineSettings) -> PipelineSettings:
    return fast_settings.model_copy(update={"complexity": ComplexitySettings(max_score=5)})


THREE_SECTIONS = r"""\documentclass{article}
\usepackage{amsmath}
\title{Paper}
\author{Ada}
\date{2024}
\begin{document}
\maketitle
Intro text.
\section{One}
First.
\section{Two}
Second $x$.
\section{Three}
Third.
\end{document}
"""


@pytest.fixture
def three_sections() -> str:
    return THREE_SECTIONS


class RecordingEmitter:
    debug_enabled = False

    def __init__(self) -> None:
        self.warnings: list[tuple[str, BaseException | None]] = []
        self.errors: list[tuple[str, BaseException | None]] = []
        self.events: list[tuple[str, dict[str, object]]] = []

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        self.warnings.append((message, exc))

    def error(self, message: str, exc: BaseException | None = None) -> None:
        self.errors.append((message, exc))

    def event(self, name: str, payload: Mapping[str, object]) -> None:
        self.events.append((name, dict(payload)))

    def named(self, name: str) -> list[dict[str, object]]:
        return [payload for event, payload in self.events if event == name]


@pytest.fixture
def emitter() -> RecordingEmitter:
    return RecordingEmitter()


@pytest.fixture
def make_engine() -> type[ScriptedEngine]:
    return ScriptedEngine
