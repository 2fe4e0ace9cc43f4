from __future__ import annotations

from threading import Event
from types import SimpleNamespace

import pytest

from pandocflow.adapters.engine import (
    AbandonedCalls,
    ConversionEngine,
    PandocEngine,
    remove_argument,
    run_with_deadline,
)
from pandocflow.adapters.engine import pandoc as pandoc_module
from pandocflow.core.exceptions import EngineFault, EngineTimeoutError, EngineUnavailableError
from pandocflow.core.failures import FailureKind, classify_failure


def _completed(returncode: int = 0, stdout: str = "", stderr: str = "") -> SimpleNamespace:
    return SimpleNamespace(returncode=returncode, stdout=stdout, stderr=stderr)


def test_pandoc_engine_passes_source_on_stdin(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, object] = {}

    def fake_run(command, **kwargs):
        captured["command"] = command
        captured.update(kwargs)
        return _completed(stdout="<p>ok</p>")

    monkeypatch.setattr(pandoc_module.subprocess, "run", fake_run)
    engine = PandocEngine("pandoc-bin")

    html = engine("--from latex --to html5", r"\emph{x}")

    assert html == "<p>ok</p>"
    assert captured["command"] == ["pandoc-bin", "--from", "latex", "--to", "html5"]
    assert captured["input"] == r"\emph{x}"
    assert captured["check"] is False
    assert isinstance(engine, ConversionEngine)


def test_missing_executable_is_reported_as_unavailable(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_run(command, **kwargs):
        raise FileNotFoundError(command[0])

    monkeypatch.setattr(pandoc_module.subprocess, "run", fake_run)

    with pytest.raises(EngineUnavailableError, match="could not be located"):
        PandocEngine("missing-pandoc")("", "x")


def test_non_zero_exit_carries_stderr(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        pandoc_module.subprocess,
        "run",
        lambda command, **kwargs: _completed(returncode=64, stderr="Error at line 2: unexpected }"),
    )

    with pytest.raises(EngineFault) as excinfo:
        PandocEngine()("", "x")

    assert "status 64" in str(excinfo.value)
    assert classify_failure(excinfo.value) is FailureKind.SYNTAX


def test_signal_termination_is_classified_as_trap(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        pandoc_module.subprocess, "run", lambda command, **kwargs: _completed(returncode=-11)
    )

    with pytest.raises(EngineFault) as excinfo:
        PandocEngine()("", "x")

    assert classify_failure(excinfo.value) is FailureKind.ENGINE_TRAP


def test_available_uses_path_lookup(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(pandoc_module.shutil, "which", lambda name: None)

    assert PandocEngine("nowhere").available() is False


def test_remove_argument_drops_every_occurrence() -> None:
    arguments = "--from latex --number-sections --to html5 --number-sections"

    assert remove_argument(arguments, "--number-sections") == "--from latex --to html5"


def test_deadline_returns_result_and_propagates_errors() -> None:
    assert run_with_deadline(lambda: 42, 1.0) == 42

    def failing() -> str:
        raise EngineFault("boom")

    with pytest.raises(EngineFault, match="boom"):
        run_with_deadline(failing, 1.0)


def test_deadline_abandons_slow_calls() -> None:
    release = Event()
    abandoned = AbandonedCalls()

    with pytest.raises(EngineTimeoutError) as excinfo:
        run_with_deadline(lambda: release.wait(5), 0.05, abandoned=abandoned)

    assert excinfo.value.timeout == 0.05
    assert len(abandoned) == 1
    release.set()
    for thread in list(abandoned._threads):  # noqa: SLF001
        thread.join(1.0)
    assert abandoned.prune() == 1
    assert len(abandoned) == 0
