from __future__ import annotations

import logging

import pytest

from pandocflow.core.conversion.debug import (
    ConversionError,
    describe_pipeline_error,
    persist_debug_artifacts,
    raise_conversion_error,
)
from pandocflow.core.diagnostics import LoggingEmitter, NullEmitter, format_event_message
from pandocflow.core.exceptions import EngineFault, EngineUnavailableError
from pandocflow.core.failures import FailureKind
from pandocflow.ui.cli.diagnostics import CliEmitter, CliStatus
from pandocflow.ui.cli.state import emit_error, set_cli_state


def _raise_unavailable() -> None:
    raise EngineUnavailableError("Pandoc executable 'pandoc' could not be located.")


def _raise_nested_engine_fault() -> None:
    try:
        _raise_unavailable()
    except EngineUnavailableError as exc:
        raise EngineFault("engine failed") from exc


def test_null_emitter_is_noop(caplog: pytest.LogCaptureFixture) -> None:
    emitter = NullEmitter()
    with caplog.at_level(logging.WARNING):
        emitter.warning("nothing to see")
        emitter.error("still quiet")
    assert not caplog.records
    emitter.event("ignored", {"value": 1})
    assert emitter.debug_enabled is False


def test_logging_emitter_logs_messages(caplog: pytest.LogCaptureFixture) -> None:
    emitter = LoggingEmitter(debug_enabled=True)
    with caplog.at_level(logging.INFO):
        emitter.error("boom")
        emitter.event("cleanup", {"tier": "safe", "removed": 3, "reason": "manual"})
    messages = [record.getMessage() for record in caplog.records]
    assert "boom" in messages
    assert "Cleanup safe: removed 3 element(s) [manual]" in messages
    assert emitter.debug_enabled is True


def test_event_messages_are_formatted() -> None:
    attempt = format_event_message(
        "conversion_attempt",
        {"strategy": "chunked", "outcome": "failure", "chunk": 1, "failure": "memory"},
    )
    fallback = format_event_message(
        "fallback", {"from": "standard", "to": "chunked", "reason": "memory"}
    )

    assert attempt == "Conversion attempt [chunked] chunk 2: failure (memory)"
    assert fallback == "Falling back from standard to chunked after memory"
    assert format_event_message("unknown", {}) is None


def test_cli_emitter_bridges_state(capsys: pytest.CaptureFixture[str]) -> None:
    state = set_cli_state(verbosity=1, debug=False)
    emitter = CliEmitter(state=state)

    emitter.warning("Heads up", exc=None)
    emitter.error("Boom", exc=None)
    emitter.event("fallback", {"from": "standard", "to": "chunked", "reason": "memory"})
    emitter.event("cleanup", {"tier": "safe", "removed": 2, "reason": "manual"})

    captured = capsys.readouterr()
    combined_output = f"{captured.out}\n{captured.err}"
    assert "Heads up" in combined_output
    assert "Boom" in combined_output
    activity = state.take_activity()
    assert activity.fallbacks == ["standard -> chunked (memory)"]
    assert (activity.cleanups, activity.removed) == (1, 2)
    assert state.activity.fallbacks == []


def test_cli_status_is_quiet_by_default(capsys: pytest.CaptureFixture[str]) -> None:
    state = set_cli_state(verbosity=0, debug=False)
    status = CliStatus(state)

    status.loading("Converting document", 40)
    status.ready("Document converted")
    status.error("Conversion failed")

    captured = capsys.readouterr()
    assert "Converting document" not in captured.err
    assert state.take_activity().status_errors == ["Conversion failed"]


def test_logged_conversion_errors_are_not_repeated(capsys: pytest.CaptureFixture[str]) -> None:
    set_cli_state(verbosity=0, debug=False)
    emitter = CliEmitter()

    with pytest.raises(ConversionError) as excinfo:
        raise_conversion_error(emitter, "Conversion failed: engine missing", RuntimeError("x"))
    first = capsys.readouterr().err
    emit_error(str(excinfo.value), exception=excinfo.value)

    assert "engine missing" in first
    assert capsys.readouterr().err == ""


def test_describe_pipeline_error_reports_root_cause() -> None:
    try:
        _raise_nested_engine_fault()
    except EngineFault as error:
        message = describe_pipeline_error(error)
    assert "could not be located" in message
    assert "--debug" in message


def test_debug_artifacts_are_written_next_to_output(tmp_path) -> None:
    path = persist_debug_artifacts(tmp_path / "out", tmp_path / "paper.tex", "<p>x</p>")

    assert path == tmp_path / "out" / "paper.debug.html"
    assert path.read_text(encoding="utf-8") == "<p>x</p>"
    assert (tmp_path / "out" / "paper.attempts.json").read_text(encoding="utf-8") == "[]"


def test_raised_conversion_error_is_classified_and_marked_logged(emitter) -> None:
    with pytest.raises(ConversionError) as excinfo:
        raise_conversion_error(emitter, "Conversion failed", EngineFault("Out of memory"))

    error = excinfo.value
    assert error.failure is FailureKind.MEMORY
    assert error.logged is True
    assert [message for message, _exc in emitter.errors] == ["Conversion failed"]
    assert describe_pipeline_error(error).startswith("Document too complex for processing")
