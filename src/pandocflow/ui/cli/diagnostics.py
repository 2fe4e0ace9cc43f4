"""Diagnostic emitter and status observer bridging the pipeline with the CLI."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pandocflow.core.diagnostics import DiagnosticEmitter, format_event_message

from .state import CLIState, emit_error, emit_warning, get_cli_state, render_message


class CliEmitter(DiagnosticEmitter):
    """Emit diagnostics using the rich-enabled CLI helpers."""

    def __init__(self, state: CLIState | None = None, *, debug_enabled: bool | None = None) -> None:
        self._state = state or get_cli_state()
        if debug_enabled is None:
            debug_enabled = self._state.show_tracebacks
        self.debug_enabled = bool(debug_enabled)

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        emit_warning(message, exception=exc)

    def error(self, message: str, exc: BaseException | None = None) -> None:
        emit_error(message, exception=exc)

    def event(self, name: str, payload: Mapping[str, Any]) -> None:
        data = dict(payload)
        self._state.activity.record(name, data)
        if self._state.verbosity < 1:
            return
        message = format_event_message(name, data)
        if message:
            render_message("info", message)


class CliStatus:
    """Status observer printing lifecycle notifications on stderr."""

    def __init__(self, state: CLIState | None = None) -> None:
        self._state = state or get_cli_state()

    def loading(self, message: str, percent: int) -> None:
        if self._state.verbosity >= 1:
            render_message("info", f"[{percent:3d}%] {message}")

    def ready(self, message: str) -> None:
        if self._state.verbosity >= 1:
            render_message("info", message)

    def error(self, message: str) -> None:
        self._state.activity.record("status_error", {"message": message})

    def announce(self, message: str) -> None:
        emit_warning(message)


__all__ = ["CliEmitter", "CliStatus"]
