"""Per-invocation CLI state: verbosity, consoles and pipeline activity."""

from __future__ import annotations

from collections.abc import Mapping
from contextvars import ContextVar
from dataclasses import dataclass, field
import sys
from typing import Any, TextIO

import click
from rich.console import Console
from rich.text import Text

from pandocflow.core.exceptions import exception_messages


__all__ = [
    "CLIState",
    "ConversionActivity",
    "debug_enabled",
    "emit_error",
    "emit_warning",
    "get_cli_state",
    "render_message",
    "set_cli_state",
]


@dataclass(slots=True)
class ConversionActivity:
    """Fallbacks, cleanups and status errors reported while a command ran."""

    fallbacks: list[str] = field(default_factory=list)
    cleanups: int = 0
    removed: int = 0
    status_errors: list[str] = field(default_factory=list)

    def record(self, name: str, payload: Mapping[str, Any]) -> None:
        if name == "fallback":
            self.fallbacks.append(
                f"{payload.get('from', '?')} -> {payload.get('to', '?')} "
                f"({payload.get('reason', 'unknown')})"
            )
        elif name == "cleanup":
            self.cleanups += 1
            self.removed += int(payload.get("removed", 0))
        elif name == "status_error":
            self.status_errors.append(str(payload.get("message", "")))


def _bound_console(current: Console | None, stream: TextIO, **kwargs: Any) -> Console:
    # CliRunner and capsys swap the standard streams between invocations.
    if current is None or current.file is not stream:
        return Console(file=stream, **kwargs)
    return current


@dataclass(slots=True)
class CLIState:
    verbosity: int = 0
    show_tracebacks: bool = False
    activity: ConversionActivity = field(default_factory=ConversionActivity)
    _console: Console | None = field(default=None, init=False, repr=False)
    _err_console: Console | None = field(default=None, init=False, repr=False)

    @property
    def console(self) -> Console:
        self._console = _bound_console(self._console, sys.stdout)
        return self._console

    @property
    def err_console(self) -> Console:
        self._err_console = _bound_console(self._err_console, sys.stderr, highlight=False)
        return self._err_console

    def take_activity(self) -> ConversionActivity:
        """Return the activity recorded so far and start a fresh record."""
        activity, self.activity = self.activity, ConversionActivity()
        return activity


_STATE: ContextVar[CLIState | None] = ContextVar("pandocflow_cli_state", default=None)


def get_cli_state(ctx: click.Context | None = None) -> CLIState:
    """Return the state of the running command, creating it on first use.

    Inside a command the state lives on the click context; elsewhere (tests,
    embedding) the last state bound to the current context variable is reused.
    """
    ctx = ctx or click.get_current_context(silent=True)
    if ctx is not None:
        state = ctx.ensure_object(CLIState)
    else:
        state = _STATE.get() or CLIState()
    _STATE.set(state)
    return state


def set_cli_state(
    *,
    ctx: click.Context | None = None,
    verbosity: int | None = None,
    debug: bool | None = None,
) -> CLIState:
    state = get_cli_state(ctx)
    if verbosity is not None:
        state.verbosity = max(0, verbosity)
    if debug is not None:
        state.show_tracebacks = debug
    return state


def _exception_details(message: str, exception: BaseException, verbosity: int) -> list[str]:
    if verbosity < 1:
        return []
    messages = exception_messages(exception)
    lines: list[str] = []
    if messages and messages[0] not in message:
        lines.append(messages[0])
    lines.append(f"type: {type(exception).__name__}")
    if verbosity >= 2 and len(messages) > 1:
        lines.append("caused by:")
        lines.extend(f"  {entry}" for entry in messages[1:])
    return lines


def render_message(
    level: str,
    message: str,
    *,
    exception: BaseException | None = None,
) -> None:
    """Print ``message`` on stderr; ``info`` messages are timestamped."""
    state = get_cli_state()
    if level == "info":
        state.err_console.log(message)
        return

    style = "red" if level == "error" else "yellow"
    text = Text.assemble((f"{level}: ", f"bold {style}"), (message, style))
    if exception is not None:
        details = _exception_details(message, exception, state.verbosity)
        if details:
            text.append("\n" + "\n".join(details), style=style)
    state.err_console.print(text)


def emit_warning(message: str, *, exception: BaseException | None = None) -> None:
    render_message("warning", message, exception=exception)


def emit_error(message: str, *, exception: BaseException | None = None) -> None:
    """Print an error unless the pipeline already reported ``exception``."""
    if exception is not None and getattr(exception, "logged", False):
        return
    render_message("error", message, exception=exception)


def debug_enabled() -> bool:
    state = _STATE.get()
    return state is not None and state.show_tracebacks
