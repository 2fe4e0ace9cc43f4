"""Diagnostic abstractions shared across the conversion pipeline."""

from __future__ import annotations

from collections.abc import Mapping
import logging
from typing import Any, Protocol, runtime_checkable


logger = logging.getLogger(__name__)


@runtime_checkable
class DiagnosticEmitter(Protocol):
    """Interface used to surface warnings, errors, and structured events."""

    debug_enabled: bool

    def warning(self, message: str, exc: BaseException | None = None) -> None: ...

    def error(self, message: str, exc: BaseException | None = None) -> None: ...

    def event(self, name: str, payload: Mapping[str, Any]) -> None: ...


class NullEmitter:
    """Emitter that ignores every diagnostic."""

    debug_enabled: bool = False

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        return

    def error(self, message: str, exc: BaseException | None = None) -> None:
        return

    def event(self, name: str, payload: Mapping[str, Any]) -> None:
        return


class LoggingEmitter:
    """Emitter that forwards diagnostics to the standard logging module."""

    def __init__(
        self, *, logger_obj: logging.Logger | None = None, debug_enabled: bool = False
    ) -> None:
        self._logger = logger_obj or logger
        self.debug_enabled = debug_enabled

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        if exc is not None:
            self._logger.warning(message, exc_info=exc)
        else:
            self._logger.warning(message)

    def error(self, message: str, exc: BaseException | None = None) -> None:
        if exc is not None:
            self._logger.error(message, exc_info=exc)
        else:
            self._logger.error(message)

    def event(self, name: str, payload: Mapping[str, Any]) -> None:
        message = format_event_message(name, payload)
        if message:
            self._logger.info(message)
            return
        self._logger.debug("diagnostic event %s: %s", name, dict(payload))


def format_event_message(name: str, payload: Mapping[str, Any]) -> str | None:
    """Return a human-friendly summary for selected diagnostic events."""
    data = dict(payload)

    if name == "conversion_attempt":
        strategy = data.get("strategy") or "standard"
        outcome = data.get("outcome") or "unknown"
        chunk = data.get("chunk")
        where = f" chunk {chunk + 1}" if isinstance(chunk, int) else ""
        failure = data.get("failure")
        suffix = f" ({failure})" if failure and outcome != "success" else ""
        return f"Conversion attempt [{strategy}]{where}: {outcome}{suffix}"

    if name == "fallback":
        source = data.get("from") or "<unknown>"
        target = data.get("to") or "<unknown>"
        reason = data.get("reason")
        suffix = f" after {reason}" if reason else ""
        return f"Falling back from {source} to {target}{suffix}"

    if name == "chunk_failed":
        title = data.get("title") or "untitled"
        failure = data.get("failure") or "unknown"
        return f"Chunk '{title}' failed ({failure}); continuing with the next chunk"

    if name == "cleanup":
        tier = data.get("tier") or "<unknown>"
        removed = data.get("removed", 0)
        reason = data.get("reason")
        suffix = f" [{reason}]" if reason else ""
        return f"Cleanup {tier}: removed {removed} element(s){suffix}"

    return None


__all__ = [
    "DiagnosticEmitter",
    "LoggingEmitter",
    "NullEmitter",
    "format_event_message",
]
