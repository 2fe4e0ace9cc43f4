"""Custom exception hierarchy for the conversion pipeline."""

from __future__ import annotations


class PipelineError(RuntimeError):
    """Base exception for conversion pipeline failures."""


class EngineFault(PipelineError):
    """Raised when the conversion engine fails to produce output."""


class EngineTimeoutError(EngineFault):
    """Raised when an engine call does not complete before its deadline."""

    def __init__(self, message: str, *, timeout: float | None = None) -> None:
        super().__init__(message)
        self.timeout = timeout


class EngineUnavailableError(EngineFault):
    """Raised when the conversion engine executable cannot be located."""


class ConversionInProgressError(PipelineError):
    """Raised when a conversion is requested while another one is running."""


class SettingsError(PipelineError):
    """Raised when pipeline settings cannot be loaded or validated."""


def exception_messages(exc: BaseException) -> list[str]:
    """Return the collected message chain for an exception and its causes."""
    messages: list[str] = []
    visited: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in visited:
        visited.add(id(current))
        text = str(current).strip()
        if text:
            first_line = text.splitlines()[0].strip()
            if first_line:
                messages.append(first_line)
        current = current.__cause__ or current.__context__
    return messages


def exception_hint(exc: BaseException) -> str | None:
    """Return the most specific message available for an exception chain."""
    messages = exception_messages(exc)
    return messages[-1] if messages else None


__all__ = [
    "ConversionInProgressError",
    "EngineFault",
    "EngineTimeoutError",
    "EngineUnavailableError",
    "PipelineError",
    "SettingsError",
    "exception_hint",
    "exception_messages",
]
