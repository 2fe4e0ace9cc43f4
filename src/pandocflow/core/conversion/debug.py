"""Conversion failure reporting and debug artefacts."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

from ..diagnostics import DiagnosticEmitter, NullEmitter
from ..exceptions import PipelineError, exception_hint
from ..failures import FailureKind, classify_failure, user_message


if TYPE_CHECKING:  # pragma: no cover - typing only
    from .orchestrator import ConversionAttempt


DEBUG_HINT = "Re-run with --debug for technical details."


class ConversionError(PipelineError):
    """Raised when a conversion fails outside every recovery path.

    ``failure`` is the classified root cause and ``logged`` tells front-ends
    the error has already been reported through a diagnostic emitter.
    """

    def __init__(
        self,
        message: str,
        *,
        failure: FailureKind = FailureKind.UNKNOWN,
        logged: bool = False,
    ) -> None:
        super().__init__(message)
        self.failure = failure
        self.logged = logged


def ensure_emitter(emitter: DiagnosticEmitter | None) -> DiagnosticEmitter:
    return emitter if emitter is not None else NullEmitter()


def raise_conversion_error(
    emitter: DiagnosticEmitter | None,
    message: str,
    exc: Exception,
) -> None:
    """Report ``exc`` through ``emitter`` and raise it as a classified conversion error."""
    ensure_emitter(emitter).error(message, exc)
    raise ConversionError(message, failure=classify_failure(exc), logged=True) from exc


def record_event(
    emitter: DiagnosticEmitter | None,
    event: str,
    payload: Mapping[str, Any],
) -> None:
    ensure_emitter(emitter).event(event, payload)


def attempt_records(attempts: Iterable[ConversionAttempt]) -> list[dict[str, Any]]:
    """Summarise engine attempts without their (possibly large) input text."""
    records: list[dict[str, Any]] = []
    for attempt in attempts:
        duration = attempt.duration
        records.append(
            {
                "strategy": attempt.strategy,
                "chunk": attempt.chunk,
                "arguments": attempt.arguments,
                "outcome": attempt.outcome,
                "failure": attempt.failure.value if attempt.failure is not None else None,
                "duration": round(duration, 3) if duration is not None else None,
                "input_size": len(attempt.input_text),
            }
        )
    return records


def persist_debug_artifacts(
    output_dir: Path,
    source: Path,
    html: str,
    attempts: Iterable[ConversionAttempt] = (),
) -> Path:
    """Write the assembled HTML and an attempt log next to the requested output.

    Returns the path of the HTML snapshot; the attempt log shares its stem
    with a ``.attempts.json`` suffix.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    debug_path = output_dir / f"{source.stem}.debug.html"
    debug_path.write_text(html, encoding="utf-8")
    log_path = output_dir / f"{source.stem}.attempts.json"
    log_path.write_text(json.dumps(attempt_records(attempts), indent=2), encoding="utf-8")
    return debug_path


def describe_pipeline_error(error: PipelineError) -> str:
    """Return a one-line explanation of ``error`` for end users."""
    if isinstance(error, ConversionError) and error.failure is not FailureKind.UNKNOWN:
        summary = user_message(error.failure)
    else:
        hint = exception_hint(error.__cause__ or error)
        summary = f"Conversion failed: {hint}" if hint else "Conversion failed"
    return f"{summary.rstrip('.')}. {DEBUG_HINT}"


__all__ = [
    "DEBUG_HINT",
    "ConversionError",
    "attempt_records",
    "describe_pipeline_error",
    "ensure_emitter",
    "persist_debug_artifacts",
    "raise_conversion_error",
    "record_event",
]
