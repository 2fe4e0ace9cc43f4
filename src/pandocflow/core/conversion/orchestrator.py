"""Conversion state machine tying assessment, chunking and recovery together.

A request moves through ``ASSESSING`` to either the whole-document path
(``CONVERTING``) or the chunked path (``CHUNK_CONVERTING``), then through
``CLEANING`` and ``TYPESETTING`` to ``READY``. Engine faults are classified:
memory exhaustion on the first attempt falls back to chunked conversion, an
engine trap is retried once with simplified arguments, and anything else is
surfaced as a plain-language message. Only one request runs at a time.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
import logging
import shlex
from threading import Lock
import time

from bs4.element import Tag

from pandocflow.adapters.engine.deadline import AbandonedCalls, run_with_deadline
from pandocflow.adapters.engine.pandoc import ConversionEngine, remove_argument
from pandocflow.resources.cleanup import CleanupReport, CleanupTier
from pandocflow.resources.guardian import ResourceGuardian
from pandocflow.resources.workspace import (
    NullTypesetter,
    RenderWorkspace,
    Typesetter,
    TypesetOutcome,
)

from ..chunking import split_document
from ..complexity import ComplexityProfile, assess_complexity
from ..config import DEFAULT_SETTINGS, PipelineSettings
from ..crossrefs import CrossReferencePreprocessor, CrossReferenceRegistry, PreprocessResult
from ..diagnostics import DiagnosticEmitter
from ..exceptions import ConversionInProgressError, EngineUnavailableError
from ..failures import (
    FailureKind,
    RecoveryAction,
    chunk_failure_message,
    classify_failure,
    recovery_for,
    user_message,
)
from ..sanitize import sanitize_source
from ..status import NullStatus, StatusObserver
from .debug import ensure_emitter, raise_conversion_error, record_event
from .output import (
    assemble,
    deduplicate_anchors,
    extract_body,
    number_sections,
    remove_duplicate_title_blocks,
    render_chunk_error,
    render_error,
)
from .xrefs import FixReport, fix_cross_references


logger = logging.getLogger(__name__)

NUMBER_SECTIONS_FLAG = "--number-sections"


class ConversionState(str, Enum):
    IDLE = "idle"
    ASSESSING = "assessing"
    CONVERTING = "converting"
    CHUNK_CONVERTING = "chunk_converting"
    CLEANING = "cleaning"
    TYPESETTING = "typesetting"
    READY = "ready"
    ERROR = "error"


@dataclass(slots=True)
class ConversionAttempt:
    """One engine invocation and its outcome."""

    arguments: str
    input_text: str
    strategy: str
    started: float
    chunk: int | None = None
    ended: float | None = None
    outcome: str = "pending"
    failure: FailureKind | None = None

    @property
    def duration(self) -> float | None:
        if self.ended is None:
            return None
        return self.ended - self.started

    def finish(self, failure: FailureKind | None = None) -> None:
        self.ended = time.monotonic()
        self.failure = failure
        self.outcome = "failure" if failure is not None else "success"


@dataclass(slots=True)
class ConversionResult:
    """Everything produced by one conversion request."""

    html: str
    success: bool
    strategy: str
    profile: ComplexityProfile
    preprocessing: PreprocessResult
    attempts: list[ConversionAttempt] = field(default_factory=list)
    message: str | None = None
    failure: FailureKind | None = None
    chunks: int = 0
    failed_chunks: int = 0
    anchors_removed: int = 0
    crossrefs: FixReport | None = None
    typesetting: TypesetOutcome | None = None
    sanitized: dict[str, int] = field(default_factory=dict)


@dataclass(slots=True)
class _PathOutcome:
    html: str | None
    strategy: str
    message: str | None = None
    failure: FailureKind | None = None
    chunks: int = 0
    failed_chunks: int = 0


class ConversionOrchestrator:
    """Drive one document at a time through the conversion pipeline."""

    def __init__(
        self,
        engine: ConversionEngine,
        *,
        settings: PipelineSettings = DEFAULT_SETTINGS,
        registry: CrossReferenceRegistry | None = None,
        guardian: ResourceGuardian | None = None,
        workspace: RenderWorkspace | None = None,
        typesetter: Typesetter | None = None,
        status: StatusObserver | None = None,
        emitter: DiagnosticEmitter | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.engine = engine
        self.settings = settings
        self.registry = registry if registry is not None else CrossReferenceRegistry()
        self.guardian = guardian
        if workspace is None:
            workspace = guardian.workspace if guardian is not None else RenderWorkspace()
        self.workspace = workspace
        self.typesetter: Typesetter = typesetter or NullTypesetter()
        self.status: StatusObserver = status or NullStatus()
        self.emitter = ensure_emitter(emitter)
        self.preprocessor = CrossReferencePreprocessor(self.registry, emitter=self.emitter)
        self.abandoned = AbandonedCalls()
        self.transitions: list[ConversionState] = []
        self._state = ConversionState.IDLE
        self._sleep = sleep
        self._lock = Lock()

        if guardian is not None:
            guardian.register_cache("abandoned-engine-calls", self.abandoned.prune)
            clear_cache = getattr(self.typesetter, "clear_cache", None)
            if callable(clear_cache):
                guardian.register_cache("typesetter", clear_cache)

    @property
    def state(self) -> ConversionState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def _transition(self, state: ConversionState) -> None:
        logger.debug("Conversion state %s -> %s", self._state.value, state.value)
        self._state = state
        self.transitions.append(state)

    def convert(self, source: str, arguments: str | None = None) -> ConversionResult:
        """Convert ``source`` to HTML, rejecting the call if one is already running."""
        if not self._lock.acquire(blocking=False):
            raise ConversionInProgressError("A conversion is already in progress.")
        try:
            self.transitions = []
            return self._convert(source, arguments or self.settings.engine.arguments)
        finally:
            self._lock.release()

    def _convert(self, source: str, arguments: str) -> ConversionResult:
        attempts: list[ConversionAttempt] = []
        try:
            if self.guardian is not None:
                self.guardian.before_conversion()

            self._transition(ConversionState.ASSESSING)
            self.status.loading("Analysing document", 10)
            sanitized = sanitize_source(source)
            preprocessed = self.preprocessor.preprocess(sanitized.source)
            profile = assess_complexity(preprocessed.source, self.settings)
            logger.info(
                "Document complexity %s (score %.1f), strategy %s",
                profile.level.value,
                profile.score,
                profile.strategy,
            )

            if profile.requires_chunking:
                outcome = self._convert_chunked(preprocessed.source, arguments, attempts)
            else:
                outcome = self._convert_whole(preprocessed.source, arguments, profile, attempts)

            result = ConversionResult(
                html="",
                success=outcome.html is not None,
                strategy=outcome.strategy,
                profile=profile,
                preprocessing=preprocessed,
                attempts=attempts,
                message=outcome.message,
                failure=outcome.failure,
                chunks=outcome.chunks,
                failed_chunks=outcome.failed_chunks,
                sanitized=sanitized.removed,
            )
            if outcome.html is None:
                return self._surface_failure(result)
            return self._finish(result, outcome.html)
        except Exception as exc:
            self._transition(ConversionState.ERROR)
            self.status.error("Conversion failed unexpectedly.")
            raise_conversion_error(self.emitter, f"Conversion failed: {exc}", exc)
            raise  # pragma: no cover - raise_conversion_error always raises

    def _attempt(
        self,
        arguments: str,
        text: str,
        timeout: float,
        attempts: list[ConversionAttempt],
        *,
        strategy: str,
        chunk: int | None = None,
    ) -> str:
        attempt = ConversionAttempt(
            arguments=arguments,
            input_text=text,
            strategy=strategy,
            started=time.monotonic(),
            chunk=chunk,
        )
        attempts.append(attempt)
        try:
            html = run_with_deadline(
                lambda: self.engine(arguments, text), timeout, abandoned=self.abandoned
            )
        except Exception as exc:
            attempt.finish(classify_failure(exc))
            self._record_attempt(attempt)
            raise
        attempt.finish()
        self._record_attempt(attempt)
        return html

    def _record_attempt(self, attempt: ConversionAttempt) -> None:
        record_event(
            self.emitter,
            "conversion_attempt",
            {
                "strategy": attempt.strategy,
                "outcome": attempt.outcome,
                "failure": attempt.failure.value if attempt.failure else None,
                "chunk": attempt.chunk,
                "duration": attempt.duration,
            },
        )

    def _convert_whole(
        self,
        text: str,
        arguments: str,
        profile: ComplexityProfile,
        attempts: list[ConversionAttempt],
    ) -> _PathOutcome:
        self._transition(ConversionState.CONVERTING)
        self.status.loading("Converting document", 40)
        try:
            html = self._attempt(arguments, text, profile.timeout, attempts, strategy="standard")
        except EngineUnavailableError:
            raise
        except Exception as exc:
            kind = classify_failure(exc)
            logger.warning("Whole-document conversion failed (%s): %s", kind.value, exc)
            self._after_failure()
        else:
            return _PathOutcome(self._clean_whole(html), "standard")

        # Recover outside the handler so later faults do not chain onto this one.
        action = recovery_for(kind, attempt=1)
        if action is RecoveryAction.CHUNKED_RETRY:
            record_event(
                self.emitter,
                "fallback",
                {"from": "standard", "to": "chunked", "reason": kind.value},
            )
            self.status.loading("Document too large, converting section by section", 45)
            outcome = self._convert_chunked(text, arguments, attempts)
            outcome.strategy = "chunked-fallback"
            return outcome
        if action is RecoveryAction.SIMPLIFIED_RETRY:
            return self._convert_simplified(text, attempts, kind)
        return _PathOutcome(None, "standard", user_message(kind), kind)

    def _convert_simplified(
        self, text: str, attempts: list[ConversionAttempt], cause: FailureKind
    ) -> _PathOutcome:
        simplified = self.settings.engine.simplified_arguments
        record_event(
            self.emitter,
            "fallback",
            {"from": "standard", "to": "simplified", "reason": cause.value},
        )
        self.status.loading("Retrying with simplified options", 50)
        try:
            html = self._attempt(
                simplified,
                text,
                self.settings.timeouts.simplified,
                attempts,
                strategy="simplified",
            )
        except EngineUnavailableError:
            raise
        except Exception as exc:
            kind = classify_failure(exc)
            logger.warning("Simplified retry failed (%s): %s", kind.value, exc)
            self._after_failure()
            return _PathOutcome(None, "simplified", user_message(kind), kind)
        return _PathOutcome(self._clean_whole(html), "simplified")

    @staticmethod
    def _clean_whole(html: str) -> str:
        return remove_duplicate_title_blocks(extract_body(html))

    def _convert_chunked(
        self, text: str, arguments: str, attempts: list[ConversionAttempt]
    ) -> _PathOutcome:
        self._transition(ConversionState.CHUNK_CONVERTING)
        chunks = split_document(text, self.settings)
        numbered = NUMBER_SECTIONS_FLAG in shlex.split(arguments)
        chunk_arguments = remove_argument(arguments, NUMBER_SECTIONS_FLAG)
        timeouts = self.settings.timeouts
        parts: list[str] = []
        failed = 0
        last_failure: FailureKind | None = None

        for chunk in chunks:
            self.status.loading(
                f"Converting section {chunk.number} of {len(chunks)}",
                40 + (45 * chunk.index) // len(chunks),
            )
            try:
                html = self._attempt(
                    chunk_arguments,
                    chunk.wrapped_content,
                    timeouts.chunk,
                    attempts,
                    strategy="chunked",
                    chunk=chunk.index,
                )
                parts.append(extract_body(html))
            except EngineUnavailableError:
                raise
            except Exception as exc:
                kind = classify_failure(exc)
                failed += 1
                last_failure = kind
                logger.warning("Chunk %d (%s) failed: %s", chunk.number, chunk.title, exc)
                record_event(
                    self.emitter,
                    "chunk_failed",
                    {"chunk": chunk.index, "title": chunk.title, "failure": kind.value},
                )
                self._after_failure()
                message = chunk_failure_message(kind, chunk.number)
                parts.append(render_chunk_error(chunk.title, message))
            if chunk.index < len(chunks) - 1 and timeouts.chunk_delay:
                self._sleep(timeouts.chunk_delay)

        html = remove_duplicate_title_blocks(assemble(parts))
        if numbered:
            html = number_sections(html)
        if failed == len(chunks):
            kind = last_failure or FailureKind.UNKNOWN
            return _PathOutcome(None, "chunked", user_message(kind), kind, len(chunks), failed)
        message = None
        if failed:
            message = f"{failed} of {len(chunks)} sections could not be converted."
        return _PathOutcome(html, "chunked", message, last_failure, len(chunks), failed)

    def _after_failure(self) -> None:
        if self.guardian is not None:
            self.guardian.after_failure()

    def _finish(self, result: ConversionResult, html: str) -> ConversionResult:
        self._transition(ConversionState.CLEANING)
        self.status.loading("Cleaning output", 85)
        html, result.anchors_removed = deduplicate_anchors(html)
        html, result.crossrefs = fix_cross_references(html, self.registry)

        self._transition(ConversionState.TYPESETTING)
        self.status.loading("Rendering mathematics", 95)
        with self.workspace.lock:
            container = self.workspace.render(html)
            result.typesetting = self._typeset(container)
            result.html = self.workspace.html()

        self._transition(ConversionState.READY)
        if result.message:
            self.status.announce(result.message)
        self.status.ready("Document converted")
        return result

    def _typeset(self, container: Tag) -> TypesetOutcome:
        try:
            return self.typesetter.typeset(container)
        except Exception as exc:  # noqa: BLE001 - typesetting failures are not fatal
            logger.warning("Math typesetting failed: %s", exc)
            self.emitter.warning("Math typesetting failed; showing unrendered math.", exc)
            return TypesetOutcome(errors=[str(exc)])

    def _surface_failure(self, result: ConversionResult) -> ConversionResult:
        message = result.message or user_message(FailureKind.UNKNOWN)
        result.message = message
        self.workspace.render(render_error(message))
        result.html = self.workspace.html()
        self._transition(ConversionState.ERROR)
        logger.warning("Conversion failed: %s", message)
        self.status.error(message)
        self.status.announce(message)
        return result

    def cleanup(
        self, tier: CleanupTier = CleanupTier.SAFE, reason: str = "requested"
    ) -> CleanupReport | None:
        """Forward an explicit cleanup request to the guardian."""
        if self.guardian is None:
            return None
        return self.guardian.request_cleanup(tier, reason)


__all__ = [
    "ConversionAttempt",
    "ConversionOrchestrator",
    "ConversionResult",
    "ConversionState",
]
