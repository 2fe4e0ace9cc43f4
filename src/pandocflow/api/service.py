"""Session-level wiring of the conversion pipeline for CLI and embedding use."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path

from pandocflow.adapters.engine.pandoc import ConversionEngine, PandocEngine
from pandocflow.core.chunking import Chunk, split_document
from pandocflow.core.complexity import ComplexityProfile, assess_complexity
from pandocflow.core.config import DEFAULT_SETTINGS, PipelineSettings
from pandocflow.core.conversion.orchestrator import ConversionOrchestrator, ConversionResult
from pandocflow.core.crossrefs import (
    CrossReferencePreprocessor,
    CrossReferenceRegistry,
    PreprocessResult,
)
from pandocflow.core.diagnostics import DiagnosticEmitter
from pandocflow.core.sanitize import ValidationReport, sanitize_source, validate_latex
from pandocflow.core.status import LoggingStatus, StatusObserver
from pandocflow.resources.guardian import ResourceGuardian
from pandocflow.resources.workspace import RenderWorkspace, Typesetter


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DocumentInspection:
    """Static analysis of a source without invoking the engine."""

    profile: ComplexityProfile
    preprocessing: PreprocessResult
    chunks: list[Chunk]
    validation: ValidationReport


class ConversionService:
    """Own the registry, workspace, guardian and orchestrator of one session.

    Lifecycle notifications go to the log unless a ``status`` observer is given.

    Use it as a context manager so the guardian's watchdog is started and
    stopped with the session.
    """

    def __init__(
        self,
        settings: PipelineSettings = DEFAULT_SETTINGS,
        *,
        engine: ConversionEngine | None = None,
        typesetter: Typesetter | None = None,
        status: StatusObserver | None = None,
        emitter: DiagnosticEmitter | None = None,
    ) -> None:
        self.settings = settings
        self.registry = CrossReferenceRegistry()
        self.workspace = RenderWorkspace()
        self.guardian = ResourceGuardian(
            self.workspace, self.registry, settings, emitter=emitter
        )
        self.orchestrator = ConversionOrchestrator(
            engine or PandocEngine(settings.engine.executable),
            settings=settings,
            registry=self.registry,
            guardian=self.guardian,
            typesetter=typesetter,
            status=status or LoggingStatus(),
            emitter=emitter,
        )

    def __enter__(self) -> ConversionService:
        self.guardian.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.guardian.stop()

    def convert(self, source: str, arguments: str | None = None) -> ConversionResult:
        return self.orchestrator.convert(source, arguments)

    def convert_file(self, path: Path, arguments: str | None = None) -> ConversionResult:
        logger.info("Converting %s", path)
        return self.convert(path.read_text(encoding="utf-8"), arguments)

    def inspect(self, source: str) -> DocumentInspection:
        """Assess, preprocess and plan chunks for ``source`` without converting it."""
        sanitized = sanitize_source(source)
        preprocessing = CrossReferencePreprocessor(CrossReferenceRegistry()).preprocess(
            sanitized.source
        )
        profile = assess_complexity(preprocessing.source, self.settings)
        chunks = split_document(preprocessing.source, self.settings)
        return DocumentInspection(
            profile=profile,
            preprocessing=preprocessing,
            chunks=chunks,
            validation=validate_latex(source),
        )


__all__ = ["ConversionService", "DocumentInspection"]
