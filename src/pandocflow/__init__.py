"""Adaptive LaTeX-to-HTML conversion through pandoc."""

from __future__ import annotations

from pandocflow.api import ConversionService, DocumentInspection
from pandocflow.core.chunking import Chunk, ChunkKind, split_document
from pandocflow.core.complexity import ComplexityLevel, ComplexityProfile, assess_complexity
from pandocflow.core.config import PipelineSettings, load_settings
from pandocflow.core.conversion.orchestrator import (
    ConversionOrchestrator,
    ConversionResult,
    ConversionState,
)
from pandocflow.core.crossrefs import CrossReferencePreprocessor, CrossReferenceRegistry
from pandocflow.core.exceptions import ConversionInProgressError, EngineFault, PipelineError
from pandocflow.resources import ResourceGuardian

from .version import get_version


__version__ = get_version()

__all__ = [
    "Chunk",
    "ChunkKind",
    "ComplexityLevel",
    "ComplexityProfile",
    "ConversionInProgressError",
    "ConversionOrchestrator",
    "ConversionResult",
    "ConversionService",
    "ConversionState",
    "CrossReferencePreprocessor",
    "CrossReferenceRegistry",
    "DocumentInspection",
    "EngineFault",
    "PipelineError",
    "PipelineSettings",
    "ResourceGuardian",
    "__version__",
    "assess_complexity",
    "get_version",
    "load_settings",
    "split_document",
]
