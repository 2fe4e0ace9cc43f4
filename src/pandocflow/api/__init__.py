"""Facade exposing the session-level conversion service.

Architecture
: `ConversionService` owns the cross-reference registry, the render
  workspace, the resource guardian and the orchestrator for one session.
: `DocumentInspection` reports what the pipeline would do with a source
  (complexity, chunk plan, cross-references) without calling the engine.
"""

from __future__ import annotations

from .service import ConversionService, DocumentInspection


__all__ = ["ConversionService", "DocumentInspection"]
