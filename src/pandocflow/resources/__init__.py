"""Resource monitoring and cleanup for long-lived conversion sessions."""

from __future__ import annotations

from .cleanup import CleanupCoordinator, CleanupReport, CleanupTier
from .guardian import CleanupEvent, ResourceGuardian
from .watchdog import ResourceSnapshot, Watchdog
from .workspace import (
    NullTypesetter,
    RenderWorkspace,
    TexAnnotationTypesetter,
    Typesetter,
    TypesetOutcome,
)


__all__ = [
    "CleanupCoordinator",
    "CleanupEvent",
    "CleanupReport",
    "CleanupTier",
    "NullTypesetter",
    "RenderWorkspace",
    "ResourceGuardian",
    "ResourceSnapshot",
    "TexAnnotationTypesetter",
    "TypesetOutcome",
    "Typesetter",
    "Watchdog",
]
