"""Tiered clean-up of the render workspace and internal caches."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
import logging

from bs4.element import Tag

from pandocflow.core.crossrefs import CrossReferenceRegistry

from .workspace import MATH_NODE, TEX_ANNOTATION_SELECTOR, RenderWorkspace


logger = logging.getLogger(__name__)

TEMPORARY_SELECTORS = (
    ".temp-math-processing, .processing-marker, .mathjax-temp, "
    "[data-temp='true'], .conversion-temp"
)


class CleanupTier(str, Enum):
    SAFE = "safe"
    MINIMAL = "minimal"
    FULL = "full"


@dataclass(slots=True)
class CleanupReport:
    tier: CleanupTier
    temporary: int = 0
    orphaned_math: int = 0
    empty_containers: int = 0
    caches: list[str] = field(default_factory=list)
    registry_cleared: bool = False

    @property
    def removed(self) -> int:
        return self.temporary + self.orphaned_math + self.empty_containers


class CleanupCoordinator:
    """Apply a cleanup tier to the workspace, caches and registry.

    ``minimal`` touches registered caches only, ``safe`` also removes
    temporary and orphaned elements, and ``full`` additionally empties the
    cross-reference registry.
    """

    def __init__(
        self,
        workspace: RenderWorkspace,
        registry: CrossReferenceRegistry | None = None,
    ) -> None:
        self.workspace = workspace
        self.registry = registry
        self._caches: dict[str, Callable[[], object]] = {}

    def register_cache(self, name: str, clear: Callable[[], object]) -> None:
        self._caches[name] = clear

    def run(self, tier: CleanupTier) -> CleanupReport:
        report = CleanupReport(tier=tier)
        if tier is not CleanupTier.MINIMAL:
            with self.workspace.lock:
                report.temporary = self._remove_temporary()
                report.orphaned_math = self._remove_orphaned_math()
                report.empty_containers = self._remove_empty_containers()
        report.caches = self._clear_caches()
        if tier is CleanupTier.FULL and self.registry is not None:
            self.registry.clear()
            report.registry_cleared = True
        logger.debug("Cleanup %s removed %d element(s)", tier.value, report.removed)
        return report

    def _clear_caches(self) -> list[str]:
        cleared: list[str] = []
        for name, clear in self._caches.items():
            try:
                clear()
            except Exception as exc:  # noqa: BLE001 - one failing cache must not block others
                logger.warning("Failed to clear cache '%s': %s", name, exc)
                continue
            cleared.append(name)
        return cleared

    def _remove_temporary(self) -> int:
        elements = self.workspace.soup.select(TEMPORARY_SELECTORS)
        for element in elements:
            element.decompose()
        return len(elements)

    def _remove_orphaned_math(self) -> int:
        removed = 0
        for node in self.workspace.soup.find_all(MATH_NODE):
            if node.decomposed or node.get("id") or node.find_parent(id="output") is not None:
                continue
            if node.select_one(TEX_ANNOTATION_SELECTOR) is not None:
                continue
            node.decompose()
            removed += 1
        return removed

    def _remove_empty_containers(self) -> int:
        removed = 0
        for element in self.workspace.soup.find_all(["span", "div"]):
            if not _is_disposable(element):
                continue
            element.decompose()
            removed += 1
        return removed


def _is_disposable(element: Tag) -> bool:
    if element.decomposed or element.get("id") or element.get("class"):
        return False
    if element.attrs or element.contents:
        return False
    return element.find_parent([MATH_NODE, "annotation"]) is None


__all__ = ["TEMPORARY_SELECTORS", "CleanupCoordinator", "CleanupReport", "CleanupTier"]
