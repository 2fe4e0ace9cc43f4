"""Periodic sampling of process memory and workspace size."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import logging
from threading import Event, Thread
import time

import psutil

from pandocflow.core.config import WatchdogSettings

from .workspace import RenderWorkspace


logger = logging.getLogger(__name__)

MEGABYTE = 1024 * 1024


@dataclass(slots=True, frozen=True)
class ResourceSnapshot:
    timestamp: float
    heap_bytes: int
    node_count: int
    math_nodes: int
    unannotated_math: int = 0

    @property
    def heap_mb(self) -> float:
        return self.heap_bytes / MEGABYTE


def process_heap_bytes() -> int:
    """Return the resident set size of the current process."""
    return psutil.Process().memory_info().rss


def sample_workspace(
    workspace: RenderWorkspace, *, heap: Callable[[], int] = process_heap_bytes
) -> ResourceSnapshot:
    with workspace.lock:
        return ResourceSnapshot(
            timestamp=time.time(),
            heap_bytes=heap(),
            node_count=workspace.node_count(),
            math_nodes=workspace.math_node_count(),
            unannotated_math=workspace.unannotated_math_count(),
        )


def threshold_breaches(snapshot: ResourceSnapshot, settings: WatchdogSettings) -> list[str]:
    """Return a description of every threshold exceeded by ``snapshot``."""
    breaches: list[str] = []
    if snapshot.heap_mb > settings.max_heap_mb:
        breaches.append(f"heap {snapshot.heap_mb:.0f}MB > {settings.max_heap_mb:.0f}MB")
    if snapshot.node_count > settings.max_nodes:
        breaches.append(f"nodes {snapshot.node_count} > {settings.max_nodes}")
    if snapshot.math_nodes > settings.max_math_nodes:
        breaches.append(f"math nodes {snapshot.math_nodes} > {settings.max_math_nodes}")
    return breaches


class Watchdog:
    """Background loop comparing resource samples against fixed thresholds."""

    def __init__(
        self,
        sampler: Callable[[], ResourceSnapshot],
        settings: WatchdogSettings,
        on_breach: Callable[[ResourceSnapshot, list[str]], None],
    ) -> None:
        self.sampler = sampler
        self.settings = settings
        self.on_breach = on_breach
        self.last_snapshot: ResourceSnapshot | None = None
        self._stop = Event()
        self._thread: Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def check(self) -> list[str]:
        """Take one sample and report breaches to the callback."""
        snapshot = self.sampler()
        self.last_snapshot = snapshot
        breaches = threshold_breaches(snapshot, self.settings)
        if breaches:
            logger.warning("Resource thresholds exceeded: %s", "; ".join(breaches))
            self.on_breach(snapshot, breaches)
        return breaches

    def _run(self) -> None:
        if self._stop.wait(self.settings.start_delay):
            return
        while not self._stop.is_set():
            try:
                self.check()
            except Exception as exc:  # noqa: BLE001 - sampling must not kill the loop
                logger.warning("Resource sampling failed: %s", exc, exc_info=exc)
            if self._stop.wait(self.settings.interval):
                return

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = Thread(target=self._run, name="pandocflow-watchdog", daemon=True)
        self._thread.start()
        logger.debug("Watchdog started (interval %.1fs)", self.settings.interval)

    def stop(self, timeout: float | None = 1.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
        self._thread = None


__all__ = [
    "ResourceSnapshot",
    "Watchdog",
    "process_heap_bytes",
    "sample_workspace",
    "threshold_breaches",
]
