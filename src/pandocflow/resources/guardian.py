"""Session-wide resource guardian: watchdog, cleanup and annotation protection."""

from __future__ import annotations

from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
import logging
from threading import Lock, Timer
import time

from pandocflow.core.config import DEFAULT_SETTINGS, PipelineSettings
from pandocflow.core.conversion.debug import record_event
from pandocflow.core.crossrefs import CrossReferenceRegistry
from pandocflow.core.diagnostics import DiagnosticEmitter

from .cleanup import CleanupCoordinator, CleanupReport, CleanupTier
from .watchdog import ResourceSnapshot, Watchdog, sample_workspace
from .workspace import RenderWorkspace


logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class CleanupEvent:
    timestamp: float
    requested: CleanupTier
    executed: CleanupTier
    reason: str
    before: ResourceSnapshot
    after: ResourceSnapshot
    removed: int


class ResourceGuardian:
    """Own the watchdog and cleanup coordinator for one session.

    Safe and full cleanups are never executed while render nodes in the output
    container lack their TeX annotation: they are deferred, rechecked after
    ``annotation_recheck`` seconds and downgraded to a minimal cleanup when
    annotations are still missing. Stray nodes outside the output container do
    not block cleanup, since the safe tier is what removes them.
    """

    def __init__(
        self,
        workspace: RenderWorkspace,
        registry: CrossReferenceRegistry | None = None,
        settings: PipelineSettings = DEFAULT_SETTINGS,
        *,
        sampler: Callable[[], ResourceSnapshot] | None = None,
        emitter: DiagnosticEmitter | None = None,
    ) -> None:
        self.workspace = workspace
        self.settings = settings
        self.emitter = emitter
        self.coordinator = CleanupCoordinator(workspace, registry)
        self._sampler = sampler or (lambda: sample_workspace(workspace))
        self.watchdog = Watchdog(self.sample, settings.watchdog, self._on_breach)
        self.history: deque[CleanupEvent] = deque(maxlen=settings.watchdog.history_size)
        self._pending: Timer | None = None
        self._lock = Lock()
        self._started = False

    def __enter__(self) -> ResourceGuardian:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    @property
    def started(self) -> bool:
        return self._started

    def start(self) -> None:
        if self._started:
            return
        self._started = True
        self.watchdog.start()

    def stop(self) -> None:
        self.watchdog.stop()
        with self._lock:
            if self._pending is not None:
                self._pending.cancel()
                self._pending = None
        self._started = False

    def register_cache(self, name: str, clear: Callable[[], object]) -> None:
        self.coordinator.register_cache(name, clear)

    def sample(self) -> ResourceSnapshot:
        return self._sampler()

    def annotations_pending(self) -> bool:
        """Return whether rendered output still holds nodes without annotation."""
        return self.workspace.unannotated_math_count(in_output=True) > 0

    @property
    def deferred(self) -> bool:
        with self._lock:
            return self._pending is not None

    def request_cleanup(self, tier: CleanupTier, reason: str) -> CleanupReport | None:
        """Run ``tier`` now, or defer it while annotations are pending.

        Returns ``None`` when the cleanup was deferred.
        """
        if tier is CleanupTier.MINIMAL or not self.annotations_pending():
            return self._execute(tier, tier, reason)
        logger.info("Deferring %s cleanup: math annotations still pending", tier.value)
        self._schedule_recheck(tier, reason)
        return None

    def emergency_cleanup(self, reason: str = "emergency") -> CleanupReport | None:
        return self.request_cleanup(CleanupTier.FULL, reason)

    def before_conversion(self) -> CleanupReport | None:
        return self.request_cleanup(CleanupTier.SAFE, "before conversion")

    def after_failure(self) -> CleanupReport | None:
        return self.request_cleanup(CleanupTier.MINIMAL, "after failed attempt")

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Wait for a deferred cleanup to run; return whether none is pending."""
        with self._lock:
            pending = self._pending
        if pending is not None:
            pending.join(timeout)
        return not self.deferred

    def _schedule_recheck(self, tier: CleanupTier, reason: str) -> None:
        with self._lock:
            if self._pending is not None:
                return
            timer = Timer(self.settings.watchdog.annotation_recheck, self._recheck, (tier, reason))
            timer.daemon = True
            self._pending = timer
        timer.start()

    def _recheck(self, tier: CleanupTier, reason: str) -> None:
        try:
            if self.annotations_pending():
                logger.info("Annotations still pending; downgrading %s cleanup", tier.value)
                self._execute(tier, CleanupTier.MINIMAL, f"{reason} (annotations pending)")
            else:
                self._execute(tier, tier, reason)
        finally:
            with self._lock:
                self._pending = None

    def _execute(self, requested: CleanupTier, tier: CleanupTier, reason: str) -> CleanupReport:
        before = self.sample()
        report = self.coordinator.run(tier)
        after = self.sample()
        self.history.append(
            CleanupEvent(
                timestamp=time.time(),
                requested=requested,
                executed=tier,
                reason=reason,
                before=before,
                after=after,
                removed=report.removed,
            )
        )
        record_event(
            self.emitter,
            "cleanup",
            {"tier": tier.value, "removed": report.removed, "reason": reason},
        )
        return report

    def _on_breach(self, snapshot: ResourceSnapshot, breaches: list[str]) -> None:
        self.request_cleanup(CleanupTier.SAFE, "threshold: " + "; ".join(breaches))

    def status(self) -> dict[str, object]:
        snapshot = self.watchdog.last_snapshot
        return {
            "started": self._started,
            "watchdog_running": self.watchdog.running,
            "deferred": self.deferred,
            "cleanups": len(self.history),
            "last_snapshot": snapshot,
        }


__all__ = ["CleanupEvent", "ResourceGuardian"]
