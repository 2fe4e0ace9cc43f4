"""Race engine calls against a deadline.

An engine call cannot be interrupted once started. :func:`run_with_deadline`
runs it on a daemon thread and stops waiting when the deadline expires; the
abandoned call keeps running and its late result is discarded.
"""

from __future__ import annotations

from collections.abc import Callable
import logging
from threading import Lock, Thread
from typing import TypeVar

from pandocflow.core.exceptions import EngineTimeoutError


logger = logging.getLogger(__name__)

T = TypeVar("T")


class AbandonedCalls:
    """Registry of engine threads that outlived their deadline."""

    def __init__(self) -> None:
        self._threads: list[Thread] = []
        self._lock = Lock()

    def add(self, thread: Thread) -> None:
        with self._lock:
            self._threads.append(thread)

    def prune(self) -> int:
        """Forget finished threads, returning how many were dropped."""
        with self._lock:
            alive = [thread for thread in self._threads if thread.is_alive()]
            dropped = len(self._threads) - len(alive)
            self._threads = alive
        return dropped

    def __len__(self) -> int:
        with self._lock:
            return sum(1 for thread in self._threads if thread.is_alive())


ABANDONED = AbandonedCalls()


def run_with_deadline(
    func: Callable[[], T],
    timeout: float,
    *,
    name: str = "pandocflow-engine",
    abandoned: AbandonedCalls | None = None,
) -> T:
    """Return ``func()`` or raise :class:`EngineTimeoutError` after ``timeout`` seconds."""
    result: list[T] = []
    error: list[BaseException] = []

    def target() -> None:
        try:
            result.append(func())
        except BaseException as exc:  # pragma: no cover - pass through
            error.append(exc)

    thread = Thread(target=target, name=name, daemon=True)
    thread.start()
    thread.join(timeout=timeout)
    if thread.is_alive():
        (abandoned if abandoned is not None else ABANDONED).add(thread)
        logger.warning("Engine call abandoned after %.1fs", timeout)
        raise EngineTimeoutError(f"Engine call timed out after {timeout:g}s", timeout=timeout)

    if error:
        raise error[0]
    return result[0]


__all__ = ["ABANDONED", "AbandonedCalls", "run_with_deadline"]
