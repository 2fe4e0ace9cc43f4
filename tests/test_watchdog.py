from __future__ import annotations

from threading import Event

from pandocflow.core.config import WatchdogSettings
from pandocflow.resources.watchdog import (
    MEGABYTE,
    ResourceSnapshot,
    Watchdog,
    process_heap_bytes,
    sample_workspace,
    threshold_breaches,
)
from pandocflow.resources.workspace import RenderWorkspace


def _snapshot(heap_mb: float = 10, nodes: int = 10, math: int = 0) -> ResourceSnapshot:
    return ResourceSnapshot(
        timestamp=0.0,
        heap_bytes=int(heap_mb * MEGABYTE),
        node_count=nodes,
        math_nodes=math,
    )


def test_sample_reads_workspace_counts() -> None:
    workspace = RenderWorkspace()
    workspace.render("<p>a</p><mjx-container></mjx-container>")

    snapshot = sample_workspace(workspace, heap=lambda: 5 * MEGABYTE)

    assert snapshot.heap_mb == 5
    assert snapshot.node_count == 6
    assert snapshot.math_nodes == 1
    assert snapshot.unannotated_math == 1


def test_process_heap_is_positive() -> None:
    assert process_heap_bytes() > 0


def test_every_threshold_is_reported() -> None:
    settings = WatchdogSettings(max_heap_mb=100, max_nodes=50, max_math_nodes=5)

    assert threshold_breaches(_snapshot(), settings) == []
    breaches = threshold_breaches(_snapshot(heap_mb=150, nodes=51, math=6), settings)

    assert breaches == ["heap 150MB > 100MB", "nodes 51 > 50", "math nodes 6 > 5"]


def test_check_only_calls_back_on_breach() -> None:
    calls: list[list[str]] = []
    samples = iter([_snapshot(), _snapshot(nodes=10_000)])
    watchdog = Watchdog(lambda: next(samples), WatchdogSettings(), lambda s, b: calls.append(b))

    assert watchdog.check() == []
    assert watchdog.check() == ["nodes 10000 > 5000"]
    assert calls == [["nodes 10000 > 5000"]]
    assert watchdog.last_snapshot.node_count == 10_000


def test_loop_samples_until_stopped_and_survives_sampler_errors() -> None:
    sampled = Event()
    attempts: list[int] = []

    def sampler() -> ResourceSnapshot:
        attempts.append(1)
        if len(attempts) == 1:
            raise RuntimeError("transient")
        if len(attempts) >= 3:
            sampled.set()
        return _snapshot()

    watchdog = Watchdog(
        sampler, WatchdogSettings(start_delay=0, interval=0.01), lambda s, b: None
    )
    watchdog.start()
    try:
        assert sampled.wait(2.0)
        assert watchdog.running
    finally:
        watchdog.stop()

    assert not watchdog.running
