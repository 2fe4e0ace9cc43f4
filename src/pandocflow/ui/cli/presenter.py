"""Rich presenters for CLI output and diagnostics."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING

from rich import box
from rich.table import Table

from pandocflow.api.service import DocumentInspection
from pandocflow.core.complexity import recommendations
from pandocflow.core.conversion.orchestrator import ConversionResult

from .state import CLIState


if TYPE_CHECKING:  # pragma: no cover - typing only
    from rich.console import Console


def _build_table(
    *,
    title: str | None,
    columns: Sequence[str],
    header_style: str = "bold cyan",
) -> Table:
    """Create a Rich table with the house style."""
    table = Table(title=title or None, box=box.SQUARE, show_edge=True, header_style=header_style)
    for column in columns:
        table.add_column(column)
    return table


def _format_path(path: Path) -> str:
    resolved = path.resolve()
    try:
        return str(resolved.relative_to(Path.cwd()))
    except ValueError:
        return str(resolved)


def _console(state: CLIState, *, stderr: bool = False) -> Console:
    return state.err_console if stderr else state.console


def present_inspection(state: CLIState, inspection: DocumentInspection) -> None:
    """Print the complexity profile, chunk plan and cross-reference statistics."""
    console = _console(state)
    profile = inspection.profile

    summary = _build_table(title="Complexity", columns=("Metric", "Value"))
    summary.add_row("Score", f"{profile.score:.1f}")
    summary.add_row("Level", profile.level.value)
    summary.add_row("Strategy", profile.strategy)
    summary.add_row("Length", str(profile.length))
    summary.add_row("Estimated time", f"{profile.estimated_seconds:.1f}s")
    summary.add_row("Timeout", f"{profile.timeout:.1f}s")
    summary.add_row("Memory impact", profile.memory_impact)
    for name, count in profile.indicators.items():
        if count:
            summary.add_row(name.replace("_", " "), str(count))
    console.print(summary)
    for note in recommendations(profile):
        console.print(f"[cyan]note:[/cyan] {note}")

    if profile.requires_chunking:
        chunks = _build_table(title="Chunk plan", columns=("#", "Kind", "Title", "Size"))
        for chunk in inspection.chunks:
            chunks.add_row(
                str(chunk.number), chunk.kind.value, chunk.title, str(len(chunk.raw_content))
            )
        console.print(chunks)

    stats = inspection.preprocessing.statistics
    refs = _build_table(title="Cross-references", columns=("Metric", "Value"))
    refs.add_row("Labels", str(stats.labels_found))
    refs.add_row("References", str(stats.references_found))
    refs.add_row("Anchors", str(stats.anchors_injected))
    refs.add_row("Numbered equations", str(stats.equation_labels_with_numbers))
    refs.add_row("Orphaned", ", ".join(stats.orphaned_references) or "-")
    if stats.duplicate_labels:
        refs.add_row("Duplicates", ", ".join(stats.duplicate_labels))
    console.print(refs)

    validation = inspection.validation
    if validation.issues or validation.warnings:
        issues = _build_table(title="Validation", columns=("Severity", "Message"))
        for issue in validation.issues:
            issues.add_row("[red]error[/red]", issue)
        for warning in validation.warnings:
            issues.add_row("[yellow]warning[/yellow]", warning)
        console.print(issues)


def present_conversion_summary(
    state: CLIState, result: ConversionResult, output: Path | None
) -> None:
    """Print a short summary of a finished conversion on stderr.

    Pipeline activity recorded by the CLI emitter since the last summary
    (fallbacks, cleanups, status errors) is consumed and reported too.
    """
    console = _console(state, stderr=True)
    activity = state.take_activity()
    table = _build_table(title="Conversion", columns=("Item", "Value"))
    table.add_row("Strategy", result.strategy)
    table.add_row("Complexity", f"{result.profile.level.value} ({result.profile.score:.1f})")
    if result.chunks:
        table.add_row("Chunks", f"{result.chunks - result.failed_chunks}/{result.chunks} converted")
    table.add_row("Attempts", str(len(result.attempts)))
    for fallback in activity.fallbacks:
        table.add_row("Fallback", fallback)
    if activity.cleanups:
        table.add_row("Cleanups", f"{activity.cleanups} ({activity.removed} element(s) removed)")
    for message in activity.status_errors:
        table.add_row("[red]Error[/red]", message)
    if result.crossrefs is not None:
        table.add_row("Equation anchors", str(result.crossrefs.anchors_placed))
    if output is not None:
        table.add_row("Output", _format_path(output))
    console.print(table)


__all__ = ["present_conversion_summary", "present_inspection"]
