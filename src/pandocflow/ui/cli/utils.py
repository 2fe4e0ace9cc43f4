"""Auxiliary helpers used by CLI commands."""

from __future__ import annotations

from pathlib import Path


def write_output_file(target: Path, content: str) -> None:
    """Persist HTML content to disk, creating parent directories as needed."""
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
    except OSError as exc:  # pragma: no cover - filesystem errors
        raise OSError(f"Failed to write HTML output to '{target}': {exc}") from exc


def read_source(path: Path) -> str:
    """Read a LaTeX source, tolerating stray non-UTF-8 bytes."""
    return path.read_text(encoding="utf-8", errors="replace")


__all__ = ["read_source", "write_output_file"]
