"""CLI command implementations exposed via `pandocflow.ui.cli`."""

from __future__ import annotations

from .convert import convert
from .inspect import inspect


__all__ = ["convert", "inspect"]
