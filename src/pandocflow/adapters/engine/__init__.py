"""Conversion engine adapters."""

from __future__ import annotations

from .deadline import ABANDONED, AbandonedCalls, run_with_deadline
from .pandoc import ConversionEngine, PandocEngine, remove_argument


__all__ = [
    "ABANDONED",
    "AbandonedCalls",
    "ConversionEngine",
    "PandocEngine",
    "remove_argument",
    "run_with_deadline",
]
