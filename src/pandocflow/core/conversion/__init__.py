"""Conversion orchestration and output post-processing."""

from __future__ import annotations

from .debug import ConversionError, raise_conversion_error, record_event


__all__ = ["ConversionError", "raise_conversion_error", "record_event"]
