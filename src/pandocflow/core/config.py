"""Configuration models used by the conversion pipeline.

ComplexitySettings

`max_score` (`float`)
: Complexity score above which a document is converted in chunks.

`max_length` (`int`)
: Source length (characters) above which a document is converted in chunks.

`basic_below`, `intermediate_below`, `advanced_below` (`float`)
: Exclusive score boundaries between the `basic`, `intermediate`, `advanced`
  and `complex` levels.

`seconds_per_point` (`float`)
: Predicted processing time contributed by each complexity point.

`max_estimate` (`float`)
: Upper bound applied to the predicted processing time.

ChunkSettings

`max_size` (`int`)
: Largest fragment, in characters, produced by fixed-size windowing.

`snap_window` (`int`)
: Distance around a window boundary searched for a paragraph break.

`title_length` (`int`)
: Maximum length of a chunk title derived from a section heading.

TimeoutSettings

`document` (`float`)
: Minimum deadline applied to a whole-document conversion.

`chunk` (`float`)
: Deadline applied to each chunk conversion.

`simplified` (`float`)
: Deadline applied to the simplified-argument retry.

`chunk_delay` (`float`)
: Pause between two chunk conversions.

WatchdogSettings

`interval` (`float`)
: Seconds between two resource samples.

`start_delay` (`float`)
: Seconds before the first resource sample.

`max_heap_mb` (`float`)
: Resident memory threshold.

`max_nodes` (`int`)
: Element count threshold for the render workspace.

`max_math_nodes` (`int`)
: Rendered math node threshold.

`annotation_recheck` (`float`)
: Delay before a deferred cleanup re-checks math annotations.

`history_size` (`int`)
: Number of cleanup events retained.

EngineSettings

`executable` (`str`)
: Name or path of the pandoc executable.

`arguments` (`str`)
: Default engine arguments.

`simplified_arguments` (`str`)
: Arguments used when retrying after an engine trap.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
import yaml

from .exceptions import SettingsError


class ComplexitySettings(BaseModel):
    """Thresholds driving the complexity assessment."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    max_score: float = 50
    max_length: int = 10_000
    basic_below: float = 10
    intermediate_below: float = 30
    advanced_below: float = 70
    seconds_per_point: float = 0.1
    max_estimate: float = 15.0

    @model_validator(mode="after")
    def check_levels(self) -> ComplexitySettings:
        """Ensure level boundaries are strictly increasing."""
        if not self.basic_below < self.intermediate_below < self.advanced_below:
            raise ValueError("complexity level boundaries must be strictly increasing")
        return self


class ChunkSettings(BaseModel):
    """Sizes used by the chunk decomposer."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    max_size: int = Field(default=3000, gt=0)
    snap_window: int = Field(default=200, ge=0)
    title_length: int = Field(default=50, gt=0)


class TimeoutSettings(BaseModel):
    """Deadlines applied to engine calls, in seconds."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    document: float = Field(default=10.0, gt=0)
    chunk: float = Field(default=5.0, gt=0)
    simplified: float = Field(default=8.0, gt=0)
    chunk_delay: float = Field(default=0.05, ge=0)


class WatchdogSettings(BaseModel):
    """Resource thresholds observed by the watchdog."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    interval: float = Field(default=10.0, gt=0)
    start_delay: float = Field(default=5.0, ge=0)
    max_heap_mb: float = Field(default=200.0, gt=0)
    max_nodes: int = Field(default=5000, gt=0)
    max_math_nodes: int = Field(default=200, gt=0)
    annotation_recheck: float = Field(default=3.0, ge=0)
    history_size: int = Field(default=20, gt=0)


class EngineSettings(BaseModel):
    """Invocation of the external conversion engine."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    executable: str = "pandoc"
    arguments: str = "--from latex --to html5 --mathjax"
    simplified_arguments: str = "--from latex --to html5 --mathml"


class PipelineSettings(BaseModel):
    """Aggregate settings for a conversion session."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    complexity: ComplexitySettings = Field(default_factory=ComplexitySettings)
    chunking: ChunkSettings = Field(default_factory=ChunkSettings)
    timeouts: TimeoutSettings = Field(default_factory=TimeoutSettings)
    watchdog: WatchdogSettings = Field(default_factory=WatchdogSettings)
    engine: EngineSettings = Field(default_factory=EngineSettings)


DEFAULT_SETTINGS = PipelineSettings()


def settings_from_mapping(data: dict[str, Any] | None) -> PipelineSettings:
    """Validate a raw mapping into pipeline settings."""
    try:
        return PipelineSettings.model_validate(data or {})
    except ValidationError as exc:
        raise SettingsError(f"Invalid pipeline settings: {exc}") from exc


def load_settings(path: Path | None) -> PipelineSettings:
    """Load pipeline settings from a YAML file, falling back to the defaults."""
    if path is None:
        return DEFAULT_SETTINGS
    try:
        payload = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise SettingsError(f"Unable to read settings file '{path}': {exc}") from exc
    except yaml.YAMLError as exc:
        raise SettingsError(f"Settings file '{path}' is not valid YAML: {exc}") from exc
    if payload is not None and not isinstance(payload, dict):
        raise SettingsError(f"Settings file '{path}' must contain a mapping.")
    return settings_from_mapping(payload)


__all__ = [
    "DEFAULT_SETTINGS",
    "ChunkSettings",
    "ComplexitySettings",
    "EngineSettings",
    "PipelineSettings",
    "TimeoutSettings",
    "WatchdogSettings",
    "load_settings",
    "settings_from_mapping",
]
