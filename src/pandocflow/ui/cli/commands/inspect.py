"""Implementation of the `pandocflow inspect` command."""

from __future__ import annotations

import typer

from pandocflow.api.service import ConversionService
from pandocflow.core.config import load_settings
from pandocflow.core.exceptions import SettingsError

from .._options import ConfigOption, InputPathArgument
from ..presenter import present_inspection
from ..state import emit_error, get_cli_state
from ..utils import read_source


def inspect(
    input_path: InputPathArgument,
    config: ConfigOption = None,
) -> None:
    """Report complexity, chunk plan and cross-references without converting."""

    state = get_cli_state()
    try:
        settings = load_settings(config)
    except SettingsError as exc:
        emit_error(str(exc), exception=exc)
        raise typer.Exit(code=1) from exc

    inspection = ConversionService(settings).inspect(read_source(input_path))
    present_inspection(state, inspection)


__all__ = ["inspect"]
