"""Implementation of the `pandocflow convert` command."""

from __future__ import annotations

import typer

from pandocflow.adapters.engine.pandoc import PandocEngine
from pandocflow.api.service import ConversionService
from pandocflow.core.config import load_settings
from pandocflow.core.conversion.debug import ConversionError, persist_debug_artifacts
from pandocflow.core.exceptions import SettingsError
from pandocflow.resources.workspace import TexAnnotationTypesetter

from .._options import (
    ConfigOption,
    DebugHtmlOption,
    EngineArgumentsOption,
    InputPathArgument,
    OutputPathOption,
    TypesetOption,
)
from ..diagnostics import CliEmitter, CliStatus
from ..presenter import present_conversion_summary
from ..state import debug_enabled, emit_error, get_cli_state
from ..utils import read_source, write_output_file


def convert(
    input_path: InputPathArgument,
    output: OutputPathOption = None,
    arguments: EngineArgumentsOption = None,
    config: ConfigOption = None,
    typeset: TypesetOption = False,
    debug_html: DebugHtmlOption = False,
) -> None:
    """Convert a LaTeX document to HTML through pandoc."""

    state = get_cli_state()
    try:
        settings = load_settings(config)
    except SettingsError as exc:
        emit_error(str(exc), exception=exc)
        raise typer.Exit(code=1) from exc

    service = ConversionService(
        settings,
        engine=PandocEngine(settings.engine.executable),
        typesetter=TexAnnotationTypesetter() if typeset else None,
        status=CliStatus(state),
        emitter=CliEmitter(state),
    )
    try:
        with service:
            result = service.convert(read_source(input_path), arguments)
    except ConversionError as exc:
        if debug_enabled():
            raise
        emit_error(str(exc), exception=exc)
        raise typer.Exit(code=1) from exc

    if output is not None:
        write_output_file(output, result.html)
    else:
        typer.echo(result.html)

    if debug_html:
        target_dir = output.parent if output is not None else input_path.parent
        persist_debug_artifacts(target_dir, input_path, result.html, result.attempts)

    if output is not None or state.verbosity >= 1:
        present_conversion_summary(state, result, output)

    if not result.success:
        raise typer.Exit(code=1)


__all__ = ["convert"]
