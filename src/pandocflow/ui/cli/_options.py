"""Shared Typer option definitions for CLI commands."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer


INPUTS_PANEL = "Input Handling"
ENGINE_PANEL = "Engine"
OUTPUT_PANEL = "Output"
DIAGNOSTICS_PANEL = "Diagnostics"

InputPathArgument = Annotated[
    Path,
    typer.Argument(
        metavar="INPUT",
        help="LaTeX source document to process.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
        resolve_path=True,
        rich_help_panel=INPUTS_PANEL,
    ),
]

ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="YAML file overriding pipeline thresholds and timeouts.",
        exists=True,
        dir_okay=False,
        rich_help_panel=INPUTS_PANEL,
    ),
]

EngineArgumentsOption = Annotated[
    str | None,
    typer.Option(
        "--args",
        help="Pandoc arguments (defaults to the configured engine arguments).",
        rich_help_panel=ENGINE_PANEL,
    ),
]

TypesetOption = Annotated[
    bool,
    typer.Option(
        "--typeset/--no-typeset",
        help="Wrap math into render nodes carrying TeX annotations.",
        rich_help_panel=ENGINE_PANEL,
    ),
]

OutputPathOption = Annotated[
    Path | None,
    typer.Option(
        "--output",
        "-o",
        help="Write HTML to this file instead of stdout.",
        dir_okay=False,
        rich_help_panel=OUTPUT_PANEL,
    ),
]

DebugHtmlOption = Annotated[
    bool,
    typer.Option(
        "--debug-html",
        help="Persist the assembled HTML next to the output for troubleshooting.",
        rich_help_panel=DIAGNOSTICS_PANEL,
    ),
]
