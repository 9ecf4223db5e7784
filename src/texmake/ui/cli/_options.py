"""Shared Typer option definitions for CLI commands."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer


PROJECT_PANEL = "Project"
DRIVER_PANEL = "Driver Parameters"
DIAGNOSTICS_PANEL = "Diagnostics"

ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="Project configuration file (defaults to texmake.yml in the working directory).",
        dir_okay=True,
        file_okay=True,
        resolve_path=True,
        rich_help_panel=PROJECT_PANEL,
    ),
]

VerboseOption = Annotated[
    int,
    typer.Option(
        "--verbose",
        "-v",
        count=True,
        help="Increase CLI verbosity. Combine multiple times for additional diagnostics.",
        rich_help_panel=DIAGNOSTICS_PANEL,
    ),
]

DebugOption = Annotated[
    bool,
    typer.Option(
        "--debug",
        help="Show full tracebacks when an unexpected error occurs.",
        rich_help_panel=DIAGNOSTICS_PANEL,
    ),
]

TargetArgument = Annotated[
    str | None,
    typer.Argument(
        metavar="TARGET",
        help="Target to process (dvi, pdf, ps, safepdf, html, auxclean); "
        "defaults to each document's default target.",
    ),
]

DocumentOption = Annotated[
    str | None,
    typer.Option(
        "--document",
        "-d",
        help="Restrict the command to one document (target name or main input).",
        rich_help_panel=PROJECT_PANEL,
    ),
]

ForceOption = Annotated[
    bool,
    typer.Option(
        "--force",
        "-f",
        help="Run every step even when outputs look up to date.",
    ),
]

DriverTargetOption = Annotated[
    str | None,
    typer.Option("--target", help="Target name of the document.", rich_help_panel=DRIVER_PANEL),
]

WorkdirOption = Annotated[
    Path | None,
    typer.Option(
        "--workdir",
        help="Directory holding the auxiliary files.",
        rich_help_panel=DRIVER_PANEL,
    ),
]

MakeindexOption = Annotated[
    Path | None,
    typer.Option("--makeindex", help="makeindex executable.", rich_help_panel=DRIVER_PANEL),
]

FlagsOption = Annotated[
    str | None,
    typer.Option(
        "--flags",
        help="Extra arguments for the index processor, split like a shell would.",
        rich_help_panel=DRIVER_PANEL,
    ),
]

XindyOption = Annotated[
    Path | None,
    typer.Option("--xindy", help="xindy executable.", rich_help_panel=DRIVER_PANEL),
]

SourceDirOption = Annotated[
    Path | None,
    typer.Option("--source-dir", help="Source directory.", rich_help_panel=DRIVER_PANEL),
]

OutputDirOption = Annotated[
    Path | None,
    typer.Option("--output-dir", help="Output directory.", rich_help_panel=DRIVER_PANEL),
]
