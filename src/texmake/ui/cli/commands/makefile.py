"""Export the project as a Makefile."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from texmake.adapters.makefile import MakefileExporter
from texmake.core.exceptions import TexmakeError

from ..diagnostics import CliEmitter
from ..state import get_cli_state
from ..utils import fail, load_project


def makefile(
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Where to write the Makefile (defaults to <output_dir>/Makefile).",
        ),
    ] = None,
) -> None:
    """Write a Makefile running the same steps as `texmake build`."""
    state = get_cli_state()
    try:
        project = load_project(state, CliEmitter(state))
        destination = output or project.environment.output_path("Makefile")
        exporter = MakefileExporter(project.environment.program)
        written = exporter.write(project.graphs, destination)
        state.console.print(f"Wrote {written}", markup=False, soft_wrap=True)
    except TexmakeError as exc:
        fail(exc)
    except OSError as exc:
        fail(exc)


__all__ = ["makefile"]
