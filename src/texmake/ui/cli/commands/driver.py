"""Post-processing callbacks run by exported Makefiles."""

from __future__ import annotations

from pathlib import Path

import typer

from texmake.adapters.drivers import (
    DriverInvocation,
    GlossaryInvocation,
    NomenclatureInvocation,
    SynctexInvocation,
    run_driver,
)
from texmake.core.exceptions import TexmakeError

from .._options import (
    DriverTargetOption,
    FlagsOption,
    MakeindexOption,
    OutputDirOption,
    SourceDirOption,
    WorkdirOption,
    XindyOption,
)
from ..diagnostics import CliEmitter
from ..state import get_cli_state
from ..utils import fail


driver_app = typer.Typer(
    help="Run a post-processing driver between compiler passes.",
    no_args_is_help=True,
)


def _execute(factory: type[DriverInvocation], **parameters: object) -> None:
    state = get_cli_state()
    try:
        invocation = factory(**parameters)  # type: ignore[arg-type]
        run_driver(
            invocation,
            console=state.console,
            emitter=CliEmitter(state),
        )
    except TexmakeError as exc:
        fail(exc)


def _workdir(value: Path | None) -> Path:
    return value if value is not None else Path.cwd()


@driver_app.command("glossary")
def glossary(
    target: DriverTargetOption = None,
    workdir: WorkdirOption = None,
    makeindex: MakeindexOption = None,
    flags: FlagsOption = None,
    xindy: XindyOption = None,
) -> None:
    """Run makeindex or xindy for every glossary declared in <target>.aux."""
    _execute(
        GlossaryInvocation,
        target=target,
        workdir=_workdir(workdir),
        makeindex=makeindex,
        flags=flags,
        xindy=xindy,
    )


@driver_app.command("nomenclature")
def nomenclature(
    target: DriverTargetOption = None,
    workdir: WorkdirOption = None,
    makeindex: MakeindexOption = None,
    flags: FlagsOption = None,
) -> None:
    """Sort <target>.nlo into <target>.nls."""
    _execute(
        NomenclatureInvocation,
        target=target,
        workdir=_workdir(workdir),
        makeindex=makeindex,
        flags=flags,
    )


@driver_app.command("synctex")
def synctex(
    target: DriverTargetOption = None,
    source_dir: SourceDirOption = None,
    output_dir: OutputDirOption = None,
) -> None:
    """Point <target>.synctex.gz at the source files."""
    _execute(
        SynctexInvocation,
        target=target,
        source_dir=source_dir,
        output_dir=output_dir,
    )


__all__ = ["driver_app", "glossary", "nomenclature", "synctex"]
