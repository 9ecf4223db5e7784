"""Post-processing drivers run between compiler passes.

Each driver is described by a frozen invocation object holding its named
parameters. Invocations are created when the build graph is assembled and
executed later, either in-process through :func:`run_driver` or by an external
build engine calling ``texmake driver <kind>`` with :meth:`to_arguments`.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
import gzip
from pathlib import Path
import re
import shlex
import shutil
from typing import ClassVar

from rich.console import Console

from texmake.core.auxfiles import (
    DEFAULT_GLOSSARY,
    Registration,
    attach_hints,
    find_registrations,
    normalise_language,
    parse_index_style,
    read_aux,
    with_default,
)
from texmake.core.diagnostics import DiagnosticEmitter, ensure_emitter
from texmake.core.exceptions import (
    DriverParameterError,
    IncompatibleLanguageCodepage,
    MissingAuxFile,
    MissingSynctexFile,
    PostProcessingError,
    ToolNotFound,
)

from .process import ToolRun, run_tool


NOMENCLATURE_STYLE = "nomencl.ist"

_XINDY_CODEPAGE_ERROR = re.compile(
    r"Cannot locate xindy module for language (?P<language>\S+) in codepage (?P<codepage>\S+?)\.?$",
    re.MULTILINE,
)
_SYNCTEX_INPUT = re.compile(r"^(Input:\d+:)([^/\n][^\n]*)$", re.MULTILINE)
_SYNCTEX_TEXT: dict[str, str] = {"encoding": "utf-8", "errors": "surrogateescape", "newline": ""}

Runner = Callable[..., ToolRun]


class DriverKind(str, Enum):
    """Closed set of post-processing drivers."""

    GLOSSARY = "glossary"
    NOMENCLATURE = "nomenclature"
    SYNCTEX = "synctex"


def _require(invocation: object, *names: str) -> None:
    missing = []
    for name in names:
        value = getattr(invocation, name)
        if value is None or (isinstance(value, str | Path) and not str(value).strip()):
            missing.append(name)
    if missing:
        kind = getattr(invocation, "kind", None)
        label = kind.value if isinstance(kind, DriverKind) else type(invocation).__name__
        raise DriverParameterError(
            f"The {label} driver needs the parameter(s): {', '.join(missing)}."
        )


def _flags(values: Sequence[str] | str | None) -> tuple[str, ...]:
    if values is None:
        return ()
    if isinstance(values, str):
        return tuple(shlex.split(values))
    return tuple(str(value) for value in values)


@dataclass(frozen=True, slots=True)
class GlossaryInvocation:
    """Parameters of the glossary driver."""

    kind: ClassVar[DriverKind] = DriverKind.GLOSSARY

    target: str
    workdir: Path
    makeindex: Path | None
    flags: tuple[str, ...] = ()
    xindy: Path | None = None

    def __post_init__(self) -> None:
        _require(self, "target", "workdir", "makeindex")
        object.__setattr__(self, "flags", _flags(self.flags))

    def to_arguments(self) -> list[str]:
        arguments = [
            "--target",
            self.target,
            "--workdir",
            str(self.workdir),
            "--makeindex",
            str(self.makeindex),
        ]
        if self.flags:
            arguments.extend(["--flags", shlex.join(self.flags)])
        if self.xindy is not None:
            arguments.extend(["--xindy", str(self.xindy)])
        return arguments


@dataclass(frozen=True, slots=True)
class NomenclatureInvocation:
    """Parameters of the nomenclature driver."""

    kind: ClassVar[DriverKind] = DriverKind.NOMENCLATURE

    target: str
    workdir: Path
    makeindex: Path | None
    flags: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        _require(self, "target", "workdir", "makeindex")
        object.__setattr__(self, "flags", _flags(self.flags))

    def to_arguments(self) -> list[str]:
        arguments = [
            "--target",
            self.target,
            "--workdir",
            str(self.workdir),
            "--makeindex",
            str(self.makeindex),
        ]
        if self.flags:
            arguments.extend(["--flags", shlex.join(self.flags)])
        return arguments


@dataclass(frozen=True, slots=True)
class SynctexInvocation:
    """Parameters of the synctex path-correction driver."""

    kind: ClassVar[DriverKind] = DriverKind.SYNCTEX

    target: str
    source_dir: Path
    output_dir: Path

    def __post_init__(self) -> None:
        _require(self, "target", "source_dir", "output_dir")

    def to_arguments(self) -> list[str]:
        return [
            "--target",
            self.target,
            "--source-dir",
            str(self.source_dir),
            "--output-dir",
            str(self.output_dir),
        ]


DriverInvocation = GlossaryInvocation | NomenclatureInvocation | SynctexInvocation


def driver_command(program: Sequence[str], invocation: DriverInvocation) -> list[str]:
    """Return the command line calling back into ``texmake driver``."""
    return [*program, "driver", invocation.kind.value, *invocation.to_arguments()]


def describe(invocation: DriverInvocation) -> str:
    """Short label used in plans and progress output."""
    return f"{invocation.kind.value} driver ({invocation.target})"


# Glossaries --------------------------------------------------------------------------------


def makeindex_glossary_command(
    invocation: GlossaryInvocation, registration: Registration, style: str
) -> list[str]:
    target = invocation.target
    return [
        str(invocation.makeindex),
        *invocation.flags,
        "-s",
        style,
        "-t",
        f"{target}.{registration.log_suffix}",
        "-o",
        f"{target}.{registration.output_suffix}",
        f"{target}.{registration.input_suffix}",
    ]


def xindy_glossary_command(
    invocation: GlossaryInvocation,
    registration: Registration,
    style: str,
    *,
    with_codepage: bool = True,
) -> list[str]:
    if invocation.xindy is None:
        raise ToolNotFound("xindy", f"The document uses the xindy style {style}.")
    target = invocation.target
    command = [str(invocation.xindy), *invocation.flags]
    if registration.language:
        command.extend(["-L", normalise_language(registration.language)])
    if with_codepage and registration.codepage:
        command.extend(["-C", registration.codepage])
    module = style[: -len(".xdy")] if style.endswith(".xdy") else style
    command.extend(
        [
            "-I",
            "xindy",
            "-M",
            module,
            "-t",
            f"{target}.{registration.log_suffix}",
            "-o",
            f"{target}.{registration.output_suffix}",
            f"{target}.{registration.input_suffix}",
        ]
    )
    return command


def _codepage_conflict(run: ToolRun) -> IncompatibleLanguageCodepage | None:
    match = _XINDY_CODEPAGE_ERROR.search(run.output)
    if match is None:
        return None
    return IncompatibleLanguageCodepage(match.group("language"), match.group("codepage"))


def _failure(label: str, run: ToolRun) -> PostProcessingError:
    detail = run.detail()
    message = f"{label} failed with status {run.returncode}"
    if detail:
        message = f"{message}: {detail}"
    return PostProcessingError(message)


def _run_xindy(
    invocation: GlossaryInvocation,
    registration: Registration,
    style: str,
    *,
    runner: Runner,
    console: Console | None,
    emitter: DiagnosticEmitter,
) -> ToolRun:
    label = f"xindy ({registration.name})"
    run = runner(
        label,
        xindy_glossary_command(invocation, registration, style),
        workdir=invocation.workdir,
        console=console,
    )
    if run.ok:
        return run

    conflict = _codepage_conflict(run)
    if conflict is None:
        raise _failure(label, run)
    if not registration.codepage:
        raise conflict

    emitter.warning(f"{conflict} Retrying with the default codepage.")
    retry = runner(
        label,
        xindy_glossary_command(invocation, registration, style, with_codepage=False),
        workdir=invocation.workdir,
        console=console,
    )
    if retry.ok:
        return retry
    second = _codepage_conflict(retry)
    if second is not None:
        raise second
    raise _failure(label, retry)


def run_glossary_driver(
    invocation: GlossaryInvocation,
    *,
    runner: Runner = run_tool,
    console: Console | None = None,
    emitter: DiagnosticEmitter | None = None,
) -> list[ToolRun]:
    """Run the glossary processor once for every glossary the document declares."""
    emitter = ensure_emitter(emitter)
    target = invocation.target
    text = read_aux(invocation.workdir / f"{target}.aux")
    registrations = with_default(find_registrations(text), attach_hints(DEFAULT_GLOSSARY, text))
    style = parse_index_style(text, default=f"{target}.ist")
    use_xindy = style.endswith(".xdy")

    runs: list[ToolRun] = []
    for registration in registrations:
        if use_xindy:
            runs.append(
                _run_xindy(
                    invocation,
                    registration,
                    style,
                    runner=runner,
                    console=console,
                    emitter=emitter,
                )
            )
            continue
        label = f"makeindex ({registration.name})"
        run = runner(
            label,
            makeindex_glossary_command(invocation, registration, style),
            workdir=invocation.workdir,
            console=console,
        )
        if not run.ok:
            raise _failure(label, run)
        runs.append(run)
    return runs


# Nomenclature ------------------------------------------------------------------------------


def nomenclature_command(invocation: NomenclatureInvocation) -> list[str]:
    target = invocation.target
    return [
        str(invocation.makeindex),
        *invocation.flags,
        f"{target}.nlo",
        "-s",
        NOMENCLATURE_STYLE,
        "-o",
        f"{target}.nls",
    ]


def run_nomenclature_driver(
    invocation: NomenclatureInvocation,
    *,
    runner: Runner = run_tool,
    console: Console | None = None,
) -> ToolRun:
    """Sort the nomenclature entries with makeindex and the nomencl style."""
    source = invocation.workdir / f"{invocation.target}.nlo"
    if not source.exists():
        raise MissingAuxFile(source)
    run = runner(
        "makeindex (nomenclature)",
        nomenclature_command(invocation),
        workdir=invocation.workdir,
        console=console,
    )
    if not run.ok:
        raise _failure("makeindex (nomenclature)", run)
    return run


# Synctex -----------------------------------------------------------------------------------


def correct_synctex_paths(text: str, source_dir: Path | str) -> str:
    """Prefix relative ``Input:`` entries with the absolute source directory."""
    prefix = Path(source_dir).as_posix().rstrip("/")

    def _replace(match: re.Match[str]) -> str:
        return f"{match.group(1)}{prefix}/{match.group(2)}"

    return _SYNCTEX_INPUT.sub(_replace, text)


def run_synctex_driver(
    invocation: SynctexInvocation,
    *,
    console: Console | None = None,
) -> Path:
    """Point the synctex file at the sources instead of the staged copies."""
    target = invocation.target
    compressed = Path(invocation.output_dir) / f"{target}.synctex.gz"
    backup = Path(invocation.output_dir) / f"{target}.synctex.bak.gz"
    if not compressed.exists():
        raise MissingSynctexFile(compressed)

    if console is not None:
        console.print(f"[cyan]Correcting synctex paths in {compressed.name}…[/]")
    with gzip.open(compressed, "rt", **_SYNCTEX_TEXT) as handle:
        content = handle.read()
    shutil.copy2(compressed, backup)
    corrected = correct_synctex_paths(content, invocation.source_dir)
    with gzip.open(compressed, "wt", **_SYNCTEX_TEXT) as handle:
        handle.write(corrected)
    return compressed


def run_driver(
    invocation: DriverInvocation,
    *,
    runner: Runner = run_tool,
    console: Console | None = None,
    emitter: DiagnosticEmitter | None = None,
) -> None:
    """Execute ``invocation`` with the matching driver."""
    if isinstance(invocation, GlossaryInvocation):
        run_glossary_driver(invocation, runner=runner, console=console, emitter=emitter)
    elif isinstance(invocation, NomenclatureInvocation):
        run_nomenclature_driver(invocation, runner=runner, console=console)
    elif isinstance(invocation, SynctexInvocation):
        run_synctex_driver(invocation, console=console)
    else:  # pragma: no cover - closed union
        raise TypeError(f"Unsupported driver invocation: {invocation!r}")


__all__ = [
    "NOMENCLATURE_STYLE",
    "DriverInvocation",
    "DriverKind",
    "GlossaryInvocation",
    "NomenclatureInvocation",
    "SynctexInvocation",
    "correct_synctex_paths",
    "describe",
    "driver_command",
    "makeindex_glossary_command",
    "nomenclature_command",
    "run_driver",
    "run_glossary_driver",
    "run_nomenclature_driver",
    "run_synctex_driver",
    "xindy_glossary_command",
]
