"""Staging of source files into the output directory before any tool runs."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
import shutil

from .configure import configure_text
from .diagnostics import DiagnosticEmitter, ensure_emitter
from .documents import DocumentDescriptor
from .environment import BuildEnvironment
from .exceptions import MissingSourceFile


SUPPORT_FILE_PATTERNS: tuple[str, ...] = (
    "*.cls",
    "*.bst",
    "*.clo",
    "*.sty",
    "*.ist",
    "*.fd",
    "*.bbx",
    "*.cbx",
)

_TEXT: dict[str, str] = {"encoding": "utf-8", "errors": "surrogateescape"}


class StageMode(str, Enum):
    """How a file reaches the output directory."""

    COPY = "copy"
    CONFIGURE = "configure"
    EXTERNAL = "external"
    MISSING = "missing"


@dataclass(frozen=True, slots=True)
class StagedFile:
    """One file to place in the output directory."""

    relative: Path
    source: Path
    destination: Path
    mode: StageMode


@dataclass(frozen=True, slots=True)
class StagingPlan:
    """Staging decisions for a document."""

    files: tuple[StagedFile, ...]
    support_files: tuple[StagedFile, ...] = ()

    def by_mode(self, mode: StageMode) -> tuple[StagedFile, ...]:
        return tuple(item for item in self.files if item.mode is mode)

    def destination(self, relative: Path) -> Path | None:
        for item in self.files:
            if item.relative == Path(relative):
                return item.destination
        return None

    @property
    def missing(self) -> tuple[StagedFile, ...]:
        return self.by_mode(StageMode.MISSING)

    @property
    def tracked_outputs(self) -> tuple[Path, ...]:
        """Staged destinations a target can depend on."""
        return tuple(item.destination for item in self.files if item.mode is not StageMode.MISSING)


def _stage(
    relative: Path,
    document: DocumentDescriptor,
    environment: BuildEnvironment,
    emitter: DiagnosticEmitter,
) -> StagedFile:
    source = environment.source_path(relative)
    destination = environment.output_path(relative)
    if source.is_file():
        mode = StageMode.CONFIGURE if document.is_configured(relative) else StageMode.COPY
    elif destination.exists():
        # Generated by some other step straight into the output tree.
        mode = StageMode.EXTERNAL
    else:
        emitter.warning(str(MissingSourceFile(source)))
        mode = StageMode.MISSING
    return StagedFile(relative=relative, source=source, destination=destination, mode=mode)


def plan_staging(
    document: DocumentDescriptor,
    environment: BuildEnvironment,
    *,
    emitter: DiagnosticEmitter | None = None,
) -> StagingPlan:
    """Decide how the document's inputs reach the output directory."""
    emitter = ensure_emitter(emitter)
    relatives = [*document.staged_inputs, *document.bibliography_files]
    files = tuple(_stage(relative, document, environment, emitter) for relative in relatives)

    staged = {item.relative for item in files}
    support: list[StagedFile] = []
    for pattern in SUPPORT_FILE_PATTERNS:
        for source in sorted(environment.source_dir.glob(pattern)):
            relative = source.relative_to(environment.source_dir)
            if relative in staged or not source.is_file():
                continue
            staged.add(relative)
            support.append(
                StagedFile(
                    relative=relative,
                    source=source,
                    destination=environment.output_path(relative),
                    mode=StageMode.COPY,
                )
            )
    return StagingPlan(files=files, support_files=tuple(support))


def staging_variables(
    document: DocumentDescriptor, environment: BuildEnvironment
) -> dict[str, str]:
    """Built-in variables available to configured files."""
    return {
        "TEXMAKE_SOURCE_DIR": environment.source_dir.as_posix(),
        "TEXMAKE_OUTPUT_DIR": environment.output_dir.as_posix(),
        "TEXMAKE_TARGET_NAME": document.target_name,
    }


def _is_stale(source: Path, destination: Path) -> bool:
    if not destination.exists():
        return True
    return source.stat().st_mtime > destination.stat().st_mtime


def copy_if_stale(source: Path, destination: Path) -> bool:
    """Copy ``source`` over ``destination`` when the latter is missing or older."""
    if not _is_stale(source, destination):
        return False
    destination.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(source, destination)
    return True


def apply_staging(
    plan: StagingPlan,
    *,
    variables: Mapping[str, object] | None = None,
    emitter: DiagnosticEmitter | None = None,
) -> list[Path]:
    """Write the staged files and return the destinations that changed."""
    emitter = ensure_emitter(emitter)
    written: list[Path] = []

    for item in (*plan.files, *plan.support_files):
        if item.mode is StageMode.COPY:
            changed = copy_if_stale(item.source, item.destination)
        elif item.mode is StageMode.CONFIGURE:
            text = item.source.read_text(**_TEXT)
            rendered = configure_text(
                text, [variables], emitter=emitter, source=str(item.relative)
            )
            changed = _write_if_changed(item.destination, rendered)
        else:
            continue
        if changed:
            written.append(item.destination)
            emitter.event(
                "stage_file",
                {"mode": item.mode.value, "destination": str(item.relative)},
            )
    return written


def _write_if_changed(destination: Path, content: str) -> bool:
    if destination.exists() and destination.read_text(**_TEXT) == content:
        return False
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_text(content, **_TEXT)
    return True


__all__ = [
    "SUPPORT_FILE_PATTERNS",
    "StageMode",
    "StagedFile",
    "StagingPlan",
    "apply_staging",
    "copy_if_stale",
    "plan_staging",
    "staging_variables",
]
