"""Sequential in-process execution of a :class:`~texmake.core.graph.BuildGraph`."""

from __future__ import annotations

from pathlib import Path
import shutil

from rich.console import Console

from texmake.core.diagnostics import DiagnosticEmitter, ensure_emitter
from texmake.core.exceptions import ToolExecutionError, UnknownTargetError
from texmake.core.graph import (
    BuildGraph,
    BuildTarget,
    DriverStep,
    RemoveStep,
    Step,
    TargetKind,
    ToolStep,
)
from texmake.core.images import RESCALE_STAMP_PREFIX, ImageRule, Renderer
from texmake.core.staging import apply_staging, copy_if_stale, staging_variables

from .drivers import Runner, run_driver
from .process import run_tool


def _mtime(path: Path) -> float | None:
    try:
        return path.stat().st_mtime
    except OSError:
        return None


def write_rescale_stamp(stamp: Path) -> bool:
    """Create ``stamp`` and drop the markers of other scales; return True if it was new."""
    if stamp.exists():
        return False
    stamp.parent.mkdir(parents=True, exist_ok=True)
    for previous in stamp.parent.glob(f"{RESCALE_STAMP_PREFIX}*"):
        previous.unlink(missing_ok=True)
    stamp.write_text("Built\n", encoding="utf-8")
    return True


def is_up_to_date(output: Path | None, dependencies: tuple[Path, ...] | list[Path]) -> bool:
    """Return True when ``output`` exists and is newer than every dependency."""
    if output is None:
        return False
    produced = _mtime(output)
    if produced is None:
        return False
    for dependency in dependencies:
        modified = _mtime(dependency)
        if modified is None or modified > produced:
            return False
    return True


class Executor:
    """Run the targets of one document graph, one step at a time."""

    def __init__(
        self,
        graph: BuildGraph,
        *,
        runner: Runner = run_tool,
        console: Console | None = None,
        emitter: DiagnosticEmitter | None = None,
        verbosity: int = 0,
        force: bool = False,
    ) -> None:
        self.graph = graph
        self._runner = runner
        self._console = console
        self._emitter = ensure_emitter(emitter)
        self._verbosity = verbosity
        self._force = force

    @property
    def output_dir(self) -> Path:
        return self.graph.environment.output_dir

    def stage(self) -> list[Path]:
        """Copy and configure the document inputs into the output directory."""
        env = self.graph.environment
        variables = {**staging_variables(self.graph.document, env), **env.variables}
        self.output_dir.mkdir(parents=True, exist_ok=True)
        return apply_staging(self.graph.staging, variables=variables, emitter=self._emitter)

    def prepare_images(self, renderer: Renderer) -> list[Path]:
        """Copy or convert the images a renderer needs; return what was written."""
        rules = self.graph.image_rules(renderer)
        for stamp in dict.fromkeys(rule.stamp for rule in rules if rule.stamp is not None):
            write_rescale_stamp(stamp)
        written: list[Path] = []
        for rule in rules:
            if self._prepare_image(rule):
                written.append(rule.output)
        return written

    def run(self, target: TargetKind | str | None = None) -> list[BuildTarget]:
        """Build ``target`` (or the default target) and everything it requires.

        Returns the targets whose commands actually ran.
        """
        if target is None:
            chosen = self.graph.default_target
            if chosen is None:
                raise UnknownTargetError(
                    f"Document {self.graph.document.main_input} has no default target."
                )
            target = chosen.kind

        self.stage()
        executed: list[BuildTarget] = []
        for item in self.graph.build_order(target):
            if self._run_target(item):
                executed.append(item)
        return executed

    def _run_target(self, target: BuildTarget) -> bool:
        if target.renderer is not None:
            self.prepare_images(target.renderer)
        if (
            not self._force
            and not target.always_rebuild
            and is_up_to_date(target.output, target.dependencies)
        ):
            self._emitter.event("target_skip", {"target": target.name})
            return False
        try:
            for step in target.commands:
                self.run_step(step)
        except Exception:
            # An earlier pass may have written the output; it must not look up to date.
            if target.output is not None:
                target.output.unlink(missing_ok=True)
            raise
        return True

    def run_step(self, step: Step) -> None:
        self._emitter.event("step_run", {"label": step.label})
        if isinstance(step, ToolStep):
            run = self._runner(
                step.label,
                list(step.argv),
                workdir=self.output_dir,
                console=self._console,
                verbosity=self._verbosity,
            )
            if not run.ok:
                raise ToolExecutionError(step.label, run.returncode, run.detail())
        elif isinstance(step, DriverStep):
            run_driver(
                step.invocation,
                runner=self._runner,
                console=self._console,
                emitter=self._emitter,
            )
        elif isinstance(step, RemoveStep):
            for path in step.paths:
                path.unlink(missing_ok=True)
        else:  # pragma: no cover - closed union
            raise TypeError(f"Unsupported build step: {step!r}")

    def _prepare_image(self, rule: ImageRule) -> bool:
        if rule.is_copy and rule.stamp is None:
            return copy_if_stale(rule.source, rule.output)
        if not self._force and is_up_to_date(rule.output, rule.dependencies):
            return False
        rule.output.parent.mkdir(parents=True, exist_ok=True)
        if rule.is_copy:
            # A fresh mtime keeps the copy newer than the rescale marker.
            shutil.copyfile(rule.source, rule.output)
            return True
        self._emitter.event(
            "image_convert",
            {
                "source": str(rule.source),
                "output": str(rule.output),
                "tool": Path(rule.argv[0]).name if rule.argv else None,
            },
        )
        label = f"image conversion ({rule.source.name})"
        run = self._runner(
            label,
            list(rule.argv),
            workdir=self.output_dir,
            console=self._console,
            verbosity=self._verbosity,
        )
        if not run.ok:
            raise ToolExecutionError(label, run.returncode, run.detail())
        return True


__all__ = ["Executor", "is_up_to_date", "write_rescale_stamp"]
