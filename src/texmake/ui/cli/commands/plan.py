"""Print the targets, dependencies and steps derived for each document."""

from __future__ import annotations

import shlex

from rich.console import Console

from texmake.adapters.drivers import driver_command
from texmake.core.exceptions import TexmakeError
from texmake.core.graph import BuildGraph, BuildTarget, DriverStep, RemoveStep, Step, ToolStep

from .._options import DocumentOption, TargetArgument
from ..diagnostics import CliEmitter
from ..state import get_cli_state
from ..utils import fail, load_project, select_graphs


def _step_line(step: Step, graph: BuildGraph) -> str:
    if isinstance(step, ToolStep):
        return shlex.join(step.argv)
    if isinstance(step, DriverStep):
        return shlex.join(driver_command(graph.environment.program, step.invocation))
    if isinstance(step, RemoveStep):
        return f"remove {len(step.paths)} files"
    return repr(step)  # pragma: no cover


def _print_target(console: Console, graph: BuildGraph, target: BuildTarget, verbose: bool) -> None:
    flags = []
    if target.default:
        flags.append("default")
    if target.always_rebuild:
        flags.append("always rebuilt")
    suffix = f" [{', '.join(flags)}]" if flags else ""
    output = f" -> {target.output}" if target.output is not None else ""
    console.print(f"  {target.name}{output}{suffix}", markup=False, soft_wrap=True)
    if target.requires:
        requires = ", ".join(graph.target(kind).name for kind in target.requires)
        console.print(f"    requires: {requires}", markup=False, soft_wrap=True)
    if verbose:
        for dependency in target.dependencies:
            console.print(f"    depends: {dependency}", markup=False, soft_wrap=True)
    if target.renderer is not None:
        rules = graph.image_rules(target.renderer)
        if rules:
            console.print(
                f"    images: {len(rules)} via {graph.image_target_name(target.renderer)}",
                markup=False,
                soft_wrap=True,
            )
    for index, step in enumerate(target.commands, start=1):
        console.print(
            f"    {index}. {step.label}: {_step_line(step, graph)}",
            markup=False,
            soft_wrap=True,
        )


def plan(target: TargetArgument = None, document: DocumentOption = None) -> None:
    """Show what each target would run, in order."""
    state = get_cli_state()
    console = state.console
    try:
        project = load_project(state, CliEmitter(state))
        graphs = select_graphs(project.graphs, document)
        for graph in graphs:
            console.print(
                f"{graph.document.target_name} ({graph.document.main_input})",
                style="bold",
                markup=False,
                soft_wrap=True,
            )
            if target is None:
                targets = list(graph.targets.values())
            else:
                targets = graph.build_order(target)
            for item in targets:
                _print_target(console, graph, item, verbose=state.verbosity >= 1)
    except TexmakeError as exc:
        fail(exc)


__all__ = ["plan"]
