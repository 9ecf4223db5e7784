"""Stage the inputs and run a target for each document."""

from __future__ import annotations

from texmake.adapters.execution import Executor
from texmake.core.exceptions import TexmakeError

from .._options import DocumentOption, ForceOption, TargetArgument
from ..diagnostics import CliEmitter
from ..state import emit_warning, get_cli_state
from ..utils import fail, load_project, select_graphs


def build(
    target: TargetArgument = None,
    document: DocumentOption = None,
    force: ForceOption = False,
) -> None:
    """Build TARGET (or the default target) for every selected document."""
    state = get_cli_state()
    console = state.console
    emitter = CliEmitter(state)
    try:
        project = load_project(state, emitter)
        for graph in select_graphs(project.graphs, document):
            if target is None and graph.default_target is None:
                emit_warning(
                    f"{graph.document.main_input} has no default target; nothing to build."
                )
                continue
            executor = Executor(
                graph,
                console=console,
                emitter=emitter,
                verbosity=state.verbosity,
                force=force,
            )
            state.consume_events("step_run")
            executed = executor.run(target)
            steps = len(state.consume_events("step_run"))
            chosen = graph.target(target) if target is not None else graph.default_target
            if executed:
                console.print(
                    f"[green]Built {chosen.name} for {graph.document.target_name}[/]"
                    f" ({steps} step(s))"
                )
            else:
                console.print(f"{chosen.name} for {graph.document.target_name} is up to date")
    except TexmakeError as exc:
        fail(exc)


__all__ = ["build"]
