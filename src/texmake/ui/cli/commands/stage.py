"""Copy and configure the document inputs into the output directory."""

from __future__ import annotations

from texmake.adapters.execution import Executor
from texmake.core.exceptions import TexmakeError

from .._options import DocumentOption
from ..diagnostics import CliEmitter
from ..state import get_cli_state
from ..utils import fail, load_project, select_graphs


def stage(document: DocumentOption = None) -> None:
    """Stage inputs, bibliography and support files without compiling."""
    state = get_cli_state()
    emitter = CliEmitter(state)
    try:
        project = load_project(state, emitter)
        for graph in select_graphs(project.graphs, document):
            written = Executor(graph, emitter=emitter).stage()
            state.console.print(
                f"Staged {len(written)} file(s) for {graph.document.target_name}",
                markup=False,
            )
    except TexmakeError as exc:
        fail(exc)


__all__ = ["stage"]
