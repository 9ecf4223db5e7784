"""Auxiliary helpers used by CLI commands."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn

import typer

from texmake.adapters.tools import ToolRegistry, ToolSet
from texmake.core.config import ProjectConfig, find_config_file, load_project_config
from texmake.core.environment import BuildEnvironment
from texmake.core.exceptions import ConfigurationError, exception_hint
from texmake.core.graph import BuildGraph, build_project

from .diagnostics import CliEmitter
from .state import CLIState, emit_error


@dataclass(slots=True)
class LoadedProject:
    """Configuration, tools and graphs of the project being processed."""

    config: ProjectConfig
    config_path: Path
    tools: ToolSet
    environment: BuildEnvironment
    graphs: list[BuildGraph]


def load_project(state: CLIState, emitter: CliEmitter | None = None) -> LoadedProject:
    """Load the configuration, discover the tools and build every document graph."""
    emitter = emitter or CliEmitter(state)
    config_path = find_config_file(state.config_path)
    config = load_project_config(config_path)
    registry = ToolRegistry(config.tool_overrides(), emitter=emitter)
    tools = registry.discover()
    environment = config.create_environment(
        tools, program=("texmake", "--config", str(config_path))
    )
    graphs = build_project(config.descriptors(), environment, emitter=emitter)
    return LoadedProject(
        config=config,
        config_path=config_path,
        tools=tools,
        environment=environment,
        graphs=graphs,
    )


def select_graphs(graphs: list[BuildGraph], document: str | None) -> list[BuildGraph]:
    """Return the graphs matching ``document`` (all of them when ``None``)."""
    if document is None:
        return graphs
    selected = [
        graph
        for graph in graphs
        if document in (graph.document.target_name, graph.document.main_input.as_posix())
    ]
    if not selected:
        known = ", ".join(graph.document.target_name for graph in graphs)
        raise ConfigurationError(f"Unknown document '{document}' (known: {known}).")
    return selected


def fail(exc: BaseException) -> NoReturn:
    """Report ``exc`` and exit with status 1."""
    message = str(exc)
    hint = exception_hint(exc)
    if hint and hint not in message:
        message = f"{message} ({hint})"
    emit_error(message, exception=exc)
    raise typer.Exit(code=1) from exc


__all__ = ["LoadedProject", "fail", "load_project", "select_graphs"]
