"""Per-invocation CLI state: verbosity, consoles and recorded build events."""

from __future__ import annotations

from collections.abc import Mapping
from contextvars import ContextVar
from dataclasses import dataclass, field
from pathlib import Path
import sys
from typing import TYPE_CHECKING, Any, TextIO

import click
import typer

from texmake.core.exceptions import exception_messages


if TYPE_CHECKING:
    from rich.console import Console

__all__ = [
    "CLIState",
    "debug_enabled",
    "emit_error",
    "emit_warning",
    "get_cli_state",
    "render_message",
    "set_cli_state",
]


def _bound_console(console: Console | None, stream: TextIO, **options: Any) -> Console:
    # CliRunner and pytest swap the standard streams between invocations.
    from rich.console import Console

    if console is None or getattr(console, "file", None) is not stream:
        console = Console(file=stream, **options)
    return console


@dataclass(slots=True)
class CLIState:
    """Options of the running command and the diagnostics it produced."""

    verbosity: int = 0
    show_tracebacks: bool = False
    config_path: Path | None = None
    events: dict[str, list[dict[str, Any]]] = field(default_factory=dict, init=False)
    _console: Console | None = field(default=None, init=False, repr=False)
    _err_console: Console | None = field(default=None, init=False, repr=False)

    @property
    def console(self) -> Console:
        self._console = _bound_console(self._console, sys.stdout)
        return self._console

    @property
    def err_console(self) -> Console:
        self._err_console = _bound_console(self._err_console, sys.stderr, highlight=False)
        return self._err_console

    def record_event(self, name: str, payload: Mapping[str, Any] | None = None) -> None:
        self.events.setdefault(name, []).append(dict(payload or {}))

    def consume_events(self, name: str) -> list[dict[str, Any]]:
        """Return and forget the events recorded under ``name``."""
        return self.events.pop(name, [])


_STATE_VAR: ContextVar[CLIState | None] = ContextVar("texmake_cli_state", default=None)


def _state_from_context(ctx: click.Context, create: bool) -> CLIState | None:
    current: click.Context | None = ctx
    while current is not None:
        if isinstance(current.obj, CLIState):
            return current.obj
        current = current.parent
    if not create:
        return None
    state = CLIState()
    ctx.find_root().obj = state
    return state


def get_cli_state(
    ctx: typer.Context | click.Context | None = None,
    *,
    create: bool = True,
) -> CLIState:
    """Return the state of the running command.

    The state lives on the root click context; outside of a command the last
    known state (or a fresh one) is used.
    """
    if ctx is None:
        ctx = click.get_current_context(silent=True)
    state = _state_from_context(ctx, create) if ctx is not None else None
    if state is None:
        state = _STATE_VAR.get(None)
        if state is None:
            if not create:
                raise RuntimeError("CLI state is not initialised for this context.")
            state = CLIState()
    _STATE_VAR.set(state)
    return state


def set_cli_state(
    *,
    ctx: typer.Context | None = None,
    verbosity: int | None = None,
    debug: bool | None = None,
    config_path: Path | None = None,
) -> CLIState:
    """Apply the global options to the current state."""
    state = get_cli_state(ctx)
    if verbosity is not None:
        state.verbosity = max(0, verbosity)
    if debug is not None:
        state.show_tracebacks = debug
    if config_path is not None:
        state.config_path = config_path
    return state


def render_message(
    level: str,
    message: str,
    *,
    exception: BaseException | None = None,
) -> None:
    """Print ``message``; info goes to stdout and only when verbose."""
    state = get_cli_state()

    if level == "info":
        if state.verbosity >= 1:
            state.console.log(message)
        return

    from rich.text import Text

    style = "red" if level == "error" else "yellow"
    text = Text.assemble((f"{level}: ", f"bold {style}"), (message, style))

    if exception is not None and state.verbosity >= 1:
        details = [f"type: {type(exception).__name__}"]
        if state.verbosity >= 2:
            causes = exception_messages(exception)[1:]
            if causes:
                details.append("caused by:")
                details.extend(f"  {cause}" for cause in causes)
        text.append("\n" + "\n".join(details), style=style)

    state.err_console.print(text)


def emit_warning(message: str, *, exception: BaseException | None = None) -> None:
    render_message("warning", message, exception=exception)


def emit_error(message: str, *, exception: BaseException | None = None) -> None:
    render_message("error", message, exception=exception)


def debug_enabled() -> bool:
    """Return whether full tracebacks were requested."""
    try:
        return get_cli_state(create=False).show_tracebacks
    except RuntimeError:
        return False
