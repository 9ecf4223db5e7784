"""Terminal reporting of build diagnostics."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from texmake.core.diagnostics import format_event_message

from .state import CLIState, emit_error, emit_warning, get_cli_state, render_message


class CliEmitter:
    """Report diagnostics on the terminal and keep events for command summaries.

    A project with several documents often hits the same missing tool or image
    once per document; each distinct warning is printed once.
    """

    def __init__(self, state: CLIState | None = None) -> None:
        self._state = state or get_cli_state()
        self._warned: set[str] = set()

    @property
    def debug_enabled(self) -> bool:
        return self._state.show_tracebacks

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        if message in self._warned:
            return
        self._warned.add(message)
        emit_warning(message, exception=exc)

    def error(self, message: str, exc: BaseException | None = None) -> None:
        emit_error(message, exception=exc)

    def event(self, name: str, payload: Mapping[str, Any]) -> None:
        self._state.record_event(name, payload)
        message = format_event_message(name, payload)
        if message is not None:
            render_message("info", message)


__all__ = ["CliEmitter"]
