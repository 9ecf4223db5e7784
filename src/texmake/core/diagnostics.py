"""Diagnostic abstractions shared across the build pipeline."""

from __future__ import annotations

from collections.abc import Callable, Mapping
import logging
from typing import Any, Protocol, runtime_checkable


logger = logging.getLogger(__name__)


@runtime_checkable
class DiagnosticEmitter(Protocol):
    """Interface used to surface warnings, errors, and structured events."""

    debug_enabled: bool

    def warning(self, message: str, exc: BaseException | None = None) -> None: ...

    def error(self, message: str, exc: BaseException | None = None) -> None: ...

    def event(self, name: str, payload: Mapping[str, Any]) -> None: ...


class NullEmitter:
    """Emitter that ignores every diagnostic."""

    debug_enabled: bool = False

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        return

    def error(self, message: str, exc: BaseException | None = None) -> None:
        return

    def event(self, name: str, payload: Mapping[str, Any]) -> None:
        return


class LoggingEmitter:
    """Emitter that forwards diagnostics to the standard logging module."""

    def __init__(
        self, *, logger_obj: logging.Logger | None = None, debug_enabled: bool = False
    ) -> None:
        self._logger = logger_obj or logger
        self.debug_enabled = debug_enabled

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        if exc is not None and self.debug_enabled:
            self._logger.warning(message, exc_info=exc)
        else:
            self._logger.warning(message)

    def error(self, message: str, exc: BaseException | None = None) -> None:
        if exc is not None:
            self._logger.error(message, exc_info=exc)
        else:
            self._logger.error(message)

    def event(self, name: str, payload: Mapping[str, Any]) -> None:
        message = format_event_message(name, payload)
        if message:
            self._logger.info(message)
            return
        self._logger.debug("diagnostic event %s: %s", name, dict(payload))


def ensure_emitter(emitter: DiagnosticEmitter | None) -> DiagnosticEmitter:
    """Return ``emitter`` or a logging emitter when none was supplied."""
    return emitter if emitter is not None else LoggingEmitter()


def _tool_degraded(data: dict[str, Any]) -> str:
    feature = data.get("feature")
    suffix = f" ({feature} disabled)" if feature else ""
    return f"Optional tool not found: {data.get('tool') or '<unknown>'}{suffix}"


def _stage_file(data: dict[str, Any]) -> str:
    return f"Staged ({data.get('mode') or 'copy'}): {data.get('destination') or '<unknown>'}"


def _image_convert(data: dict[str, Any]) -> str:
    tool = data.get("tool")
    via = f" via {tool}" if tool else ""
    source = data.get("source") or "<unknown>"
    return f"Converting image {source} -> {data.get('output') or '<unknown>'}{via}"


_EVENT_FORMATTERS: dict[str, Callable[[dict[str, Any]], str]] = {
    "tool_degraded": _tool_degraded,
    "stage_file": _stage_file,
    "image_convert": _image_convert,
    "target_skip": lambda data: f"Target '{data.get('target') or '<unknown>'}' is up to date",
    "step_run": lambda data: f"Running {data.get('label') or '<unknown>'}",
}


def format_event_message(name: str, payload: Mapping[str, Any]) -> str | None:
    """Return the one-line summary of a build event, if it has one."""
    formatter = _EVENT_FORMATTERS.get(name)
    return formatter(dict(payload)) if formatter is not None else None


__all__ = [
    "DiagnosticEmitter",
    "LoggingEmitter",
    "NullEmitter",
    "ensure_emitter",
    "format_event_message",
]
