"""Resolve ``@NAME@`` placeholders in configured input files."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
import re

from .diagnostics import DiagnosticEmitter


# ``\@`` starts a LaTeX internal macro name and is never a placeholder.
_PLACEHOLDER_RE = re.compile(r"(?<!\\)@(?P<name>[A-Za-z_][A-Za-z0-9_]*)@")
_MISSING = object()


def _resolve_value(name: str, contexts: Sequence[Mapping[str, object] | None]) -> object:
    for context in contexts:
        if context is not None and name in context:
            return context[name]
    return _MISSING


def configure_text(
    text: str,
    contexts: Sequence[Mapping[str, object] | None],
    *,
    emitter: DiagnosticEmitter | None = None,
    source: str | None = None,
) -> str:
    """Replace ``@NAME@`` placeholders in ``text`` using ``contexts`` in order."""

    def _replacement(match: re.Match[str]) -> str:
        name = match.group("name")
        value = _resolve_value(name, contexts)
        if value is _MISSING or value is None:
            if emitter:
                location = f" in {source}" if source else ""
                emitter.warning(f"Unresolved variable '@{name}@'{location}; leaving it as-is.")
            return match.group(0)
        return str(value)

    return _PLACEHOLDER_RE.sub(_replacement, text)


__all__ = ["configure_text"]
