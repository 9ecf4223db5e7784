"""Discovery of the external tools driven by a document build."""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
import shlex
import shutil

from texmake.core.diagnostics import DiagnosticEmitter, ensure_emitter
from texmake.core.exceptions import ToolDegraded, ToolNotFound


class ToolId(str, Enum):
    """Symbolic identifiers of the external tools."""

    LATEX = "latex"
    PDFLATEX = "pdflatex"
    BIBTEX = "bibtex"
    MAKEINDEX = "makeindex"
    XINDY = "xindy"
    DVIPS = "dvips"
    PS2PDF = "ps2pdf"
    PDFTOPS = "pdftops"
    CONVERT = "convert"
    LATEX2HTML = "latex2html"
    HTLATEX = "htlatex"


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """Static description of a tool: executable candidates and default flags."""

    tool_id: ToolId
    candidates: tuple[str, ...]
    default_flags: str = ""
    mandatory: bool = False
    feature: str | None = None


PS2PDF_DEFAULT_FLAGS = (
    "-dMaxSubsetPct=100 -dCompatibilityLevel=1.3 -dSubsetFonts=true "
    "-dEmbedAllFonts=true -dAutoFilterColorImages=false "
    "-dAutoFilterGrayImages=false -dColorImageFilter=/FlateEncode "
    "-dGrayImageFilter=/FlateEncode -dMonoImageFilter=/FlateEncode"
)

TOOL_SPECS: dict[ToolId, ToolSpec] = {
    ToolId.LATEX: ToolSpec(
        ToolId.LATEX, ("latex",), "-interaction=nonstopmode", mandatory=True
    ),
    ToolId.PDFLATEX: ToolSpec(
        ToolId.PDFLATEX, ("pdflatex",), "-interaction=nonstopmode", feature="The pdf target"
    ),
    ToolId.BIBTEX: ToolSpec(ToolId.BIBTEX, ("bibtex",), mandatory=True),
    ToolId.MAKEINDEX: ToolSpec(ToolId.MAKEINDEX, ("makeindex",), mandatory=True),
    ToolId.XINDY: ToolSpec(ToolId.XINDY, ("xindy",), feature="Glossaries with xindy styles"),
    ToolId.DVIPS: ToolSpec(
        ToolId.DVIPS, ("dvips",), "-Ppdf -G0 -t letter", feature="The ps and safepdf targets"
    ),
    ToolId.PS2PDF: ToolSpec(
        ToolId.PS2PDF,
        ("ps2pdf",),
        PS2PDF_DEFAULT_FLAGS,
        feature="The safepdf target and EPS to PDF conversion",
    ),
    ToolId.PDFTOPS: ToolSpec(ToolId.PDFTOPS, ("pdftops",)),
    ToolId.CONVERT: ToolSpec(
        ToolId.CONVERT, ("convert", "magick"), feature="Raster image conversion"
    ),
    ToolId.LATEX2HTML: ToolSpec(ToolId.LATEX2HTML, ("latex2html",), feature="The html target"),
    ToolId.HTLATEX: ToolSpec(ToolId.HTLATEX, ("htlatex",)),
}


@dataclass(frozen=True, slots=True)
class ToolOverride:
    """User-supplied location and flags for a tool."""

    path: Path | None = None
    flags: str | None = None


@dataclass(frozen=True, slots=True)
class Tool:
    """Resolved executable plus its default arguments."""

    tool_id: ToolId
    path: Path
    default_args: tuple[str, ...] = ()

    @property
    def name(self) -> str:
        return self.tool_id.value

    def argv(self, *args: str, with_defaults: bool = True) -> list[str]:
        """Return a full command line for this tool."""
        prefix = list(self.default_args) if with_defaults else []
        return [str(self.path), *prefix, *args]


@dataclass(frozen=True, slots=True)
class ToolSet:
    """Immutable snapshot of the tools available for a build."""

    tools: Mapping[ToolId, Tool] = field(default_factory=dict)
    degraded: tuple[ToolDegraded, ...] = ()

    def __contains__(self, tool_id: object) -> bool:
        return tool_id in self.tools

    def __iter__(self) -> Iterator[Tool]:
        return iter(self.tools.values())

    def get(self, tool_id: ToolId) -> Tool | None:
        return self.tools.get(ToolId(tool_id))

    def require(self, tool_id: ToolId, hint: str | None = None) -> Tool:
        """Return the tool or raise :class:`ToolNotFound`."""
        tool = self.get(tool_id)
        if tool is None:
            raise ToolNotFound(ToolId(tool_id).value, hint)
        return tool


Which = Callable[[str], str | None]


class ToolRegistry:
    """Locate external tools once and cache the results."""

    def __init__(
        self,
        overrides: Mapping[str, ToolOverride] | None = None,
        *,
        which: Which | None = None,
        emitter: DiagnosticEmitter | None = None,
    ) -> None:
        self._overrides = {ToolId(key): value for key, value in (overrides or {}).items()}
        self._which = which or shutil.which
        self._emitter = ensure_emitter(emitter)
        self._cache: dict[ToolId, Tool | None] = {}

    def reset(self) -> None:
        """Clear cached lookup results."""
        self._cache.clear()

    def resolve(self, tool_id: ToolId | str) -> Tool:
        """Return the resolved tool or raise :class:`ToolNotFound`."""
        key = ToolId(tool_id)
        if key not in self._cache:
            self._cache[key] = self._lookup(key)
        tool = self._cache[key]
        if tool is None:
            raise ToolNotFound(key.value)
        return tool

    def discover(self, tool_ids: Sequence[ToolId] | None = None) -> ToolSet:
        """Resolve every tool, failing on missing mandatory ones."""
        found: dict[ToolId, Tool] = {}
        degraded: list[ToolDegraded] = []
        missing: list[str] = []
        for key in tool_ids or list(ToolId):
            spec = TOOL_SPECS[key]
            try:
                found[key] = self.resolve(key)
            except ToolNotFound:
                if spec.mandatory:
                    missing.append(key.value)
                    continue
                notice = ToolDegraded(key.value, spec.feature)
                degraded.append(notice)
                if spec.feature:
                    self._emitter.warning(str(notice))
                self._emitter.event(
                    "tool_degraded", {"tool": key.value, "feature": spec.feature}
                )
        if missing:
            raise ToolNotFound(", ".join(missing))
        return ToolSet(tools=found, degraded=tuple(degraded))

    def _lookup(self, key: ToolId) -> Tool | None:
        spec = TOOL_SPECS[key]
        override = self._overrides.get(key)
        flags = spec.default_flags
        if override is not None and override.flags is not None:
            flags = override.flags
        default_args = tuple(shlex.split(flags))

        if override is not None and override.path is not None:
            candidate = Path(override.path).expanduser()
            if candidate.exists():
                return Tool(tool_id=key, path=candidate, default_args=default_args)
            resolved = self._which(str(override.path))
            if resolved:
                return Tool(tool_id=key, path=Path(resolved), default_args=default_args)
            return None

        for name in spec.candidates:
            resolved = self._which(name)
            if resolved:
                return Tool(tool_id=key, path=Path(resolved), default_args=default_args)
        return None


__all__ = [
    "PS2PDF_DEFAULT_FLAGS",
    "TOOL_SPECS",
    "Tool",
    "ToolId",
    "ToolOverride",
    "ToolRegistry",
    "ToolSet",
    "ToolSpec",
]
