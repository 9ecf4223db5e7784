"""Immutable per-build environment shared by the builder and the drivers."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Literal

from texmake.adapters.tools import ToolSet

from .exceptions import ConfigurationError, OutputEqualsSourceDirectory


HtmlConverter = Literal["latex2html", "htlatex"]

SYNCTEX_FLAGS: tuple[str, ...] = ("-synctex=1",)
FULL_RASTER_SCALE = 100
SMALL_RASTER_SCALE = 16


@dataclass(frozen=True, slots=True)
class BuildEnvironment:
    """Resolved directories, tools and settings for one build invocation."""

    source_dir: Path
    output_dir: Path
    tools: ToolSet
    raster_scale: int = FULL_RASTER_SCALE
    html_converter: HtmlConverter = "latex2html"
    synctex_flags: tuple[str, ...] = SYNCTEX_FLAGS
    glossary_flags: tuple[str, ...] = ()
    nomenclature_flags: tuple[str, ...] = ()
    variables: Mapping[str, str] = field(default_factory=dict)
    program: tuple[str, ...] = ("texmake",)

    def __post_init__(self) -> None:
        if not 1 <= self.raster_scale <= 100:
            raise ConfigurationError(
                f"raster_scale must be a percentage in 1..100, got {self.raster_scale}."
            )
        object.__setattr__(self, "variables", MappingProxyType(dict(self.variables)))

    @property
    def resizes_rasters(self) -> bool:
        return self.raster_scale != FULL_RASTER_SCALE

    def source_path(self, relative: Path | str) -> Path:
        return self.source_dir / relative

    def output_path(self, relative: Path | str) -> Path:
        return self.output_dir / relative


def create_environment(
    source_dir: Path | str,
    output_dir: Path | str,
    tools: ToolSet,
    **settings: object,
) -> BuildEnvironment:
    """Validate the directory pair and return a :class:`BuildEnvironment`.

    Building in place is never permitted: staging would overwrite the sources.
    """
    source = Path(source_dir).expanduser().resolve()
    output = Path(output_dir).expanduser().resolve()
    if source == output:
        raise OutputEqualsSourceDirectory(output)
    return BuildEnvironment(
        source_dir=source, output_dir=output, tools=tools, **settings  # type: ignore[arg-type]
    )


__all__ = [
    "FULL_RASTER_SCALE",
    "SMALL_RASTER_SCALE",
    "SYNCTEX_FLAGS",
    "BuildEnvironment",
    "HtmlConverter",
    "create_environment",
]
