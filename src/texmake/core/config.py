"""Project configuration loaded from ``texmake.yml``."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
import shlex
from typing import Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    ValidationError,
    field_validator,
    model_validator,
)
import yaml

from texmake.adapters.tools import ToolId, ToolOverride, ToolSet

from .documents import DefaultTarget, DocumentDescriptor, FeatureFlags
from .environment import FULL_RASTER_SCALE, SMALL_RASTER_SCALE, BuildEnvironment, create_environment
from .exceptions import ConfigurationError


CONFIG_FILENAMES: tuple[str, ...] = ("texmake.yml", "texmake.yaml")


def _as_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, str | Path):
        return [value]
    return value


class ToolConfig(BaseModel):
    """Override of an external tool's location or default flags."""

    model_config = ConfigDict(extra="forbid")

    path: Path | None = None
    flags: str | None = None

    def to_override(self) -> ToolOverride:
        return ToolOverride(path=self.path, flags=self.flags)


class DocumentConfig(BaseModel):
    """One ``documents`` entry."""

    model_config = ConfigDict(extra="forbid")

    main: str
    inputs: list[str] = Field(default_factory=list)
    bibliography: list[str] = Field(default_factory=list)
    images: list[str] = Field(default_factory=list)
    configure: list[str] = Field(default_factory=list)
    depends: list[str] = Field(default_factory=list)
    use_index: bool = False
    use_glossary: bool = False
    use_nomenclature: bool = False
    use_synctex: bool = False
    multibib: list[str] = Field(default_factory=list)
    mangle_target_names: bool = False
    default_target: DefaultTarget = DefaultTarget.DVI
    distinct_safepdf: bool = False

    @field_validator(
        "inputs", "bibliography", "images", "configure", "depends", "multibib", mode="before"
    )
    @classmethod
    def _coerce_list(cls, value: Any) -> Any:
        return _as_list(value)

    def to_descriptor(self, *, mangle: bool = False) -> DocumentDescriptor:
        """Build the validated :class:`DocumentDescriptor` for this entry."""
        features = FeatureFlags(
            use_index=self.use_index,
            use_glossary=self.use_glossary,
            use_nomenclature=self.use_nomenclature,
            use_synctex=self.use_synctex,
            multibib_suffixes=tuple(self.multibib),
            mangle_target_names=self.mangle_target_names or mangle,
            default_target=self.default_target,
            distinct_safepdf=self.distinct_safepdf,
        )
        return DocumentDescriptor(
            main_input=Path(self.main),
            inputs=tuple(Path(item) for item in self.inputs),
            bibliography_files=tuple(Path(item) for item in self.bibliography),
            image_sources=tuple(Path(item) for item in self.images),
            configure_files=tuple(Path(item) for item in self.configure),
            extra_dependencies=tuple(Path(item) for item in self.depends),
            features=features,
        )


class ProjectConfig(BaseModel):
    """Top-level project configuration."""

    model_config = ConfigDict(extra="forbid")

    source_dir: Path | None = None
    output_dir: Path = Path("build")
    raster_scale: int = Field(default=FULL_RASTER_SCALE, ge=1, le=100)
    small_images: bool = False
    html_converter: Literal["latex2html", "htlatex"] = "latex2html"
    glossary_flags: str | None = None
    nomenclature_flags: str | None = None
    variables: dict[str, str] = Field(default_factory=dict)
    tools: dict[ToolId, ToolConfig] = Field(default_factory=dict)
    documents: list[DocumentConfig] = Field(min_length=1)

    _root: Path = PrivateAttr(default_factory=Path.cwd)

    @field_validator("variables", mode="before")
    @classmethod
    def _stringify_variables(cls, value: Any) -> Any:
        if not isinstance(value, Mapping):
            return value
        return {
            str(key): "" if item is None else _scalar_text(item) for key, item in value.items()
        }

    @model_validator(mode="after")
    def _validate_scale(self) -> ProjectConfig:
        if self.small_images and self.raster_scale != FULL_RASTER_SCALE:
            raise ValueError("Use either 'small_images' or 'raster_scale', not both.")
        return self

    @property
    def root(self) -> Path:
        """Directory relative paths are resolved against."""
        return self._root

    def with_root(self, root: Path | str) -> ProjectConfig:
        self._root = Path(root)
        return self

    @property
    def effective_raster_scale(self) -> int:
        return SMALL_RASTER_SCALE if self.small_images else self.raster_scale

    def resolved_source_dir(self) -> Path:
        return (self.root / (self.source_dir or Path("."))).resolve()

    def resolved_output_dir(self) -> Path:
        return (self.root / self.output_dir).resolve()

    def tool_overrides(self) -> dict[str, ToolOverride]:
        return {tool_id.value: entry.to_override() for tool_id, entry in self.tools.items()}

    def descriptors(self) -> list[DocumentDescriptor]:
        """Document descriptors; names are mangled when several documents share the tree."""
        mangle = len(self.documents) > 1
        return [document.to_descriptor(mangle=mangle) for document in self.documents]

    def create_environment(
        self, tools: ToolSet, *, program: tuple[str, ...] | None = None
    ) -> BuildEnvironment:
        """Validate the directories and return the shared build environment."""
        settings: dict[str, object] = {
            "raster_scale": self.effective_raster_scale,
            "html_converter": self.html_converter,
            "glossary_flags": tuple(shlex.split(self.glossary_flags or "")),
            "nomenclature_flags": tuple(shlex.split(self.nomenclature_flags or "")),
            "variables": dict(self.variables),
        }
        if program is not None:
            settings["program"] = program
        return create_environment(
            self.resolved_source_dir(), self.resolved_output_dir(), tools, **settings
        )


def _scalar_text(value: object) -> str:
    if isinstance(value, bool):
        return "ON" if value else "OFF"
    return str(value)


def find_config_file(start: Path | str | None = None) -> Path:
    """Locate the configuration file in ``start`` (a file or directory)."""
    candidate = Path(start) if start is not None else Path.cwd()
    if candidate.is_file():
        return candidate
    if candidate.is_dir():
        for name in CONFIG_FILENAMES:
            path = candidate / name
            if path.is_file():
                return path
        raise ConfigurationError(
            f"No {' or '.join(CONFIG_FILENAMES)} found in {candidate}."
        )
    raise ConfigurationError(f"Configuration file not found: {candidate}")


def parse_project_config(
    data: Mapping[str, Any] | None, *, root: Path | str, origin: str = "<memory>"
) -> ProjectConfig:
    """Validate an already-decoded configuration mapping."""
    if data is None:
        raise ConfigurationError(f"Configuration {origin} is empty.")
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"Configuration {origin} must be a mapping at the top level.")
    try:
        config = ProjectConfig.model_validate(dict(data))
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration {origin}: {exc}") from exc
    return config.with_root(root)


def load_project_config(path: Path | str | None = None) -> ProjectConfig:
    """Read and validate the YAML project configuration."""
    config_path = find_config_file(path)
    try:
        raw = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Failed to read configuration {config_path}: {exc}") from exc
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {exc}") from exc
    return parse_project_config(data, root=config_path.parent.resolve(), origin=str(config_path))


__all__ = [
    "CONFIG_FILENAMES",
    "DocumentConfig",
    "ProjectConfig",
    "ToolConfig",
    "find_config_file",
    "load_project_config",
    "parse_project_config",
]
