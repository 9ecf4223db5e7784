"""Image discovery and routing towards the formats each renderer accepts.

``latex`` (DVI output) only embeds Encapsulated PostScript while ``pdflatex``
reads PDF, PNG and JPEG. Every registered image is therefore routed once per
renderer: copied when it is already usable, skipped when a sibling file
(same path, different extension) already covers the renderer, and converted
otherwise.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from texmake.adapters.tools import Tool, ToolId, ToolSet

from .diagnostics import DiagnosticEmitter, ensure_emitter


class FormatFamily(str, Enum):
    """Classification of an image extension."""

    DVI_VECTOR = "dvi-compatible-vector"
    DVI_RASTER = "dvi-compatible-raster"
    PDF_VECTOR = "pdf-compatible-vector"
    PDF_RASTER = "pdf-compatible-raster"
    OTHER_VECTOR = "other-vector"
    OTHER_RASTER = "other-raster"

    @property
    def is_raster(self) -> bool:
        return self in _RASTER_FAMILIES

    @property
    def is_vector(self) -> bool:
        return not self.is_raster


class Renderer(str, Enum):
    """Output renderer an image has to be prepared for."""

    DVI = "dvi"
    PDF = "pdf"


_RASTER_FAMILIES = frozenset(
    {FormatFamily.DVI_RASTER, FormatFamily.PDF_RASTER, FormatFamily.OTHER_RASTER}
)

FAMILY_EXTENSIONS: dict[FormatFamily, tuple[str, ...]] = {
    FormatFamily.DVI_VECTOR: (".eps",),
    FormatFamily.DVI_RASTER: (),
    FormatFamily.PDF_VECTOR: (".pdf",),
    FormatFamily.PDF_RASTER: (".png", ".jpeg", ".jpg"),
    FormatFamily.OTHER_VECTOR: (".ai", ".dot", ".svg"),
    FormatFamily.OTHER_RASTER: (
        ".bmp",
        ".bmp2",
        ".bmp3",
        ".dcm",
        ".dcx",
        ".ico",
        ".gif",
        ".pict",
        ".ppm",
        ".tif",
        ".tiff",
    ),
}

RENDERER_FAMILIES: dict[Renderer, frozenset[FormatFamily]] = {
    Renderer.DVI: frozenset({FormatFamily.DVI_VECTOR, FormatFamily.DVI_RASTER}),
    Renderer.PDF: frozenset({FormatFamily.PDF_VECTOR, FormatFamily.PDF_RASTER}),
}

_EXTENSION_FAMILY: dict[str, FormatFamily] = {
    extension: family
    for family, extensions in FAMILY_EXTENSIONS.items()
    for extension in extensions
}

KNOWN_IMAGE_EXTENSIONS: tuple[str, ...] = tuple(_EXTENSION_FAMILY)


def classify_extension(extension: str) -> FormatFamily | None:
    """Return the family of ``extension`` (with or without the dot)."""
    normalised = extension.lower()
    if normalised and not normalised.startswith("."):
        normalised = f".{normalised}"
    return _EXTENSION_FAMILY.get(normalised)


@dataclass(frozen=True, slots=True)
class ImageRecord:
    """One discovered image file, relative to the source root."""

    source_path: Path
    extension: str
    format_family: FormatFamily

    @classmethod
    def from_path(cls, path: Path | str) -> ImageRecord | None:
        """Classify ``path``; return ``None`` for unknown extensions."""
        candidate = Path(path)
        family = classify_extension(candidate.suffix)
        if family is None:
            return None
        return cls(source_path=candidate, extension=candidate.suffix.lower(), format_family=family)

    @property
    def logical_name(self) -> Path:
        """Path without its extension; shared by every variant of a figure."""
        return self.source_path.with_suffix("")

    def accepted_by(self, renderer: Renderer) -> bool:
        return self.format_family in RENDERER_FAMILIES[renderer]


@dataclass(frozen=True, slots=True)
class CopyVerbatim:
    """Copy the image unchanged."""

    source: Path
    dest: Path


@dataclass(frozen=True, slots=True)
class Convert:
    """Produce ``dest`` from ``source`` with an external converter."""

    source: Path
    dest: Path
    converter: ToolId
    args: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Skip:
    """Ignore the image for this renderer."""

    source: Path
    reason: str


Action = CopyVerbatim | Convert | Skip


def discover_images(
    sources: Iterable[Path | str],
    source_dir: Path,
    *,
    emitter: DiagnosticEmitter | None = None,
) -> list[ImageRecord]:
    """Expand image files and image directories into image records."""
    emitter = ensure_emitter(emitter)
    records: dict[Path, ImageRecord] = {}

    for entry in sources:
        relative = Path(entry)
        absolute = source_dir / relative
        if absolute.is_dir():
            matches = [
                candidate
                for candidate in absolute.iterdir()
                if candidate.is_file() and candidate.suffix.lower() in _EXTENSION_FAMILY
            ]
            for candidate in sorted(matches):
                record = ImageRecord.from_path(candidate.relative_to(source_dir))
                if record is not None:
                    records.setdefault(record.source_path, record)
            continue
        if not absolute.exists():
            emitter.warning(f"Could not find image file {relative}")
            continue
        record = ImageRecord.from_path(relative)
        if record is None:
            emitter.warning(f"Unknown image extension for {relative}; ignoring it.")
            continue
        records.setdefault(record.source_path, record)

    return list(records.values())


def group_siblings(records: Iterable[ImageRecord]) -> dict[Path, list[ImageRecord]]:
    """Group records by logical name."""
    groups: dict[Path, list[ImageRecord]] = {}
    for record in records:
        groups.setdefault(record.logical_name, []).append(record)
    return groups


class ImageRouter:
    """Decide how each image reaches a renderer."""

    def __init__(
        self,
        tools: ToolSet,
        *,
        raster_scale: int = 100,
        emitter: DiagnosticEmitter | None = None,
    ) -> None:
        self._tools = tools
        self._raster_scale = raster_scale
        self._emitter = ensure_emitter(emitter)

    @property
    def raster_scale(self) -> int:
        return self._raster_scale

    @property
    def resize_args(self) -> tuple[str, ...]:
        return ("-resize", f"{self._raster_scale}%")

    def route(
        self,
        image: ImageRecord,
        renderer: Renderer,
        siblings: Sequence[ImageRecord] = (),
    ) -> Action:
        """Return the action preparing ``image`` for ``renderer``.

        ``siblings`` are the other records registered for the same figure.
        """
        renderer = Renderer(renderer)
        source = image.source_path

        if image.accepted_by(renderer):
            if image.format_family.is_raster and self._raster_scale != 100:
                self._require(ToolId.CONVERT, image)
                return Convert(source, source, ToolId.CONVERT, self.resize_args)
            return CopyVerbatim(source, source)

        for sibling in siblings:
            if sibling.source_path == source:
                continue
            if sibling.accepted_by(renderer):
                return Skip(source, f"{sibling.source_path} already suits {renderer.value}")

        return self._conversion(image, renderer)

    def _conversion(self, image: ImageRecord, renderer: Renderer) -> Convert:
        source = image.source_path
        if renderer is Renderer.DVI:
            dest_extension = ".eps"
        else:
            dest_extension = ".png" if image.format_family.is_raster else ".pdf"
        dest = source.with_suffix(dest_extension)

        if image.extension == ".eps" and dest_extension == ".pdf":
            self._require(
                ToolId.PS2PDF,
                image,
                hint="Using postscript images with pdflatex requires ps2pdf for conversion.",
            )
            return Convert(source, dest, ToolId.PS2PDF, ("-dEPSCrop",))

        if image.extension == ".pdf" and dest_extension == ".eps":
            if ToolId.PDFTOPS in self._tools:
                return Convert(source, dest, ToolId.PDFTOPS, ("-eps",))
            self._emitter.warning(
                f"Converting {source} with the generic image converter; install pdftops "
                "(Poppler) for better vector output."
            )

        self._require(ToolId.CONVERT, image)
        args = self.resize_args if image.format_family.is_raster else ()
        return Convert(source, dest, ToolId.CONVERT, args)

    def _require(self, tool_id: ToolId, image: ImageRecord, hint: str | None = None) -> Tool:
        return self._tools.require(
            tool_id, hint or f"It is needed to convert {image.source_path}."
        )


RESCALE_STAMP_PREFIX = "raster_image_rescale_"


def rescale_stamp_name(raster_scale: int) -> str:
    """Name of the marker file recording the scale raster images were produced at."""
    return f"{RESCALE_STAMP_PREFIX}{raster_scale}"


@dataclass(frozen=True, slots=True)
class ImageRule:
    """A routed image expressed as a concrete file-producing step.

    Raster rules also depend on ``stamp``, the rescale marker of the current
    scale, so changing the scale rebuilds them.
    """

    renderer: Renderer
    action: CopyVerbatim | Convert
    source: Path
    output: Path
    argv: tuple[str, ...] = ()
    stamp: Path | None = None

    @property
    def is_copy(self) -> bool:
        return isinstance(self.action, CopyVerbatim)

    @property
    def dependencies(self) -> tuple[Path, ...]:
        return (self.source,) if self.stamp is None else (self.source, self.stamp)


def converter_argv(tool: Tool, action: Convert, source: Path, output: Path) -> tuple[str, ...]:
    """Build the converter command line for ``action``.

    ImageMagick operators follow the input file; ps2pdf and pdftops take their
    options first.
    """
    if action.converter is ToolId.CONVERT:
        return (str(tool.path), *tool.default_args, str(source), *action.args, str(output))
    return tuple(tool.argv(*action.args, str(source), str(output)))


def plan_images(
    records: Sequence[ImageRecord],
    renderer: Renderer,
    router: ImageRouter,
    *,
    source_dir: Path,
    output_dir: Path,
    tools: ToolSet,
    emitter: DiagnosticEmitter | None = None,
) -> list[ImageRule]:
    """Route every record for ``renderer`` and resolve absolute paths.

    Two variants of a figure that both need converting would write the same
    file; the first one registered is kept.
    """
    emitter = ensure_emitter(emitter)
    groups = group_siblings(records)
    stamp = output_dir / rescale_stamp_name(router.raster_scale)
    planned: dict[Path, ImageRecord] = {}
    rules: list[ImageRule] = []
    for record in records:
        action = router.route(record, renderer, groups.get(record.logical_name, ()))
        if isinstance(action, Skip):
            continue
        source = source_dir / action.source
        output = output_dir / action.dest
        kept = planned.get(output)
        if kept is not None:
            emitter.warning(
                f"{record.source_path} and {kept.source_path} both produce {action.dest} "
                f"for the {renderer.value} renderer; ignoring {record.source_path}."
            )
            continue
        planned[output] = record
        argv: tuple[str, ...] = ()
        if isinstance(action, Convert):
            argv = converter_argv(tools.require(action.converter), action, source, output)
        rules.append(
            ImageRule(
                renderer=renderer,
                action=action,
                source=source,
                output=output,
                argv=argv,
                stamp=stamp if record.format_family.is_raster else None,
            )
        )
    return rules


__all__ = [
    "FAMILY_EXTENSIONS",
    "KNOWN_IMAGE_EXTENSIONS",
    "RENDERER_FAMILIES",
    "RESCALE_STAMP_PREFIX",
    "Action",
    "Convert",
    "CopyVerbatim",
    "FormatFamily",
    "ImageRecord",
    "ImageRouter",
    "ImageRule",
    "Renderer",
    "Skip",
    "classify_extension",
    "converter_argv",
    "discover_images",
    "group_siblings",
    "plan_images",
    "rescale_stamp_name",
]
