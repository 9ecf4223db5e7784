"""Document descriptors: the declarative input of a document build."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePath
import re

from .exceptions import InvalidDocumentError


_SUFFIX_TOKEN = re.compile(r"^[^\s/\\]+$")


class DefaultTarget(str, Enum):
    """Target added to the implicit "build everything" aggregate."""

    NONE = "none"
    DVI = "dvi"
    PDF = "pdf"
    SAFEPDF = "safepdf"
    PS = "ps"


def derive_target_name(name: str | PurePath) -> str:
    """Return the base name of ``name`` without its last extension.

    Only the final dot is significant, so ``report.draft.tex`` yields
    ``report.draft``. Names without a dot are returned unchanged.
    """
    basename = PurePath(name).name
    # ``a.b.c.tex`` therefore gives ``a.b.c``, not ``a.b``: keeping everything
    # up to the last dot is what makes ``report.draft`` work.
    stem, dot, _extension = basename.rpartition(".")
    if not dot or not stem:
        return basename
    return stem


def _ordered_paths(values: Iterable[str | PurePath] | None) -> tuple[Path, ...]:
    seen: dict[Path, None] = {}
    for value in values or ():
        text = str(value).strip()
        if not text:
            continue
        seen.setdefault(Path(text), None)
    return tuple(seen)


@dataclass(frozen=True, slots=True)
class FeatureFlags:
    """Optional processing steps enabled for a document."""

    use_index: bool = False
    use_glossary: bool = False
    use_nomenclature: bool = False
    use_synctex: bool = False
    multibib_suffixes: tuple[str, ...] = ()
    mangle_target_names: bool = False
    default_target: DefaultTarget = DefaultTarget.DVI
    distinct_safepdf: bool = False

    def __post_init__(self) -> None:
        suffixes: dict[str, None] = {}
        for suffix in self.multibib_suffixes:
            token = str(suffix).strip()
            if not _SUFFIX_TOKEN.match(token):
                raise InvalidDocumentError(f"Invalid multibib suffix '{suffix}'.")
            suffixes.setdefault(token, None)
        object.__setattr__(self, "multibib_suffixes", tuple(suffixes))
        object.__setattr__(self, "default_target", DefaultTarget(self.default_target))


@dataclass(frozen=True, slots=True)
class DocumentDescriptor:
    """Immutable description of one LaTeX document and its inputs.

    Every path is relative to the source root. ``target_name`` is derived from
    ``main_input`` when the descriptor is created and names every generated
    auxiliary and output file of the build.
    """

    main_input: Path
    inputs: tuple[Path, ...] = ()
    bibliography_files: tuple[Path, ...] = ()
    image_sources: tuple[Path, ...] = ()
    configure_files: tuple[Path, ...] = ()
    extra_dependencies: tuple[Path, ...] = ()
    features: FeatureFlags = field(default_factory=FeatureFlags)
    target_name: str = field(init=False)

    def __post_init__(self) -> None:
        main_text = str(self.main_input).strip() if self.main_input is not None else ""
        if not main_text or main_text == ".":
            raise InvalidDocumentError("A document requires a main input file.")
        main_input = Path(main_text)
        object.__setattr__(self, "main_input", main_input)

        for name in (
            "inputs",
            "bibliography_files",
            "image_sources",
            "configure_files",
            "extra_dependencies",
        ):
            object.__setattr__(self, name, _ordered_paths(getattr(self, name)))

        # The main input is staged on its own.
        object.__setattr__(
            self, "inputs", tuple(path for path in self.inputs if path != main_input)
        )

        known = {main_input, *self.inputs}
        unknown = [str(path) for path in self.configure_files if path not in known]
        if unknown:
            raise InvalidDocumentError(
                "Configured files must be the main input or listed inputs: " + ", ".join(unknown)
            )

        object.__setattr__(self, "target_name", derive_target_name(main_input))

    @property
    def staged_inputs(self) -> tuple[Path, ...]:
        """Main input followed by the auxiliary inputs."""
        return (self.main_input, *self.inputs)

    @property
    def has_bibliography(self) -> bool:
        return bool(self.bibliography_files)

    def is_configured(self, path: Path) -> bool:
        """Return True when ``path`` is staged through template substitution."""
        return Path(path) in self.configure_files


__all__ = [
    "DefaultTarget",
    "DocumentDescriptor",
    "FeatureFlags",
    "derive_target_name",
]
