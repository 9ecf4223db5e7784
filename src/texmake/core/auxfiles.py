"""Parsers for directives written into LaTeX ``.aux`` files."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, replace
from pathlib import Path
import re
from typing import TypeVar

from .exceptions import MissingAuxFile


NEWGLOSSARY_PATTERN = re.compile(
    r"@newglossary\{(?P<name>[^}]*)\}\{(?P<log>[^}]*)\}\{(?P<out>[^}]*)\}\{(?P<in>[^}]*)\}"
)
ISTFILE_PATTERN = re.compile(r"\\@istfilename\{(?P<file>[^}]*)\}")
XDYLANGUAGE_PATTERN = re.compile(r"\\@xdylanguage\{(?P<name>[^}]*)\}\{(?P<value>[^}]*)\}")
CODEPAGE_PATTERN = re.compile(r"\\@gls@codepage\{(?P<name>[^}]*)\}\{(?P<value>[^}]*)\}")

_GERMAN_ALIASES = re.compile(r"^n?n?germanb?$")
LANGUAGE_ALIASES = {
    "frenchb": "french",
}


@dataclass(frozen=True, slots=True)
class Registration:
    """A glossary (or index) declared by the document."""

    name: str
    log_suffix: str
    output_suffix: str
    input_suffix: str
    language: str | None = None
    codepage: str | None = None


DEFAULT_GLOSSARY = Registration(
    name="main", log_suffix="glg", output_suffix="gls", input_suffix="glo"
)

T = TypeVar("T")


def read_aux(path: Path) -> str:
    """Return the whole content of an auxiliary file."""
    try:
        return Path(path).read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError as exc:
        raise MissingAuxFile(path) from exc


def with_default(found: Sequence[T], default: T) -> list[T]:
    """Return ``found`` or a single ``default`` entry when nothing was found."""
    return list(found) if found else [default]


def _hints(text: str, pattern: re.Pattern[str]) -> dict[str, str]:
    hints: dict[str, str] = {}
    for match in pattern.finditer(text):
        hints.setdefault(match.group("name"), match.group("value"))
    return hints


def find_registrations(
    text: str, pattern: re.Pattern[str] = NEWGLOSSARY_PATTERN
) -> list[Registration]:
    """Return every registration directive in ``text``, possibly none."""
    languages = _hints(text, XDYLANGUAGE_PATTERN)
    codepages = _hints(text, CODEPAGE_PATTERN)
    registrations: list[Registration] = []
    for match in pattern.finditer(text):
        name = match.group("name")
        registrations.append(
            Registration(
                name=name,
                log_suffix=match.group("log"),
                output_suffix=match.group("out"),
                input_suffix=match.group("in"),
                language=languages.get(name),
                codepage=codepages.get(name),
            )
        )
    return registrations


def attach_hints(registration: Registration, text: str) -> Registration:
    """Fill the language and codepage hints of ``registration`` from ``text``."""
    languages = _hints(text, XDYLANGUAGE_PATTERN)
    codepages = _hints(text, CODEPAGE_PATTERN)
    return replace(
        registration,
        language=registration.language or languages.get(registration.name),
        codepage=registration.codepage or codepages.get(registration.name),
    )


def parse_registrations(
    aux_file: Path,
    pattern: re.Pattern[str] = NEWGLOSSARY_PATTERN,
    default: Registration = DEFAULT_GLOSSARY,
) -> list[Registration]:
    """Read ``aux_file`` and return its registrations, never an empty list."""
    text = read_aux(aux_file)
    return with_default(find_registrations(text, pattern), attach_hints(default, text))


def parse_index_style(text: str, default: str) -> str:
    """Return the index style file referenced by the aux file."""
    match = ISTFILE_PATTERN.search(text)
    if match is None or not match.group("file").strip():
        return default
    return match.group("file").strip()


def normalise_language(name: str) -> str:
    """Translate babel language identifiers into names xindy understands."""
    candidate = name.strip()
    if candidate in LANGUAGE_ALIASES:
        return LANGUAGE_ALIASES[candidate]
    if _GERMAN_ALIASES.match(candidate):
        return "german"
    return candidate


__all__ = [
    "CODEPAGE_PATTERN",
    "DEFAULT_GLOSSARY",
    "ISTFILE_PATTERN",
    "LANGUAGE_ALIASES",
    "NEWGLOSSARY_PATTERN",
    "XDYLANGUAGE_PATTERN",
    "Registration",
    "attach_hints",
    "find_registrations",
    "normalise_language",
    "parse_index_style",
    "parse_registrations",
    "read_aux",
    "with_default",
]
