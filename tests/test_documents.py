from pathlib import Path

import pytest

from texmake.core.documents import (
    DefaultTarget,
    DocumentDescriptor,
    FeatureFlags,
    derive_target_name,
)
from texmake.core.exceptions import ConfigurationError, InvalidDocumentError


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("report.tex", "report"),
        ("a.b.c.tex", "a.b.c"),
        ("chapters/intro.tex", "intro"),
        ("README", "README"),
        (".hidden", ".hidden"),
    ],
)
def test_derive_target_name_strips_last_extension(name: str, expected: str) -> None:
    assert derive_target_name(name) == expected


def test_descriptor_derives_target_name_once() -> None:
    document = DocumentDescriptor(main_input=Path("thesis.draft.tex"))

    assert document.target_name == "thesis.draft"
    assert document.staged_inputs == (Path("thesis.draft.tex"),)
    assert document.features.default_target is DefaultTarget.DVI


def test_descriptor_orders_and_deduplicates_paths() -> None:
    document = DocumentDescriptor(
        main_input=Path("report.tex"),
        inputs=(Path("b.tex"), Path("a.tex"), Path("b.tex"), Path("report.tex")),
        bibliography_files=(Path("refs.bib"), Path("refs.bib")),
    )

    assert document.inputs == (Path("b.tex"), Path("a.tex"))
    assert document.staged_inputs == (Path("report.tex"), Path("b.tex"), Path("a.tex"))
    assert document.bibliography_files == (Path("refs.bib"),)
    assert document.has_bibliography


def test_descriptor_rejects_missing_main_input() -> None:
    with pytest.raises(InvalidDocumentError):
        DocumentDescriptor(main_input=Path(""))


def test_configure_files_must_be_staged_inputs() -> None:
    with pytest.raises(InvalidDocumentError) as excinfo:
        DocumentDescriptor(
            main_input=Path("report.tex"),
            configure_files=(Path("other.tex"),),
        )

    assert "other.tex" in str(excinfo.value)
    assert isinstance(excinfo.value, ConfigurationError)
    assert isinstance(excinfo.value, ValueError)


def test_configure_files_accept_main_and_inputs() -> None:
    document = DocumentDescriptor(
        main_input=Path("report.tex"),
        inputs=(Path("version.tex"),),
        configure_files=(Path("report.tex"), Path("version.tex")),
    )

    assert document.is_configured(Path("version.tex"))
    assert not document.is_configured(Path("missing.tex"))


@pytest.mark.parametrize("suffix", ["", "two words", "dir/name"])
def test_feature_flags_reject_bad_multibib_suffixes(suffix: str) -> None:
    with pytest.raises(InvalidDocumentError):
        FeatureFlags(multibib_suffixes=(suffix,))


def test_feature_flags_normalise_default_target() -> None:
    flags = FeatureFlags(default_target="pdf", multibib_suffixes=("prim", "sec", "prim"))

    assert flags.default_target is DefaultTarget.PDF
    assert flags.multibib_suffixes == ("prim", "sec")
