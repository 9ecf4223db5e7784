from __future__ import annotations

import pytest

from texmake.core.exceptions import (
    AmbiguousOutputTarget,
    ConfigurationError,
    IncompatibleLanguageCodepage,
    MissingAuxFile,
    MissingSynctexFile,
    OutputEqualsSourceDirectory,
    PostProcessingError,
    TexmakeError,
    ToolDegraded,
    ToolExecutionError,
    ToolNotFound,
    UnknownTargetError,
    exception_hint,
    exception_messages,
)


def _chained() -> TexmakeError:
    try:
        try:
            raise FileNotFoundError("refs.bib is missing")
        except FileNotFoundError as exc:
            raise PostProcessingError("bibtex could not read its input") from exc
    except PostProcessingError as exc:
        error = TexmakeError("Target 'pdf' failed")
        error.__cause__ = exc
        return error


def test_exception_messages_follow_the_cause_chain() -> None:
    error = _chained()

    assert exception_messages(error) == [
        "Target 'pdf' failed",
        "bibtex could not read its input",
        "refs.bib is missing",
    ]
    assert exception_hint(error) == "refs.bib is missing"


def test_exception_messages_keep_only_the_first_line() -> None:
    error = ToolExecutionError("latex", 1, "! Undefined control sequence.\nl.12 \\foo")

    assert exception_messages(error) == [
        "latex failed with status 1: ! Undefined control sequence."
    ]
    assert error.returncode == 1
    assert exception_hint(RuntimeError("")) is None


def test_in_source_build_is_a_configuration_error() -> None:
    error = OutputEqualsSourceDirectory("/work/thesis")

    assert isinstance(error, AmbiguousOutputTarget)
    assert isinstance(error, ConfigurationError)
    assert "out of source" in str(error)
    assert error.directory.name == "thesis"


def test_tool_messages() -> None:
    assert str(ToolNotFound("pdflatex")) == "I need the pdflatex command."
    notice = ToolDegraded("dvips", "The ps target")
    assert str(notice) == "I could not find the dvips command. The ps target is disabled."
    assert isinstance(notice, UserWarning)


def test_missing_aux_file_messages() -> None:
    assert str(MissingAuxFile("build/report.aux")).endswith("Run the LaTeX compiler first.")
    synctex = MissingSynctexFile("build/report.synctex.gz")
    assert isinstance(synctex, MissingAuxFile)
    assert "synctex flag" in str(synctex)


def test_codepage_conflict_is_a_post_processing_error() -> None:
    error = IncompatibleLanguageCodepage("french", "cp1252")

    assert isinstance(error, PostProcessingError)
    assert (error.language, error.codepage) == ("french", "cp1252")


def test_unknown_target_error_reads_like_a_message() -> None:
    error = UnknownTargetError("Unknown target 'html'")

    assert str(error) == "Unknown target 'html'"
    with pytest.raises(KeyError):
        raise error
