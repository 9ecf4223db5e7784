import logging

import pytest

from texmake.core.diagnostics import (
    DiagnosticEmitter,
    LoggingEmitter,
    NullEmitter,
    ensure_emitter,
    format_event_message,
)
from texmake.core.exceptions import PostProcessingError, TexmakeError
from texmake.ui.cli import state as cli_state
from texmake.ui.cli.diagnostics import CliEmitter
from texmake.ui.cli.state import CLIState, emit_error


def test_format_event_message_known_events() -> None:
    assert (
        format_event_message("tool_degraded", {"tool": "dvips", "feature": "The ps target"})
        == "Optional tool not found: dvips (The ps target disabled)"
    )
    assert format_event_message("target_skip", {"target": "pdf"}) == "Target 'pdf' is up to date"
    assert format_event_message("step_run", {"label": "bibtex"}) == "Running bibtex"
    assert (
        format_event_message("image_convert", {"source": "a.png", "output": "a.eps"})
        == "Converting image a.png -> a.eps"
    )
    assert format_event_message("something_else", {}) is None


def test_logging_emitter_forwards_to_logger(caplog: pytest.LogCaptureFixture) -> None:
    emitter = LoggingEmitter(logger_obj=logging.getLogger("texmake.test"))

    with caplog.at_level(logging.DEBUG, logger="texmake.test"):
        emitter.warning("careful")
        emitter.event("step_run", {"label": "latex"})
        emitter.event("custom", {"value": 1})

    messages = [record.getMessage() for record in caplog.records]
    assert "careful" in messages
    assert "Running latex" in messages
    assert any(message.startswith("diagnostic event custom") for message in messages)


def test_emitters_satisfy_protocol() -> None:
    assert isinstance(NullEmitter(), DiagnosticEmitter)
    assert isinstance(ensure_emitter(None), LoggingEmitter)
    emitter = NullEmitter()
    assert ensure_emitter(emitter) is emitter


def test_cli_emitter_records_events(capsys: pytest.CaptureFixture[str]) -> None:
    state = CLIState(verbosity=0)
    emitter = CliEmitter(state)

    emitter.event("target_skip", {"target": "dvi"})
    emitter.warning("pdflatex not found")

    assert state.consume_events("target_skip") == [{"target": "dvi"}]
    assert state.consume_events("target_skip") == []
    assert "pdflatex not found" in capsys.readouterr().err


def test_cli_emitter_prints_repeated_warnings_once(
    capsys: pytest.CaptureFixture[str],
) -> None:
    emitter = CliEmitter(CLIState())

    emitter.warning("Could not find image file figures/plot")
    emitter.warning("Could not find image file figures/plot")
    emitter.warning("Could not find image file figures/map")

    err = capsys.readouterr().err
    assert err.count("figures/plot") == 1
    assert err.count("figures/map") == 1
    assert isinstance(emitter, DiagnosticEmitter)


def test_emit_error_lists_causes_when_very_verbose(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    state = CLIState(verbosity=2)
    monkeypatch.setattr(cli_state, "get_cli_state", lambda *args, **kwargs: state)
    error = TexmakeError("Target 'pdf' failed")
    error.__cause__ = PostProcessingError("makeindex exited with status 1")

    emit_error(str(error), exception=error)

    err = capsys.readouterr().err
    assert "error: Target 'pdf' failed" in err
    assert "type: TexmakeError" in err
    assert "makeindex exited with status 1" in err


def test_info_messages_need_verbosity(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    state = CLIState(verbosity=0)
    monkeypatch.setattr(cli_state, "get_cli_state", lambda *args, **kwargs: state)

    CliEmitter(state).event("step_run", {"label": "latex"})

    assert capsys.readouterr().out == ""
    assert state.consume_events("step_run") == [{"label": "latex"}]
