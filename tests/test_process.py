import io
from pathlib import Path
import subprocess
from typing import Any

import pytest
from rich.console import Console

from texmake.adapters import process
from texmake.adapters.process import ToolRun, run_tool


def test_run_tool_captures_output(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    calls: list[dict[str, Any]] = []

    def fake_run(command: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
        calls.append({"command": command, **kwargs})
        return subprocess.CompletedProcess(command, 0, stdout="Output written\n", stderr="")

    monkeypatch.setattr(process.subprocess, "run", fake_run)
    buffer = io.StringIO()

    run = run_tool(
        "latex",
        ["latex", Path("report.tex")],
        workdir=tmp_path,
        console=Console(file=buffer),
    )

    assert run.ok
    assert run.argv == ["latex", "report.tex"]
    assert run.detail() == "Output written"
    assert calls[0]["cwd"] == tmp_path
    assert calls[0]["check"] is False
    assert "Running latex" in buffer.getvalue()
    assert "Output written" not in buffer.getvalue()


def test_run_tool_echoes_output_on_failure(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    def fake_run(command: list[str], **_: Any) -> subprocess.CompletedProcess[str]:
        return subprocess.CompletedProcess(
            command, 1, stdout="", stderr="! Undefined control sequence.\n"
        )

    monkeypatch.setattr(process.subprocess, "run", fake_run)
    buffer = io.StringIO()

    run = run_tool("latex", ["latex", "report.tex"], workdir=tmp_path, console=Console(file=buffer))

    assert not run.ok
    assert run.returncode == 1
    assert "Undefined control sequence" in buffer.getvalue()


def test_run_tool_reports_missing_executable(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    def fake_run(command: list[str], **_: Any) -> subprocess.CompletedProcess[str]:
        raise FileNotFoundError(2, "No such file or directory", command[0])

    monkeypatch.setattr(process.subprocess, "run", fake_run)

    run = run_tool("bibtex", ["bibtex", "report"], workdir=tmp_path)

    assert run.returncode == 127
    assert "No such file or directory" in run.stderr


def test_tool_run_output_joins_streams() -> None:
    run = ToolRun(argv=["x"], returncode=0, stdout="first", stderr="second")

    assert run.output == "first\nsecond"
    assert ToolRun(argv=["x"], returncode=0, stdout="", stderr="").detail() is None
