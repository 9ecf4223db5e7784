"""Thin wrapper around ``subprocess`` for external tool invocations."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
import io
from pathlib import Path
import subprocess

from rich.console import Console


@dataclass(slots=True)
class ToolRun:
    """Captured outcome of one external tool invocation."""

    argv: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Combined stdout and stderr, as most TeX tools report on both."""
        return "\n".join(segment for segment in (self.stdout, self.stderr) if segment)

    def detail(self) -> str | None:
        """Return the last non-empty output line, if any."""
        lines = [line.strip() for line in self.output.splitlines() if line.strip()]
        return lines[-1] if lines else None


def run_tool(
    label: str,
    argv: Sequence[str],
    *,
    workdir: Path,
    env: Mapping[str, str] | None = None,
    console: Console | None = None,
    verbosity: int = 0,
) -> ToolRun:
    """Run ``argv`` in ``workdir`` and capture its output."""
    console = console or Console(file=io.StringIO())
    command = [str(token) for token in argv]
    console.print(f"[cyan]Running {label}…[/]")
    try:
        process = subprocess.run(
            command,
            check=False,
            capture_output=True,
            text=True,
            cwd=workdir,
            env=dict(env) if env is not None else None,
        )
        stdout = process.stdout or ""
        stderr = process.stderr or ""
    except OSError as exc:
        console.print(str(exc))
        return ToolRun(argv=command, returncode=127, stdout="", stderr=str(exc))

    if verbosity > 0 or process.returncode != 0:
        if stdout:
            console.print(stdout.rstrip(), markup=False, highlight=False)
        if stderr:
            console.print(stderr.rstrip(), markup=False, highlight=False)
    return ToolRun(
        argv=command,
        returncode=process.returncode,
        stdout=stdout,
        stderr=stderr,
    )


__all__ = ["ToolRun", "run_tool"]
