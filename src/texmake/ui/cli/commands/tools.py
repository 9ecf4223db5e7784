"""List the external tools and where they were found."""

from __future__ import annotations

from rich import box
from rich.table import Table

from texmake.adapters.tools import TOOL_SPECS, ToolId, ToolOverride, ToolRegistry
from texmake.core.config import load_project_config
from texmake.core.exceptions import ConfigurationError, TexmakeError, ToolNotFound

from ..state import get_cli_state
from ..utils import fail


def _overrides() -> dict[str, ToolOverride]:
    state = get_cli_state()
    try:
        config = load_project_config(state.config_path)
    except ConfigurationError:
        if state.config_path is not None:
            raise
        return {}
    return config.tool_overrides()


def tools() -> None:
    """Show every tool, whether it is mandatory, and the arguments it runs with."""
    state = get_cli_state()
    try:
        registry = ToolRegistry(_overrides())
    except TexmakeError as exc:
        fail(exc)

    table = Table(title="Tools", box=box.SQUARE, header_style="bold cyan")
    table.add_column("Tool", style="magenta")
    table.add_column("Status")
    table.add_column("Path")
    table.add_column("Arguments")

    missing_mandatory = False
    for tool_id in ToolId:
        spec = TOOL_SPECS[tool_id]
        try:
            tool = registry.resolve(tool_id)
        except ToolNotFound:
            status = "[red]missing[/]" if spec.mandatory else "[yellow]missing[/]"
            missing_mandatory = missing_mandatory or spec.mandatory
            table.add_row(tool_id.value, status, "-", spec.feature or "")
            continue
        status = "[green]found[/]"
        table.add_row(tool_id.value, status, str(tool.path), " ".join(tool.default_args))

    state.console.print(table)
    if missing_mandatory:
        state.console.print("[red]Mandatory tools are missing; builds will fail.[/]")


__all__ = ["tools"]
