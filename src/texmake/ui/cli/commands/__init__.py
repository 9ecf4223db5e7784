"""CLI command implementations exposed via `texmake.ui.cli`."""

from __future__ import annotations

from .build import build
from .driver import driver_app
from .makefile import makefile
from .plan import plan
from .stage import stage
from .tools import tools


__all__ = ["build", "driver_app", "makefile", "plan", "stage", "tools"]
