"""Out-of-source build orchestration for LaTeX documents."""

from __future__ import annotations

from texmake.adapters.execution import Executor
from texmake.adapters.makefile import MakefileExporter
from texmake.adapters.tools import Tool, ToolId, ToolRegistry, ToolSet
from texmake.core.config import ProjectConfig, load_project_config
from texmake.core.documents import DefaultTarget, DocumentDescriptor, FeatureFlags
from texmake.core.environment import BuildEnvironment, create_environment
from texmake.core.exceptions import (
    AmbiguousOutputTarget,
    ConfigurationError,
    MissingAuxFile,
    PostProcessingError,
    TexmakeError,
    ToolNotFound,
)
from texmake.core.graph import BuildGraph, BuildTarget, GraphBuilder, TargetKind, build_project
from texmake.version import get_version


__version__ = get_version()

__all__ = [
    "AmbiguousOutputTarget",
    "BuildEnvironment",
    "BuildGraph",
    "BuildTarget",
    "ConfigurationError",
    "DefaultTarget",
    "DocumentDescriptor",
    "Executor",
    "FeatureFlags",
    "GraphBuilder",
    "MakefileExporter",
    "MissingAuxFile",
    "PostProcessingError",
    "ProjectConfig",
    "TargetKind",
    "TexmakeError",
    "Tool",
    "ToolId",
    "ToolNotFound",
    "ToolRegistry",
    "ToolSet",
    "__version__",
    "build_project",
    "create_environment",
    "get_version",
    "load_project_config",
]
