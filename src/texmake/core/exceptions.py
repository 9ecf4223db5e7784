"""Custom exception hierarchy for the document build pipeline."""

from __future__ import annotations

from pathlib import Path


class TexmakeError(RuntimeError):
    """Base exception for build orchestration failures."""


class TexmakeWarning(UserWarning):
    """Base class for non-fatal conditions reported during a build."""


class ConfigurationError(TexmakeError):
    """Raised when the project configuration cannot be used."""


class InvalidDocumentError(ConfigurationError, ValueError):
    """Raised when a document descriptor is internally inconsistent."""


class AmbiguousOutputTarget(ConfigurationError):
    """Raised when generated files could not be told apart from other files."""


class OutputEqualsSourceDirectory(AmbiguousOutputTarget):
    """Raised when a build would write into its own source directory."""

    def __init__(self, directory: Path | str) -> None:
        super().__init__(
            f"LaTeX files must be built out of source: output directory '{directory}' "
            "is the source directory."
        )
        self.directory = Path(directory)


class ToolNotFound(TexmakeError):
    """Raised when a mandatory external tool cannot be located."""

    def __init__(self, tool: str, hint: str | None = None) -> None:
        message = f"I need the {tool} command."
        if hint:
            message = f"{message} {hint}"
        super().__init__(message)
        self.tool = tool


class ToolDegraded(TexmakeWarning):
    """Notice emitted when an optional tool is missing and a feature is disabled."""

    def __init__(self, tool: str, feature: str | None = None) -> None:
        message = f"I could not find the {tool} command."
        if feature:
            message = f"{message} {feature} is disabled."
        super().__init__(message)
        self.tool = tool
        self.feature = feature


class MissingSourceFile(TexmakeWarning):
    """Notice emitted when a declared input exists in neither tree."""

    def __init__(self, path: Path | str) -> None:
        super().__init__(f"Could not find input file {path}")
        self.path = Path(path)


class MissingAuxFile(TexmakeError):
    """Raised when a post-processing driver runs before the compiler produced its input."""

    def __init__(self, path: Path | str, hint: str | None = None) -> None:
        super().__init__(f"{path} does not exist. {hint or 'Run the LaTeX compiler first.'}")
        self.path = Path(path)


class MissingSynctexFile(MissingAuxFile):
    """Raised when the compiler did not produce the compressed synctex file."""

    def __init__(self, path: Path | str) -> None:
        super().__init__(
            path,
            hint="Check that your LaTeX compiler honours the synctex flag.",
        )


class PostProcessingError(TexmakeError):
    """Raised when an index or glossary processor fails."""


class IncompatibleLanguageCodepage(PostProcessingError):
    """Raised when xindy has no module for a language/codepage combination."""

    def __init__(self, language: str, codepage: str) -> None:
        super().__init__(
            f"xindy cannot handle language '{language}' in codepage '{codepage}'."
        )
        self.language = language
        self.codepage = codepage


class DriverParameterError(TexmakeError, ValueError):
    """Raised when a post-processing driver is missing a mandatory parameter."""


class ToolExecutionError(TexmakeError):
    """Raised when an external tool invocation exits with a failure status."""

    def __init__(self, label: str, returncode: int, detail: str | None = None) -> None:
        message = f"{label} failed with status {returncode}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.label = label
        self.returncode = returncode


class UnknownTargetError(TexmakeError, KeyError):
    """Raised when a build target is not part of the graph."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "unknown target"


def exception_messages(exc: BaseException) -> list[str]:
    """Return the collected message chain for an exception and its causes."""
    messages: list[str] = []
    visited: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in visited:
        visited.add(id(current))
        text = str(current).strip()
        if text:
            first_line = text.splitlines()[0].strip()
            if first_line:
                messages.append(first_line)
        current = current.__cause__ or current.__context__
    return messages


def exception_hint(exc: BaseException) -> str | None:
    """Return the most specific message available for an exception chain."""
    messages = exception_messages(exc)
    return messages[-1] if messages else None


__all__ = [
    "AmbiguousOutputTarget",
    "ConfigurationError",
    "DriverParameterError",
    "IncompatibleLanguageCodepage",
    "InvalidDocumentError",
    "MissingAuxFile",
    "MissingSourceFile",
    "MissingSynctexFile",
    "OutputEqualsSourceDirectory",
    "PostProcessingError",
    "TexmakeError",
    "TexmakeWarning",
    "ToolDegraded",
    "ToolExecutionError",
    "ToolNotFound",
    "UnknownTargetError",
    "exception_hint",
    "exception_messages",
]
