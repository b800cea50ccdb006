"""
Exception types for the packager.

Per-item problems (a bad import line, a missing package, a file that failed
to copy) are recorded as messages in result objects. The exception classes
below carry those problems where they are raised internally, and only
ConfigurationError and BuildError ever reach the caller of a build.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .types import BuildResult


class PackagerError(Exception):
    """Base class for all packager errors."""


class ParseError(PackagerError):
    """An import line that does not match the single-line import grammar."""

    def __init__(self, message: str, line_number: int, line: str) -> None:
        super().__init__(f"Line {line_number}: {message}")
        self.line_number = line_number
        self.line = line


class ResolutionError(PackagerError):
    """A package could not be located or its manifest could not be read."""

    def __init__(self, message: str, package_name: str) -> None:
        super().__init__(message)
        self.package_name = package_name


class ManifestReadError(ResolutionError):
    """The manifest descriptor is missing or is not valid JSON."""

    def __init__(self, message: str, package_name: str, manifest_path: Path) -> None:
        super().__init__(message, package_name)
        self.manifest_path = manifest_path


class CopyError(PackagerError):
    """A single file could not be copied into the output tree."""

    def __init__(self, message: str, source: Path) -> None:
        super().__init__(message)
        self.source = source


class ConfigurationError(PackagerError):
    """Invalid search-tier or output-directory configuration."""


class BuildError(PackagerError):
    """
    A build phase failed fatally.

    Attributes:
        phase: Name of the phase that failed
        result: The partial build result, with completed phase outputs intact
    """

    def __init__(self, message: str, phase: str, result: BuildResult) -> None:
        super().__init__(message)
        self.phase = phase
        self.result = result
