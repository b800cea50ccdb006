"""
Type definitions for the package.

This module contains the core data structures used throughout the package
for representing parsed imports, located packages, the resolution of a
source file's imports, copy results, and the overall build result.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from .utils import package_name_from_specifier, scoped_name, subpath_from_specifier

if TYPE_CHECKING:
    from .alias_table import AliasTable

ImportKind = Literal["named", "default", "namespace"]
ImportCategory = Literal["framework", "external", "local"]
SourceTier = Literal["framework", "workspace-local", "system-cache"]

TIER_ORDER: tuple[SourceTier, ...] = ("framework", "workspace-local", "system-cache")


@dataclass(frozen=True)
class ImportDeclaration:
    """
    A single import statement found in a source file.

    Attributes:
        source_specifier: The module specifier, e.g. "@scope/widgets" or "./util.js"
        kind: "named" for `{ a, b as c }`, "namespace" for `* as NS`,
            "default" for a bare identifier or a side-effect import
        requested_symbols: Ordered (original_name, local_alias) pairs. Namespace
            imports use "*" and default imports use "default" as the original name
        source_line: 1-based line number of the statement
        category: "framework", "external" or "local", derived from the specifier
    """

    source_specifier: str
    kind: ImportKind
    requested_symbols: tuple[tuple[str, str], ...] = ()
    source_line: int = 0
    category: ImportCategory = "external"

    @property
    def package_name(self) -> str | None:
        """Package name the specifier refers to, or None for local imports."""
        if self.category == "local":
            return None
        return package_name_from_specifier(self.source_specifier)

    @property
    def subpath(self) -> str | None:
        """Sub-export requested through the specifier ('@scope/pkg/button' -> 'button')."""
        if self.category == "local":
            return None
        return subpath_from_specifier(self.source_specifier)

    @property
    def symbol_names(self) -> list[str]:
        """Original names of the requested symbols."""
        return [original for original, _alias in self.requested_symbols]


@dataclass(frozen=True)
class PackageLocation:
    """
    Where a package was found on disk.

    Attributes:
        package_name: Full package name, e.g. "@scope/widgets"
        physical_path: Directory containing the package manifest
        source_tier: Search tier the package was found in
    """

    package_name: str
    physical_path: Path
    source_tier: SourceTier


@dataclass(frozen=True)
class PackageManifest:
    """
    Metadata loaded from a package's manifest descriptor.

    Paths are normalized: no leading './', no repeated separators and a
    single trailing file extension.

    Attributes:
        package_name: Name of the package
        version: Declared version ("0.0.0" when absent)
        main_entry: Relative path of the default entry file
        exports_table: Sub-export name -> relative file path
    """

    package_name: str
    version: str
    main_entry: str
    exports_table: dict[str, str] = field(default_factory=dict)


@dataclass
class ResolvedPackage:
    """A package located on disk together with its manifest."""

    location: PackageLocation
    manifest: PackageManifest
    requested_symbols: list[str] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.location.package_name

    @property
    def scoped_name(self) -> str:
        return scoped_name(self.location.package_name)

    @property
    def physical_path(self) -> Path:
        return self.location.physical_path


@dataclass
class Resolution:
    """
    Result of resolving a source file's imports.

    Created empty, populated while imports are processed and frozen once
    resolution finishes. An empty ``packages`` mapping is a valid result.

    Attributes:
        packages: Package name -> located package and manifest
        unresolved: Names of framework packages that could not be resolved
        errors: Ordered error messages
        warnings: Ordered warning messages
        external: Specifiers of external imports (informational)
        local: Specifiers of local imports (informational)
    """

    packages: dict[str, ResolvedPackage] = field(default_factory=dict)
    unresolved: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    external: list[str] = field(default_factory=list)
    local: list[str] = field(default_factory=list)
    frozen: bool = False

    def _check_mutable(self) -> None:
        if self.frozen:
            raise RuntimeError("Resolution is frozen and cannot be modified")

    def add_package(self, package: ResolvedPackage) -> None:
        self._check_mutable()
        self.packages[package.name] = package

    def add_unresolved(self, package_name: str, message: str) -> None:
        self._check_mutable()
        self.unresolved.append(package_name)
        self.errors.append(message)

    def add_error(self, message: str) -> None:
        self._check_mutable()
        self.errors.append(message)

    def add_warning(self, message: str) -> None:
        self._check_mutable()
        self.warnings.append(message)

    def freeze(self) -> Resolution:
        """Mark the resolution read-only and return it."""
        self.frozen = True
        return self

    @property
    def is_empty(self) -> bool:
        return not self.packages

    def has_errors(self) -> bool:
        return bool(self.errors)

    def summary(self) -> str:
        return (
            f"Resolved {len(self.packages)} packages "
            f"({len(self.unresolved)} unresolved, {len(self.errors)} errors, "
            f"{len(self.warnings)} warnings)"
        )


@dataclass(frozen=True)
class CopiedFile:
    """A file copied into the output tree (paths relative to package and output roots)."""

    source_relative: str
    dest_relative: str
    byte_size: int


@dataclass(frozen=True)
class FailedFile:
    """A file that could not be copied."""

    file: str
    error_message: str


@dataclass
class CopyResult:
    """
    Outcome of copying one package into the output tree.

    Attributes:
        package_name: Full package name
        destination: Directory the package was copied into
        copied_files: Files that were copied, in enumeration order
        failed_files: Files that failed to copy, with the error message
        error: Package-level failure (e.g. source directory missing)
    """

    package_name: str
    destination: Path | None = None
    copied_files: list[CopiedFile] = field(default_factory=list)
    failed_files: list[FailedFile] = field(default_factory=list)
    error: str | None = None

    @property
    def total_bytes(self) -> int:
        return sum(copied.byte_size for copied in self.copied_files)

    @property
    def success(self) -> bool:
        return self.error is None and not self.failed_files


@dataclass
class CollectionSession:
    """
    All copy results of one collection run.

    Attributes:
        results: Package name -> copy result
        start_time: Wall-clock start (seconds since the epoch)
        end_time: Wall-clock end, set when the session finishes
    """

    results: dict[str, CopyResult] = field(default_factory=dict)
    start_time: float = field(default_factory=time.time)
    end_time: float | None = None

    def add_result(self, result: CopyResult) -> None:
        self.results[result.package_name] = result

    def finish(self) -> CollectionSession:
        self.end_time = time.time()
        return self

    @property
    def success_count(self) -> int:
        return sum(1 for result in self.results.values() if result.success)

    @property
    def failure_count(self) -> int:
        return sum(1 for result in self.results.values() if not result.success)

    @property
    def total_files(self) -> int:
        return sum(len(result.copied_files) for result in self.results.values())

    @property
    def failed_files(self) -> int:
        return sum(len(result.failed_files) for result in self.results.values())

    @property
    def total_bytes(self) -> int:
        return sum(result.total_bytes for result in self.results.values())

    @property
    def duration_ms(self) -> int:
        end = self.end_time if self.end_time is not None else time.time()
        return int((end - self.start_time) * 1000)

    def report(self) -> dict[str, object]:
        return {
            "total": len(self.results),
            "successful": self.success_count,
            "failed": self.failure_count,
            "files": self.total_files,
            "failed_files": self.failed_files,
            "bytes": self.total_bytes,
            "size": f"{self.total_bytes / (1024 * 1024):.2f} MB",
            "duration": f"{self.duration_ms}ms",
        }


class BuildPhase(Enum):
    """States of the build orchestrator, in order."""

    IDLE = "idle"
    PARSED = "parsed"
    RESOLVED = "resolved"
    INSTALLED = "installed"
    COLLECTED = "collected"
    ALIAS_TABLE_READY = "alias_table_ready"
    DONE = "done"


@dataclass
class BuildResult:
    """
    Shared result object threaded through the build phases.

    Each phase stores its output here; after a fatal failure the outputs
    of the completed phases stay available for diagnostics.
    """

    phase: BuildPhase = BuildPhase.IDLE
    imports: list[ImportDeclaration] = field(default_factory=list)
    parse_errors: list[str] = field(default_factory=list)
    resolution: Resolution | None = None
    collection: CollectionSession | None = None
    alias_table: AliasTable | None = None
    alias_table_path: Path | None = None
    warnings: list[str] = field(default_factory=list)
    failed_phase: str | None = None
    fatal_error: str | None = None
    duration_ms: int = 0

    @property
    def success(self) -> bool:
        return self.phase is BuildPhase.DONE and self.fatal_error is None

    @property
    def stats(self) -> dict[str, int]:
        by_category = {"framework": 0, "external": 0, "local": 0}
        for declaration in self.imports:
            by_category[declaration.category] += 1

        resolution = self.resolution
        collection = self.collection
        return {
            "imports": len(self.imports),
            "framework_imports": by_category["framework"],
            "external_imports": by_category["external"],
            "local_imports": by_category["local"],
            "packages_resolved": len(resolution.packages) if resolution else 0,
            "packages_unresolved": len(resolution.unresolved) if resolution else 0,
            "files_copied": collection.total_files if collection else 0,
            "files_failed": collection.failed_files if collection else 0,
            "bytes_copied": collection.total_bytes if collection else 0,
            "alias_entries": len(self.alias_table) if self.alias_table else 0,
            "duration_ms": self.duration_ms,
        }
