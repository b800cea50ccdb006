"""
Build management functionality.

This module provides the BuildManager class which orchestrates the build:
parsing the entry file's imports, resolving framework packages, optionally
running an install command, copying package files into the output
directory, and writing the alias table the browser loader consumes.
"""

from __future__ import annotations

import subprocess
import sys
import time
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Any

from .alias_table import AliasTable, AliasTableBuilder
from .collector import PackageCollector
from .config import PackagerConfig
from .errors import BuildError, PackagerError
from .locator import LocatorCache, PackageLocator
from .manifest import ManifestReader
from .parser import ImportParser
from .resolver import DependencyResolver
from .types import BuildPhase, BuildResult, ImportDeclaration

ImportSource = str | Path | Sequence[ImportDeclaration | str | Mapping[str, Any]] | None


class BuildManager:
    """
    Runs the build phases in order.

    The phases are Parsed -> Resolved -> Installed -> Collected ->
    AliasTableReady -> Done. Each phase stores its output on a shared
    BuildResult. When the resolution is empty the build goes straight from
    Resolved to Done with a warning and removes an alias table left by an
    earlier run. A fatal phase failure stops the build
    and leaves the outputs of the completed phases on the result.

    Attributes:
        config: Validated packager configuration
        project_root: Root directory of the project
        parser: ImportParser for the entry file
        locator: PackageLocator shared by all runs of this manager
        resolver: DependencyResolver
        collector: PackageCollector
        alias_builder: AliasTableBuilder
        result: Result of the most recent run
    """

    def __init__(
        self,
        config: PackagerConfig,
        locator_cache: LocatorCache | None = None,
        quiet: bool = False,
        copy_function: Callable[[Path, Path], object] | None = None,
    ) -> None:
        """
        Initialize the build manager.

        Args:
            config: Packager configuration
            locator_cache: Cache to share with other managers (default: a private cache)
            quiet: Suppress progress output (warnings and errors are still printed)
            copy_function: Override the per-file copy function of the collector

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        config.validate()

        self.config = config
        self.project_root = Path(config.project_root).resolve()
        self.quiet = quiet

        self.parser = ImportParser(config.framework_scopes)
        self.locator = PackageLocator(
            self.project_root,
            config.ordered_tiers(),
            manifest_name=config.manifest_name,
            cache=locator_cache,
        )
        self.resolver = DependencyResolver(
            self.locator,
            ManifestReader(config.manifest_name),
            self.parser,
            validate_exports=config.validate_exports,
            max_workers=config.max_workers,
        )
        collector_options: dict[str, Any] = {}
        if copy_function is not None:
            collector_options["copy_function"] = copy_function
        self.collector = PackageCollector(
            include_extensions=config.include_extensions,
            exclude_names=config.exclude_names,
            exclude_directories=config.exclude_directories,
            max_workers=config.max_workers,
            **collector_options,
        )
        self.alias_builder = AliasTableBuilder()
        self.result = BuildResult()

    def run(
        self, source: ImportSource = None, strict: bool = False, analyze_only: bool = False
    ) -> BuildResult:
        """
        Run the build.

        Args:
            source: Source text, a file path, or already parsed imports.
                Defaults to the configured entry file.
            strict: Raise BuildError on a fatal phase failure instead of
                returning the partial result
            analyze_only: Stop after resolution (nothing is written)

        Returns:
            The BuildResult. ``success`` is False when a phase failed fatally.

        Raises:
            BuildError: On a fatal phase failure when ``strict`` is set

        Example:
            ```python
            config = PackagerConfig.load(Path("."))
            result = BuildManager(config).run()
            print(result.alias_table.to_json())
            ```
        """
        result = BuildResult()
        self.result = result
        start = time.time()

        steps: list[tuple[BuildPhase, Callable[[BuildResult], None]]] = [
            (BuildPhase.PARSED, lambda r: self._parse(r, source)),
            (BuildPhase.RESOLVED, self._resolve),
            (BuildPhase.INSTALLED, self._install),
            (BuildPhase.COLLECTED, self._collect),
            (BuildPhase.ALIAS_TABLE_READY, self._build_alias_table),
            (BuildPhase.DONE, self._emit),
        ]

        try:
            for phase, step in steps:
                try:
                    step(result)
                except (PackagerError, OSError) as e:
                    result.failed_phase = phase.value
                    result.fatal_error = str(e)
                    print(f"Error: {phase.value} phase failed: {e}", file=sys.stderr)
                    if strict:
                        raise BuildError(str(e), phase.value, result) from e
                    return result

                if phase is BuildPhase.RESOLVED:
                    if analyze_only:
                        result.phase = BuildPhase.DONE
                        return result
                    if result.resolution.is_empty:
                        self._warn(
                            result,
                            "No framework packages resolved; skipping install, collection "
                            "and alias table generation",
                        )
                        self._discard_alias_table(result)
                        result.phase = BuildPhase.DONE
                        return result
                result.phase = phase
        finally:
            result.duration_ms = int((time.time() - start) * 1000)

        return result

    def _parse(self, result: BuildResult, source: ImportSource) -> None:
        if source is None:
            source = self.config.entry_path
        if isinstance(source, Path):
            self._print(f"Parsing imports in {source}...")
            source = source.read_text(encoding="utf-8")

        result.imports = self.parser.coerce(source)
        result.parse_errors = [str(e) for e in self.parser.errors]
        for message in result.parse_errors:
            self._warn(result, message)

        counts = result.stats
        self._print(
            f"Found {counts['imports']} imports "
            f"({counts['framework_imports']} framework, {counts['external_imports']} external, "
            f"{counts['local_imports']} local)"
        )

    def _resolve(self, result: BuildResult) -> None:
        self._print("Resolving framework packages...")
        resolution = self.resolver.resolve_all(result.imports)
        result.resolution = resolution

        for name, package in resolution.packages.items():
            self._print(
                f"  {name}@{package.manifest.version} -> {package.physical_path} "
                f"({package.location.source_tier})"
            )
        for message in resolution.errors:
            print(f"Error: {message}", file=sys.stderr)
        for message in resolution.warnings:
            print(f"Warning: {message}", file=sys.stderr)
        self._print(resolution.summary())

    def _install(self, result: BuildResult) -> None:
        command = self.config.install_command
        if not command:
            return

        self._print(f"Running install command: {command}")
        completed = subprocess.run(command, shell=True, check=False, cwd=self.project_root)
        if completed.returncode != 0:
            raise PackagerError(
                f"Install command '{command}' failed with exit code {completed.returncode}"
            )
        # Installed packages may now live in a different tier
        self.locator.clear_cache()

    def _collect(self, result: BuildResult) -> None:
        output = self.config.output_path
        self._print(f"Collecting packages into {output}...")
        session = self.collector.collect(result.resolution, output)
        result.collection = session

        for name, copy_result in session.results.items():
            if copy_result.error:
                print(f"Error: {name}: {copy_result.error}", file=sys.stderr)
                continue
            self._print(
                f"  {name}: {len(copy_result.copied_files)} files, "
                f"{copy_result.total_bytes / 1024:.2f} KB"
            )
            for failed in copy_result.failed_files:
                print(f"Warning: {name}: {failed.file}: {failed.error_message}", file=sys.stderr)

        report = session.report()
        self._print(
            f"Collected {report['successful']}/{report['total']} packages, "
            f"{report['files']} files, {report['size']} in {report['duration']}"
        )

    def _build_alias_table(self, result: BuildResult) -> None:
        result.alias_table = self.alias_builder.build(result.resolution, self.config.alias_root)
        self._print(f"Alias table ready with {len(result.alias_table)} entries")

    def _emit(self, result: BuildResult) -> None:
        path = self.config.output_path / self.config.alias_table_file
        result.alias_table_path = result.alias_table.write(path)
        self._print(f"Wrote alias table: {path}")

    def _discard_alias_table(self, result: BuildResult) -> None:
        path = self.config.output_path / self.config.alias_table_file
        if not path.is_file():
            return
        try:
            path.unlink()
        except OSError as e:
            self._warn(result, f"Could not remove stale alias table {path}: {e}")
            return
        self._print(f"Removed stale alias table: {path}")

    def rebuild_alias_table(self, alias_base: str | None = None) -> AliasTable | None:
        """
        Rebuild the alias table of the last run for a different base directory.

        The table is regenerated from the resolution, never patched.

        Args:
            alias_base: New URL root (default: the configured one)

        Returns:
            The new table, or None if the last run has no resolution
        """
        if self.result.resolution is None:
            return None
        base = alias_base if alias_base is not None else self.config.alias_root
        self.result.alias_table = self.alias_builder.build(self.result.resolution, base)
        return self.result.alias_table

    def clear_cache(self) -> None:
        """Drop cached package locations (e.g. after packages were installed)."""
        self.locator.clear_cache()

    def print_report(self, result: BuildResult | None = None) -> None:
        """Print a summary of a build result."""
        result = result or self.result
        stats = result.stats
        print("=" * 70)
        print(f"Build {'succeeded' if result.success else 'failed'} in {stats['duration_ms']}ms")
        print(
            f"  Imports: {stats['imports']} ({stats['framework_imports']} framework, "
            f"{stats['external_imports']} external, {stats['local_imports']} local)"
        )
        print(
            f"  Packages: {stats['packages_resolved']} resolved, "
            f"{stats['packages_unresolved']} unresolved"
        )
        if result.resolution and result.resolution.unresolved:
            for name in result.resolution.unresolved:
                print(f"    unresolved: {name}")
        print(
            f"  Files: {stats['files_copied']} copied, {stats['files_failed']} failed, "
            f"{stats['bytes_copied']} bytes"
        )
        print(f"  Alias entries: {stats['alias_entries']}")
        if result.fatal_error:
            print(f"  Failed phase: {result.failed_phase}: {result.fatal_error}")
        print("=" * 70)

    def _print(self, message: str) -> None:
        if not self.quiet:
            print(message)

    def _warn(self, result: BuildResult, message: str) -> None:
        result.warnings.append(message)
        print(f"Warning: {message}", file=sys.stderr)
