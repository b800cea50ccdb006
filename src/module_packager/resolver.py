"""
Dependency resolution functionality.

This module provides the DependencyResolver class which turns a list of
parsed imports into a Resolution: every framework package is located and
its manifest loaded, and failures are recorded per package without
stopping the resolution of the others.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from .errors import ManifestReadError, ResolutionError
from .locator import PackageLocator
from .manifest import ManifestReader
from .parser import ImportParser
from .types import ImportDeclaration, PackageLocation, PackageManifest, Resolution, ResolvedPackage
from .utils import is_valid_package_name, scoped_name

NO_IMPORTS_WARNING = "No imports to resolve"
NO_FRAMEWORK_IMPORTS_WARNING = "No framework imports to resolve"


class DependencyResolver:
    """
    Resolves framework imports to located packages.

    External and local imports are recorded for information only; they are
    never looked up and never produce errors.

    Attributes:
        locator: PackageLocator used to find package directories
        reader: ManifestReader used to load package manifests
        parser: ImportParser used when raw source text is passed in
        validate_exports: Check named-import symbols against package exports
        max_workers: Upper bound on concurrent package lookups
    """

    def __init__(
        self,
        locator: PackageLocator,
        reader: ManifestReader | None = None,
        parser: ImportParser | None = None,
        validate_exports: bool = True,
        max_workers: int = 8,
    ) -> None:
        self.locator = locator
        self.reader = reader or ManifestReader(locator.manifest_name)
        self.parser = parser or ImportParser()
        self.validate_exports = validate_exports
        self.max_workers = max_workers

    def resolve_all(
        self, imports: str | Sequence[ImportDeclaration | str | Mapping[str, Any]] | None
    ) -> Resolution:
        """
        Resolve every framework import.

        Packages are looked up concurrently; results, errors and warnings are
        recorded in the order the packages first appear in the imports.

        Args:
            imports: Source text or already parsed imports (see ImportParser.coerce)

        Returns:
            A frozen Resolution. With no imports, or no framework imports, the
            resolution is empty and carries a single warning.
        """
        declarations = self.parser.coerce(imports)
        resolution = Resolution()

        if not declarations:
            resolution.add_warning(NO_IMPORTS_WARNING)
            return resolution.freeze()

        by_package: dict[str, list[ImportDeclaration]] = {}
        for declaration in declarations:
            if declaration.category == "local":
                resolution.local.append(declaration.source_specifier)
            elif declaration.category == "external":
                resolution.external.append(declaration.source_specifier)
            else:
                by_package.setdefault(declaration.package_name, []).append(declaration)

        if not by_package:
            resolution.add_warning(NO_FRAMEWORK_IMPORTS_WARNING)
            return resolution.freeze()

        destinations: dict[str, str] = {}
        workers = max(1, min(self.max_workers, len(by_package)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="resolve") as pool:
            futures = {name: pool.submit(self.resolve_package, name) for name in by_package}

            for name, package_imports in by_package.items():
                try:
                    location, manifest = futures[name].result()
                except ResolutionError as e:
                    resolution.add_unresolved(name, str(e))
                    continue

                scoped = scoped_name(name)
                if scoped in destinations:
                    resolution.add_unresolved(
                        name,
                        f"Package {name} conflicts with {destinations[scoped]}: both are "
                        f"collected into '{scoped}'",
                    )
                    continue
                destinations[scoped] = name

                symbols: list[str] = []
                for declaration in package_imports:
                    for symbol in declaration.symbol_names:
                        if symbol not in symbols:
                            symbols.append(symbol)

                package = ResolvedPackage(
                    location=location, manifest=manifest, requested_symbols=symbols
                )
                resolution.add_package(package)

                if self.validate_exports:
                    for warning in self.check_exports(package, package_imports):
                        resolution.add_warning(warning)

        return resolution.freeze()

    def resolve_package(self, package_name: str) -> tuple[PackageLocation, PackageManifest]:
        """
        Locate one package and load its manifest.

        Raises:
            ResolutionError: If the package name is invalid or the package is in
                no search tier
            ManifestReadError: If its manifest cannot be read
        """
        if not is_valid_package_name(package_name):
            raise ResolutionError(f"Invalid package name: '{package_name}'", package_name)

        location = self.locator.resolve(package_name)
        if location is None:
            searched = ", ".join(str(path) for _, path in self.locator.candidate_paths(package_name))
            raise ResolutionError(
                f"Package not found: {package_name} (searched: {searched})", package_name
            )

        try:
            manifest = self.reader.load(location.physical_path, package_name=package_name)
        except ManifestReadError as e:
            raise ManifestReadError(
                f"Cannot read manifest of {package_name}: {e}", package_name, e.manifest_path
            ) from e

        return location, manifest

    def check_exports(
        self, package: ResolvedPackage, declarations: Sequence[ImportDeclaration]
    ) -> list[str]:
        """
        Check requested sub-exports and named symbols against a package.

        A symbol counts as exported when it matches a key of the manifest's
        export table (case-insensitive) or when the entry file it would come
        from declares it. Unmatched names produce warnings, never errors.

        Returns:
            Warning messages, in import order
        """
        warnings: list[str] = []
        manifest = package.manifest
        export_keys = {key.lower() for key in manifest.exports_table}
        sources: dict[str, str | None] = {}

        for declaration in declarations:
            entry = manifest.main_entry
            subpath = declaration.subpath
            if subpath:
                if subpath not in manifest.exports_table:
                    warnings.append(
                        f"Line {declaration.source_line}: '{declaration.source_specifier}' is not "
                        f"an export of {package.name}"
                    )
                    continue
                entry = manifest.exports_table[subpath]

            if declaration.kind != "named":
                continue

            for symbol in declaration.symbol_names:
                if symbol == "default" or symbol.lower() in export_keys:
                    continue
                if entry not in sources:
                    sources[entry] = _read_source(package, entry)
                if _declares_export(sources[entry], symbol):
                    continue
                warnings.append(
                    f"Line {declaration.source_line}: cannot verify export of '{symbol}' "
                    f"from '{declaration.source_specifier}'"
                )

        return warnings


def _read_source(package: ResolvedPackage, relative_path: str) -> str | None:
    try:
        return (package.physical_path / relative_path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None


def _declares_export(source: str | None, symbol: str) -> bool:
    if source is None:
        return False
    name = re.escape(symbol)
    declaration = re.compile(
        rf"export\s+(?:default\s+)?(?:async\s+)?(?:class|function\*?|const|let|var)\s+{name}\b"
    )
    listed = re.compile(rf"export\s*\{{[^}}]*(?<![\w$]){name}(?![\w$])[^}}]*\}}")
    # `export * from` re-exports cannot be checked without following them
    star = re.compile(r"export\s*\*\s*from\b")
    return bool(declaration.search(source) or listed.search(source) or star.search(source))
