"""
Package location functionality.

This module provides the PackageLocator class which finds the directory of
a package by checking an ordered list of search tiers, and the LocatorCache
which memoizes lookups per package name.
"""

from __future__ import annotations

import json
import threading
from collections.abc import Callable
from concurrent.futures import Future
from pathlib import Path

from .config import DEFAULT_SEARCH_TIERS, SearchTier
from .types import PackageLocation, SourceTier
from .utils import is_package_directory, is_valid_package_name


class LocatorCache:
    """
    Memoizes package lookups by name.

    Each name is looked up at most once until ``clear()`` is called. When
    several threads ask for the same uncached name, the first one performs
    the lookup and the others wait for its result. Negative results (None)
    are cached as well.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, Future[PackageLocation | None]] = {}

    def get_or_compute(
        self, package_name: str, compute: Callable[[str], PackageLocation | None]
    ) -> PackageLocation | None:
        """
        Return the cached result for a name, computing it on first use.

        Args:
            package_name: Package name to look up
            compute: Function performing the actual lookup

        Returns:
            The location, or None if the package was not found
        """
        with self._lock:
            future = self._entries.get(package_name)
            owner = future is None
            if owner:
                future = Future()
                self._entries[package_name] = future

        if not owner:
            return future.result()

        try:
            result = compute(package_name)
        except BaseException as e:
            # Drop the entry so a later call can retry, then wake the waiters
            with self._lock:
                self._entries.pop(package_name, None)
            future.set_exception(e)
            raise
        future.set_result(result)
        return result

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, package_name: str) -> bool:
        with self._lock:
            return package_name in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def names(self) -> list[str]:
        with self._lock:
            return list(self._entries)


class PackageLocator:
    """
    Finds packages across ordered search tiers.

    Tiers are checked framework first, then workspace-local, then the
    system-wide cache. The first candidate directory that contains a
    manifest descriptor wins; tiers are never merged.

    Attributes:
        project_root: Root directory the tier templates are expanded against
        search_tiers: Tiers in precedence order
        manifest_name: File name that marks a package directory
        cache: Lookup cache shared by all callers of this locator
    """

    def __init__(
        self,
        project_root: Path,
        search_tiers: tuple[SearchTier, ...] = DEFAULT_SEARCH_TIERS,
        manifest_name: str = "package.json",
        cache: LocatorCache | None = None,
    ) -> None:
        """
        Initialize the locator.

        Args:
            project_root: Root directory of the project
            search_tiers: Candidate directory templates, already in precedence order
            manifest_name: File name of the manifest descriptor
            cache: Cache to use (default: a new private cache)
        """
        self.project_root = project_root.resolve()
        self.search_tiers = search_tiers
        self.manifest_name = manifest_name
        self.cache = cache if cache is not None else LocatorCache()

    def resolve(self, package_name: str) -> PackageLocation | None:
        """
        Locate a package by name.

        Args:
            package_name: Full package name, e.g. "@scope/widgets"

        Returns:
            PackageLocation for the first matching tier, or None if not found
        """
        if not is_valid_package_name(package_name):
            return None
        return self.cache.get_or_compute(package_name, self._search)

    def candidate_paths(self, package_name: str) -> list[tuple[SourceTier, Path]]:
        """List every directory checked for a package, in search order."""
        return [
            (tier.kind, tier.expand(self.project_root, package_name)) for tier in self.search_tiers
        ]

    def _search(self, package_name: str) -> PackageLocation | None:
        for kind, candidate in self.candidate_paths(package_name):
            if is_package_directory(candidate, self.manifest_name):
                return PackageLocation(
                    package_name=package_name, physical_path=candidate, source_tier=kind
                )
        return None

    def clear_cache(self) -> None:
        """Forget all lookups so newly installed packages are picked up."""
        self.cache.clear()

    def cache_stats(self) -> dict[str, object]:
        return {"cached": len(self.cache), "entries": self.cache.names()}

    def list_packages(self, tier: SourceTier | None = None) -> list[dict[str, str]]:
        """
        Enumerate packages visible in the configured tiers.

        Each tier template is expanded with a wildcard package name and the
        parent directory is scanned for sub-directories holding a manifest.

        Args:
            tier: Restrict the listing to one tier kind

        Returns:
            Dictionaries with name, version, path and tier keys
        """
        packages: list[dict[str, str]] = []
        seen: set[Path] = set()

        for search_tier in self.search_tiers:
            if tier is not None and search_tier.kind != tier:
                continue
            parent = search_tier.expand(self.project_root, "@scope/__any__").parent
            if "@scope" in parent.parts:
                # Scoped layout (e.g. node_modules/{package}): scan every scope directory
                scope_root = parent.parent
                candidates = [
                    entry
                    for scope_dir in _iter_dirs(scope_root)
                    if scope_dir.name.startswith("@")
                    for entry in _iter_dirs(scope_dir)
                ] + [d for d in _iter_dirs(scope_root) if not d.name.startswith("@")]
            else:
                candidates = list(_iter_dirs(parent))

            for entry in candidates:
                if entry in seen or not is_package_directory(entry, self.manifest_name):
                    continue
                seen.add(entry)
                try:
                    data = json.loads((entry / self.manifest_name).read_text(encoding="utf-8"))
                except (OSError, ValueError):
                    continue
                if not isinstance(data, dict):
                    continue
                packages.append(
                    {
                        "name": str(data.get("name") or entry.name),
                        "version": str(data.get("version") or "0.0.0"),
                        "path": str(entry),
                        "tier": search_tier.kind,
                    }
                )

        return packages


def _iter_dirs(path: Path) -> list[Path]:
    if not path.is_dir():
        return []
    try:
        return sorted(entry for entry in path.iterdir() if entry.is_dir())
    except OSError:
        return []
