"""
Manifest reading functionality.

This module provides the ManifestReader class which loads a package's
manifest descriptor (package.json) and extracts its version, main entry
file and table of named sub-exports.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from .errors import ManifestReadError
from .types import PackageManifest
from .utils import clean_entry_path

# Preferred keys when an export target is a conditional mapping
CONDITION_ORDER = ("import", "browser", "default", "require")


class ManifestReader:
    """
    Loads package manifests.

    A missing or unparseable manifest raises ManifestReadError, which the
    dependency resolver records against the package instead of aborting.

    Attributes:
        manifest_name: File name of the manifest inside a package directory
    """

    def __init__(self, manifest_name: str = "package.json") -> None:
        self.manifest_name = manifest_name

    def load(self, physical_path: Path, package_name: str | None = None) -> PackageManifest:
        """
        Load and parse the manifest of the package at ``physical_path``.

        Args:
            physical_path: Package directory
            package_name: Name to report if the manifest has no "name" field
                (default: the directory name)

        Returns:
            The parsed manifest with normalized paths

        Raises:
            ManifestReadError: If the manifest is missing or is not a JSON object
        """
        manifest_path = physical_path / self.manifest_name
        fallback_name = package_name or physical_path.name

        try:
            content = manifest_path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise ManifestReadError(
                f"{self.manifest_name} not found at {manifest_path}", fallback_name, manifest_path
            ) from e
        except (OSError, UnicodeDecodeError) as e:
            raise ManifestReadError(
                f"Could not read {manifest_path}: {e}", fallback_name, manifest_path
            ) from e

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ManifestReadError(
                f"Invalid {self.manifest_name} at {manifest_path}: {e}", fallback_name, manifest_path
            ) from e

        if not isinstance(data, dict):
            raise ManifestReadError(
                f"Invalid {self.manifest_name} at {manifest_path}: expected a JSON object",
                fallback_name,
                manifest_path,
            )

        return self.parse(data, package_name=fallback_name)

    def parse(self, data: Mapping[str, Any], package_name: str) -> PackageManifest:
        """
        Build a PackageManifest from already decoded manifest data.

        The "exports" field may be a string (the main entry), or a mapping
        whose "." key overrides "main" and whose "./name" keys become named
        sub-exports. Wildcard keys are skipped.
        """
        name = str(data.get("name") or package_name)
        version = str(data.get("version") or "0.0.0")
        main_entry = clean_entry_path(_pick_target(data.get("main")))
        exports_table: dict[str, str] = {}

        exports = data.get("exports")
        if isinstance(exports, str):
            main_entry = clean_entry_path(exports)
        elif isinstance(exports, Mapping):
            if exports and not any(str(key).startswith(".") for key in exports):
                # Conditional exports for the root entry only
                target = _pick_target(exports)
                if target:
                    main_entry = clean_entry_path(target)
            else:
                for key, value in exports.items():
                    target = _pick_target(value)
                    if not target:
                        continue
                    if key == ".":
                        main_entry = clean_entry_path(target)
                        continue
                    if "*" in key:
                        continue
                    export_name = key[2:] if key.startswith("./") else key
                    export_name = export_name.strip("/")
                    if export_name:
                        exports_table[export_name] = clean_entry_path(target)

        return PackageManifest(
            package_name=name,
            version=version,
            main_entry=main_entry,
            exports_table=exports_table,
        )


def _pick_target(value: Any) -> str | None:
    """Reduce an export target (string or conditional mapping) to a path."""
    if isinstance(value, str):
        return value or None
    if isinstance(value, Mapping):
        for condition in CONDITION_ORDER:
            if condition in value:
                target = _pick_target(value[condition])
                if target:
                    return target
    return None
