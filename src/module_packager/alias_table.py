"""
Alias table (import map) generation.

This module provides the AliasTable, a mapping from bare module specifiers
to output file paths that a browser module loader consumes, and the
AliasTableBuilder which derives it from a Resolution.
"""

from __future__ import annotations

import json
from collections.abc import Iterator, Mapping
from pathlib import Path

from .types import Resolution
from .utils import normalize_alias_path


class AliasTable(Mapping[str, str]):
    """
    Read-only mapping of alias keys to output paths.

    Keys are either a bare package name (its main entry) or
    ``package name + "/" + sub-export name``. Entries are kept sorted by key
    so serialization is canonical.
    """

    def __init__(self, entries: Mapping[str, str] | None = None) -> None:
        self._entries = dict(sorted((entries or {}).items()))

    def __getitem__(self, key: str) -> str:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"AliasTable({self._entries!r})"

    @property
    def entries(self) -> dict[str, str]:
        return dict(self._entries)

    def to_dict(self) -> dict[str, dict[str, str]]:
        """Import-map shaped object: {"imports": {...}}."""
        return {"imports": dict(self._entries)}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    def to_script(self) -> str:
        """The table as a <script type="importmap"> tag for an HTML page."""
        return f'<script type="importmap">\n{self.to_json()}\n</script>'

    def write(self, path: Path) -> Path:
        """Write the JSON form to ``path`` and return it."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_json() + "\n", encoding="utf-8")
        return path


class AliasTableBuilder:
    """
    Builds alias tables from resolutions.

    The builder is pure: the same Resolution and base directory always yield
    an identical table. Tables are rebuilt wholesale, never patched.
    """

    def build(self, resolution: Resolution, base_output_dir: str | Path) -> AliasTable:
        """
        Build the alias table for every resolved package.

        Args:
            resolution: Resolution whose packages are mapped
            base_output_dir: Root the output paths are built under

        Returns:
            AliasTable with one entry per package main entry and one per
            named sub-export
        """
        base = str(base_output_dir).replace("\\", "/")
        entries: dict[str, str] = {}

        for name, package in resolution.packages.items():
            manifest = package.manifest
            package_root = f"{base}/{package.scoped_name}"
            entries[name] = normalize_alias_path(f"{package_root}/{manifest.main_entry}")
            for export_name, export_path in manifest.exports_table.items():
                entries[f"{name}/{export_name}"] = normalize_alias_path(
                    f"{package_root}/{export_path}"
                )

        return AliasTable(entries)
