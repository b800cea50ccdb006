"""
Utility functions for project discovery and path normalization.
"""

from __future__ import annotations

import re
from pathlib import Path

_DOUBLED_EXTENSION = re.compile(r"(\.[A-Za-z0-9]+)\1+$")
_REPEATED_SEPARATORS = re.compile(r"/{2,}")


def find_project_root(
    start_path: Path | None = None, markers: tuple[str, ...] = ("package.json", "pyproject.toml")
) -> Path | None:
    """
    Find the project root by searching for a marker file in parent directories.

    Starts from the given path (or current directory) and walks up the directory
    tree until it finds a directory containing one of the marker files.

    Args:
        start_path: Starting directory for the search (default: current directory)
        markers: File names that identify a project root

    Returns:
        Path to the project root directory, or None if not found
    """
    if start_path is None:
        start_path = Path.cwd()

    current = Path(start_path).resolve()

    # Walk up the directory tree
    while current != current.parent:
        if any((current / marker).exists() for marker in markers):
            return current
        current = current.parent

    # Check the root directory itself
    if any((current / marker).exists() for marker in markers):
        return current

    return None


def is_package_directory(path: Path, manifest_name: str = "package.json") -> bool:
    """
    Check if a directory looks like a package (contains a manifest descriptor).

    Args:
        path: Directory to check
        manifest_name: File name of the manifest descriptor

    Returns:
        True if the directory exists and contains the manifest file
    """
    if not path.is_dir():
        return False
    return (path / manifest_name).is_file()


def package_name_from_specifier(specifier: str) -> str:
    """
    Extract the package name from a module specifier.

    '@scope/widgets/button' -> '@scope/widgets'
    'lodash/fp' -> 'lodash'
    """
    parts = specifier.split("/")
    if specifier.startswith("@") and len(parts) >= 2:
        return "/".join(parts[:2])
    return parts[0]


def subpath_from_specifier(specifier: str) -> str | None:
    """Return the part of a specifier after its package name, or None."""
    package_name = package_name_from_specifier(specifier)
    rest = specifier[len(package_name) :].strip("/")
    return rest or None


def scoped_name(package_name: str) -> str:
    """
    Strip the scope from a package name.

    '@flutterjs/material' -> 'material'
    'some-package' -> 'some-package'
    """
    if package_name.startswith("@") and "/" in package_name:
        return package_name.split("/", 1)[1]
    return package_name


def is_valid_package_name(package_name: str) -> bool:
    """
    Check that a package name maps to exactly one directory name.

    The part after the scope is used as a directory name in search tiers
    and in the output tree, so it must not be empty, '.' or '..' and must
    not contain a path separator.
    """
    if not package_name or "\\" in package_name:
        return False
    if package_name.startswith("@"):
        parts = package_name.split("/")
        if len(parts) != 2 or parts[0] in ("@", "@.", "@.."):
            return False
        name = parts[1]
    else:
        if "/" in package_name:
            return False
        name = package_name
    return name not in ("", ".", "..")


def package_scope(package_name: str) -> str | None:
    """Return the scope of a scoped package name ('@scope'), or None."""
    if package_name.startswith("@") and "/" in package_name:
        return package_name.split("/", 1)[0]
    return None


def clean_entry_path(file_path: str | None, rooted: bool = False) -> str:
    """
    Normalize an entry-point path declared in a manifest.

    Strips a single leading './', collapses a repeated trailing extension
    ('index.js.js' -> 'index.js'), collapses repeated separators and drops
    any leading separator. With ``rooted`` the result is prefixed with '/'.

    Args:
        file_path: Path as written in the manifest
        rooted: Prefix the result with a path separator

    Returns:
        The cleaned path; 'index.js' when no path is given
    """
    if not file_path:
        file_path = "index.js"

    cleaned = file_path.replace("\\", "/")
    if cleaned.startswith("./"):
        cleaned = cleaned[2:]
    cleaned = _DOUBLED_EXTENSION.sub(r"\1", cleaned)
    cleaned = _REPEATED_SEPARATORS.sub("/", cleaned)
    cleaned = cleaned.lstrip("/")

    if rooted:
        return "/" + cleaned
    return cleaned


def normalize_alias_path(path: str) -> str:
    """
    Normalize an output path for use in the alias table.

    Collapses '/./' segments and repeated separators and guarantees a
    single leading separator. Normalizing an already normalized path
    returns it unchanged.
    """
    normalized = "/" + path.replace("\\", "/")
    normalized = _REPEATED_SEPARATORS.sub("/", normalized)
    while "/./" in normalized:
        normalized = normalized.replace("/./", "/")
    if normalized.endswith("/."):
        normalized = normalized[:-2] or "/"
    return normalized
