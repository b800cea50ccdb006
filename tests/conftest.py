"""Pytest configuration and fixtures."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from module_packager import PackagerConfig, SearchTier
from module_packager.config import DEFAULT_SEARCH_TIERS

# Default tiers without the one under the user's home directory, so tests
# only ever see packages created inside tmp_path
PROJECT_TIERS = tuple(tier for tier in DEFAULT_SEARCH_TIERS if "{home}" not in tier.template)


def write_package(
    directory: Path,
    manifest: dict | str | None,
    files: dict[str, str] | None = None,
) -> Path:
    """
    Create a package directory.

    Args:
        directory: Package directory to create
        manifest: Manifest content (dict is dumped as JSON, str written verbatim,
            None writes no manifest)
        files: Relative path -> file content

    Returns:
        The package directory
    """
    directory.mkdir(parents=True, exist_ok=True)
    if manifest is not None:
        content = manifest if isinstance(manifest, str) else json.dumps(manifest)
        (directory / "package.json").write_text(content, encoding="utf-8")
    for relative, content in (files or {}).items():
        path = directory / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return directory


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """Create an empty project with a package.json."""
    root = tmp_path / "app"
    root.mkdir()
    (root / "package.json").write_text('{"name": "app", "version": "1.0.0"}')
    return root


@pytest.fixture
def package_factory():
    """Return the write_package helper."""
    return write_package


@pytest.fixture
def project_tiers() -> tuple[SearchTier, ...]:
    """Default search tiers that stay inside the project root."""
    return PROJECT_TIERS


@pytest.fixture
def widgets_package(project_root: Path) -> Path:
    """Create @scope/widgets in the framework tier with main entry dist/index.js."""
    return write_package(
        project_root / "packages" / "engine" / "src" / "widgets",
        {"name": "@scope/widgets", "version": "1.2.0", "main": "dist/index.js"},
        {
            "dist/index.js": "export class Button {}\nexport function render() {}\n",
            "dist/index.js.map": "{}",
        },
    )


@pytest.fixture
def config(project_root: Path) -> PackagerConfig:
    """Configuration for the test project, restricted to project-local tiers."""
    return PackagerConfig(project_root=project_root, search_tiers=PROJECT_TIERS, max_workers=4)
