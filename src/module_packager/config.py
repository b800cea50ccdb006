"""
Packager configuration.

This module provides the PackagerConfig dataclass with the recognized build
options and their defaults, and loads overrides from the
``[tool.module-packager]`` table of a project's pyproject.toml or from a
standalone module-packager.toml file.
"""

from __future__ import annotations

import string
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

try:
    import tomllib
except ImportError:
    import tomli as tomllib

from .errors import ConfigurationError
from .types import TIER_ORDER, SourceTier
from .utils import package_scope, scoped_name

CONFIG_FILE_NAME = "module-packager.toml"
PYPROJECT_TABLE = "module-packager"

TEMPLATE_PLACEHOLDERS = frozenset({"project_root", "home", "package", "name", "scope"})


@dataclass(frozen=True)
class SearchTier:
    """
    One candidate directory template checked by the package locator.

    Attributes:
        kind: Tier the template belongs to
        template: Directory template, e.g. "{project_root}/node_modules/{package}"
    """

    kind: SourceTier
    template: str

    def expand(self, project_root: Path, package_name: str) -> Path:
        """Fill in the template for a package name."""
        return Path(
            self.template.format(
                project_root=project_root,
                home=Path.home(),
                package=package_name,
                name=scoped_name(package_name),
                scope=package_scope(package_name) or "",
            )
        )


DEFAULT_SEARCH_TIERS: tuple[SearchTier, ...] = (
    SearchTier("framework", "{project_root}/packages/engine/src/{name}"),
    SearchTier("framework", "{project_root}/packages/engine/package/{name}"),
    SearchTier("workspace-local", "{project_root}/src/{name}"),
    SearchTier("workspace-local", "{project_root}/packages/{name}"),
    SearchTier("system-cache", "{project_root}/node_modules/{package}"),
    SearchTier("system-cache", "{home}/.cache/module-packager/{package}"),
)

DEFAULT_INCLUDE_EXTENSIONS = frozenset(
    {
        ".js",
        ".mjs",
        ".cjs",
        ".ts",
        ".json",
        ".map",
        ".css",
        ".html",
        ".wasm",
        ".svg",
        ".png",
        ".jpg",
        ".jpeg",
        ".gif",
        ".webp",
        ".ico",
        ".woff",
        ".woff2",
        ".ttf",
        ".otf",
    }
)

DEFAULT_EXCLUDE_NAMES = frozenset(
    {
        "package-lock.json",
        "yarn.lock",
        "pnpm-lock.yaml",
        "npm-shrinkwrap.json",
        "LICENSE",
        "LICENSE.md",
        "LICENSE.txt",
        "README.md",
        "README.txt",
        "CHANGELOG.md",
        ".DS_Store",
        "Thumbs.db",
        "desktop.ini",
        ".gitignore",
        ".npmignore",
        ".env",
    }
)

DEFAULT_EXCLUDE_DIRECTORIES = frozenset(
    {
        ".git",
        ".github",
        ".svn",
        ".hg",
        ".cache",
        ".next",
        ".nuxt",
        ".turbo",
        "__pycache__",
        "node_modules",
        "coverage",
        "test",
        "tests",
        "__tests__",
    }
)


@dataclass(frozen=True)
class PackagerConfig:
    """
    Options recognized by the packager.

    Attributes:
        project_root: Root directory of the project being built
        entry_file: Source file whose imports are resolved (relative to project_root)
        base_output_dir: Build output directory (relative to project_root or absolute)
        alias_base: URL root used in the alias table (default: "/" + base_output_dir)
        search_tiers: Ordered locator directory templates
        include_extensions: File extensions copied from packages
        exclude_names: File names never copied
        exclude_directories: Directory names never descended into
        validate_exports: Check named-import symbols against package exports
        framework_scopes: Scopes treated as framework packages; empty means every scope
        max_workers: Upper bound for concurrent lookups and copies
        install_command: Shell command run in the Installed phase, if any
        alias_table_file: File name of the serialized alias table in the output dir
        manifest_name: File name of a package's manifest descriptor
    """

    project_root: Path = field(default_factory=Path.cwd)
    entry_file: str = "src/main.js"
    base_output_dir: str = "dist"
    alias_base: str | None = None
    search_tiers: tuple[SearchTier, ...] = DEFAULT_SEARCH_TIERS
    include_extensions: frozenset[str] = DEFAULT_INCLUDE_EXTENSIONS
    exclude_names: frozenset[str] = DEFAULT_EXCLUDE_NAMES
    exclude_directories: frozenset[str] = DEFAULT_EXCLUDE_DIRECTORIES
    validate_exports: bool = True
    framework_scopes: tuple[str, ...] = ()
    max_workers: int = 8
    install_command: str | None = None
    alias_table_file: str = "import-map.json"
    manifest_name: str = "package.json"

    @property
    def output_path(self) -> Path:
        """Absolute filesystem path of the build output directory."""
        output = Path(self.base_output_dir)
        if output.is_absolute():
            return output
        return Path(self.project_root).resolve() / output

    @property
    def alias_root(self) -> str:
        """URL root the alias table paths are built from."""
        if self.alias_base is not None:
            return self.alias_base
        return self.base_output_dir

    @property
    def entry_path(self) -> Path:
        return Path(self.project_root).resolve() / self.entry_file

    def ordered_tiers(self) -> tuple[SearchTier, ...]:
        """Search tiers stably sorted so framework < workspace-local < system-cache."""
        return tuple(sorted(self.search_tiers, key=lambda tier: TIER_ORDER.index(tier.kind)))

    def with_overrides(self, **overrides: Any) -> PackagerConfig:
        """Return a copy with the non-None overrides applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def validate(self) -> None:
        """
        Check the configuration before any build phase runs.

        Raises:
            ConfigurationError: If the search tiers, output directory or
                collection rules are invalid
        """
        if not self.search_tiers:
            raise ConfigurationError("At least one search tier must be configured")

        for tier in self.search_tiers:
            if tier.kind not in TIER_ORDER:
                raise ConfigurationError(
                    f"Unknown search tier kind '{tier.kind}' (expected one of {', '.join(TIER_ORDER)})"
                )
            try:
                names = {
                    name for _, name, _, _ in string.Formatter().parse(tier.template) if name
                }
            except ValueError as e:
                raise ConfigurationError(f"Malformed search tier template '{tier.template}': {e}") from e
            unknown = names - TEMPLATE_PLACEHOLDERS
            if unknown:
                raise ConfigurationError(
                    f"Unknown placeholder(s) {sorted(unknown)} in search tier '{tier.template}'"
                )
            if not names & {"name", "package"}:
                raise ConfigurationError(
                    f"Search tier '{tier.template}' must contain {{name}} or {{package}}"
                )

        if not self.base_output_dir or not self.base_output_dir.strip():
            raise ConfigurationError("Output directory must not be empty")
        if self.output_path.exists() and not self.output_path.is_dir():
            raise ConfigurationError(f"Output path is not a directory: {self.output_path}")

        if self.max_workers < 1:
            raise ConfigurationError(f"max_workers must be at least 1, got {self.max_workers}")

        for extension in self.include_extensions:
            if not extension.startswith("."):
                raise ConfigurationError(f"Extension '{extension}' must start with '.'")

        if not self.manifest_name:
            raise ConfigurationError("Manifest file name must not be empty")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], project_root: Path) -> PackagerConfig:
        """
        Build a configuration from a TOML table.

        Keys may use dashes or underscores. Search tiers are given either as
        tables with ``kind`` and ``template`` keys or as two-item lists.

        Raises:
            ConfigurationError: If a key is unknown or a value has the wrong shape
        """
        known = {f.name for f in fields(cls)} - {"project_root"}
        values: dict[str, Any] = {}

        for raw_key, value in data.items():
            key = raw_key.replace("-", "_")
            if key not in known:
                raise ConfigurationError(f"Unknown configuration option '{raw_key}'")
            values[key] = value

        if "search_tiers" in values:
            values["search_tiers"] = tuple(_parse_tier(item) for item in values["search_tiers"])
        for key in ("include_extensions", "exclude_names", "exclude_directories"):
            if key in values:
                values[key] = frozenset(values[key])
        if "framework_scopes" in values:
            values["framework_scopes"] = tuple(values["framework_scopes"])

        return cls(project_root=project_root, **values)

    @classmethod
    def load(cls, project_root: Path, config_file: Path | None = None) -> PackagerConfig:
        """
        Load configuration for a project.

        Looks at ``config_file`` if given, then module-packager.toml in the
        project root, then the ``[tool.module-packager]`` table of
        pyproject.toml. Falls back to the defaults when none is present.

        Args:
            project_root: Root directory of the project
            config_file: Explicit configuration file to read

        Returns:
            The loaded configuration (not yet validated)

        Raises:
            ConfigurationError: If a configuration file cannot be parsed
        """
        project_root = project_root.resolve()

        if config_file is not None:
            data = _read_toml(config_file)
            table = data.get("tool", {}).get(PYPROJECT_TABLE, data)
            return cls.from_mapping(table, project_root)

        standalone = project_root / CONFIG_FILE_NAME
        if standalone.exists():
            return cls.from_mapping(_read_toml(standalone), project_root)

        pyproject = project_root / "pyproject.toml"
        if pyproject.exists():
            table = _read_toml(pyproject).get("tool", {}).get(PYPROJECT_TABLE)
            if table is not None:
                return cls.from_mapping(table, project_root)

        return cls(project_root=project_root)


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigurationError(f"Configuration file not found: {path}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in {path}: {e}") from e


def _parse_tier(item: Any) -> SearchTier:
    if isinstance(item, Mapping):
        try:
            return SearchTier(kind=item["kind"], template=item["template"])
        except KeyError as e:
            raise ConfigurationError(f"Search tier is missing key {e}") from e
    if isinstance(item, (list, tuple)) and len(item) == 2:
        return SearchTier(kind=item[0], template=item[1])
    raise ConfigurationError(f"Invalid search tier entry: {item!r}")
