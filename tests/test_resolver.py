"""Tests for dependency resolution."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from module_packager import (
    DependencyResolver,
    ImportDeclaration,
    ImportParser,
    PackageLocator,
    ResolutionError,
)
from module_packager.resolver import NO_FRAMEWORK_IMPORTS_WARNING, NO_IMPORTS_WARNING


@pytest.fixture
def resolver(project_root: Path, project_tiers) -> DependencyResolver:
    return DependencyResolver(PackageLocator(project_root, project_tiers), max_workers=4)


class TestResolveAll:
    """Tests for DependencyResolver.resolve_all."""

    @pytest.mark.parametrize("imports", [None, [], ""])
    def test_no_imports(self, resolver: DependencyResolver, imports) -> None:
        """Test that nothing to resolve gives an empty resolution with one warning."""
        resolution = resolver.resolve_all(imports)

        assert resolution.packages == {}
        assert resolution.errors == []
        assert resolution.warnings == [NO_IMPORTS_WARNING]
        assert resolution.frozen

    def test_only_external_and_local_imports(self, resolver: DependencyResolver) -> None:
        resolution = resolver.resolve_all(
            "import lodash from 'lodash';\nimport { a } from './a.js';\n"
        )

        assert resolution.packages == {}
        assert resolution.errors == []
        assert resolution.warnings == [NO_FRAMEWORK_IMPORTS_WARNING]
        assert resolution.external == ["lodash"]
        assert resolution.local == ["./a.js"]

    def test_resolve_framework_package(
        self, resolver: DependencyResolver, widgets_package: Path
    ) -> None:
        resolution = resolver.resolve_all("import { Button } from '@scope/widgets';\n")

        package = resolution.packages["@scope/widgets"]
        assert package.physical_path == widgets_package
        assert package.manifest.main_entry == "dist/index.js"
        assert package.manifest.version == "1.2.0"
        assert package.requested_symbols == ["Button"]
        assert package.location.source_tier == "framework"
        assert resolution.errors == []
        assert resolution.warnings == []

    def test_missing_package_is_reported_once(
        self, resolver: DependencyResolver, widgets_package: Path
    ) -> None:
        """Test that an unresolvable package yields one error and does not stop the others."""
        resolution = resolver.resolve_all(
            "import { Button } from '@scope/widgets';\n"
            "import { a } from '@scope/missing';\n"
            "import { b } from '@scope/missing';\n"
        )

        assert list(resolution.packages) == ["@scope/widgets"]
        assert resolution.unresolved == ["@scope/missing"]
        assert len(resolution.errors) == 1
        assert "Package not found: @scope/missing" in resolution.errors[0]

    def test_broken_manifest_is_an_error(
        self, resolver: DependencyResolver, project_root: Path, package_factory
    ) -> None:
        package_factory(project_root / "node_modules" / "@scope" / "broken", "{ nope")

        resolution = resolver.resolve_all(["@scope/broken"])

        assert resolution.packages == {}
        assert resolution.unresolved == ["@scope/broken"]
        assert "Cannot read manifest of @scope/broken" in resolution.errors[0]

    def test_symbols_are_merged_per_package(
        self, resolver: DependencyResolver, widgets_package: Path
    ) -> None:
        resolution = resolver.resolve_all(
            "import { Button, render } from '@scope/widgets';\n"
            "import { Button as B } from '@scope/widgets';\n"
            "import * as W from '@scope/widgets';\n"
        )

        assert resolution.packages["@scope/widgets"].requested_symbols == ["Button", "render", "*"]

    def test_packages_keep_first_seen_order(
        self, resolver: DependencyResolver, project_root: Path, package_factory
    ) -> None:
        for name in ("zeta", "alpha", "mid"):
            package_factory(project_root / "node_modules" / "@scope" / name, {})

        resolution = resolver.resolve_all(["@scope/zeta", "@scope/alpha", "@scope/mid"])

        assert list(resolution.packages) == ["@scope/zeta", "@scope/alpha", "@scope/mid"]

    def test_framework_scopes_filter(
        self, project_root: Path, project_tiers, package_factory
    ) -> None:
        """Test that packages outside the framework scopes are never looked up."""
        package_factory(project_root / "node_modules" / "@babel" / "runtime", {})
        resolver = DependencyResolver(
            PackageLocator(project_root, project_tiers), parser=ImportParser(["@flutterjs"])
        )

        resolution = resolver.resolve_all("import x from '@babel/runtime';\n")

        assert resolution.packages == {}
        assert resolution.external == ["@babel/runtime"]
        assert resolution.warnings == [NO_FRAMEWORK_IMPORTS_WARNING]

    def test_scenario_dist_package(self, tmp_path: Path, package_factory) -> None:
        """Test resolving a package whose manifest points into dist/ with a sub-export."""
        project = tmp_path / "project"
        project.mkdir()
        package_factory(
            project / "packages" / "engine" / "src" / "material",
            {
                "name": "@flutterjs/material",
                "main": "./dist/index.js",
                "exports": {".": "./dist/index.js", "./button": "./dist/button.js"},
            },
            {"dist/index.js": "export * from './button.js';\n", "dist/button.js": ""},
        )
        resolver = DependencyResolver(PackageLocator(project))

        resolution = resolver.resolve_all(
            [
                ImportDeclaration(
                    "@flutterjs/material", "named", (("Button", "Button"),), 1, "framework"
                )
            ]
        )

        manifest = resolution.packages["@flutterjs/material"].manifest
        assert manifest.main_entry == "dist/index.js"
        assert manifest.exports_table == {"button": "dist/button.js"}
        assert resolution.errors == []
        assert resolution.warnings == []

    @pytest.mark.parametrize("name", ["@scope/..", "@scope/.", "@scope/"])
    def test_invalid_package_name(self, resolver: DependencyResolver, name: str) -> None:
        """Test that a name that is not a single directory name is rejected before lookup."""
        with patch.object(resolver.locator, "_search", wraps=resolver.locator._search) as search:
            resolution = resolver.resolve_all(f'import x from "{name}";\n')

        assert resolution.packages == {}
        assert resolution.unresolved == [name]
        assert "Invalid package name" in resolution.errors[0]
        search.assert_not_called()

    def test_same_scoped_name_conflicts(
        self, resolver: DependencyResolver, project_root: Path, package_factory
    ) -> None:
        """Test that two packages that would share an output directory keep the first one."""
        package_factory(project_root / "node_modules" / "@a" / "core", {"name": "@a/core"})
        package_factory(project_root / "node_modules" / "@b" / "core", {"name": "@b/core"})

        resolution = resolver.resolve_all(["@a/core", "@b/core"])

        assert list(resolution.packages) == ["@a/core"]
        assert resolution.unresolved == ["@b/core"]
        assert len(resolution.errors) == 1
        assert "conflicts with @a/core" in resolution.errors[0]

    def test_resolution_is_frozen(self, resolver: DependencyResolver) -> None:
        resolution = resolver.resolve_all(None)

        with pytest.raises(RuntimeError, match="frozen"):
            resolution.add_warning("late")


class TestResolvePackage:
    """Tests for DependencyResolver.resolve_package."""

    def test_not_found_lists_searched_paths(self, resolver: DependencyResolver) -> None:
        with pytest.raises(ResolutionError) as exc_info:
            resolver.resolve_package("@scope/missing")

        assert exc_info.value.package_name == "@scope/missing"
        assert "node_modules" in str(exc_info.value)

    def test_lookups_are_cached(
        self, resolver: DependencyResolver, widgets_package: Path
    ) -> None:
        with patch.object(resolver.locator, "_search", wraps=resolver.locator._search) as search:
            resolver.resolve_all(["@scope/widgets"])
            resolver.resolve_all(["@scope/widgets"])

        assert search.call_count == 1


class TestExportValidation:
    """Tests for named-import validation against package exports."""

    @pytest.fixture
    def themed(self, project_root: Path, package_factory) -> Path:
        return package_factory(
            project_root / "packages" / "engine" / "src" / "theme",
            {
                "name": "@scope/theme",
                "main": "index.js",
                "exports": {".": "./index.js", "./colors": "./colors.js", "./Dark": "./dark.js"},
            },
            {
                "index.js": "export const light = {};\nexport { spacing, radius as corner };\n",
                "colors.js": "export function palette() {}\n",
                "dark.js": "",
            },
        )

    def test_known_symbols_pass(self, resolver: DependencyResolver, themed: Path) -> None:
        resolution = resolver.resolve_all(
            "import { light, spacing } from '@scope/theme';\n"
            "import { palette } from '@scope/theme/colors';\n"
            "import { dark } from '@scope/theme';\n"
        )

        assert resolution.warnings == []

    def test_unknown_symbol_warns(self, resolver: DependencyResolver, themed: Path) -> None:
        resolution = resolver.resolve_all("import { shadow } from '@scope/theme';\n")

        assert resolution.errors == []
        assert resolution.warnings == [
            "Line 1: cannot verify export of 'shadow' from '@scope/theme'"
        ]

    def test_unknown_subpath_warns(self, resolver: DependencyResolver, themed: Path) -> None:
        resolution = resolver.resolve_all("import { x } from '@scope/theme/sizes';\n")

        assert list(resolution.packages) == ["@scope/theme"]
        assert resolution.warnings == ["Line 1: '@scope/theme/sizes' is not an export of @scope/theme"]

    def test_default_and_namespace_not_checked(
        self, resolver: DependencyResolver, themed: Path
    ) -> None:
        resolution = resolver.resolve_all(
            "import theme from '@scope/theme';\nimport * as T from '@scope/theme';\n"
        )

        assert resolution.warnings == []

    def test_validation_disabled(
        self, project_root: Path, project_tiers, themed: Path
    ) -> None:
        resolver = DependencyResolver(
            PackageLocator(project_root, project_tiers), validate_exports=False
        )

        resolution = resolver.resolve_all("import { shadow } from '@scope/theme';\n")

        assert resolution.warnings == []
