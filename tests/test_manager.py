"""Tests for the build orchestrator."""

from __future__ import annotations

import json
import shutil
import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from module_packager import (
    BuildError,
    BuildManager,
    BuildPhase,
    ConfigurationError,
    LocatorCache,
    PackagerConfig,
)

ENTRY_SOURCE = """\
import { Button } from '@scope/widgets';
import { palette } from '@scope/theme/colors';
import lodash from 'lodash';
import { helper } from './helper.js';
"""


@pytest.fixture
def workspace(project_root: Path, widgets_package: Path, package_factory) -> Path:
    """Project with an entry file, two framework packages and their files."""
    package_factory(
        project_root / "node_modules" / "@scope" / "theme",
        {
            "name": "@scope/theme",
            "version": "3.0.0",
            "exports": {".": "./index.js", "./colors": "./colors.js"},
        },
        {
            "index.js": "export const theme = {};\n",
            "colors.js": "export function palette() {}\n",
            "README.md": "# theme\n",
        },
    )
    entry = project_root / "src" / "main.js"
    entry.parent.mkdir(parents=True, exist_ok=True)
    entry.write_text(ENTRY_SOURCE, encoding="utf-8")
    return project_root


class TestBuildManagerInit:
    """Tests for BuildManager construction."""

    def test_invalid_configuration_fails_early(self, project_root: Path) -> None:
        config = PackagerConfig(project_root=project_root, search_tiers=())

        with pytest.raises(ConfigurationError):
            BuildManager(config)

    def test_tiers_are_ordered(self, project_root: Path, config: PackagerConfig) -> None:
        reversed_config = config.with_overrides(search_tiers=tuple(reversed(config.search_tiers)))

        manager = BuildManager(reversed_config)

        assert [tier.kind for tier in manager.locator.search_tiers] == [
            "framework",
            "framework",
            "workspace-local",
            "workspace-local",
            "system-cache",
        ]


class TestBuildManagerRun:
    """Tests for BuildManager.run."""

    def test_full_build(self, workspace: Path, config: PackagerConfig) -> None:
        """Test a build of the entry file through every phase."""
        manager = BuildManager(config, quiet=True)

        result = manager.run()

        assert result.success
        assert result.phase is BuildPhase.DONE
        assert list(result.resolution.packages) == ["@scope/widgets", "@scope/theme"]
        assert result.resolution.errors == []
        assert result.resolution.warnings == []

        output = workspace / "dist"
        assert (output / "widgets" / "dist" / "index.js").exists()
        assert (output / "theme" / "colors.js").exists()
        assert not (output / "theme" / "README.md").exists()

        assert result.alias_table.entries == {
            "@scope/theme": "/dist/theme/index.js",
            "@scope/theme/colors": "/dist/theme/colors.js",
            "@scope/widgets": "/dist/widgets/dist/index.js",
        }
        assert result.alias_table_path == output / "import-map.json"
        assert json.loads(result.alias_table_path.read_text()) == result.alias_table.to_dict()

    def test_stats(self, workspace: Path, config: PackagerConfig) -> None:
        result = BuildManager(config, quiet=True).run()

        stats = result.stats
        assert stats["imports"] == 4
        assert stats["framework_imports"] == 2
        assert stats["external_imports"] == 1
        assert stats["local_imports"] == 1
        assert stats["packages_resolved"] == 2
        assert stats["packages_unresolved"] == 0
        assert stats["files_copied"] == 6
        assert stats["files_failed"] == 0
        assert stats["alias_entries"] == 3
        assert stats["duration_ms"] >= 0

    def test_sub_export_entry(
        self, project_root: Path, widgets_package: Path, package_factory, config: PackagerConfig
    ) -> None:
        """Test that a declared sub-export adds a second alias entry."""
        package_factory(
            widgets_package,
            {
                "name": "@scope/widgets",
                "main": "dist/index.js",
                "exports": {"./button": "./components/button.js"},
            },
            {"components/button.js": "export class Button {}\n"},
        )

        result = BuildManager(config, quiet=True).run("import { Button } from '@scope/widgets';\n")

        assert result.alias_table.entries == {
            "@scope/widgets": "/dist/widgets/dist/index.js",
            "@scope/widgets/button": "/dist/widgets/components/button.js",
        }
        assert (project_root / "dist" / "widgets" / "components" / "button.js").exists()

    def test_source_text(self, workspace: Path, config: PackagerConfig) -> None:
        result = BuildManager(config, quiet=True).run("import { Button } from '@scope/widgets';\n")

        assert list(result.alias_table) == ["@scope/widgets"]

    def test_parsed_imports(self, workspace: Path, config: PackagerConfig) -> None:
        result = BuildManager(config, quiet=True).run(["@scope/theme"])

        assert result.success
        assert list(result.alias_table) == ["@scope/theme", "@scope/theme/colors"]

    def test_no_framework_imports_short_circuits(
        self, project_root: Path, config: PackagerConfig, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test that an empty resolution goes straight to Done without writing anything."""
        result = BuildManager(config, quiet=True).run("import lodash from 'lodash';\n")

        assert result.success
        assert result.phase is BuildPhase.DONE
        assert result.resolution.is_empty
        assert result.collection is None
        assert result.alias_table is None
        assert not (project_root / "dist").exists()
        assert any("skipping install" in warning for warning in result.warnings)
        assert "Warning:" in capsys.readouterr().err

    def test_unresolved_package_does_not_fail_build(
        self, workspace: Path, config: PackagerConfig
    ) -> None:
        result = BuildManager(config, quiet=True).run(
            "import { Button } from '@scope/widgets';\nimport { x } from '@scope/missing';\n"
        )

        assert result.success
        assert result.resolution.unresolved == ["@scope/missing"]
        assert list(result.alias_table) == ["@scope/widgets"]

    def test_invalid_package_name_leaves_project_intact(
        self, workspace: Path, config: PackagerConfig
    ) -> None:
        """Test that a specifier naming a parent directory never reaches the collector."""
        result = BuildManager(config, quiet=True).run(
            "import { Button } from '@scope/widgets';\nimport x from '@scope/..';\n"
        )

        assert result.success
        assert result.resolution.unresolved == ["@scope/.."]
        assert list(result.collection.results) == ["@scope/widgets"]
        assert (workspace / "package.json").is_file()
        assert (workspace / "src" / "main.js").read_text(encoding="utf-8") == ENTRY_SOURCE
        assert (workspace / "dist" / "widgets" / "package.json").is_file()

    def test_empty_resolution_removes_stale_alias_table(
        self, project_root: Path, config: PackagerConfig
    ) -> None:
        stale = project_root / "dist" / "import-map.json"
        stale.parent.mkdir(parents=True)
        stale.write_text('{"imports": {"@scope/gone": "/dist/gone/index.js"}}')

        result = BuildManager(config, quiet=True).run("import lodash from 'lodash';\n")

        assert result.success
        assert result.resolution.is_empty
        assert not stale.exists()

    def test_parse_errors_become_warnings(self, workspace: Path, config: PackagerConfig) -> None:
        result = BuildManager(config, quiet=True).run(
            "import {\n  Button,\n} from '@scope/widgets';\nimport * as T from '@scope/theme';\n"
        )

        assert result.success
        assert len(result.parse_errors) == 1
        assert result.parse_errors[0].startswith("Line 1:")
        assert result.parse_errors[0] in result.warnings
        assert list(result.resolution.packages) == ["@scope/theme"]

    def test_analyze_only(self, workspace: Path, config: PackagerConfig) -> None:
        result = BuildManager(config, quiet=True).run(analyze_only=True)

        assert result.success
        assert len(result.resolution.packages) == 2
        assert result.collection is None
        assert not (workspace / "dist").exists()

    def test_missing_entry_file_is_fatal(self, project_root: Path, config: PackagerConfig) -> None:
        result = BuildManager(config, quiet=True).run()

        assert not result.success
        assert result.failed_phase == "parsed"
        assert result.fatal_error
        assert result.resolution is None

    def test_quiet_suppresses_progress(
        self, workspace: Path, config: PackagerConfig, capsys: pytest.CaptureFixture[str]
    ) -> None:
        BuildManager(config, quiet=True).run()

        assert capsys.readouterr().out == ""

    def test_progress_output(
        self, workspace: Path, config: PackagerConfig, capsys: pytest.CaptureFixture[str]
    ) -> None:
        BuildManager(config).run()

        out = capsys.readouterr().out
        assert "Found 4 imports (2 framework, 1 external, 1 local)" in out
        assert "@scope/widgets@1.2.0" in out
        assert "Wrote alias table" in out

    def test_copy_failure_is_not_fatal(self, workspace: Path, config: PackagerConfig) -> None:
        def flaky_copy(source: Path, target: Path) -> None:
            if source.name == "colors.js":
                raise OSError("disk full")
            shutil.copy2(source, target)

        result = BuildManager(config, quiet=True, copy_function=flaky_copy).run()

        assert result.success
        assert result.stats["files_failed"] == 1
        assert "@scope/theme/colors" in result.alias_table


class TestInstallPhase:
    """Tests for the install command phase."""

    def test_install_command_runs_in_project_root(
        self, workspace: Path, config: PackagerConfig
    ) -> None:
        config = config.with_overrides(install_command="npm install")

        with patch("module_packager.manager.subprocess.run") as mock_run:
            mock_run.return_value = subprocess.CompletedProcess(args="npm install", returncode=0)
            result = BuildManager(config, quiet=True).run()

        assert result.success
        mock_run.assert_called_once_with(
            "npm install", shell=True, check=False, cwd=workspace.resolve()
        )

    def test_failed_install_is_fatal(self, workspace: Path, config: PackagerConfig) -> None:
        """Test that the partial result keeps the resolution after a fatal phase."""
        config = config.with_overrides(install_command="npm install")

        with patch("module_packager.manager.subprocess.run") as mock_run:
            mock_run.return_value = subprocess.CompletedProcess(args="npm install", returncode=1)
            result = BuildManager(config, quiet=True).run()

        assert not result.success
        assert result.failed_phase == "installed"
        assert "exit code 1" in result.fatal_error
        assert result.phase is BuildPhase.RESOLVED
        assert len(result.resolution.packages) == 2
        assert result.collection is None
        assert not (workspace / "dist").exists()

    def test_strict_raises_build_error(self, workspace: Path, config: PackagerConfig) -> None:
        config = config.with_overrides(install_command="npm install")

        with patch("module_packager.manager.subprocess.run") as mock_run:
            mock_run.return_value = subprocess.CompletedProcess(args="npm install", returncode=2)
            with pytest.raises(BuildError) as exc_info:
                BuildManager(config, quiet=True).run(strict=True)

        assert exc_info.value.phase == "installed"
        assert exc_info.value.result.resolution is not None

    def test_install_clears_locator_cache(self, workspace: Path, config: PackagerConfig) -> None:
        config = config.with_overrides(install_command="npm install")
        manager = BuildManager(config, quiet=True)

        with patch("module_packager.manager.subprocess.run") as mock_run:
            mock_run.return_value = subprocess.CompletedProcess(args="npm install", returncode=0)
            manager.run()

        assert len(manager.locator.cache) == 0


class TestBuildManagerHelpers:
    """Tests for rebuild_alias_table, caching and reporting."""

    def test_rebuild_alias_table(self, workspace: Path, config: PackagerConfig) -> None:
        manager = BuildManager(config, quiet=True)
        manager.run()

        table = manager.rebuild_alias_table("/static")

        assert table["@scope/widgets"] == "/static/widgets/dist/index.js"
        assert manager.result.alias_table is table

    def test_rebuild_without_run(self, config: PackagerConfig) -> None:
        assert BuildManager(config, quiet=True).rebuild_alias_table() is None

    def test_shared_locator_cache(self, workspace: Path, config: PackagerConfig) -> None:
        cache = LocatorCache()

        BuildManager(config, locator_cache=cache, quiet=True).run(analyze_only=True)

        assert "@scope/widgets" in cache
        assert "@scope/theme" in cache

    def test_clear_cache(self, workspace: Path, config: PackagerConfig) -> None:
        manager = BuildManager(config, quiet=True)
        manager.run(analyze_only=True)

        manager.clear_cache()

        assert len(manager.locator.cache) == 0

    def test_print_report(
        self, workspace: Path, config: PackagerConfig, capsys: pytest.CaptureFixture[str]
    ) -> None:
        manager = BuildManager(config, quiet=True)
        manager.run("import { x } from '@scope/missing';\nimport { Button } from '@scope/widgets';\n")

        manager.print_report()

        out = capsys.readouterr().out
        assert "Build succeeded" in out
        assert "unresolved: @scope/missing" in out
        assert "Alias entries: 1" in out
