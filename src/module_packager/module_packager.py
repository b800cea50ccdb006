"""
Main entry point for the module-packager package.

This module provides the command-line interface for the package.
It can be invoked via:
- The `module-packager` command (after installation)
- `python -m module_packager`
- Direct import and call to main()
"""

from __future__ import annotations

import sys
from collections.abc import Sequence
from pathlib import Path

from .config import PackagerConfig
from .errors import ConfigurationError
from .manager import BuildManager
from .utils import find_project_root


def main(argv: Sequence[str] | None = None) -> int:
    """
    Main entry point for the packager.

    Parses command-line arguments, loads the project configuration and runs
    the build.

    Returns:
        Exit code: 0 for success, 1 for configuration or fatal build errors,
        2 when --fail-on-unresolved is given and some packages were not resolved
    """
    import argparse

    parser = argparse.ArgumentParser(
        description="Resolve framework imports, copy packages and write a browser import map"
    )
    parser.add_argument(
        "--project-root",
        type=Path,
        help="Root directory of the project (auto-detected from package.json if not specified)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Configuration file (default: module-packager.toml or [tool.module-packager] in pyproject.toml)",
    )
    parser.add_argument(
        "--entry",
        help="Entry source file whose imports are resolved (relative to the project root)",
    )
    parser.add_argument(
        "--output-dir",
        help="Build output directory (default: 'dist')",
    )
    parser.add_argument(
        "--alias-base",
        help="URL root for alias table paths (default: '/' + output directory)",
    )
    parser.add_argument(
        "--framework-scope",
        action="append",
        dest="framework_scopes",
        help="Scope treated as framework packages (e.g. '@flutterjs'). Can be specified multiple times.",
    )
    parser.add_argument(
        "--validate-exports",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Check named imports against package exports",
    )
    parser.add_argument(
        "--install-command",
        help="Shell command run before packages are collected (e.g. 'npm install')",
    )
    parser.add_argument(
        "--workers",
        type=int,
        dest="max_workers",
        help="Maximum number of concurrent lookups and copies",
    )
    parser.add_argument(
        "--analyze-only",
        action="store_true",
        help="Only parse and resolve imports, don't copy anything",
    )
    parser.add_argument(
        "--print-import-map",
        action="store_true",
        help="Print the alias table as a <script type=\"importmap\"> tag",
    )
    parser.add_argument(
        "--fail-on-unresolved",
        action="store_true",
        help="Exit with status 2 if any framework package could not be resolved",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Only print warnings and errors",
    )

    args = parser.parse_args(argv)

    try:
        # Auto-detect project root if not specified
        if args.project_root:
            project_root = Path(args.project_root).resolve()
        else:
            project_root = find_project_root()
            if project_root is None:
                print(
                    "Error: Could not find project root (package.json not found).\n"
                    "Please run from a directory with package.json or specify --project-root",
                    file=sys.stderr,
                )
                return 1
            if not args.quiet:
                print(f"Auto-detected project root: {project_root}")

        config = PackagerConfig.load(project_root, args.config).with_overrides(
            entry_file=args.entry,
            base_output_dir=args.output_dir,
            alias_base=args.alias_base,
            framework_scopes=tuple(args.framework_scopes) if args.framework_scopes else None,
            validate_exports=args.validate_exports,
            install_command=args.install_command,
            max_workers=args.max_workers,
        )
        manager = BuildManager(config, quiet=args.quiet)
    except ConfigurationError as e:
        print(f"Error: Invalid configuration: {e}", file=sys.stderr)
        return 1

    result = manager.run(analyze_only=args.analyze_only)

    if not args.quiet:
        manager.print_report(result)
    if args.print_import_map and result.alias_table is not None:
        print(result.alias_table.to_script())

    if not result.success:
        return 1
    if args.fail_on_unresolved and result.resolution and result.resolution.unresolved:
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
