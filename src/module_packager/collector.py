"""
Package collection functionality.

This module provides the PackageCollector class which copies the files of
every resolved package into the build output directory. Files are filtered
by extension, file name and directory name, and a failure to copy one file
is recorded without stopping the remaining copies.
"""

from __future__ import annotations

import os
import shutil
from collections.abc import Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path

from .config import DEFAULT_EXCLUDE_DIRECTORIES, DEFAULT_EXCLUDE_NAMES, DEFAULT_INCLUDE_EXTENSIONS
from .errors import CopyError
from .types import CollectionSession, CopiedFile, CopyResult, FailedFile, Resolution


class PackageCollector:
    """
    Copies resolved packages into the output tree.

    Each package is copied to ``dest_root/<scoped name>/<relative path>``.
    Copies run concurrently on a bounded worker pool.

    Attributes:
        include_extensions: File extensions that are copied
        exclude_names: File names that are never copied
        exclude_directories: Directory names that are never descended into
        max_workers: Upper bound on concurrent copies
        copy_function: Function copying one file (source, target)
    """

    def __init__(
        self,
        include_extensions: Iterable[str] = DEFAULT_INCLUDE_EXTENSIONS,
        exclude_names: Iterable[str] = DEFAULT_EXCLUDE_NAMES,
        exclude_directories: Iterable[str] = DEFAULT_EXCLUDE_DIRECTORIES,
        max_workers: int = 8,
        copy_function: Callable[[Path, Path], object] = shutil.copy2,
    ) -> None:
        self.include_extensions = {extension.lower() for extension in include_extensions}
        self.exclude_names = set(exclude_names)
        self.exclude_directories = set(exclude_directories)
        self.max_workers = max_workers
        self.copy_function = copy_function

    def scan(self, package_dir: Path, failures: list[FailedFile] | None = None) -> list[Path]:
        """
        List the files of a package that pass the include/exclude rules.

        Hidden files and directories are skipped as well.

        Args:
            package_dir: Root directory of the package
            failures: Receives a FailedFile for every directory that cannot be listed

        Returns:
            Paths relative to ``package_dir``, sorted
        """
        files: list[Path] = []

        def on_error(error: OSError) -> None:
            if failures is None:
                raise error
            relative = Path(error.filename or package_dir).relative_to(package_dir)
            failures.append(
                FailedFile(file=relative.as_posix(), error_message=f"Cannot list directory: {error}")
            )

        for dirpath, dirnames, filenames in os.walk(package_dir, onerror=on_error):
            dirnames[:] = sorted(
                name
                for name in dirnames
                if name not in self.exclude_directories and not name.startswith(".")
            )
            current = Path(dirpath)
            for filename in filenames:
                if self.should_include(filename):
                    files.append((current / filename).relative_to(package_dir))
        return sorted(files, key=lambda path: path.as_posix())

    def should_include(self, filename: str) -> bool:
        """Check a file name against the name denylist and the extension allow-list."""
        if filename in self.exclude_names or filename.startswith("."):
            return False
        return Path(filename).suffix.lower() in self.include_extensions

    def collect(self, resolution: Resolution, dest_root: Path) -> CollectionSession:
        """
        Copy every resolved package into ``dest_root``.

        An existing destination directory for a package is replaced. A package
        whose destination is not inside ``dest_root``, or is already taken by
        another package, gets an error and is not copied. Per-file failures
        are recorded in the package's CopyResult and the session always runs
        to completion.

        Args:
            resolution: Resolution whose packages are copied
            dest_root: Output directory

        Returns:
            The finished CollectionSession

        Raises:
            OSError: If the output directory itself cannot be created or cleared
        """
        session = CollectionSession()
        if resolution.is_empty:
            return session.finish()

        dest_root.mkdir(parents=True, exist_ok=True)
        root = dest_root.resolve()
        claimed: dict[Path, str] = {}
        jobs: list[tuple[CopyResult, Path, Path]] = []

        for package in resolution.packages.values():
            destination = dest_root / package.scoped_name
            result = CopyResult(package_name=package.name, destination=destination)
            session.add_result(result)

            target = destination.resolve()
            if root not in target.parents:
                result.error = f"Destination {destination} is outside the output directory {root}"
                continue
            if target in claimed:
                result.error = f"Destination {destination} is already used by {claimed[target]}"
                continue
            claimed[target] = package.name

            source = package.physical_path
            if not source.is_dir():
                result.error = f"Source not found: {source}"
                continue

            if destination.exists():
                shutil.rmtree(destination)
            destination.mkdir(parents=True, exist_ok=True)

            for relative in self.scan(source, result.failed_files):
                jobs.append((result, source, relative))

        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="copy") as pool:
            futures: list[tuple[CopyResult, Path, Future[int]]] = [
                (
                    result,
                    relative,
                    pool.submit(
                        self.copy_file, source / relative, result.destination / relative
                    ),
                )
                for result, source, relative in jobs
            ]

            for result, relative, future in futures:
                scoped = result.destination.name
                try:
                    size = future.result()
                except CopyError as e:
                    result.failed_files.append(FailedFile(file=relative.as_posix(), error_message=str(e)))
                    continue
                result.copied_files.append(
                    CopiedFile(
                        source_relative=relative.as_posix(),
                        dest_relative=f"{scoped}/{relative.as_posix()}",
                        byte_size=size,
                    )
                )

        return session.finish()

    def copy_file(self, source: Path, target: Path) -> int:
        """
        Copy one file, creating parent directories as needed.

        Returns:
            Size in bytes of the copied file

        Raises:
            CopyError: If the copy fails
        """
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            self.copy_function(source, target)
            return target.stat().st_size
        except OSError as e:
            raise CopyError(f"Failed to copy {source}: {e}", source) from e
