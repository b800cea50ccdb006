"""Module packager - Resolve framework imports, collect packages and build browser import maps."""

__all__ = (
    "AliasTable",
    "AliasTableBuilder",
    "BuildError",
    "BuildManager",
    "BuildPhase",
    "BuildResult",
    "CollectionSession",
    "ConfigurationError",
    "CopyError",
    "CopyResult",
    "DependencyResolver",
    "ImportDeclaration",
    "ImportParser",
    "LocatorCache",
    "ManifestReadError",
    "ManifestReader",
    "PackageCollector",
    "PackageLocation",
    "PackageLocator",
    "PackageManifest",
    "PackagerConfig",
    "ParseError",
    "Resolution",
    "ResolutionError",
    "SearchTier",
    "classify_specifier",
    "find_project_root",
)

from .alias_table import AliasTable, AliasTableBuilder
from .collector import PackageCollector
from .config import PackagerConfig, SearchTier
from .errors import (
    BuildError,
    ConfigurationError,
    CopyError,
    ManifestReadError,
    ParseError,
    ResolutionError,
)
from .locator import LocatorCache, PackageLocator
from .manager import BuildManager
from .manifest import ManifestReader
from .parser import ImportParser, classify_specifier
from .resolver import DependencyResolver
from .types import (
    BuildPhase,
    BuildResult,
    CollectionSession,
    CopyResult,
    ImportDeclaration,
    PackageLocation,
    PackageManifest,
    Resolution,
)
from .utils import find_project_root
