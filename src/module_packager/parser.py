"""
Import parsing functionality.

This module provides the ImportParser class which is responsible for:
- Scanning source text line by line for import statements
- Extracting the requested symbols (named, default or namespace form)
- Classifying each import as framework, external or local
- Accepting imports already parsed by an external analyzer

Only single-line import statements are recognized. The first line of an
import that spans several lines is reported as a ParseError rather than
guessed at.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any

from .errors import ParseError
from .types import ImportCategory, ImportDeclaration, ImportKind

IDENTIFIER = r"[A-Za-z_$][\w$]*"

_IMPORT_FROM = re.compile(
    r"""^\s*import\s+(?P<specifiers>.+?)\s+from\s+(?P<quote>['"])(?P<source>[^'"]+)(?P=quote)"""
    r"""\s*;?\s*(?://.*)?$"""
)
_SIDE_EFFECT = re.compile(
    r"""^\s*import\s+(?P<quote>['"])(?P<source>[^'"]+)(?P=quote)\s*;?\s*(?://.*)?$"""
)
# Any line that starts an import statement; dynamic import() and import.meta are expressions
_IMPORT_START = re.compile(r"^\s*import(?=[\s{*'\"])(?!\s*[.(])")
_IDENTIFIER = re.compile(rf"^{IDENTIFIER}$")
_NAMESPACE = re.compile(rf"^\*\s+as\s+({IDENTIFIER})$")
_DEFAULT_AND_REST = re.compile(rf"^({IDENTIFIER})\s*,\s*(.+)$")
_AS = re.compile(r"\s+as\s+")


def classify_specifier(specifier: str, framework_scopes: Iterable[str] = ()) -> ImportCategory:
    """
    Classify a module specifier by its lexical form.

    Relative or absolute paths are local. Scoped names ("@scope/name") are
    framework packages when their scope is listed in ``framework_scopes``,
    or for any scope when no scopes are listed. Everything else is external.

    Args:
        specifier: The module specifier from an import statement
        framework_scopes: Scopes whose packages count as framework packages

    Returns:
        "framework", "external" or "local"
    """
    if specifier.startswith((".", "/")):
        return "local"
    if specifier.startswith("@") and "/" in specifier:
        scopes = {scope.rstrip("/") for scope in framework_scopes}
        if not scopes or specifier.split("/", 1)[0] in scopes:
            return "framework"
    return "external"


class ImportParser:
    """
    Parses import declarations from source text.

    Parsing is pure: it does not touch the file system or resolver state,
    so it can run before any I/O. Malformed import lines are collected in
    ``errors`` and do not stop the rest of the file from being parsed.

    Attributes:
        framework_scopes: Scopes treated as framework packages (empty: all scopes)
        errors: ParseErrors from the most recent parse
    """

    def __init__(self, framework_scopes: Iterable[str] = ()) -> None:
        self.framework_scopes = tuple(framework_scopes)
        self.errors: list[ParseError] = []

    def classify(self, specifier: str) -> ImportCategory:
        return classify_specifier(specifier, self.framework_scopes)

    def parse(self, source_text: str) -> list[ImportDeclaration]:
        """
        Extract all import declarations from source text.

        Args:
            source_text: Contents of a source file

        Returns:
            ImportDeclarations in source order
        """
        self.errors = []
        declarations: list[ImportDeclaration] = []

        for line_number, line in enumerate(source_text.splitlines(), start=1):
            if not _IMPORT_START.match(line):
                continue
            try:
                declarations.append(self.parse_line(line, line_number))
            except ParseError as e:
                self.errors.append(e)

        return declarations

    def parse_file(self, file_path: Path) -> list[ImportDeclaration]:
        """Read a file and parse its imports."""
        return self.parse(file_path.read_text(encoding="utf-8"))

    def parse_line(self, line: str, line_number: int = 0) -> ImportDeclaration:
        """
        Parse a single import statement.

        Raises:
            ParseError: If the line does not match the single-line import grammar
        """
        side_effect = _SIDE_EFFECT.match(line)
        if side_effect:
            source = side_effect.group("source")
            return ImportDeclaration(
                source_specifier=source,
                kind="default",
                requested_symbols=(),
                source_line=line_number,
                category=self.classify(source),
            )

        match = _IMPORT_FROM.match(line)
        if not match:
            if "from" not in line:
                raise ParseError(
                    "incomplete import statement (multi-line imports are not supported)",
                    line_number,
                    line,
                )
            raise ParseError("malformed import statement", line_number, line)

        source = match.group("source")
        kind, symbols = self._parse_specifiers(match.group("specifiers").strip(), line_number, line)
        return ImportDeclaration(
            source_specifier=source,
            kind=kind,
            requested_symbols=tuple(symbols),
            source_line=line_number,
            category=self.classify(source),
        )

    def _parse_specifiers(
        self, specifiers: str, line_number: int, line: str
    ) -> tuple[ImportKind, list[tuple[str, str]]]:
        if specifiers.startswith("type "):
            specifiers = specifiers[5:].strip()

        if specifiers.startswith("{"):
            if not specifiers.endswith("}"):
                raise ParseError("unterminated named import list", line_number, line)
            return "named", self._parse_named(specifiers[1:-1], line_number, line)

        namespace = _NAMESPACE.match(specifiers)
        if namespace:
            return "namespace", [("*", namespace.group(1))]

        if _IDENTIFIER.match(specifiers):
            return "default", [("default", specifiers)]

        mixed = _DEFAULT_AND_REST.match(specifiers)
        if mixed:
            rest = mixed.group(2).strip()
            if rest.startswith("{"):
                kind, symbols = self._parse_specifiers(rest, line_number, line)
                return kind, [("default", mixed.group(1)), *symbols]
            namespace = _NAMESPACE.match(rest)
            if namespace:
                return "namespace", [("default", mixed.group(1)), ("*", namespace.group(1))]

        raise ParseError(f"cannot parse import specifiers '{specifiers}'", line_number, line)

    def _parse_named(self, content: str, line_number: int, line: str) -> list[tuple[str, str]]:
        symbols: list[tuple[str, str]] = []
        for item in content.split(","):
            item = item.strip()
            if not item:
                continue
            if item.startswith("type "):
                item = item[5:].strip()
            parts = _AS.split(item)
            if len(parts) == 1:
                original = alias = parts[0]
            elif len(parts) == 2:
                original, alias = parts
            else:
                raise ParseError(f"invalid import specifier '{item}'", line_number, line)
            if not (_IDENTIFIER.match(original) or original == "default") or not _IDENTIFIER.match(
                alias
            ):
                raise ParseError(f"invalid import specifier '{item}'", line_number, line)
            symbols.append((original, alias))
        return symbols

    def coerce(
        self, imports: str | Sequence[ImportDeclaration | str | Mapping[str, Any]] | None
    ) -> list[ImportDeclaration]:
        """
        Normalize the different shapes imports can arrive in.

        Accepts raw source text, ImportDeclarations, bare specifier strings,
        or mappings produced by an external analyzer with a
        "source"/"from"/"module"/"name" key and an optional "items" list.
        Entries without a usable specifier are dropped.

        Args:
            imports: Source text or a sequence of imports in any supported shape

        Returns:
            ImportDeclarations in input order
        """
        if imports is None:
            self.errors = []
            return []
        if isinstance(imports, str):
            return self.parse(imports)

        self.errors = []
        declarations: list[ImportDeclaration] = []
        for index, item in enumerate(imports, start=1):
            if isinstance(item, ImportDeclaration):
                declarations.append(item)
            elif isinstance(item, str):
                if item:
                    declarations.append(
                        ImportDeclaration(
                            source_specifier=item,
                            kind="default",
                            source_line=index,
                            category=self.classify(item),
                        )
                    )
            elif isinstance(item, Mapping):
                declaration = self._from_mapping(item, index)
                if declaration is not None:
                    declarations.append(declaration)
        return declarations

    def _from_mapping(self, item: Mapping[str, Any], index: int) -> ImportDeclaration | None:
        source = next(
            (item[key] for key in ("source", "from", "module", "name") if item.get(key)), None
        )
        if not isinstance(source, str):
            return None

        symbols: list[tuple[str, str]] = []
        for entry in item.get("items") or item.get("specifiers") or []:
            if isinstance(entry, Mapping):
                name = str(entry.get("name", ""))
                symbols.append((name, str(entry.get("alias") or name)))
            else:
                parts = _AS.split(str(entry).strip())
                symbols.append((parts[0], parts[-1]))

        kind = item.get("kind") or item.get("type")
        if kind not in ("named", "default", "namespace"):
            kind = "named" if symbols else "default"

        return ImportDeclaration(
            source_specifier=source,
            kind=kind,
            requested_symbols=tuple(symbols),
            source_line=int(item.get("line") or item.get("lineNumber") or index),
            category=self.classify(source),
        )
