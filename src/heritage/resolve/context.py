"""Cursor contexts handed to the code-generation layer.

Given a document and a byte offset, work out what can be generated there:
a property accessor for the field under the cursor, member stubs for the
type under the cursor, or the import statement the type still needs.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from pathlib import Path

from heritage.index.parser import ParsedFile
from heritage.index.symbols import CLASS_TYPES, TYPE_DECLARATION_TYPES
from heritage.resolve.hierarchy import HierarchyWalker
from heritage.resolve.members import MemberCollector, MemberDeclaration
from heritage.resolve.resolver import Declaration, ResolvedSymbol, SymbolResolver
from heritage.resolve.treewalk import (
    PROPERTY_DECLARATION_TYPES,
    enclosing,
    import_statements,
    node_at_offset,
    reference_text,
    resolve_module_path,
)


@dataclass
class PropertyContext:
    """The class field under the cursor and the class declaring it."""

    parsed: ParsedFile
    declaration: Declaration
    node: object
    owner: Declaration | None = None

    @property
    def insert_at_offset(self) -> int:
        return self.node.end_byte


@dataclass
class TypeContext:
    """A resolved type plus everything needed to stub its members."""

    parsed: ParsedFile
    declaring_class: object
    declaration: Declaration
    ancestors: list[Declaration] = field(default_factory=list)
    members: list[MemberDeclaration] = field(default_factory=list)

    @property
    def insert_at_offset(self) -> int:
        return self.declaring_class.end_byte - 1

    @property
    def methods(self) -> list[MemberDeclaration]:
        return [m for m in self.members if m.is_method]

    @property
    def properties(self) -> list[MemberDeclaration]:
        return [m for m in self.members if not m.is_method]


@dataclass
class ImportContext:
    """An import the document needs for the symbol under the cursor.

    ``is_reference`` marks namespaced symbols, which are brought in with a
    ``/// <reference path>`` directive (``module_specifier`` then ends in
    ``.ts``) instead of an import statement.
    """

    parsed: ParsedFile
    resolved: ResolvedSymbol
    module_specifier: str
    insert_at_offset: int
    is_reference: bool = False
    existing_import: object = None

    @property
    def symbol_name(self) -> str:
        return self.resolved.text

    @property
    def module_name(self) -> str:
        return self.resolved.module_name


class ContextProvider:
    def __init__(self, resolver: SymbolResolver, collector: MemberCollector | None = None):
        self.resolver = resolver
        self.collector = collector or MemberCollector()

    def _document(self, path, text: str | None) -> ParsedFile | None:
        if text is not None:
            self.resolver.parser.evict(path)
        return self.resolver.parser.get_tree(path, text)

    def generator_context(self, path, offset: int, text: str | None = None):
        """PropertyContext, TypeContext or None for the cursor at *offset*."""
        parsed = self._document(path, text)
        if parsed is None:
            return None
        node = node_at_offset(parsed, offset)
        if node is None:
            return None

        declaring = enclosing(node, PROPERTY_DECLARATION_TYPES | CLASS_TYPES)
        if declaring is None:
            return None
        if declaring.type in PROPERTY_DECLARATION_TYPES:
            owner = enclosing(declaring.parent, CLASS_TYPES)
            return PropertyContext(
                parsed,
                Declaration(parsed, declaring),
                declaring,
                Declaration(parsed, owner) if owner is not None else None,
            )

        resolved = self.resolver.resolve_for_node(parsed, node)
        if resolved is None:
            return None
        target = self.resolver.find_declaration(resolved)
        if target is None or target.node.type not in TYPE_DECLARATION_TYPES:
            return None

        walker = HierarchyWalker(self.resolver)
        ancestors = walker.ancestors(target)
        members = self.collector.collect(target, ancestors)
        return TypeContext(parsed, declaring, target, ancestors, members)

    def import_context(self, path, offset: int, text: str | None = None) -> ImportContext | None:
        """The import needed for the type under the cursor, or None if none is."""
        parsed = self._document(path, text)
        if parsed is None:
            return None
        node = node_at_offset(parsed, offset)
        if node is None:
            return None

        resolved = self.resolver.resolve_for_node(parsed, node)
        if resolved is None:
            # Namespaced types not yet in scope are only known to the index
            resolved = self.resolver.resolve_symbol(reference_text(node, parsed.source))
        if resolved is None or resolved.ref_or_import is not None:
            return None

        rel_path = self.resolver.relative_path(parsed)
        if resolved.relative_path == rel_path:
            return None
        specifier = self._module_specifier(rel_path, resolved.symbol.module_path)

        if resolved.has_namespace:
            return ImportContext(parsed, resolved, specifier + ".ts", 0, is_reference=True)

        insert_at = 0
        existing = None
        for stmt in import_statements(parsed):
            insert_at = stmt.end_byte
            source_node = stmt.child_by_field_name("source")
            if source_node is None:
                continue
            module = parsed.text(source_node).strip("'\"`")
            if resolve_module_path(module, rel_path) == resolved.symbol.module_path:
                existing = stmt
                break

        if existing is not None:
            named = self._named_imports(existing)
            if named is None:
                # Default or namespace import of the module: nothing to add
                return None
            insert_at = named.end_byte - 1
        return ImportContext(parsed, resolved, specifier, insert_at, existing_import=existing)

    @staticmethod
    def _named_imports(stmt):
        clause = next((c for c in stmt.named_children if c.type == "import_clause"), None)
        if clause is None:
            return None
        return next((c for c in clause.named_children if c.type == "named_imports"), None)

    @staticmethod
    def _module_specifier(from_rel_path: str, module_path: str) -> str:
        specifier = posixpath.relpath(module_path, posixpath.dirname(from_rel_path) or ".")
        specifier = specifier.replace("\\", "/")
        if not specifier.startswith(("./", "../", "/")):
            specifier = "./" + specifier
        return specifier


def offset_for(path: Path, line: int, column: int) -> int:
    """Byte offset of a 1-based line / 0-based column in *path*."""
    data = Path(path).read_bytes()
    lines = data.split(b"\n")
    line_index = max(0, min(line - 1, len(lines) - 1))
    prefix = sum(len(row) + 1 for row in lines[:line_index])
    return prefix + min(column, len(lines[line_index]))
