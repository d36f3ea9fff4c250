"""Resolve identifiers in a file to indexed class/interface declarations."""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass
from functools import cached_property
from pathlib import Path

from heritage.index.parser import ParsedFile, SourceParser
from heritage.index.symbol_index import SymbolIndex
from heritage.index.symbols import (
    CLASS_TYPES,
    INTERFACE_TYPES,
    NAMESPACE_TYPES,
    TYPE_DECLARATION_TYPES,
    Symbol,
    SymbolKind,
    declaration_name,
    iter_type_declarations,
    namespace_body,
    namespace_name,
    strip_source_suffix,
)
from heritage.resolve.treewalk import (
    ImportBinding,
    compact,
    enclosing_namespaces,
    iter_imports,
    reference_directives,
    reference_text,
    resolve_module_path,
)

log = logging.getLogger(__name__)

_STATEMENT_WRAPPERS = frozenset({"export_statement", "expression_statement", "ambient_declaration"})


@dataclass(frozen=True)
class ResolvedSymbol:
    """A symbol plus the reference that led to it.

    ``ref_or_import`` is the import statement, import alias or
    ``/// <reference>`` comment that put the symbol in scope, or None when
    the symbol is declared in the referencing file or needed no import.
    """

    symbol: Symbol
    text: str
    ref_or_import: object = None

    @property
    def qualified_name(self) -> str:
        return self.symbol.name

    @property
    def relative_path(self) -> str:
        return self.symbol.relative_path

    @property
    def module_name(self) -> str:
        return self.symbol.module_name

    @property
    def has_namespace(self) -> bool:
        return self.symbol.has_namespace


class Declaration:
    """A located class or interface declaration in a specific file."""

    def __init__(self, parsed: ParsedFile, node, qualified_name: str | None = None):
        self.parsed = parsed
        self.node = node
        self._qualified_name = qualified_name

    @cached_property
    def is_abstract_class(self) -> bool:
        if self.node.type == "abstract_class_declaration":
            return True
        if self.node.type not in CLASS_TYPES:
            return False
        return any(child.type == "abstract" for child in self.node.children)

    @property
    def is_interface(self) -> bool:
        return self.node.type in INTERFACE_TYPES

    @property
    def kind(self) -> SymbolKind:
        return SymbolKind.for_node(self.node)

    @property
    def name(self) -> str:
        return declaration_name(self.node, self.parsed.source) or ""

    @property
    def qualified_name(self) -> str:
        if self._qualified_name:
            return self._qualified_name
        return ".".join(enclosing_namespaces(self.node, self.parsed.source) + [self.name])

    @property
    def line(self) -> int:
        return self.node.start_point[0] + 1

    def __repr__(self) -> str:
        return f"Declaration({self.qualified_name!r}, {self.parsed.path!r})"


class SymbolResolver:
    """Maps references in source files to indexed declarations.

    The index and the parser are injected; the resolver keeps no state of
    its own beyond them.
    """

    def __init__(self, index: SymbolIndex, parser: SourceParser):
        self.index = index
        self.parser = parser
        index.watch_cache(parser)

    @property
    def root(self) -> Path:
        return self.index.root

    def relative_path(self, parsed: ParsedFile) -> str:
        try:
            return Path(parsed.path).resolve().relative_to(self.root).as_posix()
        except ValueError:
            return Path(parsed.path).name

    # ── entry points ───────────────────────────────────────────────────

    def resolve_for_node(self, parsed: ParsedFile, node) -> ResolvedSymbol | None:
        """Resolve the reference *node* belongs to; None when nothing matches."""
        if node is None:
            return None
        text = reference_text(node, parsed.source)
        resolved = self.resolve_text(parsed, text, scope_node=node) if text else None
        if resolved is not None:
            return resolved

        bare = compact(parsed.text(node))
        if bare and bare != text:
            resolved = self.resolve_text(parsed, bare, scope_node=node)
        if resolved is None:
            log.debug("Unresolved reference %r in %s", text or bare, parsed.path)
        return resolved

    def resolve_symbol(self, text: str) -> ResolvedSymbol | None:
        """Index-only resolution for an already qualified name."""
        symbol = self.index.lookup(text)
        if symbol is None:
            return None
        return ResolvedSymbol(symbol=symbol, text=text)

    def resolve_text(self, parsed: ParsedFile, text: str, scope_node=None) -> ResolvedSymbol | None:
        """Resolve *text* as written in *parsed*.

        Order: declarations of the file itself, the index (namespaced hits
        must be in scope), then the file's imports.
        """
        rel_path = self.relative_path(parsed)

        local = self._resolve_local(parsed, rel_path, text, scope_node)
        if local is not None:
            return local

        symbol = self.index.lookup(text)
        if symbol is not None:
            if not symbol.has_namespace:
                return ResolvedSymbol(symbol, text, self._import_naming(parsed, text))
            if symbol.relative_path == rel_path:
                return ResolvedSymbol(symbol, text)
            ref = self._scope_reference(parsed, rel_path, symbol)
            if ref is not None:
                return ResolvedSymbol(symbol, text, ref)
            log.debug("%s exists in %s but is not referenced from %s", text, symbol.relative_path, rel_path)

        return self._resolve_through_imports(parsed, rel_path, text)

    # ── locating declarations ──────────────────────────────────────────

    def get_source_file_for_symbol(self, symbol: Symbol | ResolvedSymbol) -> ParsedFile | None:
        if isinstance(symbol, ResolvedSymbol):
            symbol = symbol.symbol
        return self.parser.get_tree(self.root / symbol.relative_path)

    def get_node_for_symbol(self, parsed: ParsedFile, resolved: Symbol | ResolvedSymbol):
        """Find the declaration node of *resolved* in *parsed*.

        Walks top-level statements; a namespace block whose name prefixes the
        remaining qualified name is entered with that prefix stripped.
        """
        name = resolved.qualified_name if isinstance(resolved, ResolvedSymbol) else resolved.name
        node = self._find_in_block(parsed.root, parsed.source, name)
        if node is None:
            log.warning("Declaration of %s not found in %s (stale index?)", name, parsed.path)
        return node

    def find_declaration(self, resolved: Symbol | ResolvedSymbol) -> Declaration | None:
        """Load the file of *resolved* and wrap its declaration node."""
        parsed = self.get_source_file_for_symbol(resolved)
        if parsed is None:
            return None
        node = self.get_node_for_symbol(parsed, resolved)
        if node is None:
            return None
        name = resolved.qualified_name if isinstance(resolved, ResolvedSymbol) else resolved.name
        return Declaration(parsed, node, name)

    def _find_in_block(self, block, source: bytes, remaining: str):
        for child in block.named_children:
            while child is not None and child.type in _STATEMENT_WRAPPERS:
                inner = child.child_by_field_name("declaration")
                if inner is None:
                    inner = next(
                        (c for c in child.named_children if c.type in TYPE_DECLARATION_TYPES | NAMESPACE_TYPES),
                        None,
                    )
                child = inner
            if child is None:
                continue
            if child.type in TYPE_DECLARATION_TYPES:
                if declaration_name(child, source) == remaining:
                    return child
            elif child.type in NAMESPACE_TYPES:
                body = namespace_body(child)
                if body is None:
                    continue
                ns = namespace_name(child, source)
                if ns is None:
                    found = self._find_in_block(body, source, remaining)
                elif remaining.startswith(ns + "."):
                    found = self._find_in_block(body, source, remaining[len(ns) + 1 :])
                else:
                    continue
                if found is not None:
                    return found
        return None

    # ── resolution steps ───────────────────────────────────────────────

    def _resolve_local(self, parsed, rel_path, text, scope_node) -> ResolvedSymbol | None:
        declared = {d.qualified_name: d for d in iter_type_declarations(parsed)}
        if not declared:
            return None
        candidates = []
        if scope_node is not None:
            namespaces = enclosing_namespaces(scope_node, parsed.source)
            # Innermost namespace first: NS.Inner.Bar, NS.Bar, then Bar
            for depth in range(len(namespaces), 0, -1):
                candidates.append(".".join(namespaces[:depth] + [text]))
        candidates.append(text)
        for name in candidates:
            decl = declared.get(name)
            if decl is not None:
                symbol = Symbol(name, decl.kind, rel_path, decl.has_namespace)
                return ResolvedSymbol(symbol, text)
        return None

    def _import_naming(self, parsed, name: str):
        for binding in iter_imports(parsed):
            if binding.kind in ("named", "default") and binding.local_name == name:
                return binding.node
        return None

    def _scope_reference(self, parsed, rel_path: str, symbol: Symbol):
        """Directive or import of *parsed* that refers to the module of *symbol*."""
        base = posixpath.dirname(rel_path)
        for ref_path, node in reference_directives(parsed):
            target = strip_source_suffix(posixpath.normpath(posixpath.join(base, ref_path)))
            if target == symbol.module_path:
                return node
        for binding in iter_imports(parsed):
            if binding.module and resolve_module_path(binding.module, rel_path) == symbol.module_path:
                return binding.node
        return None

    def _resolve_through_imports(self, parsed, rel_path, text) -> ResolvedSymbol | None:
        for binding in iter_imports(parsed):
            candidate = self._rewrite_through(binding, text)
            if candidate is None:
                continue
            symbol = self.index.lookup(candidate)
            if symbol is None:
                continue
            if binding.module and symbol.has_namespace:
                module = resolve_module_path(binding.module, rel_path)
                if module is not None and module != symbol.module_path:
                    continue
            return ResolvedSymbol(symbol, text, binding.node)
        return None

    @staticmethod
    def _rewrite_through(binding: ImportBinding, text: str) -> str | None:
        """Name to look up when *text* goes through *binding*, else None."""
        local = binding.local_name
        if binding.kind == "namespace":
            if text.startswith(local + "."):
                return text[len(local) + 1 :]
            return None
        if text == local:
            return binding.target or local
        if text.startswith(local + ".") and binding.target:
            return binding.target + text[len(local) :]
        return None
