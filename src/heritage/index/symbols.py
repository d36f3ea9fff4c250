"""Class/interface declaration extraction from tree-sitter ASTs."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from pathlib import PurePosixPath

from heritage.index.parser import ParsedFile, node_text

CLASS_TYPES = frozenset({"class_declaration", "abstract_class_declaration"})
INTERFACE_TYPES = frozenset({"interface_declaration"})
TYPE_DECLARATION_TYPES = CLASS_TYPES | INTERFACE_TYPES
NAMESPACE_TYPES = frozenset({"internal_module", "module"})

# Nodes whose children are still at "statement level" for the declaration walk.
# Class bodies and function bodies are never entered.
_CONTAINER_TYPES = frozenset({
    "program",
    "export_statement",
    "expression_statement",
    "ambient_declaration",
    "statement_block",
})

_SOURCE_SUFFIXES = (".d.ts", ".tsx", ".mts", ".cts", ".ts")


class SymbolKind(enum.Enum):
    CLASS = "class"
    INTERFACE = "interface"

    @classmethod
    def for_node(cls, node) -> "SymbolKind":
        return cls.INTERFACE if node.type in INTERFACE_TYPES else cls.CLASS


def strip_source_suffix(path: str) -> str:
    lowered = path.lower()
    for suffix in _SOURCE_SUFFIXES:
        if lowered.endswith(suffix):
            return path[: -len(suffix)]
    return path


@dataclass(frozen=True)
class Symbol:
    """One declared class or interface, keyed in the index by ``name``."""

    name: str
    kind: SymbolKind
    relative_path: str
    has_namespace: bool = False

    @property
    def module_path(self) -> str:
        """Relative path without its source extension, e.g. ``src/models/user``."""
        return strip_source_suffix(self.relative_path)

    @property
    def module_name(self) -> str:
        return PurePosixPath(self.module_path).name

    @property
    def simple_name(self) -> str:
        return self.name.rsplit(".", 1)[-1]

    def to_dict(self) -> dict:
        return {
            "relativePath": self.relative_path,
            "type": self.kind.value,
            "moduleName": self.module_name,
            "hasNamespace": self.has_namespace,
        }

    @classmethod
    def from_dict(cls, name: str, data: dict) -> "Symbol":
        return cls(
            name=name,
            kind=SymbolKind(data["type"]),
            relative_path=data["relativePath"],
            has_namespace=bool(data.get("hasNamespace", False)),
        )


@dataclass(frozen=True)
class DeclaredType:
    """A class/interface declaration found while walking one file."""

    qualified_name: str
    kind: SymbolKind
    node: object
    has_namespace: bool


def declaration_name(node, source: bytes) -> str | None:
    name_node = node.child_by_field_name("name")
    if name_node is None:
        return None
    return node_text(name_node, source) or None


def namespace_name(node, source: bytes) -> str | None:
    """Dotted name of a namespace block; None for ``declare module "x"``."""
    name_node = node.child_by_field_name("name")
    if name_node is None or name_node.type == "string":
        return None
    return "".join(node_text(name_node, source).split())


def namespace_body(node):
    return node.child_by_field_name("body")


def _join(prefix: str | None, name: str | None) -> str | None:
    if prefix and name:
        return f"{prefix}.{name}"
    return name or prefix


def _walk(node, source: bytes, prefix: str | None, found: list[DeclaredType]) -> None:
    # Every match at every level is recorded; there is no early exit once a
    # sibling has matched.
    for child in node.named_children:
        if child.type in TYPE_DECLARATION_TYPES:
            name = declaration_name(child, source)
            if name:
                found.append(
                    DeclaredType(
                        qualified_name=_join(prefix, name),
                        kind=SymbolKind.for_node(child),
                        node=child,
                        has_namespace=bool(prefix),
                    )
                )
        elif child.type in NAMESPACE_TYPES:
            body = namespace_body(child)
            if body is not None:
                _walk(body, source, _join(prefix, namespace_name(child, source)), found)
        elif child.type in _CONTAINER_TYPES:
            _walk(child, source, prefix, found)


def iter_type_declarations(parsed: ParsedFile) -> list[DeclaredType]:
    """All class/interface declarations of a file, in source order."""
    found: list[DeclaredType] = []
    _walk(parsed.root, parsed.source, None, found)
    return found


def extract_symbols(parsed: ParsedFile, rel_path: str) -> dict[str, Symbol]:
    """Index one file: qualified name -> Symbol.

    A later declaration with the same qualified name wins.
    """
    symbols: dict[str, Symbol] = {}
    for decl in iter_type_declarations(parsed):
        symbols[decl.qualified_name] = Symbol(
            name=decl.qualified_name,
            kind=decl.kind,
            relative_path=rel_path,
            has_namespace=decl.has_namespace,
        )
    return symbols
