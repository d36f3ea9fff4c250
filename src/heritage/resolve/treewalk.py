"""Navigation helpers over tree-sitter TypeScript trees."""

from __future__ import annotations

import posixpath
import re
from dataclasses import dataclass

from heritage.index.parser import ParsedFile, node_text
from heritage.index.symbols import NAMESPACE_TYPES, namespace_name, strip_source_suffix

IDENTIFIER_TYPES = frozenset({"identifier", "type_identifier", "property_identifier"})

# Dotted reference chains: ``NS.Bar`` as expression, as type, as namespace name
REFERENCE_CHAIN_TYPES = frozenset({"member_expression", "nested_type_identifier", "nested_identifier"})

HERITAGE_CLAUSE_TYPES = frozenset({"extends_clause", "implements_clause", "extends_type_clause"})

PROPERTY_DECLARATION_TYPES = frozenset({"public_field_definition", "field_definition"})

_REFERENCE_PATH_RE = re.compile(r"""^///\s*<reference\s+path\s*=\s*["']([^"']+)["']""")


def compact(text: str) -> str:
    """Drop all whitespace (``NS . Bar`` -> ``NS.Bar``)."""
    return "".join(text.split())


def node_at_offset(parsed: ParsedFile, offset: int):
    """Deepest named node covering byte *offset*.

    A cursor sitting right after an identifier (``Bar|``) still selects it.
    """
    root = parsed.root
    node = root.named_descendant_for_byte_range(offset, offset)
    if (node is None or node.type not in IDENTIFIER_TYPES) and offset > 0:
        previous = root.named_descendant_for_byte_range(offset - 1, offset - 1)
        if previous is not None and previous.type in IDENTIFIER_TYPES:
            return previous
    return node


def enclosing(node, types):
    """First node of one of *types*, starting at *node* and walking up."""
    while node is not None:
        if node.type in types:
            return node
        node = node.parent
    return None


def enclosing_namespaces(node, source: bytes) -> list[str]:
    """Names of the namespace blocks around *node*, outermost first."""
    names = []
    current = node.parent
    while current is not None:
        if current.type in NAMESPACE_TYPES:
            name = namespace_name(current, source)
            if name:
                names.append(name)
        current = current.parent
    names.reverse()
    return names


def heritage_clauses(decl_node):
    """``extends``/``implements`` clauses of a class or interface declaration."""
    for child in decl_node.named_children:
        if child.type == "class_heritage":
            for clause in child.named_children:
                if clause.type in HERITAGE_CLAUSE_TYPES:
                    yield clause
        elif child.type in HERITAGE_CLAUSE_TYPES:
            yield child


def _type_expression_text(item, source: bytes) -> str | None:
    if item.type in ("type_arguments", "comment"):
        return None
    if item.type == "generic_type":
        item = item.child_by_field_name("name") or item
    text = compact(node_text(item, source))
    return text or None


def heritage_type_texts(decl_node, source: bytes) -> list[str]:
    """Parent type names listed in the heritage clauses, generics dropped."""
    texts = []
    for clause in heritage_clauses(decl_node):
        for item in clause.named_children:
            text = _type_expression_text(item, source)
            if text:
                texts.append(text)
    return texts


def reference_text(node, source: bytes) -> str:
    """Full dotted text of the reference *node* belongs to.

    ``Bar`` inside ``extends NS.Bar`` gives ``NS.Bar``; a heritage clause
    itself gives its first listed type.
    """
    if node.type == "class_heritage":
        node = next(iter(node.named_children), node)
    if node.type in HERITAGE_CLAUSE_TYPES:
        for item in node.named_children:
            text = _type_expression_text(item, source)
            if text:
                return text
        return ""

    current = node
    while current.parent is not None and current.parent.type in REFERENCE_CHAIN_TYPES:
        current = current.parent
    if current.type == "generic_type":
        current = current.child_by_field_name("name") or current
    return compact(node_text(current, source))


# ── imports and reference directives ────────────────────────────────────


@dataclass(frozen=True)
class ImportBinding:
    """One local name brought into scope by an import.

    ``kind`` is ``named``, ``default``, ``namespace`` or ``alias``.  For
    ``alias`` (``import X = NS.Y``) ``target`` holds the aliased dotted name
    and ``module`` is None.
    """

    local_name: str
    kind: str
    module: str | None
    node: object
    target: str | None = None


def _string_value(node, source: bytes) -> str:
    return node_text(node, source).strip().strip("'\"`")


def _bindings_for_import(stmt, source: bytes) -> list[ImportBinding]:
    source_node = stmt.child_by_field_name("source")
    module = _string_value(source_node, source) if source_node is not None else None
    bindings = []
    for child in stmt.named_children:
        if child.type == "import_require_clause":
            ident = next((c for c in child.named_children if c.type == "identifier"), None)
            req = child.child_by_field_name("source") or next(
                (c for c in child.named_children if c.type == "string"), None
            )
            if ident is not None and req is not None:
                bindings.append(ImportBinding(node_text(ident, source), "namespace", _string_value(req, source), stmt))
        if child.type != "import_clause":
            continue
        for part in child.named_children:
            if part.type == "identifier":
                bindings.append(ImportBinding(node_text(part, source), "default", module, stmt))
            elif part.type == "namespace_import":
                ident = next((c for c in part.named_children if c.type == "identifier"), None)
                if ident is not None:
                    bindings.append(ImportBinding(node_text(ident, source), "namespace", module, stmt))
            elif part.type == "named_imports":
                for spec in part.named_children:
                    if spec.type != "import_specifier":
                        continue
                    name = spec.child_by_field_name("name")
                    alias = spec.child_by_field_name("alias")
                    if name is None:
                        continue
                    imported = node_text(name, source)
                    local = node_text(alias, source) if alias is not None else imported
                    bindings.append(ImportBinding(local, "named", module, stmt, target=imported))
    return bindings


def _binding_for_alias(stmt, source: bytes) -> ImportBinding | None:
    names = [c for c in stmt.named_children if c.type in ("identifier", "nested_identifier")]
    if len(names) < 2:
        return None
    return ImportBinding(
        local_name=node_text(names[0], source),
        kind="alias",
        module=None,
        node=stmt,
        target=compact(node_text(names[1], source)),
    )


def iter_imports(parsed: ParsedFile) -> list[ImportBinding]:
    """All top-level import bindings of a file, in source order."""
    bindings: list[ImportBinding] = []
    for stmt in parsed.root.named_children:
        if stmt.type == "import_statement":
            bindings.extend(_bindings_for_import(stmt, parsed.source))
        elif stmt.type == "import_alias":
            binding = _binding_for_alias(stmt, parsed.source)
            if binding is not None:
                bindings.append(binding)
    return bindings


def import_statements(parsed: ParsedFile) -> list:
    return [stmt for stmt in parsed.root.named_children if stmt.type == "import_statement"]


def reference_directives(parsed: ParsedFile) -> list[tuple[str, object]]:
    """``/// <reference path="..." />`` directives as (path, comment node)."""
    found = []
    for child in parsed.root.children:
        if child.type != "comment":
            continue
        match = _REFERENCE_PATH_RE.match(parsed.text(child))
        if match:
            found.append((match.group(1), child))
    return found


def resolve_module_path(specifier: str, referencing_rel_path: str) -> str | None:
    """Project-relative module path (no extension) a relative specifier names.

    Package specifiers (``lodash``, ``@scope/pkg``) return None.
    """
    if not specifier.startswith("."):
        return None
    base = posixpath.dirname(referencing_rel_path)
    joined = posixpath.normpath(posixpath.join(base, specifier))
    if joined.endswith(".js"):
        joined = joined[:-3]
    return strip_source_suffix(joined)
