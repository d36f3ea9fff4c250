"""Collect the members of a declaration and of its ancestors."""

from __future__ import annotations

from dataclasses import dataclass

from heritage.index.parser import ParsedFile
from heritage.resolve.resolver import Declaration

SIGNATURES = "signatures"
DECLARATIONS = "declarations"

METHOD_SIGNATURE_TYPES = frozenset({"method_signature"})
PROPERTY_SIGNATURE_TYPES = frozenset({"property_signature"})
METHOD_DECLARATION_TYPES = frozenset({"method_definition", "abstract_method_signature", "method_signature"})
PROPERTY_DECLARATION_TYPES = frozenset({"public_field_definition", "field_definition"})

_MEMBER_TYPES = {
    SIGNATURES: (METHOD_SIGNATURE_TYPES, PROPERTY_SIGNATURE_TYPES),
    DECLARATIONS: (METHOD_DECLARATION_TYPES, PROPERTY_DECLARATION_TYPES),
}


@dataclass(frozen=True)
class MemberDeclaration:
    node: object
    parsed: ParsedFile
    name: str
    is_method: bool
    has_implementation: bool

    @property
    def line(self) -> int:
        return self.node.start_point[0] + 1

    @property
    def text(self) -> str:
        return self.parsed.text(self.node)


def _is_abstract(node) -> bool:
    return any(child.type == "abstract" for child in node.children)


def _has_implementation(node) -> bool:
    if node.type == "method_definition":
        return node.child_by_field_name("body") is not None
    if node.type in PROPERTY_DECLARATION_TYPES:
        return not _is_abstract(node)
    return False


def _body(node):
    body = node.child_by_field_name("body")
    if body is not None:
        return body
    return next((c for c in node.named_children if c.type in ("class_body", "interface_body", "object_type")), None)


class MemberCollector:
    """Gather method and property members across an ancestor chain.

    Interfaces contribute signatures, classes contribute declarations;
    the mode is picked from the root declaration unless given.
    """

    def __init__(self, dedupe: bool = False):
        self.dedupe = dedupe

    @staticmethod
    def mode_for(declaration: Declaration) -> str:
        return SIGNATURES if declaration.is_interface else DECLARATIONS

    def members_of(self, declaration: Declaration, mode: str) -> list[MemberDeclaration]:
        """Members declared directly in the body of *declaration*."""
        method_types, property_types = _MEMBER_TYPES[mode]
        body = _body(declaration.node)
        if body is None:
            return []
        members = []
        for child in body.named_children:
            if child.type not in method_types and child.type not in property_types:
                continue
            name_node = child.child_by_field_name("name")
            if name_node is None:
                continue
            name = declaration.parsed.text(name_node)
            if name == "constructor":
                continue
            members.append(
                MemberDeclaration(
                    node=child,
                    parsed=declaration.parsed,
                    name=name,
                    is_method=child.type in method_types,
                    has_implementation=_has_implementation(child),
                )
            )
        return members

    def collect(
        self,
        declaration: Declaration,
        ancestors: list[Declaration],
        mode: str | None = None,
        dedupe: bool | None = None,
    ) -> list[MemberDeclaration]:
        """Ancestor members (furthest ancestor first) followed by own members."""
        mode = mode or self.mode_for(declaration)
        collected: list[MemberDeclaration] = []
        for ancestor in ancestors:
            collected.extend(self.members_of(ancestor, mode))
        collected.extend(self.members_of(declaration, mode))

        if self.dedupe if dedupe is None else dedupe:
            collected = self._dedupe(collected)
        return collected

    def methods(self, declaration, ancestors, **kwargs) -> list[MemberDeclaration]:
        return [m for m in self.collect(declaration, ancestors, **kwargs) if m.is_method]

    def properties(self, declaration, ancestors, **kwargs) -> list[MemberDeclaration]:
        return [m for m in self.collect(declaration, ancestors, **kwargs) if not m.is_method]

    @staticmethod
    def _dedupe(members: list[MemberDeclaration]) -> list[MemberDeclaration]:
        # The entry nearest the root (last in the list) wins
        seen: set[tuple[str, bool]] = set()
        kept = []
        for member in reversed(members):
            key = (member.name, member.is_method)
            if key in seen:
                continue
            seen.add(key)
            kept.append(member)
        kept.reverse()
        return kept
