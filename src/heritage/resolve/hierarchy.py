"""Walk extends/implements chains across files."""

from __future__ import annotations

import logging

import networkx as nx

from heritage.index.symbols import TYPE_DECLARATION_TYPES
from heritage.resolve.resolver import Declaration, SymbolResolver
from heritage.resolve.treewalk import heritage_type_texts

log = logging.getLogger(__name__)


class HierarchyWalker:
    """Collect every ancestor declaration of a class or interface.

    Each call to :meth:`ancestors` is an independent walk.  ``graph`` holds
    the inheritance edges (child -> parent, by qualified name) seen by the
    last walk, including edges that closed a cycle.
    """

    def __init__(self, resolver: SymbolResolver):
        self.resolver = resolver
        self.graph = nx.DiGraph()

    def ancestors(self, declaration: Declaration) -> list[Declaration]:
        """Ancestor chain of *declaration*, furthest ancestor first.

        Parents that cannot be resolved are skipped.  A parent already seen
        in this walk is not entered again, so inheritance cycles end the
        branch instead of recursing forever.
        """
        self.graph = nx.DiGraph()
        root_name = declaration.qualified_name
        self.graph.add_node(root_name, path=declaration.parsed.path, line=declaration.line)

        found: list[tuple[int, int, Declaration]] = []
        visited = {root_name}
        self._walk(declaration, 1, visited, found)

        # Deepest first; ties keep discovery order
        found.sort(key=lambda item: (-item[0], item[1]))
        return [decl for _, _, decl in found]

    def _walk(self, current: Declaration, depth: int, visited: set[str], found: list) -> None:
        if current.node.type not in TYPE_DECLARATION_TYPES:
            return
        for text in heritage_type_texts(current.node, current.parsed.source):
            resolved = self.resolver.resolve_text(current.parsed, text, scope_node=current.node)
            if resolved is None:
                log.debug("Parent %s of %s not resolved, skipping", text, current.qualified_name)
                continue

            parent_name = resolved.qualified_name
            self.graph.add_edge(current.qualified_name, parent_name)
            if parent_name in visited:
                self._report_cycle(parent_name)
                continue

            parent = self.resolver.find_declaration(resolved)
            if parent is None:
                continue
            visited.add(parent_name)
            self.graph.nodes[parent_name].update(path=parent.parsed.path, line=parent.line)
            found.append((depth, len(found), parent))
            self._walk(parent, depth + 1, visited, found)

    def _report_cycle(self, name: str) -> None:
        try:
            cycle = nx.find_cycle(self.graph, source=name)
        except nx.NetworkXNoCycle:
            # Diamond, not a cycle: the parent was reached by another path
            return
        chain = " -> ".join([edge[0] for edge in cycle] + [cycle[-1][1]])
        log.warning("Inheritance cycle ignored: %s", chain)

    def render_tree(self, root_name: str) -> list[str]:
        """Indented text lines for the graph of the last walk."""
        lines: list[str] = []

        def _emit(name: str, depth: int, seen: set[str]) -> None:
            marker = " (cycle)" if name in seen else ""
            lines.append(f"{'  ' * depth}{name}{marker}")
            if marker:
                return
            for parent in self.graph.successors(name):
                _emit(parent, depth + 1, seen | {name})

        if root_name in self.graph:
            _emit(root_name, 0, set())
        return lines
