"""Tests for the ancestor walk across files."""

from __future__ import annotations

import logging

from conftest import make_resolver
from heritage.resolve.hierarchy import HierarchyWalker


def _declaration(resolver, name):
    return resolver.find_declaration(resolver.resolve_symbol(name))


class TestAncestors:
    def test_multi_level_order_furthest_first(self, zoo_project):
        resolver = make_resolver(zoo_project)
        puppy = resolver.find_declaration(
            resolver.resolve_text(resolver.parser.get_tree(zoo_project / "app/kennel.ts"), "Puppy")
        )
        ancestors = HierarchyWalker(resolver).ancestors(puppy)
        assert [a.qualified_name for a in ancestors] == ["Named", "Animal", "Pets.Dog"]

    def test_parent_resolved_in_its_own_file(self, zoo_project):
        # Dog names "Animal" through pets.ts imports, Stray through an alias
        resolver = make_resolver(zoo_project)
        stray = _declaration(resolver, "Stray")
        names = [a.qualified_name for a in HierarchyWalker(resolver).ancestors(stray)]
        assert names == ["Named", "Animal"]

    def test_namespace_import_parent(self, zoo_project):
        resolver = make_resolver(zoo_project)
        rescue = _declaration(resolver, "Rescue")
        assert [a.qualified_name for a in HierarchyWalker(resolver).ancestors(rescue)] == ["Named", "Animal"]

    def test_root_without_parents(self, zoo_project):
        resolver = make_resolver(zoo_project)
        assert HierarchyWalker(resolver).ancestors(_declaration(resolver, "Named")) == []

    def test_extends_and_implements_same_depth_keep_order(self, project_factory):
        proj = project_factory({
            "types.ts": (
                "interface First {}\n"
                "interface Second {}\n"
                "class Base {}\n"
                "class Leaf extends Base implements First, Second {}\n"
            ),
        })
        resolver = make_resolver(proj)
        ancestors = HierarchyWalker(resolver).ancestors(_declaration(resolver, "Leaf"))
        assert [a.qualified_name for a in ancestors] == ["Base", "First", "Second"]

    def test_interface_extends_multiple_with_generics(self, project_factory):
        proj = project_factory({
            "types.ts": (
                "interface Box<T> { value: T; }\n"
                "interface Labeled { label: string; }\n"
                "interface LabeledBox extends Box<string>, Labeled {}\n"
            ),
        })
        resolver = make_resolver(proj)
        ancestors = HierarchyWalker(resolver).ancestors(_declaration(resolver, "LabeledBox"))
        assert [a.qualified_name for a in ancestors] == ["Box", "Labeled"]

    def test_deeper_ancestor_sorted_before_shallow_sibling(self, project_factory):
        proj = project_factory({
            "types.ts": (
                "interface Root {}\n"
                "interface Mid extends Root {}\n"
                "interface Side {}\n"
                "interface Leaf extends Mid, Side {}\n"
            ),
        })
        resolver = make_resolver(proj)
        ancestors = HierarchyWalker(resolver).ancestors(_declaration(resolver, "Leaf"))
        assert [a.qualified_name for a in ancestors] == ["Root", "Mid", "Side"]

    def test_unresolvable_parent_skipped(self, project_factory):
        proj = project_factory({
            "types.ts": "import { External } from 'some-package';\nclass Known {}\nclass Mixed extends Known implements External {}\n",
        })
        resolver = make_resolver(proj)
        ancestors = HierarchyWalker(resolver).ancestors(_declaration(resolver, "Mixed"))
        assert [a.qualified_name for a in ancestors] == ["Known"]

    def test_diamond_visits_shared_ancestor_once(self, project_factory):
        proj = project_factory({
            "types.ts": (
                "interface Top {}\n"
                "interface Left extends Top {}\n"
                "interface Right extends Top {}\n"
                "interface Bottom extends Left, Right {}\n"
            ),
        })
        resolver = make_resolver(proj)
        walker = HierarchyWalker(resolver)
        names = [a.qualified_name for a in walker.ancestors(_declaration(resolver, "Bottom"))]
        assert names == ["Top", "Left", "Right"]
        assert walker.graph.has_edge("Right", "Top")


class TestCycles:
    def test_cycle_terminates_and_warns(self, project_factory, caplog):
        proj = project_factory({
            "a.ts": "interface A extends B {}\n",
            "b.ts": "interface B extends A {}\n",
        })
        resolver = make_resolver(proj)
        walker = HierarchyWalker(resolver)
        with caplog.at_level(logging.WARNING, logger="heritage.resolve.hierarchy"):
            ancestors = walker.ancestors(_declaration(resolver, "A"))
        assert [a.qualified_name for a in ancestors] == ["B"]
        assert "cycle" in caplog.text.lower()
        assert walker.graph.has_edge("B", "A")

    def test_self_extension(self, project_factory):
        proj = project_factory({"a.ts": "class Loop extends Loop {}\n"})
        resolver = make_resolver(proj)
        assert HierarchyWalker(resolver).ancestors(_declaration(resolver, "Loop")) == []


class TestGraph:
    def test_render_tree(self, zoo_project):
        resolver = make_resolver(zoo_project)
        walker = HierarchyWalker(resolver)
        walker.ancestors(_declaration(resolver, "Stray"))
        assert walker.render_tree("Stray") == ["Stray", "  Animal", "    Named"]

    def test_render_unknown_root(self, zoo_project):
        walker = HierarchyWalker(make_resolver(zoo_project))
        assert walker.render_tree("Nothing") == []
