"""Tests for impact propagation over the parent graph."""

import pytest

from impactgraph_cli.diff_engine import diff_declarations
from impactgraph_cli.graph import build_parent_modules
from impactgraph_cli.impact import affected_exports, affected_files, matching_imports, propagate, seed_names
from impactgraph_cli.models import STAR_EXPORT_PREFIX, Declaration, DiffEntry, FileRecord

from conftest import make_export, make_import, make_record


def _changed(record: FileRecord, *names: str):
    return [DiffEntry(declaration=record.get(name), diff_type="change") for name in names]


def _chains(result):
    return [p.paths for p in result.effect_paths]


@pytest.fixture
def foo_bar():
    """``a`` exports foo; ``b`` wraps it in bar."""
    return build_parent_modules({
        "a": make_record("a", [make_export("foo")]),
        "b": make_record("b", [make_import("foo", "a"), make_export("bar", dependencies=["foo"])]),
    })


class TestFooBarScenario:
    """A change travels only through exports that use it."""

    def test_reaches_importing_file(self, foo_bar):
        result = propagate(foo_bar, foo_bar["a"], _changed(foo_bar["a"], "foo"))
        assert result.path == "a"
        assert _chains(result) == [["a", "b"]]
        assert result.effect_paths[0].name == "b"
        assert result.effect_paths[0].declarations == ["bar"]

    def test_reaches_wired_grandparent(self, foo_bar):
        foo_bar["c"] = make_record("c", [make_import("bar", "b"), make_export("baz", dependencies=["bar"])])
        build_parent_modules(foo_bar)

        result = propagate(foo_bar, foo_bar["a"], _changed(foo_bar["a"], "foo"))
        assert _chains(result) == [["a", "b", "c"]]
        assert result.effect_paths[0].declarations == ["baz"]

    def test_unwired_grandparent_is_a_dead_end(self, foo_bar):
        """``c`` imports bar but exports nothing built on it."""
        foo_bar["c"] = make_record("c", [make_import("bar", "b"), make_export("unrelated")])
        build_parent_modules(foo_bar)

        result = propagate(foo_bar, foo_bar["a"], _changed(foo_bar["a"], "foo"))
        assert result.effect_paths == []

    def test_import_without_exported_use_stops(self, foo_bar):
        foo_bar["d"] = make_record("d", [make_import("foo", "a"), make_export("local")])
        build_parent_modules(foo_bar)

        result = propagate(foo_bar, foo_bar["a"], _changed(foo_bar["a"], "foo"))
        assert _chains(result) == [["a", "b"]]

    def test_other_names_are_not_followed(self):
        snapshot = build_parent_modules({
            "a": make_record("a", [make_export("foo"), make_export("other")]),
            "b": make_record("b", [make_import("other", "a"), make_export("bar", dependencies=["other"])]),
        })
        result = propagate(snapshot, snapshot["a"], _changed(snapshot["a"], "foo"))
        assert result.effect_paths == []


def test_zero_parent_file_is_its_own_terminal():
    snapshot = build_parent_modules({"a": make_record("a", [make_export("foo")])})
    result = propagate(snapshot, snapshot["a"], _changed(snapshot["a"], "foo"))
    assert _chains(result) == [["a"]]
    assert result.effect_paths[0].name == "a"
    assert result.effect_paths[0].declarations == ["foo"]


def test_empty_diff_has_no_impact(foo_bar):
    assert propagate(foo_bar, foo_bar["a"], []).effect_paths == []


def test_transitive_dependencies_inside_parent():
    """bar -> helper -> foo: bar is affected through a local helper."""
    snapshot = build_parent_modules({
        "a": make_record("a", [make_export("foo")]),
        "b": make_record("b", [
            make_import("foo", "a"),
            Declaration(name="helper", kind="function", dependencies=["foo"]),
            make_export("bar", dependencies=["helper"]),
        ]),
    })
    result = propagate(snapshot, snapshot["a"], _changed(snapshot["a"], "foo"))
    assert result.effect_paths[0].declarations == ["bar"]


def test_aliased_and_namespace_imports_match():
    snapshot = build_parent_modules({
        "a": make_record("a", [make_export("foo")]),
        "b": make_record("b", [make_import("f", "a", "foo"), make_export("viaAlias", dependencies=["f"])]),
        "c": make_record("c", [make_import("ns", "a", "*"), make_export("viaNamespace", dependencies=["ns"])]),
    })
    result = propagate(snapshot, snapshot["a"], _changed(snapshot["a"], "foo"))
    assert sorted(_chains(result)) == [["a", "b"], ["a", "c"]]


def test_same_name_from_other_module_does_not_match():
    snapshot = build_parent_modules({
        "a": make_record("a", [make_export("foo")]),
        "x": make_record("x", [make_export("foo")]),
        "b": make_record("b", [
            make_import("foo", "x"),
            make_import("unused", "a"),
            make_export("bar", dependencies=["foo"]),
        ]),
    })
    result = propagate(snapshot, snapshot["a"], _changed(snapshot["a"], "foo"))
    assert result.effect_paths == []


def test_reexported_import_is_affected_by_itself():
    snapshot = build_parent_modules({
        "a": make_record("a", [make_export("foo")]),
        "index": make_record("index", [
            Declaration(name="foo", kind="const", is_exported=True, is_imported=True, module_specifier="a"),
        ]),
    })
    result = propagate(snapshot, snapshot["a"], _changed(snapshot["a"], "foo"))
    assert _chains(result) == [["a", "index"]]
    assert result.effect_paths[0].declarations == ["foo"]


def test_star_reexport_forwards_names():
    star = Declaration(
        name=STAR_EXPORT_PREFIX + "./a",
        kind="const",
        is_exported=True,
        is_imported=True,
        module_specifier="a",
        imported_name="*",
    )
    snapshot = build_parent_modules({
        "a": make_record("a", [make_export("foo")]),
        "index": make_record("index", [star]),
        "app": make_record("app", [make_import("foo", "index"), make_export("main", dependencies=["foo"])]),
    })
    result = propagate(snapshot, snapshot["a"], _changed(snapshot["a"], "foo"))
    assert _chains(result) == [["a", "index", "app"]]
    assert result.effect_paths[0].declarations == ["main"]


def test_composite_file_is_opaque():
    """Every importer of a composite document is followed."""
    snapshot = build_parent_modules({
        "Cart.vue": make_record("Cart.vue", [make_export("<template>")], file_type="composite"),
        "main": make_record("main", [
            make_import("Cart", "Cart.vue", "default"),
            make_export("app", dependencies=["Cart"]),
            make_export("version"),
        ]),
        "other": make_record("other", [make_import("Cart", "Cart.vue", "default"), make_export("unrelated")]),
    })
    result = propagate(snapshot, snapshot["Cart.vue"], _changed(snapshot["Cart.vue"], "<template>"))
    assert sorted(_chains(result)) == [["Cart.vue", "main"], ["Cart.vue", "other"]]
    by_terminal = {p.name: p.declarations for p in result.effect_paths}
    assert by_terminal == {"main": ["app"], "other": []}


def test_mutual_parents_opaque_scenario():
    """Every acyclic branch through b and c reaches e and f; a is never re-entered."""
    parents = {"a": ["b", "c"], "b": ["c", "d"], "c": ["a", "e", "f", "d"], "d": ["a", "e", "f"]}
    snapshot = {
        name: make_record(name, [make_export("x")], parents=ps, file_type="composite")
        for name, ps in parents.items()
    }
    snapshot["e"] = make_record("e")
    snapshot["f"] = make_record("f")

    result = propagate(snapshot, snapshot["a"], _changed(snapshot["a"], "x"))
    assert sorted(_chains(result)) == sorted([
        ["a", "b", "c", "d", "e"],
        ["a", "b", "c", "d", "f"],
        ["a", "b", "c", "e"],
        ["a", "b", "c", "f"],
        ["a", "b", "d", "e"],
        ["a", "b", "d", "f"],
        ["a", "c", "d", "e"],
        ["a", "c", "d", "f"],
        ["a", "c", "e"],
        ["a", "c", "f"],
    ])
    for chain in _chains(result):
        assert chain.count("a") == 1
        assert len(chain) == len(set(chain))


def test_cycle_terminates():
    """a <- b <- c <- a: the walk stops when it would re-enter a."""
    snapshot = build_parent_modules({
        "a": make_record("a", [make_import("z", "c"), make_export("x")]),
        "b": make_record("b", [make_import("x", "a"), make_export("y", dependencies=["x"])]),
        "c": make_record("c", [make_import("y", "b"), make_export("z", dependencies=["y"])]),
    })
    result = propagate(snapshot, snapshot["a"], _changed(snapshot["a"], "x"))
    assert result.effect_paths == []


def test_result_is_independent_of_parent_order():
    def build(order):
        snapshot = {
            "a": make_record("a", [make_export("foo")], parents=order),
            "b": make_record("b", [make_import("foo", "a"), make_export("bar", dependencies=["foo"])]),
            "c": make_record("c", [make_import("foo", "a"), make_export("baz", dependencies=["foo"])]),
        }
        return propagate(snapshot, snapshot["a"], _changed(snapshot["a"], "foo"))

    assert _chains(build(["b", "c"])) == _chains(build(["c", "b"]))


def test_deleted_file_uses_prior_parents(foo_bar):
    prior_a = foo_bar.pop("a")
    entries = diff_declarations(prior_a, None)
    result = propagate(foo_bar, prior_a, entries)
    assert _chains(result) == [["a", "b"]]


def test_new_file_propagates_every_export():
    snapshot = build_parent_modules({
        "new": make_record("new", [make_export("foo"), Declaration(name="local", kind="const")]),
        "b": make_record("b", [make_import("foo", "new"), make_export("bar", dependencies=["foo"])]),
    })
    entries = diff_declarations(None, snapshot["new"])
    assert seed_names(entries) == ["foo"]
    result = propagate(snapshot, snapshot["new"], entries)
    assert _chains(result) == [["new", "b"]]


def test_helpers():
    parent = make_record("b", [
        make_import("foo", "a"),
        make_import("ns", "a", "*"),
        make_import("other", "x"),
        make_export("bar", dependencies=["foo"]),
    ])
    assert matching_imports(parent, "a", ["foo"]) == ["foo", "ns"]
    assert matching_imports(parent, "a", None) == ["foo", "ns"]
    assert matching_imports(parent, "a", []) == []
    assert affected_exports(parent, ["foo"]) == ["bar"]
    assert affected_exports(parent, []) == []


def test_affected_files_excludes_changed_file(foo_bar):
    result = propagate(foo_bar, foo_bar["a"], _changed(foo_bar["a"], "foo"))
    assert affected_files(result) == ["b"]
