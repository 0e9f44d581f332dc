"""Tests for Action / ActionTree structure, queries and persistence."""

import json

import pytest

from actionlang.errors import TreeStructureError
from actionlang.ir import DEFAULT_ID_GENERATOR, SEQUENCE_STEP, Action, ActionTree, IdGenerator


def test_ids_are_sequential_and_reset():
    a = Action("literal")
    b = Action("literal")
    assert (a.id, b.id) == ("action-1", "action-2")
    DEFAULT_ID_GENERATOR.reset()
    assert Action("literal").id == "action-1"


def test_explicit_generator_is_independent():
    ids = IdGenerator(prefix="node")
    assert Action("x", ids=ids).id == "node-1"
    assert Action("x").id == "action-1"


def test_add_child_assigns_sequence_numbers_and_parent():
    parent = Action("block")
    first = parent.add_child(Action("literal"))
    second = parent.add_child(Action("literal"))
    assert first.sequence_number == SEQUENCE_STEP
    assert second.sequence_number == 2 * SEQUENCE_STEP
    assert first.parent is parent
    assert parent.has_children()


def test_explicit_sequence_number_keeps_children_ordered():
    parent = Action("block")
    late = parent.add_child(Action("literal", {"value": "late"}))
    early = parent.add_child(Action("literal", {"value": "early"}), sequence_number=5)
    assert parent.children == [early, late]


def test_attach_rejects_second_parent_and_cycles():
    a, b = Action("block"), Action("block")
    child = a.add_child(Action("literal"))
    with pytest.raises(TreeStructureError):
        b.add_child(child)
    with pytest.raises(TreeStructureError):
        child.add_child(a)
    with pytest.raises(TreeStructureError):
        a.add_child(a)
    with pytest.raises(TreeStructureError):
        a.add_child("not an action")


def test_remove_child_clears_parent():
    parent = Action("block")
    child = parent.add_child(Action("literal"))
    assert parent.remove_child(child) is True
    assert child.parent is None
    assert parent.remove_child(child) is False
    Action("block").add_child(child)


def test_missing_attribute_reads_none():
    node = Action("identifier", {"name": "x"})
    assert node.get_attribute("name") == "x"
    assert node.get_attribute("nope") is None
    assert node.has_attribute("name") and not node.has_attribute("nope")


def test_traversal_orders_and_visitor(builder):
    root = builder.block(builder.block(1), 2)
    seen = []
    pre = [(n.action_type, d) for n, d in root.traverse(lambda n, d: seen.append(n.id))]
    assert pre == [("block", 0), ("block", 1), ("literal", 2), ("literal", 1)]
    assert len(seen) == 4
    bfs = [(n.action_type, d) for n, d in root.traverse_breadth_first()]
    assert bfs == [("block", 0), ("block", 1), ("literal", 1), ("literal", 2)]


def test_traverse_is_lazy():
    root = Action("block", children=[Action("literal"), Action("literal")])
    visited = []
    walk = root.traverse(lambda n, d: visited.append(n))
    next(walk)
    assert len(visited) == 1


def test_find_helpers(builder):
    tree = builder.tree(builder.let("x", 1), builder.call("console.log", builder.ident("x")))
    assert len(tree.find_by_type("identifier")) == 2
    assert tree.find_by_id(tree.root.id) is tree.root
    assert tree.find_by_id("missing") is None
    assert [n.get_attribute("name") for n in tree.find_by_attribute("name", "x")] == ["x", "x"]


def test_root_node_and_depth(builder):
    leaf = builder.lit(1)
    outer = builder.block(builder.block(leaf))
    assert leaf.root_node() is outer
    assert leaf.depth() == 2


def test_clone_copies_structure_with_fresh_ids(builder):
    original = builder.block(builder.let("x", 1), builder.ret(builder.ident("x")))
    copy = original.clone()
    assert copy.to_object()["children"][0]["actionType"] == "declareVar"
    originals = [n for n, _ in original.traverse()]
    copies = [n for n, _ in copy.traverse()]
    assert [n.action_type for n in originals] == [n.action_type for n in copies]
    assert [n.attributes for n in originals] == [n.attributes for n in copies]
    assert [n.sequence_number for n in originals[1:]] == [n.sequence_number for n in copies[1:]]
    assert not {n.id for n in originals} & {n.id for n in copies}
    assert copy.parent is None


def test_tree_registries():
    tree = ActionTree(Action("program"))
    assert "String" in tree.data_types
    tree.register_action_type("program")
    tree.register_attribute_type("name", "String", "binding name")
    assert tree.attribute_types["name"] == {"dataType": "String", "description": "binding name"}
    with pytest.raises(ValueError):
        tree.register_attribute_type("size", "Bogus")


def test_validate_reports_unregistered_types_and_missing_root():
    assert ActionTree().validate().valid is False
    tree = ActionTree(Action("program", children=[Action("literal")]))
    assert tree.validate().valid
    tree.register_action_type("program")
    report = tree.validate()
    assert not report.valid
    assert "literal" in report.errors[0]


def test_json_round_trip_preserves_ids_and_order(builder):
    tree = builder.tree(builder.let("x", 1), builder.call("console.log", "hi"))
    tree.register_action_type("program")
    tree.metadata["source"] = "demo.js"
    text = tree.to_json()
    assert json.loads(text)["root"]["actionType"] == "program"

    ids = IdGenerator()
    loaded = ActionTree.from_json(text, ids)
    assert loaded.to_object()["root"] == tree.to_object()["root"]
    assert loaded.action_types == {"program"}
    assert loaded.metadata["source"] == "demo.js"
    # fresh nodes never collide with loaded ids
    assert Action("x", ids=ids).id == f"action-{tree.count_actions() + 1}"


def test_from_object_requires_action_type():
    with pytest.raises(TreeStructureError):
        Action.from_object({"id": "action-1"})


def test_counts_and_print(builder):
    tree = builder.tree(builder.let("x", 1))
    assert tree.count_actions() == 3
    assert tree.max_depth() == 2
    assert tree.used_action_types() == {"program", "declareVar", "literal"}
    printed = tree.print_tree().splitlines()
    assert printed[0] == "program"
    assert printed[1].startswith("  declareVar")
    assert ActionTree().print_tree() == "(empty tree)"


def test_explicit_node_id_advances_generator():
    ids = IdGenerator()
    Action("literal", ids=ids, node_id="action-3")
    assert Action("literal", ids=ids).id == "action-4"
    Action("literal", ids=ids, node_id="custom")
    assert Action("literal", ids=ids).id == "action-5"
