"""Tests for the structural checker."""

import pytest

from actionlang.checker import check
from actionlang.errors import MalformedProgramError
from actionlang.ir import Action, ActionTree


def _tree(root):
    tree = ActionTree()
    tree.set_root(root)
    return tree


def test_well_formed_program_passes(builder):
    b = builder
    tree = b.tree(
        b.function("add", ["a", b.param("b", 1)], b.ret(b.binary("+", b.ident("a"), b.ident("b")))),
        b.cls("Point", b.method("constructor", ["x"], b.assign("this.x", b.ident("x"))), b.field("origin", 0)),
        b.for_of("item", b.array(1, 2), b.if_(b.ident("item"), b.cont())),
        b.switch(b.ident("x"), b.case(1, b.brk()), b.default()),
        b.try_([b.throw("x")], "e", [b.call("console.log", b.ident("e"))], [b.lit(1)]),
        b.obj(b.prop("a", 1), b.spread("rest")),
        b.assign("total", 1, operator="+="),
    )
    check(tree)


def test_empty_tree_is_rejected():
    with pytest.raises(MalformedProgramError, match="no root"):
        check(ActionTree())


def test_unknown_tag(builder):
    tree = builder.tree(Action("teleport"))
    with pytest.raises(MalformedProgramError, match="Unknown action type 'teleport'") as exc_info:
        check(tree)
    assert exc_info.value.action_type == "teleport"


def test_missing_required_attribute():
    with pytest.raises(MalformedProgramError, match="Missing 'name' attribute"):
        check(_tree(Action("program", children=[Action("identifier")])))


def test_missing_required_role(builder):
    node = Action("binaryOp", {"operator": "+"}, [builder.role(builder.lit(1), "left")])
    with pytest.raises(MalformedProgramError, match="Missing 'right' child"):
        check(_tree(Action("program", children=[node])))


@pytest.mark.parametrize("tag", ["case", "catch", "finally", "declareParam"])
def test_role_only_tag_outside_its_parent(builder, tag):
    node = Action(tag, {"name": "p"}, [builder.role(builder.lit(1), "test")])
    with pytest.raises(MalformedProgramError, match="outside of"):
        check(_tree(Action("program", children=[node])))


@pytest.mark.parametrize(
    "make",
    [
        lambda b: b.binary("**=", 1, 2),
        lambda b: b.logical("&", 1, 2),
        lambda b: b.unary("~~", 1),
        lambda b: b.assign("x", 1, operator=":="),
    ],
)
def test_unknown_operators(builder, make):
    with pytest.raises(MalformedProgramError, match="Unknown .* operator"):
        check(builder.tree(make(builder)))


def test_const_needs_initializer():
    with pytest.raises(MalformedProgramError, match="Missing initializer"):
        check(_tree(Action("program", children=[Action("declareConst", {"name": "K"})])))


def test_labels_must_be_in_scope(builder):
    b = builder
    check(b.tree(b.while_(True, b.brk("outer"), label="outer")))
    with pytest.raises(MalformedProgramError, match="Undefined label 'outer'"):
        check(b.tree(b.while_(True, b.brk("outer"))))


def test_labels_do_not_cross_function_boundaries(builder):
    b = builder
    tree = b.tree(b.while_(True, b.function("f", [], b.brk("outer")), b.brk(), label="outer"))
    with pytest.raises(MalformedProgramError, match="Undefined label"):
        check(tree)


def test_registered_action_types_are_enforced(builder):
    tree = builder.tree(builder.lit(1))
    tree.register_action_type("program")
    with pytest.raises(MalformedProgramError, match="literal"):
        check(tree)


def test_custom_handled_types(builder, engine):
    tree = builder.tree(Action("beep"))
    with pytest.raises(MalformedProgramError):
        check(tree, engine.handled_types)
    engine.register_handler("beep", lambda node, context: "beeped")
    check(tree, engine.handled_types)
    assert engine.execute(tree) == "beeped"
