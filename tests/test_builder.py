"""Tests for ActionBuilder node shapes."""

from actionlang.ir import IdGenerator
from actionlang.runtime.values import UNDEFINED


def _roles(node):
    return [c.get_attribute("role") for c in node.children]


def test_literals_are_typed(builder):
    assert builder.lit(UNDEFINED).attributes == {"type": "undefined"}
    assert builder.lit(None).attributes == {"type": "null"}
    assert builder.lit(True).attributes == {"type": "boolean", "value": True}
    assert builder.lit(2.5).attributes == {"type": "number", "value": 2.5}
    assert builder.lit("hi").attributes == {"type": "string", "value": "hi"}
    assert builder.regexp("a+", "g").attributes == {"type": "regexp", "value": "a+", "flags": "g"}


def test_dotted_reference_becomes_member_chain(builder):
    node = builder.ref("document.body.style")
    assert node.action_type == "memberAccess"
    assert node.get_attribute("property") == "style"
    inner = node.child_with_role("object")
    assert inner.get_attribute("property") == "body"
    assert inner.child_with_role("object").get_attribute("name") == "document"


def test_call_assigns_callee_and_argument_roles(builder):
    node = builder.call("console.log", "a", builder.ident("b"))
    assert _roles(node) == ["callee", "argument", "argument"]
    assert node.children[1].action_type == "literal"
    assert node.children[2].action_type == "identifier"


def test_arrow_marks_expression_bodies(builder):
    assert builder.arrow(["x"], builder.ident("x")).get_attribute("expression") is True
    block_arrow = builder.arrow([], builder.block(builder.ret(1)))
    assert not block_arrow.has_attribute("expression")
    assert _roles(builder.arrow(["a", "b"], 1)) == [None, None, "body"]


def test_single_block_body_is_reused(builder):
    body = builder.block(builder.ret(1))
    function = builder.function("f", [], body)
    assert function.children[-1] is body
    assert body.get_attribute("role") == "body"


def test_try_roles_and_catch_parameter(builder):
    node = builder.try_([builder.throw(1)], "err", [builder.lit(2)], [builder.lit(3)])
    assert [c.action_type for c in node.children] == ["block", "catch", "finally"]
    assert node.children[0].get_attribute("role") == "try"
    assert node.children[1].get_attribute("param") == "err"


def test_class_with_extends_and_members(builder):
    node = builder.cls("Dog", builder.method("speak", []), builder.field("legs", 4, static=True), extends="Animal")
    assert _roles(node) == ["extends", "body"]
    members = node.child_with_role("body").children
    assert [m.action_type for m in members] == ["declareMethod", "property"]
    assert members[1].get_attribute("static") is True


def test_for_of_wraps_loop_variable_in_let(builder):
    node = builder.for_of("item", builder.array(1), builder.lit(0))
    variable = node.child_with_role("variable")
    assert variable.action_type == "declareVar"
    assert variable.get_attribute("kind") == "let"
    assert _roles(node) == ["variable", "iterable", "body"]


def test_object_properties(builder):
    node = builder.obj(builder.prop(builder.ident("k"), 1), builder.prop("short"), named=2)
    computed, shorthand, named = node.children
    assert computed.get_attribute("computed") is True
    assert _roles(computed) == ["key", "value"]
    assert shorthand.children == []
    assert named.get_attribute("key") == "named"


def test_template_parts(builder):
    node = builder.template("Hello ", builder.ident("name"))
    assert node.children[0].get_attribute("type") == "templatePart"
    assert node.children[1].action_type == "identifier"


def test_builder_uses_its_own_generator():
    from actionlang.builder import ActionBuilder

    b = ActionBuilder(IdGenerator(prefix="n"))
    tree = b.tree(b.lit(1))
    assert {node.id for node, _ in tree.traverse()} == {"n-1", "n-2"}
