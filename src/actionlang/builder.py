"""Concise construction of well-formed Action trees.

Front-ends (and tests) describe programs through ActionBuilder instead of
wiring roles and attributes by hand. Plain Python values in expression
position become literals; a string in callee/object/target position is an
identifier, and a dotted string ("console.log") a member-access chain.
"""

from typing import Any, Iterable, Optional, Union

from actionlang.ir import Action, ActionTree, IdGenerator
from actionlang.runtime.values import UNDEFINED

Node = Union[Action, Any]


class ActionBuilder:
    def __init__(self, ids: Optional[IdGenerator] = None):
        self.ids = ids

    # --- plumbing ---

    def node(self, action_type: str, children: Iterable[Action] = (), **attributes: Any) -> Action:
        attrs = {k: v for k, v in attributes.items() if v is not None}
        return Action(action_type, attrs, list(children), ids=self.ids)

    @staticmethod
    def role(action: Action, role: str) -> Action:
        action.set_attribute("role", role)
        return action

    def expr(self, value: Node) -> Action:
        return value if isinstance(value, Action) else self.lit(value)

    def ref(self, value: Node) -> Action:
        """Identifier or dotted member chain for strings; Actions pass through."""
        if isinstance(value, Action):
            return value
        head, *rest = str(value).split(".")
        result = self.ident(head)
        for name in rest:
            result = self.member(result, name)
        return result

    def _body(self, statements: Iterable[Node], role: str = "body") -> Action:
        items = list(statements)
        if len(items) == 1 and isinstance(items[0], Action) and items[0].action_type == "block":
            return self.role(items[0], role)
        return self.role(self.block(*items), role)

    def _params(self, params: Iterable[Union[str, Action]]) -> list[Action]:
        return [p if isinstance(p, Action) else self.param(p) for p in params]

    # --- program structure ---

    def program(self, *statements: Node) -> Action:
        return self.node("program", [self.expr(s) for s in statements])

    def tree(self, *statements: Node) -> ActionTree:
        tree = ActionTree(ids=self.ids)
        tree.set_root(self.program(*statements))
        return tree

    def block(self, *statements: Node, label: Optional[str] = None) -> Action:
        return self.node("block", [self.expr(s) for s in statements], label=label)

    def seq(self, *statements: Node) -> Action:
        return self.node("seq", [self.expr(s) for s in statements])

    # --- declarations ---

    def declare(self, name: str, value: Node = UNDEFINED, kind: str = "let") -> Action:
        children = [] if value is UNDEFINED else [self.role(self.expr(value), "init")]
        return self.node("declareVar", children, name=name, kind=kind)

    def let(self, name: str, value: Node = UNDEFINED) -> Action:
        return self.declare(name, value, "let")

    def var(self, name: str, value: Node = UNDEFINED) -> Action:
        return self.declare(name, value, "var")

    def const(self, name: str, value: Node) -> Action:
        return self.node("declareConst", [self.role(self.expr(value), "init")], name=name)

    def param(self, name: str, default: Node = UNDEFINED, rest: bool = False) -> Action:
        children = [] if default is UNDEFINED else [self.role(self.expr(default), "default")]
        return self.node("declareParam", children, name=name, rest=rest or None)

    def function(self, name: str, params: Iterable[Union[str, Action]], *body: Node) -> Action:
        return self.node("declareFunction", self._params(params) + [self._body(body)], name=name)

    def function_expr(self, params: Iterable[Union[str, Action]], *body: Node, name: Optional[str] = None) -> Action:
        return self.node("functionExpr", self._params(params) + [self._body(body)], name=name)

    def arrow(self, params: Iterable[Union[str, Action]], body: Node) -> Action:
        """Arrow function; a non-block body is an expression body."""
        body_node = self.expr(body)
        expression = body_node.action_type != "block"
        return self.node(
            "arrowFunction",
            self._params(params) + [self.role(body_node, "body")],
            expression=expression or None,
        )

    def cls(self, name: str, *members: Action, extends: Optional[Node] = None) -> Action:
        children = []
        if extends is not None:
            children.append(self.role(self.ref(extends), "extends"))
        children.append(self.role(self.block(*members), "body"))
        return self.node("declareClass", children, name=name)

    def method(self, name: str, params: Iterable[Union[str, Action]], *body: Node, static: bool = False) -> Action:
        return self.node("declareMethod", self._params(params) + [self._body(body)], name=name, static=static or None)

    def field(self, name: str, value: Node = UNDEFINED, static: bool = False) -> Action:
        children = [] if value is UNDEFINED else [self.role(self.expr(value), "value")]
        return self.node("property", children, key=name, static=static or None)

    # --- control flow ---

    def if_(self, condition: Node, then: Node, otherwise: Optional[Node] = None) -> Action:
        children = [self.role(self.expr(condition), "condition"), self.role(self.expr(then), "then")]
        if otherwise is not None:
            children.append(self.role(self.expr(otherwise), "else"))
        return self.node("if", children)

    def for_(
        self,
        init: Optional[Node],
        test: Optional[Node],
        update: Optional[Node],
        *body: Node,
        label: Optional[str] = None,
    ) -> Action:
        children = []
        for role, part in (("init", init), ("test", test), ("update", update)):
            if part is not None:
                children.append(self.role(self.expr(part), role))
        children.append(self._body(body))
        return self.node("for", children, label=label)

    def _loop_variable(self, variable: Union[str, Action]) -> Action:
        node = self.let(variable) if isinstance(variable, str) else variable
        return self.role(node, "variable")

    def for_of(self, variable: Union[str, Action], iterable: Node, *body: Node, label: Optional[str] = None) -> Action:
        children = [self._loop_variable(variable), self.role(self.expr(iterable), "iterable"), self._body(body)]
        return self.node("forOf", children, label=label)

    def for_in(self, variable: Union[str, Action], target: Node, *body: Node, label: Optional[str] = None) -> Action:
        children = [self._loop_variable(variable), self.role(self.expr(target), "object"), self._body(body)]
        return self.node("forIn", children, label=label)

    def while_(self, condition: Node, *body: Node, label: Optional[str] = None) -> Action:
        return self.node("while", [self.role(self.expr(condition), "condition"), self._body(body)], label=label)

    def do_while(self, condition: Node, *body: Node, label: Optional[str] = None) -> Action:
        return self.node("doWhile", [self._body(body), self.role(self.expr(condition), "condition")], label=label)

    def switch(self, discriminant: Node, *clauses: Action) -> Action:
        return self.node("switch", [self.role(self.expr(discriminant), "discriminant"), *clauses])

    def case(self, test: Node, *statements: Node) -> Action:
        return self.node("case", [self.role(self.expr(test), "test"), *(self.expr(s) for s in statements)])

    def default(self, *statements: Node) -> Action:
        return self.node("default", [self.expr(s) for s in statements])

    def try_(
        self,
        body: Iterable[Node],
        catch_param: Optional[str] = None,
        catch_body: Optional[Iterable[Node]] = None,
        finally_body: Optional[Iterable[Node]] = None,
    ) -> Action:
        children = [self._body(body, role="try")]
        if catch_body is not None:
            children.append(self.node("catch", [self.expr(s) for s in catch_body], param=catch_param))
        if finally_body is not None:
            children.append(self.node("finally", [self.expr(s) for s in finally_body]))
        return self.node("try", children)

    def ret(self, value: Node = UNDEFINED) -> Action:
        return self.node("return", [] if value is UNDEFINED else [self.expr(value)])

    def throw(self, value: Node) -> Action:
        return self.node("throw", [self.expr(value)])

    def brk(self, label: Optional[str] = None) -> Action:
        return self.node("break", label=label)

    def cont(self, label: Optional[str] = None) -> Action:
        return self.node("continue", label=label)

    # --- expressions ---

    def _arguments(self, args: Iterable[Node]) -> list[Action]:
        return [self.role(self.expr(a), "argument") for a in args]

    def call(self, callee: Node, *args: Node, optional: bool = False) -> Action:
        return self.node(
            "call",
            [self.role(self.ref(callee), "callee"), *self._arguments(args)],
            optional=optional or None,
        )

    def new(self, constructor: Node, *args: Node) -> Action:
        return self.node("new", [self.role(self.ref(constructor), "constructor"), *self._arguments(args)])

    def member(self, target: Node, prop: str, optional: bool = False) -> Action:
        return self.node(
            "memberAccess", [self.role(self.ref(target), "object")], property=prop, optional=optional or None
        )

    def index(self, target: Node, key: Node, optional: bool = False) -> Action:
        return self.node(
            "memberAccess",
            [self.role(self.ref(target), "object"), self.role(self.expr(key), "property")],
            computed=True,
            optional=optional or None,
        )

    def assign(self, target: Node, value: Node, operator: str = "=") -> Action:
        return self.node(
            "assign", [self.role(self.ref(target), "left"), self.role(self.expr(value), "right")], operator=operator
        )

    def binary(self, operator: str, left: Node, right: Node) -> Action:
        return self.node(
            "binaryOp", [self.role(self.expr(left), "left"), self.role(self.expr(right), "right")], operator=operator
        )

    def logical(self, operator: str, left: Node, right: Node) -> Action:
        return self.node(
            "logicalOp", [self.role(self.expr(left), "left"), self.role(self.expr(right), "right")], operator=operator
        )

    def unary(self, operator: str, operand: Node, prefix: bool = True) -> Action:
        target = self.ref(operand) if operator in ("++", "--", "typeof", "delete") else self.expr(operand)
        return self.node("unaryOp", [self.role(target, "argument")], operator=operator, prefix=prefix)

    def conditional(self, condition: Node, then: Node, otherwise: Node) -> Action:
        return self.node(
            "conditional",
            [
                self.role(self.expr(condition), "condition"),
                self.role(self.expr(then), "then"),
                self.role(self.expr(otherwise), "else"),
            ],
        )

    def await_(self, value: Node) -> Action:
        return self.node("await", [self.expr(value)])

    def yield_(self, value: Node = UNDEFINED) -> Action:
        return self.node("yield", [] if value is UNDEFINED else [self.expr(value)])

    # --- primaries ---

    def ident(self, name: str) -> Action:
        return self.node("identifier", name=name)

    def lit(self, value: Any) -> Action:
        if value is UNDEFINED:
            return self.node("literal", type="undefined")
        if value is None:
            return self.node("literal", type="null")
        if isinstance(value, bool):
            return self.node("literal", type="boolean", value=value)
        if isinstance(value, (int, float)):
            return self.node("literal", type="number", value=value)
        return self.node("literal", type="string", value=str(value))

    def regexp(self, source: str, flags: str = "") -> Action:
        return self.node("literal", type="regexp", value=source, flags=flags or None)

    def array(self, *items: Node) -> Action:
        return self.node("array", [self.expr(i) for i in items])

    def prop(self, key: Union[str, Action], value: Node = UNDEFINED, computed: bool = False) -> Action:
        children = []
        if isinstance(key, Action):
            children.append(self.role(key, "key"))
            key_attr = None
            computed = True
        else:
            key_attr = key
        if value is not UNDEFINED:
            children.append(self.role(self.expr(value), "value"))
        return self.node("property", children, key=key_attr, computed=computed or None)

    def obj(self, *entries: Action, **props: Node) -> Action:
        """Object literal from prop()/spread() entries followed by keyword properties."""
        children = list(entries) + [self.prop(k, v) for k, v in props.items()]
        return self.node("object", children)

    def template(self, *parts: Node) -> Action:
        return self.node(
            "template",
            [p if isinstance(p, Action) else self.node("literal", type="templatePart", value=str(p)) for p in parts],
        )

    def spread(self, value: Node) -> Action:
        return self.node("spread", [self.ref(value) if isinstance(value, str) else self.expr(value)])

    def export(self, declaration: Action, default: bool = False) -> Action:
        return self.node("exportDefault" if default else "export", [declaration])

    def import_(self, source: str) -> Action:
        return self.node("import", source=source)
