"""IR (Intermediate Representation) definitions: Action nodes owned by an ActionTree.

Front-ends lower component source into this tree; the execution engine and the
analyzers walk it. The plain-object form (to_object / from_object) and its JSON
text are the contract serializers are built against.
"""

import json
import weakref
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterator, Optional

from actionlang.errors import TreeStructureError

# Spacing between default sequence numbers, so siblings can be inserted without renumbering.
SEQUENCE_STEP = 10

DEFAULT_DATA_TYPES = (
    "String",
    "Integer",
    "Number",
    "Boolean",
    "Object",
    "Array",
    "Function",
    "Null",
    "Undefined",
)

Visitor = Callable[["Action", int], Any]


class IdGenerator:
    """Monotonic id source. One is shared by every node of a tree; reset() for deterministic tests."""

    def __init__(self, prefix: str = "action"):
        self.prefix = prefix
        self._counter = 0

    def next_id(self) -> str:
        self._counter += 1
        return f"{self.prefix}-{self._counter}"

    def observe(self, node_id: str) -> None:
        """Advance past an id loaded from a persisted tree."""
        head, _, tail = str(node_id).rpartition("-")
        if head == self.prefix and tail.isdigit():
            self._counter = max(self._counter, int(tail))

    def reset(self) -> None:
        self._counter = 0

    @property
    def last(self) -> int:
        return self._counter


DEFAULT_ID_GENERATOR = IdGenerator()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Action:
    """A single IR node: a type tag, ordered scalar attributes and ordered children."""

    def __init__(
        self,
        action_type: str,
        attributes: Optional[dict[str, Any]] = None,
        children: Optional[list["Action"]] = None,
        ids: Optional[IdGenerator] = None,
        node_id: Optional[str] = None,
    ):
        self.ids = ids or DEFAULT_ID_GENERATOR
        if node_id:
            self.ids.observe(node_id)
        self.id = node_id or self.ids.next_id()
        self.action_type = action_type
        self.attributes: dict[str, Any] = dict(attributes or {})
        self.children: list[Action] = []
        self.sequence_number = 0
        self._parent: Optional[weakref.ref] = None
        for child in children or []:
            self.add_child(child)

    # --- structure ---

    @property
    def parent(self) -> Optional["Action"]:
        return self._parent() if self._parent is not None else None

    def add_child(self, child: "Action", sequence_number: Optional[int] = None) -> "Action":
        """Attach child; returns it for chaining."""
        if not isinstance(child, Action):
            raise TreeStructureError(
                f"Child must be an Action, got {type(child).__name__}", self.id, self.action_type
            )
        if child.parent is not None:
            raise TreeStructureError(
                f"{child.id} is already attached to {child.parent.id}", self.id, self.action_type
            )
        node: Optional[Action] = self
        while node is not None:
            if node is child:
                raise TreeStructureError(
                    f"Attaching {child.id} would make it its own descendant", self.id, self.action_type
                )
            node = node.parent
        if sequence_number is None:
            last = self.children[-1].sequence_number if self.children else 0
            sequence_number = last + SEQUENCE_STEP
        child.sequence_number = sequence_number
        child._parent = weakref.ref(self)
        self.children.append(child)
        self.children.sort(key=lambda c: c.sequence_number)
        return child

    def remove_child(self, child: "Action") -> bool:
        for index, existing in enumerate(self.children):
            if existing is child:
                del self.children[index]
                child._parent = None
                return True
        return False

    def has_children(self) -> bool:
        return bool(self.children)

    def root_node(self) -> "Action":
        node = self
        while node.parent is not None:
            node = node.parent
        return node

    def depth(self) -> int:
        depth = 0
        node = self.parent
        while node is not None:
            depth += 1
            node = node.parent
        return depth

    # --- attributes ---

    def get_attribute(self, name: str, default: Any = None) -> Any:
        return self.attributes.get(name, default)

    def set_attribute(self, name: str, value: Any) -> None:
        self.attributes[name] = value

    def has_attribute(self, name: str) -> bool:
        return name in self.attributes

    @property
    def role(self) -> Optional[str]:
        return self.attributes.get("role")

    def child_with_role(self, role: str) -> Optional["Action"]:
        for child in self.children:
            if child.attributes.get("role") == role:
                return child
        return None

    # --- traversal and queries ---

    def traverse(self, visitor: Optional[Visitor] = None) -> Iterator[tuple["Action", int]]:
        """Lazy pre-order walk yielding (node, depth); visitor runs as the walk advances."""
        stack: list[tuple[Action, int]] = [(self, 0)]
        while stack:
            node, depth = stack.pop()
            if visitor is not None:
                visitor(node, depth)
            yield node, depth
            for child in reversed(node.children):
                stack.append((child, depth + 1))

    def traverse_breadth_first(self, visitor: Optional[Visitor] = None) -> Iterator[tuple["Action", int]]:
        queue: deque[tuple[Action, int]] = deque([(self, 0)])
        while queue:
            node, depth = queue.popleft()
            if visitor is not None:
                visitor(node, depth)
            yield node, depth
            for child in node.children:
                queue.append((child, depth + 1))

    def find_by_id(self, node_id: str) -> Optional["Action"]:
        for node, _ in self.traverse():
            if node.id == node_id:
                return node
        return None

    def find_by_type(self, action_type: str) -> list["Action"]:
        return [node for node, _ in self.traverse() if node.action_type == action_type]

    def find_where(self, predicate: Callable[["Action"], bool]) -> list["Action"]:
        return [node for node, _ in self.traverse() if predicate(node)]

    # --- copying and (de)serialization ---

    def clone(self) -> "Action":
        """Deep copy with fresh ids from the same generator."""
        copy = Action(self.action_type, dict(self.attributes), ids=self.ids)
        for child in self.children:
            copy.add_child(child.clone(), child.sequence_number)
        return copy

    def to_object(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "actionType": self.action_type,
            "attributes": dict(self.attributes),
            "sequenceNumber": self.sequence_number,
            "children": [child.to_object() for child in self.children],
        }

    @classmethod
    def from_object(cls, obj: dict[str, Any], ids: Optional[IdGenerator] = None) -> "Action":
        ids = ids or DEFAULT_ID_GENERATOR
        if "actionType" not in obj:
            raise TreeStructureError("Serialized action is missing 'actionType'", obj.get("id"))
        action = cls(obj["actionType"], obj.get("attributes") or {}, ids=ids, node_id=obj.get("id"))
        if obj.get("sequenceNumber") is not None:
            action.sequence_number = obj["sequenceNumber"]
        for child_obj in obj.get("children") or []:
            child = cls.from_object(child_obj, ids)
            action.add_child(child, child_obj.get("sequenceNumber"))
        return action

    def __repr__(self) -> str:
        attrs = f" {json.dumps(self.attributes, default=str)}" if self.attributes else ""
        return f"Action<{self.action_type}{attrs}>[{len(self.children)} children]"


@dataclass
class ValidationReport:
    valid: bool
    errors: list[str] = field(default_factory=list)


class ActionTree:
    """Owns one root Action plus the data-type, action-type and attribute-type registries."""

    def __init__(self, root: Optional[Action] = None, ids: Optional[IdGenerator] = None):
        self.ids = ids or (root.ids if root is not None else DEFAULT_ID_GENERATOR)
        self.root = root
        self.action_types: set[str] = set()
        self.attribute_types: dict[str, dict[str, str]] = {}
        self.data_types: set[str] = set(DEFAULT_DATA_TYPES)
        created = _now()
        self.metadata: dict[str, Any] = {
            "created": created,
            "modified": created,
            "version": "1.0.0",
            "source": None,
        }

    def new_action(
        self,
        action_type: str,
        attributes: Optional[dict[str, Any]] = None,
        children: Optional[list[Action]] = None,
    ) -> Action:
        """Create a node whose id comes from this tree's generator."""
        return Action(action_type, attributes, children, ids=self.ids)

    def set_root(self, action: Action) -> None:
        self.root = action
        self.touch()

    def touch(self) -> None:
        self.metadata["modified"] = _now()

    # --- registries ---

    def register_action_type(self, type_name: str) -> None:
        self.action_types.add(type_name)

    def register_data_type(self, type_name: str) -> None:
        self.data_types.add(type_name)

    def register_attribute_type(self, name: str, data_type: str, description: str = "") -> None:
        if data_type not in self.data_types:
            raise ValueError(f"Unknown data type: {data_type}")
        self.attribute_types[name] = {"dataType": data_type, "description": description}

    # --- queries ---

    def find_by_id(self, node_id: str) -> Optional[Action]:
        return self.root.find_by_id(node_id) if self.root is not None else None

    def find_by_type(self, action_type: str) -> list[Action]:
        return self.root.find_by_type(action_type) if self.root is not None else []

    def find_where(self, predicate: Callable[[Action], bool]) -> list[Action]:
        return self.root.find_where(predicate) if self.root is not None else []

    def find_by_attribute(self, name: str, value: Any) -> list[Action]:
        return self.find_where(lambda a: a.has_attribute(name) and a.get_attribute(name) == value)

    def traverse(self, visitor: Optional[Visitor] = None, order: str = "depth-first") -> Iterator[tuple[Action, int]]:
        if self.root is None:
            return iter(())
        if order == "breadth-first":
            return self.root.traverse_breadth_first(visitor)
        return self.root.traverse(visitor)

    def used_action_types(self) -> set[str]:
        return {node.action_type for node, _ in self.traverse()}

    def count_actions(self) -> int:
        return sum(1 for _ in self.traverse())

    def max_depth(self) -> int:
        return max((depth for _, depth in self.traverse()), default=0)

    def validate(self) -> ValidationReport:
        """Check ids, parent links and (when any are registered) action types."""
        if self.root is None:
            return ValidationReport(False, ["Tree has no root action"])
        errors: list[str] = []
        seen: set[str] = set()
        for node, _ in self.traverse():
            if node.id in seen:
                errors.append(f"Duplicate action id: {node.id}")
            seen.add(node.id)
            for child in node.children:
                if child.parent is not node:
                    errors.append(f"Parent-child mismatch: {child.id} has wrong parent")
            if self.action_types and node.action_type not in self.action_types:
                errors.append(f"Unknown action type: {node.action_type} ({node.id})")
        return ValidationReport(not errors, errors)

    # --- copying and (de)serialization ---

    def clone(self) -> "ActionTree":
        copy = ActionTree(self.root.clone() if self.root is not None else None, ids=self.ids)
        copy.action_types = set(self.action_types)
        copy.attribute_types = {k: dict(v) for k, v in self.attribute_types.items()}
        copy.data_types = set(self.data_types)
        copy.metadata = dict(self.metadata)
        return copy

    def to_object(self) -> dict[str, Any]:
        return {
            "metadata": dict(self.metadata),
            "dataTypes": sorted(self.data_types),
            "actionTypes": sorted(self.action_types),
            "attributeTypes": {k: dict(v) for k, v in self.attribute_types.items()},
            "root": self.root.to_object() if self.root is not None else None,
        }

    @classmethod
    def from_object(cls, obj: dict[str, Any], ids: Optional[IdGenerator] = None) -> "ActionTree":
        ids = ids or DEFAULT_ID_GENERATOR
        root = Action.from_object(obj["root"], ids) if obj.get("root") else None
        tree = cls(root, ids=ids)
        if obj.get("metadata"):
            tree.metadata.update(obj["metadata"])
        if obj.get("dataTypes") is not None:
            tree.data_types = set(obj["dataTypes"])
        tree.action_types = set(obj.get("actionTypes") or [])
        tree.attribute_types = {k: dict(v) for k, v in (obj.get("attributeTypes") or {}).items()}
        return tree

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_object(), indent=indent)

    @classmethod
    def from_json(cls, text: str, ids: Optional[IdGenerator] = None) -> "ActionTree":
        return cls.from_object(json.loads(text), ids)

    def print_tree(self) -> str:
        if self.root is None:
            return "(empty tree)"
        lines = []
        for node, depth in self.traverse():
            attrs = f" {json.dumps(node.attributes, default=str)}" if node.attributes else ""
            lines.append(f"{'  ' * depth}{node.action_type}{attrs}")
        return "\n".join(lines)
