"""
Node: live, mutable instance of a model, and the mutation interceptor.

Every factory generates a Node subclass whose declared fields are properties.
All writes funnel through Node._write(), which:
1. validates the value against the field's type descriptor
2. commits it (wrapping snapshots of nested models in child nodes)
3. emits one patch to patch listeners on the node and each ancestor
4. emits one snapshot to snapshot listeners on the node and each ancestor

Actions (declared methods) emit one action record per outermost call before
running their body. Roots of trees with a running action are tracked with a
ContextVar; calls nested inside another action on the same tree are not
recorded, calls reaching into another tree are.

Listeners run synchronously in registration order. A listener that raises
aborts the remaining listeners and propagates to the mutating caller.

Ownership:
- A parent owns its children through its value table (_values)
- A child only holds a weakref to its parent plus the field name, used for
  path computation
"""
import contextvars
import copy
import functools
import itertools
import json
import logging
import weakref
from contextlib import contextmanager
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple, TYPE_CHECKING

from statetree.errors import ValidationError
from statetree.path import join_path
from statetree.type_descriptor import TypeDescriptor, TypeKind, describe, matches

if TYPE_CHECKING:
    from statetree.factory import Factory

logger = logging.getLogger(__name__)

# Listener channels
SNAPSHOT = "snapshot"
PATCH = "patch"
ACTION = "action"
_CHANNELS = (SNAPSHOT, PATCH, ACTION)

# Roots of the trees that have an action running on the current stack
_action_roots: contextvars.ContextVar[Tuple['Node', ...]] = contextvars.ContextVar(
    'statetree_action_roots', default=()
)

# Unique ids so one callable can hold several independent subscriptions
_subscription_ids = itertools.count(1)

Listener = Callable[[Any], None]


def compact_json(value: Any) -> str:
    """Compact JSON text, e.g. '{"to":"world"}'."""
    return json.dumps(serialize(value), separators=(",", ":"), default=repr)


def serialize(value: Any) -> Any:
    """Deep-copy a value into plain JSON, turning nodes into snapshots."""
    if isinstance(value, Node):
        return {name: serialize(item) for name, item in value._values.items()}
    if isinstance(value, Mapping):
        return {key: serialize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize(item) for item in value]
    return value


def freeze(value: Any) -> Any:
    """Immutable copy of a JSON value (lists -> tuples, dicts -> read-only mappings)."""
    if isinstance(value, Mapping):
        return MappingProxyType({key: freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(item) for item in value)
    return value


def _notify(listeners: Dict[int, Listener], payload: Any) -> None:
    """Call listeners in registration order, each with its own copy of payload."""
    for listener in list(listeners.values()):
        listener(copy.deepcopy(payload))


def _field_property(name: str) -> property:
    def fget(self: 'Node') -> Any:
        return self._values[name]

    def fset(self: 'Node', value: Any) -> None:
        self._write(name, value)

    return property(fget, fset, doc=f"Declared field '{name}'.")


def _action_method(name: str, fn: Callable[..., Any]) -> Callable[..., Any]:
    """Wrap a definition function so calling it records an action."""

    @functools.wraps(fn)
    def action(self: 'Node', *args: Any) -> Any:
        root = self._get_root()
        running = _action_roots.get()
        if not any(other is root for other in running):
            self._emit_action(name, args)
        token = _action_roots.set(running + (root,))
        try:
            return fn(self, *args)
        finally:
            _action_roots.reset(token)

    return action


def build_node_class(factory: 'Factory', fields: Mapping[str, TypeDescriptor],
                     computed: Mapping[str, property],
                     actions: Mapping[str, Callable[..., Any]]) -> type:
    """Generate the Node subclass for a factory."""
    namespace: Dict[str, Any] = {
        '__module__': __name__,
        '__doc__': f"Live node of type {factory.name}.",
    }
    for name in fields:
        namespace[name] = _field_property(name)
    for name, getter in computed.items():
        # Read-only even if the definition supplied a setter
        namespace[name] = property(getter.fget, doc=getter.__doc__)
    for name, fn in actions.items():
        namespace[name] = _action_method(name, fn)
    node_class = type(factory.name, (Node,), namespace)
    node_class._factory = factory
    return node_class


class Node:
    """Live, mutable instance produced by a Factory.

    Core Attributes:
    - _values: field name -> primitive, frozen JSON, child Node or None
    - _parent_ref / _parent_field: weak back-reference for path computation
    - _listeners: channel -> {subscription id: listener}
    - _batch_depth / _pending_snapshots: transaction bookkeeping (roots only)

    Internal attributes are set with object.__setattr__; regular attribute
    assignment is restricted to declared fields.
    """
    _factory: 'Factory' = None

    def __init__(self) -> None:
        if type(self)._factory is None:
            raise TypeError("Nodes are created with Factory.create(), not Node()")
        self._set_internal('_values', {})
        self._set_internal('_parent_ref', None)
        self._set_internal('_parent_field', None)
        self._set_internal('_listeners', {channel: {} for channel in _CHANNELS})
        self._set_internal('_batch_depth', 0)
        self._set_internal('_pending_snapshots', {})

    def _set_internal(self, name: str, value: Any) -> None:
        object.__setattr__(self, name, value)

    def __setattr__(self, name: str, value: Any) -> None:
        factory = type(self)._factory
        if name in factory.descriptor.fields:
            object.__setattr__(self, name, value)
        elif name in factory.computed_names:
            raise AttributeError(
                f"'{name}' is a computed property of {factory.name} and cannot be assigned"
            )
        else:
            raise AttributeError(f"{factory.name} has no field '{name}'")

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"Cannot delete '{name}' from {type(self)._factory.name}")

    # === Serialization ===

    def to_json(self) -> Dict[str, Any]:
        """Snapshot of declared fields (alias of get_snapshot)."""
        return serialize(self)

    def __str__(self) -> str:
        return f"{type(self)._factory.name}{compact_json(self)}"

    def __repr__(self) -> str:
        return f"<{type(self)._factory.name} {compact_json(self)}>"

    def __deepcopy__(self, memo: Dict[int, Any]) -> 'Node':
        return type(self)._factory.create(self.to_json())

    # === Tree structure ===

    def _get_parent(self) -> Optional['Node']:
        ref = self._parent_ref
        return ref() if ref is not None else None

    def _get_root(self) -> 'Node':
        node = self
        parent = node._get_parent()
        while parent is not None:
            node = parent
            parent = node._get_parent()
        return node

    def _set_parent(self, parent: Optional['Node'], field_name: Optional[str]) -> None:
        self._set_internal('_parent_ref', weakref.ref(parent) if parent is not None else None)
        self._set_internal('_parent_field', field_name)

    def _lineage(self) -> Iterator[Tuple['Node', Tuple[str, ...]]]:
        """Yield (node, path segments from node down to self), self first."""
        segments: List[str] = []
        node: Optional[Node] = self
        while node is not None:
            yield node, tuple(reversed(segments))
            parent = node._get_parent()
            if parent is not None:
                segments.append(node._parent_field)
            node = parent

    # === Write path ===

    def _init_field(self, name: str, value: Any) -> None:
        """Set a field during construction (no listeners exist yet).

        Nodes inside a creation snapshot are read through their snapshots.
        """
        descriptor = type(self)._factory.descriptor.fields[name]
        self._commit(name, self._coerce(descriptor, serialize(value)))

    def _write(self, name: str, value: Any, op: str = "replace") -> None:
        """Single commit routine for every field mutation."""
        factory = type(self)._factory
        descriptor = factory.descriptor.fields[name]
        if not matches(descriptor, value):
            expected = describe(descriptor)
            raise ValidationError(
                f"Value {compact_json(value)} is not assignable to field '{name}' of type "
                f"{factory.name}. Expected {expected} instead.",
                value=value,
                expected=expected,
            )

        source = self._move_source(name, descriptor, value)
        if source is not None:
            self._move(name, value, op, *source)
            return

        new_value = self._coerce(descriptor, value)
        self._commit(name, new_value)
        self._emit_patch(op, name, new_value)
        self._emit_snapshot()

    def _remove(self, name: str) -> None:
        """Clear an optional field to None, emitting a 'remove' patch."""
        self._require_optional(name)
        self._write(name, None, op="remove")

    def _require_optional(self, name: str) -> None:
        factory = type(self)._factory
        descriptor = factory.descriptor.fields[name]
        if not descriptor.optional:
            raise ValidationError(
                f"Cannot remove required field '{name}' of type {factory.name}",
                value=name,
                expected=describe(descriptor),
            )

    def _commit(self, name: str, new_value: Any) -> None:
        """Store a coerced value and update parent links on both sides."""
        old_value = self._values.get(name)
        self._values[name] = new_value
        if isinstance(old_value, Node) and old_value is not new_value:
            old_value._set_parent(None, None)
        if isinstance(new_value, Node):
            new_value._set_parent(self, name)

    def _coerce(self, descriptor: TypeDescriptor, value: Any) -> Any:
        """Turn a validated value into its stored form."""
        if value is None and (descriptor.optional or descriptor.kind is TypeKind.PRIMITIVE):
            return None
        if descriptor.kind is TypeKind.PRIMITIVE:
            return value
        if descriptor.kind is TypeKind.FROZEN:
            return freeze(value)
        # Nodes of a member type are held as-is; anything else is rebuilt
        # from its snapshot so the stored type matches what patches replay
        if isinstance(value, Node) and type(value)._factory in descriptor.member_factories:
            return value
        for factory in descriptor.member_factories:
            if factory.is_(value):
                return factory.create(value)
        # matches() passed, so some member accepts the value
        raise ValidationError(f"No member of {describe(descriptor)} accepts {compact_json(value)}",
                              value=value, expected=describe(descriptor))

    def _move_source(self, name: str, descriptor: TypeDescriptor,
                     value: Any) -> Optional[Tuple['Node', str]]:
        """(old parent, old field) if value is an attached node moving into name."""
        if not isinstance(value, Node) or type(value)._factory not in descriptor.member_factories:
            return None
        old_parent = value._get_parent()
        old_field = value._parent_field
        if old_parent is None or (old_parent is self and old_field == name):
            return None
        old_parent._require_optional(old_field)
        return old_parent, old_field

    def _move(self, name: str, child: 'Node', op: str, old_parent: 'Node', old_field: str) -> None:
        """Reparent child in one step: both slots change before anything is emitted."""
        logger.debug(f"Moving {type(child)._factory.name} from '{old_field}' to '{name}'")
        with transaction(old_parent), transaction(self):
            old_parent._commit(old_field, None)
            self._commit(name, child)
            old_parent._emit_patch("remove", old_field, None)
            self._emit_patch(op, name, child)
            old_parent._emit_snapshot()
            self._emit_snapshot()

    # === Emission ===

    def _emit_patch(self, op: str, name: str, value: Any) -> None:
        for owner, segments in self._lineage():
            listeners = owner._listeners[PATCH]
            if not listeners:
                continue
            patch: Dict[str, Any] = {"op": op, "path": join_path(segments + (name,))}
            if op != "remove":
                patch["value"] = serialize(value)
            logger.debug(f"PATCH: {patch['op']} {patch['path']!r} -> {len(listeners)} listener(s)")
            _notify(listeners, patch)

    def _emit_snapshot(self) -> None:
        root = self._get_root()
        if root._batch_depth:
            for owner, _ in self._lineage():
                if owner._listeners[SNAPSHOT]:
                    root._pending_snapshots[id(owner)] = owner
            return
        for owner, _ in self._lineage():
            listeners = owner._listeners[SNAPSHOT]
            if listeners:
                _notify(listeners, owner.to_json())

    def _emit_action(self, name: str, args: Tuple[Any, ...]) -> None:
        for owner, segments in self._lineage():
            listeners = owner._listeners[ACTION]
            if not listeners:
                continue
            record = {"name": name, "path": join_path(segments), "args": serialize(list(args))}
            logger.debug(f"ACTION: {name} at {record['path']!r} -> {len(listeners)} listener(s)")
            _notify(listeners, record)


def _flush_snapshots(root: Node) -> None:
    pending = list(root._pending_snapshots.values())
    root._pending_snapshots.clear()
    for owner in pending:
        listeners = owner._listeners[SNAPSHOT]
        if listeners:
            _notify(listeners, owner.to_json())


# === Public helpers ===

def require_node(value: Any) -> Node:
    if not isinstance(value, Node):
        raise TypeError(f"Expected a statetree node, got {type(value).__name__}")
    return value


def subscribe(node: Node, channel: str, listener: Listener) -> Callable[[], None]:
    """Register a listener on one channel; returns a disposer that unsubscribes."""
    require_node(node)
    if not callable(listener):
        raise TypeError(f"Listener must be callable, got {type(listener).__name__}")
    listeners = node._listeners[channel]
    subscription_id = next(_subscription_ids)
    listeners[subscription_id] = listener

    def dispose() -> None:
        listeners.pop(subscription_id, None)

    return dispose


@contextmanager
def transaction(node: Node) -> Iterator[Node]:
    """Batch snapshot emission on node's tree.

    Patches still fire once per write. Snapshot listeners receive one
    snapshot per listening node when the outermost transaction exits.
    Nested transactions are supported; nothing is rolled back on error.

    Example:
        with transaction(box):
            box.width = 3
            box.height = 2
        # single snapshot {'width': 3, 'height': 2} emitted here
    """
    root = require_node(node)._get_root()
    root._set_internal('_batch_depth', root._batch_depth + 1)
    try:
        yield node
    finally:
        depth = root._batch_depth - 1
        root._set_internal('_batch_depth', depth)
        if depth == 0:
            _flush_snapshots(root)


def get_type(node: Node) -> 'Factory':
    """Factory that created node."""
    return type(require_node(node))._factory


def get_parent(node: Node) -> Optional[Node]:
    return require_node(node)._get_parent()


def get_root(node: Node) -> Node:
    return require_node(node)._get_root()


def is_root(node: Node) -> bool:
    return require_node(node)._get_parent() is None


def detach(node: Node) -> Node:
    """Remove node from its parent's optional slot; it becomes a new root."""
    parent = require_node(node)._get_parent()
    if parent is not None:
        parent._remove(node._parent_field)
    return node


def clone(node: Node) -> Node:
    """New unattached node of the same type built from node's snapshot."""
    return get_type(node).create(require_node(node).to_json())
