"""
Factories: reusable model definitions that instantiate live nodes.

A definition is a mapping or a plain class. Its entries are separated into:
- declared fields with defaults: scalars, lists/dicts (frozen JSON), nested
  Factory instances, or statetree.types declarations
- computed getters: property objects (derived, read-only, never serialized)
- actions: plain functions, bound to the node as self

Usage:
    >>> Todo = create_factory({
    ...     'title': '',
    ...     'done': False,
    ...     'toggle': lambda self: setattr(self, 'done', not self.done),
    ... }, name='Todo')
    >>> todo = Todo.create({'title': 'write docs'})
    >>> todo.toggle()
    >>> todo.to_json()
    {'title': 'write docs', 'done': True}

Class syntax works too (dunder attributes are ignored):

    class Box:
        width = 0
        height = 0

        @property
        def area(self):
            return self.width * self.height

    BoxFactory = create_factory(Box)
"""
import copy
import inspect
import logging
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from statetree.config import get_default_type_name
from statetree.errors import DefinitionError, ValidationError
from statetree.node import Node, build_node_class, compact_json
from statetree.type_descriptor import (
    FROZEN,
    NULLABLE_PRIMITIVE,
    PRIMITIVE,
    FieldDeclaration,
    TypeDescriptor,
    TypeKind,
    describe,
    is_json_value,
    matches,
)

logger = logging.getLogger(__name__)

# Public node API names a definition may not shadow
_RESERVED_NAMES = frozenset(name for name in dir(Node) if not name.startswith('_'))


class Factory:
    """Immutable constructor bound to a model type descriptor.

    Holds the descriptor (declared fields only), the field defaults (as
    snapshot values), the computed getters and the actions, plus the
    generated Node subclass.
    """
    __slots__ = ('_name', '_fields', '_defaults', '_computed', '_actions', '_descriptor', '_node_class')

    def __init__(
        self,
        name: str,
        fields: Dict[str, FieldDeclaration],
        computed: Dict[str, property],
        actions: Dict[str, Callable[..., Any]],
    ):
        if not fields:
            raise DefinitionError(f"Definition of {name} declares no fields")
        for field_name in list(fields) + list(computed) + list(actions):
            _check_name(name, field_name)

        set_slot = object.__setattr__
        set_slot(self, '_name', name)
        set_slot(self, '_fields', MappingProxyType(dict(fields)))
        set_slot(self, '_computed', MappingProxyType(dict(computed)))
        set_slot(self, '_actions', MappingProxyType(dict(actions)))
        set_slot(self, '_descriptor', TypeDescriptor(
            kind=TypeKind.MODEL,
            name=name,
            fields=MappingProxyType({key: decl.descriptor for key, decl in fields.items()}),
            member_factories=(self,),
        ))
        set_slot(self, '_node_class', build_node_class(
            self, self._descriptor.fields, self._computed, self._actions
        ))
        logger.debug(
            f"Created factory {name}: fields={list(fields)}, "
            f"computed={list(computed)}, actions={list(actions)}"
        )

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("Factory is immutable")

    # === Introspection ===

    @property
    def name(self) -> str:
        return self._name

    @property
    def descriptor(self) -> TypeDescriptor:
        return self._descriptor

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(self._fields)

    @property
    def computed_names(self) -> Tuple[str, ...]:
        return tuple(self._computed)

    @property
    def action_names(self) -> Tuple[str, ...]:
        return tuple(self._actions)

    @property
    def node_class(self) -> type:
        return self._node_class

    def default_snapshot(self) -> Dict[str, Any]:
        """Snapshot of a node created without input (all defaults filled)."""
        return self.create().to_json()

    # === Type checks ===

    def is_(self, value: Any) -> bool:
        """Structural membership test.

        True iff value is a mapping (or node) whose keys are a subset of the
        declared fields and whose values match the field descriptors. Missing
        keys are allowed (they default); arrays always fail.
        """
        if isinstance(value, Node):
            value = value.to_json()
        if not isinstance(value, Mapping):
            return False
        fields = self._descriptor.fields
        return all(
            key in fields and matches(fields[key], item)
            for key, item in value.items()
        )

    def __contains__(self, value: Any) -> bool:
        return self.is_(value)

    # === Construction ===

    def create(self, snapshot: Optional[Any] = None) -> Node:
        """Create a live node, overriding defaults with the keys of snapshot.

        Raises:
            ValidationError: if snapshot is not assignable to this type
        """
        if snapshot is None:
            snapshot = {}
        elif isinstance(snapshot, Node):
            snapshot = snapshot.to_json()
        if not self.is_(snapshot):
            raise snapshot_error(self, snapshot)

        node = self._node_class()
        for field_name, declaration in self._fields.items():
            if field_name in snapshot:
                value = snapshot[field_name]
            else:
                value = copy.deepcopy(declaration.default)
            node._init_field(field_name, value)
        return node

    def __repr__(self) -> str:
        return f"<Factory {self._name} {describe(self._descriptor)}>"


def snapshot_error(factory: Factory, snapshot: Any) -> ValidationError:
    expected = describe(factory.descriptor)
    return ValidationError(
        f"Snapshot {compact_json(snapshot)} is not assignable to type {factory.name}. "
        f"Expected {expected} instead.",
        value=snapshot,
        expected=expected,
    )


def _check_name(type_name: str, field_name: Any) -> None:
    if not isinstance(field_name, str) or not field_name:
        raise DefinitionError(f"Definition of {type_name} has invalid member name {field_name!r}")
    if field_name.startswith('_'):
        raise DefinitionError(f"Member '{field_name}' of {type_name} must not start with '_'")
    if field_name in _RESERVED_NAMES:
        raise DefinitionError(f"Member '{field_name}' of {type_name} shadows the node API")


def _collect_entries(definition: Any) -> Tuple[Optional[str], Dict[str, Any]]:
    """Read (class name, entries) from a mapping or class definition."""
    if isinstance(definition, Mapping):
        return None, dict(definition)
    if isinstance(definition, type):
        entries: Dict[str, Any] = {}
        # Base classes first so subclasses override
        for klass in reversed(definition.__mro__[:-1]):
            for key, value in vars(klass).items():
                if key.startswith('__') and key.endswith('__'):
                    continue
                entries[key] = value
        return definition.__name__, entries
    raise DefinitionError(
        f"Definition must be a mapping or a class, got {type(definition).__name__}"
    )


def _classify(type_name: str, key: str, value: Any,
              fields: Dict[str, FieldDeclaration],
              computed: Dict[str, property],
              actions: Dict[str, Callable[..., Any]]) -> None:
    if isinstance(value, property):
        computed[key] = value
    elif isinstance(value, (staticmethod, classmethod)):
        raise DefinitionError(
            f"Member '{key}' of {type_name}: static and class methods are not supported"
        )
    elif inspect.isfunction(value):
        actions[key] = value
    elif isinstance(value, Factory):
        fields[key] = FieldDeclaration(value.descriptor, {})
    elif isinstance(value, FieldDeclaration):
        fields[key] = value
    elif value is None:
        fields[key] = FieldDeclaration(NULLABLE_PRIMITIVE, None)
    elif isinstance(value, (str, int, float, bool)):
        fields[key] = FieldDeclaration(PRIMITIVE, value)
    elif is_json_value(value):
        fields[key] = FieldDeclaration(FROZEN, serialize_default(value))
    else:
        raise DefinitionError(
            f"Member '{key}' of {type_name} has unsupported default {value!r}"
        )


def serialize_default(value: Any) -> Any:
    """Deep copy of a JSON default with tuples normalized to lists."""
    if isinstance(value, Mapping):
        return {key: serialize_default(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize_default(item) for item in value]
    return value


def create_factory(definition: Any, name: Optional[str] = None) -> Factory:
    """Create a factory from a mapping or class definition.

    Args:
        definition: Mapping or class with field defaults, properties and functions
        name: Type name (defaults to the class name or the configured default)

    Raises:
        DefinitionError: if the definition is structurally invalid
    """
    class_name, entries = _collect_entries(definition)
    type_name = name or class_name or get_default_type_name()

    fields: Dict[str, FieldDeclaration] = {}
    computed: Dict[str, property] = {}
    actions: Dict[str, Callable[..., Any]] = {}
    for key, value in entries.items():
        _check_name(type_name, key)
        _classify(type_name, key, value, fields, computed, actions)
    return Factory(type_name, fields, computed, actions)


def compose_factory(*factories: Factory, name: Optional[str] = None) -> Factory:
    """Merge factories into one; later factories win on name collisions.

    Example:
        >>> Square = compose_factory(BoxFactory, ColorFactory)
        >>> Square.create().to_json()
        {'width': 0, 'height': 0, 'color': '#FFFFFF'}
    """
    if not factories:
        raise DefinitionError("compose_factory() needs at least one factory")

    fields: Dict[str, FieldDeclaration] = {}
    computed: Dict[str, property] = {}
    actions: Dict[str, Callable[..., Any]] = {}
    for factory in factories:
        if not isinstance(factory, Factory):
            raise DefinitionError(
                f"compose_factory() accepts factories only, got {type(factory).__name__}"
            )
        for target, source in ((fields, factory._fields),
                               (computed, factory._computed),
                               (actions, factory._actions)):
            for key, value in source.items():
                fields.pop(key, None)
                computed.pop(key, None)
                actions.pop(key, None)
                target[key] = value

    type_name = name or get_default_type_name()
    logger.debug(f"Composing {[f.name for f in factories]} into {type_name}")
    return Factory(type_name, fields, computed, actions)
