"""
Type descriptors: explicit tagged-variant schemas for node shapes.

A descriptor is one of:
- PRIMITIVE: JSON scalar (str, int, float, bool, None)
- FROZEN: opaque JSON value (lists/dicts kept as deep copies, never nodes)
- MODEL: a node built by one factory (member_factories has exactly one entry)
- UNION: a node built by the first member factory that accepts the snapshot

Model and union matching is delegated to the member factories' is_(), so this
module never imports the node or factory modules.
"""
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from statetree.factory import Factory

_PRIMITIVE_TYPES = (str, int, float, bool)


class TypeKind(Enum):
    PRIMITIVE = "primitive"
    FROZEN = "frozen"
    MODEL = "model"
    UNION = "union"


@dataclass(frozen=True, eq=False)
class TypeDescriptor:
    """Declared shape of a node or of one of its fields.

    Compared by identity: two factories with the same fields are still
    distinct types.
    """
    kind: TypeKind
    name: str = ""
    fields: Mapping[str, 'TypeDescriptor'] = field(default_factory=lambda: MappingProxyType({}))
    member_factories: Tuple['Factory', ...] = ()
    optional: bool = False

    @property
    def is_node_kind(self) -> bool:
        """True if values of this descriptor are held as child nodes."""
        return self.kind in (TypeKind.MODEL, TypeKind.UNION)

    def __repr__(self) -> str:
        return f"<TypeDescriptor {self.kind.value} {describe(self)}>"


@dataclass(frozen=True)
class FieldDeclaration:
    """Explicit field declaration inside a factory definition (see statetree.types).

    The default is a snapshot value: None for optional fields, {} for model
    and union fields (member defaults apply).
    """
    descriptor: TypeDescriptor
    default: Any = None


PRIMITIVE = TypeDescriptor(kind=TypeKind.PRIMITIVE, name="primitive")
NULLABLE_PRIMITIVE = TypeDescriptor(kind=TypeKind.PRIMITIVE, name="primitive", optional=True)
FROZEN = TypeDescriptor(kind=TypeKind.FROZEN, name="frozen")


def is_json_value(value: Any) -> bool:
    """Check that value is a plain JSON tree (string keys, no custom objects)."""
    if value is None or isinstance(value, _PRIMITIVE_TYPES):
        return True
    if isinstance(value, (list, tuple)):
        return all(is_json_value(item) for item in value)
    if isinstance(value, Mapping):
        return all(isinstance(key, str) and is_json_value(item) for key, item in value.items())
    return False


def matches(descriptor: TypeDescriptor, value: Any) -> bool:
    """Structural match of a value against a descriptor. Pure, no side effects."""
    if value is None and descriptor.optional:
        return True
    if descriptor.kind is TypeKind.PRIMITIVE:
        return value is None or isinstance(value, _PRIMITIVE_TYPES)
    if descriptor.kind is TypeKind.FROZEN:
        return is_json_value(value)
    return any(factory.is_(value) for factory in descriptor.member_factories)


def describe(descriptor: TypeDescriptor) -> str:
    """Render the expected shape, e.g. '{ width: primitive; height: primitive }'."""
    if descriptor.kind is TypeKind.MODEL:
        if descriptor.fields:
            body = "; ".join(f"{name}: {describe(sub)}" for name, sub in descriptor.fields.items())
            text = f"{{ {body} }}"
        else:
            text = "{}"
    elif descriptor.kind is TypeKind.UNION:
        text = " | ".join(describe(factory.descriptor) for factory in descriptor.member_factories)
    else:
        text = descriptor.kind.value
    if descriptor.optional and descriptor.kind is not TypeKind.PRIMITIVE:
        text = f"{text} | null"
    return text
