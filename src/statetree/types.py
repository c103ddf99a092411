"""
Field type declarations for factory definitions.

Plain defaults cover most fields (scalars, JSON containers, nested
factories). These helpers declare the rest:

    Shape = create_factory({
        'shape': types.union(Box, Circle),   # first accepting member wins
        'label': types.maybe(Label),         # optional nested model
        'tags': types.frozen(['a', 'b']),    # opaque JSON value
    })
"""
from dataclasses import replace
from typing import Any, Union

from statetree.errors import DefinitionError
from statetree.factory import Factory, serialize_default
from statetree.type_descriptor import (
    FROZEN,
    FieldDeclaration,
    TypeDescriptor,
    TypeKind,
    is_json_value,
)


def union(*factories: Factory) -> FieldDeclaration:
    """Field holding a node of any member factory.

    Snapshots are instantiated by the first member whose is_() accepts them.
    The default is {} (the first member's defaults).

    Nodes of any member type are stored as they are, but snapshots and
    patches carry no type tag. When an earlier member also accepts a later
    member's snapshot (same fields, or a superset of them, since missing
    keys default), replaying that snapshot or patch builds the earlier
    member. Listing members with fewer fields first keeps them apart.
    """
    if not factories:
        raise DefinitionError("union() needs at least one factory")
    for factory in factories:
        if not isinstance(factory, Factory):
            raise DefinitionError(f"union() accepts factories only, got {type(factory).__name__}")
    descriptor = TypeDescriptor(
        kind=TypeKind.UNION,
        name=" | ".join(factory.name for factory in factories),
        member_factories=tuple(factories),
    )
    return FieldDeclaration(descriptor, {})


def maybe(declaration: Union[Factory, FieldDeclaration]) -> FieldDeclaration:
    """Optional model or union field; defaults to None and can be removed."""
    if isinstance(declaration, Factory):
        descriptor = declaration.descriptor
    elif isinstance(declaration, FieldDeclaration) and declaration.descriptor.is_node_kind:
        descriptor = declaration.descriptor
    else:
        raise DefinitionError(
            f"maybe() accepts a factory or union, got {type(declaration).__name__}"
        )
    return FieldDeclaration(replace(descriptor, optional=True), None)


def frozen(default: Any) -> FieldDeclaration:
    """Opaque JSON field; the value is stored and emitted as a deep copy."""
    if not is_json_value(default):
        raise DefinitionError(f"frozen() default must be plain JSON, got {default!r}")
    return FieldDeclaration(FROZEN, serialize_default(default))
