"""
Path resolution for patches and actions.

A path is the '/'-joined chain of field names from a root node to a
descendant node or field. The root itself is addressed by "". Segments are
escaped JSON-pointer style ('~' -> '~0', '/' -> '~1') so field names may
contain either character.
"""
import logging
from typing import Iterable, List, Tuple, TYPE_CHECKING

from statetree.errors import ResolutionError

if TYPE_CHECKING:
    from statetree.node import Node

logger = logging.getLogger(__name__)


def escape_segment(segment: str) -> str:
    return segment.replace("~", "~0").replace("/", "~1")


def unescape_segment(segment: str) -> str:
    return segment.replace("~1", "/").replace("~0", "~")


def join_path(segments: Iterable[str]) -> str:
    """Join field names into a path ("" for no segments, "/a/b" otherwise)."""
    escaped = [escape_segment(segment) for segment in segments]
    return "/" + "/".join(escaped) if escaped else ""


def split_path(path: str) -> List[str]:
    """Split a path into unescaped field names.

    A leading '/' is optional: "/a/b" and "a/b" address the same field.
    """
    if not isinstance(path, str):
        raise ResolutionError(f"Path must be a string, got {type(path).__name__}", path=str(path))
    if path == "":
        return []
    if path.startswith("/"):
        path = path[1:]
    return [unescape_segment(segment) for segment in path.split("/")]


def get_path(node: 'Node') -> str:
    """Absolute path of node from the root of its tree (root is "")."""
    segments: List[str] = []
    current = node
    parent = current._get_parent()
    while parent is not None:
        segments.append(current._parent_field)
        current = parent
        parent = current._get_parent()
    segments.reverse()
    return join_path(segments)


def get_relative_path(base: 'Node', node: 'Node') -> str:
    """Path of node relative to base; base must be node or one of its ancestors."""
    segments: List[str] = []
    current = node
    while current is not base:
        parent = current._get_parent()
        if parent is None:
            raise ResolutionError(
                f"{node} is not a descendant of {base}", path=get_path(node)
            )
        segments.append(current._parent_field)
        current = parent
    segments.reverse()
    return join_path(segments)


def resolve_path(root: 'Node', path: str) -> 'Node':
    """Walk from root along path and return the addressed node.

    Raises:
        ResolutionError: if a segment is not a declared field or does not hold a node
    """
    # Inline import: node imports this module for join_path
    from statetree.node import Node

    current = root
    for segment in split_path(path):
        factory = type(current)._factory
        if segment not in factory.descriptor.fields:
            raise ResolutionError(
                f"Cannot resolve path '{path}': '{segment}' is not a field of type {factory.name}",
                path=path,
            )
        value = current._values[segment]
        if not isinstance(value, Node):
            raise ResolutionError(
                f"Cannot resolve path '{path}': value at '{segment}' is not a node",
                path=path,
            )
        current = value
    return current


def resolve_field(root: 'Node', path: str) -> Tuple['Node', str]:
    """Resolve a field path to (owning node, field name).

    Raises:
        ResolutionError: for the root path or a field the owner does not declare
    """
    segments = split_path(path)
    if not segments:
        raise ResolutionError("Path '' addresses the root node, not a field", path=path)
    owner = resolve_path(root, join_path(segments[:-1]))
    field_name = segments[-1]
    factory = type(owner)._factory
    if field_name not in factory.descriptor.fields:
        raise ResolutionError(
            f"Cannot resolve path '{path}': '{field_name}' is not a field of type {factory.name}",
            path=path,
        )
    logger.debug(f"Resolved '{path}' -> {factory.name}.{field_name}")
    return owner, field_name
