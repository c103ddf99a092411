"""
Snapshot engine: full-tree JSON snapshots of nodes.

Snapshots are plain dict/list/scalar trees, deep copies with no aliasing to
live node state, and never contain computed properties or actions.
"""
import logging
from typing import Any, Callable, Dict

from statetree.factory import snapshot_error
from statetree.node import SNAPSHOT, Node, get_type, require_node, subscribe

logger = logging.getLogger(__name__)


def get_snapshot(node: Node) -> Dict[str, Any]:
    """Deep-serialize all declared fields of node. Pure, no side effects."""
    return require_node(node).to_json()


def apply_snapshot(node: Node, snapshot: Any) -> None:
    """Overwrite the fields present in snapshot through the normal write path.

    Keys missing from snapshot keep their current value (partial merge); a
    snapshot covering every field replaces the whole state. Each written
    field emits its own patch and snapshot.

    Raises:
        ValidationError: if snapshot has a key the type does not declare or
            a value that does not match its field
    """
    factory = get_type(node)
    if isinstance(snapshot, Node):
        snapshot = snapshot.to_json()
    if not factory.is_(snapshot):
        raise snapshot_error(factory, snapshot)
    logger.debug(f"Applying snapshot with keys {list(snapshot)} to {factory.name}")
    for name, value in snapshot.items():
        node._write(name, value)


def on_snapshot(node: Node, listener: Callable[[Dict[str, Any]], None]) -> Callable[[], None]:
    """Call listener with the full snapshot of node after every mutation.

    Returns:
        Disposer that removes this subscription only.
    """
    return subscribe(require_node(node), SNAPSHOT, listener)
