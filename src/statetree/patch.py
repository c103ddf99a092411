"""
Patch engine: path-addressed descriptions of single field writes.

Wire format (RFC 6902-like):
    {"op": "replace", "path": "/box/width", "value": 3}
    {"op": "remove", "path": "/label"}

Listeners receive one patch per field write, in emission order, with paths
relative to the node they subscribed on. Replaying the recorded sequence with
apply_patches() on a copy of the pre-mutation state reproduces the
post-mutation state.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from statetree.errors import ResolutionError, ValidationError
from statetree.node import PATCH, Node, require_node, serialize, subscribe
from statetree.path import resolve_field, split_path
from statetree.snapshot import apply_snapshot

logger = logging.getLogger(__name__)


class PatchOp(str, Enum):
    REPLACE = "replace"
    ADD = "add"
    REMOVE = "remove"


@dataclass(frozen=True)
class Patch:
    """One field mutation. value is ignored for REMOVE."""
    op: PatchOp
    path: str
    value: Any = None

    def to_dict(self) -> Dict[str, Any]:
        """Export to the JSON wire format."""
        data: Dict[str, Any] = {'op': self.op.value, 'path': self.path}
        if self.op is not PatchOp.REMOVE:
            data['value'] = serialize(self.value)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'Patch':
        """Import from the JSON wire format.

        Raises:
            ValidationError: if the payload is malformed
        """
        if not isinstance(data, Mapping):
            raise ValidationError(f"Patch must be a mapping, got {type(data).__name__}", value=data)
        try:
            op = PatchOp(data.get('op'))
        except ValueError:
            raise ValidationError(f"Unknown patch op {data.get('op')!r}", value=data) from None
        path = data.get('path')
        if not isinstance(path, str):
            raise ValidationError(f"Patch path must be a string, got {path!r}", value=data)
        if op is not PatchOp.REMOVE and 'value' not in data:
            raise ValidationError(f"Patch '{op.value}' at '{path}' has no value", value=data)
        return cls(op=op, path=path, value=data.get('value'))


PatchLike = Union[Patch, Mapping[str, Any]]


def _as_patch(patch: PatchLike) -> Patch:
    return patch if isinstance(patch, Patch) else Patch.from_dict(patch)


def apply_patch(node: Node, patch: PatchLike) -> None:
    """Apply one patch to the field it addresses below node.

    - replace/add: write the value (nested snapshots become child nodes)
    - remove: clear an optional field to None
    - path "": replace/add apply the value as a snapshot of node itself

    Raises:
        ValidationError: malformed patch, mismatched value, or removal of a required field
        ResolutionError: path does not resolve
    """
    require_node(node)
    patch = _as_patch(patch)
    logger.debug(f"Applying patch {patch.op.value} {patch.path!r}")

    if not split_path(patch.path):
        if patch.op is PatchOp.REMOVE:
            raise ResolutionError("Cannot remove the root node", path=patch.path)
        apply_snapshot(node, patch.value)
        return

    owner, field_name = resolve_field(node, patch.path)
    if patch.op is PatchOp.REMOVE:
        owner._remove(field_name)
    else:
        owner._write(field_name, serialize(patch.value))


def apply_patches(node: Node, patches: Iterable[PatchLike]) -> None:
    """Apply patches strictly in order.

    Each patch, including the notifications it triggers, completes before the
    next one starts. A failure aborts the rest of the sequence; patches
    already applied stay applied.
    """
    for index, patch in enumerate(patches):
        try:
            apply_patch(node, patch)
        except (ValidationError, ResolutionError):
            logger.debug(f"Patch #{index} failed, aborting remaining patches")
            raise


def on_patch(node: Node, listener: Callable[[Dict[str, Any]], None]) -> Callable[[], None]:
    """Call listener with each patch emitted below node.

    Returns:
        Disposer that removes this subscription only.
    """
    return subscribe(require_node(node), PATCH, listener)


class PatchRecorder:
    """Collects the patches emitted below a node until stopped.

    Usage:
        with record_patches(doc) as recorder:
            doc.to = 'mars'
        recorder.replay(other_doc)
    """

    def __init__(self, node: Node):
        self.patches: List[Dict[str, Any]] = []
        self._dispose: Optional[Callable[[], None]] = on_patch(node, self.patches.append)

    @property
    def recording(self) -> bool:
        return self._dispose is not None

    def stop(self) -> None:
        if self._dispose is not None:
            self._dispose()
            self._dispose = None

    def replay(self, target: Node) -> None:
        apply_patches(target, self.patches)

    def __enter__(self) -> 'PatchRecorder':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()


def record_patches(node: Node) -> PatchRecorder:
    return PatchRecorder(node)
