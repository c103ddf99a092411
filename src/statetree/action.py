"""
Action engine: records of externally invoked methods.

Wire format:
    {"name": "setTo", "path": "", "args": ["universe"]}

Only outermost calls are recorded; actions called from inside another action
run normally but emit nothing of their own.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from statetree.errors import ResolutionError, UnknownActionError, ValidationError
from statetree.node import ACTION, Node, get_type, require_node, serialize, subscribe
from statetree.path import resolve_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActionRecord:
    """One action invocation on the node at path."""
    name: str
    path: str = ""
    args: Tuple[Any, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        """Export to the JSON wire format."""
        return {'name': self.name, 'path': self.path, 'args': serialize(list(self.args))}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'ActionRecord':
        """Import from the JSON wire format.

        Raises:
            ValidationError: if the payload is malformed
        """
        if not isinstance(data, Mapping):
            raise ValidationError(f"Action record must be a mapping, got {type(data).__name__}", value=data)
        name = data.get('name')
        path = data.get('path', "")
        args = data.get('args', [])
        if not isinstance(name, str) or not name:
            raise ValidationError(f"Action name must be a non-empty string, got {name!r}", value=data)
        if not isinstance(path, str):
            raise ValidationError(f"Action path must be a string, got {path!r}", value=data)
        if not isinstance(args, (list, tuple)):
            raise ValidationError(f"Action args must be a list, got {args!r}", value=data)
        return cls(name=name, path=path, args=tuple(args))


ActionLike = Union[ActionRecord, Mapping[str, Any]]


def _as_record(record: ActionLike) -> ActionRecord:
    return record if isinstance(record, ActionRecord) else ActionRecord.from_dict(record)


def apply_action(node: Node, record: ActionLike) -> None:
    """Invoke the named action on the node addressed by record.path.

    Raises:
        ResolutionError: path does not resolve to a node
        UnknownActionError: name is not a declared action of the resolved node
    """
    require_node(node)
    record = _as_record(record)
    target = resolve_path(node, record.path)
    factory = get_type(target)
    if record.name not in factory.action_names:
        raise UnknownActionError(
            f"'{record.name}' is not a declared action of type {factory.name} "
            f"at path '{record.path}'",
            name=record.name,
            path=record.path,
        )
    logger.debug(f"Applying action {record.name} at {record.path!r}")
    getattr(target, record.name)(*serialize(list(record.args)))


def apply_actions(node: Node, records: Iterable[ActionLike]) -> None:
    """Apply action records strictly in order, aborting on the first failure.

    Side effects of each call (patches, snapshots) settle before the next
    record is applied; nothing is rolled back.
    """
    for index, record in enumerate(records):
        try:
            apply_action(node, record)
        except (ValidationError, ResolutionError, UnknownActionError):
            logger.debug(f"Action #{index} failed, aborting remaining actions")
            raise


def on_action(node: Node, listener: Callable[[Dict[str, Any]], None]) -> Callable[[], None]:
    """Call listener with a record of every outermost action called below node.

    Returns:
        Disposer that removes this subscription only.
    """
    return subscribe(require_node(node), ACTION, listener)


class ActionRecorder:
    """Collects action records emitted below a node until stopped."""

    def __init__(self, node: Node):
        self.actions: List[Dict[str, Any]] = []
        self._dispose: Optional[Callable[[], None]] = on_action(node, self.actions.append)

    @property
    def recording(self) -> bool:
        return self._dispose is not None

    def stop(self) -> None:
        if self._dispose is not None:
            self._dispose()
            self._dispose = None

    def replay(self, target: Node) -> None:
        apply_actions(target, self.actions)

    def __enter__(self) -> 'ActionRecorder':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()


def record_actions(node: Node) -> ActionRecorder:
    return ActionRecorder(node)
