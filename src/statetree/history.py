"""
Snapshot history for time travel over a node tree.

SnapshotHistory subscribes to a node's snapshots and keeps a linear timeline
of immutable entries. Travelling back or forward applies a stored snapshot
inside a transaction, so listeners see one snapshot per travel and the
history itself does not record it.

Design:
- Immutable entries (frozen dataclass), UUID identity, parent_id links
- Recording while in the past drops the abandoned future
- Oldest entries are pruned once the limit is exceeded
"""
import copy
import json
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from statetree.config import get_max_history_size
from statetree.errors import ValidationError
from statetree.factory import snapshot_error
from statetree.node import Node, get_type, require_node, transaction
from statetree.snapshot import apply_snapshot, on_snapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HistoryEntry:
    """Immutable snapshot of a tree at a point in time."""
    id: str  # UUID string
    timestamp: float
    label: str
    snapshot: Dict[str, Any]
    parent_id: Optional[str]  # UUID of previous entry (None for the first)

    @classmethod
    def create(cls, label: str, snapshot: Dict[str, Any], parent_id: Optional[str] = None) -> 'HistoryEntry':
        """Create a new entry with auto-generated ID and timestamp."""
        return cls(
            id=str(uuid.uuid4()),
            timestamp=time.time(),
            label=label,
            snapshot=snapshot,
            parent_id=parent_id,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Export to JSON-serializable dict."""
        return {
            'id': self.id,
            'timestamp': self.timestamp,
            'label': self.label,
            'snapshot': copy.deepcopy(self.snapshot),
            'parent_id': self.parent_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'HistoryEntry':
        """Import from dict (e.g., loaded from JSON)."""
        return cls(
            id=data['id'],
            timestamp=data['timestamp'],
            label=data.get('label', ""),
            snapshot=data['snapshot'],
            parent_id=data.get('parent_id'),
        )


class SnapshotHistory:
    """Undo/redo timeline of a node's snapshots.

    Usage:
        history = SnapshotHistory(doc)
        doc.to = 'mars'
        history.undo()   # doc.to == 'world'
        history.redo()   # doc.to == 'mars'
        history.dispose()
    """

    def __init__(self, node: Node, limit: Optional[int] = None, label: str = "init"):
        self._node = require_node(node)
        self._limit = limit if limit is not None else get_max_history_size()
        if self._limit < 1:
            raise ValueError(f"History limit must be at least 1, got {self._limit}")
        self._entries: List[HistoryEntry] = []
        self._current_index = -1
        self._in_time_travel = False
        self._record(label, node.to_json())
        self._dispose: Optional[Callable[[], None]] = on_snapshot(node, self._on_snapshot)

    # === Recording ===

    def _on_snapshot(self, snapshot: Dict[str, Any]) -> None:
        # Snapshots applied by travel_to() are already in the timeline
        if self._in_time_travel:
            return
        self._record("edit", snapshot)

    def _record(self, label: str, snapshot: Dict[str, Any]) -> None:
        abandoned = len(self._entries) - 1 - self._current_index
        if abandoned > 0:
            del self._entries[self._current_index + 1:]
            logger.debug(f"HISTORY: Dropped {abandoned} abandoned entries")

        parent_id = self._entries[-1].id if self._entries else None
        entry = HistoryEntry.create(label, snapshot, parent_id)
        self._entries.append(entry)

        overflow = len(self._entries) - self._limit
        if overflow > 0:
            del self._entries[:overflow]
            logger.debug(f"HISTORY: Pruned {overflow} oldest entries")

        self._current_index = len(self._entries) - 1
        logger.debug(f"HISTORY: Recorded '{label}' (id={entry.id[:8]})")

    def dispose(self) -> None:
        """Stop recording. Travelling over recorded entries still works."""
        if self._dispose is not None:
            self._dispose()
            self._dispose = None

    # === Introspection ===

    @property
    def entries(self) -> List[HistoryEntry]:
        """Entries oldest first (index 0 = oldest, -1 = newest)."""
        return list(self._entries)

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def can_undo(self) -> bool:
        return self._current_index > 0

    @property
    def can_redo(self) -> bool:
        return self._current_index < len(self._entries) - 1

    @property
    def is_time_traveling(self) -> bool:
        """True if the node currently shows an entry older than the newest."""
        return self.can_redo

    def __len__(self) -> int:
        return len(self._entries)

    # === Time travel ===

    def travel_to(self, index: int) -> bool:
        """Apply the entry at index (negative indexes count from the newest).

        Returns:
            True if travel succeeded, False if index is out of range.
        """
        if index < 0:
            index = len(self._entries) + index
        if index < 0 or index >= len(self._entries):
            logger.warning(f"HISTORY: Index {index} out of range [0, {len(self._entries) - 1}]")
            return False

        entry = self._entries[index]
        self._in_time_travel = True
        try:
            with transaction(self._node):
                apply_snapshot(self._node, copy.deepcopy(entry.snapshot))
        finally:
            self._in_time_travel = False
        self._current_index = index
        logger.debug(f"HISTORY: Travelled to #{index} '{entry.label}'")
        return True

    def undo(self) -> bool:
        """Travel one step back (toward older entries)."""
        if not self.can_undo:
            return False
        return self.travel_to(self._current_index - 1)

    def redo(self) -> bool:
        """Travel one step forward (toward newer entries)."""
        if not self.can_redo:
            return False
        return self.travel_to(self._current_index + 1)

    # === Persistence ===

    def to_dict(self) -> Dict[str, Any]:
        """Export history to a JSON-serializable dict."""
        return {
            'entries': [entry.to_dict() for entry in self._entries],
            'current_index': self._current_index,
        }

    @classmethod
    def from_dict(cls, node: Node, data: Dict[str, Any], limit: Optional[int] = None) -> 'SnapshotHistory':
        """Create a history on node from exported data."""
        history = cls(node, limit=limit)
        history.load_dict(data)
        return history

    def load_dict(self, data: Dict[str, Any]) -> None:
        """Replace the timeline with exported data and travel to its current entry.

        Every entry is checked against the node's type before anything
        changes, so a rejected payload leaves the current timeline intact.

        Raises:
            ValidationError: malformed data, a snapshot the node's type does
                not accept, or a current_index outside the entries
        """
        try:
            entries = [HistoryEntry.from_dict(item) for item in data['entries']]
        except (KeyError, TypeError) as e:
            raise ValidationError(f"Malformed history data: {e!r}", value=data) from e
        if not entries:
            raise ValidationError("History data has no entries", value=data)

        factory = get_type(self._node)
        for entry in entries:
            if not factory.is_(entry.snapshot):
                raise snapshot_error(factory, entry.snapshot)

        index = data.get('current_index', len(entries) - 1)
        if not isinstance(index, int) or not 0 <= index < len(entries):
            raise ValidationError(
                f"History current_index {index!r} out of range [0, {len(entries) - 1}]",
                value=data,
            )

        kept = entries[-self._limit:]
        self._entries = kept
        self._current_index = max(index - (len(entries) - len(kept)), 0)
        self.travel_to(self._current_index)

    def save_to_file(self, filepath: str) -> None:
        """Save history to a JSON file."""
        data = self.to_dict()
        with open(filepath, 'w') as f:
            json.dump(data, f, indent=2)
        logger.info(f"HISTORY: Saved {len(self._entries)} entries to {filepath}")

    def load_from_file(self, filepath: str) -> None:
        """Load history from a JSON file."""
        with open(filepath, 'r') as f:
            data = json.load(f)
        self.load_dict(data)
        logger.info(f"HISTORY: Loaded {len(self._entries)} entries from {filepath}")
