"""
Observable state trees with snapshots, patches and action records.

A factory defines a model's shape (fields with defaults, computed getters,
actions). Live nodes created from it can be mutated in place; every change
is observable three ways:

- snapshots: immutable JSON copies of the whole tree
- patches: minimal path-addressed field writes ({"op", "path", "value"})
- action records: outermost method calls ({"name", "path", "args"})

Each representation can be replayed on another tree, which makes it possible
to serialize, undo, or synchronize state without writing diffing code.

Quick Start:
    >>> from statetree import create_factory, on_patch, apply_patches
    >>>
    >>> def set_to(self, to):
    ...     self.to = to
    >>>
    >>> Greeting = create_factory({'to': 'world', 'set_to': set_to})
    >>> doc = Greeting.create()
    >>> patches = []
    >>> dispose = on_patch(doc, patches.append)
    >>> doc.set_to('universe')
    >>> patches
    [{'op': 'replace', 'path': '/to', 'value': 'universe'}]
    >>> replica = Greeting.create()
    >>> apply_patches(replica, patches)
    >>> str(replica)
    'AnonymousModel{"to":"universe"}'

Modules:
    - type_descriptor: tagged-variant schemas and structural matching
    - types: union/maybe/frozen field declarations
    - factory: create_factory, compose_factory, Factory
    - node: Node, the mutation interceptor, transactions, tree helpers
    - snapshot / patch / action: the three engines
    - path: path joining, splitting and resolution
    - history: snapshot time travel
    - config: framework settings
"""

from statetree.errors import (
    StateTreeError,
    DefinitionError,
    ValidationError,
    ResolutionError,
    UnknownActionError,
)

from statetree.config import (
    set_default_type_name,
    get_default_type_name,
    set_max_history_size,
    get_max_history_size,
    reset_config,
)

from statetree.type_descriptor import TypeKind, TypeDescriptor, FieldDeclaration, describe

from statetree.factory import Factory, create_factory, compose_factory

from statetree import types

from statetree.node import (
    Node,
    transaction,
    get_type,
    get_parent,
    get_root,
    is_root,
    detach,
    clone,
)

from statetree.path import get_path, get_relative_path, resolve_path, resolve_field

from statetree.snapshot import get_snapshot, apply_snapshot, on_snapshot

from statetree.patch import (
    Patch,
    PatchOp,
    PatchRecorder,
    apply_patch,
    apply_patches,
    on_patch,
    record_patches,
)

from statetree.action import (
    ActionRecord,
    ActionRecorder,
    apply_action,
    apply_actions,
    on_action,
    record_actions,
)

from statetree.history import HistoryEntry, SnapshotHistory

__all__ = [
    # Errors
    'StateTreeError',
    'DefinitionError',
    'ValidationError',
    'ResolutionError',
    'UnknownActionError',
    # Configuration
    'set_default_type_name',
    'get_default_type_name',
    'set_max_history_size',
    'get_max_history_size',
    'reset_config',
    # Types
    'TypeKind',
    'TypeDescriptor',
    'FieldDeclaration',
    'describe',
    'types',
    # Factory
    'Factory',
    'create_factory',
    'compose_factory',
    # Node
    'Node',
    'transaction',
    'get_type',
    'get_parent',
    'get_root',
    'is_root',
    'detach',
    'clone',
    # Path
    'get_path',
    'get_relative_path',
    'resolve_path',
    'resolve_field',
    # Snapshots
    'get_snapshot',
    'apply_snapshot',
    'on_snapshot',
    # Patches
    'Patch',
    'PatchOp',
    'PatchRecorder',
    'apply_patch',
    'apply_patches',
    'on_patch',
    'record_patches',
    # Actions
    'ActionRecord',
    'ActionRecorder',
    'apply_action',
    'apply_actions',
    'on_action',
    'record_actions',
    # History
    'HistoryEntry',
    'SnapshotHistory',
]

__version__ = '1.0.0'
__description__ = 'Observable state trees with snapshots, patches and action records'
