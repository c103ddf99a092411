"""
Framework configuration.

Module-level settings with explicit setters/getters. Tests restore them via
reset_config().
"""

DEFAULT_TYPE_NAME = "AnonymousModel"
DEFAULT_MAX_HISTORY_SIZE = 1000

# Name given to factories created without an explicit name
_default_type_name: str = DEFAULT_TYPE_NAME

# Max entries kept by SnapshotHistory when no explicit limit is passed
_max_history_size: int = DEFAULT_MAX_HISTORY_SIZE


def set_default_type_name(name: str) -> None:
    """Set the type name used for factories created without a name."""
    global _default_type_name
    if not name:
        raise ValueError("Default type name must be a non-empty string")
    _default_type_name = name


def get_default_type_name() -> str:
    """Get the type name used for factories created without a name."""
    return _default_type_name


def set_max_history_size(size: int) -> None:
    """Set the default number of entries kept by SnapshotHistory."""
    global _max_history_size
    if size < 1:
        raise ValueError(f"History size must be at least 1, got {size}")
    _max_history_size = size


def get_max_history_size() -> int:
    """Get the default number of entries kept by SnapshotHistory."""
    return _max_history_size


def reset_config() -> None:
    """Restore every setting to its default."""
    global _default_type_name, _max_history_size
    _default_type_name = DEFAULT_TYPE_NAME
    _max_history_size = DEFAULT_MAX_HISTORY_SIZE
