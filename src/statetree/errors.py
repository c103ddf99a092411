"""
Exception taxonomy for statetree.

All errors are raised synchronously at the offending call. Nothing is retried
internally; batch operations (apply_patches, apply_actions) abort on the first
failure and leave earlier records applied.
"""
from typing import Any, Optional


class StateTreeError(Exception):
    """Base class for every error raised by statetree."""


class DefinitionError(StateTreeError, TypeError):
    """A factory definition is structurally invalid (no fields, bad names, ...)."""


class ValidationError(StateTreeError, ValueError):
    """A snapshot or value does not structurally match a type descriptor.

    Attributes:
        value: The offending value (snapshot, field value or payload)
        expected: Human-readable description of the expected shape
    """

    def __init__(self, message: str, value: Any = None, expected: Optional[str] = None):
        super().__init__(message)
        self.value = value
        self.expected = expected


class ResolutionError(StateTreeError, LookupError):
    """A patch/action path does not resolve to an addressable node or field."""

    def __init__(self, message: str, path: str = ""):
        super().__init__(message)
        self.path = path

    def __str__(self) -> str:
        # LookupError would otherwise render like KeyError
        return self.args[0] if self.args else ""


class UnknownActionError(StateTreeError, LookupError):
    """An action record names a method not declared on the resolved node."""

    def __init__(self, message: str, name: str = "", path: str = ""):
        super().__init__(message)
        self.name = name
        self.path = path

    def __str__(self) -> str:
        return self.args[0] if self.args else ""
