"""
errors.py

Error taxonomy for the map graph core.

Internal functions raise the typed errors below.  Public operations (the
store, the navigation engine and the session) catch them and hand back an
``OpResult`` so the presentation layer never has to guard calls with
try/except for expected conditions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, List, Optional, TypeVar


class ErrorKind:
    """Error categories surfaced to the presentation layer."""
    NOT_FOUND = "not-found"
    VALIDATION = "validation"
    CONSISTENCY = "consistency"
    DUPLICATE_ID = "duplicate-id"


class MapdrawError(Exception):
    """Base class for expected, recoverable core errors."""
    kind = ErrorKind.VALIDATION


class NotFoundError(MapdrawError):
    """A referenced map or hotspot id is absent."""
    kind = ErrorKind.NOT_FOUND


class ValidationError(MapdrawError):
    """Malformed URL, empty required field or malformed document."""
    kind = ErrorKind.VALIDATION


class DuplicateIdError(ValidationError):
    """Attempt to create a map id that already exists."""
    kind = ErrorKind.DUPLICATE_ID


class ConsistencyError(MapdrawError):
    """Navigation state no longer matches the graph."""
    kind = ErrorKind.CONSISTENCY


T = TypeVar("T")


@dataclass
class OpResult(Generic[T]):
    """Outcome of a public operation.

    Attributes:
        ok: True when the operation took effect (or was a permitted no-op).
        value: Operation-specific payload (new graph, OpenUrl request, ...).
        error: Human readable message when ``ok`` is False.
        kind: One of the ``ErrorKind`` values when ``ok`` is False.
        warnings: Soft problems that did not abort the operation.
    """
    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    kind: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def success(cls, value: Any = None, warnings: Optional[List[str]] = None) -> "OpResult":
        return cls(ok=True, value=value, warnings=list(warnings or []))

    @classmethod
    def failure(cls, exc: MapdrawError) -> "OpResult":
        return cls(ok=False, error=str(exc), kind=exc.kind)

    def __bool__(self) -> bool:
        return self.ok
