"""
Discriminated results returned by public core operations.

Every public operation returns exactly one of Success, Conflict or Failure
instead of raising for expected failures.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar, Union

from actionmap.exceptions import (
    ActionMapError,
    InvalidOperationError,
    NotFoundError,
    StorageError,
    TransientError,
    ValidationError,
)

T = TypeVar("T")


class FailureKind(str, Enum):
    """Classification of non-conflict failures."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    TRANSIENT = "transient"
    INVALID_OPERATION = "invalid_operation"
    STORAGE = "storage"


@dataclass
class Success(Generic[T]):
    """The operation completed; value holds its output (may be None for no-ops)."""

    value: Optional[T] = None
    ok: bool = True


@dataclass
class Conflict:
    """A write was rejected because the entity changed since it was read."""

    entity_id: str
    client_version: int
    server_version: int
    ok: bool = False

    @property
    def message(self) -> str:
        return (
            f"Conflict: entity {self.entity_id} was updated elsewhere "
            f"(your version v{self.client_version}, server version v{self.server_version})."
        )


@dataclass
class Failure:
    """The operation failed for a non-version reason."""

    kind: FailureKind
    error: ActionMapError
    ok: bool = False

    @property
    def message(self) -> str:
        return str(self.error)

    @property
    def retryable(self) -> bool:
        return self.kind == FailureKind.TRANSIENT


Result = Union[Success[Any], Conflict, Failure]


def failure_from_error(error: ActionMapError) -> Failure:
    """Build a Failure with the kind matching an exception's type."""
    if isinstance(error, ValidationError):
        kind = FailureKind.VALIDATION
    elif isinstance(error, NotFoundError):
        kind = FailureKind.NOT_FOUND
    elif isinstance(error, TransientError):
        kind = FailureKind.TRANSIENT
    elif isinstance(error, InvalidOperationError):
        kind = FailureKind.INVALID_OPERATION
    elif isinstance(error, StorageError):
        kind = FailureKind.STORAGE
    else:
        kind = FailureKind.INVALID_OPERATION
    return Failure(kind=kind, error=error)
