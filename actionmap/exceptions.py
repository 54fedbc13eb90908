"""
Custom exceptions for the actionmap application.
"""

from typing import Optional


class ActionMapError(Exception):
    """Base exception for all actionmap-related errors."""
    pass


class ValidationError(ActionMapError):
    """Raised when a patch or a new entity fails validation."""
    pass


class NotFoundError(ActionMapError):
    """Raised when a requested entity is not found (or was deleted concurrently)."""
    pass


class VersionConflictError(ActionMapError):
    """Raised by a store when the submitted version does not match the stored one.

    Attributes:
        current_version: Version currently held by the store.
        expected_version: Version the writer believed it was updating.
    """

    def __init__(
        self,
        current_version: int,
        expected_version: Optional[int] = None,
        message: Optional[str] = None,
    ) -> None:
        self.current_version = current_version
        self.expected_version = expected_version
        super().__init__(
            message
            or (
                "Conflict: data has been updated by another session "
                f"(expected v{expected_version}, current v{current_version})."
            )
        )


class TransientError(ActionMapError):
    """Raised for retryable failures (network, timeout, busy store)."""
    pass


class InvalidOperationError(ActionMapError):
    """Raised when an operation is not allowed in the current state."""
    pass


class InvalidTransitionError(InvalidOperationError):
    """Raised when an edit session trigger is not allowed in its current state."""

    def __init__(self, from_state: str, trigger: str, entity_id: str = "") -> None:
        self.from_state = from_state
        self.trigger = trigger
        self.entity_id = entity_id
        super().__init__(
            f"Invalid transition: cannot {trigger} from {from_state}"
            + (f" (entity: {entity_id})" if entity_id else "")
        )


class StorageError(ActionMapError):
    """Raised when the reference store cannot read or write its files."""
    pass


class ConfigurationError(ActionMapError):
    """Raised when a configuration key or value is rejected."""
    pass
