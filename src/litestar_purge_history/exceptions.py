"""Exception hierarchy for litestar-purge-history."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from litestar_purge_history.core.models import PurgeFilter

__all__ = (
    "BulkPurgeError",
    "ConfigurationError",
    "InstanceFetchError",
    "InstancePurgeError",
    "PurgeHistoryError",
    "StoreError",
)


class PurgeHistoryError(Exception):
    """Base exception for all litestar-purge-history errors.

    All exceptions raised by litestar-purge-history should inherit from this class.
    This allows callers to catch all purge-related errors with a single except clause.
    """


class ConfigurationError(PurgeHistoryError):
    """Raised when the purge job configuration is invalid.

    Attributes:
        field: The name of the offending configuration field.
    """

    def __init__(self, field: str, reason: str) -> None:
        """Initialize the exception with the invalid field.

        Args:
            field: The name of the offending configuration field.
            reason: Why the value was rejected.
        """
        self.field = field
        super().__init__(f"Invalid configuration for '{field}': {reason}")


class StoreError(PurgeHistoryError):
    """Raised when an orchestration store operation cannot complete.

    This wraps the backend exception that caused the failure, providing
    context about which store operation failed.

    Attributes:
        operation: The name of the store operation that failed.
        cause: The underlying exception, if any.
    """

    def __init__(self, operation: str, cause: Exception | None = None, detail: str | None = None) -> None:
        """Initialize the exception with store operation details.

        Args:
            operation: The name of the store operation that failed.
            cause: The underlying exception, if any.
            detail: Additional context appended to the message.
        """
        self.operation = operation
        self.cause = cause
        msg = f"Store operation '{operation}' failed"
        if detail:
            msg += f" ({detail})"
        if cause:
            msg += f": {cause}"
        super().__init__(msg)


class BulkPurgeError(StoreError):
    """Raised when a bulk purge of all matching instances fails.

    Attributes:
        purge_filter: The filter the bulk purge was issued with.
    """

    def __init__(self, purge_filter: PurgeFilter, cause: Exception | None = None) -> None:
        """Initialize the exception with the bulk purge filter.

        Args:
            purge_filter: The filter the bulk purge was issued with.
            cause: The underlying exception, if any.
        """
        self.purge_filter = purge_filter
        super().__init__("purge_all_instances", cause, detail=purge_filter.describe())


class InstancePurgeError(StoreError):
    """Raised when purging a single orchestration instance fails.

    Attributes:
        instance_id: The ID of the instance that could not be purged.
    """

    def __init__(self, instance_id: str, cause: Exception | None = None) -> None:
        """Initialize the exception with instance details.

        Args:
            instance_id: The ID of the instance that could not be purged.
            cause: The underlying exception, if any.
        """
        self.instance_id = instance_id
        super().__init__("purge_instance", cause, detail=f"instance '{instance_id}'")


class InstanceFetchError(StoreError):
    """Raised when fetching a single orchestration instance fails.

    Attributes:
        instance_id: The ID of the instance that could not be fetched.
    """

    def __init__(self, instance_id: str, cause: Exception | None = None) -> None:
        """Initialize the exception with instance details.

        Args:
            instance_id: The ID of the instance that could not be fetched.
            cause: The underlying exception, if any.
        """
        self.instance_id = instance_id
        super().__init__("get_instance", cause, detail=f"instance '{instance_id}'")
