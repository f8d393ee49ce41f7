"""Concrete data models for litestar-purge-history.

This module provides the immutable value objects that flow between the purge
job and the orchestration store: instance snapshots, purge filters, purge
results and the per-instance outcomes collected while remediating.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, TypeAlias

from litestar_purge_history.core.types import OrchestrationRuntimeStatus, OutcomeStatus

__all__ = [
    "BucketReport",
    "BulkPurgeFailed",
    "BulkPurgeOutcome",
    "BulkPurgeSucceeded",
    "InstanceOutcome",
    "OrchestrationInstance",
    "PurgeFilter",
    "PurgeResult",
]

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


@dataclass(frozen=True)
class OrchestrationInstance:
    """Snapshot of one orchestration instance as returned by the store.

    Attributes:
        instance_id: Unique identifier of the orchestration instance.
        name: Name of the workflow type the instance executes.
        runtime_status: Lifecycle state of the instance.
        created_at: When the instance was created.
        last_updated_at: When the instance state last changed.
        serialized_input: Serialized orchestration input, only set on a refreshed fetch.
        serialized_output: Serialized orchestration output, only set on a refreshed fetch.
        serialized_custom_status: Serialized custom status, only set on a refreshed fetch.
        failure_details: Failure message of a failed instance, only set on a refreshed fetch.
    """

    instance_id: str
    name: str
    runtime_status: OrchestrationRuntimeStatus
    created_at: datetime
    last_updated_at: datetime | None = None
    serialized_input: str | None = None
    serialized_output: str | None = None
    serialized_custom_status: str | None = None
    failure_details: str | None = None


@dataclass(frozen=True)
class PurgeFilter:
    """Creation-time window and runtime statuses selecting instances to purge.

    The window is half open: an instance matches when
    ``created_from <= created_at < created_to`` and its status is in ``statuses``.
    The same filter value is used for querying and for bulk purging so both
    calls describe the same logical set of instances.

    Attributes:
        created_from: Inclusive lower bound of the creation time.
        created_to: Exclusive upper bound of the creation time.
        statuses: Runtime statuses to match.
    """

    created_from: datetime
    created_to: datetime
    statuses: frozenset[OrchestrationRuntimeStatus]

    def __post_init__(self) -> None:
        if not self.statuses:
            msg = "PurgeFilter requires at least one runtime status"
            raise ValueError(msg)
        if self.created_from >= self.created_to:
            msg = f"PurgeFilter window is empty: {self.created_from} >= {self.created_to}"
            raise ValueError(msg)

    @classmethod
    def for_lookback(
        cls,
        window: timedelta,
        statuses: Iterable[OrchestrationRuntimeStatus],
        now: datetime | None = None,
    ) -> PurgeFilter:
        """Build a filter covering ``[now - window, now)``.

        Args:
            window: How far back the filter reaches.
            statuses: Runtime statuses to match.
            now: The upper bound of the window. Defaults to the current UTC time.

        Returns:
            A new PurgeFilter.
        """
        created_to = now or datetime.now(timezone.utc)
        return cls(
            created_from=created_to - window,
            created_to=created_to,
            statuses=frozenset(statuses),
        )

    def matches(self, instance: OrchestrationInstance) -> bool:
        """Check whether an instance falls inside this filter.

        Args:
            instance: The instance to check.

        Returns:
            True if the instance status and creation time match.
        """
        return (
            instance.runtime_status in self.statuses
            and self.created_from <= instance.created_at < self.created_to
        )

    def sorted_statuses(self) -> list[str]:
        """Return the statuses as a sorted list of strings, for logging."""
        return sorted(str(status) for status in self.statuses)

    def describe(self) -> str:
        """Render the filter as a short human readable string."""
        return (
            f"statuses={','.join(self.sorted_statuses())} "
            f"created between {self.created_from.strftime(TIMESTAMP_FORMAT)} "
            f"and {self.created_to.strftime(TIMESTAMP_FORMAT)}"
        )


@dataclass(frozen=True)
class PurgeResult:
    """Number of instances a purge operation removed.

    Attributes:
        purged_instance_count: How many instances were deleted.
    """

    purged_instance_count: int


@dataclass(frozen=True)
class BulkPurgeSucceeded:
    """The bulk purge completed and reported a purged count."""

    purged_instance_count: int


@dataclass(frozen=True)
class BulkPurgeFailed:
    """The bulk purge raised; the caller must fall back to per-instance purging."""

    error: Exception


BulkPurgeOutcome: TypeAlias = BulkPurgeSucceeded | BulkPurgeFailed
"""Result of attempting a bulk purge."""


@dataclass(frozen=True)
class InstanceOutcome:
    """What happened to a single instance while a bucket was processed.

    Attributes:
        instance_id: The processed instance.
        status: Whether the instance was purged, skipped or failed.
        reason: Short explanation for skipped or failed instances.
        error: The exception raised for failed instances.
    """

    instance_id: str
    status: OutcomeStatus
    reason: str | None = None
    error: Exception | None = None

    @classmethod
    def purged(cls, instance_id: str) -> InstanceOutcome:
        return cls(instance_id=instance_id, status=OutcomeStatus.PURGED)

    @classmethod
    def skipped(cls, instance_id: str, reason: str) -> InstanceOutcome:
        return cls(instance_id=instance_id, status=OutcomeStatus.SKIPPED, reason=reason)

    @classmethod
    def failed(cls, instance_id: str, error: Exception) -> InstanceOutcome:
        return cls(
            instance_id=instance_id,
            status=OutcomeStatus.FAILED,
            reason=f"{type(error).__name__}: {error}",
            error=error,
        )


@dataclass
class BucketReport:
    """Outcomes collected while draining one classification bucket.

    Attributes:
        bucket: Name of the bucket (``requeue`` or ``delete``).
        outcomes: Per-instance outcomes in processing order.
    """

    bucket: str
    outcomes: list[InstanceOutcome] = field(default_factory=list)

    def add(self, outcome: InstanceOutcome) -> None:
        self.outcomes.append(outcome)

    def _with_status(self, status: OutcomeStatus) -> list[InstanceOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status == status]

    @property
    def purged(self) -> list[InstanceOutcome]:
        return self._with_status(OutcomeStatus.PURGED)

    @property
    def skipped(self) -> list[InstanceOutcome]:
        return self._with_status(OutcomeStatus.SKIPPED)

    @property
    def failed(self) -> list[InstanceOutcome]:
        return self._with_status(OutcomeStatus.FAILED)

    def summary(self) -> dict[str, Any]:
        """Summarize the bucket for the end-of-bucket log line.

        Returns:
            Counts per outcome plus the IDs of failed instances.
        """
        return {
            "bucket": self.bucket,
            "total": len(self.outcomes),
            "purged": len(self.purged),
            "skipped": len(self.skipped),
            "failed": len(self.failed),
            "failed_instance_ids": [outcome.instance_id for outcome in self.failed],
        }
