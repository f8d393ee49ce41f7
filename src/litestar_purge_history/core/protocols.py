"""Core protocols for litestar-purge-history.

This module defines the Protocol-based interface of the orchestration store the
purge job consumes. Using Protocol allows any backend (the bundled SQLAlchemy
store, a durable task runtime client, a test double) to be plugged in without
inheriting from a common base class.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from litestar_purge_history.core.models import OrchestrationInstance, PurgeFilter, PurgeResult


__all__ = ["OrchestrationStoreClient"]


@runtime_checkable
class OrchestrationStoreClient(Protocol):
    """Protocol defining the query and purge capability of an orchestration store.

    Attributes:
        name: Name of the task hub the client is bound to.

    Example:
        >>> class MyStore:
        ...     name = "my-hub"
        ...
        ...     async def query_instances(self, purge_filter):
        ...         for instance in await load(purge_filter):
        ...             yield instance
        ...
        ...     async def purge_all_instances(self, purge_filter):
        ...         return PurgeResult(await delete_all(purge_filter))
        ...
        ...     async def purge_instance(self, instance_id):
        ...         return PurgeResult(await delete_one(instance_id))
        ...
        ...     async def get_instance(self, instance_id, *, force_refresh=False):
        ...         return await load_one(instance_id, force_refresh)
    """

    name: str

    def query_instances(self, purge_filter: PurgeFilter) -> AsyncIterator[OrchestrationInstance]:
        """Stream the instances matching a filter.

        The returned iterator is lazy, forward only and cannot be restarted.
        Instances are yielded ordered by creation time, then instance ID, and
        pages are fetched from the backend transparently.

        Args:
            purge_filter: Creation window and statuses to match.

        Returns:
            An async iterator of matching instances.
        """
        ...

    async def purge_all_instances(self, purge_filter: PurgeFilter) -> PurgeResult:
        """Purge every instance matching a filter in one operation.

        Args:
            purge_filter: Creation window and statuses to match.

        Returns:
            The number of purged instances.

        Raises:
            StoreError: If the operation cannot complete.
        """
        ...

    async def purge_instance(self, instance_id: str) -> PurgeResult:
        """Purge the history and state of one instance.

        Args:
            instance_id: The instance to purge.

        Returns:
            The number of purged instances (0 if it no longer exists).

        Raises:
            StoreError: If the operation cannot complete.
        """
        ...

    async def get_instance(self, instance_id: str, *, force_refresh: bool = False) -> OrchestrationInstance | None:
        """Fetch one instance by ID.

        Args:
            instance_id: The instance to fetch.
            force_refresh: Re-read the instance state from the backend,
                including its payloads, instead of using any cached metadata.

        Returns:
            The instance, or None if it does not exist.
        """
        ...
