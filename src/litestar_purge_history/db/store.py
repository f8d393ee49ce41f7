"""SQLAlchemy implementation of the orchestration store client.

This module provides a store that satisfies
:class:`~litestar_purge_history.core.protocols.OrchestrationStoreClient`
on top of the instance and history tables, using an async SQLAlchemy session.
"""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from litestar_purge_history.core.models import OrchestrationInstance, PurgeResult
from litestar_purge_history.db.repositories import OrchestrationHistoryRepository, OrchestrationInstanceRepository
from litestar_purge_history.exceptions import BulkPurgeError, InstanceFetchError, InstancePurgeError, StoreError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncSession

    from litestar_purge_history.core.models import PurgeFilter
    from litestar_purge_history.db.models import OrchestrationInstanceModel

__all__ = ["SQLAlchemyOrchestrationStore"]


class SQLAlchemyOrchestrationStore:
    """Orchestration store backed by a relational database.

    Purges delete the history events of the affected instances first, then the
    instance rows, and commit. A failed purge rolls the session back and raises
    a :class:`~litestar_purge_history.exceptions.StoreError` subtype.

    Attributes:
        session: SQLAlchemy async session for database operations.
        page_size: Number of instances fetched per query page.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        task_hub: str = "default",
        page_size: int = 100,
    ) -> None:
        """Initialize the store.

        Args:
            session: SQLAlchemy async session.
            task_hub: Name of the task hub this store serves.
            page_size: Number of instances fetched per query page.
        """
        self.session = session
        self.page_size = page_size
        self._task_hub = task_hub

        self._instance_repo = OrchestrationInstanceRepository(session=session)
        self._history_repo = OrchestrationHistoryRepository(session=session)

    @property
    def name(self) -> str:
        """Name of the task hub this store serves."""
        return self._task_hub

    async def query_instances(self, purge_filter: PurgeFilter) -> AsyncIterator[OrchestrationInstance]:
        """Stream the instances matching a filter, one page at a time.

        Each page is converted to snapshots before anything is yielded, so the
        caller may purge (and commit) while iterating.

        Args:
            purge_filter: Creation window and statuses to match.

        Yields:
            Matching instances ordered by creation time, then instance ID.

        Raises:
            StoreError: If a page cannot be loaded.
        """
        after = None
        while True:
            try:
                rows = await self._instance_repo.page_after(purge_filter, after=after, limit=self.page_size)
            except SQLAlchemyError as e:
                await self.session.rollback()
                raise StoreError("query_instances", e, detail=purge_filter.describe()) from e

            page = [self._to_instance(row) for row in rows]
            for instance in page:
                yield instance

            if len(page) < self.page_size:
                return
            after = (page[-1].created_at, page[-1].instance_id)

    async def purge_all_instances(self, purge_filter: PurgeFilter) -> PurgeResult:
        """Purge every instance matching a filter in one transaction.

        Args:
            purge_filter: Creation window and statuses to match.

        Returns:
            The number of purged instances.

        Raises:
            BulkPurgeError: If the purge cannot complete.
        """
        try:
            await self._history_repo.delete_for_instances(self._instance_repo.select_instance_ids(purge_filter))
            purged = await self._instance_repo.delete_matching(purge_filter)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise BulkPurgeError(purge_filter, e) from e
        return PurgeResult(purged_instance_count=purged)

    async def purge_instance(self, instance_id: str) -> PurgeResult:
        """Purge the history and state of one instance.

        Args:
            instance_id: The instance to purge.

        Returns:
            The number of purged instances (0 if it no longer exists).

        Raises:
            InstancePurgeError: If the purge cannot complete.
        """
        try:
            await self._history_repo.delete_for_instances([instance_id])
            purged = await self._instance_repo.delete_by_instance_id(instance_id)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise InstancePurgeError(instance_id, e) from e
        return PurgeResult(purged_instance_count=purged)

    async def get_instance(self, instance_id: str, *, force_refresh: bool = False) -> OrchestrationInstance | None:
        """Fetch one instance by ID.

        Args:
            instance_id: The instance to fetch.
            force_refresh: Re-read the row even if the session already holds
                it, and include the input, output, custom status and failure
                details in the snapshot.

        Returns:
            The instance, or None if it does not exist.

        Raises:
            InstanceFetchError: If the instance cannot be loaded.
        """
        try:
            row = await self._instance_repo.get_by_instance_id(instance_id, populate_existing=force_refresh)
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise InstanceFetchError(instance_id, e) from e

        if row is None:
            return None
        return self._to_instance(row, include_payloads=force_refresh)

    @staticmethod
    def _to_instance(row: OrchestrationInstanceModel, *, include_payloads: bool = False) -> OrchestrationInstance:
        instance = OrchestrationInstance(
            instance_id=row.instance_id,
            name=row.name,
            runtime_status=row.runtime_status,
            created_at=row.created_time,
            last_updated_at=row.last_updated_time,
        )
        if not include_payloads:
            return instance

        return replace(
            instance,
            serialized_input=row.input,
            serialized_output=row.output,
            serialized_custom_status=row.custom_status,
            failure_details=row.failure_details,
        )
