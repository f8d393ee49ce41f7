"""Repository implementations for the orchestration store.

This module provides async repositories over the instance and history tables
using advanced-alchemy's repository pattern.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from advanced_alchemy.repository import SQLAlchemyAsyncRepository
from sqlalchemy import and_, delete, or_, select

from litestar_purge_history.db.models import OrchestrationHistoryModel, OrchestrationInstanceModel

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from sqlalchemy import ColumnElement, Select

    from litestar_purge_history.core.models import PurgeFilter

__all__ = [
    "OrchestrationHistoryRepository",
    "OrchestrationInstanceRepository",
]


class OrchestrationInstanceRepository(SQLAlchemyAsyncRepository[OrchestrationInstanceModel]):
    """Repository for orchestration instance queries and deletes.

    Provides keyset-paged filtering by creation window and status, lookup by
    runtime instance ID and bulk deletion.
    """

    model_type = OrchestrationInstanceModel

    @staticmethod
    def filter_conditions(purge_filter: PurgeFilter) -> list[ColumnElement[bool]]:
        """Translate a purge filter into SQL conditions.

        Args:
            purge_filter: Creation window and statuses to match.

        Returns:
            Conditions selecting the same instances as ``purge_filter.matches``.
        """
        return [
            OrchestrationInstanceModel.runtime_status.in_(sorted(purge_filter.statuses)),
            OrchestrationInstanceModel.created_time >= purge_filter.created_from,
            OrchestrationInstanceModel.created_time < purge_filter.created_to,
        ]

    def select_instance_ids(self, purge_filter: PurgeFilter) -> Select[Any]:
        """Build a sub-select of the instance IDs matching a filter."""
        return select(OrchestrationInstanceModel.instance_id).where(and_(*self.filter_conditions(purge_filter)))

    async def page_after(
        self,
        purge_filter: PurgeFilter,
        after: tuple[datetime, str] | None = None,
        limit: int = 100,
    ) -> Sequence[OrchestrationInstanceModel]:
        """Get the next page of instances matching a filter.

        Pages are keyed on ``(created_time, instance_id)`` instead of an offset,
        so rows deleted while paging never shift later rows out of view.

        Args:
            purge_filter: Creation window and statuses to match.
            after: The ``(created_time, instance_id)`` of the last row of the previous page.
            limit: Maximum number of rows to return.

        Returns:
            Up to ``limit`` instances ordered by creation time, then instance ID.
        """
        conditions = self.filter_conditions(purge_filter)

        if after is not None:
            last_created, last_instance_id = after
            conditions.append(
                or_(
                    OrchestrationInstanceModel.created_time > last_created,
                    and_(
                        OrchestrationInstanceModel.created_time == last_created,
                        OrchestrationInstanceModel.instance_id > last_instance_id,
                    ),
                )
            )

        stmt = (
            select(OrchestrationInstanceModel)
            .where(and_(*conditions))
            .order_by(OrchestrationInstanceModel.created_time, OrchestrationInstanceModel.instance_id)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def get_by_instance_id(
        self,
        instance_id: str,
        *,
        populate_existing: bool = False,
    ) -> OrchestrationInstanceModel | None:
        """Get an instance by its runtime instance ID.

        Args:
            instance_id: The runtime instance ID.
            populate_existing: Overwrite any copy already held by the session
                with the current database row.

        Returns:
            The instance or None if not found.
        """
        stmt = select(OrchestrationInstanceModel).where(OrchestrationInstanceModel.instance_id == instance_id)
        if populate_existing:
            stmt = stmt.execution_options(populate_existing=True)

        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def delete_matching(self, purge_filter: PurgeFilter) -> int:
        """Delete every instance matching a filter.

        Args:
            purge_filter: Creation window and statuses to match.

        Returns:
            The number of deleted instances.
        """
        stmt = (
            delete(OrchestrationInstanceModel)
            .where(and_(*self.filter_conditions(purge_filter)))
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0

    async def delete_by_instance_id(self, instance_id: str) -> int:
        """Delete one instance by its runtime instance ID.

        Args:
            instance_id: The runtime instance ID.

        Returns:
            The number of deleted instances (0 or 1).
        """
        stmt = (
            delete(OrchestrationInstanceModel)
            .where(OrchestrationInstanceModel.instance_id == instance_id)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0


class OrchestrationHistoryRepository(SQLAlchemyAsyncRepository[OrchestrationHistoryModel]):
    """Repository for orchestration history events."""

    model_type = OrchestrationHistoryModel

    async def delete_for_instances(self, instance_ids: Select[Any] | Sequence[str]) -> int:
        """Delete the history events of several instances.

        Args:
            instance_ids: A sub-select or a sequence of runtime instance IDs.

        Returns:
            The number of deleted history events.
        """
        stmt = (
            delete(OrchestrationHistoryModel)
            .where(OrchestrationHistoryModel.instance_id.in_(instance_ids))
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0
