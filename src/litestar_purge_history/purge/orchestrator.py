"""Purge orchestrator for stale orchestration instances.

One purge cycle runs two sub-flows, always in this order:

1. Completed-instance clearing: a bulk purge of completed instances created
   within the lookback window, falling back to purging them one by one when
   the bulk purge fails.
2. Failed-instance remediation: failed and terminated instances are split into
   a re-queue bucket (the primary workflow, refreshed before purging) and a
   delete bucket (purged directly). Each instance is processed in isolation so
   one bad instance never stops the rest of the pass.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING
from uuid import uuid4

import structlog

from litestar_purge_history.core.models import (
    TIMESTAMP_FORMAT,
    BucketReport,
    BulkPurgeFailed,
    BulkPurgeSucceeded,
    InstanceOutcome,
    PurgeFilter,
)
from litestar_purge_history.core.types import OrchestrationRuntimeStatus
from litestar_purge_history.log import get_logger
from litestar_purge_history.purge.classification import classify_instances

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from litestar_purge_history.config import PurgeHistoryConfig
    from litestar_purge_history.core.models import BulkPurgeOutcome
    from litestar_purge_history.core.protocols import OrchestrationStoreClient
    from litestar_purge_history.core.types import Clock

__all__ = ["COMPLETED_STATUSES", "FAILED_STATUSES", "PurgeOrchestrator"]

logger = get_logger(__name__)

COMPLETED_STATUSES = frozenset({OrchestrationRuntimeStatus.COMPLETED})
FAILED_STATUSES = frozenset({OrchestrationRuntimeStatus.FAILED, OrchestrationRuntimeStatus.TERMINATED})

REQUEUE_BUCKET = "requeue"
DELETE_BUCKET = "delete"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PurgeOrchestrator:
    """Runs purge cycles against an orchestration store.

    The orchestrator holds no state between cycles. The lookback window is
    recomputed from the clock at the start of every sub-flow. It assumes the
    caller never runs two cycles concurrently against the same store.

    Attributes:
        store: The orchestration store to query and purge.
        config: Purge job configuration.

    Example:
        >>> orchestrator = PurgeOrchestrator(store, PurgeHistoryConfig())
        >>> await orchestrator.run_cycle()
    """

    JOB_NAME = "PurgeHistoryTimer"

    def __init__(
        self,
        store: OrchestrationStoreClient,
        config: PurgeHistoryConfig,
        *,
        clock: Clock | None = None,
    ) -> None:
        """Initialize the purge orchestrator.

        Args:
            store: The orchestration store to query and purge.
            config: Purge job configuration.
            clock: Returns the current aware UTC time. Defaults to the system clock.
        """
        self.store = store
        self.config = config
        self._clock = clock or _utcnow

    def build_filter(self, statuses: Iterable[OrchestrationRuntimeStatus]) -> PurgeFilter:
        """Build a filter covering the lookback window ending now.

        Args:
            statuses: Runtime statuses to match.

        Returns:
            A PurgeFilter for ``[now - lookback_window, now)``.
        """
        return PurgeFilter.for_lookback(self.config.lookback_window, statuses, now=self._clock())

    async def run_cycle(self) -> None:
        """Run one purge cycle: clear completed instances, then remediate failed ones.

        Raises:
            Exception: Any error escaping a sub-flow is logged and re-raised
                unchanged so the scheduler can apply its own failure policy.
        """
        with structlog.contextvars.bound_contextvars(cycle_id=uuid4().hex, job=self.JOB_NAME):
            logger.info("purge_cycle_started", task_hub=self.store.name)
            try:
                completed_count = await self.clear_completed()
                requeue_report, delete_report = await self.purge_failed()
            except Exception as e:
                logger.error(
                    "purge_cycle_failed",
                    function=self.JOB_NAME,
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=e,
                )
                raise

            logger.info(
                "purge_cycle_completed",
                completed_purged=completed_count,
                requeue_purged=len(requeue_report.purged),
                delete_purged=len(delete_report.purged),
                skipped=len(requeue_report.skipped) + len(delete_report.skipped),
                failed=len(requeue_report.failed) + len(delete_report.failed),
            )

    # -------------------------------------------------------------------------
    # Completed-instance clearing
    # -------------------------------------------------------------------------

    async def clear_completed(self) -> int:
        """Purge completed instances created within the lookback window.

        A bulk purge is tried first. If it fails, the same filter is used to
        query the instances and purge them one by one.

        Returns:
            The number of purged instances.

        Raises:
            Exception: Any error raised while purging one by one.
        """
        purge_filter = self.build_filter(COMPLETED_STATUSES)
        outcome = await self.try_bulk_purge(purge_filter)

        if isinstance(outcome, BulkPurgeSucceeded):
            return outcome.purged_instance_count

        logger.error(
            "bulk_purge_failed",
            function="purge_all_instances",
            error=str(outcome.error),
            error_type=type(outcome.error).__name__,
            exc_info=outcome.error,
        )
        return await self.purge_one_by_one(purge_filter)

    async def try_bulk_purge(self, purge_filter: PurgeFilter) -> BulkPurgeOutcome:
        """Attempt a bulk purge and report the result as data.

        Args:
            purge_filter: The instances to purge.

        Returns:
            BulkPurgeSucceeded with the purged count, or BulkPurgeFailed with the error.
        """
        store_type = type(self.store)
        logger.info(
            "bulk_purge_started",
            task_hub=self.store.name,
            statuses=purge_filter.sorted_statuses(),
            created_from=purge_filter.created_from.strftime(TIMESTAMP_FORMAT),
            created_to=purge_filter.created_to.strftime(TIMESTAMP_FORMAT),
            client_type=f"{store_type.__module__}.{store_type.__qualname__}",
        )

        try:
            result = await self.store.purge_all_instances(purge_filter)
        except Exception as e:
            return BulkPurgeFailed(error=e)

        logger.info("bulk_purge_completed", purged_instance_count=result.purged_instance_count)
        return BulkPurgeSucceeded(purged_instance_count=result.purged_instance_count)

    async def purge_one_by_one(self, purge_filter: PurgeFilter) -> int:
        """Query the instances matching a filter and purge each of them in turn.

        Errors are not isolated here: the first failing purge aborts the pass.

        Args:
            purge_filter: The filter the failed bulk purge was issued with.

        Returns:
            The number of purged instances.
        """
        logger.info("purge_one_by_one_started", reason="bulk purge failed", filter=purge_filter.describe())

        purged = 0
        async for instance in self.store.query_instances(purge_filter):
            logger.info("instance_purging", instance_id=instance.instance_id, name=instance.name)
            result = await self.store.purge_instance(instance.instance_id)
            purged += result.purged_instance_count
            logger.info("instance_purged", instance_id=instance.instance_id, name=instance.name)

        logger.info("purge_one_by_one_completed", purged_instance_count=purged)
        return purged

    # -------------------------------------------------------------------------
    # Failed-instance remediation
    # -------------------------------------------------------------------------

    async def purge_failed(self) -> tuple[BucketReport, BucketReport]:
        """Remediate failed and terminated instances created within the lookback window.

        Instances of the primary workflow are fetched with a forced refresh
        before they are purged; all other instances are fetched and purged
        directly. The whole re-queue bucket is processed before the delete
        bucket.

        Returns:
            The reports of the re-queue and the delete bucket.
        """
        purge_filter = self.build_filter(FAILED_STATUSES)
        classified = await classify_instances(
            self.store.query_instances(purge_filter),
            self.config.primary_workflow_name,
        )
        logger.info(
            "failed_instances_classified",
            primary_workflow=self.config.primary_workflow_name,
            requeue=len(classified.requeue),
            delete=len(classified.delete),
        )

        requeue_report = await self.process_bucket(REQUEUE_BUCKET, classified.requeue, force_refresh=True)
        delete_report = await self.process_bucket(DELETE_BUCKET, classified.delete, force_refresh=False)
        return requeue_report, delete_report

    async def process_bucket(
        self,
        bucket: str,
        instance_ids: Sequence[str],
        *,
        force_refresh: bool,
    ) -> BucketReport:
        """Fetch and purge every instance of a bucket, isolating per-instance failures.

        Args:
            bucket: Name of the bucket, used in logs and the report.
            instance_ids: Instances to process, in order.
            force_refresh: Whether each instance is fetched with a forced state refresh.

        Returns:
            The outcome of every instance, in processing order.
        """
        report = BucketReport(bucket=bucket)
        for instance_id in instance_ids:
            report.add(await self.remediate_instance(instance_id, force_refresh=force_refresh))

        summary = report.summary()
        if report.failed:
            logger.warning("bucket_processed", **summary)
        else:
            logger.info("bucket_processed", **summary)
        return report

    async def remediate_instance(self, instance_id: str, *, force_refresh: bool) -> InstanceOutcome:
        """Fetch one instance and purge it if it still exists.

        Args:
            instance_id: The instance to process.
            force_refresh: Whether the instance is fetched with a forced state refresh.

        Returns:
            PURGED, SKIPPED when the instance could not be retrieved, or FAILED
            when fetching or purging raised.
        """
        try:
            instance = await self.store.get_instance(instance_id, force_refresh=force_refresh)
            if instance is None:
                logger.warning(
                    "instance_not_found",
                    instance_id=instance_id,
                    message="The orchestration instance could not be retrieved. The instance will not be purged.",
                )
                return InstanceOutcome.skipped(instance_id, "instance could not be retrieved")

            result = await self.store.purge_instance(instance.instance_id)
        except Exception as e:
            logger.error(
                "instance_purge_failed",
                instance_id=instance_id,
                force_refresh=force_refresh,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=e,
            )
            return InstanceOutcome.failed(instance_id, e)

        if result.purged_instance_count == 0:
            logger.warning("instance_already_purged", instance_id=instance_id, name=instance.name)
            return InstanceOutcome.skipped(instance_id, "instance was already purged")

        logger.info(
            "instance_purged",
            instance_id=instance.instance_id,
            name=instance.name,
            status=str(instance.runtime_status),
        )
        return InstanceOutcome.purged(instance_id)
