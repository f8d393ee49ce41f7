"""Tests for the purge orchestrator."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest
from conftest import NOW, PRIMARY_WORKFLOW, FakeOrchestrationStore, fixed_clock, make_instance
from structlog.testing import capture_logs

from litestar_purge_history.config import PurgeHistoryConfig
from litestar_purge_history.core.models import BulkPurgeFailed, BulkPurgeSucceeded, PurgeResult
from litestar_purge_history.core.types import OrchestrationRuntimeStatus, OutcomeStatus
from litestar_purge_history.exceptions import BulkPurgeError, InstancePurgeError, StoreError
from litestar_purge_history.purge.orchestrator import COMPLETED_STATUSES, FAILED_STATUSES, PurgeOrchestrator

COMPLETED = OrchestrationRuntimeStatus.COMPLETED
FAILED = OrchestrationRuntimeStatus.FAILED
TERMINATED = OrchestrationRuntimeStatus.TERMINATED
RUNNING = OrchestrationRuntimeStatus.RUNNING


def make_orchestrator(store: FakeOrchestrationStore, config: PurgeHistoryConfig) -> PurgeOrchestrator:
    return PurgeOrchestrator(store, config, clock=fixed_clock)


@pytest.mark.unit
class TestBuildFilter:
    """Tests for the lookback window."""

    def test_window_spans_lookback(self, fake_store: FakeOrchestrationStore, purge_config: PurgeHistoryConfig) -> None:
        """Test the filter covers exactly the last 14 days."""
        purge_filter = make_orchestrator(fake_store, purge_config).build_filter(COMPLETED_STATUSES)

        assert purge_filter.created_to == NOW
        assert purge_filter.created_from == NOW - timedelta(days=14)
        assert purge_filter.statuses == frozenset({COMPLETED})

    def test_window_uses_configured_lookback(self, fake_store: FakeOrchestrationStore) -> None:
        """Test a custom lookback window is honoured."""
        config = PurgeHistoryConfig(lookback_window=timedelta(days=3))
        purge_filter = PurgeOrchestrator(fake_store, config, clock=fixed_clock).build_filter(FAILED_STATUSES)

        assert purge_filter.created_to - purge_filter.created_from == timedelta(days=3)

    @pytest.mark.asyncio
    async def test_window_recomputed_per_sub_flow(self, purge_config: PurgeHistoryConfig) -> None:
        """Test each sub-flow reads the clock again instead of reusing the first window."""
        times = iter([NOW, NOW + timedelta(minutes=5)])
        store = FakeOrchestrationStore()
        orchestrator = PurgeOrchestrator(store, purge_config, clock=lambda: next(times))

        await orchestrator.run_cycle()

        (_, bulk_filter), (_, query_filter) = store.calls_named("purge_all")[0], store.calls_named("query")[0]
        assert bulk_filter.created_to == NOW
        assert query_filter.created_to == NOW + timedelta(minutes=5)
        for purge_filter in (bulk_filter, query_filter):
            assert purge_filter.created_from == purge_filter.created_to - timedelta(days=14)


@pytest.mark.unit
@pytest.mark.asyncio
class TestClearCompleted:
    """Tests for completed-instance clearing."""

    async def test_bulk_purge_success(self, purge_config: PurgeHistoryConfig) -> None:
        """Test a successful bulk purge issues no per-instance purges."""
        store = FakeOrchestrationStore([make_instance("A", name="Primary", status=COMPLETED)])

        purged = await make_orchestrator(store, purge_config).clear_completed()

        assert purged == 1
        assert len(store.calls_named("purge_all")) == 1
        assert store.calls_named("purge_all")[0][1].statuses == frozenset({COMPLETED})
        assert store.calls_named("purge") == []
        assert store.calls_named("query") == []
        assert store.instances == {}

    async def test_bulk_purge_failure_falls_back_to_one_by_one(self, purge_config: PurgeHistoryConfig) -> None:
        """Test a failing bulk purge re-queries with the same filter and purges each instance in order."""
        store = FakeOrchestrationStore(
            [
                make_instance("C", age=timedelta(days=1)),
                make_instance("B", age=timedelta(days=2)),
            ]
        )
        store.bulk_purge_error = RuntimeError("table locked")

        purged = await make_orchestrator(store, purge_config).clear_completed()

        assert purged == 2
        assert store.calls_named("purge") == [("purge", "B"), ("purge", "C")]
        (_, bulk_filter), (_, query_filter) = store.calls_named("purge_all")[0], store.calls_named("query")[0]
        assert query_filter == bulk_filter

    async def test_fallback_leaves_other_statuses_alone(self, purge_config: PurgeHistoryConfig) -> None:
        """Test the fallback only purges completed instances inside the window."""
        store = FakeOrchestrationStore(
            [
                make_instance("done"),
                make_instance("old", age=timedelta(days=20)),
                make_instance("running", status=RUNNING),
                make_instance("failed", status=FAILED),
            ]
        )
        store.bulk_purge_error = RuntimeError("boom")

        await make_orchestrator(store, purge_config).clear_completed()

        assert store.calls_named("purge") == [("purge", "done")]
        assert set(store.instances) == {"old", "running", "failed"}

    async def test_fallback_purge_error_propagates(self, purge_config: PurgeHistoryConfig) -> None:
        """Test a per-instance failure during the fallback aborts the pass."""
        store = FakeOrchestrationStore(
            [
                make_instance("B", age=timedelta(days=3)),
                make_instance("C", age=timedelta(days=2)),
                make_instance("D", age=timedelta(days=1)),
            ]
        )
        store.bulk_purge_error = RuntimeError("boom")
        store.purge_errors["C"] = RuntimeError("row locked")

        with pytest.raises(InstancePurgeError) as exc_info:
            await make_orchestrator(store, purge_config).clear_completed()

        assert exc_info.value.instance_id == "C"
        assert store.calls_named("purge") == [("purge", "B"), ("purge", "C")]
        assert "D" in store.instances

    async def test_try_bulk_purge_returns_outcome(self, purge_config: PurgeHistoryConfig) -> None:
        """Test the bulk purge result is reported as data."""
        store = FakeOrchestrationStore([make_instance("A")])
        orchestrator = make_orchestrator(store, purge_config)
        purge_filter = orchestrator.build_filter(COMPLETED_STATUSES)

        assert await orchestrator.try_bulk_purge(purge_filter) == BulkPurgeSucceeded(purged_instance_count=1)

        store.bulk_purge_error = RuntimeError("boom")
        outcome = await orchestrator.try_bulk_purge(purge_filter)

        assert isinstance(outcome, BulkPurgeFailed)
        assert isinstance(outcome.error, BulkPurgeError)

    async def test_bulk_purge_logs_window(self, purge_config: PurgeHistoryConfig) -> None:
        """Test the bulk purge logs the task hub, statuses and window."""
        store = FakeOrchestrationStore()

        with capture_logs() as logs:
            await make_orchestrator(store, purge_config).clear_completed()

        started = next(entry for entry in logs if entry["event"] == "bulk_purge_started")
        assert started["task_hub"] == "test-hub"
        assert started["statuses"] == ["completed"]
        assert started["created_from"] == "2026-10-04T12:00:00Z"
        assert started["created_to"] == "2026-10-18T12:00:00Z"
        assert started["client_type"].endswith("FakeOrchestrationStore")
        completed = next(entry for entry in logs if entry["event"] == "bulk_purge_completed")
        assert completed["purged_instance_count"] == 0

    async def test_bulk_purge_failure_is_logged(self, purge_config: PurgeHistoryConfig) -> None:
        """Test a bulk purge failure is logged as an error before falling back."""
        store = FakeOrchestrationStore()
        store.bulk_purge_error = RuntimeError("boom")

        with capture_logs() as logs:
            await make_orchestrator(store, purge_config).clear_completed()

        events = [entry["event"] for entry in logs]
        assert events.index("bulk_purge_failed") < events.index("purge_one_by_one_started")
        failed = logs[events.index("bulk_purge_failed")]
        assert failed["log_level"] == "error"
        assert failed["error_type"] == "BulkPurgeError"


@pytest.mark.unit
@pytest.mark.asyncio
class TestPurgeFailed:
    """Tests for failed-instance remediation."""

    async def test_primary_requeued_other_deleted(self, purge_config: PurgeHistoryConfig) -> None:
        """Test primary instances are refreshed and purged before other instances."""
        store = FakeOrchestrationStore(
            [
                make_instance("Y", name="Other", status=FAILED, age=timedelta(days=2)),
                make_instance("X", name=PRIMARY_WORKFLOW, status=TERMINATED, age=timedelta(days=1)),
            ]
        )

        requeue, delete = await make_orchestrator(store, purge_config).purge_failed()

        # Y is older and queried first, but the re-queue bucket is drained first
        assert [call for call in store.calls if call[0] != "query"] == [
            ("get", "X", True),
            ("purge", "X"),
            ("get", "Y", False),
            ("purge", "Y"),
        ]
        assert [o.instance_id for o in requeue.purged] == ["X"]
        assert [o.instance_id for o in delete.purged] == ["Y"]
        assert store.instances == {}

    async def test_queries_failed_and_terminated_once(self, purge_config: PurgeHistoryConfig) -> None:
        """Test one query is issued for failed and terminated instances."""
        store = FakeOrchestrationStore()

        await make_orchestrator(store, purge_config).purge_failed()

        queries = store.calls_named("query")
        assert len(queries) == 1
        assert queries[0][1].statuses == frozenset({FAILED, TERMINATED})

    async def test_primary_match_is_case_insensitive(self, purge_config: PurgeHistoryConfig) -> None:
        """Test the primary workflow name is compared case-insensitively."""
        store = FakeOrchestrationStore([make_instance("X", name="ORCHESTRATOR", status=FAILED)])

        requeue, delete = await make_orchestrator(store, purge_config).purge_failed()

        assert store.calls_named("get") == [("get", "X", True)]
        assert len(requeue.outcomes) == 1
        assert delete.outcomes == []

    async def test_requeue_error_does_not_stop_bucket(self, purge_config: PurgeHistoryConfig) -> None:
        """Test a fetch error on one re-queue instance is isolated."""
        store = FakeOrchestrationStore(
            [
                make_instance("X", name=PRIMARY_WORKFLOW, status=FAILED, age=timedelta(days=2)),
                make_instance("Z", name=PRIMARY_WORKFLOW, status=FAILED, age=timedelta(days=1)),
            ]
        )
        store.fetch_errors["X"] = RuntimeError("timeout")

        requeue, _ = await make_orchestrator(store, purge_config).purge_failed()

        assert store.calls_named("get") == [("get", "X", True), ("get", "Z", True)]
        assert store.calls_named("purge") == [("purge", "Z")]
        assert [(o.instance_id, o.status) for o in requeue.outcomes] == [
            ("X", OutcomeStatus.FAILED),
            ("Z", OutcomeStatus.PURGED),
        ]
        assert "X" in store.instances

    async def test_delete_error_does_not_stop_bucket(self, purge_config: PurgeHistoryConfig) -> None:
        """Test purge errors in the delete bucket are isolated like the re-queue bucket."""
        store = FakeOrchestrationStore(
            [
                make_instance("Y1", status=FAILED, age=timedelta(days=3)),
                make_instance("Y2", status=TERMINATED, age=timedelta(days=2)),
                make_instance("Y3", status=FAILED, age=timedelta(days=1)),
            ]
        )
        store.purge_errors["Y2"] = RuntimeError("locked")

        _, delete = await make_orchestrator(store, purge_config).purge_failed()

        assert store.calls_named("purge") == [("purge", "Y1"), ("purge", "Y2"), ("purge", "Y3")]
        assert [o.instance_id for o in delete.failed] == ["Y2"]
        assert isinstance(delete.failed[0].error, InstancePurgeError)
        assert set(store.instances) == {"Y2"}

    async def test_missing_instance_is_skipped(self, purge_config: PurgeHistoryConfig) -> None:
        """Test an instance that cannot be retrieved is never purged."""
        store = FakeOrchestrationStore(
            [
                make_instance("X", name=PRIMARY_WORKFLOW, status=FAILED),
                make_instance("Y", status=FAILED),
            ]
        )
        store.missing = {"X", "Y"}

        with capture_logs() as logs:
            requeue, delete = await make_orchestrator(store, purge_config).purge_failed()

        assert store.calls_named("purge") == []
        assert [o.status for o in requeue.outcomes + delete.outcomes] == [OutcomeStatus.SKIPPED] * 2
        warnings = [entry for entry in logs if entry["event"] == "instance_not_found"]
        assert [entry["instance_id"] for entry in warnings] == ["X", "Y"]
        assert all(entry["log_level"] == "warning" for entry in warnings)

    async def test_already_purged_instance_is_skipped(self, purge_config: PurgeHistoryConfig) -> None:
        """Test a purge reporting zero instances is recorded as skipped."""
        store = FakeOrchestrationStore([make_instance("Y", status=FAILED)])
        orchestrator = make_orchestrator(store, purge_config)

        async def purge_nothing(instance_id: str):
            store.calls.append(("purge", instance_id))
            return PurgeResult(purged_instance_count=0)

        store.purge_instance = purge_nothing  # type: ignore[method-assign]

        _, delete = await orchestrator.purge_failed()

        assert delete.outcomes[0].status == OutcomeStatus.SKIPPED
        assert delete.outcomes[0].reason == "instance was already purged"

    async def test_bucket_summary_is_logged(self, purge_config: PurgeHistoryConfig) -> None:
        """Test each bucket logs a summary, at warning level when an instance failed."""
        store = FakeOrchestrationStore(
            [
                make_instance("X", name=PRIMARY_WORKFLOW, status=FAILED),
                make_instance("Y", status=FAILED),
            ]
        )
        store.fetch_errors["Y"] = RuntimeError("timeout")

        with capture_logs() as logs:
            await make_orchestrator(store, purge_config).purge_failed()

        summaries = [entry for entry in logs if entry["event"] == "bucket_processed"]
        assert [(s["bucket"], s["log_level"]) for s in summaries] == [("requeue", "info"), ("delete", "warning")]
        assert summaries[1]["failed_instance_ids"] == ["Y"]
        assert summaries[0]["purged"] == 1


@pytest.mark.unit
@pytest.mark.asyncio
class TestRunCycle:
    """Tests for the cycle driver."""

    async def test_runs_completed_then_failed(self, purge_config: PurgeHistoryConfig) -> None:
        """Test completed clearing always runs before failed remediation."""
        store = FakeOrchestrationStore(
            [
                make_instance("done", status=COMPLETED),
                make_instance("X", name=PRIMARY_WORKFLOW, status=FAILED),
                make_instance("live", status=RUNNING),
            ]
        )

        await make_orchestrator(store, purge_config).run_cycle()

        assert [call[0] for call in store.calls] == ["purge_all", "query", "get", "purge"]
        assert set(store.instances) == {"live"}

    async def test_returns_none(self, fake_store: FakeOrchestrationStore, purge_config: PurgeHistoryConfig) -> None:
        """Test the cycle produces no partial-success value."""
        assert await make_orchestrator(fake_store, purge_config).run_cycle() is None

    async def test_error_is_logged_and_reraised(self, purge_config: PurgeHistoryConfig) -> None:
        """Test an uncaught sub-flow error is logged with the job name and re-raised."""
        store = FakeOrchestrationStore([make_instance("B")])
        store.bulk_purge_error = RuntimeError("boom")
        store.purge_errors["B"] = RuntimeError("row locked")

        with capture_logs() as logs, pytest.raises(StoreError):
            await make_orchestrator(store, purge_config).run_cycle()

        failed = [entry for entry in logs if entry["event"] == "purge_cycle_failed"]
        assert len(failed) == 1
        assert failed[0]["function"] == PurgeOrchestrator.JOB_NAME
        assert failed[0]["log_level"] == "error"
        # the failed-instance flow never ran
        assert store.calls_named("get") == []

    async def test_skips_do_not_fail_cycle(self, purge_config: PurgeHistoryConfig) -> None:
        """Test isolated failures and skips still complete the cycle."""
        store = FakeOrchestrationStore(
            [
                make_instance("X", name=PRIMARY_WORKFLOW, status=FAILED),
                make_instance("Y", status=TERMINATED),
            ]
        )
        store.fetch_errors["X"] = RuntimeError("timeout")
        store.missing = {"Y"}

        with capture_logs() as logs:
            await make_orchestrator(store, purge_config).run_cycle()

        completed = next(entry for entry in logs if entry["event"] == "purge_cycle_completed")
        assert completed["failed"] == 1
        assert completed["skipped"] == 1

    async def test_cancellation_is_not_isolated(self, purge_config: PurgeHistoryConfig) -> None:
        """Test cancellation propagates instead of being recorded as a failed instance."""
        store = FakeOrchestrationStore([make_instance("X", name=PRIMARY_WORKFLOW, status=FAILED)])

        async def cancelled_get(instance_id: str, *, force_refresh: bool = False):
            raise asyncio.CancelledError

        store.get_instance = cancelled_get  # type: ignore[method-assign]

        with pytest.raises(asyncio.CancelledError):
            await make_orchestrator(store, purge_config).run_cycle()
