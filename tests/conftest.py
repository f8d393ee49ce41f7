"""Shared test fixtures for litestar-purge-history test suite."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

import pytest
import structlog

from litestar_purge_history.config import PurgeHistoryConfig
from litestar_purge_history.core.models import OrchestrationInstance, PurgeResult
from litestar_purge_history.core.types import OrchestrationRuntimeStatus
from litestar_purge_history.exceptions import BulkPurgeError, InstanceFetchError, InstancePurgeError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable, Iterator

    from litestar_purge_history.core.models import PurgeFilter


NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
"""Fixed "current time" used by the purge orchestrator in tests."""

PRIMARY_WORKFLOW = "Orchestrator"


def make_instance(
    instance_id: str,
    name: str = "Other",
    status: OrchestrationRuntimeStatus = OrchestrationRuntimeStatus.COMPLETED,
    age: timedelta = timedelta(days=3),
) -> OrchestrationInstance:
    """Create an instance snapshot created ``age`` before NOW.

    Args:
        instance_id: Instance identifier.
        name: Workflow type name.
        status: Runtime status.
        age: How long before NOW the instance was created.

    Returns:
        OrchestrationInstance instance
    """
    return OrchestrationInstance(
        instance_id=instance_id,
        name=name,
        runtime_status=status,
        created_at=NOW - age,
    )


class FakeOrchestrationStore:
    """Recording in-memory store for testing.

    Every call is appended to ``calls`` in order. Individual operations can be
    made to fail through ``bulk_purge_error``, ``purge_errors`` and
    ``fetch_errors``; ``missing`` lists IDs ``get_instance`` reports as absent.
    """

    def __init__(self, instances: Iterable[OrchestrationInstance] = (), name: str = "test-hub") -> None:
        """Initialize the fake store."""
        self.name = name
        self.instances: dict[str, OrchestrationInstance] = {i.instance_id: i for i in instances}
        self.calls: list[tuple[Any, ...]] = []
        self.bulk_purge_error: Exception | None = None
        self.purge_errors: dict[str, Exception] = {}
        self.fetch_errors: dict[str, Exception] = {}
        self.missing: set[str] = set()

    def _matching(self, purge_filter: PurgeFilter) -> list[OrchestrationInstance]:
        return sorted(
            (i for i in self.instances.values() if purge_filter.matches(i)),
            key=lambda i: (i.created_at, i.instance_id),
        )

    async def query_instances(self, purge_filter: PurgeFilter) -> AsyncIterator[OrchestrationInstance]:
        """Yield matching instances from a snapshot taken at call time."""
        self.calls.append(("query", purge_filter))
        for instance in self._matching(purge_filter):
            yield instance

    async def purge_all_instances(self, purge_filter: PurgeFilter) -> PurgeResult:
        """Purge every matching instance, or raise ``bulk_purge_error``."""
        self.calls.append(("purge_all", purge_filter))
        if self.bulk_purge_error is not None:
            raise BulkPurgeError(purge_filter, self.bulk_purge_error)
        matching = self._matching(purge_filter)
        for instance in matching:
            del self.instances[instance.instance_id]
        return PurgeResult(purged_instance_count=len(matching))

    async def purge_instance(self, instance_id: str) -> PurgeResult:
        """Purge one instance, or raise its configured error."""
        self.calls.append(("purge", instance_id))
        if instance_id in self.purge_errors:
            raise InstancePurgeError(instance_id, self.purge_errors[instance_id])
        removed = self.instances.pop(instance_id, None)
        return PurgeResult(purged_instance_count=1 if removed else 0)

    async def get_instance(self, instance_id: str, *, force_refresh: bool = False) -> OrchestrationInstance | None:
        """Return one instance, None when missing, or raise its configured error."""
        self.calls.append(("get", instance_id, force_refresh))
        if instance_id in self.fetch_errors:
            raise InstanceFetchError(instance_id, self.fetch_errors[instance_id])
        if instance_id in self.missing:
            return None
        return self.instances.get(instance_id)

    def calls_named(self, name: str) -> list[tuple[Any, ...]]:
        """Return the recorded calls of one operation, in order."""
        return [call for call in self.calls if call[0] == name]


@pytest.fixture(autouse=True)
def reset_structlog() -> Iterator[None]:
    """Restore structlog defaults so ``capture_logs`` sees every event."""
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


@pytest.fixture
def purge_config() -> PurgeHistoryConfig:
    """Create the purge configuration used by most tests.

    Returns:
        PurgeHistoryConfig instance
    """
    return PurgeHistoryConfig(primary_workflow_name=PRIMARY_WORKFLOW, page_size=2)


@pytest.fixture
def fake_store() -> FakeOrchestrationStore:
    """Create an empty fake store.

    Returns:
        FakeOrchestrationStore instance
    """
    return FakeOrchestrationStore()


def fixed_clock() -> datetime:
    return NOW


# Pytest configuration
def pytest_configure(config: Any) -> None:
    """Configure pytest with custom markers.

    Args:
        config: Pytest config object
    """
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests")
