"""Litestar Purge History - Scheduled purging of stale orchestration instances.

This package provides a maintenance job that removes stale records from a
durable orchestration store on a fixed schedule.

Key Features:
    - Bulk purge of completed instances with a one-by-one fallback
    - Remediation of failed and terminated instances, refreshing the primary
      workflow's instances before they are purged
    - Per-instance failure isolation with a summary per bucket
    - Protocol-based store client with a bundled SQLAlchemy store
    - APScheduler timer and a Litestar plugin to host it

Example:
    >>> from litestar_purge_history import PurgeHistoryConfig, PurgeOrchestrator
    >>>
    >>> orchestrator = PurgeOrchestrator(store, PurgeHistoryConfig(primary_workflow_name="Orchestrator"))
    >>> await orchestrator.run_cycle()
"""

from __future__ import annotations

from litestar_purge_history.__metadata__ import __project__, __version__
from litestar_purge_history.config import PurgeHistoryConfig
from litestar_purge_history.core import (
    BucketReport,
    BulkPurgeFailed,
    BulkPurgeOutcome,
    BulkPurgeSucceeded,
    InstanceOutcome,
    OrchestrationInstance,
    OrchestrationRuntimeStatus,
    OrchestrationStoreClient,
    OutcomeStatus,
    PurgeFilter,
    PurgeResult,
)
from litestar_purge_history.exceptions import (
    BulkPurgeError,
    ConfigurationError,
    InstanceFetchError,
    InstancePurgeError,
    PurgeHistoryError,
    StoreError,
)
from litestar_purge_history.plugin import PurgeHistoryPlugin, PurgeHistoryPluginConfig
from litestar_purge_history.purge import PurgeOrchestrator, classify_instances
from litestar_purge_history.timer import PurgeHistoryTimer

__all__ = (
    "BucketReport",
    "BulkPurgeError",
    "BulkPurgeFailed",
    "BulkPurgeOutcome",
    "BulkPurgeSucceeded",
    "ConfigurationError",
    "InstanceFetchError",
    "InstanceOutcome",
    "InstancePurgeError",
    "OrchestrationInstance",
    "OrchestrationRuntimeStatus",
    "OrchestrationStoreClient",
    "OutcomeStatus",
    "PurgeFilter",
    "PurgeHistoryConfig",
    "PurgeHistoryError",
    "PurgeHistoryPlugin",
    "PurgeHistoryPluginConfig",
    "PurgeHistoryTimer",
    "PurgeOrchestrator",
    "PurgeResult",
    "StoreError",
    "__project__",
    "__version__",
    "classify_instances",
)
