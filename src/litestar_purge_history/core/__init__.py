"""Core domain module for litestar-purge-history.

This module exports the types, value objects and the store protocol the purge
job is built on.
"""

from __future__ import annotations

from litestar_purge_history.core.models import (
    BucketReport,
    BulkPurgeFailed,
    BulkPurgeOutcome,
    BulkPurgeSucceeded,
    InstanceOutcome,
    OrchestrationInstance,
    PurgeFilter,
    PurgeResult,
)
from litestar_purge_history.core.protocols import OrchestrationStoreClient
from litestar_purge_history.core.types import Clock, OrchestrationRuntimeStatus, OutcomeStatus

__all__ = [
    "BucketReport",
    "BulkPurgeFailed",
    "BulkPurgeOutcome",
    "BulkPurgeSucceeded",
    "Clock",
    "InstanceOutcome",
    "OrchestrationInstance",
    "OrchestrationRuntimeStatus",
    "OrchestrationStoreClient",
    "OutcomeStatus",
    "PurgeFilter",
    "PurgeResult",
]
