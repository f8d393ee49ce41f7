"""Purge orchestration for stale orchestration instances."""

from __future__ import annotations

from litestar_purge_history.purge.classification import ClassifiedInstances, classify_instances, is_primary_workflow
from litestar_purge_history.purge.orchestrator import COMPLETED_STATUSES, FAILED_STATUSES, PurgeOrchestrator

__all__ = [
    "COMPLETED_STATUSES",
    "FAILED_STATUSES",
    "ClassifiedInstances",
    "PurgeOrchestrator",
    "classify_instances",
    "is_primary_workflow",
]
