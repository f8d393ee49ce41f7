"""Database persistence layer for litestar-purge-history.

This module provides SQLAlchemy models, repositories and a store client for
orchestration stores kept in a relational database.
"""

from __future__ import annotations

from litestar_purge_history.db.models import OrchestrationHistoryModel, OrchestrationInstanceModel
from litestar_purge_history.db.repositories import OrchestrationHistoryRepository, OrchestrationInstanceRepository
from litestar_purge_history.db.store import SQLAlchemyOrchestrationStore

__all__ = [
    "OrchestrationHistoryModel",
    "OrchestrationHistoryRepository",
    "OrchestrationInstanceModel",
    "OrchestrationInstanceRepository",
    "SQLAlchemyOrchestrationStore",
]
