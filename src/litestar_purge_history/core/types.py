"""Core type definitions for litestar-purge-history.

This module defines the enums and type aliases shared by the purge job and
the store implementations.
"""

from __future__ import annotations

import sys
from collections.abc import Callable
from datetime import datetime
from enum import Enum, auto
from typing import TypeAlias

# StrEnum backport for Python < 3.11
if sys.version_info >= (3, 11):
    from enum import StrEnum
else:

    class StrEnum(str, Enum):
        """String enumeration compatibility for Python < 3.11."""

        def __str__(self) -> str:
            return str(self.value)

        @staticmethod
        def _generate_next_value_(name: str, start: int, count: int, last_values: list[str]) -> str:
            return name.lower()


__all__ = [
    "Clock",
    "OrchestrationRuntimeStatus",
    "OutcomeStatus",
]


class OrchestrationRuntimeStatus(StrEnum):
    """Lifecycle state of an orchestration instance as reported by the runtime.

    Attributes:
        RUNNING: The orchestration is executing.
        COMPLETED: The orchestration ran to completion.
        CONTINUED_AS_NEW: The orchestration restarted itself with a new history.
        FAILED: The orchestration stopped because of an unhandled error.
        CANCELED: The orchestration was canceled.
        TERMINATED: The orchestration was terminated by an operator.
        PENDING: The orchestration is scheduled but has not started.
        SUSPENDED: The orchestration is suspended and waiting to be resumed.
    """

    RUNNING = auto()
    COMPLETED = auto()
    CONTINUED_AS_NEW = auto()
    FAILED = auto()
    CANCELED = auto()
    TERMINATED = auto()
    PENDING = auto()
    SUSPENDED = auto()


class OutcomeStatus(StrEnum):
    """Result of processing a single instance during remediation.

    Attributes:
        PURGED: The instance was fetched and purged.
        SKIPPED: The instance could not be retrieved and was left in place.
        FAILED: Fetching or purging the instance raised an error.
    """

    PURGED = auto()
    SKIPPED = auto()
    FAILED = auto()


Clock: TypeAlias = Callable[[], datetime]
"""Zero-argument callable returning the current aware UTC time."""
