"""Configuration for the purge history job.

This module provides the configuration object handed to the purge orchestrator,
the timer and the Litestar plugin. The environment is only read by
:meth:`PurgeHistoryConfig.from_env`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from litestar_purge_history.exceptions import ConfigurationError
from litestar_purge_history.log import LOG_FORMATS

if TYPE_CHECKING:
    from collections.abc import Mapping

__all__ = ["DEFAULT_LOOKBACK_WINDOW", "DEFAULT_SCHEDULE", "ENV_PREFIX", "PurgeHistoryConfig"]

DEFAULT_LOOKBACK_WINDOW = timedelta(days=14)
"""Covers two weeks in case the timer was not triggered for a long time."""

DEFAULT_SCHEDULE = "0 10 * * * *"
"""Second 0, minute 10 of every hour: {second} {minute} {hour} {day} {month} {day-of-week}."""

ENV_PREFIX = "PURGE_HISTORY_"


@dataclass
class PurgeHistoryConfig:
    """Configuration for the purge history job.

    Attributes:
        lookback_window: How far back, from now, instances are considered for purging.
        primary_workflow_name: Workflow type whose failed or terminated instances are
            refreshed before they are purged. Compared case-insensitively.
        schedule: Cron expression for the timer, in six field
            (``second minute hour day month day_of_week``) or five field form.
        page_size: Number of instances fetched per page when querying the store.
        connection_string: SQLAlchemy URL of the orchestration store.
        task_hub: Name of the task hub the store client is bound to.
        log_level: Minimum log level.
        log_format: ``console`` or ``json``.

    Example:
        >>> from datetime import timedelta
        >>> config = PurgeHistoryConfig(
        ...     lookback_window=timedelta(days=7),
        ...     primary_workflow_name="OrderOrchestrator",
        ... )
    """

    lookback_window: timedelta = DEFAULT_LOOKBACK_WINDOW
    primary_workflow_name: str = "Orchestrator"
    schedule: str = DEFAULT_SCHEDULE
    page_size: int = 100
    connection_string: str = "sqlite+aiosqlite:///purge_history.db"
    task_hub: str = "default"
    log_level: str = "INFO"
    log_format: str = "console"

    def __post_init__(self) -> None:
        if self.lookback_window <= timedelta(0):
            raise ConfigurationError("lookback_window", "must be a positive duration")
        if not self.primary_workflow_name.strip():
            raise ConfigurationError("primary_workflow_name", "must not be empty")
        if self.page_size <= 0:
            raise ConfigurationError("page_size", "must be greater than zero")
        if len(self.schedule.split()) not in (5, 6):
            raise ConfigurationError("schedule", f"expected a 5 or 6 field cron expression, got '{self.schedule}'")
        if self.log_format not in LOG_FORMATS:
            raise ConfigurationError("log_format", f"must be one of {sorted(LOG_FORMATS)}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> PurgeHistoryConfig:
        """Build a configuration from ``PURGE_HISTORY_*`` environment variables.

        Unset variables fall back to the dataclass defaults.

        Args:
            environ: Mapping to read from. Defaults to ``os.environ``.

        Returns:
            A validated configuration.

        Raises:
            ConfigurationError: If a variable cannot be parsed or is invalid.
        """
        env = os.environ if environ is None else environ
        kwargs: dict[str, object] = {}

        def read(name: str) -> str | None:
            value = env.get(f"{ENV_PREFIX}{name}")
            return value.strip() if value is not None and value.strip() else None

        if (days := read("LOOKBACK_DAYS")) is not None:
            kwargs["lookback_window"] = timedelta(days=_parse_int("lookback_window", days))
        if (page_size := read("PAGE_SIZE")) is not None:
            kwargs["page_size"] = _parse_int("page_size", page_size)

        for env_name, field_name in (
            ("PRIMARY_WORKFLOW", "primary_workflow_name"),
            ("SCHEDULE", "schedule"),
            ("CONNECTION_STRING", "connection_string"),
            ("TASK_HUB", "task_hub"),
            ("LOG_LEVEL", "log_level"),
            ("LOG_FORMAT", "log_format"),
        ):
            if (value := read(env_name)) is not None:
                kwargs[field_name] = value

        return cls(**kwargs)  # type: ignore[arg-type]


def _parse_int(field_name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(field_name, f"'{raw}' is not an integer") from e
