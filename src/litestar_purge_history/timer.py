"""Timer that runs the purge cycle on a cron schedule.

The timer delegates scheduling to APScheduler. The purge job is registered with
``max_instances=1`` so a cycle never starts while the previous one is still
running, and missed firings are coalesced into one. Cycles started by hand
through :meth:`PurgeHistoryTimer.run_once` share a lock with the scheduled job.
"""

from __future__ import annotations

import asyncio
import re
from datetime import timezone
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from litestar_purge_history.db.store import SQLAlchemyOrchestrationStore
from litestar_purge_history.exceptions import ConfigurationError
from litestar_purge_history.log import get_logger
from litestar_purge_history.purge.orchestrator import PurgeOrchestrator

if TYPE_CHECKING:
    from datetime import datetime, tzinfo

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from litestar_purge_history.config import PurgeHistoryConfig

__all__ = ["PurgeHistoryTimer", "parse_schedule"]

logger = get_logger(__name__)

# cron numbering: 0 and 7 are Sunday
_CRON_WEEKDAYS = ("sun", "mon", "tue", "wed", "thu", "fri", "sat", "sun")
_NUMERIC_DAYS = re.compile(r"^(\*|\d+(?:-\d+)?)(?:/(\d+))?$")


def _cron_day_of_week(field: str) -> str:
    """Translate cron weekday numbers into APScheduler day names.

    APScheduler counts weekdays from Monday = 0, cron from Sunday = 0, so
    numeric values, numeric ranges and stepped wildcards are expanded into
    names. Parts already written with names are passed through.

    Raises:
        ConfigurationError: If a weekday number is outside 0-7.
    """
    names: list[str] = []
    for part in field.split(","):
        match = _NUMERIC_DAYS.match(part)
        if match is None or part == "*":
            names.append(part)
            continue

        days, step = match.group(1), int(match.group(2) or 1)
        if days == "*":
            first, last = 0, 6
        else:
            first_raw, _, last_raw = days.partition("-")
            first, last = int(first_raw), int(last_raw or first_raw)
            if last > 7 or first > last:
                raise ConfigurationError("schedule", f"invalid day of week '{part}'")
        if step < 1:
            raise ConfigurationError("schedule", f"invalid day of week step in '{part}'")

        for day in range(first, last + 1, step):
            if _CRON_WEEKDAYS[day] not in names:
                names.append(_CRON_WEEKDAYS[day])
    return ",".join(names)


def parse_schedule(expression: str, tz: tzinfo = timezone.utc) -> CronTrigger:
    """Build a cron trigger from a five or six field expression.

    Six field expressions are ``second minute hour day month day_of_week``;
    five field expressions omit the seconds, which then default to 0. Weekday
    numbers follow cron, where 0 and 7 are Sunday; day names (``mon``-``sun``)
    are accepted as well.

    Example:
        >>> parse_schedule("0 10 * * * *")  # minute 10 of every hour
        >>> parse_schedule("30 2 * * 0")  # 02:30 every Sunday

    Args:
        expression: The cron expression.
        tz: Time zone the expression is evaluated in. Defaults to UTC.

    Returns:
        The APScheduler trigger.

    Raises:
        ConfigurationError: If the expression is malformed.
    """
    fields = expression.split()
    if len(fields) == 6:
        second, minute, hour, day, month, day_of_week = fields
    elif len(fields) == 5:
        second = "0"
        minute, hour, day, month, day_of_week = fields
    else:
        raise ConfigurationError("schedule", f"expected a 5 or 6 field cron expression, got '{expression}'")

    try:
        return CronTrigger(
            second=second,
            minute=minute,
            hour=hour,
            day=day,
            month=month,
            day_of_week=_cron_day_of_week(day_of_week),
            timezone=tz,
        )
    except ValueError as e:
        raise ConfigurationError("schedule", str(e)) from e


class PurgeHistoryTimer:
    """Runs :meth:`PurgeOrchestrator.run_cycle` on the configured schedule.

    Every firing opens a fresh session, wraps it in a
    :class:`SQLAlchemyOrchestrationStore` and runs one purge cycle. Errors
    escaping the cycle are left to APScheduler, which logs them and keeps the
    schedule alive.

    Attributes:
        config: Purge job configuration.
        trigger: The parsed cron trigger.
    """

    JOB_ID = "purge-history"

    def __init__(
        self,
        config: PurgeHistoryConfig,
        session_maker: async_sessionmaker[AsyncSession],
        *,
        scheduler: AsyncIOScheduler | None = None,
    ) -> None:
        """Initialize the timer.

        Args:
            config: Purge job configuration.
            session_maker: Factory for the sessions each cycle runs in.
            scheduler: Scheduler to register the job with. A UTC
                ``AsyncIOScheduler`` is created when omitted.
        """
        self.config = config
        self.trigger = parse_schedule(config.schedule)
        self._session_maker = session_maker
        self._scheduler = scheduler or AsyncIOScheduler(timezone=timezone.utc)
        self._cycle_lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        """Whether the underlying scheduler is running."""
        return bool(self._scheduler.running)

    @property
    def next_run_time(self) -> datetime | None:
        """When the purge job fires next, or None if it is not scheduled."""
        job = self._scheduler.get_job(self.JOB_ID)
        # pending jobs have no next_run_time until the scheduler starts
        return getattr(job, "next_run_time", None) if job else None

    async def run_once(self) -> None:
        """Run a single purge cycle in a new session.

        Used both by the scheduled job and for cycles triggered by hand. A call
        made while another cycle is running waits for it to finish first.
        """
        if self._cycle_lock.locked():
            logger.info("purge_cycle_waiting", reason="another purge cycle is running")

        async with self._cycle_lock, self._session_maker() as session:
            store = SQLAlchemyOrchestrationStore(
                session,
                task_hub=self.config.task_hub,
                page_size=self.config.page_size,
            )
            await PurgeOrchestrator(store, self.config).run_cycle()

    def start(self) -> None:
        """Register the purge job and start the scheduler.

        Must be called from within a running event loop.
        """
        self._scheduler.add_job(
            self.run_once,
            trigger=self.trigger,
            id=self.JOB_ID,
            name=PurgeOrchestrator.JOB_NAME,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        if not self._scheduler.running:
            self._scheduler.start()

        logger.info(
            "purge_timer_started",
            schedule=self.config.schedule,
            next_run_time=str(self.next_run_time),
        )

    async def shutdown(self, *, wait: bool = False) -> None:
        """Stop the scheduler if it is running.

        Args:
            wait: Wait for a running cycle to finish.
        """
        if not self._scheduler.running:
            return

        self._scheduler.shutdown(wait=wait)
        # newer AsyncIOScheduler releases only schedule the stop on the loop
        await asyncio.sleep(0)
        logger.info("purge_timer_stopped")
