"""Minimal host for the purge history job.

The job is configured from ``PURGE_HISTORY_*`` environment variables and runs
on its schedule for as long as the application is up. Two routes report the
timer state and trigger a cycle on demand.

Run with:
    cd examples
    PURGE_HISTORY_CONNECTION_STRING=sqlite+aiosqlite:///purge_history.db litestar run

Or:
    uvicorn app:app --reload
"""

from __future__ import annotations

import os
from typing import Any

from litestar import Litestar, get, post

from litestar_purge_history import (
    PurgeHistoryConfig,
    PurgeHistoryPlugin,
    PurgeHistoryPluginConfig,
    PurgeHistoryTimer,
)

# =============================================================================
# Routes
# =============================================================================


@get("/purge-history")
async def purge_status(
    purge_history_config: PurgeHistoryConfig,
    purge_history_timer: PurgeHistoryTimer,
) -> dict[str, Any]:
    """Show the schedule and when the next cycle runs."""
    next_run = purge_history_timer.next_run_time
    return {
        "schedule": purge_history_config.schedule,
        "lookback_days": purge_history_config.lookback_window.days,
        "primary_workflow": purge_history_config.primary_workflow_name,
        "running": purge_history_timer.running,
        "next_run_time": next_run.isoformat() if next_run else None,
    }


@post("/purge-history/run")
async def run_purge(purge_history_timer: PurgeHistoryTimer) -> dict[str, str]:
    """Run one purge cycle now."""
    await purge_history_timer.run_once()
    return {"status": "completed"}


# =============================================================================
# Application
# =============================================================================

app = Litestar(
    route_handlers=[purge_status, run_purge],
    plugins=[
        PurgeHistoryPlugin(
            config=PurgeHistoryPluginConfig(
                purge_config=PurgeHistoryConfig.from_env(),
                create_tables=os.environ.get("PURGE_HISTORY_CREATE_TABLES", "").lower() in {"1", "true", "yes"},
            )
        )
    ],
)
