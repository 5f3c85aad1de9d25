"""Background task that evicts idle sessions.

Runs in the same event loop as the handlers. Eviction compares each
session's ``last_activity`` against one snapshot of the clock and never
awaits mid-sweep, so it cannot interleave with a handler mutating a
session.
"""

from __future__ import annotations

import asyncio
import logging

from src.bot.session import SessionStore, get_store
from src.config import settings

logger = logging.getLogger(__name__)


def sweep_once(store: SessionStore, max_idle: float) -> int:
    """Evict idle sessions and log what is left. Returns the evicted count."""
    removed = store.evict_idle(max_idle)
    logger.info("Session sweep: removed %d, active %d", removed, len(store))
    return removed


async def sweep_loop(store: SessionStore, interval: float, max_idle: float) -> None:
    """Evict idle sessions every ``interval`` seconds, forever."""
    while True:
        await asyncio.sleep(interval)
        sweep_once(store, max_idle)


def start_sweeper(store: SessionStore | None = None) -> asyncio.Task:
    """Spawn the sweep loop as a background task and return it."""
    task = asyncio.ensure_future(
        sweep_loop(
            store or get_store(),
            settings.session_sweep_interval_seconds,
            settings.session_idle_timeout_seconds,
        )
    )
    logger.info(
        "Session sweeper started (interval=%ds, idle timeout=%ds)",
        settings.session_sweep_interval_seconds,
        settings.session_idle_timeout_seconds,
    )
    return task
