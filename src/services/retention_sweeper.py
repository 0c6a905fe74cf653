"""
Retention sweep.

Periodically removes Sessions whose last activity is older than the
retention window or whose data retention date has passed. Runs as an
asyncio task next to the conversation handler.

Usage:
    sweeper = RetentionSweeper(store)
    sweeper.start()
    ...
    await sweeper.stop()
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional

from src.common.config import Config
from src.common.repositories import SessionStoreInterface, SweepResult

logger = logging.getLogger(__name__)


class RetentionSweeper:
    """Background loop deleting expired Sessions."""

    def __init__(
        self,
        store: SessionStoreInterface,
        max_age_hours: Optional[float] = None,
        interval_seconds: Optional[float] = None,
    ):
        self.store = store
        self.max_age = timedelta(
            hours=max_age_hours if max_age_hours is not None else Config.SESSION_TTL_HOURS
        )
        self.interval_seconds = (
            interval_seconds if interval_seconds is not None else Config.SWEEP_INTERVAL_SECONDS
        )
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self, now: Optional[datetime] = None) -> SweepResult:
        """Run a single sweep."""
        result = await asyncio.to_thread(self.store.sweep_expired, self.max_age, now)
        if result.removed_count:
            logger.info(
                f"Retention sweep removed {result.removed_count} of {result.scanned_count} sessions"
            )
        else:
            logger.debug(f"Retention sweep: {result.scanned_count} sessions, none expired")
        return result

    async def _loop(self) -> None:
        while True:
            try:
                await self.run_once()
            except Exception:
                # Keep sweeping; a failed pass is retried on the next interval
                logger.exception("Retention sweep failed")
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> asyncio.Task:
        """Start the periodic loop (idempotent)."""
        if not self.is_running:
            logger.info(
                f"Starting retention sweep every {self.interval_seconds}s "
                f"(max age {self.max_age})"
            )
            self._task = asyncio.create_task(self._loop())
        return self._task

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
