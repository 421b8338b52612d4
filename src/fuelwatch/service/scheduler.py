"""Background refresh on a fixed interval, via APScheduler."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler

logger = logging.getLogger(__name__)

_JOB_ID = "fuelwatch-refresh"


class RefreshScheduler:
    """Runs ``job`` every ``interval_seconds`` on the running event loop.

    At most one run is in flight (``max_instances=1``) and missed runs are
    coalesced into one. An interval of 0 disables the schedule entirely.
    ``start()`` must be called from inside a running event loop.
    """

    def __init__(
        self,
        job: Callable[[], Awaitable[None]],
        interval_seconds: float,
    ) -> None:
        self._job = job
        self._interval = interval_seconds
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def enabled(self) -> bool:
        return self._interval > 0

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        if not self.enabled or self.running:
            return
        scheduler = AsyncIOScheduler(timezone="UTC")
        scheduler.add_job(
            self._job,
            "interval",
            seconds=self._interval,
            id=_JOB_ID,
            max_instances=1,
            coalesce=True,
        )
        scheduler.start()
        self._scheduler = scheduler
        logger.info("Scheduled price refresh every %.0fs", self._interval)

    def stop(self) -> None:
        if self._scheduler is None:
            return
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None

    def next_run_time(self) -> datetime | None:
        """When the next refresh fires, or None if not scheduled."""
        if self._scheduler is None:
            return None
        job = self._scheduler.get_job(_JOB_ID)
        return job.next_run_time if job is not None else None
