"""Daily stats reset.

"Daily" means a rolling window anchored at the previous reset, not local
midnight: the first run only records a baseline, and every later check
resets once the window has fully elapsed since the stored marker.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable, Optional

from showroom.analytics.mirror import AnalyticsMirror
from showroom.core import get_logger
from showroom.core.time import Clock, from_iso, system_clock, to_iso
from showroom.notifications import Notifier
from showroom.storage import LAST_STATS_RESET_KEY, KeyValueStore

logger = get_logger(__name__)


class DailyResetScheduler:
    def __init__(
        self,
        mirror: AnalyticsMirror,
        store: KeyValueStore,
        notifier: Optional[Notifier] = None,
        interval_seconds: float = 24 * 60 * 60,
        check_every_seconds: float = 60 * 60,
        clock: Clock = system_clock,
        on_reset: Optional[Callable[[float], Any]] = None,
    ):
        self.mirror = mirror
        self.store = store
        self.notifier = notifier
        self.interval_seconds = interval_seconds
        self.check_every_seconds = check_every_seconds
        self._clock = clock
        self._on_reset = on_reset
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def last_reset(self) -> Optional[float]:
        raw = self.store.get(LAST_STATS_RESET_KEY)
        if raw is None:
            return None
        try:
            return from_iso(raw)
        except ValueError:
            logger.warning("Discarding malformed reset marker", data={"value": raw})
            return None

    async def check_and_reset(self) -> bool:
        """Reset daily counters if the window has elapsed. Returns True on reset."""
        now = self._clock()
        last = self.last_reset()
        if last is None:
            self.store.set(LAST_STATS_RESET_KEY, to_iso(now))
            logger.info("Daily stats baseline recorded")
            return False

        if now - last < self.interval_seconds:
            return False

        logger.info("Resetting daily stats", data={"since": to_iso(last)})
        self.mirror.reset_daily()
        self.store.set(LAST_STATS_RESET_KEY, to_iso(now))
        if self.notifier is not None:
            self.notifier.notify("Daily stats have been reset", "info")
        if self._on_reset is not None:
            result = self._on_reset(now)
            if inspect.isawaitable(result):
                await result
        return True

    def start(self) -> None:
        """Check now and then periodically. Restarting cancels the previous loop."""
        self.stop()
        self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    async def _run(self) -> None:
        while True:
            try:
                await self.check_and_reset()
            except Exception:
                logger.exception("Daily stats check failed")
            await asyncio.sleep(self.check_every_seconds)
