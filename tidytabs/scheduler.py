"""Periodic auto-organize.

``OrganizeScheduler`` keeps the persisted ``ScheduleState`` and the timer in
step:

- enable: clamp the interval to MIN_INTERVAL_MINUTES, persist, (re)arm.
- disable: persist, disarm.
- fire: disarm if the persisted state says disabled; skip if the last run
  was less than MIN_RUN_SPACING_MS ago; otherwise run once in apply mode and
  record the run time whether or not it succeeded.
- restore: re-arm on startup when the persisted state is enabled.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Protocol

from tidytabs.models.run import OrganizeResult
from tidytabs.models.schedule import (
    MIN_INTERVAL_MINUTES,
    MIN_RUN_SPACING_MS,
    AutoOrganizeStatus,
    ScheduleState,
)
from tidytabs.persistence import ScheduleStore
from tidytabs.tasks import BackgroundTaskManager

logger = logging.getLogger(__name__)

AUTO_ORGANIZE_TASK = "auto-organize"

FireCallback = Callable[[], Awaitable[object]]


def _now_ms() -> int:
    return int(time.time() * 1000)


class Timer(Protocol):
    """Fires ``callback`` every ``interval_minutes``, first after one interval."""

    def arm(self, interval_minutes: int, callback: FireCallback) -> None: ...

    def disarm(self) -> None: ...

    @property
    def next_fire_at_ms(self) -> int | None: ...


class Organizer(Protocol):
    async def organize(
        self, scope: str | None = None, mode: str | None = None, *, is_auto: bool = False
    ) -> OrganizeResult: ...


class AsyncioTimer:
    """Timer backed by a named loop in a BackgroundTaskManager.

    Each tick runs detached, so a failed tick is logged and the timer keeps going.
    """

    def __init__(
        self,
        manager: BackgroundTaskManager,
        name: str = AUTO_ORGANIZE_TASK,
        seconds_per_minute: float = 60.0,
    ) -> None:
        self.manager = manager
        self.name = name
        self.seconds_per_minute = seconds_per_minute
        self._next_fire_at_ms: int | None = None

    @property
    def next_fire_at_ms(self) -> int | None:
        return self._next_fire_at_ms if self.manager.is_running(self.name) else None

    def arm(self, interval_minutes: int, callback: FireCallback) -> None:
        delay = interval_minutes * self.seconds_per_minute

        async def _loop(cancel: asyncio.Event) -> None:
            while not cancel.is_set():
                self._next_fire_at_ms = _now_ms() + int(delay * 1000)
                await asyncio.sleep(delay)
                # a run in flight finishes even if the timer is disarmed meanwhile
                run = self.manager.detach(f"{self.name}-run", callback())
                await asyncio.wait([run])

        self.manager.start(self.name, _loop, replace=True)
        self._next_fire_at_ms = _now_ms() + int(delay * 1000)
        logger.info("Auto-organize timer set for every %s minutes", interval_minutes)

    def disarm(self) -> None:
        if self.manager.cancel(self.name):
            logger.info("Auto-organize timer cleared")
        self._next_fire_at_ms = None


class OrganizeScheduler:
    """Rate-limited periodic trigger for organize runs."""

    def __init__(
        self,
        organizer: Organizer,
        store: ScheduleStore,
        timer: Timer,
        *,
        clock: Callable[[], int] = _now_ms,
        min_interval_minutes: int = MIN_INTERVAL_MINUTES,
        min_spacing_ms: int = MIN_RUN_SPACING_MS,
    ) -> None:
        self.organizer = organizer
        self.store = store
        self.timer = timer
        self.clock = clock
        self.min_interval_minutes = min_interval_minutes
        self.min_spacing_ms = min_spacing_ms
        self.armed = False
        self.armed_interval: int | None = None

    def _arm(self, interval_minutes: int) -> None:
        self.timer.disarm()
        self.timer.arm(interval_minutes, self.on_fire)
        self.armed = True
        self.armed_interval = interval_minutes

    def _disarm(self) -> None:
        self.timer.disarm()
        self.armed = False
        self.armed_interval = None

    # ----- Transitions -----

    async def enable(self, interval_minutes: int | None = None) -> ScheduleState:
        state = await self.store.load()
        interval = max(interval_minutes or state.interval_minutes, self.min_interval_minutes)
        state = state.model_copy(update={"enabled": True, "interval_minutes": interval})
        await self.store.save(state)
        self._arm(interval)
        return state

    async def disable(self) -> ScheduleState:
        state = (await self.store.load()).model_copy(update={"enabled": False})
        await self.store.save(state)
        self._disarm()
        return state

    async def set_auto_organize(self, enabled: bool, interval_minutes: int | None = None) -> ScheduleState:
        if enabled:
            return await self.enable(interval_minutes)
        if interval_minutes:
            state = await self.store.load()
            await self.store.save(
                state.model_copy(
                    update={"interval_minutes": max(interval_minutes, self.min_interval_minutes)}
                )
            )
        return await self.disable()

    async def restore(self) -> bool:
        """Re-arm after a restart if auto-organize was left enabled."""
        state = await self.store.load()
        if state.enabled:
            self._arm(state.interval_minutes)
            logger.info("Restored auto-organize every %d minutes", state.interval_minutes)
        return state.enabled

    # ----- Timer fire -----

    async def on_fire(self) -> OrganizeResult | None:
        """Handle one tick. Returns the run result, or None if the tick was skipped."""
        logger.info("Auto-organize triggered")
        state = await self.store.load()

        if not state.enabled:
            logger.info("Auto-organize disabled in saved state, clearing timer")
            self._disarm()
            return None

        elapsed = self.clock() - state.last_run_at_ms
        if elapsed < self.min_spacing_ms:
            logger.info("Skipping auto-organize: rate limit (%d ms since last run)", elapsed)
            return None

        try:
            result = await self.organizer.organize(is_auto=True)
        finally:
            # reload so a concurrent enable/disable is not overwritten
            latest = await self.store.load()
            await self.store.save(latest.model_copy(update={"last_run_at_ms": self.clock()}))

        if result.success:
            logger.info(
                "Auto-organize complete: %d groups, %d tabs",
                result.groups_created,
                result.tabs_grouped,
            )
        else:
            logger.warning("Auto-organize failed: %s", result.error or result.message)
        return result

    # ----- Status -----

    async def status(self) -> AutoOrganizeStatus:
        state = await self.store.load()
        return AutoOrganizeStatus(
            enabled=state.enabled,
            interval=state.interval_minutes,
            last_run=state.last_run_at_ms,
            next_run=self.timer.next_fire_at_ms if self.armed else None,
        )
