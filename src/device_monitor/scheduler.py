"""
Auto-schedule controller.

Owns the recurring auto-ping timer. There is at most one timer task at
any time; every change to the schedule (enable/disable, interval,
stagger) or to registry emptiness flows through reconfigure(), which
always cancels the existing timer before arming a new one.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Iterable, Optional

from ._types import (
    DEFAULT_INTERVALS,
    DEFAULT_STAGGER,
    CycleResult,
    ScheduleConfig,
    Seconds,
)
from .exceptions import ValidationError
from .registry import DeviceRegistry
from .runner import StaggerCycleRunner

logger = logging.getLogger(__name__)


class AutoScheduleController:
    """
    Recurring stagger-cycle scheduler.

    When enabled and the registry is non-empty, runs a cycle immediately
    and then starts a new cycle every interval_seconds. Each firing takes
    a fresh registry snapshot and the then-current stagger delay. Cycles
    run inside the single timer task, so they can never overlap.
    """

    def __init__(
        self,
        registry: DeviceRegistry,
        runner: StaggerCycleRunner,
        schedule: Optional[ScheduleConfig] = None,
        allowed_intervals: Iterable[Seconds] = DEFAULT_INTERVALS,
        allowed_stagger: Iterable[Seconds] = DEFAULT_STAGGER,
    ):
        """
        Initialize controller.

        Args:
            registry: Device registry (read for snapshots and emptiness)
            runner: Cycle runner used on every firing
            schedule: Initial schedule (not applied until reconfigure())
            allowed_intervals: Permitted interval_seconds values
            allowed_stagger: Permitted stagger_seconds values
        """
        self.registry = registry
        self.runner = runner
        self.allowed_intervals = tuple(allowed_intervals)
        self.allowed_stagger = tuple(allowed_stagger)

        self._schedule = schedule or ScheduleConfig()
        self._validate(self._schedule.enabled, self._schedule.interval_seconds, self._schedule.stagger_seconds)

        self._timer: Optional[asyncio.Task] = None
        self._registry_empty = len(registry) == 0

        self.cycles_completed = 0
        self.last_cycle: Optional[CycleResult] = None

    @property
    def schedule(self) -> ScheduleConfig:
        """Copy of the current schedule."""
        return replace(self._schedule)

    @property
    def is_active(self) -> bool:
        """True while auto-ping is enabled and its timer is running."""
        return (
            self._schedule.enabled
            and self._timer is not None
            and not self._timer.done()
        )

    # -------------------------------------------------------------------------
    # Schedule changes
    # -------------------------------------------------------------------------

    def set_enabled(self, enabled: bool) -> None:
        self.update(enabled=enabled)

    def set_interval(self, seconds: Seconds) -> None:
        self.update(interval_seconds=seconds)

    def set_stagger(self, seconds: Seconds) -> None:
        self.update(stagger_seconds=seconds)

    def update(
        self,
        enabled: Optional[bool] = None,
        interval_seconds: Optional[Seconds] = None,
        stagger_seconds: Optional[Seconds] = None,
    ) -> bool:
        """
        Apply any subset of schedule changes at once.

        All values are validated before anything is changed. Re-arms
        only if a value actually changed.

        Returns:
            True if the schedule changed

        Raises:
            ValidationError: a value is outside its allowed set
        """
        new = replace(self._schedule)
        if enabled is not None:
            new.enabled = enabled
        if interval_seconds is not None:
            new.interval_seconds = interval_seconds
        if stagger_seconds is not None:
            new.stagger_seconds = stagger_seconds

        self._validate(new.enabled, new.interval_seconds, new.stagger_seconds)

        if new == self._schedule:
            return False

        self._schedule = new
        logger.info(
            f"Schedule changed: enabled={new.enabled}, "
            f"interval={new.interval_seconds}s, stagger={new.stagger_seconds}s"
        )
        self.reconfigure()
        return True

    def devices_changed(self) -> None:
        """Re-arm when the registry becomes empty or stops being empty."""
        empty = len(self.registry) == 0
        if empty != self._registry_empty:
            self._registry_empty = empty
            self.reconfigure()

    def _validate(self, enabled: object, interval_seconds: object, stagger_seconds: object) -> None:
        if not isinstance(enabled, bool):
            raise ValidationError(f"enabled must be a boolean, got {enabled!r}", field="enabled")
        if isinstance(interval_seconds, bool) or interval_seconds not in self.allowed_intervals:
            raise ValidationError(
                f"Interval must be one of {list(self.allowed_intervals)}, got {interval_seconds!r}",
                field="interval_seconds",
            )
        if isinstance(stagger_seconds, bool) or stagger_seconds not in self.allowed_stagger:
            raise ValidationError(
                f"Stagger delay must be one of {list(self.allowed_stagger)}, got {stagger_seconds!r}",
                field="stagger_seconds",
            )

    # -------------------------------------------------------------------------
    # Timer management
    # -------------------------------------------------------------------------

    def reconfigure(self) -> None:
        """
        Cancel any existing timer, then arm a new one if appropriate.

        Idempotent. Must be called from within the running event loop.
        """
        self._cancel_timer()

        if not self._schedule.enabled:
            logger.info("Auto-ping disabled")
            return

        if len(self.registry) == 0:
            logger.info("Auto-ping enabled but no devices to probe, timer not armed")
            return

        self._timer = asyncio.create_task(self._recurring(), name="auto-ping")
        logger.info(
            f"Auto-ping armed: every {self._schedule.interval_seconds}s, "
            f"stagger {self._schedule.stagger_seconds}s"
        )

    def _cancel_timer(self) -> None:
        if self._timer is None:
            return
        if not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def _recurring(self) -> None:
        """Run a cycle now, then one every interval_seconds (start to start)."""
        loop = asyncio.get_running_loop()

        while True:
            started = loop.time()
            try:
                snapshot = self.registry.list()
                if snapshot:
                    result = await self.runner.run_cycle(
                        snapshot,
                        self._schedule.stagger_seconds,
                        triggered_by="schedule",
                    )
                    self.cycles_completed += 1
                    self.last_cycle = result
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error in auto-ping cycle: {e}")

            elapsed = loop.time() - started
            await asyncio.sleep(max(0.0, self._schedule.interval_seconds - elapsed))

    async def shutdown(self) -> None:
        """Cancel the timer and wait for it to finish."""
        timer = self._timer
        self._cancel_timer()
        if timer is not None:
            await asyncio.gather(timer, return_exceptions=True)
            logger.info("Auto-ping timer stopped")

    def status(self) -> dict:
        """Schedule status for reporting."""
        return {
            **self._schedule.to_dict(),
            "active": self.is_active,
            "allowed_intervals": list(self.allowed_intervals),
            "allowed_stagger": list(self.allowed_stagger),
            "cycles_completed": self.cycles_completed,
            "last_cycle": self.last_cycle.to_dict() if self.last_cycle else None,
        }
