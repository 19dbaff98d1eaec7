"""
Stagger cycle runner.

A cycle probes an explicit snapshot of devices strictly one at a time,
in registry insertion order, pausing stagger_seconds between probes to
bound load. Devices added after the snapshot wait for the next cycle;
devices removed mid-cycle are skipped.

Also provides the immediate parallel probe-all used for manual
"ping everything now" requests.
"""

from __future__ import annotations

import asyncio
import logging

from ._types import CycleResult, Device, Seconds, now_utc
from .transitions import StatusTransitionEngine

logger = logging.getLogger(__name__)


class StaggerCycleRunner:
    """Runs staggered and parallel probe passes over device snapshots."""

    def __init__(self, engine: StatusTransitionEngine):
        self.engine = engine

    async def run_cycle(
        self,
        snapshot: list[Device],
        stagger_seconds: Seconds,
        triggered_by: str = "schedule",
    ) -> CycleResult:
        """
        Probe each device in the snapshot, in order, with a stagger delay.

        A failing probe never aborts the cycle (failures settle to
        OFFLINE). Cancelling the cycle aborts the remaining devices and
        stagger waits, but the probe already in flight still completes
        and writes back its result.

        Args:
            snapshot: Ordered devices, taken at cycle start
            stagger_seconds: Pause between consecutive probes
            triggered_by: Who started the cycle

        Returns:
            Cycle summary
        """
        result = CycleResult(triggered_by=triggered_by)
        logger.info(
            f"Starting stagger cycle {result.cycle_id} "
            f"({len(snapshot)} devices, stagger={stagger_seconds}s, triggered_by={triggered_by})"
        )

        try:
            for index, device in enumerate(snapshot):
                status = await self.engine.probe_device(device.id)
                result.record(status)

                if index < len(snapshot) - 1:
                    await asyncio.sleep(stagger_seconds)

        except asyncio.CancelledError:
            result.status = "cancelled"
            result.completed_at = now_utc()
            logger.info(
                f"Stagger cycle {result.cycle_id} cancelled after "
                f"{result.devices_probed + result.skipped}/{len(snapshot)} devices"
            )
            raise

        result.status = "completed"
        result.completed_at = now_utc()
        logger.info(
            f"Stagger cycle {result.cycle_id} completed: "
            f"{result.online} online, {result.offline} offline, {result.skipped} skipped"
        )
        return result

    async def probe_all(
        self,
        snapshot: list[Device],
        triggered_by: str = "manual",
    ) -> CycleResult:
        """Probe every device in the snapshot concurrently, no stagger."""
        result = CycleResult(triggered_by=triggered_by)
        logger.info(f"Probing all {len(snapshot)} devices in parallel")

        statuses = await asyncio.gather(
            *(self.engine.probe_device(device.id) for device in snapshot)
        )
        for status in statuses:
            result.record(status)

        result.status = "completed"
        result.completed_at = now_utc()
        logger.info(f"Probe-all completed: {result.online} online, {result.offline} offline")
        return result
