"""
Status transition engine.

Drives a single device through CHECKING -> ONLINE | OFFLINE around one
probe call. Probe failures and timeouts settle to OFFLINE; a device is
never left in CHECKING once its probe completes.

Re-entrant probes are rejected: while a device has a probe in flight,
submit() refuses to start another one and probe_device() joins the
in-flight probe instead.
"""

from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import Optional

from ._types import Device, DeviceStatus, ProbeVerdict, now_utc
from .exceptions import ProbeFailure
from .probe import ProbeMethod
from .registry import DeviceRegistry

logger = logging.getLogger(__name__)


class StatusTransitionEngine:
    """
    Applies the device status state machine around probe calls.

    Each probe runs as its own task so that callers waiting on it (a
    stagger cycle, for instance) can be cancelled without losing the
    probe's write-back.
    """

    def __init__(
        self,
        registry: DeviceRegistry,
        probe: ProbeMethod,
        probe_timeout: Optional[float] = None,
    ):
        """
        Initialize transition engine.

        Args:
            registry: Registry holding device status
            probe: Reachability probe to call
            probe_timeout: Optional upper bound on a single probe, in seconds
        """
        self.registry = registry
        self.probe = probe
        self.probe_timeout = probe_timeout
        self._in_flight: dict[str, asyncio.Task] = {}

    @property
    def in_flight(self) -> int:
        """Number of probes currently running."""
        return len(self._in_flight)

    def is_probing(self, device_id: str) -> bool:
        return device_id in self._in_flight

    def submit(self, device_id: str) -> Optional[asyncio.Task]:
        """
        Start a probe for a device without waiting for it.

        Marks the device CHECKING immediately. Returns None if the device
        is unknown or already has a probe in flight.
        """
        if device_id in self._in_flight:
            logger.debug(f"Probe already in flight for {device_id}, not starting another")
            return None

        device = self.registry.get(device_id)
        if device is None:
            logger.debug(f"Probe requested for unknown device {device_id}")
            return None

        self.registry.update_status(device_id, DeviceStatus.CHECKING)

        task = asyncio.create_task(self._run_probe(device), name=f"probe-{device_id}")
        self._in_flight[device_id] = task
        task.add_done_callback(partial(self._probe_done, device_id))
        return task

    async def probe_device(self, device_id: str) -> Optional[DeviceStatus]:
        """
        Probe a device and wait for its status to settle.

        Joins an in-flight probe rather than starting a second one.
        Returns the settled status, or None if the device is unknown or
        was removed before the result could be written.
        """
        task = self._in_flight.get(device_id) or self.submit(device_id)
        if task is None:
            return None
        return await asyncio.shield(task)

    async def drain(self) -> None:
        """Wait for every in-flight probe to finish."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight.values()), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel outstanding probes, settling their devices to OFFLINE."""
        pending = list(self._in_flight.items())
        for _, task in pending:
            task.cancel()
        if not pending:
            return
        await asyncio.gather(*(task for _, task in pending), return_exceptions=True)

        # Tasks cancelled before their first step never reach _run_probe
        for device_id, _ in pending:
            device = self.registry.get(device_id)
            if device and device.status == DeviceStatus.CHECKING:
                self.registry.update_status(device_id, DeviceStatus.OFFLINE, now_utc())
        logger.info(f"Cancelled {len(pending)} in-flight probes")

    def _probe_done(self, device_id: str, task: asyncio.Task) -> None:
        if self._in_flight.get(device_id) is task:
            del self._in_flight[device_id]

    async def _run_probe(self, device: Device) -> Optional[DeviceStatus]:
        try:
            if self.probe_timeout:
                try:
                    verdict = await asyncio.wait_for(self.probe.probe(device), timeout=self.probe_timeout)
                except asyncio.TimeoutError:
                    raise ProbeFailure(device.ip_address, f"timed out after {self.probe_timeout}s")
            else:
                verdict = await self.probe.probe(device)
            status = ProbeVerdict(verdict).to_status()
        except asyncio.CancelledError:
            if self.registry.update_status(device.id, DeviceStatus.OFFLINE, now_utc()):
                logger.info(f"Probe of {device.name} ({device.ip_address}) cancelled, marking offline")
            raise
        except ProbeFailure as e:
            logger.warning(f"{e}, marking {device.name} offline")
            status = DeviceStatus.OFFLINE
        except Exception as e:
            logger.warning(f"Probe of {device.name} ({device.ip_address}) failed: {e}, marking offline")
            status = DeviceStatus.OFFLINE

        if not self.registry.update_status(device.id, status, now_utc()):
            logger.debug(f"{device.name} ({device.ip_address}) removed during probe, result dropped")
            return None

        logger.debug(f"{device.name} ({device.ip_address}) is {status.value}")
        return status
