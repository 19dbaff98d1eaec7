"""Shared fixtures and fake probes for device monitor tests."""

import asyncio
from typing import Optional, Union

import pytest

from device_monitor._types import Device, ProbeVerdict
from device_monitor.probe import ProbeMethod
from device_monitor.registry import DeviceRegistry


class ScriptedProbe(ProbeMethod):
    """
    Deterministic probe.

    Returns a verdict per IP (or raises, if the scripted value is an
    exception) after a fixed latency, recording start/end times and the
    peak number of concurrent probes.
    """

    def __init__(
        self,
        verdicts: Optional[dict[str, Union[ProbeVerdict, Exception]]] = None,
        latency: float = 0.0,
        default: ProbeVerdict = ProbeVerdict.REACHABLE,
    ):
        self.verdicts = verdicts or {}
        self.latency = latency
        self.default = default
        self.started: list[tuple[str, float]] = []
        self.finished: list[tuple[str, float]] = []
        self.active = 0
        self.max_active = 0

    @property
    def name(self) -> str:
        return "scripted"

    @property
    def order(self) -> list[str]:
        return [ip for ip, _ in self.started]

    async def probe(self, device: Device) -> ProbeVerdict:
        loop = asyncio.get_running_loop()
        self.started.append((device.ip_address, loop.time()))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.latency)
        finally:
            self.active -= 1
            self.finished.append((device.ip_address, loop.time()))

        verdict = self.verdicts.get(device.ip_address, self.default)
        if isinstance(verdict, Exception):
            raise verdict
        return verdict


class GatedProbe(ProbeMethod):
    """Probe that blocks until release() is called."""

    def __init__(self, verdict: ProbeVerdict = ProbeVerdict.REACHABLE):
        self.verdict = verdict
        self.calls = 0
        self.entered = asyncio.Event()
        self._gate = asyncio.Event()

    @property
    def name(self) -> str:
        return "gated"

    def release(self) -> None:
        self._gate.set()

    async def probe(self, device: Device) -> ProbeVerdict:
        self.calls += 1
        self.entered.set()
        await self._gate.wait()
        return self.verdict


@pytest.fixture
def registry():
    """Empty registry without callbacks."""
    return DeviceRegistry()


@pytest.fixture
def scripted_probe():
    """Instant probe that reports everything reachable."""
    return ScriptedProbe()


@pytest.fixture
def gated_probe():
    """Probe held open until released."""
    return GatedProbe()
