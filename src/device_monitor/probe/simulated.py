"""
Simulated reachability probe.

Stands in for a real ICMP/TCP check: waits a random latency and
returns a random verdict weighted by success_rate.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Optional

from .._types import Device, ProbeVerdict
from .base import ProbeMethod

logger = logging.getLogger(__name__)


class SimulatedProbe(ProbeMethod):
    """Random-latency, random-outcome probe."""

    def __init__(
        self,
        min_latency: float = 1.0,
        max_latency: float = 3.0,
        success_rate: float = 0.7,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize simulated probe.

        Args:
            min_latency: Shortest simulated round trip in seconds
            max_latency: Longest simulated round trip in seconds
            success_rate: Probability that a probe reports REACHABLE
            rng: Random source (seed one for reproducible runs)
        """
        if min_latency < 0 or max_latency < min_latency:
            raise ValueError(f"Invalid latency bounds: {min_latency}-{max_latency}")
        if not 0.0 <= success_rate <= 1.0:
            raise ValueError(f"Invalid success rate: {success_rate}")

        self.min_latency = min_latency
        self.max_latency = max_latency
        self.success_rate = success_rate
        self._rng = rng or random.Random()

    @property
    def name(self) -> str:
        return "simulated"

    async def probe(self, device: Device) -> ProbeVerdict:
        delay = self._rng.uniform(self.min_latency, self.max_latency)
        await asyncio.sleep(delay)

        if self._rng.random() < self.success_rate:
            verdict = ProbeVerdict.REACHABLE
        else:
            verdict = ProbeVerdict.UNREACHABLE

        logger.debug(f"Simulated probe {device.ip_address}: {verdict.value} after {delay:.2f}s")
        return verdict
