"""
Base class for probe methods.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from .._types import Device, ProbeVerdict


class ProbeMethod(ABC):
    """
    Reachability check for a single device.

    Implementations must be bounded in latency. They may raise
    ProbeFailure (or any exception); the transition engine treats
    failures as OFFLINE.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Name of this probe method."""
        pass

    @abstractmethod
    async def probe(self, device: Device) -> ProbeVerdict:
        """
        Probe a device.

        Returns REACHABLE or UNREACHABLE.
        """
        pass
