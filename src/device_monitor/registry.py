"""
In-memory registry of tracked devices.

Insertion order is preserved; it determines probe order within a
stagger cycle. Nothing is persisted beyond process lifetime.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import datetime
from typing import Callable, Optional

from ._types import Device, DeviceStatus, is_valid_ipv4
from .exceptions import ValidationError

logger = logging.getLogger(__name__)


class DeviceRegistry:
    """
    Owns the set of tracked devices and their current status.

    Thread-safe: all access to the internal map goes through a lock, so
    the auto-ping timer and manual pings can update different devices
    concurrently. Readers always get copies.
    """

    def __init__(self):
        self._devices: dict[str, Device] = {}
        self._lock = threading.Lock()
        self._on_added: Optional[Callable[[Device], None]] = None
        self._on_removed: Optional[Callable[[Device], None]] = None

    def set_callbacks(
        self,
        on_added: Optional[Callable[[Device], None]] = None,
        on_removed: Optional[Callable[[Device], None]] = None,
    ) -> None:
        """Set callbacks for add/remove events (called outside the lock)."""
        self._on_added = on_added
        self._on_removed = on_removed

    def add(self, name: str, address: str) -> str:
        """
        Add a device and return its id.

        Name and address are trimmed before validation. The device
        starts in CHECKING with last_checked = now. The
        on_added callback is expected to kick off its first probe.

        Raises:
            ValidationError: empty name or malformed IPv4 address
        """
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Device name must not be empty", field="name")
        if isinstance(address, str):
            address = address.strip()
        if not is_valid_ipv4(address):
            raise ValidationError(f"Invalid IPv4 address: {address!r}", field="ip_address")

        device = Device(name=name.strip(), ip_address=address)
        with self._lock:
            self._devices[device.id] = device

        logger.info(f"Device added: {device.name} ({device.ip_address}) id={device.id}")

        if self._on_added:
            self._on_added(replace(device))
        return device.id

    def remove(self, device_id: str) -> bool:
        """Remove a device. Returns False (not an error) if absent."""
        with self._lock:
            device = self._devices.pop(device_id, None)

        if device is None:
            return False

        logger.info(f"Device removed: {device.name} ({device.ip_address})")
        if self._on_removed:
            self._on_removed(device)
        return True

    def get(self, device_id: str) -> Optional[Device]:
        """Get a copy of a device, or None."""
        with self._lock:
            device = self._devices.get(device_id)
            return replace(device) if device else None

    def list(self) -> list[Device]:
        """Get copies of all devices in insertion order."""
        with self._lock:
            return [replace(d) for d in self._devices.values()]

    def update_status(
        self,
        device_id: str,
        status: DeviceStatus,
        timestamp: Optional[datetime] = None,
    ) -> bool:
        """
        Atomically set a device's status.

        last_checked only moves forward: an older timestamp is ignored.
        Returns False if the device is no longer tracked (stale write).
        """
        with self._lock:
            device = self._devices.get(device_id)
            if device is None:
                logger.debug(f"Stale status write ignored for {device_id} ({status.value})")
                return False

            device.status = status
            if timestamp is not None and timestamp > device.last_checked:
                device.last_checked = timestamp
            return True

    def counts(self) -> dict[str, int]:
        """Device counts by status (derived on every call)."""
        counts = {"total": 0}
        for status in DeviceStatus:
            counts[status.value] = 0

        with self._lock:
            for device in self._devices.values():
                counts["total"] += 1
                counts[device.status.value] += 1
        return counts

    def __len__(self) -> int:
        with self._lock:
            return len(self._devices)

    def __contains__(self, device_id: object) -> bool:
        with self._lock:
            return device_id in self._devices


def seed_registry(registry: DeviceRegistry, devices: list[dict]) -> list[str]:
    """Add configured seed devices, skipping invalid entries."""
    ids = []
    for entry in devices:
        try:
            ids.append(registry.add(entry.get("name", ""), entry.get("ip_address", "")))
        except ValidationError as e:
            logger.error(f"Skipping seed device {entry!r}: {e}")
    return ids
