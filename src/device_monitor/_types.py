"""
Type definitions for the device monitor.

These dataclasses define the core domain model for tracked devices,
their reachability status, and the auto-ping schedule.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union


def now_utc() -> datetime:
    """Get current UTC timestamp (replaces deprecated datetime.utcnow())."""
    return datetime.now(timezone.utc)


Seconds = Union[int, float]


class DeviceStatus(str, Enum):
    """Device reachability status."""
    ONLINE = "online"
    OFFLINE = "offline"
    CHECKING = "checking"  # Probe in flight


class ProbeVerdict(str, Enum):
    """Outcome of a single probe."""
    REACHABLE = "reachable"
    UNREACHABLE = "unreachable"

    def to_status(self) -> DeviceStatus:
        """Map a verdict onto the device status it settles to."""
        if self is ProbeVerdict.REACHABLE:
            return DeviceStatus.ONLINE
        return DeviceStatus.OFFLINE


@dataclass
class Device:
    """
    A tracked network device.

    Devices start in CHECKING and settle to ONLINE or OFFLINE once their
    first probe completes. last_checked is only advanced by completed probes.
    """
    name: str
    ip_address: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: DeviceStatus = DeviceStatus.CHECKING
    last_checked: datetime = field(default_factory=now_utc)
    created_at: datetime = field(default_factory=now_utc)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON responses."""
        return {
            "id": self.id,
            "name": self.name,
            "ip_address": self.ip_address,
            "status": self.status.value,
            "last_checked": self.last_checked.isoformat(),
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class ScheduleConfig:
    """Auto-ping schedule state."""
    enabled: bool = False
    interval_seconds: Seconds = 30
    stagger_seconds: Seconds = 2

    def to_dict(self) -> dict:
        return {
            "enabled": self.enabled,
            "interval_seconds": self.interval_seconds,
            "stagger_seconds": self.stagger_seconds,
        }


@dataclass
class CycleResult:
    """Summary of one staggered cycle or parallel probe-all."""
    cycle_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    triggered_by: str = "schedule"  # schedule, manual, startup
    started_at: datetime = field(default_factory=now_utc)
    completed_at: Optional[datetime] = None

    devices_probed: int = 0
    online: int = 0
    offline: int = 0
    skipped: int = 0  # Removed mid-cycle

    status: str = "running"  # running, completed, cancelled

    def record(self, status: Optional[DeviceStatus]) -> None:
        """Tally the settled status of one device."""
        if status is None:
            self.skipped += 1
            return
        self.devices_probed += 1
        if status == DeviceStatus.ONLINE:
            self.online += 1
        elif status == DeviceStatus.OFFLINE:
            self.offline += 1

    def to_dict(self) -> dict:
        return {
            "cycle_id": self.cycle_id,
            "triggered_by": self.triggered_by,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "devices_probed": self.devices_probed,
            "online": self.online,
            "offline": self.offline,
            "skipped": self.skipped,
            "status": self.status,
        }


# Reference schedule choices
DEFAULT_INTERVALS = (15, 30, 60, 120, 300, 600)
DEFAULT_STAGGER = (1, 2, 3, 5)

_IPV4_RE = re.compile(r"([0-9]{1,3})\.([0-9]{1,3})\.([0-9]{1,3})\.([0-9]{1,3})")


def is_valid_ipv4(address: str) -> bool:
    """Check dotted-quad IPv4 syntax: four ASCII decimal octets in 0-255."""
    if not isinstance(address, str):
        return False
    match = _IPV4_RE.fullmatch(address)
    if not match:
        return False
    return all(int(octet) <= 255 for octet in match.groups())
