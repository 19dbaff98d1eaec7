"""
Device Monitor - reachability tracking for a small set of network devices.

Devices are probed on demand or by a recurring auto-ping schedule. Each
auto-ping cycle probes devices one at a time, in the order they were
added, with a stagger delay between probes to bound load.

Architecture:
    DeviceRegistry          - owns devices and their status
    StatusTransitionEngine  - CHECKING -> ONLINE | OFFLINE around one probe
    StaggerCycleRunner      - sequential, staggered pass over a snapshot
    AutoScheduleController  - the single recurring timer
    DeviceMonitorService    - facade and JSON API

State lives in process memory only.
"""

__version__ = "1.0.0"

from ._types import (
    Device,
    DeviceStatus,
    ProbeVerdict,
    ScheduleConfig,
    CycleResult,
    is_valid_ipv4,
)
from .exceptions import (
    DeviceMonitorError,
    ValidationError,
    ProbeFailure,
    StaleWriteIgnored,
)

__all__ = [
    "__version__",
    "Device",
    "DeviceStatus",
    "ProbeVerdict",
    "ScheduleConfig",
    "CycleResult",
    "is_valid_ipv4",
    "DeviceMonitorError",
    "ValidationError",
    "ProbeFailure",
    "StaleWriteIgnored",
]
