"""
Error taxonomy for the device monitor.

Only ValidationError is ever surfaced to callers. Probe failures are
absorbed into the OFFLINE status by the transition engine, and stale
writes are dropped by the registry.
"""

from typing import Optional


class DeviceMonitorError(Exception):
    """Base class for device monitor errors."""


class ValidationError(DeviceMonitorError):
    """Malformed device input or schedule value. Nothing was changed."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class ProbeFailure(DeviceMonitorError):
    """A probe errored or timed out. Recovered as OFFLINE, never surfaced."""

    def __init__(self, ip_address: str, reason: str = ""):
        message = f"Probe of {ip_address} failed"
        super().__init__(f"{message}: {reason}" if reason else message)
        self.ip_address = ip_address
        self.reason = reason


class StaleWriteIgnored(DeviceMonitorError):
    """
    Status update for a device no longer in the registry.

    Not an error condition: the registry drops such writes and reports
    them by returning False from update_status().
    """

    def __init__(self, device_id: str):
        super().__init__(f"Device {device_id} no longer tracked")
        self.device_id = device_id
