"""
Device monitor configuration.

Loaded from environment variables or a YAML file. Seed devices can only
be given in YAML; nothing is written back, device changes made at
runtime are lost on restart.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from ._types import (
    DEFAULT_INTERVALS,
    DEFAULT_STAGGER,
    ScheduleConfig,
    Seconds,
    is_valid_ipv4,
)

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _number(value: str) -> Seconds:
    """Parse "30" as int and "0.5" as float."""
    number = float(value)
    return int(number) if number.is_integer() else number


@dataclass
class MonitorConfig:
    """Device monitor configuration."""

    # Auto-ping schedule
    auto_ping_enabled: bool = False
    interval_seconds: Seconds = 30
    stagger_seconds: Seconds = 2
    allowed_intervals: list[Seconds] = field(default_factory=lambda: list(DEFAULT_INTERVALS))
    allowed_stagger: list[Seconds] = field(default_factory=lambda: list(DEFAULT_STAGGER))

    # Simulated probe behavior
    probe_min_latency: float = 1.0
    probe_max_latency: float = 3.0
    probe_success_rate: float = 0.7

    # Upper bound on a single probe (None = trust the probe's own bound)
    probe_timeout_seconds: Optional[float] = None

    # API server
    api_host: str = "127.0.0.1"
    api_port: int = 8090

    # Devices added at startup: [{"name": ..., "ip_address": ...}]
    devices: list[dict] = field(default_factory=list)

    # Logging
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "MonitorConfig":
        """Load configuration from environment variables."""
        config = cls()

        # Schedule
        config.auto_ping_enabled = _env_bool("AUTO_PING_ENABLED")
        config.interval_seconds = _number(os.getenv("PING_INTERVAL_SECONDS", "30"))
        config.stagger_seconds = _number(os.getenv("STAGGER_SECONDS", "2"))

        # Probe
        config.probe_min_latency = float(os.getenv("PROBE_MIN_LATENCY", "1.0"))
        config.probe_max_latency = float(os.getenv("PROBE_MAX_LATENCY", "3.0"))
        config.probe_success_rate = float(os.getenv("PROBE_SUCCESS_RATE", "0.7"))
        if timeout := os.getenv("PROBE_TIMEOUT_SECONDS"):
            config.probe_timeout_seconds = float(timeout)

        # API server
        config.api_host = os.getenv("API_HOST", "127.0.0.1")
        config.api_port = int(os.getenv("API_PORT", "8090"))

        # Logging
        config.log_level = os.getenv("LOG_LEVEL", "INFO")

        return config

    @classmethod
    def from_yaml(cls, path: Path) -> "MonitorConfig":
        """Load configuration from YAML file."""
        if not path.exists():
            logger.warning(f"Config file not found: {path}, using defaults")
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        config = cls()

        if "schedule" in data:
            s = data["schedule"]
            config.auto_ping_enabled = s.get("enabled", False)
            config.interval_seconds = s.get("interval_seconds", 30)
            config.stagger_seconds = s.get("stagger_seconds", 2)
            if "allowed_intervals" in s:
                config.allowed_intervals = list(s["allowed_intervals"])
            if "allowed_stagger" in s:
                config.allowed_stagger = list(s["allowed_stagger"])

        if "probe" in data:
            p = data["probe"]
            config.probe_min_latency = p.get("min_latency", 1.0)
            config.probe_max_latency = p.get("max_latency", 3.0)
            config.probe_success_rate = p.get("success_rate", 0.7)
            config.probe_timeout_seconds = p.get("timeout_seconds")

        if "api" in data:
            a = data["api"]
            config.api_host = a.get("host", "127.0.0.1")
            config.api_port = a.get("port", 8090)

        config.devices = [
            {"name": str(d.get("name", "")), "ip_address": str(d.get("ip_address", ""))}
            for d in data.get("devices") or []
        ]

        config.log_level = data.get("log_level", "INFO")

        return config

    def to_schedule(self) -> ScheduleConfig:
        """Initial schedule state."""
        return ScheduleConfig(
            enabled=self.auto_ping_enabled,
            interval_seconds=self.interval_seconds,
            stagger_seconds=self.stagger_seconds,
        )

    def validate(self) -> list[str]:
        """Validate configuration, returning list of errors."""
        errors = []

        if self.interval_seconds not in self.allowed_intervals:
            errors.append(
                f"Invalid interval: {self.interval_seconds} (allowed: {self.allowed_intervals})"
            )

        if self.stagger_seconds not in self.allowed_stagger:
            errors.append(
                f"Invalid stagger delay: {self.stagger_seconds} (allowed: {self.allowed_stagger})"
            )

        if any(v <= 0 for v in self.allowed_intervals + self.allowed_stagger):
            errors.append("Allowed intervals and stagger delays must be positive")

        if self.probe_min_latency < 0 or self.probe_max_latency < self.probe_min_latency:
            errors.append(
                f"Invalid probe latency range: {self.probe_min_latency}-{self.probe_max_latency}"
            )

        if not 0.0 <= self.probe_success_rate <= 1.0:
            errors.append(f"Invalid probe success rate: {self.probe_success_rate}")

        if self.probe_timeout_seconds is not None and self.probe_timeout_seconds <= 0:
            errors.append(f"Invalid probe timeout: {self.probe_timeout_seconds}")

        if not 0 < self.api_port < 65536:
            errors.append(f"Invalid API port: {self.api_port}")

        for device in self.devices:
            if not device.get("name", "").strip():
                errors.append(f"Seed device missing name: {device}")
            if not is_valid_ipv4(device.get("ip_address", "").strip()):
                errors.append(f"Seed device has invalid IPv4 address: {device}")

        return errors


# Example device_monitor.yaml:
"""
schedule:
  enabled: true
  interval_seconds: 30
  stagger_seconds: 2

probe:
  min_latency: 1.0
  max_latency: 3.0
  success_rate: 0.7
  timeout_seconds: 10

api:
  host: "127.0.0.1"
  port: 8090

devices:
  - name: "Router"
    ip_address: "192.168.1.1"
  - name: "Server"
    ip_address: "192.168.1.100"
  - name: "Printer"
    ip_address: "192.168.1.200"

log_level: "INFO"
"""
