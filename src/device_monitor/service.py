"""
Device Monitor Service - facade and HTTP API.

Wires the registry, transition engine, stagger runner and auto-schedule
controller together, and exposes them through a small JSON API.
"""

from __future__ import annotations

import asyncio
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

from aiohttp import web
from pydantic import ValidationError as RequestValidationError

from . import __version__
from ._types import CycleResult, Device, Seconds
from .config import MonitorConfig
from .exceptions import ValidationError
from .models import AddDeviceRequest, ScheduleUpdateRequest
from .probe import ProbeMethod, SimulatedProbe
from .registry import DeviceRegistry, seed_registry
from .runner import StaggerCycleRunner
from .scheduler import AutoScheduleController
from .transitions import StatusTransitionEngine

logger = logging.getLogger(__name__)


class DeviceMonitorService:
    """
    Main device monitor service.

    Adding a device immediately probes it; the auto-ping controller is
    re-armed whenever the device list becomes empty or non-empty.
    """

    def __init__(self, config: MonitorConfig, probe: Optional[ProbeMethod] = None):
        """
        Initialize monitor service.

        Args:
            config: Monitor configuration
            probe: Probe to use (defaults to a SimulatedProbe built from config)
        """
        self.config = config
        self.probe = probe or SimulatedProbe(
            min_latency=config.probe_min_latency,
            max_latency=config.probe_max_latency,
            success_rate=config.probe_success_rate,
        )

        self.registry = DeviceRegistry()
        self.engine = StatusTransitionEngine(
            self.registry,
            self.probe,
            probe_timeout=config.probe_timeout_seconds,
        )
        self.runner = StaggerCycleRunner(self.engine)
        self.controller = AutoScheduleController(
            self.registry,
            self.runner,
            schedule=config.to_schedule(),
            allowed_intervals=config.allowed_intervals,
            allowed_stagger=config.allowed_stagger,
        )
        self.registry.set_callbacks(
            on_added=self._on_device_added,
            on_removed=self._on_device_removed,
        )

        self._running = False
        self._shutdown_event = asyncio.Event()
        self._background: set[asyncio.Task] = set()

        self._api_runner: Optional[web.AppRunner] = None

    # -------------------------------------------------------------------------
    # Device operations
    # -------------------------------------------------------------------------

    def add_device(self, name: str, address: str) -> str:
        """
        Add a device and start its first probe.

        Raises:
            ValidationError: empty name or malformed IPv4 address
        """
        return self.registry.add(name, address)

    def remove_device(self, device_id: str) -> None:
        """Remove a device (no-op if unknown)."""
        self.registry.remove(device_id)

    def ping_one(self, device_id: str) -> bool:
        """
        Probe a single device in the background.

        Returns False if the device is unknown or already being probed.
        """
        return self.engine.submit(device_id) is not None

    async def ping_all(self) -> Optional[CycleResult]:
        """
        Probe every device concurrently.

        Rejected (returns None) while auto-ping is enabled, so manual and
        scheduled probing never double the load.
        """
        if self.controller.schedule.enabled:
            logger.warning("Probe-all rejected: auto-ping is enabled")
            return None
        return await self.runner.probe_all(self.registry.list(), triggered_by="manual")

    def list_devices(self) -> list[Device]:
        return self.registry.list()

    def status_counts(self) -> dict[str, int]:
        return self.registry.counts()

    # -------------------------------------------------------------------------
    # Schedule operations
    # -------------------------------------------------------------------------

    def set_auto_ping(self, enabled: bool) -> None:
        self.controller.set_enabled(enabled)

    def set_interval(self, seconds: Seconds) -> None:
        self.controller.set_interval(seconds)

    def set_stagger_delay(self, seconds: Seconds) -> None:
        self.controller.set_stagger(seconds)

    def schedule_status(self) -> dict:
        return self.controller.status()

    def _on_device_added(self, device: Device) -> None:
        self.engine.submit(device.id)
        self.controller.devices_changed()

    def _on_device_removed(self, device: Device) -> None:
        self.controller.devices_changed()

    def _spawn(self, coro) -> asyncio.Task:
        """Run a coroutine in the background, keeping a reference until done."""
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Start the monitor service and run until stopped."""
        logger.info(f"Starting Device Monitor Service v{__version__}")
        self._running = True

        if self.config.devices:
            ids = seed_registry(self.registry, self.config.devices)
            logger.info(f"Loaded {len(ids)} seed devices")

        # Seeding arms the timer through devices_changed()
        if not self.controller.is_active:
            self.controller.reconfigure()

        await self._start_api_server()

        await self._shutdown_event.wait()
        logger.info("Device monitor stopped")

    async def stop(self) -> None:
        """Stop the monitor service, leaving no background work."""
        if self._shutdown_event.is_set():
            return
        logger.info("Stopping Device Monitor Service")
        self._running = False

        await self.controller.shutdown()

        for task in list(self._background):
            task.cancel()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

        await self.engine.shutdown()

        if self._api_runner:
            await self._api_runner.cleanup()
            self._api_runner = None

        self._shutdown_event.set()

    async def _start_api_server(self) -> None:
        """Start API server."""
        self._api_runner = web.AppRunner(self.create_app())
        await self._api_runner.setup()
        site = web.TCPSite(self._api_runner, self.config.api_host, self.config.api_port)
        await site.start()
        logger.info(f"API server started on {self.config.api_host}:{self.config.api_port}")

    def create_app(self) -> web.Application:
        """Build the aiohttp application."""
        app = web.Application()
        app.router.add_get("/api/devices", self._handle_list_devices)
        app.router.add_post("/api/devices", self._handle_add_device)
        app.router.add_post("/api/devices/ping", self._handle_ping_all)
        app.router.add_get("/api/devices/{device_id}", self._handle_get_device)
        app.router.add_delete("/api/devices/{device_id}", self._handle_remove_device)
        app.router.add_post("/api/devices/{device_id}/ping", self._handle_ping_one)
        app.router.add_get("/api/schedule", self._handle_get_schedule)
        app.router.add_put("/api/schedule", self._handle_update_schedule)
        app.router.add_get("/api/health", self._handle_health)
        return app

    # -------------------------------------------------------------------------
    # API Handlers
    # -------------------------------------------------------------------------

    @staticmethod
    def _error(message: str, status: int) -> web.Response:
        return web.json_response({"status": "error", "message": message}, status=status)

    async def _handle_list_devices(self, request: web.Request) -> web.Response:
        """Handle GET /api/devices."""
        return web.json_response({
            "devices": [d.to_dict() for d in self.list_devices()],
            "counts": self.status_counts(),
        })

    async def _handle_add_device(self, request: web.Request) -> web.Response:
        """Handle POST /api/devices."""
        try:
            body = AddDeviceRequest.model_validate(await request.json())
            device_id = self.add_device(body.name, body.ip_address)
            device = self.registry.get(device_id)
            return web.json_response({"device": device.to_dict()}, status=201)

        except (ValidationError, RequestValidationError, json.JSONDecodeError) as e:
            return self._error(str(e), 400)
        except Exception as e:
            logger.error(f"Error adding device: {e}")
            return self._error(str(e), 500)

    async def _handle_get_device(self, request: web.Request) -> web.Response:
        """Handle GET /api/devices/{device_id}."""
        device = self.registry.get(request.match_info["device_id"])
        if not device:
            return self._error("Device not found", 404)
        return web.json_response({
            "device": device.to_dict(),
            "probing": self.engine.is_probing(device.id),
        })

    async def _handle_remove_device(self, request: web.Request) -> web.Response:
        """Handle DELETE /api/devices/{device_id}."""
        self.remove_device(request.match_info["device_id"])
        return web.json_response({"status": "ok"})

    async def _handle_ping_one(self, request: web.Request) -> web.Response:
        """Handle POST /api/devices/{device_id}/ping."""
        device_id = request.match_info["device_id"]
        if device_id not in self.registry:
            return self._error("Device not found", 404)
        if not self.ping_one(device_id):
            return self._error("Probe already in progress", 409)
        return web.json_response({"status": "started"}, status=202)

    async def _handle_ping_all(self, request: web.Request) -> web.Response:
        """Handle POST /api/devices/ping."""
        if self.controller.schedule.enabled:
            return self._error("Probe-all is unavailable while auto-ping is enabled", 409)

        self._spawn(self.ping_all())
        return web.json_response({
            "status": "started",
            "devices": len(self.registry),
        }, status=202)

    async def _handle_get_schedule(self, request: web.Request) -> web.Response:
        """Handle GET /api/schedule."""
        return web.json_response(self.schedule_status())

    async def _handle_update_schedule(self, request: web.Request) -> web.Response:
        """Handle PUT /api/schedule."""
        try:
            body = ScheduleUpdateRequest.model_validate(await request.json())
            self.controller.update(
                enabled=body.enabled,
                interval_seconds=body.interval_seconds,
                stagger_seconds=body.stagger_seconds,
            )
            return web.json_response(self.schedule_status())

        except (ValidationError, RequestValidationError, json.JSONDecodeError) as e:
            return self._error(str(e), 400)
        except Exception as e:
            logger.error(f"Error updating schedule: {e}")
            return self._error(str(e), 500)

    async def _handle_health(self, request: web.Request) -> web.Response:
        """Handle GET /api/health."""
        return web.json_response({
            "status": "ok",
            "service": "device-monitor",
            "version": __version__,
            "running": self._running,
            "devices": self.status_counts(),
            "probes_in_flight": self.engine.in_flight,
            "auto_ping_active": self.controller.is_active,
        })


def main():
    """Entry point for device-monitor service."""
    import argparse

    parser = argparse.ArgumentParser(description="Device Monitor Service")
    parser.add_argument("--config", type=str, help="Path to YAML config file")
    parser.add_argument("--host", type=str, help="API host")
    parser.add_argument("--port", type=int, help="API port")
    parser.add_argument("--log-level", type=str, help="Log level")
    parser.add_argument("--auto-ping", action="store_true", help="Enable auto-ping at startup")
    args = parser.parse_args()

    # Load configuration
    if args.config:
        config = MonitorConfig.from_yaml(Path(args.config))
    else:
        config = MonitorConfig.from_env()

    # Override with CLI args
    if args.host:
        config.api_host = args.host
    if args.port:
        config.api_port = args.port
    if args.log_level:
        config.log_level = args.log_level
    if args.auto_ping:
        config.auto_ping_enabled = True

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    # Validate
    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(f"Config error: {error}")
        sys.exit(1)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    service = DeviceMonitorService(config)

    def signal_handler():
        logger.info("Received shutdown signal")
        asyncio.ensure_future(service.stop())

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, signal_handler)

    try:
        loop.run_until_complete(service.start())
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        loop.run_until_complete(service.stop())
        loop.close()


if __name__ == "__main__":
    main()
