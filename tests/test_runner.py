"""Tests for the stagger cycle runner."""

import asyncio

import pytest

from device_monitor._types import DeviceStatus, ProbeVerdict
from device_monitor.exceptions import ProbeFailure
from device_monitor.registry import DeviceRegistry
from device_monitor.runner import StaggerCycleRunner
from device_monitor.transitions import StatusTransitionEngine

from conftest import GatedProbe, ScriptedProbe

STAGGER = 0.05
LATENCY = 0.01


@pytest.fixture
def abc_registry(registry: DeviceRegistry):
    """Registry with devices A, B, C added in that order."""
    registry.add("A", "10.0.0.1")
    registry.add("B", "10.0.0.2")
    registry.add("C", "10.0.0.3")
    return registry


def make_runner(registry, probe):
    return StaggerCycleRunner(StatusTransitionEngine(registry, probe))


class TestStaggerCycle:
    """Tests for sequential, staggered cycles."""

    @pytest.mark.asyncio
    async def test_probes_in_insertion_order(self, abc_registry):
        """Devices are probed A, B, C."""
        probe = ScriptedProbe(latency=LATENCY)
        runner = make_runner(abc_registry, probe)

        result = await runner.run_cycle(abc_registry.list(), STAGGER)

        assert probe.order == ["10.0.0.1", "10.0.0.2", "10.0.0.3"]
        assert result.status == "completed"
        assert result.devices_probed == 3
        assert result.completed_at is not None

    @pytest.mark.asyncio
    async def test_stagger_gaps_and_no_overlap(self, abc_registry):
        """Each probe starts at least STAGGER after the previous one ends."""
        probe = ScriptedProbe(latency=LATENCY)
        runner = make_runner(abc_registry, probe)
        loop = asyncio.get_running_loop()

        started = loop.time()
        await runner.run_cycle(abc_registry.list(), STAGGER)
        elapsed = loop.time() - started

        assert probe.max_active == 1
        for (_, prev_end), (_, next_start) in zip(probe.finished, probe.started[1:]):
            assert next_start - prev_end >= STAGGER * 0.9
        assert elapsed >= 2 * STAGGER + 3 * LATENCY * 0.9

    @pytest.mark.asyncio
    async def test_no_trailing_stagger(self, registry: DeviceRegistry):
        """A single-device cycle does not wait after its only probe."""
        registry.add("A", "10.0.0.1")
        runner = make_runner(registry, ScriptedProbe())
        loop = asyncio.get_running_loop()

        started = loop.time()
        await runner.run_cycle(registry.list(), 1.0)

        assert loop.time() - started < 0.5

    @pytest.mark.asyncio
    async def test_failing_device_does_not_abort_cycle(self, abc_registry):
        """Failures settle OFFLINE and the cycle continues."""
        probe = ScriptedProbe(verdicts={
            "10.0.0.1": ProbeFailure("10.0.0.1", "timeout"),
            "10.0.0.2": ProbeVerdict.UNREACHABLE,
        })
        runner = make_runner(abc_registry, probe)

        result = await runner.run_cycle(abc_registry.list(), 0)

        assert result.status == "completed"
        assert result.online == 1
        assert result.offline == 2
        statuses = [d.status for d in abc_registry.list()]
        assert statuses == [DeviceStatus.OFFLINE, DeviceStatus.OFFLINE, DeviceStatus.ONLINE]

    @pytest.mark.asyncio
    async def test_empty_snapshot(self, registry: DeviceRegistry):
        result = await make_runner(registry, ScriptedProbe()).run_cycle([], STAGGER)

        assert result.status == "completed"
        assert result.devices_probed == 0


class TestSnapshotSemantics:
    """Tests for devices changing during a cycle."""

    @pytest.mark.asyncio
    async def test_removed_mid_cycle_is_skipped(self, abc_registry):
        """A device removed before its turn is skipped silently."""
        probe = ScriptedProbe(latency=LATENCY)
        runner = make_runner(abc_registry, probe)
        snapshot = abc_registry.list()

        cycle = asyncio.create_task(runner.run_cycle(snapshot, STAGGER))
        await asyncio.sleep(LATENCY)  # A is being probed
        abc_registry.remove(snapshot[1].id)
        result = await cycle

        assert probe.order == ["10.0.0.1", "10.0.0.3"]
        assert result.skipped == 1
        assert result.devices_probed == 2

    @pytest.mark.asyncio
    async def test_added_after_snapshot_waits_for_next_cycle(self, abc_registry):
        probe = ScriptedProbe(latency=LATENCY)
        runner = make_runner(abc_registry, probe)
        snapshot = abc_registry.list()

        cycle = asyncio.create_task(runner.run_cycle(snapshot, STAGGER))
        await asyncio.sleep(LATENCY)
        abc_registry.add("D", "10.0.0.4")
        await cycle

        assert "10.0.0.4" not in probe.order

        await runner.run_cycle(abc_registry.list(), 0)
        assert probe.order[-1] == "10.0.0.4"


class TestCycleCancellation:
    """Tests for cancelling a cycle."""

    @pytest.mark.asyncio
    async def test_cancel_lets_in_flight_probe_finish(self, abc_registry, gated_probe: GatedProbe):
        """Remaining devices are abandoned; the in-flight probe still writes back."""
        runner = make_runner(abc_registry, gated_probe)
        snapshot = abc_registry.list()

        cycle = asyncio.create_task(runner.run_cycle(snapshot, STAGGER))
        await gated_probe.entered.wait()
        cycle.cancel()
        with pytest.raises(asyncio.CancelledError):
            await cycle

        gated_probe.release()
        await runner.engine.drain()

        statuses = [d.status for d in abc_registry.list()]
        assert statuses[0] == DeviceStatus.ONLINE
        assert gated_probe.calls == 1

    @pytest.mark.asyncio
    async def test_cancel_during_stagger_wait(self, abc_registry):
        probe = ScriptedProbe()
        runner = make_runner(abc_registry, probe)

        cycle = asyncio.create_task(runner.run_cycle(abc_registry.list(), 10))
        await asyncio.sleep(0.05)
        cycle.cancel()
        with pytest.raises(asyncio.CancelledError):
            await cycle

        assert probe.order == ["10.0.0.1"]


class TestProbeAll:
    """Tests for the immediate parallel probe-all."""

    @pytest.mark.asyncio
    async def test_probe_all_runs_concurrently(self, abc_registry):
        """All devices are probed at once, without stagger."""
        probe = ScriptedProbe(latency=0.1)
        runner = make_runner(abc_registry, probe)
        loop = asyncio.get_running_loop()

        started = loop.time()
        result = await runner.probe_all(abc_registry.list())
        elapsed = loop.time() - started

        assert probe.max_active == 3
        assert elapsed < 0.25
        assert result.devices_probed == 3
        assert result.triggered_by == "manual"
        assert all(d.status == DeviceStatus.ONLINE for d in abc_registry.list())

    @pytest.mark.asyncio
    async def test_probe_all_absorbs_failures(self, abc_registry):
        probe = ScriptedProbe(verdicts={"10.0.0.2": RuntimeError("unreachable host")})
        runner = make_runner(abc_registry, probe)

        result = await runner.probe_all(abc_registry.list())

        assert result.online == 2
        assert result.offline == 1
