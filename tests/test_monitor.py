"""
Unit tests for the resource monitor and alarm computation.
"""

import asyncio
import itertools
import logging
from dataclasses import replace
from unittest.mock import AsyncMock, Mock

import httpx
import pytest
import respx

from serverdash.config import MonitorSettings
from serverdash.context import ServerContext
from serverdash.errors import TransportError
from serverdash.models import Limits, TelemetrySample
from serverdash.monitor import (
    MonitorSnapshot,
    MonitorState,
    ResourceMonitor,
    compute_alarms,
    is_alarm_state,
)
from serverdash.panel_client import PanelClient
from tests.conftest import SERVER_UUID

FAST = MonitorSettings(poll_interval=0.01)


def make_sample(cpu=0.0, memory=0, disk=0) -> TelemetrySample:
    return TelemetrySample(cpu_usage_percent=cpu, memory_usage_in_bytes=memory, disk_usage_in_bytes=disk)


async def wait_for(predicate, timeout: float = 1.0) -> None:
    """Yield to the loop until ``predicate`` holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met in time")
        await asyncio.sleep(0.001)


class TestAlarms:
    """Test the alarm thresholds."""

    @pytest.mark.parametrize(
        "sample",
        [
            make_sample(cpu=10_000.0, memory=10**15, disk=10**15),
            make_sample(),
        ],
    )
    def test_unlimited_never_alarms(self, sample):
        alarms = compute_alarms(Limits(cpu=0, memory=0, disk=0), sample)

        assert not alarms.cpu
        assert not alarms.memory
        assert not alarms.disk

    def test_cpu_boundary(self):
        limits = Limits(cpu=100)

        assert not compute_alarms(limits, make_sample(cpu=89.99)).cpu
        assert compute_alarms(limits, make_sample(cpu=90.00)).cpu

    def test_cpu_boundary_above_one_core(self):
        limits = Limits(cpu=200)

        assert not compute_alarms(limits, make_sample(cpu=179.98)).cpu
        assert compute_alarms(limits, make_sample(cpu=180.0)).cpu

    def test_memory_uses_decimal_megabytes(self):
        limits = Limits(memory=1000)

        assert compute_alarms(limits, make_sample(memory=950_000_000)).memory
        assert not compute_alarms(limits, make_sample(memory=800_000_000)).memory
        assert compute_alarms(limits, make_sample(memory=900_000_000)).memory
        assert not compute_alarms(limits, make_sample(memory=899_999_999)).memory

    def test_disk(self):
        limits = Limits(disk=5000)

        assert compute_alarms(limits, make_sample(disk=4_600_000_000)).disk
        assert not compute_alarms(limits, make_sample(disk=4_000_000_000)).disk

    def test_is_alarm_state_zero_limit(self):
        assert not is_alarm_state(1_000_000, 0)


class TestMonitorSnapshot:
    """Test what the snapshot tells a renderer."""

    def test_alarms_follow_instance_limits(self, sample_instance):
        sample = make_sample(cpu=190.0, memory=100, disk=100)
        snapshot = MonitorSnapshot(instance=sample_instance, state=MonitorState.READY, stats=sample)

        assert snapshot.alarms.cpu
        assert not snapshot.alarms.memory

        unlimited = replace(sample_instance, limits=Limits(cpu=0, memory=1000, disk=5000))
        assert not MonitorSnapshot(instance=unlimited, state=MonitorState.READY, stats=sample).alarms.cpu

    def test_no_alarms_without_sample(self, sample_instance):
        assert MonitorSnapshot(instance=sample_instance, state=MonitorState.LOADING).alarms is None

    def test_status_label(self, sample_instance):
        assert MonitorSnapshot(instance=sample_instance, state=MonitorState.LOADING).status_label is None
        assert MonitorSnapshot(instance=sample_instance, state=MonitorState.ERROR).status_label == "Connection Error"

        installing = replace(sample_instance, is_installing=True, is_suspended=True)
        assert MonitorSnapshot(instance=installing, state=MonitorState.ERROR).status_label == "Installing"

        suspended = replace(sample_instance, is_suspended=True)
        assert MonitorSnapshot(instance=suspended, state=MonitorState.ERROR).status_label == "Suspended"

    def test_stale_sample(self, sample_instance, sample_stats):
        snapshot = MonitorSnapshot(instance=sample_instance, state=MonitorState.ERROR, stats=sample_stats)
        assert snapshot.is_stale
        assert not MonitorSnapshot(instance=sample_instance, state=MonitorState.READY, stats=sample_stats).is_stale

    def test_labels(self, sample_instance):
        snapshot = MonitorSnapshot(instance=sample_instance, state=MonitorState.LOADING)

        assert snapshot.memory_limit_label == "1 GB"
        assert snapshot.disk_limit_label == "5 GB"
        assert snapshot.allocation_labels == ["mc.example.com:25565"]


class TestResourceMonitor:
    """Test the polling lifecycle."""

    def test_initial_state(self, context):
        monitor = ResourceMonitor(context)

        assert monitor.state == MonitorState.LOADING
        assert monitor.stats is None
        assert monitor.alarms is None
        assert not monitor.is_running
        assert monitor.settings.poll_interval == 20

    @pytest.mark.asyncio
    async def test_first_fetch_moves_to_ready(self, context, sample_stats):
        context.client.get_resource_usage.return_value = sample_stats
        updates = []
        monitor = ResourceMonitor(context, FAST, on_update=updates.append)

        monitor.start()
        try:
            await wait_for(lambda: monitor.state == MonitorState.READY)
        finally:
            await monitor.stop()

        context.client.get_resource_usage.assert_called_with(context.server_uuid)
        assert updates[0].stats == sample_stats
        assert updates[0].state == MonitorState.READY

    @pytest.mark.asyncio
    async def test_failure_keeps_sample_and_keeps_polling(self, context, sample_stats, caplog):
        context.client.get_resource_usage.side_effect = itertools.chain(
            [
                sample_stats,
                TransportError("Unable to reach the panel"),
                TransportError("Unable to reach the panel"),
            ],
            itertools.repeat(sample_stats),
        )
        states = []
        monitor = ResourceMonitor(context, FAST, on_update=lambda snapshot: states.append(snapshot))

        with caplog.at_level(logging.ERROR, logger="serverdash.monitor"):
            monitor.start()
            try:
                await wait_for(lambda: context.client.get_resource_usage.call_count >= 4)
                await wait_for(lambda: len(states) >= 4)
            finally:
                await monitor.stop()

        assert [s.state for s in states[:4]] == [
            MonitorState.READY,
            MonitorState.ERROR,
            MonitorState.ERROR,
            MonitorState.READY,
        ]
        # The previous sample is retained while in error
        assert states[1].stats == sample_stats
        assert states[1].is_stale
        assert "Failed to fetch resource usage" in caplog.text

    @pytest.mark.asyncio
    async def test_fetches_never_overlap(self, context, sample_stats):
        in_flight = 0
        max_in_flight = 0

        async def slow_fetch(server_uuid):
            nonlocal in_flight, max_in_flight
            in_flight += 1
            max_in_flight = max(max_in_flight, in_flight)
            await asyncio.sleep(0.02)
            in_flight -= 1
            return sample_stats

        context.client.get_resource_usage = AsyncMock(side_effect=slow_fetch)
        monitor = ResourceMonitor(context, MonitorSettings(poll_interval=0.001))

        monitor.start()
        try:
            await wait_for(lambda: context.client.get_resource_usage.call_count >= 3)
        finally:
            await monitor.stop()

        assert max_in_flight == 1

    @pytest.mark.asyncio
    async def test_teardown_discards_in_flight_result(self, context, sample_stats):
        release = asyncio.Event()
        on_update = Mock()

        async def held_fetch(server_uuid):
            await release.wait()
            return sample_stats

        context.client.get_resource_usage = AsyncMock(side_effect=held_fetch)
        monitor = ResourceMonitor(context, FAST, on_update=on_update)

        monitor.start()
        await wait_for(lambda: context.client.get_resource_usage.call_count == 1)

        await monitor.stop()
        before = monitor.snapshot()

        # The response arrives after teardown
        release.set()
        await asyncio.sleep(0.05)

        assert monitor.snapshot() == before
        assert monitor.stats is None
        assert monitor.state == MonitorState.LOADING
        assert context.client.get_resource_usage.call_count == 1
        on_update.assert_not_called()

    @pytest.mark.asyncio
    async def test_stop_cancels_scheduled_fetch(self, context, sample_stats):
        context.client.get_resource_usage.return_value = sample_stats
        monitor = ResourceMonitor(context, MonitorSettings(poll_interval=0.05))

        monitor.start()
        await wait_for(lambda: monitor.state == MonitorState.READY)
        await monitor.stop()

        await asyncio.sleep(0.15)
        assert context.client.get_resource_usage.call_count == 1
        assert not monitor.is_running

    @pytest.mark.asyncio
    async def test_error_after_teardown_is_not_applied(self, context):
        release = asyncio.Event()

        async def failing_fetch(server_uuid):
            await asyncio.shield(release.wait())
            raise TransportError("late failure")

        context.client.get_resource_usage = AsyncMock(side_effect=failing_fetch)
        monitor = ResourceMonitor(context, FAST)

        monitor.start()
        await wait_for(lambda: context.client.get_resource_usage.call_count == 1)
        await monitor.stop()

        release.set()
        await asyncio.sleep(0.05)

        assert monitor.state == MonitorState.LOADING

    @pytest.mark.asyncio
    async def test_async_context_manager(self, context, sample_stats):
        context.client.get_resource_usage.return_value = sample_stats

        async with ResourceMonitor(context, FAST) as monitor:
            assert monitor.is_running
            await wait_for(lambda: monitor.state == MonitorState.READY)

        assert not monitor.is_running
        assert monitor.stats is None

    @pytest.mark.asyncio
    async def test_start_twice_is_ignored(self, context, sample_stats):
        context.client.get_resource_usage.return_value = sample_stats
        monitor = ResourceMonitor(context, MonitorSettings(poll_interval=10))

        monitor.start()
        first_task = monitor._task
        monitor.start()
        try:
            assert monitor._task is first_task
        finally:
            await monitor.stop()

    def test_set_instance_rejects_other_server(self, context, sample_instance):
        monitor = ResourceMonitor(context)
        other = replace(sample_instance, uuid="00000000-0000-0000-0000-000000000000")

        with pytest.raises(ValueError):
            monitor.set_instance(other)

    def test_set_instance_updates_limits(self, context, sample_instance, sample_stats):
        monitor = ResourceMonitor(context)
        monitor.stats = make_sample(cpu=95.0)

        assert not monitor.alarms.cpu
        monitor.set_instance(replace(sample_instance, limits=Limits(cpu=100, memory=1000, disk=5000)))
        assert monitor.alarms.cpu


class TestResourceMonitorAgainstPanel:
    """Test the monitor driven by the real client against a mocked panel."""

    @pytest.mark.asyncio
    async def test_malformed_body_moves_to_error_and_keeps_polling(self, sample_instance):
        client = PanelClient(base_url="http://panel.test", api_key="test-client-api-key")
        context = ServerContext(instance=sample_instance, client=client, permissions={"*"})
        monitor = ResourceMonitor(context, FAST)

        with respx.mock(base_url="http://panel.test") as panel:
            route = panel.get(f"/api/client/servers/{SERVER_UUID}/resources").mock(
                return_value=httpx.Response(200, json={"attributes": None})
            )

            monitor.start()
            try:
                await wait_for(lambda: route.call_count >= 3)
                assert monitor.state == MonitorState.ERROR
                assert monitor.is_running
                assert not monitor._task.done()
            finally:
                await monitor.stop()
                await client.close()

    @pytest.mark.asyncio
    async def test_recovers_after_malformed_body(self, sample_instance):
        client = PanelClient(base_url="http://panel.test", api_key="test-client-api-key")
        context = ServerContext(instance=sample_instance, client=client, permissions={"*"})
        states = []
        monitor = ResourceMonitor(context, FAST, on_update=lambda snapshot: states.append(snapshot.state))
        good = {"attributes": {"resources": {"cpu_absolute": 50.0, "memory_bytes": 1, "disk_bytes": 2}}}
        bodies = iter([{"attributes": {"resources": "n/a"}}])

        with respx.mock(base_url="http://panel.test") as panel:
            panel.get(f"/api/client/servers/{SERVER_UUID}/resources").mock(
                side_effect=lambda request: httpx.Response(200, json=next(bodies, good))
            )

            monitor.start()
            try:
                await wait_for(lambda: monitor.state == MonitorState.READY)
            finally:
                await monitor.stop()
                await client.close()

        assert states[:2] == [MonitorState.ERROR, MonitorState.READY]
