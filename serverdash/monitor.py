"""
Resource monitor for a single server.

Polls the panel for live resource usage on a fixed interval, keeps the most
recent TelemetrySample and derives the alarm flags shown next to each
metric. The monitor never gives up while it is running: a failed fetch moves
it to the ERROR state and the next fetch is still scheduled.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from .config import MonitorSettings
from .context import ServerContext
from .errors import TransportError
from .formatting import BYTES_PER_MEGABYTE, megabytes_to_human
from .models import AlarmState, Instance, Limits, TelemetrySample

logger = logging.getLogger(__name__)

# A metric is in alarm once usage reaches 90% of its limit.
ALARM_THRESHOLD = 0.9


def is_alarm_state(current: float, limit: float) -> bool:
    """
    Check whether ``current`` is within 10% of ``limit``.

    Args:
        current: Current usage, in the same unit as ``limit``
        limit: Configured limit; 0 means unlimited and never alarms
    """
    if limit == 0:
        return False
    return current >= limit * ALARM_THRESHOLD


def compute_alarms(limits: Limits, sample: TelemetrySample) -> AlarmState:
    """
    Derive the alarm flags for a sample against a server's limits.

    Memory and disk limits are in decimal megabytes and are converted to
    bytes before comparing.
    """
    return AlarmState(
        cpu=is_alarm_state(sample.cpu_usage_percent, limits.cpu),
        memory=is_alarm_state(sample.memory_usage_in_bytes, limits.memory * BYTES_PER_MEGABYTE),
        disk=is_alarm_state(sample.disk_usage_in_bytes, limits.disk * BYTES_PER_MEGABYTE),
    )


class MonitorState(Enum):
    """Readiness of the monitor."""

    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class MonitorSnapshot:
    """Read-only view of a monitor handed to renderers."""

    instance: Instance
    state: MonitorState
    stats: Optional[TelemetrySample] = None

    @property
    def alarms(self) -> Optional[AlarmState]:
        if self.stats is None:
            return None
        return compute_alarms(self.instance.limits, self.stats)

    @property
    def has_error(self) -> bool:
        return self.state == MonitorState.ERROR

    @property
    def is_stale(self) -> bool:
        """True when a sample is shown but the last fetch failed."""
        return self.has_error and self.stats is not None

    @property
    def status_label(self) -> Optional[str]:
        """
        The message to show instead of (or next to) the metrics.

        Returns:
            None unless the last fetch failed; otherwise "Installing",
            "Suspended" or "Connection Error", in that order of precedence.
        """
        if not self.has_error:
            return None
        if self.instance.is_installing:
            return "Installing"
        if self.instance.is_suspended:
            return "Suspended"
        return "Connection Error"

    @property
    def memory_limit_label(self) -> str:
        return megabytes_to_human(self.instance.limits.memory)

    @property
    def disk_limit_label(self) -> str:
        return megabytes_to_human(self.instance.limits.disk)

    @property
    def allocation_labels(self) -> List[str]:
        return [allocation.display_name for allocation in self.instance.default_allocations]


class ResourceMonitor:
    """
    Periodic resource usage poller for one server.

    The monitor starts in LOADING, moves to READY on each successful fetch
    and to ERROR on each failed one (keeping the previous sample). Fetches
    are strictly sequential: the next one is only issued once the previous
    result has been processed and the poll interval has elapsed.

    stop() is the teardown. It cancels the pending fetch and bumps a
    generation counter; any result that still arrives for an older
    generation is dropped without touching state.
    """

    def __init__(
        self,
        context: ServerContext,
        settings: Optional[MonitorSettings] = None,
        on_update: Optional[Callable[[MonitorSnapshot], None]] = None,
    ):
        """
        Initialize the resource monitor.

        Args:
            context: The server being monitored and the client to reach it
            settings: Poll settings; defaults to a 20 second interval
            on_update: Called with a fresh snapshot after every applied result
        """
        self.context = context
        self.settings = settings or MonitorSettings()
        self.on_update = on_update

        self.instance: Instance = context.instance
        self.state = MonitorState.LOADING
        self.stats: Optional[TelemetrySample] = None

        self._generation = 0
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def alarms(self) -> Optional[AlarmState]:
        return self.snapshot().alarms

    def snapshot(self) -> MonitorSnapshot:
        return MonitorSnapshot(instance=self.instance, state=self.state, stats=self.stats)

    def set_instance(self, instance: Instance) -> None:
        """Swap in a reloaded Instance; alarms are recomputed against its limits."""
        if instance.uuid != self.instance.uuid:
            raise ValueError("Cannot switch a monitor to a different server")
        self.instance = instance
        if self._running:
            self._notify()

    def start(self) -> None:
        """Issue the first fetch and keep polling until stop() is called."""
        if self._running:
            logger.warning(f"Resource monitor for {self.instance.uuid} is already running")
            return

        self._running = True
        self._generation += 1
        self._task = asyncio.create_task(self._poll_loop(self._generation))
        logger.info(f"Resource monitor started for {self.instance.uuid}")

    async def stop(self) -> None:
        """Tear down the monitor, cancelling the pending fetch and discarding state."""
        if not self._running:
            return

        self._running = False
        self._generation += 1

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        self.stats = None
        self.state = MonitorState.LOADING
        logger.info(f"Resource monitor stopped for {self.instance.uuid}")

    async def __aenter__(self) -> "ResourceMonitor":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    def _is_current(self, generation: int) -> bool:
        return self._running and generation == self._generation

    async def _poll_loop(self, generation: int) -> None:
        while self._is_current(generation):
            await self._fetch_stats(generation)
            await asyncio.sleep(self.settings.poll_interval)

    async def _fetch_stats(self, generation: int) -> None:
        server_uuid = self.instance.uuid
        try:
            sample = await self.context.client.get_resource_usage(server_uuid)
        except (TransportError, ValueError) as e:
            if not self._is_current(generation):
                logger.debug(f"Discarding resource usage error for stopped monitor {server_uuid}: {e}")
                return
            logger.error(f"Failed to fetch resource usage for {server_uuid}: {e}")
            self.state = MonitorState.ERROR
            self._notify()
            return

        if not self._is_current(generation):
            logger.debug(f"Discarding resource usage for stopped monitor {server_uuid}")
            return

        self.stats = sample
        self.state = MonitorState.READY
        self._notify()

    def _notify(self) -> None:
        if not self.on_update:
            return
        try:
            self.on_update(self.snapshot())
        except Exception as e:
            logger.error(f"Error in resource monitor update handler: {e}")
