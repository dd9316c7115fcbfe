"""
Connectivity tracking for the field client.

The monitor drains the sync engine on every offline -> online transition,
once at start when already online, and every `interval` seconds while online.
"""

import asyncio
import contextlib
import logging
from typing import Awaitable, Callable, List, Optional

from VistoriaAPI.offline.sync import DrainReport, SyncEngine

logger = logging.getLogger(__name__)

DRAIN_INTERVAL_SECONDS = 300.0
PROBE_INTERVAL_SECONDS = 30.0


class ConnectivityMonitor:
    """
    Args:
        engine (SyncEngine): Engine to drain.
        probe: Optional coroutine function returning True when the API is reachable.
            Without it, callers report transitions through `set_online`.
        interval (float): Seconds between periodic drains while online.
        probe_interval (float): Seconds between probes.
    """

    def __init__(
        self,
        engine: SyncEngine,
        probe: Optional[Callable[[], Awaitable[bool]]] = None,
        interval: float = DRAIN_INTERVAL_SECONDS,
        probe_interval: float = PROBE_INTERVAL_SECONDS,
    ):
        self.engine = engine
        self.probe = probe
        self.interval = interval
        self.probe_interval = probe_interval
        self.online = False
        self._tasks: List[asyncio.Task] = []

    async def set_online(self, online: bool) -> Optional[DrainReport]:
        """Record the connectivity state; drains once when it flips to online."""
        was_online = self.online
        self.online = bool(online)
        if self.online and not was_online:
            logger.info("Connection restored; draining offline queue")
            return await self.engine.drain()
        if was_online and not self.online:
            logger.info("Connection lost; queuing changes locally")
        return None

    async def start(self, online: Optional[bool] = None) -> Optional[DrainReport]:
        """
        Begin monitoring.

        Args:
            online (bool): Initial state. When omitted the probe decides, or offline without one.
        """
        if online is None:
            online = await self.probe() if self.probe else False
        self.online = bool(online)

        self._tasks.append(asyncio.create_task(self._periodic_drain()))
        if self.probe:
            self._tasks.append(asyncio.create_task(self._probe_loop()))

        if self.online:
            return await self.engine.drain()
        return None

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks = []

    async def _periodic_drain(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            if not self.online:
                continue
            try:
                await self.engine.drain()
            except Exception:
                logger.exception("Periodic drain failed")

    async def _probe_loop(self) -> None:
        while True:
            await asyncio.sleep(self.probe_interval)
            try:
                reachable = await self.probe()
            except Exception:
                logger.exception("Connectivity probe failed")
                reachable = False
            try:
                await self.set_online(reachable)
            except Exception:
                logger.exception("Drain after reconnect failed")
