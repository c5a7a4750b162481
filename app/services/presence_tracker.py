# app/services/presence_tracker.py

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from exceptions.domain_exceptions import BroadcastException
from schemas.connection_schema import ConnectionStats
from schemas.order_event_schema import HeartbeatEvent
from services.event_bus import EventBus, NAMESPACES
from services.presence_service import PresenceRegistry

logger = logging.getLogger(__name__)


class PresenceTracker:
    """
    Periodic liveness and stats for the realtime layer.

    Sends a `ping` to every namespace each `heartbeat_interval` seconds and
    logs connection counts each `stats_interval` seconds. `start()` runs
    until `stop()` is called.
    """

    def __init__(
        self,
        bus: EventBus,
        presence: PresenceRegistry,
        heartbeat_interval: float = 30,
        stats_interval: float = 60,
    ):
        self.bus = bus
        self.presence = presence
        self.heartbeat_interval = heartbeat_interval
        self.stats_interval = stats_interval
        self.is_running = False
        self._stop_event: Optional[asyncio.Event] = None

    async def start(self):
        """Run the heartbeat and stats loops until stopped"""
        if self.is_running:
            logger.warning("PresenceTracker is already running")
            return

        self.is_running = True
        self._stop_event = asyncio.Event()
        logger.info(
            f"PresenceTracker started (heartbeat every {self.heartbeat_interval}s, "
            f"stats every {self.stats_interval}s)"
        )

        await asyncio.gather(
            self._run_every(self.heartbeat_interval, self.send_heartbeat),
            self._run_every(self.stats_interval, self.log_stats),
        )

    def stop(self):
        """Stop the tracker; the loops exit without waiting for their next tick"""
        self.is_running = False
        if self._stop_event is not None:
            self._stop_event.set()
        logger.info("PresenceTracker stopped")

    async def _run_every(self, interval: float, action: Callable[[], Awaitable]):
        while self.is_running:
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

            if not self.is_running:
                break

            try:
                await action()
            except Exception as e:
                logger.error(f"Error in presence tracker tick: {e}", exc_info=True)

    async def send_heartbeat(self):
        """Idle-connection liveness ping to all four namespaces"""
        heartbeat = HeartbeatEvent()
        try:
            await self.bus.broadcast([self.bus.port(ns) for ns in NAMESPACES], 'ping', heartbeat.to_payload())
        except BroadcastException as e:
            logger.warning(f"Heartbeat not delivered: {e.details}")

    async def log_stats(self) -> ConnectionStats:
        stats = self.presence.stats()
        logger.info(f"Socket.io connection stats: {stats.model_dump()}")
        return stats
