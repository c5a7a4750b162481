# app/services/event_bus.py

import logging
from typing import Any, Dict, Iterable, Optional, Tuple

from exceptions.domain_exceptions import BroadcastException
from services.room_router import RoomRouter

logger = logging.getLogger(__name__)


CUSTOMER_NAMESPACE = "/customer"
RESTAURANT_NAMESPACE = "/restaurant"
DELIVERY_NAMESPACE = "/delivery"
ADMIN_NAMESPACE = "/admin"

NAMESPACES = (CUSTOMER_NAMESPACE, RESTAURANT_NAMESPACE, DELIVERY_NAMESPACE, ADMIN_NAMESPACE)


class NamespacePort:
    """
    Output port for one namespace.

    Every emission of the realtime layer goes through a port, so a handler
    on /restaurant that notifies customers does it through the /customer
    port it was given rather than by reaching into another namespace.
    """

    def __init__(self, name: str, transport, router: RoomRouter):
        self.name = name
        self.transport = transport
        self.router = router

    async def to_connection(self, sid: str, event: str, data: Any = None):
        try:
            await self.transport.emit(event, data, to=sid, namespace=self.name)
        except Exception as e:
            logger.warning(f"Emit '{event}' to {sid} on {self.name} failed: {e}")
            raise BroadcastException(
                message=f"Failed to deliver '{event}'",
                details={"namespace": self.name, "failed_sids": [sid]}
            ) from e

    async def to_room(self, room: str, event: str, data: Any = None, skip_sid: Optional[str] = None) -> int:
        """
        Deliver event once to every current member of room.

        The Socket.IO server fans the event out to the room; nothing is
        emitted when the room has no member besides skip_sid. Returns the
        number of sids addressed.
        """
        recipients = self.router.members(self.name, room)
        recipients.discard(skip_sid)
        if not recipients:
            return 0

        try:
            await self.transport.emit(event, data, room=room, skip_sid=skip_sid, namespace=self.name)
        except Exception as e:
            logger.warning(f"Emit '{event}' to {room} on {self.name} failed: {e}")
            raise BroadcastException(
                message=f"Failed to deliver '{event}' to {room}",
                details={"namespace": self.name, "room": room}
            ) from e
        return len(recipients)

    async def broadcast(self, event: str, data: Any = None):
        """Deliver event to every connection of the namespace, regardless of rooms"""
        try:
            await self.transport.emit(event, data, namespace=self.name)
        except Exception as e:
            logger.warning(f"Broadcast '{event}' on {self.name} failed: {e}")
            raise BroadcastException(
                message=f"Failed to broadcast '{event}'",
                details={"namespace": self.name}
            ) from e

    async def enter_room(self, sid: str, room: str):
        await self.transport.enter_room(sid, room, namespace=self.name)

    async def leave_room(self, sid: str, room: str):
        await self.transport.leave_room(sid, room, namespace=self.name)

    async def disconnect(self, sid: str):
        await self.transport.disconnect(sid, namespace=self.name)


class EventBus:
    """One transport, one router, one port per namespace"""

    def __init__(self, transport, router: RoomRouter):
        self.transport = transport
        self.router = router
        self._ports: Dict[str, NamespacePort] = {
            name: NamespacePort(name, transport, router) for name in NAMESPACES
        }

    async def fan_out(self, room: str, event: str, deliveries: Iterable[Tuple[NamespacePort, Any]]) -> int:
        """
        Emit event into the same room on several namespaces.

        Each (port, payload) pair is attempted even when an earlier one
        failed; failures are raised together at the end.
        """
        delivered = 0
        failures = []
        for port, payload in deliveries:
            try:
                delivered += await port.to_room(room, event, payload)
            except BroadcastException as e:
                failures.append(e.details)

        if failures:
            raise BroadcastException(
                message=f"Failed to deliver '{event}' in {room}",
                details={"room": room, "failures": failures}
            )
        return delivered

    async def broadcast(self, ports: Iterable[NamespacePort], event: str, data: Any = None):
        """Broadcast to several whole namespaces, attempting each one"""
        failed = []
        for port in ports:
            try:
                await port.broadcast(event, data)
            except BroadcastException:
                failed.append(port.name)

        if failed:
            raise BroadcastException(
                message=f"Failed to broadcast '{event}'",
                details={"failed_namespaces": failed}
            )

    def port(self, namespace: str) -> NamespacePort:
        try:
            return self._ports[namespace]
        except KeyError:
            raise ValueError(f"Unknown namespace: {namespace}") from None

    @property
    def customer(self) -> NamespacePort:
        return self._ports[CUSTOMER_NAMESPACE]

    @property
    def restaurant(self) -> NamespacePort:
        return self._ports[RESTAURANT_NAMESPACE]

    @property
    def delivery(self) -> NamespacePort:
        return self._ports[DELIVERY_NAMESPACE]

    @property
    def admin(self) -> NamespacePort:
        return self._ports[ADMIN_NAMESPACE]
