# app/services/notification_service.py

import logging
from typing import Any

from exceptions.domain_exceptions import BroadcastException
from schemas.connection_schema import ConnectionStats, DeliveryStatus
from services.event_bus import EventBus
from services.presence_service import PresenceRegistry
from services.room_router import (
    ADMIN_DASHBOARD_ROOM,
    customer_room,
    delivery_room,
    order_room,
    restaurant_room,
)

logger = logging.getLogger(__name__)


class RealtimeNotifier:
    """
    Entry point for HTTP handlers that need to push an event to sockets.

    Every method is fire-and-forget: it returns True when the underlying
    publish succeeded and False otherwise. Failures are logged, never raised
    and never retried.
    """

    def __init__(self, bus: EventBus, presence: PresenceRegistry):
        self.bus = bus
        self.presence = presence

    async def emit_to_customer(self, actor_id: str, event: str, data: Any = None) -> bool:
        return await self._publish(
            f"{event} -> customer {actor_id}",
            self.bus.customer.to_room(customer_room(actor_id), event, data)
        )

    async def emit_to_restaurant(self, restaurant_id: str, event: str, data: Any = None) -> bool:
        return await self._publish(
            f"{event} -> restaurant {restaurant_id}",
            self.bus.restaurant.to_room(restaurant_room(restaurant_id), event, data)
        )

    async def emit_to_order(self, order_id: str, event: str, data: Any = None) -> bool:
        """Customers, restaurants and drivers following the order all get the event"""
        return await self._publish(
            f"{event} -> order {order_id}",
            self.bus.fan_out(order_room(order_id), event, [
                (self.bus.customer, data),
                (self.bus.restaurant, data),
                (self.bus.delivery, data),
            ])
        )

    async def emit_to_available_delivery(self, event: str, data: Any = None) -> bool:
        return await self._publish(
            f"{event} -> available drivers",
            self.bus.delivery.to_room(delivery_room(DeliveryStatus.AVAILABLE.value), event, data)
        )

    async def emit_to_admin(self, event: str, data: Any = None) -> bool:
        return await self._publish(
            f"{event} -> admin dashboard",
            self.bus.admin.to_room(ADMIN_DASHBOARD_ROOM, event, data)
        )

    def get_connection_stats(self) -> ConnectionStats:
        return self.presence.stats()

    async def _publish(self, description: str, publish) -> bool:
        try:
            await publish
        except BroadcastException as e:
            logger.warning(f"Realtime emit failed ({description}): {e.message} {e.details}")
            return False

        logger.debug(f"Realtime emit sent ({description})")
        return True
