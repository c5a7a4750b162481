# app/api/socketio/restaurant_namespace.py

from infrastructure.socketio_manager import AuthNamespace
from exceptions.domain_exceptions import ValidationException
from schemas.connection_schema import ActorRole, ConnectionContext
from schemas.order_event_schema import (
    OrderReference,
    RestaurantReference,
    UpdateOrderStatusRequest,
    ReceivedOrderNotice,
    OrderStatus,
    OrderStatusUpdatedEvent,
    ReadyForPickupEvent,
)
from services.room_router import order_room, restaurant_room
import logging

logger = logging.getLogger(__name__)


class RestaurantNamespace(AuthNamespace):
    """
    Socket.IO namespace for restaurant dashboards.

    A connection binds itself to one restaurant with `restaurant:join`;
    that id is attached to `order:readyForPickup` and used to relay
    `order:received` to the restaurant's other devices.
    """

    allowed_roles = frozenset({ActorRole.RESTAURANT, ActorRole.ADMIN})
    presence_bucket = "restaurants"
    event_handlers = {
        "restaurant:join": "join_restaurant",
        "order:monitor": "monitor_order",
        "order:updateStatus": "update_status",
        "order:received": "order_received",
    }

    async def handle_connect(self, sid, context: ConnectionContext):
        """Join the restaurant user's personal room"""
        if context.role == ActorRole.RESTAURANT:
            await self.join_room(context, restaurant_room(context.actor_id))
        logger.info(f"Restaurant connected: {sid} (User: {context.actor_id})")

    async def handle_disconnect(self, sid, context: ConnectionContext):
        logger.info(f"Restaurant disconnected: {sid} (User: {context.actor_id}, Restaurant: {context.restaurant_id})")

    async def join_restaurant(self, context: ConnectionContext, data):
        request = RestaurantReference.from_event(data)
        previous = context.restaurant_id
        # The personal room is kept even when it doubles as the bound restaurant room
        if previous and previous != request.restaurant_id and not self._is_personal(context, previous):
            await self.leave_room(context, restaurant_room(previous))

        await self.join_room(context, restaurant_room(request.restaurant_id))
        context.restaurant_id = request.restaurant_id
        logger.debug(f"Restaurant user {context.actor_id} joined room of restaurant {request.restaurant_id}")

    @staticmethod
    def _is_personal(context: ConnectionContext, restaurant_id: str) -> bool:
        return context.role == ActorRole.RESTAURANT and restaurant_id == context.actor_id

    async def monitor_order(self, context: ConnectionContext, data):
        request = OrderReference.from_event(data)
        await self.join_room(context, order_room(request.order_id))
        logger.debug(f"Restaurant user {context.actor_id} monitoring order {request.order_id}")

    async def update_status(self, context: ConnectionContext, data):
        """
        Push a status change to the customers tracking the order.

        When the order becomes ready, every delivery connection is told it
        can be picked up, whatever status room it is in.
        """
        request = UpdateOrderStatusRequest.model_validate(data)

        status_event = OrderStatusUpdatedEvent(
            order_id=request.order_id,
            status=request.status,
            estimated_time=request.estimated_time,
            notes=request.notes
        )
        try:
            await self.bus.customer.to_room(order_room(request.order_id), 'order:statusUpdated', status_event.to_payload())
        finally:
            if request.status == OrderStatus.READY:
                pickup_event = ReadyForPickupEvent(order_id=request.order_id, restaurant_id=context.restaurant_id)
                await self.bus.delivery.broadcast('order:readyForPickup', pickup_event.to_payload())

        logger.info(f"Order {request.order_id} status updated to {request.status.value} by {context.actor_id}")

    async def order_received(self, context: ConnectionContext, data):
        """Relay a new order to the restaurant's other connected devices"""
        if not context.restaurant_id:
            raise ValidationException(
                'Join a restaurant room before relaying orders',
                details={'event': 'order:received'}
            )

        notice = ReceivedOrderNotice.model_validate(data)
        await self.port.to_room(
            restaurant_room(context.restaurant_id),
            'order:new',
            notice.to_payload(),
            skip_sid=context.sid
        )
        logger.info(f"New order {notice.order_id} received for restaurant {context.restaurant_id}")
