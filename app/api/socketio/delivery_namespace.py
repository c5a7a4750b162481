# app/api/socketio/delivery_namespace.py

from infrastructure.socketio_manager import AuthNamespace
from exceptions.domain_exceptions import ValidationException
from schemas.connection_schema import ActorRole, ConnectionContext
from schemas.order_event_schema import (
    OrderReference,
    SetDeliveryStatusRequest,
    LocationUpdateRequest,
    CompleteOrderRequest,
    DriverInfo,
    DeliveryAssignedEvent,
    DeliveryAssignedNotice,
    CustomerLocationEvent,
    RestaurantLocationEvent,
    OrderDeliveredEvent,
    OrderDeliveredNotice,
)
from services.room_router import delivery_room, order_room
import logging

logger = logging.getLogger(__name__)


class DeliveryNamespace(AuthNamespace):
    """Socket.IO namespace for delivery drivers"""

    allowed_roles = frozenset({ActorRole.DELIVERY, ActorRole.ADMIN})
    presence_bucket = "delivery"
    event_handlers = {
        "delivery:setStatus": "set_status",
        "order:accept": "accept_order",
        "location:update": "update_location",
        "order:complete": "complete_order",
    }

    async def handle_connect(self, sid, context: ConnectionContext):
        logger.info(f"Delivery driver connected: {sid} (User: {context.actor_id})")

    async def handle_disconnect(self, sid, context: ConnectionContext):
        logger.info(f"Delivery driver disconnected: {sid} (User: {context.actor_id}, Order: {context.current_order_id})")

    async def set_status(self, context: ConnectionContext, data):
        """Move the driver into the room of its new status (available, busy, offline)"""
        request = SetDeliveryStatusRequest.from_event(data)
        if context.delivery_status and context.delivery_status != request.status:
            await self.leave_room(context, delivery_room(context.delivery_status.value))

        await self.join_room(context, delivery_room(request.status.value))
        context.delivery_status = request.status
        logger.debug(f"Delivery {context.actor_id} status set to {request.status.value}")

    async def accept_order(self, context: ConnectionContext, data):
        request = OrderReference.from_event(data)
        room = order_room(request.order_id)
        await self.join_room(context, room)
        context.current_order_id = request.order_id

        driver = DriverInfo(name=context.name or "Conductor", phone=context.phone)
        customer_event = DeliveryAssignedEvent(
            order_id=request.order_id,
            delivery_id=context.actor_id,
            driver=driver
        )
        restaurant_event = DeliveryAssignedNotice(order_id=request.order_id, delivery_id=context.actor_id)

        await self.bus.fan_out(room, 'delivery:assigned', [
            (self.bus.customer, customer_event.to_payload()),
            (self.bus.restaurant, restaurant_event.to_payload()),
        ])
        logger.info(f"Order {request.order_id} accepted by delivery {context.actor_id}")

    async def update_location(self, context: ConnectionContext, data):
        """Relay the driver position, unchanged, to everyone following the order"""
        request = LocationUpdateRequest.model_validate(data)
        order_id = request.order_id or context.current_order_id
        if not order_id:
            raise ValidationException(
                'orderId is required when no order has been accepted',
                details={'event': 'location:update'}
            )

        room = order_room(order_id)
        customer_event = CustomerLocationEvent(order_id=order_id, location=request.location)
        restaurant_event = RestaurantLocationEvent(
            order_id=order_id,
            location=request.location.model_dump(mode="json", exclude_unset=True)
        )

        await self.bus.fan_out(room, 'delivery:locationUpdate', [
            (self.bus.customer, customer_event.to_payload()),
            (self.bus.restaurant, restaurant_event.to_payload()),
        ])

    async def complete_order(self, context: ConnectionContext, data):
        request = CompleteOrderRequest.model_validate(data)
        room = order_room(request.order_id)

        customer_event = OrderDeliveredEvent(
            order_id=request.order_id,
            signature=request.signature,
            photo=request.photo
        )
        restaurant_event = OrderDeliveredNotice(order_id=request.order_id, delivered_by=context.actor_id)

        try:
            await self.bus.fan_out(room, 'order:delivered', [
                (self.bus.customer, customer_event.to_payload()),
                (self.bus.restaurant, restaurant_event.to_payload()),
            ])
        finally:
            await self.leave_room(context, room)
            if context.current_order_id == request.order_id:
                context.current_order_id = None

        logger.info(f"Order {request.order_id} completed by delivery {context.actor_id}")
