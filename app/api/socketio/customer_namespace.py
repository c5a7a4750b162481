# app/api/socketio/customer_namespace.py

from infrastructure.socketio_manager import AuthNamespace
from schemas.connection_schema import ActorRole, ConnectionContext
from schemas.order_event_schema import (
    OrderReference,
    CustomerReference,
    TypingRequest,
    StatusRequestEvent,
    CustomerTypingEvent,
)
from services.room_router import customer_room, order_room, support_room
import logging

logger = logging.getLogger(__name__)


class CustomerNamespace(AuthNamespace):
    """Socket.IO namespace for customers tracking their orders"""

    allowed_roles = frozenset({ActorRole.CUSTOMER, ActorRole.ADMIN})
    presence_bucket = "customers"
    event_handlers = {
        "order:track": "track_order",
        "order:untrack": "untrack_order",
        "order:requestStatus": "request_status",
        "chat:typing": "typing",
        "support:join": "join_support",
    }

    async def handle_connect(self, sid, context: ConnectionContext):
        """Join the customer's personal room"""
        if context.role == ActorRole.CUSTOMER:
            await self.join_room(context, customer_room(context.actor_id))
        logger.info(f"Customer connected: {sid} (User: {context.actor_id})")

    async def handle_disconnect(self, sid, context: ConnectionContext):
        logger.info(f"Customer disconnected: {sid} (User: {context.actor_id})")

    async def track_order(self, context: ConnectionContext, data):
        request = OrderReference.from_event(data)
        await self.join_room(context, order_room(request.order_id))
        logger.debug(f"Customer {context.actor_id} tracking order {request.order_id}")

    async def untrack_order(self, context: ConnectionContext, data):
        request = OrderReference.from_event(data)
        await self.leave_room(context, order_room(request.order_id))
        logger.debug(f"Customer {context.actor_id} stopped tracking order {request.order_id}")

    async def request_status(self, context: ConnectionContext, data):
        """Ask the restaurants monitoring the order to push its current status"""
        request = OrderReference.from_event(data)
        event = StatusRequestEvent(order_id=request.order_id, requested_by=context.actor_id)
        await self.bus.restaurant.to_room(order_room(request.order_id), 'order:statusRequest', event.to_payload())

    async def typing(self, context: ConnectionContext, data):
        """Typing indicator for the support chat of this customer"""
        request = TypingRequest.model_validate(data)
        event = CustomerTypingEvent(user_id=context.actor_id, is_typing=request.is_typing)
        await self.port.to_room(
            support_room(context.actor_id),
            'customer:typing',
            event.to_payload(),
            skip_sid=context.sid
        )

    async def join_support(self, context: ConnectionContext, data):
        """Support agents (admins) follow a customer's support chat"""
        self.require_role(context, {ActorRole.ADMIN}, action="support:join")
        request = CustomerReference.from_event(data)
        await self.join_room(context, support_room(request.customer_id))
        logger.info(f"Admin {context.actor_id} joined support chat of customer {request.customer_id}")
