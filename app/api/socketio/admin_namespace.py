# app/api/socketio/admin_namespace.py

from infrastructure.socketio_manager import AuthNamespace
from schemas.connection_schema import ActorRole, ConnectionContext, StatsUpdateEvent
from schemas.order_event_schema import AdminBroadcastRequest, BroadcastTarget, OrderReference
from services.room_router import ADMIN_DASHBOARD_ROOM, order_room
import logging

logger = logging.getLogger(__name__)


class AdminNamespace(AuthNamespace):
    """Socket.IO namespace for the admin dashboard"""

    allowed_roles = frozenset({ActorRole.ADMIN})
    presence_bucket = "admin"
    event_handlers = {
        "admin:join": "join_dashboard",
        "stats:request": "request_stats",
        "broadcast": "broadcast_message",
        "order:monitor": "monitor_order",
    }

    async def handle_connect(self, sid, context: ConnectionContext):
        logger.info(f"Admin connected: {sid} (User: {context.actor_id})")
        await self.join_dashboard(context, None)

    async def handle_disconnect(self, sid, context: ConnectionContext):
        logger.info(f"Admin disconnected: {sid} (User: {context.actor_id})")

    async def join_dashboard(self, context: ConnectionContext, data):
        # Checked here as well as at the namespace gate
        self.require_role(context, {ActorRole.ADMIN}, action="admin:join")
        await self.join_room(context, ADMIN_DASHBOARD_ROOM)

    async def request_stats(self, context: ConnectionContext, data):
        """Reply to the sender only with the live connection counts"""
        stats = StatsUpdateEvent(connections=self.presence.stats())
        await self.reply(context, 'stats:update', stats.model_dump(mode='json'))

    async def broadcast_message(self, context: ConnectionContext, data):
        request = AdminBroadcastRequest.model_validate(data)

        targets = {
            BroadcastTarget.ALL: [self.bus.customer, self.bus.restaurant, self.bus.delivery],
            BroadcastTarget.CUSTOMERS: [self.bus.customer],
            BroadcastTarget.RESTAURANTS: [self.bus.restaurant],
            BroadcastTarget.DELIVERY: [self.bus.delivery],
        }
        await self.bus.broadcast(targets[request.target], 'admin:message', request.message)
        logger.info(f"Admin {context.actor_id} broadcast to {request.target.value}: {request.message}")

    async def monitor_order(self, context: ConnectionContext, data):
        request = OrderReference.from_event(data)
        await self.join_room(context, order_room(request.order_id))
        logger.debug(f"Admin {context.actor_id} monitoring order {request.order_id}")
