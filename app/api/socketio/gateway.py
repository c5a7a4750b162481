# app/api/socketio/gateway.py

from typing import List
from config.settings import Settings
from infrastructure.socket_auth import ConnectionAuthenticator
from infrastructure.socketio_manager import AuthNamespace
from services.event_bus import (
    EventBus,
    CUSTOMER_NAMESPACE,
    RESTAURANT_NAMESPACE,
    DELIVERY_NAMESPACE,
    ADMIN_NAMESPACE,
)
from services.notification_service import RealtimeNotifier
from services.presence_service import PresenceRegistry
from services.presence_tracker import PresenceTracker
from services.room_router import RoomRouter
from .customer_namespace import CustomerNamespace
from .restaurant_namespace import RestaurantNamespace
from .delivery_namespace import DeliveryNamespace
from .admin_namespace import AdminNamespace


class RealtimeGateway:
    """
    Everything the order-tracking socket layer owns, wired to one server.

    Each gateway has its own presence registry and room router, so several
    gateways can live side by side (one per test, for instance).
    """

    def __init__(self, sio, settings: Settings):
        self.sio = sio
        self.settings = settings

        self.router = RoomRouter()
        self.presence = PresenceRegistry()
        self.bus = EventBus(sio, self.router)
        self.authenticator = ConnectionAuthenticator(settings)

        deps = dict(bus=self.bus, presence=self.presence, authenticator=self.authenticator, settings=settings)
        self.customer = CustomerNamespace(CUSTOMER_NAMESPACE, **deps)
        self.restaurant = RestaurantNamespace(RESTAURANT_NAMESPACE, **deps)
        self.delivery = DeliveryNamespace(DELIVERY_NAMESPACE, **deps)
        self.admin = AdminNamespace(ADMIN_NAMESPACE, **deps)

        for namespace in self.namespaces:
            sio.register_namespace(namespace)

        self.notifier = RealtimeNotifier(self.bus, self.presence)
        self.tracker = PresenceTracker(
            self.bus,
            self.presence,
            heartbeat_interval=settings.HEARTBEAT_INTERVAL_SECONDS,
            stats_interval=settings.STATS_LOG_INTERVAL_SECONDS,
        )

    @property
    def namespaces(self) -> List[AuthNamespace]:
        return [self.customer, self.restaurant, self.delivery, self.admin]


def create_realtime_gateway(sio, settings: Settings) -> RealtimeGateway:
    """Register the four order-tracking namespaces on sio"""
    return RealtimeGateway(sio, settings)
