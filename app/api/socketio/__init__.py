# app/api/socketio/__init__.py

"""
Socket.IO namespaces for real-time order tracking

Active namespaces:
- /customer: customers following their orders
- /restaurant: restaurant dashboards updating order status
- /delivery: drivers accepting orders and streaming their location
- /admin: live connection stats and broadcast messages

To add a new namespace:
1. Create a new file: <feature>_namespace.py
2. Inherit from AuthNamespace (handles authentication, role gate and presence)
3. Set `allowed_roles`, `presence_bucket` and the `event_handlers` table
4. Optionally implement:
   - handle_connect(self, sid, context) - called after successful auth
   - handle_disconnect(self, sid, context) - called before unregistering
5. Build and register it in RealtimeGateway (gateway.py)
"""

from .gateway import RealtimeGateway, create_realtime_gateway
from .customer_namespace import CustomerNamespace
from .restaurant_namespace import RestaurantNamespace
from .delivery_namespace import DeliveryNamespace
from .admin_namespace import AdminNamespace


__all__ = [
    'RealtimeGateway',
    'create_realtime_gateway',
    'CustomerNamespace',
    'RestaurantNamespace',
    'DeliveryNamespace',
    'AdminNamespace',
]
