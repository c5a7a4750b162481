# app/services/room_router.py

import logging
from typing import Dict, List, Optional, Set, Tuple

logger = logging.getLogger(__name__)


ADMIN_DASHBOARD_ROOM = "admin:dashboard"


def order_room(order_id: str) -> str:
    return f"order:{order_id}"


def restaurant_room(restaurant_id: str) -> str:
    return f"restaurant:{restaurant_id}"


def customer_room(actor_id: str) -> str:
    return f"customer:{actor_id}"


def delivery_room(status: str) -> str:
    return f"delivery:{status}"


def support_room(customer_id: str) -> str:
    return f"support:{customer_id}"


class RoomRouter:
    """
    Room membership for every namespace.

    Rooms are scoped by namespace, so `order:42` on /customer and `order:42`
    on /restaurant are different rooms. A room exists only while it has at
    least one member: it is created by the first join and dropped when the
    last member leaves.
    """

    def __init__(self):
        # (namespace, room) -> set of sids
        self._rooms: Dict[Tuple[str, str], Set[str]] = {}
        # (namespace, sid) -> set of rooms, for disconnect cleanup
        self._memberships: Dict[Tuple[str, str], Set[str]] = {}

    def join(self, namespace: str, room: str, sid: str) -> bool:
        """Add sid to room. Returns False if it was already a member."""
        members = self._rooms.setdefault((namespace, room), set())
        if sid in members:
            return False

        members.add(sid)
        self._memberships.setdefault((namespace, sid), set()).add(room)
        logger.debug(f"{sid} joined {room} on {namespace}")
        return True

    def leave(self, namespace: str, room: str, sid: str) -> bool:
        """Remove sid from room. Returns False if it was not a member."""
        members = self._rooms.get((namespace, room))
        if not members or sid not in members:
            return False

        members.discard(sid)
        if not members:
            del self._rooms[(namespace, room)]

        rooms = self._memberships.get((namespace, sid))
        if rooms is not None:
            rooms.discard(room)
            if not rooms:
                del self._memberships[(namespace, sid)]

        logger.debug(f"{sid} left {room} on {namespace}")
        return True

    def leave_all(self, namespace: str, sid: str) -> List[str]:
        """Drop every membership of sid in namespace; returns the rooms it left"""
        rooms = sorted(self._memberships.get((namespace, sid), set()))
        for room in rooms:
            self.leave(namespace, room, sid)
        return rooms

    def members(self, namespace: str, room: str) -> Set[str]:
        return set(self._rooms.get((namespace, room), set()))

    def rooms_of(self, namespace: str, sid: str) -> Set[str]:
        return set(self._memberships.get((namespace, sid), set()))

    def is_member(self, namespace: str, room: str, sid: str) -> bool:
        return sid in self._rooms.get((namespace, room), set())

    def has_room(self, namespace: str, room: str) -> bool:
        return (namespace, room) in self._rooms

    def room_count(self, namespace: Optional[str] = None) -> int:
        if namespace is None:
            return len(self._rooms)
        return sum(1 for ns, _ in self._rooms if ns == namespace)
