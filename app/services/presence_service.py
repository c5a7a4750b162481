# app/services/presence_service.py

import logging
from typing import Dict, Optional

from schemas.connection_schema import ConnectionStats

logger = logging.getLogger(__name__)


class PresenceRegistry:
    """
    Which actors currently hold an authenticated connection, per bucket.

    Buckets follow the namespace the actor connected to (customers,
    restaurants, delivery, admin). Each (bucket, actor_id) maps to exactly
    one sid: a second connection from the same actor overwrites the first.
    """

    BUCKETS = ("customers", "restaurants", "delivery", "admin")

    def __init__(self):
        self._buckets: Dict[str, Dict[str, str]] = {bucket: {} for bucket in self.BUCKETS}

    def _bucket(self, bucket: str) -> Dict[str, str]:
        try:
            return self._buckets[bucket]
        except KeyError:
            raise ValueError(f"Unknown presence bucket: {bucket}") from None

    def register(self, bucket: str, actor_id: str, sid: str) -> Optional[str]:
        """
        Record sid as the live connection of actor_id.

        Returns the sid it replaced, if the actor was already present
        under a different connection.
        """
        actors = self._bucket(bucket)
        previous = actors.get(actor_id)
        actors[actor_id] = sid

        if previous and previous != sid:
            logger.info(f"Presence {bucket}/{actor_id} moved from session {previous} to {sid}")
            return previous
        return None

    def unregister(self, bucket: str, actor_id: str, sid: str) -> bool:
        """
        Remove the actor, but only while the entry still points at sid.

        A superseded connection disconnecting late must not erase the
        entry of the connection that replaced it.
        """
        actors = self._bucket(bucket)
        if actors.get(actor_id) != sid:
            return False

        del actors[actor_id]
        return True

    def get_sid(self, bucket: str, actor_id: str) -> Optional[str]:
        return self._bucket(bucket).get(actor_id)

    def is_online(self, bucket: str, actor_id: str) -> bool:
        return actor_id in self._bucket(bucket)

    def count(self, bucket: str) -> int:
        return len(self._bucket(bucket))

    def stats(self) -> ConnectionStats:
        return ConnectionStats(
            customers=self.count("customers"),
            restaurants=self.count("restaurants"),
            delivery=self.count("delivery"),
            admin=self.count("admin"),
        )
