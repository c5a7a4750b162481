# app/schemas/connection_schema.py

from enum import Enum
from typing import Optional, Set, Dict, Any
from datetime import datetime, UTC
from pydantic import BaseModel, ConfigDict, Field, computed_field


class ActorRole(str, Enum):
    CUSTOMER = "customer"
    RESTAURANT = "restaurant"
    DELIVERY = "delivery"
    ADMIN = "admin"


class DeliveryStatus(str, Enum):
    AVAILABLE = "available"
    BUSY = "busy"
    OFFLINE = "offline"


class TokenClaims(BaseModel):
    """Claims the HTTP API puts into its access tokens"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore", coerce_numbers_to_str=True)

    user_id: str = Field(..., alias="userId", min_length=1)
    role: ActorRole
    email: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None


class ConnectionContext(BaseModel):
    """
    Per-connection state, created once at handshake.

    Only `restaurant_id`, `delivery_status`, `current_order_id` and
    `joined_rooms` change afterwards, and only from the namespace handlers
    that own those transitions.
    """
    sid: str
    actor_id: str
    role: ActorRole
    namespace: str
    email: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    established_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    joined_rooms: Set[str] = Field(default_factory=set)

    restaurant_id: Optional[str] = None
    delivery_status: Optional[DeliveryStatus] = None
    current_order_id: Optional[str] = None

    @classmethod
    def from_claims(cls, sid: str, namespace: str, claims: TokenClaims) -> "ConnectionContext":
        return cls(
            sid=sid,
            actor_id=claims.user_id,
            role=claims.role,
            namespace=namespace,
            email=claims.email,
            name=claims.name,
            phone=claims.phone,
        )


class ConnectionStats(BaseModel):
    """Live connection counts per presence bucket"""
    customers: int = 0
    restaurants: int = 0
    delivery: int = 0
    admin: int = 0

    @computed_field
    @property
    def total(self) -> int:
        return self.customers + self.restaurants + self.delivery + self.admin


class StatsUpdateEvent(BaseModel):
    """Reply to an admin `stats:request`"""
    connections: ConnectionStats
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class SocketErrorResponse(BaseModel):
    """Schema for error responses emitted via Socket.IO"""
    message: str
    error_code: str = "INTERNAL_ERROR"
    details: Dict[str, Any] = Field(default_factory=dict)
