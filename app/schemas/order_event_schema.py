# app/schemas/order_event_schema.py

from enum import Enum
from typing import Optional, Any, ClassVar, Dict, Union
from datetime import datetime, UTC
from pydantic import BaseModel, ConfigDict, Field

from schemas.connection_schema import DeliveryStatus


def _now() -> datetime:
    return datetime.now(UTC)


class OrderStatus(str, Enum):
    PENDING_CONFIRMATION = "pending_confirmation"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    ON_THE_WAY = "on_the_way"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class BroadcastTarget(str, Enum):
    ALL = "all"
    CUSTOMERS = "customers"
    RESTAURANTS = "restaurants"
    DELIVERY = "delivery"


class EventModel(BaseModel):
    """
    Base for Socket.IO payloads.

    The frontend speaks camelCase, so fields carry camelCase aliases and
    outgoing events are dumped by alias.
    """
    model_config = ConfigDict(
        populate_by_name=True,
        coerce_numbers_to_str=True,
        str_strip_whitespace=True,
    )

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class ScalarEventModel(EventModel):
    """Request whose single field may also be sent bare, e.g. `emit('order:track', 'O1')`"""

    scalar_field: ClassVar[str] = ""

    @classmethod
    def from_event(cls, data):
        if isinstance(data, (str, int, float)) and not isinstance(data, bool):
            field = cls.model_fields[cls.scalar_field]
            data = {field.alias or cls.scalar_field: data}
        return cls.model_validate(data)


# ================ Request Models (client -> server) ================

class OrderReference(ScalarEventModel):
    scalar_field: ClassVar[str] = "order_id"
    order_id: str = Field(..., alias="orderId", min_length=1)


class RestaurantReference(ScalarEventModel):
    scalar_field: ClassVar[str] = "restaurant_id"
    restaurant_id: str = Field(..., alias="restaurantId", min_length=1)


class CustomerReference(ScalarEventModel):
    scalar_field: ClassVar[str] = "customer_id"
    customer_id: str = Field(..., alias="customerId", min_length=1)


class SetDeliveryStatusRequest(ScalarEventModel):
    scalar_field: ClassVar[str] = "status"
    status: DeliveryStatus


class UpdateOrderStatusRequest(EventModel):
    order_id: str = Field(..., alias="orderId", min_length=1)
    status: OrderStatus
    estimated_time: Optional[int] = Field(default=None, alias="estimatedTime", ge=0, description="Minutes")
    notes: Optional[str] = Field(default=None, max_length=500)


class GeoLocation(EventModel):
    """Driver position; fields beyond these are kept and relayed as sent"""
    model_config = ConfigDict(extra="allow")

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    heading: Optional[float] = None
    speed: Optional[float] = None


class LocationUpdateRequest(EventModel):
    # Falls back to the order the driver accepted when omitted
    order_id: Optional[str] = Field(default=None, alias="orderId")
    location: GeoLocation


class CompleteOrderRequest(EventModel):
    order_id: str = Field(..., alias="orderId", min_length=1)
    signature: Optional[str] = None
    photo: Optional[str] = None


class ReceivedOrderNotice(EventModel):
    """New order relayed between devices of the same restaurant; extra fields pass through"""
    model_config = ConfigDict(extra="allow")

    order_id: str = Field(..., alias="orderId", min_length=1)


class TypingRequest(EventModel):
    is_typing: bool = Field(..., alias="isTyping")


class AdminBroadcastRequest(EventModel):
    target: BroadcastTarget
    message: Union[str, Dict[str, Any]]


# ================ Event Models (server -> client) ================

class StatusRequestEvent(EventModel):
    order_id: str = Field(..., alias="orderId")
    requested_by: str = Field(..., alias="requestedBy")


class OrderStatusUpdatedEvent(EventModel):
    order_id: str = Field(..., alias="orderId")
    status: OrderStatus
    estimated_time: Optional[int] = Field(default=None, alias="estimatedTime")
    notes: Optional[str] = None
    timestamp: datetime = Field(default_factory=_now)


class ReadyForPickupEvent(EventModel):
    order_id: str = Field(..., alias="orderId")
    restaurant_id: Optional[str] = Field(default=None, alias="restaurantId")
    timestamp: datetime = Field(default_factory=_now)


class DriverInfo(EventModel):
    name: str = "Conductor"
    phone: Optional[str] = None


class DeliveryAssignedEvent(EventModel):
    """Customer view of an assignment"""
    order_id: str = Field(..., alias="orderId")
    delivery_id: str = Field(..., alias="deliveryId")
    driver: DriverInfo
    timestamp: datetime = Field(default_factory=_now)


class DeliveryAssignedNotice(EventModel):
    """Restaurant view of an assignment"""
    order_id: str = Field(..., alias="orderId")
    delivery_id: str = Field(..., alias="deliveryId")


class CustomerLocationEvent(EventModel):
    order_id: str = Field(..., alias="orderId")
    location: GeoLocation
    timestamp: datetime = Field(default_factory=_now)


class RestaurantLocationEvent(EventModel):
    """Restaurant view of a position update: the location exactly as the driver sent it"""
    order_id: str = Field(..., alias="orderId")
    location: Dict[str, Any]


class OrderDeliveredEvent(EventModel):
    """Customer view of a completed delivery"""
    order_id: str = Field(..., alias="orderId")
    delivered_at: datetime = Field(default_factory=_now, alias="deliveredAt")
    signature: Optional[str] = None
    photo: Optional[str] = None


class OrderDeliveredNotice(EventModel):
    """Restaurant view of a completed delivery"""
    order_id: str = Field(..., alias="orderId")
    delivered_by: str = Field(..., alias="deliveredBy")


class CustomerTypingEvent(EventModel):
    user_id: str = Field(..., alias="userId")
    is_typing: bool = Field(..., alias="isTyping")


class HeartbeatEvent(EventModel):
    # Milliseconds since the epoch, what browser clients compare against Date.now()
    timestamp: int = Field(default_factory=lambda: int(_now().timestamp() * 1000))
