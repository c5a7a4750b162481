# app/tests/test_namespace_events.py

import pytest
from unittest.mock import AsyncMock

from schemas.connection_schema import ActorRole, DeliveryStatus


def error_payloads(emitted, sid):
    return [call.args[1] for call in emitted("error", to=sid)]


@pytest.mark.asyncio
class TestCustomerNamespace:

    async def test_track_is_idempotent(self, gateway, connect, emitted):
        await connect(gateway.customer, "c1", "cust-1")
        await gateway.customer.trigger_event("order:track", "c1", "O1")
        await gateway.customer.trigger_event("order:track", "c1", {"orderId": "O1"})
        await connect(gateway.restaurant, "r1", "rest-user-1")

        await gateway.restaurant.trigger_event("order:updateStatus", "r1", {"orderId": "O1", "status": "confirmed"})

        assert len(emitted("order:statusUpdated", to="c1")) == 1
        assert gateway.customer.connections["c1"].joined_rooms == {"customer:cust-1", "order:O1"}

    async def test_no_replay_of_earlier_updates(self, gateway, connect, emitted):
        await connect(gateway.restaurant, "r1", "rest-user-1")
        await gateway.restaurant.trigger_event("order:updateStatus", "r1", {"orderId": "O3", "status": "preparing"})

        await connect(gateway.customer, "c1", "cust-1")
        await gateway.customer.trigger_event("order:track", "c1", "O3")

        assert emitted("order:statusUpdated", to="c1") == []

    async def test_untrack_stops_updates(self, gateway, connect, emitted):
        await connect(gateway.customer, "c1", "cust-1")
        await gateway.customer.trigger_event("order:track", "c1", "O1")
        await gateway.customer.trigger_event("order:untrack", "c1", "O1")
        await connect(gateway.restaurant, "r1", "rest-user-1")

        await gateway.restaurant.trigger_event("order:updateStatus", "r1", {"orderId": "O1", "status": "confirmed"})

        assert emitted("order:statusUpdated") == []
        assert not gateway.router.has_room("/customer", "order:O1")

    async def test_request_status_reaches_monitoring_restaurant(self, gateway, connect, emitted):
        await connect(gateway.restaurant, "r1", "rest-user-1")
        await gateway.restaurant.trigger_event("order:monitor", "r1", "O1")
        await connect(gateway.customer, "c1", "cust-1")

        await gateway.customer.trigger_event("order:requestStatus", "c1", {"orderId": "O1"})

        calls = emitted("order:statusRequest", to="r1", namespace="/restaurant")
        assert len(calls) == 1
        assert calls[0].args[1] == {"orderId": "O1", "requestedBy": "cust-1"}

    async def test_typing_reaches_support_agent(self, gateway, connect, emitted):
        await connect(gateway.customer, "c1", "cust-1")
        await connect(gateway.customer, "agent", "admin-1", role=ActorRole.ADMIN)
        await gateway.customer.trigger_event("support:join", "agent", {"customerId": "cust-1"})

        await gateway.customer.trigger_event("chat:typing", "c1", {"isTyping": True})

        calls = emitted("customer:typing")
        assert len(calls) == 1
        assert calls[0].kwargs["to"] == "agent"
        assert calls[0].args[1] == {"userId": "cust-1", "isTyping": True}

    async def test_support_join_requires_admin(self, gateway, connect, emitted):
        await connect(gateway.customer, "c1", "cust-1")

        await gateway.customer.trigger_event("support:join", "c1", "cust-2")

        errors = error_payloads(emitted, "c1")
        assert len(errors) == 1
        assert errors[0]["error_code"] == "FORBIDDEN"
        assert errors[0]["details"]["action"] == "support:join"
        assert not gateway.router.has_room("/customer", "support:cust-2")

    async def test_invalid_payload_reports_error(self, gateway, connect, emitted):
        await connect(gateway.customer, "c1", "cust-1")

        await gateway.customer.trigger_event("order:track", "c1", {"order": "O1"})

        errors = error_payloads(emitted, "c1")
        assert len(errors) == 1
        assert errors[0]["message"] == "Invalid data format"
        assert errors[0]["error_code"] == "VALIDATION_ERROR"
        assert errors[0]["details"]["event"] == "order:track"
        assert "c1" in gateway.customer.connections

    async def test_event_from_unknown_sid(self, gateway, emitted):
        await gateway.customer.trigger_event("order:track", "ghost", "O1")

        errors = error_payloads(emitted, "ghost")
        assert errors[0]["error_code"] == "AUTH_ERROR"
        assert errors[0]["message"] == "Not authenticated. Please reconnect."

    async def test_unexpected_failure_keeps_connection(self, gateway, connect, emitted, monkeypatch):
        await connect(gateway.customer, "c1", "cust-1")
        monkeypatch.setattr(gateway.customer, "track_order", AsyncMock(side_effect=RuntimeError("boom")))

        await gateway.customer.trigger_event("order:track", "c1", "O1")

        errors = error_payloads(emitted, "c1")
        assert errors == [{"message": "Failed to handle order:track", "error_code": "INTERNAL_ERROR", "details": {}}]
        assert "c1" in gateway.customer.connections
        assert gateway.presence.is_online("customers", "cust-1")


@pytest.mark.asyncio
class TestRestaurantNamespace:

    async def test_join_rebinds_restaurant(self, gateway, connect):
        await connect(gateway.restaurant, "r1", "rest-user-1")

        await gateway.restaurant.trigger_event("restaurant:join", "r1", {"restaurantId": "R1"})
        await gateway.restaurant.trigger_event("restaurant:join", "r1", "R2")

        context = gateway.restaurant.connections["r1"]
        assert context.restaurant_id == "R2"
        assert not gateway.router.is_member("/restaurant", "restaurant:R1", "r1")
        assert gateway.router.is_member("/restaurant", "restaurant:R2", "r1")
        assert gateway.router.is_member("/restaurant", "restaurant:rest-user-1", "r1")

    async def test_personal_room_on_connect(self, gateway, connect, emitted):
        await connect(gateway.restaurant, "r1", "rest-user-1")
        await connect(gateway.restaurant, "a1", "admin-1", role=ActorRole.ADMIN)

        assert gateway.restaurant.connections["r1"].joined_rooms == {"restaurant:rest-user-1"}
        assert gateway.restaurant.connections["a1"].joined_rooms == set()

        await gateway.notifier.emit_to_restaurant("rest-user-1", "order:new", {"orderId": "O1"})

        assert [call.kwargs["to"] for call in emitted("order:new")] == ["r1"]

    async def test_rebinding_keeps_personal_room(self, gateway, connect):
        await connect(gateway.restaurant, "r1", "rest-user-1")

        await gateway.restaurant.trigger_event("restaurant:join", "r1", "rest-user-1")
        await gateway.restaurant.trigger_event("restaurant:join", "r1", "R2")

        assert gateway.router.is_member("/restaurant", "restaurant:rest-user-1", "r1")
        assert gateway.router.is_member("/restaurant", "restaurant:R2", "r1")

    async def test_order_received_relayed_to_other_devices(self, gateway, connect, emitted):
        await connect(gateway.restaurant, "tablet", "rest-user-1")
        await connect(gateway.restaurant, "kitchen", "rest-user-2")
        await gateway.restaurant.trigger_event("restaurant:join", "tablet", "R1")
        await gateway.restaurant.trigger_event("restaurant:join", "kitchen", "R1")

        await gateway.restaurant.trigger_event("order:received", "tablet", {"orderId": "O9", "total": 25.5})

        calls = emitted("order:new")
        assert len(calls) == 1
        assert calls[0].kwargs["to"] == "kitchen"
        assert calls[0].args[1] == {"orderId": "O9", "total": 25.5}

    async def test_order_received_requires_joined_restaurant(self, gateway, connect, emitted):
        await connect(gateway.restaurant, "r1", "rest-user-1")

        await gateway.restaurant.trigger_event("order:received", "r1", {"orderId": "O9"})

        errors = error_payloads(emitted, "r1")
        assert errors[0]["error_code"] == "VALIDATION_ERROR"
        assert emitted("order:new") == []

    async def test_unknown_status_is_rejected(self, gateway, connect, emitted):
        await connect(gateway.restaurant, "r1", "rest-user-1")

        await gateway.restaurant.trigger_event("order:updateStatus", "r1", {"orderId": "O1", "status": "teleported"})

        errors = error_payloads(emitted, "r1")
        assert errors[0]["error_code"] == "VALIDATION_ERROR"
        assert errors[0]["details"]["event"] == "order:updateStatus"
        assert emitted("order:statusUpdated") == []

    async def test_failed_customer_delivery_still_notifies_drivers(self, gateway, connect, emitted, sio_mock):
        await connect(gateway.customer, "c1", "cust-1")
        await gateway.customer.trigger_event("order:track", "c1", "O1")
        await connect(gateway.restaurant, "r1", "rest-user-1")

        record = sio_mock.emit.side_effect

        async def customer_namespace_down(event, data=None, **kwargs):
            if kwargs.get("namespace") == "/customer":
                raise ConnectionError("socket closed")
            await record(event, data, **kwargs)

        sio_mock.emit.side_effect = customer_namespace_down

        await gateway.restaurant.trigger_event("order:updateStatus", "r1", {"orderId": "O1", "status": "ready"})

        assert len(emitted("order:readyForPickup", namespace="/delivery")) == 1
        errors = error_payloads(emitted, "r1")
        assert errors[0]["error_code"] == "BROADCAST_FAILED"
        assert errors[0]["details"] == {"namespace": "/customer", "room": "order:O1"}


@pytest.mark.asyncio
class TestDeliveryNamespace:

    async def test_set_status_moves_between_rooms(self, gateway, connect):
        await connect(gateway.delivery, "d1", "drv-1")

        await gateway.delivery.trigger_event("delivery:setStatus", "d1", "available")
        await gateway.delivery.trigger_event("delivery:setStatus", "d1", {"status": "busy"})

        context = gateway.delivery.connections["d1"]
        assert context.delivery_status == DeliveryStatus.BUSY
        assert not gateway.router.has_room("/delivery", "delivery:available")
        assert gateway.router.is_member("/delivery", "delivery:busy", "d1")

    async def test_accept_notifies_customer_and_restaurant(self, gateway, connect, emitted):
        await connect(gateway.customer, "c1", "cust-1")
        await gateway.customer.trigger_event("order:track", "c1", "O1")
        await connect(gateway.restaurant, "r1", "rest-user-1")
        await gateway.restaurant.trigger_event("order:monitor", "r1", "O1")
        await connect(gateway.delivery, "d1", "drv-1", name="Luis", phone="555-0199")

        await gateway.delivery.trigger_event("order:accept", "d1", {"orderId": "O1"})

        customer_payload = emitted("delivery:assigned", to="c1")[0].args[1]
        assert customer_payload["orderId"] == "O1"
        assert customer_payload["deliveryId"] == "drv-1"
        assert customer_payload["driver"] == {"name": "Luis", "phone": "555-0199"}

        restaurant_payload = emitted("delivery:assigned", to="r1")[0].args[1]
        assert restaurant_payload == {"orderId": "O1", "deliveryId": "drv-1"}

        assert gateway.delivery.connections["d1"].current_order_id == "O1"

    async def test_driver_name_defaults(self, gateway, connect, emitted):
        await connect(gateway.customer, "c1", "cust-1")
        await gateway.customer.trigger_event("order:track", "c1", "O1")
        await connect(gateway.delivery, "d1", "drv-1")

        await gateway.delivery.trigger_event("order:accept", "d1", "O1")

        driver = emitted("delivery:assigned", to="c1")[0].args[1]["driver"]
        assert driver == {"name": "Conductor", "phone": None}

    async def test_location_falls_back_to_accepted_order(self, gateway, connect, emitted):
        await connect(gateway.customer, "c1", "cust-1")
        await gateway.customer.trigger_event("order:track", "c1", "O1")
        await connect(gateway.delivery, "d1", "drv-1")
        await gateway.delivery.trigger_event("order:accept", "d1", "O1")

        location = {"lat": 19.43, "lng": -99.13, "heading": 90.0}
        await gateway.delivery.trigger_event("location:update", "d1", {"location": location})

        payload = emitted("delivery:locationUpdate", to="c1")[0].args[1]
        assert payload["orderId"] == "O1"
        assert payload["location"] == {"lat": 19.43, "lng": -99.13, "heading": 90.0, "speed": None}

    async def test_restaurant_gets_location_as_sent(self, gateway, connect, emitted):
        await connect(gateway.restaurant, "r1", "rest-user-1")
        await gateway.restaurant.trigger_event("order:monitor", "r1", "O1")
        await connect(gateway.delivery, "d1", "drv-1")

        location = {"lat": 19.43, "lng": -99.13, "accuracy": 8}
        await gateway.delivery.trigger_event("location:update", "d1", {"orderId": "O1", "location": location})

        payload = emitted("delivery:locationUpdate", to="r1")[0].args[1]
        assert payload == {"orderId": "O1", "location": {"lat": 19.43, "lng": -99.13, "accuracy": 8}}

    async def test_location_without_order(self, gateway, connect, emitted):
        await connect(gateway.delivery, "d1", "drv-1")

        await gateway.delivery.trigger_event("location:update", "d1", {"location": {"lat": 1, "lng": 2}})

        assert error_payloads(emitted, "d1")[0]["error_code"] == "VALIDATION_ERROR"
        assert emitted("delivery:locationUpdate") == []

    async def test_location_out_of_range(self, gateway, connect, emitted):
        await connect(gateway.delivery, "d1", "drv-1")

        await gateway.delivery.trigger_event("location:update", "d1", {"orderId": "O1", "location": {"lat": 120, "lng": 0}})

        assert error_payloads(emitted, "d1")[0]["error_code"] == "VALIDATION_ERROR"

    async def test_complete_order(self, gateway, connect, emitted):
        await connect(gateway.customer, "c1", "cust-1")
        await gateway.customer.trigger_event("order:track", "c1", "O1")
        await connect(gateway.restaurant, "r1", "rest-user-1")
        await gateway.restaurant.trigger_event("order:monitor", "r1", "O1")
        await connect(gateway.delivery, "d1", "drv-1")
        await gateway.delivery.trigger_event("order:accept", "d1", "O1")

        await gateway.delivery.trigger_event("order:complete", "d1", {"orderId": "O1", "signature": "sig-data"})

        customer_payload = emitted("order:delivered", to="c1")[0].args[1]
        assert customer_payload["signature"] == "sig-data"
        assert "deliveredAt" in customer_payload
        assert emitted("order:delivered", to="r1")[0].args[1] == {"orderId": "O1", "deliveredBy": "drv-1"}

        context = gateway.delivery.connections["d1"]
        assert context.current_order_id is None
        assert not gateway.router.is_member("/delivery", "order:O1", "d1")


@pytest.mark.asyncio
class TestAdminNamespace:

    async def test_monitor_order(self, gateway, connect):
        await connect(gateway.admin, "a1", "admin-1")

        await gateway.admin.trigger_event("order:monitor", "a1", "O1")

        assert gateway.router.is_member("/admin", "order:O1", "a1")

    async def test_rejoin_dashboard(self, gateway, connect):
        await connect(gateway.admin, "a1", "admin-1")

        await gateway.admin.trigger_event("admin:join", "a1")

        assert gateway.router.members("/admin", "admin:dashboard") == {"a1"}

    async def test_invalid_broadcast_target(self, gateway, connect, emitted):
        await connect(gateway.admin, "a1", "admin-1")

        await gateway.admin.trigger_event("broadcast", "a1", {"target": "everyone", "message": "hi"})

        assert error_payloads(emitted, "a1")[0]["error_code"] == "VALIDATION_ERROR"
        assert emitted("admin:message") == []
