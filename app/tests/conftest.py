"""
Pytest configuration and fixtures for testing
"""
import pytest
from datetime import datetime, UTC, timedelta
from unittest.mock import AsyncMock, MagicMock, call
from jose import jwt

from config.settings import Settings
from api.socketio import create_realtime_gateway
from schemas.connection_schema import ActorRole


TEST_SECRET = "test-secret-key"

# Role each namespace admits by default in the helpers below
NAMESPACE_ROLES = {
    "/customer": ActorRole.CUSTOMER,
    "/restaurant": ActorRole.RESTAURANT,
    "/delivery": ActorRole.DELIVERY,
    "/admin": ActorRole.ADMIN,
}


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from any local .env file"""
    return Settings(
        _env_file=None,
        SECRET_KEY=TEST_SECRET,
        FRONTEND_URL="http://localhost:5173",
        HEARTBEAT_INTERVAL_SECONDS=0.01,
        STATS_LOG_INTERVAL_SECONDS=0.01,
    )


@pytest.fixture
def sio_mock():
    """
    Stand-in for socketio.AsyncServer.

    Keeps room membership the way the server does and records one entry
    per recipient in `sio.deliveries`, so room emits can be asserted sid
    by sid. Namespace-wide broadcasts are recorded once, without `to`.
    """
    sio = MagicMock()
    sio.room_members = {}
    sio.deliveries = []

    async def enter_room(sid, room, namespace=None):
        sio.room_members.setdefault((namespace, room), set()).add(sid)

    async def leave_room(sid, room, namespace=None):
        sio.room_members.get((namespace, room), set()).discard(sid)

    async def disconnect(sid, namespace=None):
        for (ns, _), members in sio.room_members.items():
            if ns == namespace:
                members.discard(sid)

    async def emit(event, data=None, to=None, room=None, skip_sid=None, namespace=None):
        if to is not None:
            recipients = [to]
        elif room is not None:
            recipients = sorted(sio.room_members.get((namespace, room), set()) - {skip_sid})
        else:
            sio.deliveries.append(call(event, data, namespace=namespace))
            return
        for sid in recipients:
            sio.deliveries.append(call(event, data, to=sid, namespace=namespace))

    sio.enter_room = AsyncMock(side_effect=enter_room)
    sio.leave_room = AsyncMock(side_effect=leave_room)
    sio.disconnect = AsyncMock(side_effect=disconnect)
    sio.emit = AsyncMock(side_effect=emit)
    return sio


@pytest.fixture
def gateway(sio_mock, test_settings):
    """A fresh realtime gateway per test"""
    return create_realtime_gateway(sio_mock, test_settings)


@pytest.fixture
def make_token():
    """Mint JWTs the way the HTTP API does"""
    def _make_token(
        user_id="user-1",
        role="customer",
        expires_in=timedelta(hours=1),
        secret=TEST_SECRET,
        **claims
    ) -> str:
        payload = {"userId": user_id, "role": role, "email": f"{user_id}@test.com", **claims}
        if expires_in is not None:
            payload["exp"] = datetime.now(UTC) + expires_in
        return jwt.encode(payload, secret, algorithm="HS256")

    return _make_token


@pytest.fixture
def connect(make_token):
    """Run a full handshake on a namespace with a freshly minted token"""
    async def _connect(namespace, sid, user_id, role=None, **claims):
        role = role or NAMESPACE_ROLES[namespace.namespace]
        role_value = role.value if isinstance(role, ActorRole) else role
        token = make_token(user_id=user_id, role=role_value, **claims)
        return await namespace.on_connect(sid, {}, {"token": token})

    return _connect


@pytest.fixture
def emitted(sio_mock):
    """Filter the recorded deliveries by event name, recipient sid and namespace"""
    def _emitted(event, to=None, namespace=None):
        calls = []
        for delivery in sio_mock.deliveries:
            if delivery.args[0] != event:
                continue
            if to is not None and delivery.kwargs.get("to") != to:
                continue
            if namespace is not None and delivery.kwargs.get("namespace") != namespace:
                continue
            calls.append(delivery)
        return calls

    return _emitted
