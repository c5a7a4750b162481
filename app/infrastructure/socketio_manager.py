# app/infrastructure/socketio_manager.py

import socketio
from socketio.exceptions import ConnectionRefusedError
from typing import Dict, FrozenSet, Iterable, Optional, Set
from pydantic import ValidationError
from config.settings import Settings
from exceptions.domain_exceptions import (
    DomainException,
    UnauthorizedException,
    ForbiddenException,
    ValidationException,
    BroadcastException,
)
from infrastructure.socket_auth import ConnectionAuthenticator, RoleGate, extract_token
from schemas.connection_schema import ActorRole, ConnectionContext, SocketErrorResponse
from services.event_bus import EventBus
from services.presence_service import PresenceRegistry
import logging

logger = logging.getLogger(__name__)


def create_socketio_server(settings: Settings) -> socketio.AsyncServer:
    """Socket.IO server restricted to the configured frontend origin"""
    return socketio.AsyncServer(
        async_mode='asgi',
        cors_allowed_origins=[settings.FRONTEND_URL],
        cors_credentials=True,
        logger=settings.DEBUG,
        engineio_logger=False,
        ping_timeout=settings.SOCKETIO_PING_TIMEOUT,
        ping_interval=settings.SOCKETIO_PING_INTERVAL
    )


class AuthNamespace(socketio.AsyncNamespace):
    """Authenticated namespace that centralizes authentication and connection lifecycle.

    Every connection is authenticated from its handshake credential, then
    checked against `allowed_roles`, then registered in the presence
    registry under `presence_bucket`. Subclasses declare their inbound
    events in `event_handlers` (wire event name -> method name); each
    handler is called as `handler(context, data)` and any exception it
    raises is reported to the sender as an `error` event.

    Implement `handle_connect(self, sid, context)` and/or
    `handle_disconnect(self, sid, context)` in subclasses for
    namespace-specific lifecycle logic.
    """

    allowed_roles: FrozenSet[ActorRole] = frozenset()
    presence_bucket: str = ""
    event_handlers: Dict[str, str] = {}

    def __init__(
        self,
        namespace: str,
        bus: EventBus,
        presence: PresenceRegistry,
        authenticator: ConnectionAuthenticator,
        settings: Settings,
    ):
        super().__init__(namespace)
        self.bus = bus
        self.port = bus.port(namespace)
        self.router = bus.router
        self.presence = presence
        self.authenticator = authenticator
        self.settings = settings
        # sid -> context, only for fully established connections
        self.connections: Dict[str, ConnectionContext] = {}
        # sids whose handshake is still being authenticated
        self._handshakes: Set[str] = set()

    async def on_connect(self, sid, environ, auth=None):
        self._handshakes.add(sid)
        token = extract_token(environ or {}, auth, self.settings.AUTH_COOKIE_NAME)

        try:
            claims = await self.authenticator.authenticate(token)
        except UnauthorizedException as e:
            self._handshakes.discard(sid)
            logger.warning(f"Authentication failed for session {sid} on {self.namespace}: {e.message}")
            raise ConnectionRefusedError('auth_error', {'message': e.message})

        if sid not in self._handshakes:
            # Client went away while its token was being verified
            logger.info(f"Session {sid} disconnected from {self.namespace} during handshake, dropping it")
            return False
        self._handshakes.discard(sid)

        try:
            RoleGate.check(claims.role, self.allowed_roles, action=f"connect {self.namespace}")
        except ForbiddenException as e:
            logger.warning(
                f"Rejected {claims.role.value} {claims.user_id} (session {sid}) on {self.namespace}: {e.message}"
            )
            raise ConnectionRefusedError('authorization_error', {'message': e.message, **e.details})

        context = ConnectionContext.from_claims(sid, self.namespace, claims)
        self.connections[sid] = context
        logger.info(
            f"Socket authenticated on {self.namespace}: {sid} (User: {context.actor_id}, "
            f"Role: {context.role.value}, Email: {context.email})"
        )

        # Call subclass hook if available
        if hasattr(self, 'handle_connect'):
            try:
                await self.handle_connect(sid, context)
            except ForbiddenException as e:
                self._forget(sid)
                logger.warning(f"Connect hook refused {sid} on {self.namespace}: {e.message}")
                raise ConnectionRefusedError('authorization_error', {'message': e.message, **e.details})
            except Exception:
                logger.exception('Error in handle_connect hook')

        previous_sid = self.presence.register(self.presence_bucket, context.actor_id, sid)
        if previous_sid and self.settings.DUPLICATE_CONNECTION_POLICY == "evict":
            logger.info(f"Evicting superseded session {previous_sid} of {context.actor_id} from {self.namespace}")
            try:
                await self.port.disconnect(previous_sid)
            except Exception:
                logger.exception(f"Failed to disconnect superseded session {previous_sid}")

        return True

    async def on_disconnect(self, sid, reason=None):
        if sid in self._handshakes:
            self._handshakes.discard(sid)
            return

        context = self.connections.get(sid)
        if context is None:
            return

        logger.info(f"Client disconnected from {self.namespace}: {sid} (User: {context.actor_id}, Reason: {reason})")
        # Call subclass hook before unregistering (in case subclass needs the context)
        if hasattr(self, 'handle_disconnect'):
            try:
                await self.handle_disconnect(sid, context)
            except Exception:
                logger.exception('Error in handle_disconnect hook')

        if self.presence.unregister(self.presence_bucket, context.actor_id, sid):
            # Another device of the same actor may still be connected
            remaining_sid = self._other_session(context.actor_id, sid)
            if remaining_sid:
                self.presence.register(self.presence_bucket, context.actor_id, remaining_sid)
                logger.info(f"Presence of {context.actor_id} on {self.namespace} handed back to session {remaining_sid}")
        self._forget(sid)

    def _other_session(self, actor_id: str, sid: str) -> Optional[str]:
        """Most recently established open session of actor_id other than sid"""
        others = [
            context for other_sid, context in self.connections.items()
            if other_sid != sid and context.actor_id == actor_id
        ]
        if not others:
            return None
        return max(others, key=lambda context: context.established_at).sid

    def _forget(self, sid: str):
        self.router.leave_all(self.namespace, sid)
        self.connections.pop(sid, None)

    async def trigger_event(self, event, *args):
        handler_name = self.event_handlers.get(event)
        if handler_name is None:
            return await super().trigger_event(event, *args)

        sid = args[0]
        data = args[1] if len(args) > 1 else None
        try:
            context = self.get_context(sid)
            return await getattr(self, handler_name)(context, data)
        except ValidationError as e:
            await self.emit_error(sid, ValidationException(
                'Invalid data format',
                details={'event': event, 'errors': e.errors(include_url=False, include_context=False)}
            ))
        except ForbiddenException as e:
            logger.warning(f"Forbidden '{event}' from {sid} on {self.namespace}: {e.details}")
            await self.emit_error(sid, e)
        except BroadcastException as e:
            logger.warning(f"Partial delivery while handling '{event}' from {sid}: {e.message}")
            await self.emit_error(sid, e)
        except DomainException as e:
            await self.emit_error(sid, e)
        except Exception:
            logger.exception(f"Error handling '{event}' from {sid} on {self.namespace}")
            await self.emit_error(sid, DomainException(f"Failed to handle {event}"))

    def get_context(self, sid: str) -> ConnectionContext:
        context = self.connections.get(sid)
        if context is None:
            raise UnauthorizedException('Not authenticated. Please reconnect.')
        return context

    def require_role(self, context: ConnectionContext, allowed: Iterable[ActorRole], action: str):
        RoleGate.check(context.role, allowed, action)

    async def join_room(self, context: ConnectionContext, room: str) -> bool:
        """Join room both in the local router and in the Socket.IO server"""
        joined = self.router.join(self.namespace, room, context.sid)
        context.joined_rooms.add(room)
        if joined:
            await self.port.enter_room(context.sid, room)
        return joined

    async def leave_room(self, context: ConnectionContext, room: str) -> bool:
        left = self.router.leave(self.namespace, room, context.sid)
        context.joined_rooms.discard(room)
        if left:
            await self.port.leave_room(context.sid, room)
        return left

    async def reply(self, context: ConnectionContext, event: str, data=None):
        await self.port.to_connection(context.sid, event, data)

    async def emit_error(self, sid: str, exc: DomainException):
        error_response = SocketErrorResponse(
            message=exc.message,
            error_code=exc.error_code,
            details=exc.details
        )
        try:
            await self.port.to_connection(sid, 'error', error_response.model_dump(mode='json'))
        except BroadcastException:
            logger.warning(f"Could not report error to {sid} on {self.namespace}")
