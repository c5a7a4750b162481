# app/infrastructure/socket_auth.py

import logging
from typing import Any, Dict, Iterable, Optional
from urllib.parse import parse_qs

from jose import jwt, JWTError, ExpiredSignatureError
from pydantic import ValidationError

from config.settings import Settings
from exceptions.domain_exceptions import UnauthorizedException, ForbiddenException
from schemas.connection_schema import ActorRole, TokenClaims

logger = logging.getLogger(__name__)


def _parse_cookies(cookie_header: str) -> Dict[str, str]:
    cookies = {}
    for cookie in cookie_header.split(';'):
        cookie = cookie.strip()
        if '=' in cookie:
            name, value = cookie.split('=', 1)
            cookies[name] = value
    return cookies


def extract_token(environ: dict, auth: Optional[dict] = None, cookie_name: str = "rapideats_auth") -> Optional[str]:
    """
    Find the bearer credential presented with the handshake.

    Looked up in order: the Socket.IO `auth` payload (`{"token": ...}`),
    the Authorization header, the `token` query parameter, the auth cookie.
    """
    if isinstance(auth, dict):
        token = auth.get('token')
        if token:
            return str(token)

    authorization = environ.get('HTTP_AUTHORIZATION', '')
    if authorization:
        scheme, _, credentials = authorization.partition(' ')
        if scheme.lower() == 'bearer' and credentials.strip():
            return credentials.strip()

    query_string = environ.get('QUERY_STRING', '')
    if query_string:
        token = parse_qs(query_string).get('token', [None])[0]
        if token:
            return token

    cookie_header = environ.get('HTTP_COOKIE', '')
    if cookie_header:
        return _parse_cookies(cookie_header).get(cookie_name) or None

    return None


class ConnectionAuthenticator:
    """Verifies handshake credentials against the shared JWT secret"""

    def __init__(self, settings: Settings):
        self.secret_key = settings.SECRET_KEY
        self.algorithm = settings.JWT_ALGORITHM

    async def authenticate(self, token: Optional[str]) -> TokenClaims:
        """
        Verify signature and expiry of token and return its claims.

        Raises UnauthorizedException for a missing, malformed, expired or
        wrongly signed token, or one that lacks a user id or a known role.
        """
        if not token:
            raise UnauthorizedException("No token provided")

        try:
            payload: Dict[str, Any] = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            raise UnauthorizedException("Token expired")
        except JWTError as e:
            logger.debug(f"JWT validation error: {e}")
            raise UnauthorizedException("Invalid token")

        if not payload.get("userId") and payload.get("sub"):
            payload["userId"] = payload["sub"]

        try:
            return TokenClaims.model_validate(payload)
        except ValidationError as e:
            raise UnauthorizedException(
                "Token has missing or invalid claims",
                details={"claims": [".".join(str(p) for p in err["loc"]) for err in e.errors()]}
            )


class RoleGate:
    """Allow-list check of a connection's role"""

    @staticmethod
    def check(role: ActorRole, allowed: Iterable[ActorRole], action: str):
        allowed = frozenset(allowed)
        if role not in allowed:
            raise ForbiddenException(
                "Insufficient permissions",
                details={
                    "action": action,
                    "role": role.value,
                    "allowed_roles": sorted(r.value for r in allowed),
                }
            )
