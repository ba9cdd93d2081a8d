"""
Auth module — session token exchange.

The token endpoint takes an `IW1-HMAC-SHA256` signed Authorization header
derived from the API key/secret, and a JSON body `{api_key, resource_id}`.
"""

import hashlib
import hmac
import secrets
from datetime import datetime, timezone
from typing import Optional

import httpx
from pydantic import ValidationError

from inworld_session.config import ServerConfig
from inworld_session.errors import AuthError, InworldSessionError
from inworld_session.models.entities import AccessTokenRequest, Token
from inworld_session.transport.http import HttpClient

GENERATE_TOKEN_METHOD = "ai.inworld.engine.WorldEngine/GenerateToken"


def _hmac(key: bytes, message: str) -> bytes:
    return hmac.new(key, message.encode("utf-8"), hashlib.sha256).digest()


def signature(secret: str, date_time: str, host: str, nonce: str) -> str:
    key = f"IW1{secret}".encode("utf-8")
    for part in (date_time, host, GENERATE_TOKEN_METHOD, nonce):
        key = _hmac(key, part)
    return hmac.new(key, b"iw1_request", hashlib.sha256).hexdigest()


def auth_header(
    host: str,
    api_key: str,
    api_secret: str,
    now: Optional[datetime] = None,
    nonce: Optional[str] = None,
) -> str:
    date_time = (now or datetime.now(timezone.utc)).strftime("%Y%m%d%H%M%S")
    nonce = nonce or secrets.token_hex(6)[:11]
    host = host.replace(":443", "")
    sig = signature(api_secret, date_time, host, nonce)
    return f"IW1-HMAC-SHA256 ApiKey={api_key},DateTime={date_time},Nonce={nonce},Signature={sig}"


def parse_token(raw: str) -> Token:
    """Parse a pre-fetched token JSON string."""
    try:
        return Token.model_validate_json(raw)
    except ValidationError as e:
        raise AuthError(f"Invalid token JSON: {e.error_count()} error(s)")


class Auth:
    def __init__(self, http: HttpClient, server: ServerConfig):
        self._http = http
        self._server = server

    async def generate_token(self, api_key: str, api_secret: str, resource_id: str = "") -> Token:
        """Exchange API key/secret for a session token."""
        if not api_key:
            raise AuthError("Please fill API Key!", code="missing_api_key")
        if not api_secret:
            raise AuthError("Please fill API Secret!", code="missing_api_secret")
        header = auth_header(self._server.runtime, api_key, api_secret)
        body = AccessTokenRequest(api_key=api_key, resource_id=resource_id).model_dump()
        try:
            result = await self._http.post(
                self._server.token_server, body, authenticated=False, headers={"Authorization": header},
            )
        except (InworldSessionError, httpx.HTTPError) as e:
            raise AuthError(f"Error Get Token: {e}")
        try:
            token = Token.model_validate(result)
        except ValidationError:
            raise AuthError("Get Token Failed")
        if not token.is_valid:
            raise AuthError("Get Token Failed")
        return token
