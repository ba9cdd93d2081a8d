"""Token exchange and request signing."""

import json
import re
from datetime import datetime, timezone

import httpx
import pytest

from inworld_session.auth import Auth, auth_header, parse_token, signature
from inworld_session.config import ServerConfig
from inworld_session.errors import AuthError
from inworld_session.transport.http import HttpClient

NOW = datetime(2024, 3, 1, 12, 30, 45, tzinfo=timezone.utc)


def test_auth_header_format():
    header = auth_header("api-engine.inworld.ai", "key", "secret", now=NOW, nonce="0123456789a")
    match = re.fullmatch(
        r"IW1-HMAC-SHA256 ApiKey=key,DateTime=20240301123045,Nonce=0123456789a,Signature=([0-9a-f]{64})",
        header,
    )
    assert match is not None
    assert match.group(1) == signature("secret", "20240301123045", "api-engine.inworld.ai", "0123456789a")


def test_auth_header_strips_default_port():
    with_port = auth_header("api-engine.inworld.ai:443", "key", "secret", now=NOW, nonce="n")
    without = auth_header("api-engine.inworld.ai", "key", "secret", now=NOW, nonce="n")
    assert with_port == without


def test_random_nonce_is_eleven_chars():
    header = auth_header("h", "k", "s")
    nonce = re.search(r"Nonce=([^,]+),", header).group(1)
    assert len(nonce) == 11


def test_signature_depends_on_every_input():
    base = signature("s", "20240101000000", "h", "n")
    assert base == signature("s", "20240101000000", "h", "n")
    assert base != signature("s2", "20240101000000", "h", "n")
    assert base != signature("s", "20240101000001", "h", "n")
    assert base != signature("s", "20240101000000", "h2", "n")
    assert base != signature("s", "20240101000000", "h", "n2")


def test_parse_token_rejects_invalid_json():
    with pytest.raises(AuthError):
        parse_token("{not json")


def _auth(handler) -> tuple[Auth, HttpClient]:
    http = HttpClient(transport=httpx.MockTransport(handler))
    return Auth(http, ServerConfig()), http


class TestGenerateToken:

    @pytest.mark.asyncio
    async def test_success(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "token": "tok", "type": "Bearer", "sessionId": "s-9", "expirationTime": "2099-01-01T00:00:00Z",
            })

        auth, http = _auth(handler)
        token = await auth.generate_token("key", "secret", "workspaces/ws")
        await http.close()

        assert token.session_id == "s-9"
        assert seen["url"] == "https://api.inworld.ai/auth/v1/tokens/token:generate"
        assert seen["auth"].startswith("IW1-HMAC-SHA256 ApiKey=key,")
        assert seen["body"] == {"api_key": "key", "resource_id": "workspaces/ws"}

    @pytest.mark.asyncio
    async def test_missing_credentials(self):
        auth, http = _auth(lambda request: httpx.Response(500))
        with pytest.raises(AuthError, match="API Key"):
            await auth.generate_token("", "secret")
        with pytest.raises(AuthError, match="API Secret"):
            await auth.generate_token("key", "")
        await http.close()

    @pytest.mark.asyncio
    async def test_http_error(self):
        auth, http = _auth(lambda request: httpx.Response(401, text="unauthorized"))
        with pytest.raises(AuthError, match="Error Get Token"):
            await auth.generate_token("key", "secret")
        await http.close()

    @pytest.mark.asyncio
    async def test_token_without_session(self):
        auth, http = _auth(lambda request: httpx.Response(200, json={"token": "tok"}))
        with pytest.raises(AuthError, match="Get Token Failed"):
            await auth.generate_token("key", "secret")
        await http.close()
