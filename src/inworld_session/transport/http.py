"""
REST HTTP client — token exchange, session history, feedback.
"""

from typing import Any, Optional

import httpx

from inworld_session.errors import InworldSessionError
from inworld_session.models.entities import Token


class HttpClient:
    def __init__(
        self,
        token: Optional[Token] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._token = token
        self._client = httpx.AsyncClient(
            headers={"User-Agent": "inworld-session/0.1.0", "Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    def set_token(self, token: Optional[Token]) -> None:
        self._token = token

    def _auth_headers(self, authenticated: bool, extra: Optional[dict[str, str]] = None) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if authenticated and self._token:
            headers["Authorization"] = f"Bearer {self._token.token}"
            headers["Grpc-Metadata-session-id"] = self._token.session_id
        if extra:
            headers.update(extra)
        return headers

    @staticmethod
    def _check(resp: httpx.Response) -> Any:
        if resp.status_code >= 400:
            raise InworldSessionError("http_error", f"HTTP {resp.status_code}: {resp.text[:200]}")
        if not resp.content:
            return {}
        return resp.json()

    async def get(self, url: str, authenticated: bool = True) -> Any:
        resp = await self._client.get(url, headers=self._auth_headers(authenticated))
        return self._check(resp)

    async def post(
        self,
        url: str,
        body: Optional[dict[str, Any]] = None,
        authenticated: bool = True,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        resp = await self._client.post(url, json=body, headers=self._auth_headers(authenticated, headers))
        return self._check(resp)

    async def patch(self, url: str, body: Optional[dict[str, Any]] = None, authenticated: bool = True) -> Any:
        resp = await self._client.patch(url, json=body, headers=self._auth_headers(authenticated))
        return self._check(resp)

    async def close(self) -> None:
        await self._client.aclose()
