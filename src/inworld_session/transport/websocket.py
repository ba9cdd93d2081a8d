"""
WebSocket transport for the session protocol.

One persistent connection per session. Frames are JSON text. The client reads
with `receive()` until the socket closes, then inspects `closed_cleanly`.
"""

import asyncio
import logging
from typing import AsyncIterator, Optional

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, InvalidHandshake

from inworld_session.errors import TransportError

logger = logging.getLogger(__name__)

NORMAL_CLOSURE = 1000


class WebSocketTransport:
    def __init__(
        self,
        url: str,
        headers: Optional[dict[str, str]] = None,
        open_timeout: float = 10.0,
        ping_interval: Optional[float] = 20.0,
        max_size: Optional[int] = 2 ** 22,
    ):
        self.url = url
        self._headers = headers or {}
        self._open_timeout = open_timeout
        self._ping_interval = ping_interval
        self._max_size = max_size
        self._ws: Optional[websockets.ClientConnection] = None
        self.close_code: Optional[int] = None
        self.close_reason: str = ""

    @property
    def is_open(self) -> bool:
        return self._ws is not None and self.close_code is None

    @property
    def closed_cleanly(self) -> bool:
        return self.close_code == NORMAL_CLOSURE

    async def connect(self) -> None:
        try:
            self._ws = await websockets.connect(
                self.url,
                additional_headers=list(self._headers.items()),
                open_timeout=self._open_timeout,
                ping_interval=self._ping_interval,
                max_size=self._max_size,
            )
        except (InvalidHandshake, OSError, asyncio.TimeoutError) as e:
            raise TransportError(f"Failed to open {self.url}: {e}") from e

    async def send(self, message: str) -> None:
        if self._ws is None:
            raise TransportError("WebSocket not connected")
        try:
            await self._ws.send(message)
        except ConnectionClosed as e:
            raise TransportError(f"Send failed, socket closed: {e}") from e

    async def receive(self) -> AsyncIterator[str]:
        """Yield text frames until the connection closes."""
        if self._ws is None:
            raise TransportError("WebSocket not connected")
        try:
            async for message in self._ws:
                yield message if isinstance(message, str) else message.decode("utf-8", errors="replace")
        except ConnectionClosedError as e:
            logger.debug(f"Connection closed abnormally: {e}")
        self._record_close()

    async def close(self) -> None:
        if self._ws is None:
            return
        await self._ws.close()
        self._record_close()

    def _record_close(self) -> None:
        if self._ws is None:
            return
        code = self._ws.close_code
        # No close frame received at all is reported as 1006.
        self.close_code = code if code is not None else 1006
        self.close_reason = self._ws.close_reason or ""
