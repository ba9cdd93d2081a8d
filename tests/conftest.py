"""Shared fixtures: an in-memory session socket and a client wired to it."""

import asyncio
import json
from typing import Any, Callable, Optional, Union

import httpx
import pytest

from inworld_session.client import InworldClient
from inworld_session.config import ClientConfig
from inworld_session.errors import TransportError
from inworld_session.transport.http import HttpClient

SCENE = "workspaces/ws/scenes/tavern"
ALICE = "workspaces/ws/characters/alice"
BOB = "workspaces/ws/characters/bob"

TOKEN_JSON = json.dumps({
    "token": "tok-123",
    "type": "Bearer",
    "sessionId": "sess-1",
    "expirationTime": "2099-01-01T00:00:00Z",
})


class FakeTransport:
    """Stands in for WebSocketTransport: records sent frames, replays pushed ones."""

    def __init__(self, url: str, headers: dict[str, str], fail_connect: bool = False):
        self.url = url
        self.headers = headers
        self.fail_connect = fail_connect
        self.sent: list[str] = []
        self.connected = False
        self.close_code: Optional[int] = None
        self.close_reason = ""
        self._inbox: asyncio.Queue = asyncio.Queue()

    @property
    def closed_cleanly(self) -> bool:
        return self.close_code == 1000

    async def connect(self) -> None:
        if self.fail_connect:
            raise TransportError("connection refused")
        self.connected = True

    async def send(self, message: str) -> None:
        if self.close_code is not None:
            raise TransportError("socket closed")
        self.sent.append(message)

    async def receive(self):
        while True:
            frame = await self._inbox.get()
            if frame is None:
                return
            yield frame

    async def close(self) -> None:
        if self.close_code is None:
            self.close_code = 1000
            self._inbox.put_nowait(None)

    def push(self, packet: dict[str, Any]) -> None:
        self._inbox.put_nowait(json.dumps({"result": packet}))

    def push_raw(self, raw: str) -> None:
        self._inbox.put_nowait(raw)

    def drop(self, code: int = 1006) -> None:
        self.close_code = code
        self._inbox.put_nowait(None)

    def sent_packets(self) -> list[dict[str, Any]]:
        return [json.loads(m) for m in self.sent]


def scene_response(*agents: tuple[str, str]) -> dict[str, Any]:
    return {
        "packetId": {"packetId": "srv-scene"},
        "routing": {"source": {"type": "WORLD"}, "targets": []},
        "sessionControlResponse": {
            "loadedScene": {
                "agents": [
                    {"agentId": agent_id, "brainName": brain, "givenName": brain.rsplit("/", 1)[-1].title()}
                    for agent_id, brain in agents
                ],
            },
        },
    }


def agent_text(agent_id: str, text: str, interaction_id: str = "int-1") -> dict[str, Any]:
    return {
        "packetId": {"packetId": f"srv-{text}", "interactionId": interaction_id},
        "routing": {"source": {"type": "AGENT", "name": agent_id}, "targets": [{"type": "PLAYER"}]},
        "text": {"text": text, "final": True},
    }


def error_frame(message: str, reconnect_type: str = "NO_RETRY", error_type: str = "SESSION_INVALID") -> str:
    return json.dumps({
        "error": {
            "code": 9,
            "message": message,
            "details": [{"errorType": error_type, "reconnectType": reconnect_type}],
        },
    })


async def settle(rounds: int = 10) -> None:
    """Let spawned tasks and the receive loop run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def transports() -> list[FakeTransport]:
    return []


@pytest.fixture
def http_handler() -> dict[str, Callable[[httpx.Request], httpx.Response]]:
    # Tests swap in their own handler under "handler".
    return {"handler": lambda request: httpx.Response(404)}


@pytest.fixture
def make_client(transports, http_handler):
    def factory(fail_connect: bool = False, **overrides: Any) -> InworldClient:
        settings: dict[str, Any] = {
            "scene_full_name": SCENE,
            "custom_token": TOKEN_JSON,
            "tick_interval": 0.5,
            "backoff_base": 1.0,
        }
        settings.update(overrides)
        config = ClientConfig(**settings)

        def transport_factory(url: str, headers: dict[str, str]) -> FakeTransport:
            transport = FakeTransport(url, headers, fail_connect=fail_connect)
            transports.append(transport)
            return transport

        mock = httpx.MockTransport(lambda request: http_handler["handler"](request))
        return InworldClient(config, http=HttpClient(transport=mock), transport_factory=transport_factory)

    return factory


async def connect(client: InworldClient, transports: list[FakeTransport],
                  agents: Union[tuple, list] = (("a-1", ALICE), ("b-1", BOB))) -> FakeTransport:
    """Drive a client to CONNECTED with the given live agents."""
    await client.get_access_token()
    await client.start_session()
    transport = transports[-1]
    transport.push(scene_response(*agents))
    await settle()
    return transport
