"""
Integration tests for inworld-session — tests against the real Inworld service.

Requires environment variables:
  INWORLD_API_KEY     — workspace API key
  INWORLD_API_SECRET  — workspace API secret
  INWORLD_SCENE       — scene full name (workspaces/<ws>/scenes/<scene>)
  INWORLD_CHARACTER   — character full name present in that scene

Run: INWORLD_INTEGRATION=1 pytest tests/integration/ -v
"""

import asyncio
import os

import pytest

from inworld_session import ConnectionStatus, InworldClient, Target, load_config
from inworld_session.models.packet import PacketType

SKIP = not os.environ.get("INWORLD_INTEGRATION")
CHARACTER = os.environ.get("INWORLD_CHARACTER", "")

pytestmark = pytest.mark.skipif(SKIP, reason="INWORLD_INTEGRATION not set")


def make_client() -> InworldClient:
    return InworldClient(load_config())


class TestTokenExchange:
    """Signed key/secret exchange"""

    @pytest.mark.asyncio
    async def test_generates_token(self):
        client = make_client()
        assert await client.get_access_token()
        assert client.is_token_valid
        await client.close()

    @pytest.mark.asyncio
    async def test_rejects_bad_secret(self):
        config = load_config(api_secret="definitely-wrong")
        client = InworldClient(config)
        assert not await client.get_access_token()
        assert client.status == ConnectionStatus.ERROR
        await client.close()


class TestSession:
    """Scene load and a full text interaction"""

    @pytest.mark.asyncio
    async def test_scene_loads_characters(self):
        client = make_client()
        await client.get_access_token()
        await client.start_session()
        await client.wait_connected(timeout=15)
        assert client.status == ConnectionStatus.CONNECTED
        assert len(client.registry) > 0
        await client.close()

    @pytest.mark.asyncio
    async def test_text_roundtrip(self):
        client = make_client()
        replies = []
        done = asyncio.Event()

        def on_packet(packet):
            if packet.routing and packet.routing.is_from_player:
                return
            if packet.packet_type == PacketType.TEXT:
                replies.append(packet.text.text)

        client.on_packet_received.add(on_packet)
        client.on_interaction_end.add(lambda packet: done.set())
        async with client:
            client.send_text("Hello, who are you?", Target.character(CHARACTER))
            await client.wait_connected(timeout=15)
            await asyncio.wait_for(done.wait(), timeout=30)
        assert "".join(replies).strip()
        assert client.outgoing.sent == []
