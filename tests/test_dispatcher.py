"""Inbound frame routing."""

import json

import pytest

from inworld_session.dispatcher import InboundDispatcher
from inworld_session.events import EventHook
from inworld_session.models.error import ReconnectionType
from inworld_session.models.routing import Target
from inworld_session.outgoing import OutgoingPacket, OutgoingQueue
from inworld_session.registry import LiveSessionRegistry
from inworld_session.transport import codec

from conftest import ALICE, BOB, agent_text, error_frame, scene_response


class Recorder:
    def __init__(self):
        self.registry = LiveSessionRegistry()
        self.outgoing = OutgoingQueue()
        self.received = EventHook("received")
        self.global_received = EventHook("global")
        self.ended = EventHook("ended")
        self.packets = []
        self.global_packets = []
        self.ended_packets = []
        self.confirmed = []
        self.errors = []
        self.lost = 0
        self.received.add(self.packets.append)
        self.global_received.add(self.global_packets.append)
        self.ended.add(self.ended_packets.append)
        self.dispatcher = InboundDispatcher(
            self.registry,
            self.outgoing,
            packet_received=self.received,
            global_packet_received=self.global_received,
            interaction_ended=self.ended,
            on_session_confirmed=self.confirmed.append,
            on_error=self.errors.append,
            on_lost_connect=self._lost,
        )

    def _lost(self):
        self.lost += 1

    def dispatch(self, frame):
        raw = frame if isinstance(frame, str) else json.dumps({"result": frame})
        return self.dispatcher.dispatch(raw)


@pytest.fixture
def rec() -> Recorder:
    return Recorder()


def test_scene_response_populates_registry(rec):
    assert rec.dispatch(scene_response(("a-1", ALICE), ("b-1", BOB))) is None
    assert rec.registry.agent_id(ALICE) == "a-1"
    assert rec.registry.agent_id(BOB) == "b-1"
    assert [a.agent_id for a in rec.confirmed[0]] == ["a-1", "b-1"]
    assert rec.packets == []


def test_text_is_forwarded(rec):
    packet = rec.dispatch(agent_text("a-1", "hello"))
    assert packet.text.text == "hello"
    assert rec.packets == [packet]
    assert rec.global_packets == []


def test_world_packets_also_fire_global(rec):
    frame = {
        "packetId": {"packetId": "w"},
        "routing": {"source": {"type": "WORLD"}, "targets": []},
        "custom": {"name": "quest_done"},
    }
    packet = rec.dispatch(frame)
    assert rec.global_packets == [packet]
    assert rec.packets == [packet]


def test_unparseable_frame_surfaces_error(rec):
    assert rec.dispatch("{{{") is None
    assert rec.errors[0].message.startswith("Error Processing packets")
    assert rec.packets == []


def test_protocol_error(rec):
    rec.dispatch(error_frame("session gone"))
    assert rec.errors[0].message == "session gone"
    assert rec.errors[0].retry_type == ReconnectionType.NO_RETRY


def test_warning_is_consumed(rec):
    frame = {"packetId": {"packetId": "w"}, "control": {"action": "WARNING", "description": "slow down"}}
    assert rec.dispatch(frame) is None
    assert rec.packets == []
    assert rec.errors == []


def test_player_echo_correlates_and_interaction_end_releases(rec):
    sent = OutgoingPacket(codec.build_text("hi"), Target.character(ALICE))
    rec.outgoing.mark_sent(sent)

    echo = {
        "packetId": {"packetId": sent.packet_id, "interactionId": "int-7"},
        "routing": {"source": {"type": "PLAYER"}, "targets": [{"type": "AGENT", "name": "a-1"}]},
        "text": {"text": "hi"},
    }
    rec.dispatch(echo)
    assert sent.interaction_id == "int-7"

    end = {
        "packetId": {"packetId": "e", "interactionId": "int-7"},
        "routing": {"source": {"type": "AGENT", "name": "a-1"}, "targets": [{"type": "PLAYER"}]},
        "control": {"action": "INTERACTION_END"},
    }
    assert rec.dispatch(end) is None
    assert rec.outgoing.sent == []
    assert [p.packet_id.packet_id for p in rec.ended_packets] == ["e"]
    assert [p.packet_id.packet_id for p in rec.packets] == [sent.packet_id]


def test_unknown_frames(rec):
    rec.dispatcher.dispatch(json.dumps({"result": {"packetId": {"packetId": "u"}, "error": "inactivity timeout"}}))
    assert rec.lost == 1

    rec.dispatcher.dispatch(json.dumps({"result": {"packetId": {"packetId": "u"}, "error": "weird"}}))
    assert len(rec.errors) == 1

    packet = rec.dispatch({"packetId": {"packetId": "u2"}, "somethingNew": {}})
    assert packet is not None
    assert rec.packets == [packet]
