"""
Packet envelope and payloads.

A packet carries identity (`packetId`), a timestamp, routing, and exactly one
populated payload field. The packet type is derived from that field.
"""

import uuid
from enum import Enum
from typing import Any, Optional

from pydantic import Field

from inworld_session.models.entities import (
    Capabilities,
    CharacterData,
    ClientInfo,
    Continuation,
    LoadedAgents,
    UserRequest,
)
from inworld_session.models.error import ServerError
from inworld_session.models.routing import Routing
from inworld_session.models.wire import WireModel


class PacketType(str, Enum):
    TEXT = "TEXT"
    AUDIO = "AUDIO"
    ACTION = "ACTION"
    CUSTOM = "CUSTOM"
    CONTROL = "CONTROL"
    MUTATION = "MUTATION"
    EMOTION = "EMOTION"
    SESSION_CONTROL = "SESSION_CONTROL"
    SESSION_RESPONSE = "SESSION_RESPONSE"
    UNKNOWN = "UNKNOWN"


class ControlAction:
    AUDIO_SESSION_START = "AUDIO_SESSION_START"
    AUDIO_SESSION_END = "AUDIO_SESSION_END"
    INTERACTION_END = "INTERACTION_END"
    WARNING = "WARNING"


class MicrophoneMode(str, Enum):
    UNSPECIFIED = "UNSPECIFIED"
    OPEN_MIC = "OPEN_MIC"
    EXPECT_AUDIO_END = "EXPECT_AUDIO_END"


class UnderstandingMode(str, Enum):
    UNSPECIFIED = "UNSPECIFIED"
    FULL = "FULL"
    SPEECH_RECOGNITION_ONLY = "SPEECH_RECOGNITION_ONLY"


class PacketId(WireModel):
    packet_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    utterance_id: Optional[str] = None
    interaction_id: Optional[str] = None
    correlation_id: Optional[str] = None


# --- payloads ---

class TextEvent(WireModel):
    text: str = ""
    source_type: str = "TYPED_IN"  # TYPED_IN | SPEECH_TO_TEXT
    final: bool = True


class DataChunk(WireModel):
    type: str = "AUDIO"
    chunk: str = ""  # base64, 16kHz mono PCM for audio
    additional_phoneme_info: Optional[list[dict[str, Any]]] = None


class NarratedAction(WireModel):
    content: str = ""


class ActionEvent(WireModel):
    narrated_action: NarratedAction = NarratedAction()


class TriggerParameter(WireModel):
    name: str
    value: str


class CustomEvent(WireModel):
    name: str = ""
    type: str = "TRIGGER"
    parameters: Optional[list[TriggerParameter]] = None

    @property
    def parameter_map(self) -> dict[str, str]:
        return {p.name: p.value for p in self.parameters or []}


class AudioSessionStart(WireModel):
    mode: MicrophoneMode = MicrophoneMode.UNSPECIFIED
    understanding_mode: UnderstandingMode = UnderstandingMode.UNSPECIFIED


class ControlEvent(WireModel):
    action: str = ""
    description: Optional[str] = None
    audio_session_start: Optional[AudioSessionStart] = None


class CancelResponse(WireModel):
    interaction_id: str = ""
    utterance_id: Optional[list[str]] = None


class LoadScene(WireModel):
    name: str = ""


class MutationEvent(WireModel):
    cancel_responses: Optional[CancelResponse] = None
    load_scene: Optional[LoadScene] = None


class EmotionEvent(WireModel):
    behavior: str = ""
    strength: str = ""


class SessionConfiguration(WireModel):
    game_session_id: str = ""


class SessionControlEvent(WireModel):
    capabilities_configuration: Optional[Capabilities] = None
    session_configuration: Optional[SessionConfiguration] = None
    client_configuration: Optional[ClientInfo] = None
    user_configuration: Optional[UserRequest] = None
    continuation: Optional[Continuation] = None


class SessionControlResponse(WireModel):
    loaded_scene: Optional[LoadedAgents] = None
    loaded_characters: Optional[LoadedAgents] = None

    @property
    def agents(self) -> list[CharacterData]:
        agents: list[CharacterData] = []
        if self.loaded_scene:
            agents.extend(self.loaded_scene.agents)
        if self.loaded_characters:
            agents.extend(self.loaded_characters.agents)
        return agents


# Payload field name -> packet type, in detection order.
_PAYLOAD_TYPES = (
    ("text", PacketType.TEXT),
    ("data_chunk", PacketType.AUDIO),
    ("action", PacketType.ACTION),
    ("custom", PacketType.CUSTOM),
    ("control", PacketType.CONTROL),
    ("emotion", PacketType.EMOTION),
    ("mutation", PacketType.MUTATION),
    ("session_control_response", PacketType.SESSION_RESPONSE),
    ("session_control", PacketType.SESSION_CONTROL),
)


class InworldPacket(WireModel):
    timestamp: Optional[str] = None
    type: Optional[str] = None
    packet_id: PacketId = Field(default_factory=PacketId)
    routing: Optional[Routing] = None

    text: Optional[TextEvent] = None
    data_chunk: Optional[DataChunk] = None
    action: Optional[ActionEvent] = None
    custom: Optional[CustomEvent] = None
    control: Optional[ControlEvent] = None
    mutation: Optional[MutationEvent] = None
    emotion: Optional[EmotionEvent] = None
    session_control: Optional[SessionControlEvent] = None
    session_control_response: Optional[SessionControlResponse] = None

    @property
    def packet_type(self) -> PacketType:
        for attr, packet_type in _PAYLOAD_TYPES:
            if getattr(self, attr) is not None:
                if packet_type == PacketType.AUDIO and self.data_chunk.type != "AUDIO":
                    return PacketType.UNKNOWN
                return packet_type
        return PacketType.UNKNOWN

    @property
    def interaction_id(self) -> Optional[str]:
        return self.packet_id.interaction_id

    def is_control(self, action: str) -> bool:
        return self.control is not None and self.control.action == action

    def __repr__(self) -> str:
        return f"InworldPacket(type={self.packet_type.value}, id={self.packet_id.packet_id!r})"


class NetworkPacketResponse(WireModel):
    """Inbound frame: either a packet (`result`) or a protocol error."""
    result: Optional[InworldPacket] = None
    error: Optional[ServerError] = None
