"""
Packet construction and frame parsing.
"""

import json
from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError

from inworld_session.models.entities import Capabilities, ClientInfo, Continuation, UserRequest
from inworld_session.models.packet import (
    ActionEvent,
    AudioSessionStart,
    CancelResponse,
    ControlAction,
    ControlEvent,
    CustomEvent,
    DataChunk,
    InworldPacket,
    LoadScene,
    MicrophoneMode,
    MutationEvent,
    NarratedAction,
    NetworkPacketResponse,
    SessionConfiguration,
    SessionControlEvent,
    TextEvent,
    TriggerParameter,
    UnderstandingMode,
)
from inworld_session.models.routing import Routing, Source


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def stamp(packet: InworldPacket, routing: Routing) -> InworldPacket:
    """Assign send-time fields. Called once, right before the packet goes on the wire."""
    packet.timestamp = utc_timestamp()
    packet.type = packet.packet_type.value
    packet.routing = routing
    return packet


def world_routing() -> Routing:
    return Routing(source=Source.player(), targets=[Source.world()])


def serialize(packet: InworldPacket) -> str:
    return json.dumps(packet.to_wire())


def parse_response(raw: str) -> Optional[NetworkPacketResponse]:
    """Parse an inbound frame. Returns None if it is not a valid response."""
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if not isinstance(data, dict):
        return None
    try:
        response = NetworkPacketResponse.model_validate(data)
    except ValidationError:
        return None
    if response.result is None and response.error is None:
        return None
    return response


# --- application packets ---

def build_text(text: str, source_type: str = "TYPED_IN") -> InworldPacket:
    return InworldPacket(text=TextEvent(text=text, source_type=source_type, final=True))


def build_audio_chunk(base64_chunk: str) -> InworldPacket:
    return InworldPacket(data_chunk=DataChunk(type="AUDIO", chunk=base64_chunk))


def build_narrated_action(content: str) -> InworldPacket:
    return InworldPacket(action=ActionEvent(narrated_action=NarratedAction(content=content)))


def build_trigger(name: str, parameters: Optional[dict[str, str]] = None) -> InworldPacket:
    params = [TriggerParameter(name=k, value=v) for k, v in parameters.items()] if parameters else None
    return InworldPacket(custom=CustomEvent(name=name, parameters=params))


def build_control(
    action: str,
    mic_mode: MicrophoneMode = MicrophoneMode.UNSPECIFIED,
    understanding_mode: UnderstandingMode = UnderstandingMode.UNSPECIFIED,
) -> InworldPacket:
    control = ControlEvent(action=action)
    if action == ControlAction.AUDIO_SESSION_START:
        control.audio_session_start = AudioSessionStart(mode=mic_mode, understanding_mode=understanding_mode)
    return InworldPacket(control=control)


def build_cancel_response(interaction_id: str, utterance_ids: Optional[list[str]] = None) -> InworldPacket:
    return InworldPacket(
        mutation=MutationEvent(
            cancel_responses=CancelResponse(interaction_id=interaction_id, utterance_id=utterance_ids or None)
        )
    )


# --- session-start handshake (always routed to WORLD) ---

def build_load_scene(scene_full_name: str) -> InworldPacket:
    packet = InworldPacket(mutation=MutationEvent(load_scene=LoadScene(name=scene_full_name)))
    return stamp(packet, world_routing())


def build_capabilities(capabilities: Capabilities) -> InworldPacket:
    packet = InworldPacket(session_control=SessionControlEvent(capabilities_configuration=capabilities))
    return stamp(packet, world_routing())


def build_session_configuration(game_session_id: str) -> InworldPacket:
    packet = InworldPacket(
        session_control=SessionControlEvent(session_configuration=SessionConfiguration(game_session_id=game_session_id))
    )
    return stamp(packet, world_routing())


def build_client_configuration(client_info: ClientInfo) -> InworldPacket:
    packet = InworldPacket(session_control=SessionControlEvent(client_configuration=client_info))
    return stamp(packet, world_routing())


def build_user_configuration(user: UserRequest) -> InworldPacket:
    packet = InworldPacket(session_control=SessionControlEvent(user_configuration=user))
    return stamp(packet, world_routing())


def build_continuation(continuation: Continuation) -> InworldPacket:
    packet = InworldPacket(session_control=SessionControlEvent(continuation=continuation))
    return stamp(packet, world_routing())
