"""
Inbound dispatcher — demultiplexes frames from the session socket.

Control-plane packets (scene confirmation, warnings) are consumed here;
interaction end releases sent history and fires `interaction_ended` instead
of reaching subscribers. Everything else fans out: `global` for packets whose
source is the world, `received` for every forwarded packet.
"""

import logging
from typing import Callable, Optional

from inworld_session.events import EventHook
from inworld_session.models.entities import CharacterData
from inworld_session.models.error import ServerError
from inworld_session.models.packet import ControlAction, InworldPacket, PacketType
from inworld_session.outgoing import OutgoingQueue
from inworld_session.registry import LiveSessionRegistry
from inworld_session.transport.codec import parse_response

logger = logging.getLogger(__name__)


class InboundDispatcher:
    def __init__(
        self,
        registry: LiveSessionRegistry,
        outgoing: OutgoingQueue,
        packet_received: EventHook,
        global_packet_received: EventHook,
        interaction_ended: EventHook,
        on_session_confirmed: Callable[[list[CharacterData]], None],
        on_error: Callable[[ServerError], None],
        on_lost_connect: Callable[[], None],
    ):
        self._registry = registry
        self._outgoing = outgoing
        self._packet_received = packet_received
        self._global_packet_received = global_packet_received
        self._interaction_ended = interaction_ended
        self._on_session_confirmed = on_session_confirmed
        self._on_error = on_error
        self._on_lost_connect = on_lost_connect

    def dispatch(self, raw: str) -> Optional[InworldPacket]:
        """Handle one frame. Returns the packet if it was forwarded to subscribers."""
        response = parse_response(raw)
        if response is None:
            self._on_error(ServerError.from_message(f"Error Processing packets {raw[:200]}"))
            return None
        if response.error is not None and response.error.is_valid:
            self._on_error(response.error)
            return None
        packet = response.result
        if packet is None:
            self._on_error(ServerError.from_message(f"Error Processing packets {raw[:200]}"))
            return None

        packet_type = packet.packet_type
        logger.debug(f"Received {packet_type.value} {packet.packet_id.packet_id}")

        if packet_type == PacketType.SESSION_RESPONSE:
            agents = packet.session_control_response.agents
            self._registry.register(agents)
            self._on_session_confirmed(agents)
            return None
        if packet.is_control(ControlAction.WARNING):
            logger.warning(packet.control.description or "Server warning")
            return None
        if packet.is_control(ControlAction.INTERACTION_END):
            removed = self._outgoing.complete_interaction(packet.interaction_id or "")
            logger.debug(f"Interaction {packet.interaction_id} ended, released {removed} sent packet(s)")
            self._interaction_ended.fire(packet)
            return None
        if packet_type == PacketType.UNKNOWN:
            if "error" in raw:
                if "inactivity" in raw:
                    self._on_lost_connect()
                else:
                    self._on_error(ServerError.from_message(raw[:500]))
                return None
            logger.warning(f"Received Unknown {raw[:200]}")

        routing = packet.routing
        if routing is not None and routing.is_from_player and packet.interaction_id:
            # Server echo of our own packet: learn its interaction id.
            self._outgoing.correlate(packet.packet_id.packet_id, packet.interaction_id)

        if routing is not None and routing.is_from_world:
            self._global_packet_received.fire(packet)
        self._packet_received.fire(packet)
        return packet
