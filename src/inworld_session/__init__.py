"""
inworld-session — session client for the Inworld character runtime.

Token exchange, the session WebSocket, the outgoing packet pump and inbound
event dispatch for talking to live AI characters.
"""

from inworld_session.client import InworldClient, ConnectionStatus
from inworld_session.auth import Auth
from inworld_session.config import ClientConfig, ServerConfig, load_config
from inworld_session.errors import InworldSessionError, AuthError, SessionError, TransportError
from inworld_session.models.packet import InworldPacket, PacketType, ControlAction
from inworld_session.models.routing import Target
from inworld_session.models.error import ServerError

__version__ = "0.1.0"
__all__ = [
    "InworldClient",
    "ConnectionStatus",
    "Auth",
    "ClientConfig",
    "ServerConfig",
    "load_config",
    "InworldSessionError",
    "AuthError",
    "SessionError",
    "TransportError",
    "InworldPacket",
    "PacketType",
    "ControlAction",
    "Target",
    "ServerError",
]
