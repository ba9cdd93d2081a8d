"""
InworldClient — session client for the character runtime.

Owns the connection state machine, the outgoing queue pump and the inbound
dispatcher. Everything runs on one asyncio loop: the pump, socket reads and
caller sends never overlap, so the queue and registry need no locks. Do not
call into a client from another thread; use `loop.call_soon_threadsafe`.

Status flow:

    IDLE -> INITIALIZING -> INITIALIZED -> CONNECTING -> CONNECTED
                                                     \\-> ERROR / LOST_CONNECT -> (backoff) -> IDLE

A pending outgoing packet is what drives recovery: each pump tick with a
non-empty queue flushes when CONNECTED, fetches a token when IDLE, and opens
the session when INITIALIZED.
"""

import asyncio
import logging
import uuid
from contextlib import suppress
from enum import Enum
from typing import Any, Callable, Coroutine, Optional

import httpx

from inworld_session.audio import AudioSessionTracker
from inworld_session.auth import Auth, parse_token
from inworld_session.config import ClientConfig
from inworld_session.dispatcher import InboundDispatcher
from inworld_session.errors import AuthError, InworldSessionError, SessionError, TransportError
from inworld_session.events import EventHook
from inworld_session.models.entities import (
    CharacterData,
    Continuation,
    ContinuationType,
    Feedback,
    PreviousSessionResponse,
    Token,
)
from inworld_session.models.error import ErrorType, ReconnectionType, ServerError
from inworld_session.models.packet import ControlAction, InworldPacket, MicrophoneMode, UnderstandingMode
from inworld_session.models.routing import Routing, Source, Target
from inworld_session.outgoing import OutgoingPacket, OutgoingQueue
from inworld_session.registry import LiveSessionRegistry
from inworld_session.transport import codec
from inworld_session.transport.http import HttpClient
from inworld_session.transport.websocket import WebSocketTransport

logger = logging.getLogger(__name__)

TransportFactory = Callable[[str, dict[str, str]], WebSocketTransport]

_TOKEN_ERRORS = {ErrorType.SESSION_TOKEN_EXPIRED, ErrorType.SESSION_TOKEN_INVALID}


class ConnectionStatus(str, Enum):
    IDLE = "Idle"
    INITIALIZING = "Initializing"
    INITIALIZED = "Initialized"
    CONNECTING = "Connecting"
    CONNECTED = "Connected"
    ERROR = "Error"
    LOST_CONNECT = "LostConnect"


_RECOVERABLE = {ConnectionStatus.ERROR, ConnectionStatus.LOST_CONNECT}


def _default_transport(url: str, headers: dict[str, str]) -> WebSocketTransport:
    return WebSocketTransport(url, headers)


class InworldClient:
    """Async session client. Collaborators are injected; nothing is looked up globally."""

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        *,
        http: Optional[HttpClient] = None,
        transport_factory: Optional[TransportFactory] = None,
    ):
        self.config = config or ClientConfig()
        self.http = http or HttpClient()
        self.auth = Auth(self.http, self.config.server)
        self._transport_factory = transport_factory or _default_transport
        self._transport: Optional[WebSocketTransport] = None

        self.token: Optional[Token] = None
        self.session_history = ""
        self.live_session_info: list[CharacterData] = []
        self._status = ConnectionStatus.IDLE
        self._error: Optional[ServerError] = None
        self._feedbacks: dict[str, Feedback] = {}

        self.on_status_changed = EventHook("status_changed")
        self.on_error_received = EventHook("error_received")
        self.on_packet_sent = EventHook("packet_sent")
        self.on_packet_received = EventHook("packet_received")
        self.on_global_packet_received = EventHook("global_packet_received")
        self.on_interaction_end = EventHook("interaction_end")

        self.registry = LiveSessionRegistry()
        self.outgoing = OutgoingQueue(self.config.max_sent)
        self.audio = AudioSessionTracker(close_session=self._enqueue_audio_end)
        self.dispatcher = InboundDispatcher(
            self.registry,
            self.outgoing,
            packet_received=self.on_packet_received,
            global_packet_received=self.on_global_packet_received,
            interaction_ended=self.on_interaction_end,
            on_session_confirmed=self._on_session_confirmed,
            on_error=self._set_error,
            on_lost_connect=self._on_lost_connect,
        )

        # Backoff: threshold doubles on every ERROR/LOST_CONNECT, resets on CONNECTED.
        self.reconnect_threshold = self.config.backoff_base
        self._reconnect_countdown = 0.0
        # Set by authentication failures: no automatic recovery until reconnect().
        self._halted = False

        self._pump_task: Optional[asyncio.Task] = None
        self._receive_task: Optional[asyncio.Task] = None
        self._tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    def _set_status(self, status: ConnectionStatus) -> None:
        if self._status == status:
            return
        logger.info(f"Status {self._status.value} -> {status.value}")
        self._status = status
        if status in _RECOVERABLE:
            self.reconnect_threshold *= 2
            self._reconnect_countdown = self.reconnect_threshold
        self.on_status_changed.fire(status)

    @property
    def error(self) -> Optional[ServerError]:
        return self._error

    @property
    def error_message(self) -> str:
        return self._error.message if self._error else ""

    def _set_error(self, error: Optional[ServerError]) -> None:
        self._error = error
        if error is None or not error.is_valid:
            return
        logger.error(error.message)
        self.on_error_received.fire(error)
        if error.error_type in _TOKEN_ERRORS:
            self._invalidate_token()
        if error.retry_type == ReconnectionType.NO_RETRY:
            self._set_status(ConnectionStatus.ERROR)

    @property
    def is_token_valid(self) -> bool:
        return self.token is not None and self.token.is_valid

    @property
    def is_connected(self) -> bool:
        return self._status == ConnectionStatus.CONNECTED

    @property
    def current_scene(self) -> str:
        return self.config.scene_full_name

    async def wait_connected(self, timeout: float = 10.0) -> None:
        """Wait until the session is confirmed. The pump only connects while packets are pending."""
        if self.is_connected:
            return
        connected = asyncio.Event()

        def on_status(status: ConnectionStatus) -> None:
            if status == ConnectionStatus.CONNECTED:
                connected.set()

        remove = self.on_status_changed.add(on_status)
        try:
            await asyncio.wait_for(connected.wait(), timeout)
        except asyncio.TimeoutError:
            reason = self.error_message or self._status.value
            raise SessionError(f"Not connected after {timeout}s: {reason}", code="connect_timeout")
        finally:
            remove()

    def get_character(self, full_name: str) -> Optional[CharacterData]:
        return self.registry.get(full_name)

    def get_character_by_agent_id(self, agent_id: str) -> Optional[CharacterData]:
        return self.registry.get_by_agent_id(agent_id)

    # ------------------------------------------------------------------
    # Token
    # ------------------------------------------------------------------

    async def get_access_token(self) -> bool:
        """Fetch a session token (or adopt the configured pre-fetched one)."""
        self._halted = False
        self._set_status(ConnectionStatus.INITIALIZING)
        try:
            if self.config.custom_token:
                token = parse_token(self.config.custom_token)
                if not token.is_valid:
                    raise AuthError("Get Token Failed")
            else:
                token = await self.auth.generate_token(
                    self.config.api_key, self.config.api_secret, self.config.workspace_full_name,
                )
        except AuthError as e:
            self._fail_auth(str(e))
            return False
        self._adopt_token(token)
        self._set_status(ConnectionStatus.INITIALIZED)
        return True

    def init_with_custom_token(self, token_json: str) -> bool:
        """Adopt a token fetched elsewhere (e.g. by a web backend)."""
        try:
            token = parse_token(token_json)
        except AuthError as e:
            self._fail_auth(str(e))
            return False
        if not token.is_valid:
            self._fail_auth("Get Token Failed")
            return False
        self._halted = False
        self._adopt_token(token)
        self._set_status(ConnectionStatus.INITIALIZED)
        return True

    def _adopt_token(self, token: Token) -> None:
        self.token = token
        self.http.set_token(token)
        logger.info(f"Token acquired for session {token.session_id}")

    def _invalidate_token(self) -> None:
        self.token = None
        self.http.set_token(None)

    def _fail_auth(self, message: str) -> None:
        self._invalidate_token()
        self._set_error(ServerError.from_message(message))
        self._set_status(ConnectionStatus.ERROR)
        self._halted = True

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    async def start_session(self) -> None:
        """Open the session socket. CONNECTED follows once the server confirms the scene."""
        if self._status == ConnectionStatus.CONNECTED:
            return
        if not self.is_token_valid:
            self._set_error(ServerError.from_message("Cannot start session: no valid token"))
            return
        self._halted = False
        await self._close_transport()
        token = self.token
        url = self.config.server.session_url(token.session_id)
        transport = self._transport_factory(url, {"Authorization": token.authorization})
        self._transport = transport
        self.registry.clear()
        self._set_status(ConnectionStatus.CONNECTING)
        try:
            await transport.connect()
        except TransportError as e:
            if self._transport is transport:
                self._transport = None
            self._set_error(ServerError.from_message(str(e)))
            self._set_status(ConnectionStatus.LOST_CONNECT)
            return
        logger.info(f"Connect {token.session_id}")
        self._receive_task = self._spawn(self._receive_loop(transport))
        try:
            await self._send_handshake(transport, token.session_id)
        except TransportError as e:
            self._set_error(ServerError.from_message(str(e)))

    async def reconnect(self) -> None:
        """Single recovery entry point."""
        if self.is_token_valid:
            await self.start_session()
        else:
            await self.get_access_token()

    async def disconnect(self) -> None:
        """Close the socket, waiting at most `close_timeout` for the close handshake. Keeps the token."""
        if self._transport is None:
            return
        await self._close_transport()
        if self._status != ConnectionStatus.ERROR:
            self._set_status(ConnectionStatus.IDLE)

    async def _close_transport(self) -> None:
        transport, self._transport = self._transport, None
        if transport is None:
            return
        try:
            await asyncio.wait_for(transport.close(), timeout=self.config.close_timeout)
        except asyncio.TimeoutError:
            logger.warning("Close handshake did not complete in time")
        if self._receive_task is not None and not self._receive_task.done():
            self._receive_task.cancel()
        self._receive_task = None
        self.audio.stop_audio_session()

    async def _send_handshake(self, transport: WebSocketTransport, session_id: str) -> None:
        config = self.config
        logger.info(f"Sending Capabilities: {config.capabilities}")
        await transport.send(codec.serialize(codec.build_capabilities(config.capabilities)))
        game_session_id = f"{config.user.name}:{session_id}:{self._session_guid()}"
        logger.info(f"Sending Session Info: {game_session_id}")
        await transport.send(codec.serialize(codec.build_session_configuration(game_session_id)))
        await transport.send(codec.serialize(codec.build_client_configuration(config.client_info)))
        logger.info(f"Sending User Config: {config.user}")
        await transport.send(codec.serialize(codec.build_user_configuration(config.user)))
        continuation = self._continuation()
        if continuation is not None:
            logger.info("Sending previous history")
            await transport.send(codec.serialize(codec.build_continuation(continuation)))
        if config.scene_full_name:
            await transport.send(codec.serialize(codec.build_load_scene(config.scene_full_name)))
        else:
            logger.warning("No scene configured; the session will not be confirmed until load_scene()")

    def _continuation(self) -> Optional[Continuation]:
        # Caller-supplied continuation wins over history fetched at runtime.
        if self.config.continuation.is_valid:
            return self.config.continuation
        if not self.session_history:
            return None
        return Continuation(
            continuation_type=ContinuationType.EXTERNALLY_SAVED_STATE,
            externally_saved_state=self.session_history,
        )

    def _session_guid(self) -> str:
        saved = self.config.continuation.externally_saved_state
        if saved and len(saved) >= 8:
            return saved[:8]
        if len(self.session_history) >= 8:
            return self.session_history[:8]
        return str(uuid.uuid4())[:8]

    async def _receive_loop(self, transport: WebSocketTransport) -> None:
        async for frame in transport.receive():
            self.dispatcher.dispatch(frame)
        if transport is not self._transport:
            return
        self._transport = None
        logger.info(f"Closed: StatusCode: {transport.close_code}, Reason: {transport.close_reason}")
        self.audio.stop_audio_session()
        if self._status == ConnectionStatus.ERROR:
            return
        self._set_status(ConnectionStatus.IDLE if transport.closed_cleanly else ConnectionStatus.LOST_CONNECT)

    def _on_session_confirmed(self, agents: list[CharacterData]) -> None:
        self.live_session_info = agents
        self.reconnect_threshold = self.config.backoff_base
        self._reconnect_countdown = 0.0
        self._set_status(ConnectionStatus.CONNECTED)

    def _on_lost_connect(self) -> None:
        self._set_status(ConnectionStatus.LOST_CONNECT)

    async def load_scene(self, scene_full_name: str = "") -> bool:
        """Load (or switch to) a scene. Confirmation arrives as a session response."""
        if scene_full_name:
            self.config.scene_full_name = scene_full_name
        if self._transport is None or not self.config.scene_full_name:
            return False
        try:
            await self._transport.send(codec.serialize(codec.build_load_scene(self.config.scene_full_name)))
        except TransportError as e:
            self._set_error(ServerError.from_message(str(e)))
            return False
        return True

    def unload_scene(self) -> None:
        self.registry.unload()
        self.audio.reset()

    # ------------------------------------------------------------------
    # Pump
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the background pump."""
        if self._pump_task is None or self._pump_task.done():
            self._pump_task = asyncio.get_running_loop().create_task(self._pump())

    async def close(self) -> None:
        if self._pump_task is not None:
            self._pump_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._pump_task
            self._pump_task = None
        await self.disconnect()
        for task in list(self._tasks):
            task.cancel()
        await self.http.close()

    async def __aenter__(self) -> "InworldClient":
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def _pump(self) -> None:
        while True:
            try:
                await self.tick()
            except Exception:
                logger.exception("Pump tick failed")
            await asyncio.sleep(self.config.tick_interval)

    async def tick(self) -> None:
        """One pump step: backoff countdown, then queue-driven send or recovery."""
        self._count_down()
        if not self.outgoing.has_pending:
            return
        if self._status == ConnectionStatus.CONNECTED:
            await self._flush()
        elif self._status == ConnectionStatus.IDLE:
            self._spawn(self.get_access_token())
        elif self._status == ConnectionStatus.INITIALIZED:
            self._spawn(self.start_session())

    async def _flush(self) -> None:
        while self.outgoing.has_pending and self._transport is not None:
            if self._status != ConnectionStatus.CONNECTED:
                return
            await self.send_packets()

    def _count_down(self) -> None:
        if self._status not in _RECOVERABLE or self._halted:
            return
        self._reconnect_countdown -= self.config.tick_interval
        if self._reconnect_countdown <= 0:
            self._reconnect_countdown = 0.0
            self._set_status(ConnectionStatus.IDLE)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # ------------------------------------------------------------------
    # Outgoing
    # ------------------------------------------------------------------

    async def send_packets(self) -> bool:
        """Send the oldest pending packet. Returns True if a frame went out."""
        transport = self._transport
        if transport is None:
            return False
        item = self.outgoing.pop()
        if item is None:
            return False
        routing = self._routing_for(item.target)
        if routing is None:
            logger.warning(f"Dropping {item!r}: no live agent for {item.target}")
            return False
        codec.stamp(item.packet, routing)
        try:
            await transport.send(codec.serialize(item.packet))
        except TransportError as e:
            # Keep the packet; it drives the reconnect once backoff expires.
            self.outgoing.requeue_front(item)
            self._set_error(ServerError.from_message(str(e)))
            await self._close_transport()
            if self._status != ConnectionStatus.ERROR:
                self._set_status(ConnectionStatus.LOST_CONNECT)
            return False
        logger.debug(f"Sent {item!r}")
        self.outgoing.mark_sent(item)
        self.on_packet_sent.fire(item.packet)
        return True

    def enqueue(self, packet: InworldPacket, target: Optional[Target] = None) -> bool:
        """Queue a caller-built packet. Defaults to the current target."""
        resolved = self._resolve_target(target)
        if resolved is None:
            return False
        self.outgoing.enqueue(OutgoingPacket(packet, resolved))
        return True

    def send_text(self, text: str, target: Optional[Target] = None) -> bool:
        if not text:
            return False
        resolved = self._address(target)
        if resolved is None:
            return False
        self.outgoing.enqueue(OutgoingPacket(codec.build_text(text), resolved))
        return True

    def send_narrated_action(self, content: str, target: Optional[Target] = None) -> bool:
        if not content:
            return False
        resolved = self._address(target)
        if resolved is None:
            return False
        self.outgoing.enqueue(OutgoingPacket(codec.build_narrated_action(content), resolved))
        return True

    def send_trigger(
        self,
        trigger_name: str,
        parameters: Optional[dict[str, str]] = None,
        target: Optional[Target] = None,
    ) -> bool:
        """Send a custom trigger. Without a target it goes to the world."""
        if not trigger_name:
            return False
        target = target if target is not None else Target.world()
        self.outgoing.enqueue(OutgoingPacket(codec.build_trigger(trigger_name, parameters), target))
        logger.info(f"Send Trigger {trigger_name}")
        return True

    def start_audio(
        self,
        target: Optional[Target] = None,
        mic_mode: MicrophoneMode = MicrophoneMode.OPEN_MIC,
        understanding_mode: UnderstandingMode = UnderstandingMode.FULL,
    ) -> bool:
        """Open an audio session. A no-op if one is already open for the same target."""
        resolved = self._resolve_target(target)
        if resolved is None:
            return False
        changed = self.audio.update_live_info(resolved)
        if not changed and self.audio.has_started:
            return False
        packet = codec.build_control(ControlAction.AUDIO_SESSION_START, mic_mode, understanding_mode)
        self.outgoing.enqueue(OutgoingPacket(packet, resolved))
        self.audio.start_audio_session(packet.packet_id.packet_id)
        return True

    def stop_audio(self) -> bool:
        if not self.audio.has_started or self.audio.current is None:
            return False
        self._enqueue_audio_end(self.audio.current, self.audio.start_packet_id)
        self.audio.stop_audio_session()
        return True

    def send_audio(self, base64_chunk: str, target: Optional[Target] = None) -> bool:
        """Send one base64 audio chunk (16kHz mono) into the open audio session."""
        if not base64_chunk:
            return False
        resolved = target if target is not None else self.audio.current
        if not self.audio.has_started or resolved != self.audio.current:
            logger.warning(f"No open audio session for {resolved}")
            return False
        self.outgoing.enqueue(OutgoingPacket(codec.build_audio_chunk(base64_chunk), resolved))
        return True

    def update_multi_targets(self, conversation_id: str, participants: list[str]) -> bool:
        return self.audio.update_multi_targets(conversation_id, participants)

    async def send_cancel_response(
        self,
        interaction_id: str,
        utterance_ids: Optional[list[str]] = None,
        target: Optional[Target] = None,
    ) -> bool:
        """Interrupt a response. Sent immediately when CONNECTED, otherwise dropped (never queued)."""
        transport = self._transport
        if self._status != ConnectionStatus.CONNECTED or transport is None:
            logger.debug(f"Not connected, dropping cancel for {interaction_id}")
            return False
        resolved = self._resolve_target(target)
        if resolved is None:
            return False
        routing = self._routing_for(resolved)
        if routing is None:
            return False
        packet = codec.stamp(codec.build_cancel_response(interaction_id, utterance_ids), routing)
        try:
            await transport.send(codec.serialize(packet))
        except TransportError as e:
            self._set_error(ServerError.from_message(str(e)))
            return False
        self.on_packet_sent.fire(packet)
        return True

    def _enqueue_audio_end(self, target: Target, start_packet_id: Optional[str] = None) -> None:
        packet = codec.build_control(ControlAction.AUDIO_SESSION_END)
        packet.packet_id.correlation_id = start_packet_id
        self.outgoing.enqueue(OutgoingPacket(packet, target))

    def _resolve_target(self, target: Optional[Target]) -> Optional[Target]:
        resolved = target if target is not None else self.audio.current
        if resolved is None or resolved.is_empty:
            logger.error("No target to send to")
            return None
        return resolved

    def _address(self, target: Optional[Target]) -> Optional[Target]:
        # Addressing a new character moves the current target (closing its audio session).
        resolved = self._resolve_target(target)
        if resolved is not None and not resolved.is_world:
            self.audio.update_live_info(resolved)
        return resolved

    def _routing_for(self, target: Target) -> Optional[Routing]:
        if target.is_world:
            return codec.world_routing()
        agent_ids = self.registry.resolve(target.characters)
        if not agent_ids:
            return None
        return Routing(source=Source.player(), targets=[Source.agent(agent_id) for agent_id in agent_ids])

    # ------------------------------------------------------------------
    # REST collaborators
    # ------------------------------------------------------------------

    def _session_full_name(self) -> str:
        workspace = self.config.workspace_full_name
        if not workspace or self.token is None:
            return ""
        return f"{workspace}/sessions/{self.token.session_id}"

    async def get_history(self) -> Optional[str]:
        """Fetch the saved session state; it is sent as continuation on the next session start."""
        session_full_name = self._session_full_name()
        if not session_full_name:
            self._set_error(ServerError.from_message("Cannot fetch history: no session"))
            return None
        try:
            result = await self.http.get(self.config.server.load_session_url(session_full_name))
        except (InworldSessionError, httpx.HTTPError) as e:
            self._set_error(ServerError.from_message(f"Error loading history for {session_full_name}: {e}"))
            return None
        response = PreviousSessionResponse.model_validate(result)
        self.session_history = response.state
        logger.info("Fetched previous session state")
        return self.session_history

    async def send_feedback(self, feedback: Feedback) -> bool:
        """POST the first feedback for an interaction, PATCH later ones."""
        if not feedback.interaction_id:
            logger.error("No interaction ID for feedback")
            return False
        session_full_name = self._session_full_name()
        if not session_full_name:
            self._set_error(ServerError.from_message("Cannot send feedback: no session"))
            return False
        callback_ref = (
            f"{session_full_name}/interactions/{feedback.interaction_id}/groups/{feedback.correlation_id}"
        )
        url = self.config.server.feedback_url(callback_ref)
        try:
            previous = self._feedbacks.get(feedback.interaction_id)
            if previous is not None:
                feedback.name = feedback.name or previous.name
                await self.http.patch(url, feedback.to_wire())
            else:
                result = await self.http.post(url, feedback.to_wire())
                if isinstance(result, dict) and result.get("name"):
                    feedback.name = result["name"]
        except (InworldSessionError, httpx.HTTPError) as e:
            self._set_error(ServerError.from_message(f"Error Posting feedbacks: {e}"))
            return False
        self._feedbacks[feedback.interaction_id] = feedback
        return True
