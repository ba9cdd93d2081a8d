"""
Audio / conversation session tracker.

Holds the currently addressed target and whether an audio session is open
against it. At most one audio session is open at a time: switching targets
closes the open session first, through the `close_session` callback the
client supplies (it enqueues AUDIO_SESSION_END for the old target,
correlated to the START packet id).
"""

import logging
from typing import Callable, Iterable, Optional

from inworld_session.models.routing import Target

logger = logging.getLogger(__name__)


class AudioSessionTracker:
    def __init__(self, close_session: Optional[Callable[[Target, Optional[str]], None]] = None) -> None:
        self._close_session = close_session
        self.current: Optional[Target] = None
        self.previous: Optional[Target] = None
        self.has_started = False
        # Packet id of the AUDIO_SESSION_START, to correlate the eventual END.
        self.start_packet_id: Optional[str] = None

    def update_live_info(self, target: Target) -> bool:
        """Adopt `target`. Returns True only if it differs from the current target and is non-empty."""
        if target.is_empty:
            logger.warning(f"Target {target} addresses nobody")
            return False
        if target == self.current:
            return False
        if self.has_started and self.current is not None:
            self._close(self.current)
        self.previous = self.current
        self.current = target
        return True

    def update_multi_targets(self, conversation_id: str, participants: Iterable[str]) -> bool:
        """Address a conversation. False if participants is empty or unchanged."""
        target = Target.conversation(conversation_id, participants)
        if not target.characters:
            return False
        return self.update_live_info(target)

    def start_audio_session(self, packet_id: str) -> None:
        self.has_started = True
        self.start_packet_id = packet_id

    def stop_audio_session(self) -> None:
        self.has_started = False
        self.start_packet_id = None

    def reset(self) -> None:
        self.current = None
        self.previous = None
        self.stop_audio_session()

    def _close(self, target: Target) -> None:
        logger.debug(f"Closing audio session for {target}")
        if self._close_session is not None:
            self._close_session(target, self.start_packet_id)
        self.stop_audio_session()
