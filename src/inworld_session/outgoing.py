"""
Outgoing packet queue.

Pending packets are sent strictly FIFO. Sent packets are kept in a bounded
history until the server ends their interaction; the bound caps memory only,
nothing is ever redelivered from it.
"""

import logging
from collections import deque
from typing import Iterator, Optional

from inworld_session.models.packet import InworldPacket
from inworld_session.models.routing import Target

logger = logging.getLogger(__name__)


class OutgoingPacket:
    __slots__ = ("packet", "target")

    def __init__(self, packet: InworldPacket, target: Target):
        self.packet = packet
        self.target = target

    @property
    def packet_id(self) -> str:
        return self.packet.packet_id.packet_id

    @property
    def interaction_id(self) -> Optional[str]:
        return self.packet.packet_id.interaction_id

    def __repr__(self) -> str:
        return f"OutgoingPacket({self.packet!r}, target={str(self.target)!r})"


class OutgoingQueue:
    def __init__(self, max_sent: int = 100):
        self.max_sent = max_sent
        self._pending: deque[OutgoingPacket] = deque()
        self._sent: deque[OutgoingPacket] = deque()

    def enqueue(self, item: OutgoingPacket) -> None:
        self._pending.append(item)

    def pop(self) -> Optional[OutgoingPacket]:
        """Oldest pending packet, or None."""
        return self._pending.popleft() if self._pending else None

    def requeue_front(self, item: OutgoingPacket) -> None:
        """Put back a packet whose send failed; it goes out first next time."""
        self._pending.appendleft(item)

    def mark_sent(self, item: OutgoingPacket) -> None:
        self._sent.append(item)
        while len(self._sent) > self.max_sent:
            evicted = self._sent.popleft()
            logger.debug(f"Sent history full, evicting {evicted.packet_id}")

    def correlate(self, packet_id: str, interaction_id: str) -> bool:
        """Tag a sent packet with the interaction id the server assigned to it."""
        for item in self._sent:
            if item.packet_id == packet_id:
                item.packet.packet_id.interaction_id = interaction_id
                return True
        return False

    def complete_interaction(self, interaction_id: str) -> int:
        """Drop every sent packet belonging to a finished interaction. Returns how many."""
        if not interaction_id:
            return 0
        kept = deque(item for item in self._sent if item.interaction_id != interaction_id)
        removed = len(self._sent) - len(kept)
        self._sent = kept
        return removed

    @property
    def pending(self) -> list[OutgoingPacket]:
        return list(self._pending)

    @property
    def sent(self) -> list[OutgoingPacket]:
        return list(self._sent)

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)

    def __iter__(self) -> Iterator[OutgoingPacket]:
        return iter(list(self._pending))

    def __len__(self) -> int:
        return len(self._pending)
