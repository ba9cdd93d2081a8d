"""
Routing and addressing.

`Source`/`Routing` are the wire shapes. `Target` is what callers address:
brain names (character full names), resolved to agent ids at send time.
"""

from enum import Enum
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict

from inworld_session.models.wire import WireModel


class ActorType(str, Enum):
    PLAYER = "PLAYER"
    AGENT = "AGENT"
    WORLD = "WORLD"
    UNKNOWN = "UNKNOWN"


class Source(WireModel):
    type: ActorType = ActorType.UNKNOWN
    name: str = ""

    @classmethod
    def player(cls) -> "Source":
        return cls(type=ActorType.PLAYER)

    @classmethod
    def world(cls) -> "Source":
        return cls(type=ActorType.WORLD)

    @classmethod
    def agent(cls, agent_id: str) -> "Source":
        return cls(type=ActorType.AGENT, name=agent_id)


class Routing(WireModel):
    source: Source = Source()
    targets: list[Source] = []

    @property
    def is_from_world(self) -> bool:
        return self.source.type == ActorType.WORLD

    @property
    def is_from_player(self) -> bool:
        return self.source.type == ActorType.PLAYER


class Target(BaseModel):
    """
    Destination of an outgoing packet: one character, several, a conversation, or the world.

    `conversation_id` is tracked client-side only, as the identity of the
    audio target. On the wire a conversation routes exactly like `group`:
    one AGENT target per participant.
    """

    model_config = ConfigDict(frozen=True)

    characters: tuple[str, ...] = ()
    conversation_id: Optional[str] = None

    @classmethod
    def character(cls, full_name: str) -> "Target":
        return cls(characters=(full_name,))

    @classmethod
    def group(cls, full_names: Iterable[str]) -> "Target":
        # Preserve order, drop blanks and duplicates.
        names = tuple(dict.fromkeys(n for n in full_names if n))
        return cls(characters=names)

    @classmethod
    def conversation(cls, conversation_id: str, participants: Iterable[str]) -> "Target":
        names = tuple(dict.fromkeys(n for n in participants if n))
        return cls(characters=names, conversation_id=conversation_id)

    @classmethod
    def world(cls) -> "Target":
        return cls()

    @property
    def is_world(self) -> bool:
        return not self.characters and self.conversation_id is None

    @property
    def is_conversation(self) -> bool:
        return self.conversation_id is not None

    @property
    def is_empty(self) -> bool:
        """A conversation without participants addresses nobody."""
        return self.conversation_id is not None and not self.characters

    def __str__(self) -> str:
        if self.is_world:
            return "WORLD"
        if self.conversation_id:
            return f"{self.conversation_id}[{', '.join(self.characters)}]"
        return ", ".join(self.characters)
