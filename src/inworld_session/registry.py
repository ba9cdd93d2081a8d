"""
Live session registry — characters bound to the current session.

Keyed by brain name (stable full name). Wire packets carry only the
ephemeral agent id, so inbound attribution goes through `get_by_agent_id`.
"""

import logging
from typing import Iterable, Iterator, Optional

from inworld_session.models.entities import CharacterData

logger = logging.getLogger(__name__)


class LiveSessionRegistry:
    def __init__(self) -> None:
        self._characters: dict[str, CharacterData] = {}

    def register(self, agents: Iterable[CharacterData]) -> None:
        """Replace the registry with the agents confirmed by the server. Never merges."""
        self._characters.clear()
        for agent in agents:
            if not agent.agent_id or not agent.brain_name:
                continue
            self._characters[agent.brain_name] = agent
        logger.info(f"Registered {len(self._characters)} live character(s)")

    def get(self, full_name: str) -> Optional[CharacterData]:
        return self._characters.get(full_name)

    def get_by_agent_id(self, agent_id: str) -> Optional[CharacterData]:
        if not agent_id:
            return None
        return next((c for c in self._characters.values() if c.agent_id == agent_id), None)

    def agent_id(self, full_name: str) -> Optional[str]:
        character = self._characters.get(full_name)
        if character is None or not character.agent_id:
            return None
        return character.agent_id

    def resolve(self, full_names: Iterable[str]) -> list[str]:
        """Agent ids for the given names, skipping any without a live agent."""
        ids = []
        for name in full_names:
            agent_id = self.agent_id(name)
            if agent_id:
                ids.append(agent_id)
            else:
                logger.debug(f"No live agent for {name}")
        return ids

    def unload(self) -> None:
        """Mark stale: drop agent ids but keep character metadata for the next load."""
        for character in self._characters.values():
            character.agent_id = ""

    def clear(self) -> None:
        self._characters.clear()

    @property
    def is_live(self) -> bool:
        return any(c.agent_id for c in self._characters.values())

    def __contains__(self, full_name: object) -> bool:
        return full_name in self._characters

    def __iter__(self) -> Iterator[CharacterData]:
        return iter(list(self._characters.values()))

    def __len__(self) -> int:
        return len(self._characters)
