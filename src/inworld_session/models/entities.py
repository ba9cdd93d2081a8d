"""
Session entities — token, characters, capabilities, user profile, history, feedback.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from inworld_session.models.wire import WireModel


class Token(WireModel):
    """Session credential returned by the token endpoint (or supplied pre-fetched)."""
    token: str = ""
    type: str = "Bearer"
    session_id: str = ""
    expiration_time: Optional[datetime] = None

    @property
    def is_valid(self) -> bool:
        if not self.token or not self.session_id:
            return False
        if self.expiration_time is None:
            return True
        expires = self.expiration_time
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return expires > datetime.now(timezone.utc)

    @property
    def authorization(self) -> str:
        return f"{self.type} {self.token}"


class AccessTokenRequest(BaseModel):
    # The token endpoint expects snake_case keys.
    api_key: str
    resource_id: str = ""


class CharacterDescription(WireModel):
    given_name: str = ""
    description: str = ""
    pronoun: Optional[str] = None
    nick_names: list[str] = []
    motivation: str = ""
    personality_adjectives: list[str] = []
    life_stage: Optional[str] = None
    hobby_or_interests: list[str] = []
    character_role: str = ""
    flaws: str = ""


class CharacterAssets(WireModel):
    rpm_model_uri: Optional[str] = None
    rpm_image_uri: Optional[str] = None
    avatar_img: Optional[str] = None
    avatar_img_original: Optional[str] = None

    @property
    def thumbnail_url(self) -> Optional[str]:
        return self.avatar_img or self.avatar_img_original or self.rpm_image_uri or None


class CharacterData(WireModel):
    """A character bound to the live session. `agent_id` is ephemeral, `brain_name` is stable."""
    agent_id: str = ""
    brain_name: str = ""
    given_name: str = ""
    description: Optional[CharacterDescription] = None
    character_assets: Optional[CharacterAssets] = None
    language: Optional[str] = None

    @property
    def character_file_name(self) -> str:
        # workspaces/{ws}/characters/{name} -> {name}_{ws}
        data = self.brain_name.split("/")
        return self.brain_name if len(data) < 4 else f"{data[3]}_{data[1]}"

    def __str__(self) -> str:
        return f"{self.given_name}: {self.brain_name} ID: {self.agent_id}"


class LoadedAgents(WireModel):
    agents: list[CharacterData] = []


class Capabilities(WireModel):
    audio: bool = True
    emotions: bool = True
    interruptions: bool = True
    narrated_actions: bool = True
    regenerate_response: bool = False
    text: bool = True
    triggers: bool = True
    phoneme_info: bool = False
    relations: bool = False
    debug_info: bool = False
    multi_agent: bool = True

    def __str__(self) -> str:
        enabled = [name.upper() for name, value in self.model_dump().items() if value is True]
        return " ".join(enabled)


class PlayerProfileField(WireModel):
    field_id: str
    field_value: str


class PlayerProfile(WireModel):
    fields: list[PlayerProfileField] = []


class UserSettings(WireModel):
    view_transcript_consent: bool = True
    player_profile: PlayerProfile = PlayerProfile()


class UserRequest(WireModel):
    name: str = "Player"
    id: str = ""
    user_settings: UserSettings = UserSettings()

    def __str__(self) -> str:
        result = f"{self.name}: {self.id}"
        for f in self.user_settings.player_profile.fields:
            result += f" {f.field_id}: {f.field_value}"
        return result


class ClientInfo(WireModel):
    id: str = "python"
    version: str = ""
    description: str = ""


class ContinuationType:
    UNKNOWN = "CONTINUATION_TYPE_UNKNOWN"
    EXTERNALLY_SAVED_STATE = "CONTINUATION_TYPE_EXTERNALLY_SAVED_STATE"
    DIALOG_HISTORY = "CONTINUATION_TYPE_DIALOG_HISTORY"


class DialogHistoryItem(WireModel):
    talker: str
    phrase: str


class DialogHistory(WireModel):
    history: list[DialogHistoryItem] = []


class Continuation(WireModel):
    """Previous-session data sent right after the configuration packets."""
    continuation_type: str = ContinuationType.UNKNOWN
    externally_saved_state: Optional[str] = None
    dialog_history: Optional[DialogHistory] = None

    @property
    def is_valid(self) -> bool:
        if self.continuation_type == ContinuationType.EXTERNALLY_SAVED_STATE:
            return bool(self.externally_saved_state)
        if self.continuation_type == ContinuationType.DIALOG_HISTORY:
            return bool(self.dialog_history and self.dialog_history.history)
        return False


class PreviousSessionResponse(WireModel):
    name: str = ""
    state: str = ""
    creation_time: Optional[str] = None


class Feedback(WireModel):
    """Like/dislike on a character response, keyed by interaction and correlation id."""
    is_like: bool = True
    type: list[str] = []
    comment: str = ""
    name: Optional[str] = None
    interaction_id: str = Field(default="", exclude=True)
    correlation_id: str = Field(default="", exclude=True)
