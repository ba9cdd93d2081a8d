"""
Client configuration.

`ClientConfig` is what `InworldClient` is constructed with. `load_config()`
builds one from ~/.inworld/config.json plus INWORLD_* environment overrides;
the CLI persists credentials with `save_config()`.
"""

import json
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field

from inworld_session.models.entities import Capabilities, ClientInfo, Continuation, UserRequest

CONFIG_FILE = Path.home() / ".inworld" / "config.json"

DEFAULT_RUNTIME_HOST = "api-engine.inworld.ai"
DEFAULT_WEB_HOST = "api.inworld.ai"

ENV_OVERRIDES = {
    "INWORLD_API_KEY": "api_key",
    "INWORLD_API_SECRET": "api_secret",
    "INWORLD_SCENE": "scene_full_name",
    "INWORLD_WORKSPACE": "workspace",
}


class ServerConfig(BaseModel):
    runtime: str = DEFAULT_RUNTIME_HOST
    web: str = DEFAULT_WEB_HOST
    port: int = 443

    @property
    def token_server(self) -> str:
        return f"https://{self.web}/auth/v1/tokens/token:generate"

    def session_url(self, session_id: str) -> str:
        return f"wss://{self.runtime}:{self.port}/v1/session/open?session_id={session_id}"

    def load_session_url(self, session_full_name: str) -> str:
        return f"https://{self.web}/v1/{session_full_name}/state"

    def feedback_url(self, callback_ref: str) -> str:
        return f"https://{self.web}/v1/feedback/{callback_ref}/feedbacks"


class ClientConfig(BaseModel):
    server: ServerConfig = ServerConfig()
    api_key: str = ""
    api_secret: str = ""
    # Pre-fetched token JSON (e.g. from a web backend); skips the key/secret exchange.
    custom_token: str = ""
    scene_full_name: str = ""
    workspace: str = ""

    capabilities: Capabilities = Capabilities()
    user: UserRequest = UserRequest()
    client_info: ClientInfo = ClientInfo()
    continuation: Continuation = Continuation()

    max_sent: int = Field(default=100, ge=1)
    tick_interval: float = Field(default=0.1, gt=0)
    backoff_base: float = Field(default=1.0, gt=0)
    close_timeout: float = Field(default=1.0, ge=0)

    @property
    def workspace_full_name(self) -> str:
        """workspaces/{ws}, taken from `workspace` or from the scene path."""
        if self.workspace:
            return self.workspace if self.workspace.startswith("workspaces/") else f"workspaces/{self.workspace}"
        data = self.scene_full_name.split("/")
        return f"workspaces/{data[1]}" if len(data) == 4 else ""


def read_config_file(path: Path) -> dict[str, Any]:
    try:
        return json.loads(path.read_text())
    except (FileNotFoundError, json.JSONDecodeError):
        return {}


def load_config(path: Optional[Path] = None, **overrides: Any) -> ClientConfig:
    """File values, then environment, then explicit keyword overrides."""
    data = read_config_file(path or CONFIG_FILE)
    for env_name, key in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            data[key] = value
    data.update({k: v for k, v in overrides.items() if v is not None})
    return ClientConfig.model_validate(data)


def save_config(data: dict[str, Any], path: Optional[Path] = None) -> None:
    target = path or CONFIG_FILE
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(data, indent=2))
