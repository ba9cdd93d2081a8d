"""Config loading and endpoint derivation."""

import json

from inworld_session.config import ClientConfig, ServerConfig, load_config, save_config


def test_server_urls():
    server = ServerConfig(runtime="rt.example", web="web.example")
    assert server.session_url("s1") == "wss://rt.example:443/v1/session/open?session_id=s1"
    assert server.load_session_url("workspaces/w/sessions/s1") == "https://web.example/v1/workspaces/w/sessions/s1/state"
    assert server.feedback_url("ref") == "https://web.example/v1/feedback/ref/feedbacks"


def test_workspace_full_name():
    assert ClientConfig(workspace="ws").workspace_full_name == "workspaces/ws"
    assert ClientConfig(workspace="workspaces/ws").workspace_full_name == "workspaces/ws"
    assert ClientConfig(scene_full_name="workspaces/ws2/scenes/s").workspace_full_name == "workspaces/ws2"
    assert ClientConfig().workspace_full_name == ""


def test_load_config_precedence(tmp_path, monkeypatch):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"api_key": "file-key", "api_secret": "file-secret", "workspace": "file-ws"}))
    monkeypatch.setenv("INWORLD_API_KEY", "env-key")
    monkeypatch.delenv("INWORLD_API_SECRET", raising=False)
    monkeypatch.delenv("INWORLD_SCENE", raising=False)
    monkeypatch.delenv("INWORLD_WORKSPACE", raising=False)

    config = load_config(path, workspace="arg-ws", scene_full_name=None)
    assert config.api_key == "env-key"
    assert config.api_secret == "file-secret"
    assert config.workspace == "arg-ws"


def test_load_config_missing_file(tmp_path, monkeypatch):
    for name in ("INWORLD_API_KEY", "INWORLD_API_SECRET", "INWORLD_SCENE", "INWORLD_WORKSPACE"):
        monkeypatch.delenv(name, raising=False)
    config = load_config(tmp_path / "absent.json")
    assert config.api_key == ""
    assert config.tick_interval == 0.1
    assert config.max_sent == 100


def test_save_config_roundtrip(tmp_path, monkeypatch):
    for name in ("INWORLD_API_KEY", "INWORLD_API_SECRET", "INWORLD_SCENE", "INWORLD_WORKSPACE"):
        monkeypatch.delenv(name, raising=False)
    path = tmp_path / "nested" / "config.json"
    save_config({"api_key": "k", "scene_full_name": "workspaces/w/scenes/s"}, path)
    config = load_config(path)
    assert config.api_key == "k"
    assert config.workspace_full_name == "workspaces/w"
