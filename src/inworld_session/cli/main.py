"""
Inworld session CLI — `inworld` command.

Commands:
  inworld auth login              Save API key/secret and workspace
  inworld auth token              Fetch and print a session token
  inworld chat SCENE -c CHARACTER Interactive REPL chat
  inworld send SCENE MESSAGE      One-shot message
"""

import asyncio
import logging
from typing import Optional

try:
    import click
    from rich.console import Console
    from rich.logging import RichHandler
except ImportError:
    raise SystemExit("CLI requires extras: pip install inworld-session[cli]")

from inworld_session.client import InworldClient
from inworld_session.config import CONFIG_FILE, ClientConfig, read_config_file, load_config, save_config

console = Console()


def _load_config() -> dict:
    return read_config_file(CONFIG_FILE)


def _save_config(cfg: dict) -> None:
    save_config(cfg)


def _get_config(scene: Optional[str] = None) -> ClientConfig:
    config = load_config(scene_full_name=scene)
    if not config.custom_token and not (config.api_key and config.api_secret):
        console.print("[red]No credentials. Run `inworld auth login` or set INWORLD_API_KEY/INWORLD_API_SECRET.[/red]")
        raise SystemExit(1)
    return config


def _get_client(scene: Optional[str] = None) -> InworldClient:
    return InworldClient(_get_config(scene))


def _run(coro):
    return asyncio.run(coro)


@click.group()
@click.version_option("0.1.0")
@click.option("-v", "--verbose", is_flag=True, help="Log session traffic")
def main(verbose: bool):
    """Inworld session CLI — talk to live AI characters."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


# Register subcommands from separate modules
from inworld_session.cli.auth import auth
from inworld_session.cli.chat import chat_cmd, send_cmd

main.add_command(auth)
main.add_command(chat_cmd)
main.add_command(send_cmd)


if __name__ == "__main__":
    main()
