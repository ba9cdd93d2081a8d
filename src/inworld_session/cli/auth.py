"""CLI: inworld auth login|status|logout|token"""

import json
from typing import Optional

import click
from rich.console import Console

from inworld_session.auth import Auth
from inworld_session.config import load_config
from inworld_session.errors import AuthError
from inworld_session.transport.http import HttpClient

console = Console()


def _load_config() -> dict:
    from inworld_session.cli.main import _load_config
    return _load_config()


def _save_config(cfg: dict) -> None:
    from inworld_session.cli.main import _save_config
    _save_config(cfg)


def _run(coro):
    from inworld_session.cli.main import _run
    return _run(coro)


@click.group()
def auth():
    """Authentication commands."""


@auth.command("login")
@click.option("--workspace", default=None, help="Workspace id (workspaces/<id>)")
def auth_login(workspace: Optional[str]):
    """Save API credentials, verifying them against the token endpoint."""

    async def _login():
        cfg = _load_config()
        api_key = click.prompt("API key")
        api_secret = click.prompt("API secret", hide_input=True)
        ws = workspace or click.prompt("Workspace", default=cfg.get("workspace", ""), show_default=False)

        config = load_config(api_key=api_key, api_secret=api_secret, workspace=ws)
        http = HttpClient()
        try:
            with console.status("Verifying credentials..."):
                token = await Auth(http, config.server).generate_token(api_key, api_secret, config.workspace_full_name)
        except AuthError as e:
            console.print(f"[red]{e}[/red]")
            raise SystemExit(1)
        finally:
            await http.close()
        _save_config({**cfg, "api_key": api_key, "api_secret": api_secret, "workspace": ws})
        console.print(f"[green]Credentials valid[/green] (session {token.session_id})")
        console.print("[dim]Saved to ~/.inworld/config.json[/dim]")

    _run(_login())


@auth.command("status")
def auth_status():
    """Show saved credentials."""
    cfg = _load_config()
    if cfg.get("api_key"):
        console.print(f"[green]Configured[/green] key {cfg['api_key'][:6]}… workspace {cfg.get('workspace') or '-'}")
    else:
        console.print("[yellow]No credentials. Run `inworld auth login`.[/yellow]")


@auth.command("logout")
def auth_logout():
    """Clear saved credentials."""
    cfg = _load_config()
    _save_config({k: v for k, v in cfg.items() if k not in ("api_key", "api_secret", "custom_token")})
    console.print("[green]Credentials cleared.[/green]")


@auth.command("token")
def auth_token():
    """Fetch a session token and print it as JSON (usable as custom_token)."""

    async def _token():
        from inworld_session.cli.main import _get_config
        config = _get_config()
        http = HttpClient()
        try:
            token = await Auth(http, config.server).generate_token(
                config.api_key, config.api_secret, config.workspace_full_name,
            )
        except AuthError as e:
            console.print(f"[red]{e}[/red]")
            raise SystemExit(1)
        finally:
            await http.close()
        click.echo(json.dumps(token.to_wire()))

    _run(_token())
