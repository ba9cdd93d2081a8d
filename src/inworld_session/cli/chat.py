"""CLI: inworld chat, inworld send"""

import asyncio
import json

import click
from rich.console import Console

from inworld_session.client import InworldClient
from inworld_session.errors import SessionError
from inworld_session.models.packet import InworldPacket, PacketType
from inworld_session.models.routing import Target

console = Console()


def _get_client(scene: str) -> InworldClient:
    from inworld_session.cli.main import _get_client
    return _get_client(scene)


def _run(coro):
    from inworld_session.cli.main import _run
    return _run(coro)


def _character_target(client: InworldClient, character: str) -> Target:
    # Short names are resolved inside the configured workspace.
    if character.startswith("workspaces/"):
        return Target.character(character)
    return Target.character(f"{client.config.workspace_full_name}/characters/{character}")


def _speaker(client: InworldClient, packet: InworldPacket) -> str:
    if packet.routing is None:
        return "?"
    agent = client.get_character_by_agent_id(packet.routing.source.name)
    return agent.given_name if agent else packet.routing.source.name


async def _exchange(client: InworldClient, target: Target, message: str, on_packet, timeout: float) -> None:
    """Send one message and forward replies until the interaction ends."""
    done = asyncio.Event()

    def handle(packet: InworldPacket) -> None:
        if packet.routing is not None and packet.routing.is_from_player:
            return
        on_packet(packet)

    remove = client.on_packet_received.add(handle)
    remove_end = client.on_interaction_end.add(lambda packet: done.set())
    try:
        client.send_text(message, target)
        await client.wait_connected(timeout)
        await asyncio.wait_for(done.wait(), timeout)
    except asyncio.TimeoutError:
        raise SessionError(f"No reply within {timeout}s", code="reply_timeout")
    finally:
        remove()
        remove_end()


@click.command("chat")
@click.argument("scene")
@click.option("-c", "--character", required=True, help="Character name or full name")
@click.option("--timeout", default=30.0, show_default=True)
def chat_cmd(scene: str, character: str, timeout: float):
    """Interactive chat with a character in SCENE."""

    async def _chat():
        client = _get_client(scene)
        target = _character_target(client, character)

        def show(packet: InworldPacket) -> None:
            if packet.packet_type == PacketType.TEXT and packet.text.text:
                console.print(f"[green]{_speaker(client, packet)}:[/green] {packet.text.text}")
            elif packet.packet_type == PacketType.EMOTION:
                console.print(f"[dim][emotion: {packet.emotion.behavior}][/dim]")

        client.on_error_received.add(lambda error: console.print(f"[red]{error}[/red]"))
        await client.start()
        console.print("[cyan]Type your message (Ctrl+C to exit)[/cyan]\n")
        try:
            while True:
                msg = click.prompt("You", prompt_suffix=": ")
                if msg.lower() in ("/quit", "/exit"):
                    break
                try:
                    await _exchange(client, target, msg, show, timeout)
                except SessionError as e:
                    console.print(f"[yellow]{e}[/yellow]")
        except (KeyboardInterrupt, EOFError):
            pass
        finally:
            await client.close()

    _run(_chat())


@click.command("send")
@click.argument("scene")
@click.argument("message")
@click.option("-c", "--character", required=True, help="Character name or full name")
@click.option("--timeout", default=30.0, show_default=True)
@click.option("--json-output", "--json", is_flag=True)
def send_cmd(scene: str, message: str, character: str, timeout: float, json_output: bool):
    """Send a one-shot message to a character in SCENE."""

    async def _send():
        client = _get_client(scene)
        target = _character_target(client, character)

        def show(packet: InworldPacket) -> None:
            if json_output:
                click.echo(json.dumps(packet.to_wire()))
            elif packet.packet_type == PacketType.TEXT and packet.text.text:
                console.print(f"[green]{_speaker(client, packet)}:[/green] {packet.text.text}")

        await client.start()
        try:
            await _exchange(client, target, message, show, timeout)
        except SessionError as e:
            console.print(f"[red]{e}[/red]")
            raise SystemExit(1)
        finally:
            await client.close()

    _run(_send())
