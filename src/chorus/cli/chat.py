"""Interactive chat REPL command."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt

from chorus.agent.builder import build_orchestrator
from chorus.agent.events import ChatCreated, TextDelta
from chorus.exceptions import NotFoundError, UnauthorizedError

if TYPE_CHECKING:
    from chorus.config.schema import ChorusConfig

console = Console()
logger = logging.getLogger(__name__)


async def chat_session(config: ChorusConfig, user_id: str, chat_id: str | None = None) -> None:
    """Run a chat loop in the terminal, streaming answers as they arrive.

    Args:
        config: Chorus configuration
        user_id: User the chat belongs to
        chat_id: Existing chat to continue; a new chat is created otherwise
    """
    orchestrator = build_orchestrator(config)

    console.print(
        Panel.fit(
            f"[bold blue]chorus chat[/bold blue]\n"
            f"Model: {config.model.name}\n"
            f"Use @name to address a sub-agent, /edit and /search as hints. /exit to quit",
            border_style="blue",
        )
    )

    while True:
        try:
            prompt = Prompt.ask("\n[bold cyan]You[/bold cyan]")
        except (KeyboardInterrupt, EOFError):
            break

        if not prompt.strip():
            continue
        if prompt.strip() in ("/exit", "/quit"):
            break

        try:
            if chat_id is None:
                frames = await orchestrator.start_chat(user_id, prompt)
            else:
                frames = await orchestrator.run_turn(user_id, chat_id, prompt)
        except (NotFoundError, UnauthorizedError) as e:
            console.print(f"[red]{e}[/red]")
            return

        console.print("\n[bold green]chorus[/bold green]")
        try:
            async for frame in frames:
                if isinstance(frame, ChatCreated):
                    chat_id = frame.chat_id
                    logger.debug("Chat id %s", chat_id)
                elif isinstance(frame, TextDelta):
                    console.print(frame.text, end="", markup=False, highlight=False)
            console.print()
        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted[/yellow]")
        except Exception as e:
            logger.debug("Turn failed", exc_info=True)
            console.print(f"\n[red]Error: {e}[/red]")

    if chat_id:
        console.print(f"\n[dim]Chat id: {chat_id}[/dim]")
    console.print("[cyan]Goodbye![/cyan]")
