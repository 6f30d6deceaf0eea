"""Interactive follow-up chat shared by `review --chat` and `history chat`."""

from __future__ import annotations

import click
from rich.console import Console

from filelens_cli.render import render_reply
from filelens_core.chat import CHAT_UNAVAILABLE_MESSAGE, ChatSessionManager
from filelens_core.models import BatchCodeReview, CodeFile
from filelens_core.providers.base import BaseReviewer

_EXIT_WORDS = {"", "/exit", "/quit", "exit", "quit"}


async def run_chat(
    console: Console,
    reviewer: BaseReviewer,
    files: list[CodeFile],
    batch: BatchCodeReview,
    max_message_length: int,
) -> ChatSessionManager:
    """Open a chat grounded in `files` and `batch` and loop until the user exits.

    Input is read with a blocking prompt; there is only ever one message in
    flight, so nothing else runs on the loop meanwhile.
    """
    manager = ChatSessionManager(max_message_length=max_message_length)
    if not await manager.start(reviewer, files, batch):
        console.print(f"[yellow]{CHAT_UNAVAILABLE_MESSAGE}[/yellow]")
        return manager

    console.print("\n[bold]Ask follow-up questions about this review.[/bold] [dim]Empty line or /exit to quit.[/dim]")
    while True:
        try:
            text = click.prompt("You", default="", show_default=False)
        except click.Abort:
            break
        if text.strip().lower() in _EXIT_WORDS:
            break
        try:
            with console.status("Thinking..."):
                reply = await manager.send(text)
        except ValueError:
            continue
        render_reply(console, reply.content)
    return manager
