"""history commands: list, show, clear and chat about past reviews."""

from __future__ import annotations

import asyncio

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from filelens_cli.commands.chat import run_chat
from filelens_cli.render import render_batch
from filelens_core.errors import ConfigurationError
from filelens_store.models import history_title

console = Console()


def _require_store(ctx: click.Context):
    from filelens_store.noop import NoOpStore

    store = ctx.obj.get("store") if ctx.obj else None
    if store is None or isinstance(store, NoOpStore):
        raise click.UsageError("Review history is disabled. Set 'store: encrypted' in .filelens.yml to enable it.")
    return store


def _require_item(store, item_id: str):
    item = store.get(item_id)
    if item is None:
        raise click.UsageError(f"No review with id {item_id} in history. Run `filelens history` to list ids.")
    return item


@click.group("history", invoke_without_command=True)
@click.option("--limit", default=20, show_default=True, help="Maximum number of records to show.")
@click.pass_context
def history_cmd(ctx, limit: int):
    """Show past reviews, most recent first.

    History is encrypted on disk. If the key is lost (new login session, or a
    different passphrase) the history is reset to empty.
    """
    if ctx.invoked_subcommand is not None:
        return

    store = _require_store(ctx)
    items = store.load()
    if not items:
        console.print("[yellow]No review history found.[/yellow]")
        return

    table = Table(title="Review History", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="bold", no_wrap=True)
    table.add_column("Files", max_width=48)
    table.add_column("Findings", justify="right")
    table.add_column("Reviewed At", no_wrap=True)

    for item in items[:limit]:
        findings = sum(len(r.feedback) for r in item.review.file_reviews.values())
        table.add_row(item.id, escape(history_title(item)), str(findings), item.timestamp[:16].replace("T", " "))

    console.print(table)


@history_cmd.command("show")
@click.argument("item_id")
@click.pass_context
def show_cmd(ctx, item_id: str):
    """Print a stored review again."""
    item = _require_item(_require_store(ctx), item_id)
    console.print(f"[dim]{escape(history_title(item))} · {item.timestamp[:19].replace('T', ' ')}[/dim]")
    render_batch(console, item.files, item.review)


@history_cmd.command("clear")
@click.option("--yes", "-y", is_flag=True, help="Skip the confirmation prompt.")
@click.pass_context
def clear_cmd(ctx, yes: bool):
    """Delete all stored history and its encryption key."""
    store = _require_store(ctx)
    if not yes and not click.confirm("Delete all review history?"):
        return
    store.clear()
    console.print("[green]Review history cleared.[/green]")


@history_cmd.command("chat")
@click.argument("item_id")
@click.option("--model", default=None, help="AI backend to chat with. Overrides config file.")
@click.pass_context
def chat_cmd(ctx, item_id: str, model: str | None):
    """Reload a stored review and ask follow-up questions about it."""
    config = ctx.obj["config"]
    item = _require_item(_require_store(ctx), item_id)
    try:
        reviewer = ctx.obj["registry"].resolve(model or config["model"])
    except ConfigurationError as e:
        raise click.UsageError(str(e))
    except ImportError as e:
        raise click.ClickException(str(e))

    render_batch(console, item.files, item.review)
    asyncio.run(run_chat(console, reviewer, item.files, item.review, config["max_message_length"]))
