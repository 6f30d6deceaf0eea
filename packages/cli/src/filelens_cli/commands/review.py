"""review command: run an AI review over local files or pasted code."""

from __future__ import annotations

import asyncio
import sys

import click
from rich.console import Console
from rich.markup import escape

from filelens_cli.commands.chat import run_chat
from filelens_cli.render import render_batch
from filelens_core.errors import ConfigurationError, FilelensError, InputError, TransientBackendError
from filelens_core.models import BatchCodeReview, CodeFile, ReviewProgress
from filelens_core.providers.base import BaseReviewer
from filelens_core.reviewer import BatchReviewer, detect_language
from filelens_core.utils.code import (
    DEFAULT_LANGUAGE,
    SUPPORTED_LANGUAGES,
    check_paste_size,
    load_code_file,
    pasted_file,
)
from filelens_core.utils.text import sanitize_input

console = Console()


def _load_files(paths: tuple[str, ...], language: str | None) -> list[CodeFile]:
    files = []
    for path in paths:
        file = load_code_file(path)
        if language:
            file = CodeFile(name=file.name, language=language, content=file.content)
        files.append(file)
    return files


def backend_error_message(error: FilelensError) -> str:
    if isinstance(error, TransientBackendError):
        return f"{error}\nRun the command again to retry."
    return str(error)


async def _review_flow(
    ctx: click.Context,
    reviewer: BaseReviewer,
    files: list[CodeFile],
    paste_content: str | None,
    language: str | None,
    chat: bool,
) -> BatchCodeReview:
    config = ctx.obj["config"]

    if paste_content is not None:
        if language is None:
            language = await detect_language(reviewer, paste_content, DEFAULT_LANGUAGE)
            console.print(f"[dim]Language: {escape(language)}[/dim]")
        files = [pasted_file(paste_content, language)]

    with console.status("Starting review...") as status:

        def on_progress(progress: ReviewProgress) -> None:
            if progress.total:
                status.update(f"[{progress.completed + 1}/{progress.total}] Reviewing: {escape(progress.current_file)}")

        batch = await BatchReviewer(on_progress=on_progress).run(files, reviewer)

    store = ctx.obj.get("store")
    if store is not None:
        store.save(files, batch)

    render_batch(console, files, batch)

    if chat:
        await run_chat(console, reviewer, files, batch, config["max_message_length"])
    return batch


@click.command("review")
@click.argument("paths", nargs=-1, type=click.Path(exists=True, dir_okay=False))
@click.option("--paste", is_flag=True, help="Read the code to review from stdin instead of files.")
@click.option(
    "--language",
    type=click.Choice(SUPPORTED_LANGUAGES),
    default=None,
    help="Language of the code. Defaults to the file extension, or auto-detection for --paste.",
)
@click.option("--model", default=None, help="AI backend (gemini, claude, chatgpt). Overrides config file.")
@click.option("--chat/--no-chat", default=False, help="Start a follow-up chat after the review.")
@click.pass_context
def review_cmd(
    ctx,
    paths: tuple[str, ...],
    paste: bool,
    language: str | None,
    model: str | None,
    chat: bool,
):
    """Review source files with an AI backend.

    Files are reviewed one at a time, in the order given. If any file fails,
    the whole review fails and nothing is saved to history.

    \b
    Required environment variables (for the selected backend):
      GEMINI_API_KEY       --model gemini (default)
      ANTHROPIC_API_KEY    --model claude
      OPENAI_API_KEY       --model chatgpt
    """
    config = ctx.obj["config"]
    registry = ctx.obj["registry"]

    if paste and paths:
        raise click.UsageError("Pass either file paths or --paste, not both.")
    if not paste and not paths:
        raise click.UsageError("Please provide at least one file to review, or use --paste.")

    try:
        reviewer = registry.resolve(model or config["model"])
    except ConfigurationError as e:
        raise click.UsageError(str(e))
    except ImportError as e:
        raise click.ClickException(str(e))

    paste_content = None
    files: list[CodeFile] = []
    try:
        if paste:
            raw = sys.stdin.read()
            check_paste_size(raw)
            paste_content = sanitize_input(raw, max_length=len(raw))
            if not paste_content.strip():
                raise click.UsageError("Please enter some code to review.")
        else:
            files = _load_files(paths, language)
    except InputError as e:
        raise click.UsageError(str(e))

    try:
        asyncio.run(_review_flow(ctx, reviewer, files, paste_content, language, chat))
    except InputError as e:
        raise click.UsageError(str(e))
    except FilelensError as e:
        raise click.ClickException(backend_error_message(e))
