"""init command: interactive setup wizard.

Writes .filelens.yml with the chosen backend and history settings. API keys
and passphrases are never written; they come from the environment.
"""

from __future__ import annotations

from pathlib import Path

import click
import yaml
from rich.console import Console

from filelens_core.config import DEFAULT_CONFIG, KEY_MODES
from filelens_core.models import AiModel

console = Console()

_API_KEY_ENV = {
    AiModel.GEMINI.value: "GEMINI_API_KEY",
    AiModel.CLAUDE.value: "ANTHROPIC_API_KEY",
    AiModel.CHATGPT.value: "OPENAI_API_KEY",
}


@click.command("init")
@click.option("--force", is_flag=True, help="Overwrite an existing configuration file.")
@click.pass_context
def init_cmd(ctx, force: bool):
    """Create a .filelens.yml configuration file."""
    config_path = Path(ctx.obj.get("config_path", ".filelens.yml") if ctx.obj else ".filelens.yml")

    console.print("\n[bold cyan]filelens init[/bold cyan] setup wizard\n")

    if config_path.exists() and not force:
        if not click.confirm(f"{config_path} already exists. Overwrite?", default=False):
            console.print("[yellow]Aborted; existing configuration kept.[/yellow]")
            return

    # --- Choose backend ---
    model = click.prompt(
        "AI backend",
        type=click.Choice([m.value for m in AiModel]),
        default=DEFAULT_CONFIG["model"],
    )

    # --- Choose history store ---
    console.print("\nReview history:")
    console.print("  [bold]encrypted[/bold] — keep the last reviews on disk, encrypted (default)")
    console.print("  [bold]none[/bold]      — do not keep history")
    store = click.prompt("History store", type=click.Choice(["encrypted", "none"]), default="encrypted")

    config: dict = {"model": model, "store": store}

    if store == "encrypted":
        console.print("\nEncryption key:")
        console.print("  [bold]session[/bold]    — random key that lasts for your login session (history resets after)")
        console.print("  [bold]passphrase[/bold] — key derived from a passphrase you enter (or FILELENS_PASSPHRASE)")
        config["key_mode"] = click.prompt("Key mode", type=click.Choice(list(KEY_MODES)), default="session")
        history_path = click.prompt("History file", default=DEFAULT_CONFIG["history_path"])
        if history_path != DEFAULT_CONFIG["history_path"]:
            config["history_path"] = history_path

    config_path.write_text(yaml.dump(config, default_flow_style=False, sort_keys=False))
    console.print(f"\n[green]Wrote {config_path}[/green]")

    api_key_env = _API_KEY_ENV[model]
    console.print(f"\n[bold]Next:[/bold] export {api_key_env}=<your key> and run `filelens review <files>`.")
