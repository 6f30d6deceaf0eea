"""CLI entry point for filelens.

Commands:
  review   review one or more files (or pasted code) and optionally chat about it
  history  list, show, clear or chat about past reviews
  stats    aggregate feedback patterns across review history
  init     interactive setup wizard that writes .filelens.yml
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from filelens_cli.commands.history import history_cmd
from filelens_cli.commands.init import init_cmd
from filelens_cli.commands.review import review_cmd
from filelens_cli.commands.stats import stats_cmd
from filelens_core.errors import ConfigurationError

console = Console()


def _build_store(config: dict):
    """Instantiate the configured history store.

    Store selection:
      store: encrypted, key_mode: session    → EncryptedHistoryStore + SessionKeySource
      store: encrypted, key_mode: passphrase → EncryptedHistoryStore + PassphraseKeySource
      store: none                            → NoOpStore (history disabled)

    This factory lives in cli.py so neither filelens_core nor filelens_store
    know about the CLI config format.
    """
    from filelens_store.noop import NoOpStore

    if config.get("store") == "none":
        return NoOpStore()

    from filelens_store.crypto import PassphraseKeySource, SessionKeySource
    from filelens_store.encrypted import EncryptedHistoryStore

    if config.get("key_mode") == "passphrase":
        from filelens_cli.auth import resolve_passphrase

        key_source = PassphraseKeySource(resolve_passphrase(config))
    else:
        key_source = SessionKeySource(config.get("session_key_path"))

    return EncryptedHistoryStore(
        path=config["history_path"],
        key_source=key_source,
        max_items=config["history_size"],
    )


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=str(level).upper(),
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@click.group()
@click.version_option(
    version=importlib.metadata.version("filelens"),
    prog_name="filelens",
)
@click.option(
    "--config",
    "config_path",
    default=".filelens.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="FILELENS_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Log progress and backend retries.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """AI-powered code review for local files, with encrypted history and follow-up chat."""
    from filelens_core.config import load_config
    from filelens_core.registry import build_registry

    ctx.ensure_object(dict)

    try:
        config = load_config(config_path)
    except ConfigurationError as e:
        raise click.UsageError(str(e))

    _configure_logging("INFO" if verbose else config["log_level"])

    ctx.obj["config"] = config
    ctx.obj["config_path"] = config_path
    ctx.obj["registry"] = build_registry(config)

    # init writes the config; it must not prompt for a passphrase first.
    if ctx.invoked_subcommand != "init":
        try:
            store = _build_store(config)
        except ConfigurationError as e:
            raise click.UsageError(str(e))
        ctx.obj["store"] = store
        ctx.call_on_close(store.close)


main.add_command(review_cmd)
main.add_command(history_cmd)
main.add_command(stats_cmd)
main.add_command(init_cmd)
