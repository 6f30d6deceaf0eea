"""History passphrase resolution for `key_mode: passphrase`.

Resolution order (stops at first success):
  1. FILELENS_PASSPHRASE environment variable (scripts / explicit override)
  2. Interactive hidden prompt

The passphrase is only used to derive the storage key; it is never written
anywhere.
"""

from __future__ import annotations

import logging

import click

logger = logging.getLogger(__name__)


def resolve_passphrase(config: dict) -> str:
    passphrase = config.get("passphrase")
    if passphrase:
        logger.debug("Using history passphrase from FILELENS_PASSPHRASE.")
        return passphrase
    return click.prompt("History passphrase", hide_input=True, err=True)
