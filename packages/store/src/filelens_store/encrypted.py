"""EncryptedHistoryStore: local review history, encrypted at rest.

Data format: a single file holding one Fernet token. The plaintext is a JSON
array of ReviewHistoryItem dicts, most recent first, at most `max_items` long.
The whole list is rewritten on every save.

Failure policy:
  - A failed write is logged and swallowed. The list returned by save() is
    authoritative and keeps being served by load() until a write succeeds.
  - A record that cannot be decrypted or parsed (wrong or missing key,
    corrupted ciphertext, schema mismatch) is unrecoverable: the file and the
    cached key are purged and the history starts over empty.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from filelens_core.errors import MalformedResponseError
from filelens_store.base import BaseStore
from filelens_store.crypto import DecryptionError, KeySource, decrypt, encrypt
from filelens_store.models import ReviewHistoryItem, new_history_item

if TYPE_CHECKING:
    from filelens_core.models import BatchCodeReview, CodeFile

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITEMS = 50


class EncryptedHistoryStore(BaseStore):
    def __init__(self, path: str | Path, key_source: KeySource, max_items: int = DEFAULT_MAX_ITEMS):
        if max_items <= 0:
            raise ValueError(f"max_items must be positive, got {max_items}")
        self._path = Path(path).expanduser()
        self._key_source = key_source
        self.max_items = max_items
        # Set while the latest history exists only in memory.
        self._unsaved: list[ReviewHistoryItem] | None = None

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[ReviewHistoryItem]:
        if self._unsaved is not None:
            return list(self._unsaved)
        return self._read()

    def save(self, files: list[CodeFile], review: BatchCodeReview) -> list[ReviewHistoryItem]:
        item = new_history_item(files, review)
        history = ([item] + self.load())[: self.max_items]
        if self._write(history):
            self._unsaved = None
        else:
            self._unsaved = history
        return list(history)

    def clear(self) -> None:
        self._unsaved = None
        try:
            self._path.unlink(missing_ok=True)
        except OSError as e:
            logger.error("Failed to remove review history %s: %s", self._path, e)
        self._key_source.forget()

    # ------------------------------------------------------------------ #
    # Internals                                                            #
    # ------------------------------------------------------------------ #

    def _read(self) -> list[ReviewHistoryItem]:
        try:
            token = self._path.read_bytes()
        except FileNotFoundError:
            return []
        except OSError as e:
            logger.error("Failed to read review history %s: %s", self._path, e)
            return []

        try:
            payload = json.loads(decrypt(self._key_source.get(), token).decode("utf-8"))
            if not isinstance(payload, list):
                raise MalformedResponseError("History record is not a list")
            return [ReviewHistoryItem.from_dict(d) for d in payload]
        except (DecryptionError, MalformedResponseError, ValueError, TypeError) as e:
            logger.warning("Review history is unreadable (%s: %s); resetting it.", type(e).__name__, e)
            self._purge()
            return []

    def _write(self, history: list[ReviewHistoryItem]) -> bool:
        try:
            plaintext = json.dumps([item.to_dict() for item in history]).encode("utf-8")
            token = encrypt(self._key_source.get(), plaintext)
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=".history-", suffix=".tmp")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(token)
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
            return True
        except Exception as e:
            # Never fail the review because persistence failed.
            logger.error("Failed to save review history (%s): %s", type(e).__name__, e)
            return False

    def _purge(self) -> None:
        try:
            self._path.unlink(missing_ok=True)
        except OSError as e:
            logger.error("Failed to remove unreadable history %s: %s", self._path, e)
        self._key_source.forget()
