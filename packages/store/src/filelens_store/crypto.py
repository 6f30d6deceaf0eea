"""Key management and symmetric encryption for the history store.

Two key sources:
  - SessionKeySource: a random Fernet key generated once per login session
    and cached in memory and in a 0600 file under the user's runtime
    directory ($XDG_RUNTIME_DIR, else the temp dir). When the session ends
    the key is gone and the history becomes unreadable, which the store
    treats as a reset. A key file that is not a private regular file owned
    by the current user is replaced, never read.
  - PassphraseKeySource: a key derived from a user passphrase with SHA-256.
    Nothing is written anywhere; the same passphrase always yields the
    same key.

The auto-generated key lives within reach of anything that can read the
user's files, so the session mode is a reset-on-key-loss mechanism rather
than protection against a local process with the same access.
"""

from __future__ import annotations

import base64
import getpass
import hashlib
import logging
import os
import stat
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path

from cryptography.fernet import Fernet, InvalidToken

from filelens_core.errors import ConfigurationError

logger = logging.getLogger(__name__)


class DecryptionError(Exception):
    """Ciphertext could not be decrypted with the current key."""


def generate_key() -> bytes:
    return Fernet.generate_key()


def derive_key(passphrase: str) -> bytes:
    digest = hashlib.sha256(passphrase.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest)


def encrypt(key: bytes, plaintext: bytes) -> bytes:
    return Fernet(key).encrypt(plaintext)


def decrypt(key: bytes, token: bytes) -> bytes:
    try:
        return Fernet(key).decrypt(token)
    except (InvalidToken, ValueError, TypeError) as e:
        raise DecryptionError(f"{type(e).__name__}: {e}") from e


_O_NOFOLLOW = getattr(os, "O_NOFOLLOW", 0)
_O_NONBLOCK = getattr(os, "O_NONBLOCK", 0)


def _is_private(info: os.stat_result) -> bool:
    """A regular file owned by the current user that nobody else can read or write."""
    if not stat.S_ISREG(info.st_mode):
        return False
    if hasattr(os, "getuid"):
        return info.st_uid == os.getuid() and not info.st_mode & 0o077
    return True


def default_session_key_path() -> Path:
    runtime_dir = os.environ.get("XDG_RUNTIME_DIR") or tempfile.gettempdir()
    try:
        user = getpass.getuser()
    except Exception:
        user = "user"
    return Path(runtime_dir) / f"filelens-{user}.key"


class KeySource(ABC):
    @abstractmethod
    def get(self) -> bytes:
        """Return the current key, creating it if the source allows."""

    @abstractmethod
    def forget(self) -> None:
        """Drop any cached copy of the key."""


class SessionKeySource(KeySource):
    def __init__(self, key_path: str | Path | None = None):
        self._path = Path(key_path) if key_path else default_session_key_path()
        self._key: bytes | None = None

    @property
    def path(self) -> Path:
        return self._path

    def get(self) -> bytes:
        if self._key is None:
            self._key = self._read() or self._create()
        return self._key

    def forget(self) -> None:
        self._key = None
        self._discard()

    def _discard(self) -> None:
        try:
            self._path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not remove session key %s: %s", self._path, e)

    def _read(self) -> bytes | None:
        try:
            fd = os.open(self._path, os.O_RDONLY | _O_NOFOLLOW | _O_NONBLOCK)
        except FileNotFoundError:
            return None
        except OSError as e:
            if self._path.is_symlink():
                logger.warning("Session key %s is a symlink; replacing it.", self._path)
                self._discard()
            else:
                logger.warning("Could not read session key %s: %s", self._path, e)
            return None

        with os.fdopen(fd, "rb") as f:
            trusted = _is_private(os.fstat(f.fileno()))
            key = f.read().strip() if trusted else b""
        if not trusted:
            logger.warning("Session key %s is not a private file owned by this user; replacing it.", self._path)
            self._discard()
            return None

        try:
            Fernet(key)
        except ValueError:
            logger.warning("Session key %s is corrupt; generating a new one.", self._path)
            self._discard()
            return None
        return key

    def _create(self) -> bytes:
        key = generate_key()
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning("Could not cache session key at %s: %s", self._path, e)
            return key

        try:
            fd = os.open(self._path, os.O_WRONLY | os.O_CREAT | os.O_EXCL | _O_NOFOLLOW, 0o600)
        except FileExistsError:
            # Another filelens process of this session got there first.
            existing = self._read()
            if existing:
                return existing
            logger.warning("Could not cache session key at %s: the path is taken.", self._path)
            return key
        except OSError as e:
            # The key still works for this process; history just won't
            # survive past it.
            logger.warning("Could not cache session key at %s: %s", self._path, e)
            return key

        with os.fdopen(fd, "wb") as f:
            f.write(key)
        return key


class PassphraseKeySource(KeySource):
    def __init__(self, passphrase: str):
        if not passphrase:
            raise ConfigurationError("A passphrase is required when key_mode is 'passphrase'.")
        self._key = derive_key(passphrase)

    def get(self) -> bytes:
        return self._key

    def forget(self) -> None:
        # Derived on demand; there is no stored copy to remove.
        pass
