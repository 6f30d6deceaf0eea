"""Exception hierarchy shared by the core, the store and the CLI.

The CLI maps these to click exceptions; nothing in the core prints errors
itself. Backend errors carry enough type information for a caller to tell a
retriable condition (rate limit, network) from a fatal one (bad credentials,
unknown backend).
"""

from __future__ import annotations


class FilelensError(Exception):
    """Base class for every error raised by filelens."""


# --------------------------------------------------------------------------- #
# Configuration                                                               #
# --------------------------------------------------------------------------- #


class ConfigurationError(FilelensError):
    """Invalid settings or missing credentials. Fatal; never retried."""


class UnknownBackendError(ConfigurationError):
    """The requested model identifier has no registered backend."""

    def __init__(self, model: str):
        self.model = model
        super().__init__(f"AI service for model '{model}' not found.")


# --------------------------------------------------------------------------- #
# Backend                                                                     #
# --------------------------------------------------------------------------- #


class BackendError(FilelensError):
    """A backend call failed (transport, provider error or bad output)."""

    retriable = False


class TransientBackendError(BackendError):
    """Rate limiting or a transient network failure; the user may retry."""

    retriable = True


class AuthorizationError(BackendError):
    """The provider rejected the configured credentials."""


class MalformedResponseError(BackendError):
    """The provider answered with content that does not fit the expected shape."""


class BackendNotImplementedError(FilelensError, NotImplementedError):
    """Raised by every method of a backend that is declared but not built yet."""


# --------------------------------------------------------------------------- #
# Input                                                                       #
# --------------------------------------------------------------------------- #


class InputError(FilelensError, ValueError):
    """Rejected user input. Raised before any backend call is made."""


class EmptyBatchError(InputError):
    def __init__(self):
        super().__init__("Please provide at least one file to review.")


class DuplicateFileError(InputError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Duplicate file name in review set: {name!r}")


class UnsupportedFileError(InputError):
    pass


class FileTooLargeError(InputError):
    pass


# --------------------------------------------------------------------------- #
# Orchestration                                                               #
# --------------------------------------------------------------------------- #


class ReviewInProgressError(FilelensError):
    """A batch review is already running on this orchestrator."""


class ChatError(FilelensError):
    pass


class ChatNotActiveError(ChatError):
    """No chat session is active; start one after a successful review."""


class ChatBusyError(ChatError):
    """A message is already being sent; wait for the reply."""
