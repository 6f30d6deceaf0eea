import re

DEFAULT_MAX_LENGTH = 10000

# C0 controls and DEL, keeping tab, newline and carriage return.
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


def sanitize_input(text: str | None, max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """Strip control characters and cap the length of free-text input."""
    if not text:
        return ""
    return _CONTROL_CHARS.sub("", text)[:max_length]
