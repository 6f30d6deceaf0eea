import os
from pathlib import Path
from typing import Optional

import yaml

from filelens_core.errors import ConfigurationError

DEFAULT_CONFIG: dict = {
    "model": "gemini",
    "store": "encrypted",  # encrypted | none
    "history_path": "~/.filelens/history.enc",
    "history_size": 50,
    "key_mode": "session",  # session | passphrase
    "max_message_length": 10000,
    "planned_models": [],  # declared backends with no adapter yet (e.g. "mistral")
    "log_level": "WARNING",
}

STORE_TYPES = ("encrypted", "none")
KEY_MODES = ("session", "passphrase")


def load_config(config_path: str = ".filelens.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .filelens.yml in the current directory
      3. CLI argument overrides
    """
    config = {**DEFAULT_CONFIG, "planned_models": list(DEFAULT_CONFIG["planned_models"])}

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    # Resolve credentials from environment variables
    config["gemini_api_key"] = os.environ.get("GEMINI_API_KEY") or os.environ.get("API_KEY")
    config["anthropic_api_key"] = os.environ.get("ANTHROPIC_API_KEY")
    config["openai_api_key"] = os.environ.get("OPENAI_API_KEY")
    config["passphrase"] = os.environ.get("FILELENS_PASSPHRASE")

    validate_config(config)
    return config


def validate_config(config: dict) -> None:
    if config.get("store") not in STORE_TYPES:
        raise ConfigurationError(f"Unknown store {config.get('store')!r}. Choose one of: {', '.join(STORE_TYPES)}.")
    if config.get("key_mode") not in KEY_MODES:
        raise ConfigurationError(
            f"Unknown key_mode {config.get('key_mode')!r}. Choose one of: {', '.join(KEY_MODES)}."
        )
    size = config.get("history_size")
    if not isinstance(size, int) or isinstance(size, bool) or size <= 0:
        raise ConfigurationError(f"history_size must be a positive integer, got {size!r}.")
