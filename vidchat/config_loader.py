"""TOML configuration loader.

Loads client defaults from defaults.toml and applies environment
overrides on top.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path

from pydantic import ValidationError

from vidchat.schemas.config import ClientConfig

# Default config directory inside the vidchat package
_CONFIG_DIR = Path(__file__).parent / "config"

# Environment variables that override [client] keys
_ENV_OVERRIDES: dict[str, str] = {
    "VIDCHAT_BASE_URL": "base_url",
    "VIDCHAT_TIMEOUT": "timeout",
    "VIDCHAT_ORGANIZATION_ID": "organization_id",
}


def load_client_config(config_path: Path | None = None) -> ClientConfig:
    """Load client settings from a TOML file.

    Args:
        config_path: Path to a TOML file. Defaults to vidchat/config/defaults.toml.

    Returns:
        ClientConfig with file values and environment overrides applied.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ValueError: If the [client] section is missing or invalid.
    """
    path = config_path or _CONFIG_DIR / "defaults.toml"
    if not path.exists():
        raise FileNotFoundError(f"Client config not found: {path}")

    with open(path, "rb") as f:
        raw = tomllib.load(f)

    section = raw.get("client")
    if not isinstance(section, dict):
        raise ValueError(f"No [client] section found in {path}")

    values = dict(section)
    for env_var, key in _ENV_OVERRIDES.items():
        override = os.environ.get(env_var)
        if override:
            values[key] = override

    try:
        return ClientConfig(**values)
    except ValidationError as e:
        raise ValueError(f"Invalid [client] section in {path}: {e}") from e
