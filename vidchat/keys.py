"""API token management for vidchat.

The chat API token lives in an environment variable (VIDCHAT_API_TOKEN by
default). Values are loaded with this priority:
  1. Environment variables (highest, already set in shell)
  2. ~/.vidchat/keys.env (saved by `vidchat setup`)
  3. .env in current directory (project-level)
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

# Directory for user-level vidchat configuration
VIDCHAT_HOME = Path.home() / ".vidchat"
KEYS_FILE = VIDCHAT_HOME / "keys.env"

DEFAULT_TOKEN_ENV = "VIDCHAT_API_TOKEN"

_HEADER = ("# vidchat API token", "# Saved by `vidchat setup`")


def read_env_file(path: Path) -> dict[str, str]:
    """Parse ``KEY=VALUE`` lines from a dotenv-style file.

    Blank lines and ``#`` comments are skipped, a leading ``export`` is
    accepted, and one pair of matching quotes around a value is removed.
    A missing or unreadable file yields an empty mapping.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError:
        return {}

    entries: dict[str, str] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key or key.startswith("#"):
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
            value = value[1:-1]
        entries[key] = value
    return entries


def load_keys_env() -> list[str]:
    """Fill unset environment variables from keys.env, then ./.env.

    Variables that already hold a value are left alone, so the shell wins
    over keys.env and keys.env wins over the project file.

    Returns:
        Names of the variables that were set.
    """
    loaded: list[str] = []
    for source in (KEYS_FILE, Path.cwd() / ".env"):
        for key, value in read_env_file(source).items():
            if os.environ.get(key):
                continue
            os.environ[key] = value
            loaded.append(key)
            logger.debug("Loaded %s from %s", key, source)
    return loaded


def save_token(token: str, env_var: str = DEFAULT_TOKEN_ENV) -> Path:
    """Save the API token to ~/.vidchat/keys.env.

    Other variables already in the file are kept.

    Returns:
        Path to the saved file.
    """
    entries = read_env_file(KEYS_FILE)
    entries[env_var] = token

    VIDCHAT_HOME.mkdir(parents=True, exist_ok=True)
    body = [*_HEADER, ""]
    body.extend(f"{key}={value}" for key, value in entries.items() if value)
    KEYS_FILE.write_text("\n".join(body) + "\n", encoding="utf-8")

    try:
        KEYS_FILE.chmod(0o600)
    except OSError:
        logger.debug("Could not restrict permissions on %s", KEYS_FILE)

    return KEYS_FILE


def clear_keys() -> Path | None:
    """Delete the saved token file.

    Returns:
        The removed path, or None when there was nothing to remove.
    """
    try:
        KEYS_FILE.unlink()
    except FileNotFoundError:
        return None
    return KEYS_FILE


def get_token(env_var: str = DEFAULT_TOKEN_ENV) -> str:
    """Return the configured token, or an empty string."""
    return os.environ.get(env_var, "")


def mask_token(token: str) -> str:
    """Mask a token for display, keeping only the last four characters."""
    if not token:
        return ""
    if len(token) <= 8:
        return "*" * len(token)
    return f"{'*' * 8}{token[-4:]}"
