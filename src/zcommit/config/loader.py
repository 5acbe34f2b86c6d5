"""
Configuration loader for zcommit.

The tool keeps a small JSON file named ``config.json`` in the
``~/.zcommit/`` directory of the user's home. The file holds the stored
Cerebras API key and a handful of optional tuning keys for the request
pipeline. The ``CEREBRAS_API_KEY`` environment variable always takes
priority over the stored key.

If the configuration file is malformed or a known key has the wrong
type, a :class:`ConfigError` is raised. A missing file is not an error:
it simply means nothing has been stored yet.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional


logger = logging.getLogger(__name__)
# Attach a null handler to avoid "No handler" warnings when the CLI has
# not configured logging (e.g. when the module is imported by tests).
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


API_KEY_ENV_VAR = "CEREBRAS_API_KEY"
CONFIG_FILE_NAME = "config.json"

# Known keys and the types they must have when present.
_KEY_TYPES: Dict[str, tuple] = {
    "apiKey": (str,),
    "model": (str,),
    "baseUrl": (str,),
    "requestTimeout": (int, float),
    "maxTokens": (int,),
    "temperature": (int, float),
}


class ConfigError(Exception):
    """Raised when the zcommit configuration file is unreadable or invalid."""

    pass


class CredentialError(ConfigError):
    """Raised when no API key could be obtained."""

    pass


def _get_config_directory() -> Path:
    """Get the configuration directory for zcommit (``~/.zcommit``)."""
    return Path.home() / ".zcommit"


def get_config_path() -> Path:
    """Return the full path of the configuration file."""
    return _get_config_directory() / CONFIG_FILE_NAME


def load_config() -> Dict[str, Any]:
    """Load the zcommit configuration from the user's home directory.

    Returns
    -------
    Dict[str, Any]
        The stored configuration. An empty dictionary is returned when
        the file does not exist yet.

    Raises
    ------
    ConfigError
        If the file cannot be read, is not valid JSON, is not a JSON
        object, or a known key has a value of the wrong type.
    """
    config_path = get_config_path()
    if not config_path.exists():
        logger.debug("No configuration file at %s", config_path)
        return {}

    try:
        content = config_path.read_text(encoding="utf-8")
        data = json.loads(content)
    except (OSError, json.JSONDecodeError) as exc:
        logger.error("Failed to read or parse configuration file: %s", exc)
        raise ConfigError(f"Invalid JSON in {config_path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} must contain a JSON object")

    for key, types in _KEY_TYPES.items():
        if key in data and (not isinstance(data[key], types) or isinstance(data[key], bool)):
            raise ConfigError(f"'{key}' in {config_path.name} has an invalid type")

    logger.debug("Loaded configuration from: %s (keys: %s)", config_path, sorted(data))
    return data


def save_config(data: Dict[str, Any]) -> Path:
    """Write ``data`` to the configuration file with owner-only permissions.

    The containing directory is created with mode ``0700`` and the file
    with mode ``0600`` on platforms that support POSIX permissions.

    Returns
    -------
    Path
        The path of the written file.
    """
    config_dir = _get_config_directory()
    config_path = config_dir / CONFIG_FILE_NAME
    config_dir.mkdir(mode=0o700, parents=True, exist_ok=True)

    payload = json.dumps(data, indent=2) + "\n"
    fd = os.open(str(config_path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as handle:
        handle.write(payload)

    if os.name == "posix":
        # mkdir/open modes are masked by umask and ignored for existing paths
        os.chmod(config_dir, 0o700)
        os.chmod(config_path, 0o600)
    logger.debug("Saved configuration to: %s", config_path)
    return config_path


def get_api_key() -> Optional[str]:
    """Return the API key, checking the environment before the config file.

    An unreadable configuration file is treated as holding no key so
    that the environment variable or an interactive prompt can still
    supply one.
    """
    env_key = os.environ.get(API_KEY_ENV_VAR, "").strip()
    if env_key:
        return env_key
    try:
        stored = load_config().get("apiKey")
    except ConfigError as exc:
        logger.warning("Ignoring unreadable configuration: %s", exc)
        return None
    if not stored or not stored.strip():
        return None
    return stored.strip()


def get_key_source() -> Optional[str]:
    """Return ``"env"`` or ``"file"`` for the active key, or ``None``."""
    if os.environ.get(API_KEY_ENV_VAR, "").strip():
        return "env"
    try:
        if load_config().get("apiKey"):
            return "file"
    except ConfigError:
        pass
    return None


def _load_for_update() -> Dict[str, Any]:
    try:
        return load_config()
    except ConfigError as exc:
        logger.warning("Replacing unreadable configuration: %s", exc)
        return {}


def set_api_key(key: str) -> Path:
    """Store ``key`` in the configuration file, keeping other settings."""
    data = _load_for_update()
    data["apiKey"] = key
    return save_config(data)


def delete_api_key() -> bool:
    """Remove the stored key. Returns False when no key was stored."""
    data = _load_for_update()
    if "apiKey" not in data:
        return False
    del data["apiKey"]
    save_config(data)
    return True


def mask_key(key: str) -> str:
    """Mask a secret for display, keeping only its first 8 and last 4 characters."""
    if len(key) <= 12:
        return "*" * len(key)
    return f"{key[:8]}...{key[-4:]}"
