"""
Configuration handling for zcommit.

Provides access to the per-user configuration file and the API key
resolution order. See :mod:`zcommit.config.loader` for implementation
details.
"""

from .loader import (  # noqa: F401
    API_KEY_ENV_VAR,
    ConfigError,
    CredentialError,
    delete_api_key,
    get_api_key,
    get_config_path,
    get_key_source,
    load_config,
    mask_key,
    save_config,
    set_api_key,
)
