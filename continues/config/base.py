"""
Base configuration for continues.

Environment-driven settings (CONTINUES_* variables) plus the optional
.continues.yml file that carries default forward flags.
"""

from __future__ import annotations

import os
import pathlib
from typing import Any, Literal, TypeVar

import lazy_object_proxy
import pydantic
import pydantic_settings
import yaml

from continues.exceptions import ContinuesError

T = TypeVar('T', bound='ContinuesSettings')

CONFIG_FILENAME = '.continues.yml'


class ContinuesSettings(pydantic_settings.BaseSettings):
    """Runtime configuration shared by the CLI and services."""

    model_config = pydantic_settings.SettingsConfigDict(
        env_prefix='CONTINUES_',
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=True,  # Fail fast on misconfiguration
        extra='ignore',  # .env files may hold unrelated variables
    )

    # Application metadata
    APP_NAME: str = 'continues'
    VERSION: str = '0.1.0'

    # Storage
    HOME: pathlib.Path = pathlib.Path.home() / '.continues'

    # Index cache lifetime
    INDEX_TTL_SECONDS: int = 300

    # Logging
    DEBUG: bool = False

    # Handoff behavior
    HANDOFF_MODE: Literal['inline', 'reference'] = 'inline'
    FORWARDING_COUNTDOWN: int = 0  # Seconds to pause after forwarding warnings (TTY only)

    @pydantic.field_validator('INDEX_TTL_SECONDS')
    @classmethod
    def validate_ttl(cls, v: int) -> int:
        """Validate the index TTL is positive."""
        if v <= 0:
            raise ValueError('INDEX_TTL_SECONDS must be positive')
        return v


def get_settings(settings_class: type[T] = ContinuesSettings, env_file: str | None = None) -> T:
    """
    Factory for creating settings with dynamic .env file loading.

    LOAD_ENV_FILE environment variable specifies custom .env file path.
    When unset, loads from environment variables only.

    Args:
        settings_class: Settings class to instantiate
        env_file: Optional path to .env file (overrides LOAD_ENV_FILE)

    Returns:
        Settings instance

    Raises:
        FileNotFoundError: If specified .env file doesn't exist
    """
    env_file_path = env_file or os.getenv('LOAD_ENV_FILE')

    if not env_file_path:
        return settings_class()

    resolved_path = pathlib.Path(env_file_path).resolve()
    if not resolved_path.exists():
        raise FileNotFoundError(f'Environment file not found: {resolved_path}')

    return settings_class(_env_file=resolved_path)


def lazy_settings(settings_class: type[T] = ContinuesSettings) -> T:
    """
    Lazy settings - defers instantiation until first access.

    Args:
        settings_class: Settings class to instantiate

    Returns:
        Proxy that instantiates settings on first access
    """
    return lazy_object_proxy.Proxy(lambda: get_settings(settings_class))


def find_config_file(start: pathlib.Path | None = None) -> pathlib.Path | None:
    """Find .continues.yml in the working directory, then in the home directory."""
    for directory in (start or pathlib.Path.cwd(), pathlib.Path.home()):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def load_config_file(path: pathlib.Path | None) -> dict[str, Any]:
    """
    Load a .continues.yml file.

    Args:
        path: File to read; None returns an empty config

    Returns:
        Top-level mapping from the YAML document

    Raises:
        ContinuesError: If the file is unreadable or not a mapping
    """
    if path is None:
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding='utf-8'))
    except (OSError, yaml.YAMLError) as e:
        raise ContinuesError(f'Cannot read config file {path}: {e}') from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ContinuesError(f'Config file {path} must contain a mapping')
    return data
