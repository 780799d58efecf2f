"""
Configuration loading with multi-layer merging.

Implements the configuration precedence chain:
    defaults < user config < project config < env vars
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .models import PipecrmConfig

logger = logging.getLogger(__name__)

# Global cache to avoid reloading config multiple times per session
_config_cache: PipecrmConfig | None = None


def get_xdg_config_home() -> Path:
    """
    Get XDG config home directory.

    Returns:
        Path to config directory (defaults to ~/.config)
    """
    if xdg_home := os.environ.get("XDG_CONFIG_HOME"):
        return Path(xdg_home)
    return Path.home() / ".config"


def get_user_config_path() -> Path:
    """
    Get path to user configuration file.

    Returns:
        Path to ~/.config/pipecrm/config.json (or XDG equivalent)
    """
    return get_xdg_config_home() / "pipecrm" / "config.json"


def get_project_config_path(cwd: Path | None = None) -> Path:
    """
    Get path to project configuration file.

    Args:
        cwd: Working directory to search from (defaults to current directory)

    Returns:
        Path to .pipecrm.json in the project root
    """
    if cwd is None:
        cwd = Path.cwd()
    return cwd / ".pipecrm.json"


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Values in `override` take precedence over values in `base`; nested
    dicts are merged, not replaced.

    Example:
        >>> base = {"a": 1, "b": {"x": 10, "y": 20}}
        >>> override = {"b": {"y": 30, "z": 40}, "c": 3}
        >>> deep_merge(base, override)
        {'a': 1, 'b': {'x': 10, 'y': 30, 'z': 40}, 'c': 3}
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_json_file(path: Path) -> dict[str, Any] | None:
    """
    Load a JSON file, returning None if it doesn't exist or is invalid.

    Args:
        path: Path to JSON file

    Returns:
        Parsed JSON as dict, or None if file doesn't exist or can't be parsed
    """
    if not path.exists():
        return None

    try:
        with path.open() as f:
            data = json.load(f)
            if isinstance(data, dict):
                return data
            return None
    except (json.JSONDecodeError, OSError) as e:
        # Config system should be resilient
        logger.warning("Failed to parse config at %s: %s", path, e)
        return None


def _parse_bool(value: str) -> bool:
    return value.strip().lower() not in ("false", "0", "no", "off", "")


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Env vars have the highest precedence and override all config files.

    Supported env vars:
        PIPECRM_REMOTE_ENABLED - overrides remote.enabled
        PIPECRM_REMOTE_URL - overrides remote.url
        PIPECRM_REMOTE_KEY - overrides remote.api_key
        PIPECRM_REMOTE_TABLE - overrides remote.table
        PIPECRM_REMOTE_TIMEOUT - overrides remote.timeout
        PIPECRM_CACHE_PATH - overrides cache.path

    Args:
        config_dict: Configuration dictionary to override

    Returns:
        Configuration dictionary with env var overrides applied
    """
    result = config_dict.copy()
    remote = dict(result.get("remote") or {})
    cache = dict(result.get("cache") or {})

    if (enabled := os.environ.get("PIPECRM_REMOTE_ENABLED")) is not None:
        remote["enabled"] = _parse_bool(enabled)

    if url := os.environ.get("PIPECRM_REMOTE_URL"):
        remote["url"] = url

    if key := os.environ.get("PIPECRM_REMOTE_KEY"):
        remote["api_key"] = key

    if table := os.environ.get("PIPECRM_REMOTE_TABLE"):
        remote["table"] = table

    if timeout_str := os.environ.get("PIPECRM_REMOTE_TIMEOUT"):
        try:
            timeout = float(timeout_str)
            if timeout <= 0:
                logger.warning("PIPECRM_REMOTE_TIMEOUT must be > 0, got %s, ignoring", timeout)
            else:
                remote["timeout"] = timeout
        except ValueError:
            logger.warning("Invalid PIPECRM_REMOTE_TIMEOUT value '%s', ignoring", timeout_str)

    if cache_path := os.environ.get("PIPECRM_CACHE_PATH"):
        cache["path"] = cache_path

    if remote:
        result["remote"] = remote
    if cache:
        result["cache"] = cache
    return result


def get_default_config() -> dict[str, Any]:
    """
    Get hardcoded default configuration.

    Returns:
        Dictionary with default configuration values
    """
    return PipecrmConfig().model_dump(mode="json", exclude={"cache"})


def load_config(project_dir: Path | None = None, use_cache: bool = True) -> PipecrmConfig:
    """
    Load configuration with multi-layer merging.

    Configuration precedence (highest to lowest):
        1. Environment variables (PIPECRM_*)
        2. Project config (.pipecrm.json)
        3. User config (~/.config/pipecrm/config.json)
        4. Hardcoded defaults

    A merged config that fails validation in its remote section is not
    fatal: the remote section is reset to its defaults (remote disabled)
    with a warning.

    Args:
        project_dir: Project directory to load .pipecrm.json from (defaults to cwd)
        use_cache: If True, return cached config from previous load

    Returns:
        Validated PipecrmConfig instance

    Raises:
        pydantic.ValidationError: If a non-remote section fails validation
    """
    global _config_cache

    if use_cache and _config_cache is not None:
        return _config_cache

    merged = get_default_config()

    user_config_path = get_user_config_path()
    if user_config := load_json_file(user_config_path):
        merged = deep_merge(merged, user_config)

    project_config_path = get_project_config_path(project_dir)
    if project_config := load_json_file(project_config_path):
        merged = deep_merge(merged, project_config)

    merged = apply_env_overrides(merged)

    try:
        config = PipecrmConfig(**merged)
    except ValidationError as e:
        if not all(err["loc"] and err["loc"][0] == "remote" for err in e.errors()):
            raise
        logger.warning("Invalid remote configuration, running local-only: %s", e)
        merged.pop("remote")
        config = PipecrmConfig(**merged)

    _config_cache = config

    return config


def clear_cache() -> None:
    """
    Clear the cached configuration.

    Useful for testing or when config files change during execution.
    """
    global _config_cache
    _config_cache = None
