"""
Configuration models and loading.

Pydantic models for pipecrm configuration with multi-layer merging:
defaults < user < project < env vars.
"""

from .env import load_layered_env
from .loader import (
    clear_cache,
    deep_merge,
    get_project_config_path,
    get_user_config_path,
    get_xdg_config_home,
    load_config,
)
from .models import (
    CacheConfig,
    PipecrmConfig,
    RemoteConfig,
    TemplatesConfig,
    default_cache_path,
)

__all__ = [
    # Models
    "CacheConfig",
    "PipecrmConfig",
    "RemoteConfig",
    "TemplatesConfig",
    "default_cache_path",
    # Loader functions
    "clear_cache",
    "deep_merge",
    "get_project_config_path",
    "get_user_config_path",
    "get_xdg_config_home",
    "load_config",
    "load_layered_env",
]
