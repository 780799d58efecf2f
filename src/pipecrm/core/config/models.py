"""
Configuration data models for pipecrm.

These models define the structure of .pipecrm.json and
~/.config/pipecrm/config.json files, with validation via Pydantic.
"""

import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pipecrm.core.accounts.models import (
    DEFAULT_ONBOARDING_TEMPLATE,
    DEFAULT_STAGES,
    DEFAULT_TASK_TEMPLATE,
)


def get_xdg_data_home() -> Path:
    """
    Get XDG data home directory.

    Returns:
        Path to data directory (defaults to ~/.local/share)
    """
    if xdg_home := os.environ.get("XDG_DATA_HOME"):
        return Path(xdg_home)
    return Path.home() / ".local" / "share"


def default_cache_path() -> Path:
    return get_xdg_data_home() / "pipecrm" / "state.json"


class TemplatesConfig(BaseModel):
    """
    Checklist templates seeded into every new account.
    """
    tasks: list[str] = Field(
        default_factory=lambda: list(DEFAULT_TASK_TEMPLATE),
        description="General task checklist template"
    )
    onboarding: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ONBOARDING_TEMPLATE),
        description="Onboarding checklist template"
    )

    @field_validator("tasks", "onboarding")
    @classmethod
    def strip_blank_items(cls, v: list[str]) -> list[str]:
        """Drop blank template entries."""
        return [item.strip() for item in v if item.strip()]


class CacheConfig(BaseModel):
    """
    Local cache location.
    """
    path: Optional[Path] = Field(
        default=None,
        description="Path to the local state blob (defaults to $XDG_DATA_HOME/pipecrm/state.json)"
    )

    def resolved_path(self) -> Path:
        return (self.path or default_cache_path()).expanduser()


class RemoteConfig(BaseModel):
    """
    Optional remote table.

    A missing or invalid remote configuration makes the remote adapter
    unavailable; it never stops the app from running local-only.
    """
    enabled: bool = Field(
        default=False,
        description="Mirror writes to the remote table and load from it"
    )
    url: Optional[str] = Field(
        default=None,
        description="Project base URL (https://...)"
    )
    api_key: Optional[str] = Field(
        default=None,
        description="API key for the remote table"
    )
    table: str = Field(
        default="accounts",
        min_length=1,
        description="Remote table name"
    )
    timeout: float = Field(
        default=10.0,
        gt=0.0,
        description="Per-request timeout in seconds"
    )

    def problems(self) -> list[str]:
        """List reasons this remote configuration cannot be used."""
        issues = []
        if not self.url or not self.url.strip():
            issues.append("remote.url is not set")
        elif not self.url.strip().lower().startswith(("http://", "https://")):
            issues.append(f"remote.url must start with http:// or https:// (got {self.url!r})")
        if not self.api_key or not self.api_key.strip():
            issues.append("remote.api_key is not set")
        return issues

    def is_usable(self) -> bool:
        """True when remote sync is enabled and fully configured."""
        return self.enabled and not self.problems()


class PipecrmConfig(BaseModel):
    """
    Complete pipecrm configuration.

    Example:
        >>> config = PipecrmConfig()
        >>> config.stages[0]
        'Lead'
        >>> config.remote.is_usable()
        False
    """
    stages: list[str] = Field(
        default_factory=lambda: list(DEFAULT_STAGES),
        description="Ordered pipeline stages"
    )
    templates: TemplatesConfig = Field(default_factory=TemplatesConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    remote: RemoteConfig = Field(default_factory=RemoteConfig)

    model_config = ConfigDict(
        extra="ignore",
    )

    @field_validator("stages")
    @classmethod
    def validate_stages(cls, v: list[str]) -> list[str]:
        """Stages must be non-empty and unique."""
        cleaned: list[str] = []
        for stage in v:
            name = stage.strip()
            if name and name not in cleaned:
                cleaned.append(name)
        if not cleaned:
            raise ValueError("stages must contain at least one stage name")
        return cleaned
