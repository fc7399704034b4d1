"""Unified configuration schema for vault_sync.

Defines Pydantic models for the unified config structure with dedicated
sections for the sync engine, selective sync, vault configuration sync and
logging.

Usage:
    from vault_sync.config_schema import UnifiedConfig, build_config

    raw = load_hierarchical_config()
    unified = build_config(raw)
"""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import BaseModel, Field

from .content import DEFAULT_MERGEABLE_EXTENSIONS

logger = logging.getLogger(__name__)

ConflictStrategy = Literal["last_write_wins", "merge", "create_conflict_file"]
EditDeletePolicy = Literal["resurrect", "propagate_delete", "conflict"]


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class SyncSettings(BaseModel):
    """Settings consumed by the sync engine core."""

    profile_name: str = Field(
        default="default",
        description="Name of the vault/profile (used for the state file)",
    )
    state_dir: str = Field(
        default=".vault_sync",
        description="Directory holding previous-sync state files",
    )
    concurrency: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Maximum concurrent sync operations (1-100)",
    )
    conflict_strategy: ConflictStrategy = Field(
        default="last_write_wins",
        description="How to settle paths changed on both sides",
    )
    edit_delete_policy: EditDeletePolicy = Field(
        default="resurrect",
        description=(
            "What to do when one side edited a file the other deleted"
        ),
    )
    fail_on_operation_error: bool = Field(
        default=False,
        description="Report the run as failed if any operation failed",
    )
    mergeable_extensions: list[str] = Field(
        default_factory=lambda: list(DEFAULT_MERGEABLE_EXTENSIONS),
        description="File extensions eligible for three-way merge",
    )
    create_remote_folders: bool = Field(
        default=True,
        description="Create folder objects on the remote store",
    )

    model_config = {"frozen": True}


class SelectiveSyncConfig(BaseModel):
    """Which kinds of files take part in sync."""

    excluded_folders: list[str] = Field(default_factory=list)
    exclude: list[str] = Field(
        default_factory=list, description="Glob patterns to exclude"
    )
    image_files: bool = True
    audio_files: bool = True
    video_files: bool = True
    pdf_files: bool = True
    other_files: bool = True
    dotfiles: bool = False

    model_config = {"frozen": True}


class VaultConfigSyncConfig(BaseModel):
    """Which vault configuration files take part in sync."""

    config_dir: str = ".obsidian"
    plugin_id: str = Field(
        default="vault-sync",
        description="This tool's own plugin folder, never synced",
    )
    main: bool = True
    appearance: bool = True
    hotkeys: bool = True
    active_core_plugins: bool = True
    core_plugin_settings: bool = True
    active_community_plugins: bool = True
    community_plugin_settings: bool = True
    themes: bool = True

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Aggregates all config sections. Every section has sensible defaults,
    so ``UnifiedConfig()`` (zero-config) is always valid.
    """

    sync: SyncSettings = Field(default_factory=SyncSettings)
    selective_sync: SelectiveSyncConfig = Field(
        default_factory=SelectiveSyncConfig
    )
    vault_config: VaultConfigSyncConfig = Field(
        default_factory=VaultConfigSyncConfig
    )
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Handles missing sections gracefully: anything absent gets defaults.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)
