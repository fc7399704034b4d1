"""Selective-sync filters applied to entity lists before reconciliation.

Every filter classifies entities (``evaluate``) and removes the ones it
matches from a list (``apply``), unless the setting behind it allows them
(``should_allow``).  The same chain is applied to the local, remote and
previous-sync lists so an excluded path is invisible to the planner on
every side.

Usage:
    from vault_sync.filters import build_filter_chain

    chain = build_filter_chain(config)
    local_entities = chain.apply(local.walk())
"""

from __future__ import annotations

import fnmatch
import logging
from collections.abc import Iterable, Sequence

from vault_sync.config_schema import (
    SelectiveSyncConfig,
    UnifiedConfig,
    VaultConfigSyncConfig,
)
from vault_sync.sync.models import Entity

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = ("bmp", "png", "jpg", "jpeg", "gif", "svg", "webp")
AUDIO_EXTENSIONS = ("mp3", "wav", "m4a", "3gp", "flac", "ogg", "oga", "opus")
VIDEO_EXTENSIONS = ("mp4", "webm", "ogv", "mov", "mkv")
PDF_EXTENSIONS = ("pdf",)
NOTE_EXTENSIONS = ("md", "canvas", "base")


def _has_extension(key: str, extensions: Iterable[str]) -> bool:
    lowered = key.lower()
    return any(lowered.endswith(f".{ext}") for ext in extensions)


class FileFilter:
    """Base filter: drops matching entities unless the filter is disabled.

    Subclasses implement :meth:`evaluate` and usually :meth:`should_allow`.
    """

    def apply(self, entities: Sequence[Entity]) -> list[Entity]:
        if self.should_allow():
            return list(entities)
        kept = [e for e in entities if not self.evaluate(e)]
        dropped = len(entities) - len(kept)
        if dropped:
            logger.debug(
                "%s excluded %d entities", type(self).__name__, dropped
            )
        return kept

    def evaluate(self, entity: Entity) -> bool:
        """Return True if *entity* belongs to this filter's class."""
        raise NotImplementedError

    def should_allow(self) -> bool:
        """Return True if every entity passes (filter disabled)."""
        return False


# ---------------------------------------------------------------------------
# File type filters
# ---------------------------------------------------------------------------


class _ExtensionFilter(FileFilter):
    extensions: tuple[str, ...] = ()

    def __init__(self, allowed: bool = True) -> None:
        self.allowed = allowed

    def evaluate(self, entity: Entity) -> bool:
        return not entity.is_folder and _has_extension(
            entity.key, self.extensions
        )

    def should_allow(self) -> bool:
        return self.allowed


class ImageFilter(_ExtensionFilter):
    extensions = IMAGE_EXTENSIONS


class AudioFilter(_ExtensionFilter):
    extensions = AUDIO_EXTENSIONS


class VideoFilter(_ExtensionFilter):
    extensions = VIDEO_EXTENSIONS


class PdfFilter(_ExtensionFilter):
    extensions = PDF_EXTENSIONS


class OtherFilter(_ExtensionFilter):
    """Matches files that are neither media, PDF nor notes."""

    extensions = (
        IMAGE_EXTENSIONS
        + AUDIO_EXTENSIONS
        + VIDEO_EXTENSIONS
        + PDF_EXTENSIONS
        + NOTE_EXTENSIONS
    )

    def evaluate(self, entity: Entity) -> bool:
        if entity.is_folder:
            return False
        return not _has_extension(entity.key, self.extensions)


# ---------------------------------------------------------------------------
# Path filters
# ---------------------------------------------------------------------------


class ExcludedFolderFilter(FileFilter):
    """Matches excluded folders and everything below them."""

    def __init__(self, folders: Iterable[str]) -> None:
        self.folders = [f.rstrip("/") for f in folders if f.strip("/")]

    def evaluate(self, entity: Entity) -> bool:
        for folder in self.folders:
            if entity.key == folder or entity.key.startswith(f"{folder}/"):
                return True
        return False

    def should_allow(self) -> bool:
        return not self.folders


class ExcludedPathFilter(FileFilter):
    """Matches keys against glob patterns (``*.tmp``, ``drafts/**``)."""

    def __init__(self, patterns: Iterable[str]) -> None:
        self.patterns = list(patterns)

    def evaluate(self, entity: Entity) -> bool:
        key = entity.key.rstrip("/")
        return any(fnmatch.fnmatch(key, pattern) for pattern in self.patterns)

    def should_allow(self) -> bool:
        return not self.patterns


class DotfilesFilter(FileFilter):
    """Matches hidden files and folders, except the vault config folder."""

    def __init__(self, config_dir: str, allowed: bool = False) -> None:
        self.config_dir = config_dir.strip("/")
        self.allowed = allowed

    def evaluate(self, entity: Entity) -> bool:
        parts = entity.key.rstrip("/").split("/")
        for index, part in enumerate(parts):
            if not part.startswith("."):
                continue
            if index == 0 and part == self.config_dir:
                continue
            return True
        return False

    def should_allow(self) -> bool:
        return self.allowed


# ---------------------------------------------------------------------------
# Vault configuration filters
# ---------------------------------------------------------------------------

MAIN_SETTINGS_FILE = "app.json"
APPEARANCE_SETTINGS_FILE = "appearance.json"
HOTKEYS_SETTINGS_FILE = "hotkeys.json"
CORE_PLUGINS_FILE = "core-plugins.json"
COMMUNITY_PLUGINS_FILE = "community-plugins.json"

_NAMED_SETTINGS_FILES = frozenset(
    {
        MAIN_SETTINGS_FILE,
        APPEARANCE_SETTINGS_FILE,
        HOTKEYS_SETTINGS_FILE,
        CORE_PLUGINS_FILE,
        COMMUNITY_PLUGINS_FILE,
    }
)


class _VaultConfigFilter(FileFilter):
    def __init__(self, config_dir: str, allowed: bool = True) -> None:
        self.config_dir = config_dir.strip("/")
        self.allowed = allowed

    def should_allow(self) -> bool:
        return self.allowed


class _SettingsFileFilter(_VaultConfigFilter):
    filename = ""

    def evaluate(self, entity: Entity) -> bool:
        return entity.key == f"{self.config_dir}/{self.filename}"


class VaultMainSettingsFilter(_SettingsFileFilter):
    filename = MAIN_SETTINGS_FILE


class VaultAppearanceSettingsFilter(_SettingsFileFilter):
    filename = APPEARANCE_SETTINGS_FILE


class VaultHotkeysSettingsFilter(_SettingsFileFilter):
    filename = HOTKEYS_SETTINGS_FILE


class VaultActiveCorePluginsFilter(_SettingsFileFilter):
    filename = CORE_PLUGINS_FILE


class VaultActiveCommunityPluginsFilter(_SettingsFileFilter):
    filename = COMMUNITY_PLUGINS_FILE


class VaultCorePluginSettingsFilter(_VaultConfigFilter):
    """Matches the per-plugin JSON files directly inside the config folder."""

    def evaluate(self, entity: Entity) -> bool:
        directory, _, filename = entity.key.rpartition("/")
        if directory != self.config_dir:
            return False
        if filename in _NAMED_SETTINGS_FILES:
            return False
        return filename.endswith(".json")


class VaultCommunityPluginSettingsFilter(_VaultConfigFilter):
    """Matches community plugin folders, never this tool's own."""

    def __init__(
        self, config_dir: str, plugin_id: str, allowed: bool = True
    ) -> None:
        super().__init__(config_dir, allowed)
        self.plugin_id = plugin_id

    def evaluate(self, entity: Entity) -> bool:
        plugins_prefix = f"{self.config_dir}/plugins/"
        if not entity.key.startswith(plugins_prefix):
            return False
        return not entity.key.startswith(f"{plugins_prefix}{self.plugin_id}/")


class VaultThemesSettingsFilter(_VaultConfigFilter):
    def evaluate(self, entity: Entity) -> bool:
        return entity.key.startswith(
            (f"{self.config_dir}/themes/", f"{self.config_dir}/snippets/")
        )


class OwnPluginFilter(_VaultConfigFilter):
    """Always drops this tool's own plugin folder."""

    def __init__(self, config_dir: str, plugin_id: str) -> None:
        super().__init__(config_dir, allowed=False)
        self.plugin_id = plugin_id

    def evaluate(self, entity: Entity) -> bool:
        return entity.key.startswith(
            f"{self.config_dir}/plugins/{self.plugin_id}/"
        )


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------


class FilterChain(FileFilter):
    """Applies filters in order; an entity survives only if all keep it."""

    def __init__(self, filters: Iterable[FileFilter]) -> None:
        self.filters = list(filters)

    def apply(self, entities: Sequence[Entity]) -> list[Entity]:
        result = list(entities)
        for file_filter in self.filters:
            result = file_filter.apply(result)
        return result

    def evaluate(self, entity: Entity) -> bool:
        """True if any active filter would drop *entity*."""
        return any(
            not f.should_allow() and f.evaluate(entity) for f in self.filters
        )

    def should_allow(self) -> bool:
        return all(f.should_allow() for f in self.filters)


def _selective_filters(selective: SelectiveSyncConfig, config_dir: str):
    return [
        ImageFilter(selective.image_files),
        AudioFilter(selective.audio_files),
        VideoFilter(selective.video_files),
        PdfFilter(selective.pdf_files),
        OtherFilter(selective.other_files),
        ExcludedFolderFilter(selective.excluded_folders),
        ExcludedPathFilter(selective.exclude),
        DotfilesFilter(config_dir, selective.dotfiles),
    ]


def _vault_config_filters(vault: VaultConfigSyncConfig):
    config_dir = vault.config_dir
    return [
        VaultMainSettingsFilter(config_dir, vault.main),
        VaultAppearanceSettingsFilter(config_dir, vault.appearance),
        VaultHotkeysSettingsFilter(config_dir, vault.hotkeys),
        VaultActiveCorePluginsFilter(config_dir, vault.active_core_plugins),
        VaultCorePluginSettingsFilter(config_dir, vault.core_plugin_settings),
        VaultActiveCommunityPluginsFilter(
            config_dir, vault.active_community_plugins
        ),
        VaultCommunityPluginSettingsFilter(
            config_dir, vault.plugin_id, vault.community_plugin_settings
        ),
        VaultThemesSettingsFilter(config_dir, vault.themes),
        OwnPluginFilter(config_dir, vault.plugin_id),
    ]


def build_filter_chain(config: UnifiedConfig | None = None) -> FilterChain:
    """Build the standard selective-sync chain from *config*."""
    config = config or UnifiedConfig()
    return FilterChain(
        _selective_filters(config.selective_sync, config.vault_config.config_dir)
        + _vault_config_filters(config.vault_config)
    )
