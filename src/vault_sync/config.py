"""Configuration entry point for the sync engine.

Combines the YAML config files, environment variables (including a
``.env`` file) and explicit overrides into one ``UnifiedConfig``.

Precedence (highest to lowest):
    explicit overrides > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    VAULT_SYNC_CONCURRENCY: Max concurrent sync operations (optional, 1-100)
    VAULT_SYNC_CONFLICT_STRATEGY: last_write_wins | merge | create_conflict_file
"""

import logging
import os
from typing import Any

from dotenv import load_dotenv

from .config_loader import load_hierarchical_config
from .config_schema import UnifiedConfig, build_config

logger = logging.getLogger(__name__)

CONFLICT_STRATEGIES = ("last_write_wins", "merge", "create_conflict_file")


def _env_sync_overrides() -> dict[str, Any]:
    """Read the ``sync`` section overrides from the environment."""
    overrides: dict[str, Any] = {}

    concurrency_raw = os.getenv("VAULT_SYNC_CONCURRENCY")
    if concurrency_raw is not None:
        try:
            concurrency = int(concurrency_raw)
        except ValueError:
            raise ValueError(
                f"Invalid VAULT_SYNC_CONCURRENCY '{concurrency_raw}': must be a number between 1 and 100"
            ) from None
        if not (1 <= concurrency <= 100):
            raise ValueError(
                f"Invalid VAULT_SYNC_CONCURRENCY '{concurrency_raw}': must be a number between 1 and 100"
            )
        overrides["concurrency"] = concurrency

    strategy = os.getenv("VAULT_SYNC_CONFLICT_STRATEGY")
    if strategy is not None:
        strategy = strategy.strip().lower()
        if strategy not in CONFLICT_STRATEGIES:
            raise ValueError(
                f"Invalid VAULT_SYNC_CONFLICT_STRATEGY '{strategy}': "
                f"must be one of {', '.join(CONFLICT_STRATEGIES)}"
            )
        overrides["conflict_strategy"] = strategy

    return overrides


def load_config(overrides: dict[str, Any] | None = None) -> UnifiedConfig:
    """Load the unified configuration with full precedence applied.

    Args:
        overrides: Values for the ``sync`` section that beat every other
            source (e.g. from command-line flags).

    Returns:
        Validated UnifiedConfig instance.

    Raises:
        ValueError: If an environment override is malformed.
        pydantic.ValidationError: If the merged config is invalid.
    """
    load_dotenv()
    raw = load_hierarchical_config()

    sync_section = dict(raw.get("sync") or {})
    sync_section.update(_env_sync_overrides())
    if overrides:
        sync_section.update(overrides)

    if sync_section:
        raw = {**raw, "sync": sync_section}

    config = build_config(raw)
    logger.debug(
        "Loaded config: profile=%s strategy=%s concurrency=%d",
        config.sync.profile_name,
        config.sync.conflict_strategy,
        config.sync.concurrency,
    )
    return config
