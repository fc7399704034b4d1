"""Merge local, remote and previous-sync entity lists into one mapping.

Each path becomes a single ``MixedEntity`` holding up to three facets.
Assigning a facet is idempotent, so the order in which the three lists are
processed does not matter.  Timestamps arrive already normalised to integer
milliseconds (``Entity`` coerces them at construction); the reconciler only
checks that every file carries a modified time, failing the whole pass
otherwise.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from vault_sync.sync.errors import InvalidEntityError
from vault_sync.sync.models import Entity, MixedEntity

logger = logging.getLogger(__name__)

FACETS = ("local", "remote", "previous_sync")


def ensure_mtime_validity(entity: Entity) -> Entity:
    """Return *entity* unchanged, or raise if a file has no modified time.

    Raises:
        InvalidEntityError: If *entity* is a file and neither the client
            nor the server modified time is known.
    """
    if (
        not entity.is_folder
        and entity.modified_time_client is None
        and entity.modified_time_server is None
    ):
        raise InvalidEntityError(entity.key)
    return entity


def reconcile(
    local_entities: Iterable[Entity],
    remote_entities: Iterable[Entity],
    previous_sync_entities: Iterable[Entity],
) -> dict[str, MixedEntity]:
    """Build the path-keyed mapping of mixed entities.

    Args:
        local_entities: Filtered entities from the local filesystem.
        remote_entities: Filtered entities from the remote filesystem.
        previous_sync_entities: Filtered previous-sync records.

    Returns:
        Mapping of key to ``MixedEntity`` with facets filled in and no
        action yet.

    Raises:
        InvalidEntityError: If any file entity lacks a modified time.
    """
    mapping: dict[str, MixedEntity] = {}
    sources = zip(
        FACETS, (local_entities, remote_entities, previous_sync_entities)
    )
    for facet, entities in sources:
        for entity in entities:
            ensure_mtime_validity(entity)
            mixed = mapping.get(entity.key)
            if mixed is None:
                mixed = mapping[entity.key] = MixedEntity(key=entity.key)
            setattr(mixed, facet, entity)

    logger.debug("Reconciled %d paths", len(mapping))
    return mapping
