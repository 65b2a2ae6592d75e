"""Bounded revision history per definition.

Keeps at most ``limit`` DefinitionRevisions per definition, deleting the
oldest by revision number first.  The revision currently published in
``status.latest_revision`` is never deleted.
"""

from __future__ import annotations

import logging

from defrev.errors import GarbageCollectionError, NotFoundError
from defrev.models.definitions import ComponentDefinition
from defrev.models.revisions import LABEL_COMPONENT_DEFINITION_NAME, DefinitionRevision
from defrev.store import ResourceClient

logger = logging.getLogger(__name__)


class RevisionGarbageCollector:
    """Best-effort pruning of stale DefinitionRevisions."""

    def __init__(self, client: ResourceClient) -> None:
        self._client = client

    def collect(self, definition: ComponentDefinition, limit: int) -> list[str]:
        """Delete the oldest revisions until at most ``limit`` remain.

        ``limit <= 0`` disables collection.  Returns the names deleted.

        Raises
        ------
        GarbageCollectionError
            If listing fails or any deletion fails.  Deletions that did
            succeed are kept; the next pass retries the rest.
        """
        if limit <= 0:
            return []

        meta = definition.metadata
        try:
            revisions = self._client.list(
                DefinitionRevision,
                meta.namespace,
                labels={LABEL_COMPONENT_DEFINITION_NAME: meta.name},
            )
        except Exception as exc:  # noqa: BLE001
            raise GarbageCollectionError(
                f"cannot list DefinitionRevisions of {meta.name}: {exc}"
            ) from exc

        excess = len(revisions) - limit
        if excess <= 0:
            return []

        latest = definition.status.latest_revision
        protected = latest.name if latest is not None else None
        candidates = sorted(
            (r for r in revisions if r.metadata.name != protected),
            key=lambda r: r.spec.revision,
        )[:excess]

        deleted: list[str] = []
        failed: list[str] = []
        for revision in candidates:
            try:
                self._client.delete(revision)
            except NotFoundError:
                pass
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "Cannot delete DefinitionRevision %s: %s", revision.key, exc
                )
                failed.append(revision.metadata.name)
                continue
            deleted.append(revision.metadata.name)

        if deleted:
            logger.info(
                "Garbage collected %d DefinitionRevision(s) of %s: %s",
                len(deleted), meta.name, ", ".join(deleted),
            )
        if failed:
            raise GarbageCollectionError(
                f"failed to delete {len(failed)} DefinitionRevision(s) of "
                f"{meta.name}: {', '.join(failed)}",
                failed=failed,
            )
        return deleted
