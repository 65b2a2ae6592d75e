"""Revision generator — decides which DefinitionRevision covers a definition's spec.

A revision is identified by the hash of the spec it snapshots.  The
generator never writes; it returns the revision to publish and whether
publishing it is still pending.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from defrev.core.hasher import compute_revision_hash
from defrev.models.definitions import ComponentDefinition, ComponentDefinitionStatus
from defrev.models.meta import ObjectMeta
from defrev.models.revisions import (
    LABEL_COMPONENT_DEFINITION_NAME,
    DefinitionRevision,
    DefinitionRevisionSpec,
    revision_name,
)
from defrev.store import ResourceClient

logger = logging.getLogger(__name__)


@runtime_checkable
class RevisionGenerator(Protocol):
    def generate(self, definition: ComponentDefinition) -> tuple[DefinitionRevision, bool]:
        """Return ``(revision, is_new)`` for the definition's current spec."""
        ...


class DefinitionRevisionGenerator:
    """Maps a definition's spec onto its revision history.

    - The spec hash matches ``status.latest_revision`` and that record
      exists: the published revision is returned, not new.
    - Another stored revision has the same hash and spec (a rollback, or a
      pass that stopped before publishing): that record is returned as new,
      so the reconciler publishes it without creating anything.
    - Otherwise a fresh, unsaved revision numbered one past the highest
      known number is returned as new.
    """

    def __init__(self, client: ResourceClient) -> None:
        self._client = client

    def generate(self, definition: ComponentDefinition) -> tuple[DefinitionRevision, bool]:
        meta = definition.metadata
        revision_hash = compute_revision_hash(definition.spec)
        existing = self._client.list(
            DefinitionRevision,
            meta.namespace,
            labels={LABEL_COMPONENT_DEFINITION_NAME: meta.name},
        )

        latest = definition.status.latest_revision
        if latest is not None and latest.revision_hash == revision_hash:
            for revision in existing:
                if revision.metadata.name == latest.name:
                    return revision, False
            logger.warning(
                "Latest DefinitionRevision %s of %s is missing; regenerating",
                latest.name, meta.name,
            )

        current_spec = definition.spec.model_dump(mode="json")
        for revision in sorted(existing, key=lambda r: r.spec.revision, reverse=True):
            if (
                revision.spec.revision_hash == revision_hash
                and revision.spec.component_definition.spec.model_dump(mode="json") == current_spec
            ):
                logger.info(
                    "Spec of %s matches existing DefinitionRevision %s",
                    meta.name, revision.metadata.name,
                )
                return revision, True

        highest = max((r.spec.revision for r in existing), default=0)
        if latest is not None:
            highest = max(highest, latest.revision)
        next_revision = highest + 1

        snapshot = definition.model_copy(deep=True)
        snapshot.status = ComponentDefinitionStatus()
        snapshot.metadata = ObjectMeta(
            name=meta.name,
            namespace=meta.namespace,
            uid=meta.uid,
            labels=dict(meta.labels),
            annotations=dict(meta.annotations),
        )
        revision = DefinitionRevision(
            metadata=ObjectMeta(
                name=revision_name(meta.name, next_revision),
                namespace=meta.namespace,
            ),
            spec=DefinitionRevisionSpec(
                revision=next_revision,
                revision_hash=revision_hash,
                component_definition=snapshot,
            ),
        )
        return revision, True
