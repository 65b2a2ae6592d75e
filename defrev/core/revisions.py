"""Create-or-update of DefinitionRevision records.

Only metadata is ever refreshed on an existing revision; its spec is the
immutable snapshot taken when it was created.
"""

from __future__ import annotations

import logging

from defrev.errors import NotFoundError
from defrev.models.definitions import ComponentDefinition
from defrev.models.meta import merge_override_with_dst
from defrev.models.revisions import LABEL_COMPONENT_DEFINITION_NAME, DefinitionRevision
from defrev.store import ResourceClient

logger = logging.getLogger(__name__)


class RevisionUpserter:
    """Links a revision to its definition and persists it."""

    def __init__(self, client: ResourceClient) -> None:
        self._client = client

    def upsert(
        self,
        namespace: str,
        definition: ComponentDefinition,
        revision: DefinitionRevision,
    ) -> DefinitionRevision:
        """Create ``revision``, or refresh labels/annotations/owner of the stored one.

        Labels are the definition's labels overlaid with the back-reference
        label; annotations are copied from the definition; the definition
        becomes controller owner with block-on-deletion.
        """
        owner = definition.controller_reference()

        revision.metadata.labels = merge_override_with_dst(
            definition.metadata.labels,
            {LABEL_COMPONENT_DEFINITION_NAME: definition.metadata.name},
        )
        revision.metadata.namespace = namespace
        revision.metadata.annotations = dict(definition.metadata.annotations)
        revision.metadata.owner_references = [owner]

        try:
            existing = self._client.get(DefinitionRevision, namespace, revision.metadata.name)
        except NotFoundError:
            created = self._client.create(revision)
            logger.info("Created DefinitionRevision %s", created.key)
            return created

        existing.metadata.annotations = dict(revision.metadata.annotations)
        existing.metadata.labels = dict(revision.metadata.labels)
        existing.metadata.owner_references = [owner]
        updated = self._client.update(existing)
        logger.debug("Refreshed metadata of DefinitionRevision %s", updated.key)
        return updated
