"""Conflict-safe status writes for ComponentDefinitions.

Both operations re-read the definition on every attempt and only ever
touch ``status``, so a concurrent spec edit by someone else is never
overwritten.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from defrev.core.retry import DEFAULT_BACKOFF, Backoff, retry_on_conflict
from defrev.models.definitions import ComponentDefinition, Condition
from defrev.store import ResourceClient

logger = logging.getLogger(__name__)


class StatusUpdater:
    """Read-modify-write of a definition's status with bounded retry.

    Parameters
    ----------
    client:
        Object store client.
    backoff:
        Retry schedule applied on ``ConflictError``.
    sleep:
        Sleep function used between attempts (injectable for tests).
    """

    def __init__(
        self,
        client: ResourceClient,
        backoff: Backoff = DEFAULT_BACKOFF,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._client = client
        self._backoff = backoff
        self._sleep = sleep

    def update_status(self, definition: ComponentDefinition) -> ComponentDefinition:
        """Persist ``definition.status`` as captured now.

        Every attempt re-fetches the definition and overwrites its status
        with the captured value.  Returns the stored definition.
        """
        desired = definition.status.model_copy(deep=True)
        key = definition.key

        def _attempt() -> ComponentDefinition:
            current = self._client.get(ComponentDefinition, key.namespace, key.name)
            current.status = desired.model_copy(deep=True)
            return self._client.update_status(current)

        stored = retry_on_conflict(self._backoff, _attempt, sleep=self._sleep)
        logger.debug("Updated status of ComponentDefinition %s", key)
        return stored

    def patch_condition(
        self, definition: ComponentDefinition, *conditions: Condition
    ) -> ComponentDefinition:
        """Set conditions by type on the latest stored status, leaving the rest."""
        key = definition.key

        def _attempt() -> ComponentDefinition:
            current = self._client.get(ComponentDefinition, key.namespace, key.name)
            current.status.set_conditions(*conditions)
            return self._client.update_status(current)

        return retry_on_conflict(self._backoff, _attempt, sleep=self._sleep)
