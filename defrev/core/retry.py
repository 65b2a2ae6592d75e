"""Bounded retry combinator for optimistic-concurrency writes.

``retry_on_conflict`` re-runs an operation while it raises
``ConflictError``, sleeping on an exponential schedule with jitter, and
gives up after ``Backoff.steps`` attempts.  It knows nothing about the
store: the operation is expected to re-read whatever it writes.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable
from typing import TypeVar

from pydantic import BaseModel, ConfigDict
from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from defrev.errors import ConflictError, RetryExhaustedError

logger = logging.getLogger(__name__)

R = TypeVar("R")


class Backoff(BaseModel):
    """Retry schedule: ``steps`` attempts, delays ``duration * factor**n`` plus jitter.

    The defaults give 4 attempts starting at 10 ms and growing ×5.
    """

    model_config = ConfigDict(frozen=True)

    steps: int = 4
    duration: float = 0.01
    factor: float = 5.0
    jitter: float = 0.1
    cap: float | None = None


DEFAULT_BACKOFF = Backoff()


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.debug(
        "Attempt %d failed with %s; retrying",
        retry_state.attempt_number,
        exc,
    )


def on_error(
    backoff: Backoff,
    retriable: Callable[[BaseException], bool],
    fn: Callable[[], R],
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> R:
    """Run ``fn`` until it succeeds, raises a non-retriable error, or the budget runs out.

    Non-retriable errors propagate unchanged.  Exhausting the budget raises
    ``RetryExhaustedError`` chained to the last retriable error.
    """
    retrying = Retrying(
        stop=stop_after_attempt(max(backoff.steps, 1)),
        wait=wait_exponential(
            multiplier=backoff.duration,
            exp_base=backoff.factor,
            max=backoff.cap if backoff.cap is not None else math.inf,
        )
        + wait_random(0, backoff.duration * backoff.jitter),
        retry=retry_if_exception(retriable),
        before_sleep=_log_retry,
        sleep=sleep,
    )
    try:
        return retrying(fn)
    except RetryError as exc:
        last = exc.last_attempt.exception()
        raise RetryExhaustedError(
            f"gave up after {backoff.steps} attempts: {last}"
        ) from last


def retry_on_conflict(
    backoff: Backoff,
    fn: Callable[[], R],
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> R:
    """Retry ``fn`` on ``ConflictError`` only."""
    return on_error(
        backoff,
        lambda exc: isinstance(exc, ConflictError),
        fn,
        sleep=sleep,
    )
