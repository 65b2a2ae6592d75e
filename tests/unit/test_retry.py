"""Tests for the bounded retry combinator."""

from __future__ import annotations

import pytest

from defrev.core.retry import DEFAULT_BACKOFF, Backoff, on_error, retry_on_conflict
from defrev.errors import ConflictError, RetryExhaustedError


def _conflict() -> ConflictError:
    return ConflictError("ComponentDefinition", "default", "d1", "1", "2")


class Flaky:
    """Raises ``errors`` in order, then returns ``value``."""

    def __init__(self, errors: list[Exception], value: str = "done") -> None:
        self.errors = list(errors)
        self.value = value
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.value


class TestBackoff:
    def test_defaults(self):
        assert DEFAULT_BACKOFF.steps == 4
        assert DEFAULT_BACKOFF.duration == pytest.approx(0.01)
        assert DEFAULT_BACKOFF.factor == pytest.approx(5.0)
        assert DEFAULT_BACKOFF.jitter == pytest.approx(0.1)


class TestRetryOnConflict:
    def test_success_first_try(self):
        sleeps: list[float] = []
        fn = Flaky([])
        assert retry_on_conflict(DEFAULT_BACKOFF, fn, sleep=sleeps.append) == "done"
        assert fn.calls == 1
        assert sleeps == []

    @pytest.mark.parametrize("conflicts", [1, 2, 3])
    def test_succeeds_within_budget(self, conflicts: int):
        sleeps: list[float] = []
        fn = Flaky([_conflict() for _ in range(conflicts)])
        assert retry_on_conflict(DEFAULT_BACKOFF, fn, sleep=sleeps.append) == "done"
        assert fn.calls == conflicts + 1
        assert len(sleeps) == conflicts

    def test_exhaustion(self):
        fn = Flaky([_conflict() for _ in range(10)])
        with pytest.raises(RetryExhaustedError) as info:
            retry_on_conflict(DEFAULT_BACKOFF, fn, sleep=lambda _: None)
        assert fn.calls == DEFAULT_BACKOFF.steps
        assert isinstance(info.value.__cause__, ConflictError)

    def test_other_errors_propagate_immediately(self):
        fn = Flaky([ValueError("bad input")])
        with pytest.raises(ValueError, match="bad input"):
            retry_on_conflict(DEFAULT_BACKOFF, fn, sleep=lambda _: None)
        assert fn.calls == 1

    def test_delays_grow_by_factor(self):
        sleeps: list[float] = []
        backoff = Backoff(steps=4, duration=0.01, factor=5.0, jitter=0.0)
        fn = Flaky([_conflict() for _ in range(3)])
        retry_on_conflict(backoff, fn, sleep=sleeps.append)
        assert len(sleeps) == 3
        assert sleeps[1] == pytest.approx(sleeps[0] * 5)
        assert sleeps[2] == pytest.approx(sleeps[1] * 5)

    def test_jitter_bounded(self):
        sleeps: list[float] = []
        backoff = Backoff(steps=2, duration=0.01, factor=5.0, jitter=0.1)
        retry_on_conflict(backoff, Flaky([_conflict()]), sleep=sleeps.append)
        base = Backoff(steps=2, duration=0.01, factor=5.0, jitter=0.0)
        plain: list[float] = []
        retry_on_conflict(base, Flaky([_conflict()]), sleep=plain.append)
        assert plain[0] <= sleeps[0] <= plain[0] + 0.01 * 0.1 + 1e-9

    def test_cap(self):
        sleeps: list[float] = []
        backoff = Backoff(steps=5, duration=1.0, factor=10.0, jitter=0.0, cap=2.0)
        retry_on_conflict(backoff, Flaky([_conflict() for _ in range(4)]), sleep=sleeps.append)
        assert max(sleeps) <= 2.0


class TestOnError:
    def test_custom_predicate(self):
        fn = Flaky([KeyError("a"), KeyError("b")])
        result = on_error(
            Backoff(steps=3), lambda exc: isinstance(exc, KeyError), fn, sleep=lambda _: None
        )
        assert result == "done"

    def test_single_step_never_sleeps(self):
        sleeps: list[float] = []
        with pytest.raises(RetryExhaustedError):
            on_error(Backoff(steps=1), lambda exc: True, Flaky([RuntimeError()]), sleep=sleeps.append)
        assert sleeps == []
