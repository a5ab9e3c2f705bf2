from __future__ import annotations

import pytest

from kvtable import PermanentStoreError, RetryPolicy, TransientStoreError, ValidationError, call_with_retry
from kvtable.testkit import FakeClock


def test_delay_grows_and_caps() -> None:
    policy = RetryPolicy(initial_delay_seconds=0.05, max_delay_seconds=0.3, backoff_factor=2.0)
    assert [policy.delay_for(n) for n in (1, 2, 3, 4)] == [0.05, 0.1, 0.2, 0.3]


@pytest.mark.parametrize(
    "kwargs",
    [{"max_retries": -1}, {"initial_delay_seconds": -1}, {"max_delay_seconds": -1}, {"backoff_factor": 0.5}],
)
def test_policy_rejects_bad_values(kwargs: dict[str, float]) -> None:
    with pytest.raises(ValidationError):
        RetryPolicy(**kwargs)  # type: ignore[arg-type]


def test_call_with_retry_succeeds_after_transient_errors() -> None:
    clock = FakeClock()
    attempts: list[int] = []

    def fn() -> str:
        attempts.append(1)
        if len(attempts) < 3:
            raise TransientStoreError("throttled", code="ThrottlingException")
        return "ok"

    assert call_with_retry(fn, RetryPolicy(max_retries=3), sleep=clock.sleep) == "ok"
    assert len(attempts) == 3
    assert clock.sleeps == [0.05, 0.1]


def test_call_with_retry_gives_up() -> None:
    clock = FakeClock()
    attempts: list[int] = []

    def fn() -> None:
        attempts.append(1)
        raise TransientStoreError("throttled")

    with pytest.raises(TransientStoreError):
        call_with_retry(fn, RetryPolicy(max_retries=1), sleep=clock.sleep)
    assert len(attempts) == 2


def test_call_with_retry_does_not_retry_permanent_errors() -> None:
    attempts: list[int] = []

    def fn() -> None:
        attempts.append(1)
        raise PermanentStoreError("denied")

    with pytest.raises(PermanentStoreError):
        call_with_retry(fn, RetryPolicy(), sleep=lambda _: None)
    assert len(attempts) == 1


def test_zero_delay_skips_sleep() -> None:
    clock = FakeClock()
    calls: list[int] = []

    def fn() -> int:
        calls.append(1)
        if len(calls) == 1:
            raise TransientStoreError("throttled")
        return 1

    assert call_with_retry(fn, RetryPolicy(initial_delay_seconds=0.0), sleep=clock.sleep) == 1
    assert clock.sleeps == []
