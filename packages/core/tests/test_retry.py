from __future__ import annotations

import pytest

from outbox_core import RetryPolicy


def test_delay_grows_exponentially_and_is_capped() -> None:
    policy = RetryPolicy(base_delay=1.0, max_delay=5.0, multiplier=2.0, jitter=False)

    assert [policy.delay_for_attempt(n) for n in range(1, 6)] == [
        1.0,
        2.0,
        4.0,
        5.0,
        5.0,
    ]
    assert policy.delay_for_attempt(0) == 0.0


def test_huge_attempt_does_not_overflow() -> None:
    policy = RetryPolicy(base_delay=1.0, max_delay=30.0, multiplier=10.0, jitter=False)

    assert policy.delay_for_attempt(10_000) == 30.0


def test_jitter_stays_within_bounds() -> None:
    policy = RetryPolicy(base_delay=2.0, max_delay=2.0, jitter=True)

    delays = [policy.delay_for_attempt(1) for _ in range(200)]

    assert all(1.0 <= d < 3.0 for d in delays)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"base_delay": -1.0},
        {"base_delay": 10.0, "max_delay": 1.0},
        {"multiplier": 0.5},
    ],
)
def test_invalid_policy_rejected(kwargs: dict[str, float]) -> None:
    with pytest.raises(ValueError):
        RetryPolicy(**kwargs)
