"""Tests for the bounded retry helper."""

from __future__ import annotations

from typing import List

import pytest

from services.retry import DEFAULT_RETRY_POLICY, RetryPolicy, with_retry


def test_delays_grow_exponentially() -> None:
    assert [DEFAULT_RETRY_POLICY.delay_for(attempt) for attempt in (1, 2, 3)] == [0.2, 0.4, 0.8]


def test_returns_first_success(_no_retry_sleep: List[float]) -> None:
    attempts: List[int] = []

    def flaky() -> str:
        attempts.append(1)
        if len(attempts) < 3:
            raise ConnectionError("reset")
        return "done"

    assert with_retry(flaky, label="flaky") == "done"
    assert len(attempts) == 3
    assert _no_retry_sleep == [0.2, 0.4]


def test_reraises_last_error(_no_retry_sleep: List[float]) -> None:
    calls: List[int] = []

    def always_fails() -> None:
        calls.append(1)
        raise ValueError(f"attempt {len(calls)}")

    with pytest.raises(ValueError, match="attempt 3"):
        with_retry(always_fails)
    assert len(calls) == 3


def test_non_retryable_error_propagates_immediately(_no_retry_sleep: List[float]) -> None:
    policy = RetryPolicy(retry_on=(ConnectionError,))
    calls: List[int] = []

    def broken() -> None:
        calls.append(1)
        raise KeyError("config")

    with pytest.raises(KeyError):
        with_retry(broken, policy)
    assert len(calls) == 1
    assert _no_retry_sleep == []
