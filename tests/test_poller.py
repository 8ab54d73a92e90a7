"""Tests for the bounded poller."""

from __future__ import annotations

import time

import pytest

from addon_harness.errors import JobFailure, PollTimeoutError
from addon_harness.poller import poll_until


class CountingPredicate:
    """Returns False ``k`` times, then True."""

    def __init__(self, k: int) -> None:
        self.k = k
        self.calls = 0

    def __call__(self) -> bool:
        self.calls += 1
        return self.calls > self.k


class TestPollUntil:
    @pytest.mark.parametrize("k", [0, 1, 3, 7])
    def test_succeeds_after_k_plus_one_evaluations(self, k: int) -> None:
        predicate = CountingPredicate(k)
        sleeps: list[float] = []

        attempts = poll_until(predicate, interval=0.5, timeout=60, sleep=sleeps.append)

        assert attempts == k + 1
        assert predicate.calls == k + 1
        assert sleeps == [0.5] * k

    def test_never_true_times_out_at_or_after_deadline(self) -> None:
        timeout = 0.2
        start = time.monotonic()

        with pytest.raises(PollTimeoutError) as exc_info:
            poll_until(lambda: False, interval=0.02, timeout=timeout, description="nothing")

        assert time.monotonic() - start >= timeout
        assert exc_info.value.timeout == timeout
        assert exc_info.value.attempts >= 2
        assert "timed out waiting for nothing" in str(exc_info.value)

    def test_timeout_is_a_job_failure(self) -> None:
        with pytest.raises(JobFailure):
            poll_until(lambda: False, interval=0.01, timeout=0.03)

    def test_predicate_error_is_not_retried(self) -> None:
        calls = []

        def broken() -> bool:
            calls.append(1)
            raise RuntimeError("cannot observe")

        with pytest.raises(RuntimeError, match="cannot observe"):
            poll_until(broken, interval=0.01, timeout=5)

        assert len(calls) == 1

    def test_error_after_false_results_propagates(self) -> None:
        results = iter([False, False])

        def flaky() -> bool:
            try:
                return next(results)
            except StopIteration:
                raise ValueError("gone") from None

        with pytest.raises(ValueError, match="gone"):
            poll_until(flaky, interval=0, timeout=5, sleep=lambda _: None)

    def test_last_wait_is_shortened_to_deadline(self) -> None:
        sleeps: list[float] = []

        def fake_sleep(seconds: float) -> None:
            sleeps.append(seconds)
            time.sleep(seconds)

        with pytest.raises(PollTimeoutError):
            poll_until(lambda: False, interval=10, timeout=0.05, sleep=fake_sleep)

        assert all(s <= 0.05 for s in sleeps)
