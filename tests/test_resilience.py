"""
Tests for retry and pacing policies.
"""

import random

import pytest

from laylaa.errors import InvalidAmount, LedgerUnavailable
from laylaa.resilience import BackoffStrategy, Pacer, RetryExhaustedError, RetryPolicy


def _no_sleep(seconds):
    pass


def _down():
    raise LedgerUnavailable("submit", "down")


class TestRetryPolicy:
    """Tests for retry policy pattern."""

    def test_retry_succeeds_eventually(self):
        """Retry succeeds after transient failures."""
        attempt_count = [0]

        def flaky_function():
            attempt_count[0] += 1
            if attempt_count[0] < 3:
                raise LedgerUnavailable("submit", "transient")
            return "success"

        retry = RetryPolicy(max_attempts=5, base_delay_seconds=0.01, sleep=_no_sleep)
        assert retry.execute(flaky_function) == "success"
        assert attempt_count[0] == 3

    def test_retry_exhausted(self):
        """Retry raises after exhausting attempts."""
        def always_fails():
            raise LedgerUnavailable("submit", "down")

        retry = RetryPolicy(max_attempts=3, base_delay_seconds=0.01, sleep=_no_sleep)
        with pytest.raises(RetryExhaustedError) as exc_info:
            retry.execute(always_fails)

        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_exception, LedgerUnavailable)
        assert retry.metrics.retries_exhausted == 1
        assert retry.metrics.failed_attempts == 3

    def test_non_retryable_propagates_immediately(self):
        calls = [0]

        def rejects():
            calls[0] += 1
            raise InvalidAmount("-1")

        retry = RetryPolicy(
            max_attempts=3,
            retryable_exceptions=(LedgerUnavailable,),
            sleep=_no_sleep,
        )
        with pytest.raises(InvalidAmount):
            retry.execute(rejects)
        assert calls[0] == 1

    def test_explicit_non_retryable_wins(self):
        retry = RetryPolicy(
            max_attempts=3,
            non_retryable_exceptions=(LedgerUnavailable,),
            sleep=_no_sleep,
        )
        with pytest.raises(LedgerUnavailable):
            retry.execute(_down)

    def test_retry_decorator(self):
        """Retry works as decorator."""
        retry = RetryPolicy(max_attempts=3, base_delay_seconds=0.01, sleep=_no_sleep)
        attempt_count = [0]

        @retry
        def sometimes_fails():
            attempt_count[0] += 1
            if attempt_count[0] < 2:
                raise LedgerUnavailable("get_ledger", "first attempt fails")
            return "success"

        assert sometimes_fails() == "success"

    def test_before_retry_runs_before_each_delay(self):
        events = []

        def fails_twice():
            events.append("call")
            if events.count("call") < 3:
                raise LedgerUnavailable("submit", "lost")
            return "ok"

        retry = RetryPolicy(
            max_attempts=3,
            base_delay_seconds=1.0,
            backoff_strategy=BackoffStrategy.FIXED,
            sleep=lambda s: events.append(("sleep", s)),
        )
        retry.execute(fails_twice, before_retry=lambda n, e: events.append(("check", n)))
        assert events == [
            "call", ("check", 1), ("sleep", 1.0),
            "call", ("check", 2), ("sleep", 1.0),
            "call",
        ]

    def test_before_retry_can_stop_retrying(self):
        class Stop(Exception):
            pass

        def check(attempt, exc):
            raise Stop()

        retry = RetryPolicy(max_attempts=5, sleep=_no_sleep)
        calls = [0]

        def fails():
            calls[0] += 1
            raise LedgerUnavailable("submit", "lost")

        with pytest.raises(Stop):
            retry.execute(fails, before_retry=check)
        assert calls[0] == 1

    def test_no_retry(self):
        retry = RetryPolicy.no_retry()
        with pytest.raises(RetryExhaustedError) as exc_info:
            retry.execute(_down)
        assert exc_info.value.attempts == 1

    def test_on_retry_receives_delay(self):
        seen = []
        retry = RetryPolicy(
            max_attempts=2,
            base_delay_seconds=0.25,
            backoff_strategy=BackoffStrategy.FIXED,
            on_retry=lambda attempt, exc, delay: seen.append((attempt, delay)),
            sleep=_no_sleep,
        )
        with pytest.raises(RetryExhaustedError):
            retry.execute(_down)
        assert seen == [(1, 0.25)]

    def test_invalid_max_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)


class TestBackoff:

    @pytest.mark.parametrize("strategy,expected", [
        (BackoffStrategy.FIXED, [1.0, 1.0, 1.0]),
        (BackoffStrategy.LINEAR, [1.0, 2.0, 3.0]),
        (BackoffStrategy.EXPONENTIAL, [1.0, 2.0, 4.0]),
    ])
    def test_deterministic_strategies(self, strategy, expected):
        retry = RetryPolicy(base_delay_seconds=1.0, backoff_strategy=strategy)
        assert [retry.calculate_delay(n) for n in (1, 2, 3)] == expected

    def test_jitter_bounds(self):
        retry = RetryPolicy(
            base_delay_seconds=1.0,
            jitter_factor=0.5,
            rng=random.Random(7),
        )
        for attempt in (1, 2, 3):
            exp_delay = 2 ** (attempt - 1)
            for _ in range(50):
                delay = retry.calculate_delay(attempt)
                assert exp_delay <= delay <= exp_delay * 1.5

    def test_delay_capped(self):
        retry = RetryPolicy(
            base_delay_seconds=10.0,
            max_delay_seconds=15.0,
            backoff_strategy=BackoffStrategy.EXPONENTIAL,
        )
        assert retry.calculate_delay(5) == 15.0


class TestPacer:

    def test_first_wait_never_sleeps(self):
        sleeps = []
        pacer = Pacer(1.0, sleep=sleeps.append, clock=lambda: 100.0)
        assert pacer.wait() == 0.0
        assert sleeps == []

    def test_sleeps_only_remaining_interval(self):
        now = [100.0]
        sleeps = []

        def sleep(seconds):
            sleeps.append(seconds)
            now[0] += seconds

        pacer = Pacer(1.0, sleep=sleep, clock=lambda: now[0])
        pacer.wait()
        now[0] += 0.25
        assert pacer.wait() == pytest.approx(0.75)
        now[0] += 2.0
        assert pacer.wait() == 0.0
        assert sleeps == [pytest.approx(0.75)]
        assert pacer.total_waited_seconds == pytest.approx(0.75)

    def test_reset(self):
        sleeps = []
        pacer = Pacer(1.0, sleep=sleeps.append, clock=lambda: 0.0)
        pacer.wait()
        pacer.reset()
        pacer.wait()
        assert sleeps == []

    def test_zero_interval(self):
        sleeps = []
        pacer = Pacer(0.0, sleep=sleeps.append, clock=lambda: 0.0)
        pacer.wait()
        pacer.wait()
        assert sleeps == []

    def test_negative_interval_rejected(self):
        with pytest.raises(ValueError):
            Pacer(-1.0)
