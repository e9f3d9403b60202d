"""
LAYLAA Resilience

Retry and pacing policies for ledger submissions. Pacing and retry are
policy objects passed into the orchestration code rather than sleeps inlined
into the loops, so they can be tuned (or replaced by no-op sleeps in tests)
without touching orchestration logic.

    ┌───────────────────────────────────────────────────────────┐
    │  RetryPolicy                     Pacer                    │
    │  ├─ Fixed / linear               ├─ Minimum interval      │
    │  ├─ Exponential (+ jitter)       ├─ Monotonic clock       │
    │  ├─ Max attempts                 └─ Injectable sleep      │
    │  ├─ Retryable exceptions                                  │
    │  └─ Metrics                                               │
    └───────────────────────────────────────────────────────────┘

Usage:

    retry = RetryPolicy(max_attempts=3, retryable_exceptions=(LedgerUnavailable,))
    result = retry.execute(lambda: client.get_trust_lines(address))

    pacer = Pacer(interval_seconds=1.0)
    for token in catalog:
        pacer.wait()
        submit(token)

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import functools
import random
import threading
import time
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Optional, TypeVar

T = TypeVar("T")


# ════════════════════════════════════════════════════════════════════════════
# RETRY POLICY
# ════════════════════════════════════════════════════════════════════════════


class BackoffStrategy(Enum):
    """Retry backoff strategies."""
    FIXED = auto()           # Fixed delay between retries
    EXPONENTIAL = auto()     # Exponential backoff (2^n)
    EXPONENTIAL_JITTER = auto()  # Exponential with random jitter
    LINEAR = auto()          # Linear increase


@dataclass
class RetryConfig:
    """Retry policy configuration."""
    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0
    backoff_strategy: BackoffStrategy = BackoffStrategy.EXPONENTIAL_JITTER
    jitter_factor: float = 0.5  # Random factor 0-1
    retryable_exceptions: tuple = (Exception,)
    non_retryable_exceptions: tuple = ()


@dataclass
class RetryMetrics:
    """Retry metrics."""
    total_attempts: int = 0
    successful_attempts: int = 0
    failed_attempts: int = 0
    retries_exhausted: int = 0
    total_retry_delay_seconds: float = 0.0


class RetryExhaustedError(Exception):
    """Raised when all retry attempts are exhausted."""
    def __init__(self, attempts: int, last_exception: Exception):
        self.attempts = attempts
        self.last_exception = last_exception
        super().__init__(f"Retry exhausted after {attempts} attempts: {last_exception}")


class RetryPolicy:
    """
    Retry policy with configurable backoff strategies.

    ``execute`` calls the function up to ``max_attempts`` times. Exceptions
    outside ``retryable_exceptions`` (or inside ``non_retryable_exceptions``)
    propagate immediately. When attempts run out, RetryExhaustedError wraps
    the last failure.

    ``before_retry`` runs after a failed attempt and before the delay. It may
    raise to stop retrying; the orchestrator uses it to confirm that a failed
    submission did not land before submitting again.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay_seconds: float = 1.0,
        max_delay_seconds: float = 30.0,
        backoff_strategy: BackoffStrategy = BackoffStrategy.EXPONENTIAL_JITTER,
        jitter_factor: float = 0.5,
        retryable_exceptions: tuple = (Exception,),
        non_retryable_exceptions: tuple = (),
        on_retry: Optional[Callable[[int, Exception, float], None]] = None,
        sleep: Callable[[float], None] = time.sleep,
        rng: Optional[random.Random] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.config = RetryConfig(
            max_attempts=max_attempts,
            base_delay_seconds=base_delay_seconds,
            max_delay_seconds=max_delay_seconds,
            backoff_strategy=backoff_strategy,
            jitter_factor=jitter_factor,
            retryable_exceptions=retryable_exceptions,
            non_retryable_exceptions=non_retryable_exceptions,
        )
        self._metrics = RetryMetrics()
        self._lock = threading.Lock()
        self._on_retry = on_retry
        self._sleep = sleep
        self._rng = rng or random.Random()

    @classmethod
    def no_retry(cls) -> "RetryPolicy":
        """Single attempt, no delay."""
        return cls(max_attempts=1, base_delay_seconds=0.0)

    @property
    def metrics(self) -> RetryMetrics:
        with self._lock:
            return RetryMetrics(
                total_attempts=self._metrics.total_attempts,
                successful_attempts=self._metrics.successful_attempts,
                failed_attempts=self._metrics.failed_attempts,
                retries_exhausted=self._metrics.retries_exhausted,
                total_retry_delay_seconds=self._metrics.total_retry_delay_seconds,
            )

    def calculate_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based)."""
        base = self.config.base_delay_seconds

        if self.config.backoff_strategy == BackoffStrategy.FIXED:
            delay = base
        elif self.config.backoff_strategy == BackoffStrategy.LINEAR:
            delay = base * attempt
        elif self.config.backoff_strategy == BackoffStrategy.EXPONENTIAL:
            delay = base * (2 ** (attempt - 1))
        elif self.config.backoff_strategy == BackoffStrategy.EXPONENTIAL_JITTER:
            exp_delay = base * (2 ** (attempt - 1))
            jitter = self._rng.uniform(0, self.config.jitter_factor * exp_delay)
            delay = exp_delay + jitter
        else:
            delay = base

        return min(delay, self.config.max_delay_seconds)

    def is_retryable(self, exc: Exception) -> bool:
        if isinstance(exc, self.config.non_retryable_exceptions):
            return False
        return isinstance(exc, self.config.retryable_exceptions)

    def execute(
        self,
        func: Callable[[], T],
        before_retry: Optional[Callable[[int, Exception], None]] = None,
    ) -> T:
        """Execute function with retry policy."""
        last_exception: Optional[Exception] = None

        for attempt in range(1, self.config.max_attempts + 1):
            with self._lock:
                self._metrics.total_attempts += 1

            try:
                result = func()
                with self._lock:
                    self._metrics.successful_attempts += 1
                return result
            except Exception as e:
                last_exception = e
                with self._lock:
                    self._metrics.failed_attempts += 1

                if not self.is_retryable(e):
                    raise

                if attempt < self.config.max_attempts:
                    if before_retry is not None:
                        before_retry(attempt, e)

                    delay = self.calculate_delay(attempt)
                    with self._lock:
                        self._metrics.total_retry_delay_seconds += delay

                    if self._on_retry:
                        self._on_retry(attempt, e, delay)

                    self._sleep(delay)

        with self._lock:
            self._metrics.retries_exhausted += 1

        raise RetryExhaustedError(self.config.max_attempts, last_exception)

    def __call__(self, func: Callable[..., T]) -> Callable[..., T]:
        """Decorator for retry protection."""
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> T:
            return self.execute(lambda: func(*args, **kwargs))
        return wrapper


# ════════════════════════════════════════════════════════════════════════════
# PACING
# ════════════════════════════════════════════════════════════════════════════


class Pacer:
    """
    Enforces a minimum interval between consecutive ledger submissions.

    The first call to ``wait`` never sleeps. Later calls sleep only for the
    part of the interval that has not already elapsed.
    """

    def __init__(
        self,
        interval_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        if interval_seconds < 0:
            raise ValueError("interval_seconds must be non-negative")
        self.interval_seconds = interval_seconds
        self._sleep = sleep
        self._clock = clock
        self._last: Optional[float] = None
        self.total_waited_seconds = 0.0

    def wait(self) -> float:
        """Block until the interval has passed; returns the time slept."""
        now = self._clock()
        slept = 0.0
        if self._last is not None:
            remaining = self.interval_seconds - (now - self._last)
            if remaining > 0:
                self._sleep(remaining)
                slept = remaining
                now = self._clock()
        self._last = now
        self.total_waited_seconds += slept
        return slept

    def reset(self) -> None:
        self._last = None
