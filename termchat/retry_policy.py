"""Retry-with-exponential-backoff for every outbound round-trip.

A ``RetryableOperation`` pairs an idempotent callable with a classifier that
decides whether a failure is worth another attempt. ``RetryPolicy`` runs it
up to ``max_attempts`` times, waiting ``base_delay * 2**attempt`` seconds
between attempts. Waiting goes through the session cancellation event so a
shutdown interrupts a pending backoff.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

import requests

from termchat.config import (
    RETRY_BASE_DELAY,
    RETRY_MAX_ATTEMPTS,
    RETRY_MAX_ELAPSED,
    RETRYABLE_STATUS_CODES,
)
from termchat.errors import APIError, MaxRetriesExceeded, OperationCancelled, error_detail
from termchat.utils.logging_utils import ChatLogger

T = TypeVar("T")

Classifier = Callable[[BaseException], bool]


# ---------------------------------------------------------------------------
# Classifiers
# ---------------------------------------------------------------------------

def is_retryable_api_error(exc: BaseException) -> bool:
    """Retry server-side failures, throttling and transport hiccups."""
    if isinstance(exc, APIError):
        return exc.status_code in RETRYABLE_STATUS_CODES or exc.is_server_error
    return isinstance(exc, (requests.ConnectionError, requests.Timeout))


def is_retryable_http_error(exc: BaseException) -> bool:
    """Classifier for plain HTTP+JSON endpoints such as release metadata."""
    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        status = exc.response.status_code
        return status in RETRYABLE_STATUS_CODES or 500 <= status < 600
    return is_retryable_api_error(exc)


def never_retry(exc: BaseException) -> bool:
    return False


# ---------------------------------------------------------------------------
# Operation + policy
# ---------------------------------------------------------------------------

@dataclass
class RetryableOperation(Generic[T]):
    func: Callable[[], T]
    classify: Classifier = is_retryable_api_error
    label: str = "operation"


class RetryPolicy:
    """Execute retryable operations with exponential backoff."""

    def __init__(
        self,
        *,
        max_attempts: int = RETRY_MAX_ATTEMPTS,
        base_delay: float = RETRY_BASE_DELAY,
        max_elapsed: float | None = RETRY_MAX_ELAPSED,
        cancel_event: threading.Event | None = None,
        sleep: Callable[[float], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
        logger: ChatLogger | None = None,
    ) -> None:
        self.max_attempts = max(1, int(max_attempts))
        self.base_delay = max(0.0, float(base_delay))
        self.max_elapsed = float(max_elapsed) if max_elapsed else None
        self.cancel_event = cancel_event if cancel_event is not None else threading.Event()
        self._sleep = sleep
        self._clock = clock
        self.logger = logger

    def delay_for(self, attempt: int) -> float:
        """Backoff after the zero-based *attempt*."""
        return self.base_delay * (2 ** attempt)

    def _wait(self, delay: float) -> None:
        if delay <= 0:
            return
        if self._sleep is not None:
            self._sleep(delay)
            return
        # Event.wait returns True as soon as cancellation fires.
        self.cancel_event.wait(delay)

    def _check_cancelled(self, label: str) -> None:
        if self.cancel_event.is_set():
            raise OperationCancelled(f"{label}: cancelled")

    def execute(self, operation: RetryableOperation[T]) -> T:
        """Run *operation*, returning its value on the first success.

        Non-retryable errors propagate unchanged. Exhausting every attempt
        raises ``MaxRetriesExceeded`` chained to the last failure.
        """
        label = operation.label or "operation"
        started = self._clock()
        last_error: BaseException | None = None
        attempts = 0
        for attempt in range(self.max_attempts):
            self._check_cancelled(label)
            attempts = attempt + 1
            try:
                return operation.func()
            except OperationCancelled:
                raise
            except Exception as exc:
                last_error = exc
                retryable = bool(operation.classify(exc))
                if self.logger is not None:
                    self.logger.debug(
                        f"retry policy: {label} attempt {attempt + 1}/{self.max_attempts} failed: {exc}",
                        error=error_detail(exc, retryable=retryable),
                    )
                if not retryable:
                    if self.logger is not None:
                        self.logger.event("retry_non_retryable", label=label, attempt=attempt + 1, error=exc)
                    raise
            if attempt + 1 >= self.max_attempts:
                break
            delay = self.delay_for(attempt)
            if self.max_elapsed is not None and (self._clock() - started) + delay > self.max_elapsed:
                if self.logger is not None:
                    self.logger.event("retry_budget_exhausted", label=label, attempt=attempt + 1, delay=delay)
                break
            self._wait(delay)
            self._check_cancelled(label)

        if self.logger is not None:
            self.logger.event("retry_exhausted", label=label, attempts=attempts, error=last_error)
        raise MaxRetriesExceeded(attempts, last_error, label=label) from last_error

    def call(
        self,
        func: Callable[[], T],
        classify: Classifier = is_retryable_api_error,
        *,
        label: str = "operation",
    ) -> T:
        return self.execute(RetryableOperation(func=func, classify=classify, label=label))
