# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Retry loop and backoff policy for B2 API calls.

The Retryer decides *which* errors are retryable and *how* (immediately, or
after a delay). The RetryPolicy decides *whether* to keep going and how long
to wait. A fresh policy is created per operation, so policies are free to
keep state such as the current backoff.

Error handling in the loop:
  - 401 during account authorization: bad credentials, never retried
  - 401 during an upload: the upload URL went stale, retried immediately
    (the URL caches always hand out a fresh URL on a retry)
  - any other 401: the auth token expired; the account authorization cache is
    cleared and the call is retried immediately
  - 408 / 429 / 500 / 503 / network errors: retried after a delay
  - any other B2Error: raised as-is
  - anything that is not a B2Error: wrapped in B2Error("unexpected", 500)
"""

import logging
import time
from typing import TYPE_CHECKING, Callable, Optional, TypeVar

from b2kit.client.exceptions import (
    B2Error,
    RequestCategory,
    UnauthorizedError,
    is_retryable_after_delay,
)
from b2kit.logging.logger import get_logger

if TYPE_CHECKING:
    from b2kit.client.auth import AccountAuthorizationCache

_logger: logging.Logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 8


class RetryPolicy:
    """
    Hooks the Retryer calls after every attempt.

    The base class never retries. Subclasses override the two got_retryable_*
    methods to allow retries; the other hooks are notifications and may be
    overridden for metrics or logging.
    """

    def succeeded(self, operation: str, attempts_so_far: int, took_millis: int) -> None:
        pass

    def got_retryable_after_delay(
        self, operation: str, attempts_so_far: int, took_millis: int, error: B2Error
    ) -> Optional[int]:
        """Return seconds to wait before the next attempt, or None to give up."""
        return None

    def got_retryable_immediately(
        self, operation: str, attempts_so_far: int, took_millis: int, error: B2Error
    ) -> bool:
        return False

    def got_unretryable(
        self, operation: str, attempts_so_far: int, took_millis: int, error: B2Error
    ) -> None:
        pass

    def got_unexpected_unretryable(
        self, operation: str, attempts_so_far: int, took_millis: int, error: Exception
    ) -> None:
        pass


class DefaultRetryPolicy(RetryPolicy):
    """
    Exponential backoff, obeying the server's Retry-After when it sends one.

    Waits 1, 2, 4, ... seconds between delayed retries, capped at
    max_delay_seconds. A Retry-After from the server is used as-is and resets
    the backoff. Gives up once max_attempts attempts have been made.
    """

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        initial_delay_seconds: int = 1,
        max_delay_seconds: int = 64,
    ) -> None:
        self.max_attempts = max_attempts
        self.initial_delay_seconds = initial_delay_seconds
        self.max_delay_seconds = max_delay_seconds
        self._wait_seconds = initial_delay_seconds

    def got_retryable_after_delay(
        self, operation: str, attempts_so_far: int, took_millis: int, error: B2Error
    ) -> Optional[int]:
        if attempts_so_far >= self.max_attempts:
            return None

        if error.retry_after_seconds is not None:
            self._wait_seconds = self.initial_delay_seconds
            return error.retry_after_seconds

        wait = self._wait_seconds
        self._wait_seconds = min(self._wait_seconds * 2, self.max_delay_seconds)
        return wait

    def got_retryable_immediately(
        self, operation: str, attempts_so_far: int, took_millis: int, error: B2Error
    ) -> bool:
        return attempts_so_far < self.max_attempts


class Sleeper:
    """Indirection over time.sleep so tests can run the retry loop instantly."""

    def sleep_seconds(self, seconds: int) -> None:
        time.sleep(seconds)


def _millis_since(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class Retryer:
    def __init__(self, sleeper: Optional[Sleeper] = None) -> None:
        self._sleeper = sleeper if sleeper is not None else Sleeper()

    def do_retry(
        self,
        operation: str,
        auth_cache: "AccountAuthorizationCache",
        callable_: Callable[[bool], T],
        policy: RetryPolicy,
    ) -> T:
        """
        Run callable_ until it succeeds or fails in a way that can't be retried.

        Args:
            operation: Name used in logs and passed to the policy hooks.
            auth_cache: Cleared when the auth token turns out to be stale.
            callable_: Called with is_retry, which is False only on the first attempt.
            policy: Decides whether and when to retry.

        Returns:
            Whatever callable_ returns.

        Raises:
            B2Error: The unretryable error, or the last retryable one once
                the policy gives up.
        """
        attempts_so_far = 0
        while True:
            started = time.monotonic()
            is_retry = attempts_so_far != 0
            attempts_so_far += 1

            try:
                value = callable_(is_retry)
            except UnauthorizedError as err:
                took_millis = _millis_since(started)
                if err.request_category is RequestCategory.ACCOUNT_AUTHORIZATION:
                    policy.got_unretryable(operation, attempts_so_far, took_millis, err)
                    raise
                if err.request_category is RequestCategory.OTHER:
                    auth_cache.clear()
                if not policy.got_retryable_immediately(operation, attempts_so_far, took_millis, err):
                    raise
                _logger.info(
                    "Retrying immediately after unauthorized",
                    extra={
                        "operation": operation,
                        "attempt": attempts_so_far,
                        "category": err.request_category.value,
                    },
                )
                continue
            except B2Error as err:
                took_millis = _millis_since(started)
                if not is_retryable_after_delay(err):
                    policy.got_unretryable(operation, attempts_so_far, took_millis, err)
                    raise
                wait_seconds = policy.got_retryable_after_delay(
                    operation, attempts_so_far, took_millis, err
                )
                if wait_seconds is None:
                    _logger.warning(
                        "Giving up after retryable error",
                        extra={
                            "operation": operation,
                            "attempts": attempts_so_far,
                            "status": err.status,
                            "code": err.code,
                        },
                    )
                    raise
                _logger.info(
                    "Retrying after delay",
                    extra={
                        "operation": operation,
                        "attempt": attempts_so_far,
                        "status": err.status,
                        "code": err.code,
                        "wait_seconds": wait_seconds,
                    },
                )
                self._sleeper.sleep_seconds(wait_seconds)
                continue
            except Exception as err:
                took_millis = _millis_since(started)
                policy.got_unexpected_unretryable(operation, attempts_so_far, took_millis, err)
                raise B2Error("unexpected", 500, None, f"unexpected: {err!r}") from err

            policy.succeeded(operation, attempts_so_far, _millis_since(started))
            return value
