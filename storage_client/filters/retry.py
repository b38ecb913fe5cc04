"""Retry policy filters with linear and exponential back-off."""
import logging
import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..errors import (
    AlignmentError,
    IntegrityError,
    OperationTimeoutError,
    StorageError,
    StreamExhaustedError,
    is_retryable_status,
)
from .base import Filter, NextHandler, RequestOptions

logger = logging.getLogger(__name__)

# These indicate bad input or a consumed body; replaying cannot help.
NEVER_RETRIED = (AlignmentError, IntegrityError, StreamExhaustedError, OperationTimeoutError)


class RetryState(Enum):
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    RETRY_SCHEDULED = "retry_scheduled"
    FAILED = "failed"


@dataclass(frozen=True)
class RetryDecision:
    retryable: bool
    retry_interval: int = 0  # milliseconds

    def __post_init__(self):
        if self.retry_interval < 0:
            raise ValueError("retry_interval must be >= 0")


@dataclass
class RetryContext:
    """Retry bookkeeping for one logical operation.

    ``retry_count_limit`` and ``retry_interval`` are copied from the policy
    when the operation starts, so later changes to the filter do not affect
    operations already in flight.
    """
    retry_count_limit: int
    retry_interval: int
    retry_count: int = 0
    status_code: Optional[int] = None
    error: Optional[StorageError] = None
    total_delay: int = 0
    state: RetryState = RetryState.ATTEMPTING


class RetryPolicyFilter(Filter):
    """Shared retry loop; subclasses decide through ``should_retry``."""

    DEFAULT_CLIENT_RETRY_COUNT = 3
    DEFAULT_CLIENT_RETRY_INTERVAL = 30 * 1000

    def __init__(self, retry_count: Optional[int] = None, retry_interval: Optional[int] = None):
        self.retry_count = self.DEFAULT_CLIENT_RETRY_COUNT if retry_count is None else retry_count
        self.retry_interval = self.DEFAULT_CLIENT_RETRY_INTERVAL if retry_interval is None else retry_interval

    def should_retry(self, status_code: Optional[int], retry_context: RetryContext) -> RetryDecision:
        raise NotImplementedError

    def _new_context(self) -> RetryContext:
        return RetryContext(retry_count_limit=self.retry_count, retry_interval=self.retry_interval)

    def handle(self, request_options: RequestOptions, next_handler: NextHandler):
        context = self._new_context()
        request_options.retry_context = context

        while True:
            context.state = RetryState.ATTEMPTING
            try:
                result = next_handler(request_options)
            except NEVER_RETRIED:
                context.state = RetryState.FAILED
                raise
            except StorageError as error:
                if context.error is not None:
                    error.inner_error = context.error
                context.error = error
                context.status_code = error.status_code

                decision = self.should_retry(error.status_code, context)
                if not decision.retryable:
                    context.state = RetryState.FAILED
                    logger.error(
                        f"Giving up after {context.retry_count + 1} attempt(s): {error}"
                    )
                    raise

                _check_expiry(request_options, decision.retry_interval, error)

                context.state = RetryState.RETRY_SCHEDULED
                context.retry_count += 1
                context.total_delay += decision.retry_interval
                logger.info(
                    f"Retry {context.retry_count} in {decision.retry_interval}ms "
                    f"after {error.status_code or 'transport'} error: {error.code}"
                )
                time.sleep(decision.retry_interval / 1000.0)
                continue

            context.state = RetryState.SUCCEEDED
            return result


class LinearRetryPolicyFilter(RetryPolicyFilter):
    """Retries with a constant interval between attempts.

    Args:
        retry_count: Maximum number of retries (default 3).
        retry_interval: Interval between retries in milliseconds (default 30000).
        jitter: Spread each interval randomly over +/-20%.
    """

    def __init__(self, retry_count: Optional[int] = None, retry_interval: Optional[int] = None,
                 jitter: bool = False):
        super().__init__(retry_count, retry_interval)
        self.jitter = jitter

    def should_retry(self, status_code, retry_context):
        interval = retry_context.retry_interval
        if self.jitter:
            interval = _jittered(interval)
        retryable = retry_context.retry_count < retry_context.retry_count_limit
        if not is_retryable_status(status_code):
            retryable = False
        return RetryDecision(retryable=retryable, retry_interval=interval)


class ExponentialRetryPolicyFilter(RetryPolicyFilter):
    """Retries with an interval that grows by ``backoff_factor`` per attempt.

    The wait before retry ``n`` (0 based) is
    ``min(min_retry_interval + (backoff_factor ** n - 1) * delta, max_retry_interval)``
    where ``delta`` is ``retry_interval``, jittered to [0.8, 1.2) unless
    ``jitter`` is False.
    """

    DEFAULT_CLIENT_MIN_RETRY_INTERVAL = 3 * 1000
    DEFAULT_CLIENT_MAX_RETRY_INTERVAL = 90 * 1000

    def __init__(self, retry_count: Optional[int] = None, retry_interval: Optional[int] = None,
                 min_retry_interval: Optional[int] = None, max_retry_interval: Optional[int] = None,
                 backoff_factor: float = 2, jitter: bool = True):
        super().__init__(retry_count, retry_interval)
        self.min_retry_interval = (self.DEFAULT_CLIENT_MIN_RETRY_INTERVAL
                                   if min_retry_interval is None else min_retry_interval)
        self.max_retry_interval = (self.DEFAULT_CLIENT_MAX_RETRY_INTERVAL
                                   if max_retry_interval is None else max_retry_interval)
        self.backoff_factor = backoff_factor
        self.jitter = jitter

    def should_retry(self, status_code, retry_context):
        current = retry_context.retry_count
        if current >= retry_context.retry_count_limit or not is_retryable_status(status_code):
            return RetryDecision(retryable=False, retry_interval=0)

        delta = _jittered(retry_context.retry_interval) if self.jitter else retry_context.retry_interval
        increment = (self.backoff_factor ** current - 1) * delta
        interval = int(min(self.min_retry_interval + increment, self.max_retry_interval))
        return RetryDecision(retryable=True, retry_interval=max(interval, 0))


def _jittered(interval: int) -> int:
    low = int(interval * 0.8)
    high = int(interval * 1.2)
    if high <= low:
        return interval
    return low + random.randrange(high - low)


def _check_expiry(request_options: RequestOptions, interval_ms: int, error: StorageError) -> None:
    expiry = request_options.operation_expiry_time
    if expiry is not None and time.time() + interval_ms / 1000.0 > expiry:
        timeout = OperationTimeoutError(
            "The client could not finish the operation within the maximum execution time"
        )
        timeout.inner_error = error
        raise timeout from error
