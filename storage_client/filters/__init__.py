from .base import Filter, Pipeline, RequestOptions
from .log_filter import LoggingFilter
from .retry import (
    ExponentialRetryPolicyFilter,
    LinearRetryPolicyFilter,
    RetryContext,
    RetryDecision,
    RetryPolicyFilter,
    RetryState,
)

__all__ = [
    'Filter',
    'Pipeline',
    'RequestOptions',
    'LoggingFilter',
    'ExponentialRetryPolicyFilter',
    'LinearRetryPolicyFilter',
    'RetryContext',
    'RetryDecision',
    'RetryPolicyFilter',
    'RetryState',
]
