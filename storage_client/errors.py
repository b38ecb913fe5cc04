"""Error types raised by the storage client."""

import logging
from typing import Optional

import xmltodict

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Base class for storage client errors."""
    def __init__(self, message, code='InternalError', status_code=None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.inner_error = None


class AuthenticationError(StorageError):
    """Credentials are missing or unusable."""
    def __init__(self, message):
        super().__init__(message, 'AuthenticationFailed')


class TransportError(StorageError):
    """The request never produced an HTTP response."""
    def __init__(self, message):
        super().__init__(message, 'TransportError')


class StorageServiceError(StorageError):
    """The service answered with a non-success status."""
    def __init__(self, message, code, status_code, request_id=None):
        super().__init__(message, code, status_code)
        self.request_id = request_id

    def __str__(self):
        return f"{self.status_code} {self.code}: {self.message}"


class RetryableServiceError(StorageServiceError):
    """Server-side or timeout failure (5xx, 408)."""


class NonRetryableClientError(StorageServiceError):
    """Client-side failure (3xx/4xx except 408, plus 501 and 505)."""


class AlignmentError(StorageError, ValueError):
    """A chunk boundary does not fit the resource's alignment."""
    def __init__(self, message):
        super().__init__(message, 'AlignmentError')


class IntegrityError(StorageError):
    """Content hash mismatch."""
    def __init__(self, message, expected=None, actual=None):
        super().__init__(message, 'Md5Mismatch')
        self.expected = expected
        self.actual = actual


class StreamExhaustedError(StorageError):
    """A replay was requested after the request body stream was consumed."""
    def __init__(self, message):
        super().__init__(message, 'StreamExhausted')


class OperationTimeoutError(StorageError):
    """The maximum execution time of an operation was exceeded."""
    def __init__(self, message):
        super().__init__(message, 'OperationTimedOut')


def is_retryable_status(status_code: Optional[int]) -> bool:
    """Return True if a response with this status may be retried.

    A missing status (no response at all) counts as retryable.
    """
    if status_code is None:
        return True
    if 300 <= status_code < 500 and status_code != 408:
        return False
    if status_code in (501, 505):
        return False
    return True


def parse_error_body(body: bytes):
    """Extract (code, message) from a service error XML body.

    Returns (None, None) when the body is empty or not an error document.
    """
    if not body:
        return None, None
    try:
        data = xmltodict.parse(body)
    except Exception as e:
        logger.debug(f"Error body is not XML: {e}")
        return None, None

    error = data.get('Error') if isinstance(data, dict) else None
    if not isinstance(error, dict):
        return None, None
    return error.get('Code'), error.get('Message')


def error_for_status(status_code: int, code: Optional[str] = None,
                     message: Optional[str] = None,
                     request_id: Optional[str] = None) -> StorageServiceError:
    """Build the error class matching an HTTP status."""
    code = code or f"Http{status_code}"
    message = message or f"The service returned status {status_code}"
    if is_retryable_status(status_code):
        return RetryableServiceError(message, code, status_code, request_id)
    return NonRetryableClientError(message, code, status_code, request_id)
