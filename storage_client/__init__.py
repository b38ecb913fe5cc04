"""Client core for the storage REST service: signing, retries, pipeline and transfers."""
from .blob_service import BlobService
from .config import ClientConfig, RetryConfig, TransferConfig
from .connection_string import StorageSettings, parse_connection_string
from .errors import (
    AlignmentError,
    AuthenticationError,
    IntegrityError,
    NonRetryableClientError,
    OperationTimeoutError,
    RetryableServiceError,
    StorageError,
    StorageServiceError,
    StreamExhaustedError,
    TransportError,
)
from .models import BlobProperties, ContentSettings, PageRange
from .service_client import StorageServiceClient
from .transfer.speed_summary import SpeedSummary

__version__ = '0.1.0'

__all__ = [
    'AlignmentError',
    'AuthenticationError',
    'BlobProperties',
    'BlobService',
    'ClientConfig',
    'ContentSettings',
    'IntegrityError',
    'NonRetryableClientError',
    'OperationTimeoutError',
    'PageRange',
    'RetryConfig',
    'RetryableServiceError',
    'SpeedSummary',
    'StorageError',
    'StorageServiceClient',
    'StorageServiceError',
    'StorageSettings',
    'StreamExhaustedError',
    'TransferConfig',
    'TransportError',
    'parse_connection_string',
]
