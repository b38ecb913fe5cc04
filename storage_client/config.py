"""Configuration for clients, retries and transfers."""
import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

from . import constants
from .connection_string import StorageSettings, parse_connection_string
from .filters.retry import ExponentialRetryPolicyFilter, LinearRetryPolicyFilter, RetryPolicyFilter


@dataclass
class TransferConfig:
    """Configuration for segmented uploads and downloads."""
    # Upload settings
    single_blob_put_threshold: int = constants.DEFAULT_SINGLE_BLOB_PUT_THRESHOLD_IN_BYTES  # 32MB
    block_size: int = constants.DEFAULT_WRITE_BLOCK_SIZE_IN_BYTES      # 4MB
    page_chunk_size: int = constants.DEFAULT_WRITE_PAGE_SIZE_IN_BYTES  # 4MB

    # Download settings
    single_get_threshold: int = constants.DEFAULT_SINGLE_BLOB_GET_THRESHOLD_IN_BYTES  # 32MB
    range_size: int = constants.MAX_RANGE_GET_SIZE_WITH_MD5  # 4MB

    parallel_operation_thread_count: int = constants.DEFAULT_PARALLEL_OPERATION_THREAD_COUNT

    # Integrity settings
    use_transactional_md5: bool = False
    store_blob_content_md5: bool = True
    disable_content_md5_validation: bool = False

    def __post_init__(self):
        if self.parallel_operation_thread_count < 1:
            raise ValueError("parallel_operation_thread_count must be at least 1")
        if not 0 < self.block_size <= constants.MAX_BLOCK_SIZE:
            raise ValueError(f"block_size must be between 1 and {constants.MAX_BLOCK_SIZE} bytes")
        if not 0 < self.page_chunk_size <= constants.MAX_UPDATE_PAGE_SIZE:
            raise ValueError(f"page_chunk_size must be between 1 and {constants.MAX_UPDATE_PAGE_SIZE} bytes")
        if self.range_size <= 0:
            raise ValueError("range_size must be positive")


@dataclass
class RetryConfig:
    """Which retry policy to install and how it is tuned."""
    mode: str = "exponential"   # "exponential", "linear" or "none"
    retry_count: int = RetryPolicyFilter.DEFAULT_CLIENT_RETRY_COUNT
    retry_interval_ms: int = RetryPolicyFilter.DEFAULT_CLIENT_RETRY_INTERVAL

    def build_filter(self) -> Optional[RetryPolicyFilter]:
        mode = self.mode.lower()
        if mode == "none":
            return None
        if mode == "linear":
            return LinearRetryPolicyFilter(self.retry_count, self.retry_interval_ms)
        if mode == "exponential":
            return ExponentialRetryPolicyFilter(self.retry_count, self.retry_interval_ms)
        raise ValueError(f"Unsupported retry mode: {self.mode}")


@dataclass
class ClientConfig:
    """Everything needed to build a service client."""
    settings: StorageSettings
    retry: RetryConfig = field(default_factory=RetryConfig)
    transfer: TransferConfig = field(default_factory=TransferConfig)
    timeout_interval_ms: Optional[int] = None
    maximum_execution_time_ms: Optional[int] = None

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> 'ClientConfig':
        """Load configuration from the environment (and a .env file if present).

        Raises:
            ValueError: If neither a connection string nor account credentials are set.
        """
        load_dotenv(dotenv_path)

        connection_string = os.getenv('AZURE_STORAGE_CONNECTION_STRING')
        account = os.getenv('AZURE_STORAGE_ACCOUNT')
        if connection_string:
            settings = parse_connection_string(connection_string)
        elif account:
            settings = StorageSettings.for_account(
                account,
                account_key=os.getenv('AZURE_STORAGE_ACCESS_KEY'),
                sas_token=os.getenv('AZURE_STORAGE_SAS_TOKEN'),
            )
        else:
            raise ValueError(
                "Storage credentials not found in environment variables; set "
                "AZURE_STORAGE_CONNECTION_STRING or AZURE_STORAGE_ACCOUNT"
            )

        retry = RetryConfig(
            mode=os.getenv('STORAGE_RETRY_MODE', 'exponential'),
            retry_count=int(os.getenv('STORAGE_RETRY_COUNT', RetryPolicyFilter.DEFAULT_CLIENT_RETRY_COUNT)),
            retry_interval_ms=int(os.getenv('STORAGE_RETRY_INTERVAL_MS',
                                            RetryPolicyFilter.DEFAULT_CLIENT_RETRY_INTERVAL)),
        )
        transfer = TransferConfig(
            parallel_operation_thread_count=int(
                os.getenv('STORAGE_PARALLEL_THREADS', constants.DEFAULT_PARALLEL_OPERATION_THREAD_COUNT)
            ),
        )
        return cls(
            settings=settings,
            retry=retry,
            transfer=transfer,
            timeout_interval_ms=_optional_int(os.getenv('STORAGE_TIMEOUT_MS')),
            maximum_execution_time_ms=_optional_int(os.getenv('STORAGE_MAX_EXECUTION_TIME_MS')),
        )


def _optional_int(value: Optional[str]) -> Optional[int]:
    return int(value) if value else None
