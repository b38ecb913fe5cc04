"""Bounded worker pool for chunk operations."""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class BatchOperation:
    """Runs chunk operations on a bounded thread pool.

    At most ``concurrency`` operations execute at once and at most
    ``concurrency * 2`` are queued or running, which bounds the chunk
    buffers held in memory. The first failure stops new operations from
    being scheduled; operations already running are allowed to finish.
    """

    def __init__(self, name: str, concurrency: int = 1):
        self.name = name
        self.concurrency = max(1, concurrency)
        self._executor = ThreadPoolExecutor(
            max_workers=self.concurrency, thread_name_prefix=f"batch-{name}"
        )
        self._slots = threading.BoundedSemaphore(self.concurrency * 2)
        self._lock = threading.Lock()
        self._error: Optional[BaseException] = None
        self._total_operations = 0
        self._completed_operations = 0

    @property
    def error(self) -> Optional[BaseException]:
        with self._lock:
            return self._error

    @property
    def completed_operations(self) -> int:
        with self._lock:
            return self._completed_operations

    def add_operation(self, func: Callable, *args, **kwargs) -> bool:
        """Queue an operation, blocking while the pool is full.

        Returns:
            bool: False if the batch already failed and the operation was dropped.
        """
        self._slots.acquire()
        if self.error is not None:
            self._slots.release()
            return False

        with self._lock:
            self._total_operations += 1
            operation_id = self._total_operations
        logger.debug(f"Add operation {operation_id} into batch operation {self.name}")
        self._executor.submit(self._run, operation_id, func, args, kwargs)
        return True

    def _run(self, operation_id, func, args, kwargs):
        try:
            if self.error is not None:
                return
            func(*args, **kwargs)
            with self._lock:
                self._completed_operations += 1
            logger.debug(f"Operation {operation_id} succeeded")
        except Exception as e:
            logger.debug(f"Operation {operation_id} failed. Error {e}")
            with self._lock:
                if self._error is None:
                    self._error = e
        finally:
            self._slots.release()

    def wait(self) -> None:
        """Block until every queued operation finished; re-raise the first error."""
        self._executor.shutdown(wait=True)
        error = self.error
        if error is not None:
            logger.error(f"Batch operation {self.name} failed: {error}")
            raise error
        logger.debug(f"Batch operation {self.name} completed {self._completed_operations} operation(s)")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self._executor.shutdown(wait=True)
        return False
