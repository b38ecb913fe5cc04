"""Filter that logs every attempt passing through the pipeline."""
import logging
import time

from ..errors import StorageError
from .base import Filter

logger = logging.getLogger(__name__)


class LoggingFilter(Filter):
    def __init__(self, level: int = logging.DEBUG):
        self.level = level

    def handle(self, request_options, next_handler):
        resource = request_options.web_resource
        started = time.monotonic()
        logger.log(self.level, f"--> {resource.method} {resource.path} "
                               f"(client request id {request_options.client_request_id})")
        try:
            response = next_handler(request_options)
        except StorageError as e:
            elapsed_ms = int((time.monotonic() - started) * 1000)
            logger.log(self.level, f"<-- {resource.method} {resource.uri or resource.path} failed "
                                   f"in {elapsed_ms}ms: {e.status_code} {e.code}")
            raise

        elapsed_ms = int((time.monotonic() - started) * 1000)
        logger.log(self.level, f"<-- {resource.method} {resource.uri or resource.path} "
                               f"{getattr(response, 'status_code', '')} in {elapsed_ms}ms")
        return response
