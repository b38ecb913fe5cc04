"""Request filters and the pipeline that chains them around an operation."""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, Dict, List, Optional

from ..http.webresource import WebResource

NextHandler = Callable[['RequestOptions'], Any]


@dataclass
class RequestOptions:
    """Per-operation state threaded through every filter and attempt."""
    web_resource: WebResource
    client_request_id: Optional[str] = None
    timeout_interval_ms: Optional[int] = None
    operation_expiry_time: Optional[float] = None
    retry_context: Any = None
    extra: Dict[str, Any] = field(default_factory=dict)


class Filter(ABC):
    """A step wrapped around the request operation.

    ``handle`` receives the request options and the next handler. It may
    change the options before calling ``next_handler``, look at the result or
    exception afterwards, and call ``next_handler`` again to replay.
    """

    @abstractmethod
    def handle(self, request_options: RequestOptions, next_handler: NextHandler):
        pass


class Pipeline:
    """Composes filters right to left around a terminal operation.

    ``filters`` is ordered innermost first: the last filter in the list sees
    the request first and the response last.
    """

    def __init__(self, filters: List[Filter], operation: NextHandler):
        self.filters = list(filters)
        self.operation = operation

    def build(self) -> NextHandler:
        handler = self.operation
        for request_filter in self.filters:
            handler = partial(request_filter.handle, next_handler=handler)
        return handler

    def run(self, request_options: RequestOptions):
        return self.build()(request_options)
