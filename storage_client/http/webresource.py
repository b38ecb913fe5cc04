"""Request descriptor handed to the signer and the request pipeline."""
import io
import logging
from typing import Any, Dict, Optional

from requests.structures import CaseInsensitiveDict

from ..errors import StreamExhaustedError

logger = logging.getLogger(__name__)


class WebResource:
    """A mutable description of one REST call.

    Headers use case-insensitive lookup. Query options keep insertion order;
    the signer sorts them itself.
    """

    def __init__(self, method: str, path: Optional[str] = None):
        self.method = method
        self.path = path
        self.original_path: Optional[str] = None
        self.uri: Optional[str] = None
        self.query: Dict[str, str] = {}
        self.headers = CaseInsensitiveDict()
        self.body: Any = None
        self._body_start: Optional[int] = None
        self._body_sent = False

    @classmethod
    def get(cls, path=None):
        return cls('GET', path)

    @classmethod
    def put(cls, path=None):
        return cls('PUT', path)

    @classmethod
    def head(cls, path=None):
        return cls('HEAD', path)

    @classmethod
    def delete(cls, path=None):
        return cls('DELETE', path)

    @classmethod
    def post(cls, path=None):
        return cls('POST', path)

    def with_query_option(self, name: str, value) -> 'WebResource':
        if value is not None:
            self.query[name] = str(value)
        return self

    def with_header(self, name: str, value) -> 'WebResource':
        if value is not None:
            self.headers[name] = value
        return self

    def with_headers(self, source: Optional[Dict[str, Any]], *names: str) -> 'WebResource':
        """Copy the named headers from `source` when present."""
        if source:
            for name in names:
                self.with_header(name, source.get(name))
        return self

    def with_body(self, body) -> 'WebResource':
        self.body = body
        self._body_start = None
        self._body_sent = False
        return self

    @property
    def has_stream_body(self) -> bool:
        return self.body is not None and hasattr(self.body, 'read')

    def body_for_send(self):
        """Return the body for the next attempt.

        Bytes bodies are returned as is. A seekable stream is rewound to where
        the first attempt started reading. A non-seekable stream can only be
        sent once; asking for it again raises StreamExhaustedError.
        """
        if not self.has_stream_body:
            return self.body

        seekable = _is_seekable(self.body)
        if not self._body_sent:
            if seekable:
                self._body_start = self.body.tell()
            self._body_sent = True
            return self.body

        if seekable:
            logger.debug(f"Rewinding request body to offset {self._body_start}")
            self.body.seek(self._body_start)
            return self.body

        raise StreamExhaustedError(
            "The request body stream was already sent and cannot be replayed"
        )


def _is_seekable(stream) -> bool:
    try:
        return stream.seekable()
    except (AttributeError, ValueError, io.UnsupportedOperation):
        return False
