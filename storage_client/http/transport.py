"""HTTP transport built on requests."""
import logging
from dataclasses import dataclass, field
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from requests.structures import CaseInsensitiveDict

from ..errors import TransportError

logger = logging.getLogger(__name__)


@dataclass
class HttpResponse:
    """Status, headers and body of one HTTP exchange."""
    status_code: int
    headers: CaseInsensitiveDict = field(default_factory=CaseInsensitiveDict)
    body: bytes = b''

    @property
    def is_successful(self) -> bool:
        return 200 <= self.status_code < 300


class RequestsTransport:
    """Sends requests with a shared requests.Session.

    Sessions are thread safe enough for the parallel transfer workers as long
    as they do not change session state, which this class never does after
    construction.
    """

    def __init__(self, session: Optional[requests.Session] = None,
                 pool_size: int = 10, verify: bool = True):
        if session is None:
            session = requests.Session()
            adapter = HTTPAdapter(
                pool_connections=pool_size, pool_maxsize=pool_size
            )
            session.mount('http://', adapter)
            session.mount('https://', adapter)
        self.session = session
        self.verify = verify

    def send(self, method: str, url: str, headers, body=None,
             timeout: Optional[float] = None) -> HttpResponse:
        try:
            response = self.session.request(
                method,
                url,
                headers=dict(headers),
                data=body,
                timeout=timeout,
                verify=self.verify,
            )
        except requests.exceptions.RequestException as e:
            logger.warning(f"{method} {url} failed before a response: {e}")
            raise TransportError(str(e)) from e

        return HttpResponse(
            status_code=response.status_code,
            headers=CaseInsensitiveDict(response.headers),
            body=response.content,
        )
