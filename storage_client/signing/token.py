"""Signers for bearer tokens and pre-issued shared access signatures."""
import threading
from urllib.parse import parse_qsl

from .. import constants
from ..errors import AuthenticationError


class TokenCredential:
    """Holds an OAuth bearer token that can be refreshed in place."""

    def __init__(self, token: str):
        self._lock = threading.Lock()
        self._token = token

    def get(self) -> str:
        with self._lock:
            return self._token

    def set(self, token: str) -> None:
        with self._lock:
            self._token = token


class TokenSigner:
    def __init__(self, credential: TokenCredential):
        if credential is None:
            raise AuthenticationError("A token credential is required for token signing")
        self.credential = credential

    def sign_request(self, web_resource) -> None:
        token = self.credential.get()
        if not token:
            raise AuthenticationError("Token credential holds an empty token")
        web_resource.headers[constants.AUTHORIZATION] = f"Bearer {token}"


class SharedAccessSignatureSigner:
    """Appends a SAS token to the query string of every request."""

    def __init__(self, sas_token: str):
        if not sas_token:
            raise AuthenticationError("A shared access signature token is required")
        self._params = parse_qsl(sas_token.lstrip('?'), keep_blank_values=True)
        if not any(name == constants.SIGNATURE for name, _ in self._params):
            raise AuthenticationError("Shared access signature token has no 'sig' parameter")

    def sign_request(self, web_resource) -> None:
        for name, value in self._params:
            web_resource.query[name] = value
