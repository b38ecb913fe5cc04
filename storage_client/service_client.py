"""Base service client: builds, signs and sends requests through the filter pipeline."""
import copy
import logging
import platform
import time
import uuid
from typing import List, Optional
from urllib.parse import quote, urlencode

from . import constants
from .config import ClientConfig
from .connection_string import StorageSettings
from .errors import (
    AuthenticationError,
    OperationTimeoutError,
    error_for_status,
    parse_error_body,
)
from .filters.base import Filter, Pipeline, RequestOptions
from .http.transport import HttpResponse, RequestsTransport
from .http.webresource import WebResource
from .signing.sas import AccountSasPolicy
from .signing.shared_key import SharedKey
from .signing.token import SharedAccessSignatureSigner
from .utils import rfc1123_now

logger = logging.getLogger(__name__)

DEFAULT_SOCKET_TIMEOUT = 60  # seconds


def _default_signer(settings: StorageSettings):
    if settings.account_key:
        return SharedKey(settings.account_name, settings.account_key, settings.use_path_style_uri)
    if settings.sas_token:
        return SharedAccessSignatureSigner(settings.sas_token)
    logger.info("No credentials configured; requests will be sent anonymously")
    return None


class StorageServiceClient:
    """Sends signed requests for one storage service endpoint.

    Filters added with ``with_filter`` wrap every request; the most recently
    added filter is the outermost one.
    """

    service = 'blob'

    def __init__(self, settings: StorageSettings, transport=None, signer=None,
                 timeout_interval_ms: Optional[int] = None,
                 maximum_execution_time_ms: Optional[int] = None):
        self.settings = settings
        self.host = settings.endpoint_for(self.service)
        self.signer = signer if signer is not None else _default_signer(settings)
        self.transport = transport or RequestsTransport()
        self.api_version = constants.TARGET_STORAGE_VERSION
        self.default_timeout_interval_ms = timeout_interval_ms
        self.default_maximum_execution_time_ms = maximum_execution_time_ms
        self.socket_timeout = DEFAULT_SOCKET_TIMEOUT
        self.filters: List[Filter] = []

    @classmethod
    def from_config(cls, config: ClientConfig, transport=None):
        client = cls(
            config.settings,
            transport=transport,
            timeout_interval_ms=config.timeout_interval_ms,
            maximum_execution_time_ms=config.maximum_execution_time_ms,
        )
        retry_filter = config.retry.build_filter()
        if retry_filter is not None:
            client = client.with_filter(retry_filter)
        return client

    def with_filter(self, new_filter: Filter) -> 'StorageServiceClient':
        """Return a copy of this client with ``new_filter`` as the outermost filter."""
        derived = copy.copy(self)
        derived.filters = self.filters + [new_filter]
        return derived

    def generate_account_shared_access_signature(self, policy: AccountSasPolicy) -> str:
        if not isinstance(self.signer, SharedKey):
            raise AuthenticationError("An account key is required to generate a shared access signature")
        return self.signer.generate_account_signed_query_string(policy)

    def perform_request(self, web_resource: WebResource, client_request_id: Optional[str] = None,
                        timeout_interval_ms: Optional[int] = None,
                        maximum_execution_time_ms: Optional[int] = None) -> HttpResponse:
        """Run one logical operation through the filter pipeline.

        Returns:
            HttpResponse: The successful response.

        Raises:
            StorageError: The classified error of the last attempt.
        """
        if maximum_execution_time_ms is None:
            maximum_execution_time_ms = self.default_maximum_execution_time_ms
        options = RequestOptions(
            web_resource=web_resource,
            client_request_id=client_request_id or str(uuid.uuid4()),
            timeout_interval_ms=(timeout_interval_ms if timeout_interval_ms is not None
                                 else self.default_timeout_interval_ms),
            operation_expiry_time=(time.time() + maximum_execution_time_ms / 1000.0
                                   if maximum_execution_time_ms else None),
        )
        web_resource.with_header(constants.MS_CLIENT_REQUEST_ID, options.client_request_id)
        web_resource.with_header(constants.USER_AGENT, _user_agent())

        return Pipeline(self.filters, self._send).run(options)

    def _send(self, request_options: RequestOptions) -> HttpResponse:
        """Terminal operation of the pipeline; runs once per attempt."""
        expiry = request_options.operation_expiry_time
        if expiry is not None and time.time() > expiry:
            raise OperationTimeoutError(
                "The client could not finish the operation within the maximum execution time"
            )

        resource = request_options.web_resource
        body = resource.body_for_send()
        self._build_request(resource, request_options)

        response = self.transport.send(
            resource.method, resource.uri, resource.headers, body, timeout=self.socket_timeout
        )
        if response.is_successful:
            return response

        code, message = parse_error_body(response.body)
        raise error_for_status(
            response.status_code,
            code or response.headers.get(constants.MS_ERROR_CODE),
            message,
            response.headers.get(constants.MS_REQUEST_ID),
        )

    def _build_request(self, resource: WebResource, request_options: RequestOptions) -> None:
        # The date is re-stamped on every attempt, so replays are re-signed.
        resource.headers[constants.MS_VERSION] = self.api_version
        resource.headers[constants.MS_DATE] = rfc1123_now()
        if constants.ACCEPT not in resource.headers:
            resource.headers[constants.ACCEPT] = 'application/xml'
        resource.headers[constants.ACCEPT_CHARSET] = 'UTF-8'

        if request_options.timeout_interval_ms and request_options.timeout_interval_ms > 0:
            resource.with_query_option(constants.QUERY_TIMEOUT,
                                       max(1, request_options.timeout_interval_ms // 1000))

        if resource.body is not None and constants.CONTENT_TYPE not in resource.headers:
            resource.headers[constants.CONTENT_TYPE] = 'application/octet-stream'

        if constants.CONTENT_LENGTH not in resource.headers:
            if resource.body is None:
                resource.headers[constants.CONTENT_LENGTH] = '0'
            elif isinstance(resource.body, (bytes, bytearray)):
                resource.headers[constants.CONTENT_LENGTH] = str(len(resource.body))
            elif isinstance(resource.body, str):
                resource.headers[constants.CONTENT_LENGTH] = str(len(resource.body.encode('utf-8')))

        self._set_request_path(resource)
        if self.signer is not None:
            self.signer.sign_request(resource)
        self._set_request_uri(resource)

    def _set_request_path(self, resource: WebResource) -> None:
        if resource.original_path is None:
            resource.original_path = resource.path or ''
        path = '/' + resource.original_path.lstrip('/')
        if self.settings.use_path_style_uri:
            path = '/' + self.settings.account_name + path
        resource.path = path

    def _set_request_uri(self, resource: WebResource) -> None:
        uri = self.host.rstrip('/') + resource.path
        if resource.query:
            uri += '?' + urlencode(resource.query, quote_via=quote)
        resource.uri = uri


def _user_agent() -> str:
    return (f"{constants.USER_AGENT_PRODUCT_NAME}/{constants.USER_AGENT_PRODUCT_VERSION} "
            f"(Python {platform.python_version()}; {platform.system()} {platform.release()})")
