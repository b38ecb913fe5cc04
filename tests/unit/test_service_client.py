"""Unit tests for the service client request path."""
import io
import itertools
import unittest
from unittest.mock import patch
from urllib.parse import urlsplit

from storage_client import constants
from storage_client.blob_service import BlobService
from storage_client.connection_string import StorageSettings, parse_connection_string
from storage_client.errors import (
    AuthenticationError,
    NonRetryableClientError,
    OperationTimeoutError,
    RetryableServiceError,
    StreamExhaustedError,
    TransportError,
)
from storage_client.filters import LinearRetryPolicyFilter
from storage_client.http.webresource import WebResource
from storage_client.signing import AccountSasPolicy, SharedKey
from tests.test_utils import FakeTransport, create_blob_service, error_body


class NonSeekableStream(io.RawIOBase):
    def __init__(self, data):
        self._data = io.BytesIO(data)

    def readable(self):
        return True

    def readinto(self, buffer):
        chunk = self._data.read(len(buffer))
        buffer[:len(chunk)] = chunk
        return len(chunk)


class TestStorageServiceClient(unittest.TestCase):
    """Test cases for request building, signing and error handling"""

    def setUp(self):
        self.service, self.transport = create_blob_service()

    def test_request_headers_and_uri(self):
        self.service.put_blob('container', 'dir/my blob', b'data')

        request = self.transport.requests[0]
        self.assertEqual(request.url, 'http://127.0.0.1:10000/devstoreaccount1/container/dir/my%20blob')
        self.assertEqual(request.headers['x-ms-version'], constants.TARGET_STORAGE_VERSION)
        self.assertIn('x-ms-date', request.headers)
        self.assertIn('x-ms-client-request-id', request.headers)
        self.assertTrue(request.headers['User-Agent'].startswith('storage-client-python/'))
        self.assertEqual(request.headers['Content-Type'], 'application/octet-stream')

    def test_signature_matches_sent_request(self):
        """Test the Authorization header verifies against the request as sent"""
        self.service.put_blob('container', 'blob', b'data')
        request = self.transport.requests[0]

        resource = WebResource.put(urlsplit(request.url).path)
        resource.query.update(request.query)
        for name, value in request.headers.items():
            if name != 'Authorization':
                resource.headers[name] = value
        signer = SharedKey(constants.DEVSTORE_STORAGE_ACCOUNT, constants.DEVSTORE_STORAGE_ACCESS_KEY)
        signer.sign_request(resource)

        self.assertEqual(request.headers['Authorization'], resource.headers['Authorization'])

    def test_server_timeout_query_option(self):
        service = BlobService(StorageSettings.development_storage(), transport=self.transport,
                              timeout_interval_ms=30000)
        service.put_blob('container', 'blob', b'')
        self.assertEqual(self.transport.requests[0].query['timeout'], '30')

    def test_error_response_is_classified(self):
        self.transport.queue_response(409, {'x-ms-request-id': 'req-1'},
                                      error_body('BlobAlreadyExists', 'The blob already exists.'))

        with self.assertRaises(NonRetryableClientError) as ctx:
            self.service.put_blob('container', 'blob', b'data')

        self.assertEqual(ctx.exception.status_code, 409)
        self.assertEqual(ctx.exception.code, 'BlobAlreadyExists')
        self.assertEqual(ctx.exception.message, 'The blob already exists.')
        self.assertEqual(ctx.exception.request_id, 'req-1')

    def test_error_code_from_header(self):
        self.transport.queue_response(500, {'x-ms-error-code': 'InternalError'})
        with self.assertRaises(RetryableServiceError) as ctx:
            self.service.put_blob('container', 'blob', b'data')
        self.assertEqual(ctx.exception.code, 'InternalError')

    @patch('storage_client.filters.retry.time.sleep')
    @patch('storage_client.service_client.rfc1123_now')
    def test_retry_resigns_with_fresh_date(self, mock_now, mock_sleep):
        mock_now.side_effect = ['Fri, 23 Sep 2011 01:37:34 GMT', 'Fri, 23 Sep 2011 01:37:44 GMT']
        service = self.service.with_filter(LinearRetryPolicyFilter(retry_count=2, retry_interval=10))
        self.transport.queue_response(503, body=error_body('ServerBusy', 'Busy'))

        service.put_blob('container', 'blob', b'data')

        first, second = self.transport.requests
        self.assertEqual(first.headers['x-ms-date'], 'Fri, 23 Sep 2011 01:37:34 GMT')
        self.assertEqual(second.headers['x-ms-date'], 'Fri, 23 Sep 2011 01:37:44 GMT')
        self.assertNotEqual(first.headers['Authorization'], second.headers['Authorization'])
        self.assertEqual(first.headers['x-ms-client-request-id'], second.headers['x-ms-client-request-id'])
        self.assertEqual(first.body, second.body)

    @patch('storage_client.filters.retry.time.sleep')
    def test_seekable_stream_is_replayed(self, mock_sleep):
        service = self.service.with_filter(LinearRetryPolicyFilter(retry_count=1, retry_interval=10))
        service.create_page_blob('container', 'blob', 512)
        self.transport.queue_response(500)

        service.create_pages_from_stream('container', 'blob', io.BytesIO(b'\x07' * 512), 0, 511)

        pages = self.transport.requests_with('PUT', 'page')
        self.assertEqual(len(pages), 2)
        self.assertEqual(pages[1].body, b'\x07' * 512)

    @patch('storage_client.filters.retry.time.sleep')
    def test_non_seekable_stream_is_not_replayed(self, mock_sleep):
        service = self.service.with_filter(LinearRetryPolicyFilter(retry_count=3, retry_interval=10))
        service.create_page_blob('container', 'blob', 512)
        self.transport.queue_response(500)

        with self.assertRaises(StreamExhaustedError):
            service.create_pages_from_stream('container', 'blob', NonSeekableStream(b'\x07' * 512), 0, 511)

        self.assertEqual(len(self.transport.requests_with('PUT', 'page')), 1)

    @patch('storage_client.filters.retry.time.sleep')
    def test_transport_error_retried(self, mock_sleep):
        service = self.service.with_filter(LinearRetryPolicyFilter(retry_count=1, retry_interval=10))
        self.transport.queue_error(TransportError('connection reset'))

        service.put_blob('container', 'blob', b'data')

        self.assertEqual(len(self.transport.requests), 2)

    def test_with_filter_leaves_original_unchanged(self):
        derived = self.service.with_filter(LinearRetryPolicyFilter())
        self.assertEqual(self.service.filters, [])
        self.assertEqual(len(derived.filters), 1)

    @patch('storage_client.service_client.time.time')
    def test_maximum_execution_time(self, mock_time):
        mock_time.side_effect = itertools.chain([1000.0], itertools.repeat(1002.0))
        with self.assertRaises(OperationTimeoutError):
            self.service.perform_request(WebResource.head('/container/blob'),
                                         maximum_execution_time_ms=1000)
        self.assertEqual(self.transport.requests, [])

    def test_sas_credentials_sign_query(self):
        settings = parse_connection_string(
            'BlobEndpoint=https://myaccount.blob.core.windows.net;SharedAccessSignature=sv=2017-04-17&sig=abc'
        )
        transport = FakeTransport()
        service = BlobService(settings, transport=transport)
        service.put_blob('container', 'blob', b'data')

        request = transport.requests[0]
        self.assertEqual(request.query['sig'], 'abc')
        self.assertNotIn('Authorization', request.headers)
        self.assertTrue(request.url.startswith('https://myaccount.blob.core.windows.net/container/blob?'))

    def test_account_sas_requires_key(self):
        settings = parse_connection_string(
            'BlobEndpoint=https://myaccount.blob.core.windows.net;SharedAccessSignature=sv=2017-04-17&sig=abc'
        )
        service = BlobService(settings, transport=FakeTransport())
        with self.assertRaises(AuthenticationError):
            service.generate_account_shared_access_signature(AccountSasPolicy('b', 's', 'r', expiry='2030-01-01'))

    def test_account_sas_from_client(self):
        token = self.service.generate_account_shared_access_signature(
            AccountSasPolicy('b', 's', 'r', expiry='2030-01-01T00:00:00Z')
        )
        self.assertIn('sig=', token)
        self.assertIn('sv=' + constants.TARGET_STORAGE_VERSION, token)
