"""Unit tests for blob downloads."""
import io
import os
import tempfile
import threading
import time
import unittest
from unittest.mock import patch

from requests.structures import CaseInsensitiveDict

from storage_client.errors import IntegrityError, NonRetryableClientError
from storage_client.http.transport import HttpResponse
from storage_client.models import PageRange
from storage_client.transfer import ChunkDescriptor, OrderedChunkWriter, SpeedSummary
from storage_client.utils import get_content_md5
from tests.test_utils import FakeTransport, create_blob_service, error_body

BLOB_PATH = '/devstoreaccount1/container/blob'


class CorruptingTransport(FakeTransport):
    """Flips a byte in the body of ranged reads."""

    def _handle(self, request):
        response = super()._handle(request)
        if request.method == 'GET' and 'x-ms-range' in request.headers:
            body = bytearray(response.body)
            body[0] ^= 0xFF
            response.body = bytes(body)
        return response


class SlowFirstRangeTransport(FakeTransport):
    """Holds the first range until every other range was served, or ``hold_seconds`` passed."""

    def __init__(self, first_range, other_ranges, hold_seconds=1.0):
        super().__init__()
        self.first_range = first_range
        self.other_ranges = other_ranges
        self.hold_seconds = hold_seconds
        self.others_served = threading.Event()
        self.served = 0

    def send(self, method, url, headers, body=None, timeout=None):
        range_header = headers.get('x-ms-range')
        if range_header == self.first_range:
            self.others_served.wait(timeout=self.hold_seconds)
        response = super().send(method, url, headers, body, timeout)
        if range_header is not None and range_header != self.first_range:
            with self.lock:
                self.served += 1
                if self.served == self.other_ranges:
                    self.others_served.set()
        return response


class FailingFirstRangeTransport(FakeTransport):
    """Rejects the first range after a short delay."""

    def send(self, method, url, headers, body=None, timeout=None):
        if headers.get('x-ms-range') == 'bytes=0-1023':
            time.sleep(0.2)
            return HttpResponse(403, CaseInsensitiveDict(), error_body('AuthenticationFailed', 'Denied'))
        return super().send(method, url, headers, body, timeout)


class TestRangeDownload(unittest.TestCase):
    """Test cases for single and parallel downloads"""

    def setUp(self):
        self.service, self.transport = create_blob_service(
            single_get_threshold=1024,
            range_size=1024,
            parallel_operation_thread_count=4,
        )
        self.data = os.urandom(10000)

    def store(self, data, md5=None, transport=None):
        transport = transport or self.transport
        transport.blobs[BLOB_PATH] = {
            'type': 'BlockBlob',
            'data': bytearray(data),
            'md5': md5,
            'etag': '"0x1"',
        }

    def test_small_blob_single_get(self):
        self.store(b'small', get_content_md5(b'small'))

        self.assertEqual(self.service.get_blob_to_bytes('container', 'blob'), b'small')
        self.assertEqual([r.method for r in self.transport.requests], ['HEAD', 'GET'])
        self.assertNotIn('x-ms-range', self.transport.requests[1].headers)

    def test_empty_blob(self):
        self.store(b'')
        self.assertEqual(self.service.get_blob_to_bytes('container', 'blob'), b'')

    def test_parallel_ranges_reassemble_in_order(self):
        self.store(self.data, get_content_md5(self.data))
        summary = SpeedSummary('download')
        stream = io.BytesIO()

        properties = self.service.get_blob_to_stream('container', 'blob', stream, speed_summary=summary)

        self.assertEqual(stream.getvalue(), self.data)
        self.assertEqual(properties.content_length, 10000)
        ranges = [r for r in self.transport.requests if r.method == 'GET']
        self.assertEqual(len(ranges), 10)
        for request in ranges:
            self.assertEqual(request.headers['If-Match'], '"0x1"')
        self.assertEqual(summary.get_complete_size(False), 10000)

    def test_aggregate_md5_mismatch(self):
        self.store(self.data, get_content_md5(b'something else'))

        with self.assertRaises(IntegrityError) as ctx:
            self.service.get_blob_to_bytes('container', 'blob')

        self.assertEqual(ctx.exception.expected, get_content_md5(b'something else'))
        self.assertEqual(ctx.exception.actual, get_content_md5(self.data))

    def test_md5_validation_can_be_disabled(self):
        self.store(self.data, get_content_md5(b'something else'))
        self.service.transfer_config.disable_content_md5_validation = True

        self.assertEqual(self.service.get_blob_to_bytes('container', 'blob'), self.data)

    def test_blob_without_md5_is_not_validated(self):
        self.store(self.data)
        self.assertEqual(self.service.get_blob_to_bytes('container', 'blob'), self.data)

    def test_range_md5_requested_and_checked(self):
        self.store(self.data)
        self.service.transfer_config.use_transactional_md5 = True

        self.assertEqual(self.service.get_blob_to_bytes('container', 'blob'), self.data)
        for request in self.transport.requests:
            if request.method == 'GET':
                self.assertEqual(request.headers['x-ms-range-get-content-md5'], 'true')

    def test_range_md5_mismatch(self):
        service, transport = create_blob_service(
            CorruptingTransport(), single_get_threshold=1024, range_size=1024,
            use_transactional_md5=True,
        )
        self.store(self.data, transport=transport)

        with self.assertRaises(IntegrityError):
            service.get_blob_to_bytes('container', 'blob')

    def test_missing_blob(self):
        with self.assertRaises(NonRetryableClientError) as ctx:
            self.service.get_blob_to_bytes('container', 'blob')
        self.assertEqual(ctx.exception.status_code, 404)
        self.assertEqual(ctx.exception.code, 'BlobNotFound')

    def test_download_to_path(self):
        self.store(self.data, get_content_md5(self.data))
        with tempfile.TemporaryDirectory() as temp_dir:
            file_path = os.path.join(temp_dir, 'out.bin')
            self.service.get_blob_to_path('container', 'blob', file_path)
            with open(file_path, 'rb') as f:
                self.assertEqual(f.read(), self.data)


    def test_stalled_first_range_bounds_parked_data(self):
        service, transport = create_blob_service(
            SlowFirstRangeTransport('bytes=0-1023', other_ranges=19),
            single_get_threshold=1024,
            range_size=1024,
            parallel_operation_thread_count=2,
        )
        data = os.urandom(20 * 1024)
        self.store(data, get_content_md5(data), transport=transport)
        parked = []
        write = OrderedChunkWriter.write

        def recording_write(writer, chunk, payload):
            write(writer, chunk, payload)
            parked.append(writer.pending_bytes)

        with patch.object(OrderedChunkWriter, 'write', recording_write):
            result = service.get_blob_to_bytes('container', 'blob')

        self.assertEqual(result, data)
        self.assertLessEqual(max(parked), 2 * 1024)
        served = [r.headers['x-ms-range'] for r in transport.requests if 'x-ms-range' in r.headers]
        self.assertLess(served.index('bytes=0-1023'), served.index('bytes=19456-20479'))

    def test_failed_range_releases_waiting_writers(self):
        service, transport = create_blob_service(
            FailingFirstRangeTransport(),
            single_get_threshold=1024,
            range_size=1024,
            parallel_operation_thread_count=2,
        )
        self.store(self.data, transport=transport)

        with self.assertRaises(NonRetryableClientError) as ctx:
            service.get_blob_to_bytes('container', 'blob')
        self.assertEqual(ctx.exception.status_code, 403)


class TestPartialDownload(unittest.TestCase):
    """Test cases for downloading a byte range of a blob"""

    def setUp(self):
        self.service, self.transport = create_blob_service(
            single_get_threshold=1024,
            range_size=1024,
            parallel_operation_thread_count=4,
        )
        self.data = os.urandom(10000)
        self.transport.blobs[BLOB_PATH] = {
            'type': 'BlockBlob',
            'data': bytearray(self.data),
            'md5': get_content_md5(self.data),
            'etag': '"0x1"',
        }

    def ranges_requested(self):
        return [r.headers['x-ms-range'] for r in self.transport.requests
                if r.method == 'GET' and 'x-ms-range' in r.headers]

    def test_parallel_range(self):
        summary = SpeedSummary('partial')
        result = self.service.get_blob_to_bytes('container', 'blob', 1500, 6499, speed_summary=summary)

        self.assertEqual(result, self.data[1500:6500])
        ranges = self.ranges_requested()
        self.assertEqual(len(ranges), 5)
        self.assertIn('bytes=1500-2523', ranges)
        self.assertIn('bytes=5596-6499', ranges)
        self.assertEqual(summary.get_complete_size(False), 5000)
        self.assertEqual(summary.get_complete_percent(), '100.0')

    def test_small_range_single_get(self):
        result = self.service.get_blob_to_bytes('container', 'blob', 10, 99)

        self.assertEqual(result, self.data[10:100])
        self.assertEqual(self.ranges_requested(), ['bytes=10-99'])

    def test_open_ended_range(self):
        self.assertEqual(self.service.get_blob_to_bytes('container', 'blob', 9000), self.data[9000:])
        self.assertEqual(self.ranges_requested(), ['bytes=9000-9999'])

    def test_end_past_blob_is_clamped(self):
        self.assertEqual(self.service.get_blob_to_bytes('container', 'blob', 8000, 50000),
                         self.data[8000:])

    def test_whole_blob_md5_not_checked_for_ranges(self):
        self.transport.blobs[BLOB_PATH]['md5'] = get_content_md5(b'something else')

        result = self.service.get_blob_to_bytes('container', 'blob', 0, 4999)
        self.assertEqual(result, self.data[:5000])

        with self.assertRaises(IntegrityError):
            self.service.get_blob_to_bytes('container', 'blob', 0)

    def test_range_to_path(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            file_path = os.path.join(temp_dir, 'out.bin')
            self.service.get_blob_to_path('container', 'blob', file_path, start_range=2048, end_range=4095)
            with open(file_path, 'rb') as f:
                self.assertEqual(f.read(), self.data[2048:4096])

    def test_invalid_ranges(self):
        for start_range, end_range in ((None, 100), (-1, 100), (500, 499), (10000, None)):
            with self.subTest(start_range=start_range, end_range=end_range):
                with self.assertRaises(ValueError):
                    self.service.get_blob_to_bytes('container', 'blob', start_range, end_range)


class TestPageBlobDownload(unittest.TestCase):
    """Test cases for downloading sparse page blobs"""

    def setUp(self):
        self.service, self.transport = create_blob_service(
            single_get_threshold=1024,
            range_size=1024,
            parallel_operation_thread_count=4,
        )
        self.data = bytearray(8192)
        self.data[1024:1536] = os.urandom(512)
        self.data[4096:5120] = os.urandom(1024)
        self.data = bytes(self.data)
        self.transport.blobs[BLOB_PATH] = {
            'type': 'PageBlob',
            'data': bytearray(self.data),
            'md5': get_content_md5(self.data),
            'etag': '"0x1"',
        }

    def test_list_page_ranges(self):
        ranges = self.service.list_page_ranges('container', 'blob')

        self.assertEqual(ranges, [PageRange(1024, 1535), PageRange(4096, 5119)])
        request = self.transport.requests_with('GET', 'pagelist')[0]
        self.assertNotIn('x-ms-range', request.headers)

    def test_list_page_ranges_of_empty_blob(self):
        self.transport.blobs[BLOB_PATH]['data'] = bytearray(4096)
        self.assertEqual(self.service.list_page_ranges('container', 'blob', 0, 4095), [])

    def test_only_written_pages_are_fetched(self):
        summary = SpeedSummary('sparse')

        result = self.service.get_blob_to_bytes('container', 'blob', speed_summary=summary)

        self.assertEqual(result, self.data)
        page_lists = self.transport.requests_with('GET', 'pagelist')
        self.assertEqual(len(page_lists), 1)
        self.assertEqual(page_lists[0].headers['x-ms-range'], 'bytes=0-8191')
        self.assertEqual(page_lists[0].headers['If-Match'], '"0x1"')
        ranges = sorted(r.headers['x-ms-range'] for r in self.transport.requests_with('GET'))
        self.assertEqual(ranges, ['bytes=1024-1535', 'bytes=4096-5119'])
        self.assertEqual(summary.get_complete_size(False), 8192)

    def test_partial_page_blob_download(self):
        result = self.service.get_blob_to_bytes('container', 'blob', 1200, 4607)

        self.assertEqual(result, self.data[1200:4608])
        ranges = sorted(r.headers['x-ms-range'] for r in self.transport.requests_with('GET'))
        self.assertEqual(ranges, ['bytes=1200-1535', 'bytes=4096-4271', 'bytes=4272-4607'])

    def test_all_zero_page_blob_needs_no_range_reads(self):
        self.transport.blobs[BLOB_PATH]['data'] = bytearray(8192)
        self.transport.blobs[BLOB_PATH]['md5'] = get_content_md5(bytes(8192))

        self.assertEqual(self.service.get_blob_to_bytes('container', 'blob'), bytes(8192))
        self.assertEqual(self.transport.requests_with('GET'), [])

    def test_uploaded_sparse_page_blob_round_trip(self):
        self.service.transfer_config.page_chunk_size = 1024
        self.service.create_page_blob_from_stream('container', 'copy', io.BytesIO(self.data), len(self.data))

        self.assertEqual(self.service.get_blob_to_bytes('container', 'copy'), self.data)


class TestOrderedChunkWriter(unittest.TestCase):
    def test_out_of_order_chunks(self):
        stream = io.BytesIO()
        writer = OrderedChunkWriter(stream)

        writer.write(ChunkDescriptor(2, 6, 3), b'ghi')
        writer.write(ChunkDescriptor(1, 3, 3), b'def')
        self.assertEqual(stream.getvalue(), b'')
        self.assertEqual(writer.bytes_written, 0)

        writer.write(ChunkDescriptor(0, 0, 3), b'abc')
        self.assertEqual(stream.getvalue(), b'abcdefghi')
        self.assertEqual(writer.bytes_written, 9)

    def test_writer_waits_for_gap_to_close(self):
        stream = io.BytesIO()
        writer = OrderedChunkWriter(stream, max_ahead=6)
        writer.write(ChunkDescriptor(1, 3, 3), b'def')

        blocked = threading.Thread(target=writer.write, args=(ChunkDescriptor(2, 6, 3), b'ghi'))
        blocked.start()
        blocked.join(timeout=0.2)
        self.assertTrue(blocked.is_alive())
        self.assertEqual(writer.pending_bytes, 3)

        writer.write(ChunkDescriptor(0, 0, 3), b'abc')
        blocked.join(timeout=5)
        self.assertFalse(blocked.is_alive())
        self.assertEqual(stream.getvalue(), b'abcdefghi')

    def test_abort_releases_waiting_writer(self):
        stream = io.BytesIO()
        writer = OrderedChunkWriter(stream, max_ahead=3)

        blocked = threading.Thread(target=writer.write, args=(ChunkDescriptor(1, 3, 3), b'def'))
        blocked.start()
        writer.abort()
        blocked.join(timeout=5)

        self.assertFalse(blocked.is_alive())
        self.assertEqual(stream.getvalue(), b'')
        self.assertEqual(writer.pending_bytes, 0)
