"""Blob REST operations and the high-level transfer entry points."""
import base64
import io
import logging
import os
from typing import List, Optional
from urllib.parse import quote

import xmltodict

from . import constants
from .config import ClientConfig, TransferConfig
from .errors import AlignmentError
from .http.transport import HttpResponse
from .http.webresource import WebResource
from .models import BlobProperties, ContentSettings, PageRange
from .service_client import StorageServiceClient
from .transfer.download import RangeDownloader
from .transfer.speed_summary import SpeedSummary
from .transfer.upload import BlockBlobUploader, PageBlobUploader

logger = logging.getLogger(__name__)


def _blob_path(container_name: str, blob_name: str) -> str:
    return f"/{quote(container_name)}/{quote(blob_name, safe='/~')}"


def _encode_block_id(block_id: str) -> str:
    return base64.b64encode(block_id.encode('utf-8')).decode('utf-8')


def _content_headers(resource: WebResource, content_settings: Optional[ContentSettings]):
    if content_settings is not None:
        for name, value in content_settings.to_headers().items():
            resource.with_header(name, value)


def _validate_page_range(start: int, end: int):
    if start % constants.PAGE_SIZE != 0:
        raise AlignmentError(f"Page range start {start} must be a multiple of {constants.PAGE_SIZE}")
    if (end + 1) % constants.PAGE_SIZE != 0:
        raise AlignmentError(f"Page range end {end} must be one less than a multiple of {constants.PAGE_SIZE}")


class BlobService(StorageServiceClient):
    """Client for the blob service endpoint."""

    service = 'blob'

    def __init__(self, settings, transport=None, signer=None,
                 timeout_interval_ms: Optional[int] = None,
                 maximum_execution_time_ms: Optional[int] = None,
                 transfer_config: Optional[TransferConfig] = None):
        super().__init__(settings, transport, signer, timeout_interval_ms, maximum_execution_time_ms)
        self.transfer_config = transfer_config or TransferConfig()

    @classmethod
    def from_config(cls, config: ClientConfig, transport=None) -> 'BlobService':
        client = super().from_config(config, transport)
        client.transfer_config = config.transfer
        return client

    # Single REST calls

    def put_blob(self, container_name: str, blob_name: str, data: bytes,
                 content_settings: Optional[ContentSettings] = None,
                 content_md5: Optional[str] = None,
                 blob_content_md5: Optional[str] = None,
                 lease_id: Optional[str] = None) -> HttpResponse:
        """Create or replace a block blob in one request."""
        resource = WebResource.put(_blob_path(container_name, blob_name))
        resource.with_header(constants.MS_BLOB_TYPE, constants.BLOB_TYPE_BLOCK)
        resource.with_header(constants.CONTENT_MD5, content_md5)
        resource.with_header(constants.MS_BLOB_CONTENT_MD5, blob_content_md5)
        resource.with_header(constants.MS_LEASE_ID, lease_id)
        _content_headers(resource, content_settings)
        resource.with_body(data)
        return self.perform_request(resource)

    def put_block(self, container_name: str, blob_name: str, block_id: str, data: bytes,
                  content_md5: Optional[str] = None, lease_id: Optional[str] = None) -> HttpResponse:
        """Stage one block. ``block_id`` is base64 encoded on the wire."""
        resource = WebResource.put(_blob_path(container_name, blob_name))
        resource.with_query_option(constants.QUERY_COMP, 'block')
        resource.with_query_option(constants.QUERY_BLOCK_ID, _encode_block_id(block_id))
        resource.with_header(constants.CONTENT_MD5, content_md5)
        resource.with_header(constants.MS_LEASE_ID, lease_id)
        resource.with_body(data)
        return self.perform_request(resource)

    def put_block_list(self, container_name: str, blob_name: str, block_ids: List[str],
                       content_settings: Optional[ContentSettings] = None,
                       blob_content_md5: Optional[str] = None,
                       lease_id: Optional[str] = None) -> HttpResponse:
        """Commit staged blocks; the blob content is the blocks in list order."""
        body = xmltodict.unparse(
            {'BlockList': {'Uncommitted': [_encode_block_id(block_id) for block_id in block_ids]}}
        )
        resource = WebResource.put(_blob_path(container_name, blob_name))
        resource.with_query_option(constants.QUERY_COMP, 'blocklist')
        resource.with_header(constants.CONTENT_TYPE, 'application/xml')
        resource.with_header(constants.MS_BLOB_CONTENT_MD5, blob_content_md5)
        resource.with_header(constants.MS_LEASE_ID, lease_id)
        _content_headers(resource, content_settings)
        resource.with_body(body.encode('utf-8'))
        return self.perform_request(resource)

    def create_page_blob(self, container_name: str, blob_name: str, content_length: int,
                         content_settings: Optional[ContentSettings] = None,
                         sequence_number: Optional[int] = None,
                         lease_id: Optional[str] = None) -> HttpResponse:
        """Create an all-zero page blob of ``content_length`` bytes."""
        if content_length % constants.PAGE_SIZE:
            raise AlignmentError(
                f"Page blob size {content_length} must be a multiple of {constants.PAGE_SIZE}"
            )
        resource = WebResource.put(_blob_path(container_name, blob_name))
        resource.with_header(constants.MS_BLOB_TYPE, constants.BLOB_TYPE_PAGE)
        resource.with_header(constants.MS_BLOB_CONTENT_LENGTH, str(content_length))
        resource.with_header(constants.MS_BLOB_SEQUENCE_NUMBER,
                             str(sequence_number) if sequence_number is not None else None)
        resource.with_header(constants.MS_LEASE_ID, lease_id)
        _content_headers(resource, content_settings)
        return self.perform_request(resource)

    def put_page(self, container_name: str, blob_name: str, data: bytes, start: int, end: int,
                 content_md5: Optional[str] = None, lease_id: Optional[str] = None) -> HttpResponse:
        """Write bytes [start, end] of a page blob."""
        _validate_page_range(start, end)
        if end - start + 1 > constants.MAX_UPDATE_PAGE_SIZE:
            raise ValueError(f"A page write is limited to {constants.MAX_UPDATE_PAGE_SIZE} bytes")
        if len(data) != end - start + 1:
            raise ValueError(f"Page data is {len(data)} bytes but the range is {end - start + 1} bytes")
        resource = self._page_resource(container_name, blob_name, start, end, content_md5, lease_id)
        resource.with_body(data)
        return self.perform_request(resource)

    def create_pages_from_stream(self, container_name: str, blob_name: str, stream,
                                 start: int, end: int, content_md5: Optional[str] = None,
                                 lease_id: Optional[str] = None) -> HttpResponse:
        """Write bytes [start, end] of a page blob, streaming the body from ``stream``.

        A non-seekable stream cannot be replayed, so a retry after it was
        sent fails with StreamExhaustedError.
        """
        _validate_page_range(start, end)
        resource = self._page_resource(container_name, blob_name, start, end, content_md5, lease_id)
        resource.with_header(constants.CONTENT_LENGTH, str(end - start + 1))
        resource.with_body(stream)
        return self.perform_request(resource)

    def _page_resource(self, container_name, blob_name, start, end, content_md5, lease_id) -> WebResource:
        resource = WebResource.put(_blob_path(container_name, blob_name))
        resource.with_query_option(constants.QUERY_COMP, 'page')
        resource.with_header(constants.MS_RANGE, f"bytes={start}-{end}")
        resource.with_header(constants.MS_PAGE_WRITE, 'update')
        resource.with_header(constants.CONTENT_MD5, content_md5)
        resource.with_header(constants.MS_LEASE_ID, lease_id)
        return resource

    def set_blob_properties(self, container_name: str, blob_name: str,
                            content_settings: Optional[ContentSettings] = None,
                            blob_content_md5: Optional[str] = None,
                            lease_id: Optional[str] = None) -> HttpResponse:
        resource = WebResource.put(_blob_path(container_name, blob_name))
        resource.with_query_option(constants.QUERY_COMP, 'properties')
        resource.with_header(constants.MS_BLOB_CONTENT_MD5, blob_content_md5)
        resource.with_header(constants.MS_LEASE_ID, lease_id)
        _content_headers(resource, content_settings)
        return self.perform_request(resource)

    def get_blob_properties(self, container_name: str, blob_name: str,
                            lease_id: Optional[str] = None) -> BlobProperties:
        resource = WebResource.head(_blob_path(container_name, blob_name))
        resource.with_header(constants.MS_LEASE_ID, lease_id)
        response = self.perform_request(resource)
        return BlobProperties.from_headers(response.headers)

    def get_blob_range(self, container_name: str, blob_name: str,
                       start: Optional[int] = None, end: Optional[int] = None,
                       range_get_content_md5: bool = False,
                       if_match: Optional[str] = None,
                       lease_id: Optional[str] = None) -> HttpResponse:
        """Get the whole blob, or bytes [start, end] when a start is given."""
        resource = WebResource.get(_blob_path(container_name, blob_name))
        if start is not None:
            range_value = f"bytes={start}-{end}" if end is not None else f"bytes={start}-"
            resource.with_header(constants.MS_RANGE, range_value)
            if range_get_content_md5:
                resource.with_header(constants.MS_RANGE_GET_CONTENT_MD5, 'true')
        resource.with_header(constants.IF_MATCH, if_match)
        resource.with_header(constants.MS_LEASE_ID, lease_id)
        return self.perform_request(resource)

    def list_page_ranges(self, container_name: str, blob_name: str,
                         start: Optional[int] = None, end: Optional[int] = None,
                         if_match: Optional[str] = None,
                         lease_id: Optional[str] = None) -> List[PageRange]:
        """List the written page ranges of a page blob, optionally within [start, end]."""
        resource = WebResource.get(_blob_path(container_name, blob_name))
        resource.with_query_option(constants.QUERY_COMP, 'pagelist')
        if start is not None:
            range_value = f"bytes={start}-{end}" if end is not None else f"bytes={start}-"
            resource.with_header(constants.MS_RANGE, range_value)
        resource.with_header(constants.IF_MATCH, if_match)
        resource.with_header(constants.MS_LEASE_ID, lease_id)
        response = self.perform_request(resource)

        document = xmltodict.parse(response.body or b'<PageList/>', force_list=('PageRange',))
        page_list = document.get('PageList') or {}
        ranges = [PageRange(int(item['Start']), int(item['End']))
                  for item in page_list.get('PageRange') or []]
        logger.debug(f"Blob {blob_name} has {len(ranges)} page range(s)")
        return ranges

    # High-level transfers

    def create_block_blob_from_bytes(self, container_name: str, blob_name: str, data: bytes,
                                     content_settings: Optional[ContentSettings] = None,
                                     speed_summary: Optional[SpeedSummary] = None) -> List[str]:
        return self.create_block_blob_from_stream(
            container_name, blob_name, io.BytesIO(data), len(data),
            content_settings=content_settings, speed_summary=speed_summary,
        )

    def create_block_blob_from_stream(self, container_name: str, blob_name: str, stream, count: int,
                                      content_settings: Optional[ContentSettings] = None,
                                      speed_summary: Optional[SpeedSummary] = None) -> List[str]:
        """Upload ``count`` bytes from ``stream`` as a block blob."""
        uploader = BlockBlobUploader(self, container_name, blob_name, self.transfer_config,
                                     speed_summary, content_settings)
        return uploader.upload(stream, count)

    def create_block_blob_from_path(self, container_name: str, blob_name: str, file_path: str,
                                    content_settings: Optional[ContentSettings] = None,
                                    speed_summary: Optional[SpeedSummary] = None) -> List[str]:
        count = os.path.getsize(file_path)
        with open(file_path, 'rb') as stream:
            return self.create_block_blob_from_stream(container_name, blob_name, stream, count,
                                                      content_settings, speed_summary)

    def create_page_blob_from_stream(self, container_name: str, blob_name: str, stream, count: int,
                                     content_settings: Optional[ContentSettings] = None,
                                     speed_summary: Optional[SpeedSummary] = None) -> int:
        """Upload ``count`` bytes from ``stream`` as a page blob; ``count`` must be 512-aligned."""
        uploader = PageBlobUploader(self, container_name, blob_name, self.transfer_config,
                                    speed_summary, content_settings)
        return uploader.upload(stream, count)

    def create_page_blob_from_path(self, container_name: str, blob_name: str, file_path: str,
                                   content_settings: Optional[ContentSettings] = None,
                                   speed_summary: Optional[SpeedSummary] = None) -> int:
        count = os.path.getsize(file_path)
        with open(file_path, 'rb') as stream:
            return self.create_page_blob_from_stream(container_name, blob_name, stream, count,
                                                     content_settings, speed_summary)

    def get_blob_to_stream(self, container_name: str, blob_name: str, stream,
                           start_range: Optional[int] = None, end_range: Optional[int] = None,
                           speed_summary: Optional[SpeedSummary] = None) -> BlobProperties:
        """Download the blob, or bytes [start_range, end_range] of it, into ``stream``.

        ``end_range`` defaults to the last byte of the blob and requires a
        ``start_range``. The stored content MD5 is only checked when the
        whole blob is downloaded.
        """
        downloader = RangeDownloader(self, container_name, blob_name, self.transfer_config, speed_summary)
        return downloader.download(stream, start_range, end_range)

    def get_blob_to_path(self, container_name: str, blob_name: str, file_path: str,
                         start_range: Optional[int] = None, end_range: Optional[int] = None,
                         speed_summary: Optional[SpeedSummary] = None) -> BlobProperties:
        with open(file_path, 'wb') as stream:
            return self.get_blob_to_stream(container_name, blob_name, stream,
                                           start_range, end_range, speed_summary)

    def get_blob_to_bytes(self, container_name: str, blob_name: str,
                          start_range: Optional[int] = None, end_range: Optional[int] = None,
                          speed_summary: Optional[SpeedSummary] = None) -> bytes:
        stream = io.BytesIO()
        self.get_blob_to_stream(container_name, blob_name, stream, start_range, end_range, speed_summary)
        return stream.getvalue()
