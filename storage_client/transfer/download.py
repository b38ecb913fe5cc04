"""Single-shot and parallel ranged blob downloads."""
import hashlib
import logging
import threading
from typing import Dict, List, Optional

from .. import constants
from ..config import TransferConfig
from ..errors import IntegrityError
from ..models import BlobProperties, PageRange
from ..utils import encode_md5_digest, get_content_md5
from .batch import BatchOperation
from .plan import ChunkDescriptor, TransferPlan
from .speed_summary import SpeedSummary

logger = logging.getLogger(__name__)


class OrderedChunkWriter:
    """Writes chunks to a stream in offset order, whatever order they arrive in.

    Out-of-order chunks are parked until every chunk before them has been
    written, so the stream and the running MD5 only ever see contiguous data.
    With ``max_ahead`` set, a chunk starting ``max_ahead`` bytes or more past
    the next unwritten offset blocks its writer until the gap closes, which
    keeps the parked data under ``max_ahead`` bytes.
    """

    def __init__(self, stream, md5=None, max_ahead: Optional[int] = None):
        self._stream = stream
        self._md5 = md5
        self._max_ahead = max_ahead
        self._condition = threading.Condition()
        self._pending: Dict[int, bytes] = {}
        self._next_offset = 0
        self._aborted = False

    @property
    def bytes_written(self) -> int:
        with self._condition:
            return self._next_offset

    @property
    def pending_bytes(self) -> int:
        with self._condition:
            return sum(len(data) for data in self._pending.values())

    def write(self, chunk: ChunkDescriptor, data: bytes) -> None:
        with self._condition:
            while self._must_wait(chunk):
                self._condition.wait()
            if self._aborted:
                return

            self._pending[chunk.offset] = data
            advanced = False
            while self._next_offset in self._pending:
                ready = self._pending.pop(self._next_offset)
                self._stream.write(ready)
                if self._md5 is not None:
                    self._md5.update(ready)
                self._next_offset += len(ready)
                advanced = True
            if advanced:
                self._condition.notify_all()

    def abort(self) -> None:
        """Drop parked chunks and release every blocked writer."""
        with self._condition:
            self._aborted = True
            self._pending.clear()
            self._condition.notify_all()

    def _must_wait(self, chunk: ChunkDescriptor) -> bool:
        if self._aborted or self._max_ahead is None:
            return False
        return chunk.offset - self._next_offset >= self._max_ahead


class RangeDownloader:
    """Downloads a blob, or a byte range of it, into a writable stream.

    Page blobs larger than the single-get threshold are read through their
    page list: only written pages are fetched and the gaps are filled with
    zeros locally.
    """

    def __init__(self, blob_service, container_name: str, blob_name: str,
                 config: Optional[TransferConfig] = None,
                 speed_summary: Optional[SpeedSummary] = None):
        self.blob_service = blob_service
        self.container_name = container_name
        self.blob_name = blob_name
        self.config = config or TransferConfig()
        self.speed_summary = speed_summary or SpeedSummary(blob_name)
        self._etag: Optional[str] = None

        if self.config.use_transactional_md5 and self.config.range_size > constants.MAX_RANGE_GET_SIZE_WITH_MD5:
            raise ValueError(
                f"range_size must not exceed {constants.MAX_RANGE_GET_SIZE_WITH_MD5} bytes "
                f"when per-range MD5 is requested"
            )

    def download(self, stream, start_range: Optional[int] = None,
                 end_range: Optional[int] = None) -> BlobProperties:
        """Write the blob content, or bytes [start_range, end_range], into ``stream``.

        Raises:
            ValueError: If the requested range is malformed or starts past the end of the blob.
            IntegrityError: If a range or the assembled content does not match its MD5.
        """
        _validate_range(start_range, end_range)
        properties = self.blob_service.get_blob_properties(self.container_name, self.blob_name)
        blob_size = properties.content_length
        self._etag = properties.etag

        start = start_range or 0
        if start and start >= blob_size:
            raise ValueError(f"Range start {start} is past the end of {self.blob_name} ({blob_size} bytes)")
        end = blob_size - 1 if end_range is None else min(end_range, blob_size - 1)
        size = max(0, end - start + 1)
        partial = size != blob_size
        self.speed_summary.reset(size)

        expected_md5 = properties.content_md5
        if self.config.disable_content_md5_validation or partial:
            expected_md5 = None

        if size <= self.config.single_get_threshold:
            self._download_single(stream, start, end, partial, expected_md5)
            return properties

        page_ranges = None
        if properties.blob_type == constants.BLOB_TYPE_PAGE:
            page_ranges = self.blob_service.list_page_ranges(self.container_name, self.blob_name,
                                                             start, end, if_match=self._etag)

        plan = TransferPlan.build(size, self.config.range_size, 1,
                                  self.config.parallel_operation_thread_count)
        md5 = hashlib.md5() if expected_md5 else None
        writer = OrderedChunkWriter(stream, md5, max_ahead=plan.concurrency * plan.chunk_size)
        logger.info(f"Downloading {self.blob_name} bytes {start}-{end} as {len(plan)} ranges "
                    f"with {plan.concurrency} thread(s)")

        batch = BatchOperation('getRange', plan.concurrency)
        with batch:
            for chunk in plan:
                if not batch.add_operation(self._get_chunk, chunk, writer, start, page_ranges):
                    break
        batch.wait()

        if writer.bytes_written != size:
            raise IntegrityError(
                f"Downloaded {writer.bytes_written} bytes of {self.blob_name}, expected {size}"
            )
        if md5 is not None:
            self._check_md5(expected_md5, encode_md5_digest(md5))
        return properties

    def _download_single(self, stream, start: int, end: int, partial: bool, expected_md5: Optional[str]):
        if partial:
            response = self.blob_service.get_blob_range(self.container_name, self.blob_name,
                                                        start, end, if_match=self._etag)
        else:
            response = self.blob_service.get_blob_range(self.container_name, self.blob_name,
                                                        if_match=self._etag)
        data = response.body or b''
        stream.write(data)
        self.speed_summary.increment(len(data))
        if expected_md5:
            self._check_md5(expected_md5, get_content_md5(data))
        logger.info(f"Downloaded {self.blob_name} in a single request ({len(data)} bytes)")

    def _get_chunk(self, chunk: ChunkDescriptor, writer: OrderedChunkWriter, base: int,
                   page_ranges: Optional[List[PageRange]]):
        try:
            if page_ranges is None:
                data = self._get_range(base + chunk.offset, base + chunk.end)
            else:
                data = self._get_pages(base + chunk.offset, base + chunk.end, page_ranges)
            writer.write(chunk, data)
        except Exception:
            writer.abort()
            raise
        self.speed_summary.increment(len(data))

    def _get_pages(self, first: int, last: int, page_ranges: List[PageRange]) -> bytes:
        data = bytearray(last - first + 1)
        for page_range in page_ranges:
            low = max(first, page_range.start)
            high = min(last, page_range.end)
            if low <= high:
                data[low - first:high - first + 1] = self._get_range(low, high)
        return bytes(data)

    def _get_range(self, first: int, last: int) -> bytes:
        response = self.blob_service.get_blob_range(
            self.container_name, self.blob_name, first, last,
            range_get_content_md5=self.config.use_transactional_md5,
            if_match=self._etag,
        )
        data = response.body or b''
        expected_length = last - first + 1
        if len(data) != expected_length:
            raise IntegrityError(
                f"Range {first}-{last} returned {len(data)} bytes, expected {expected_length}"
            )
        if self.config.use_transactional_md5:
            range_md5 = response.headers.get(constants.CONTENT_MD5)
            actual = get_content_md5(data)
            if range_md5 != actual:
                raise IntegrityError(
                    f"MD5 mismatch for range {first}-{last}", range_md5, actual
                )
        return data

    def _check_md5(self, expected: str, actual: str):
        if expected != actual:
            logger.error(f"MD5 mismatch for {self.blob_name}: expected {expected}, got {actual}")
            raise IntegrityError(
                f"MD5 mismatch for {self.blob_name}: expected {expected}, got {actual}",
                expected, actual,
            )


def _validate_range(start_range: Optional[int], end_range: Optional[int]):
    if end_range is not None and start_range is None:
        raise ValueError("end_range requires start_range")
    if start_range is not None and start_range < 0:
        raise ValueError(f"start_range must be >= 0, got {start_range}")
    if end_range is not None and end_range < start_range:
        raise ValueError(f"end_range {end_range} is before start_range {start_range}")
