"""Chunked block and page blob uploads."""
import hashlib
import logging
import threading
import uuid
from typing import Dict, List, Optional

from .. import constants
from ..config import TransferConfig
from ..utils import encode_md5_digest, get_content_md5, is_all_zero
from .batch import BatchOperation
from .plan import ChunkDescriptor, TransferPlan
from .speed_summary import SpeedSummary

logger = logging.getLogger(__name__)

BLOCK_ID_PREFIX_LENGTH = 8


def generate_block_id_prefix() -> str:
    return uuid.uuid4().hex[:BLOCK_ID_PREFIX_LENGTH]


def get_block_id(prefix: str, sequence: int) -> str:
    """Block ids of one blob share the prefix and have equal length."""
    return f"{prefix}-{sequence:06d}"


def read_exact(stream, length: int) -> bytes:
    """Read exactly ``length`` bytes or fail."""
    data = b''
    while len(data) < length:
        piece = stream.read(length - len(data))
        if not piece:
            raise ValueError(f"Stream ended after {len(data)} of {length} expected bytes")
        data += piece
    return data


class _Uploader:
    def __init__(self, blob_service, container_name: str, blob_name: str,
                 config: Optional[TransferConfig] = None,
                 speed_summary: Optional[SpeedSummary] = None,
                 content_settings=None):
        self.blob_service = blob_service
        self.container_name = container_name
        self.blob_name = blob_name
        self.config = config or TransferConfig()
        self.speed_summary = speed_summary or SpeedSummary(blob_name)
        self.content_settings = content_settings

    def _transactional_md5(self, data: bytes) -> Optional[str]:
        return get_content_md5(data) if self.config.use_transactional_md5 else None

    def _new_whole_md5(self):
        return hashlib.md5() if self.config.store_blob_content_md5 else None


class BlockBlobUploader(_Uploader):
    """Uploads a block blob either in one request or as staged blocks."""

    def __init__(self, *args, block_id_prefix: Optional[str] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.block_id_prefix = block_id_prefix or generate_block_id_prefix()
        self._lock = threading.Lock()
        self._block_ids: Dict[int, str] = {}

    def upload(self, stream, size: int) -> List[str]:
        """Upload ``size`` bytes read from ``stream``.

        Returns:
            List[str]: The committed block ids in order; empty for a single put.
        """
        self.speed_summary.reset(size)
        if size <= self.config.single_blob_put_threshold:
            data = read_exact(stream, size)
            self.blob_service.put_blob(
                self.container_name, self.blob_name, data,
                content_settings=self.content_settings,
                content_md5=self._transactional_md5(data),
                blob_content_md5=get_content_md5(data) if self.config.store_blob_content_md5 else None,
            )
            self.speed_summary.increment(size)
            logger.info(f"Uploaded {self.blob_name} in a single request ({size} bytes)")
            return []

        plan = TransferPlan.build(size, self.config.block_size, 1,
                                  self.config.parallel_operation_thread_count)
        whole_md5 = self._new_whole_md5()
        logger.info(f"Uploading {self.blob_name} as {len(plan)} blocks of {plan.chunk_size} bytes "
                    f"with {plan.concurrency} thread(s)")

        batch = BatchOperation('putBlock', plan.concurrency)
        with batch:
            for chunk in plan:
                data = read_exact(stream, chunk.length)
                if whole_md5 is not None:
                    whole_md5.update(data)
                block_id = get_block_id(self.block_id_prefix, chunk.sequence)
                if not batch.add_operation(self._put_block, chunk, block_id, data):
                    break
        batch.wait()

        block_ids = [self._block_ids[chunk.sequence] for chunk in plan]
        self.blob_service.put_block_list(
            self.container_name, self.blob_name, block_ids,
            content_settings=self.content_settings,
            blob_content_md5=encode_md5_digest(whole_md5) if whole_md5 is not None else None,
        )
        logger.info(f"Committed {len(block_ids)} blocks for {self.blob_name}")
        return block_ids

    def _put_block(self, chunk: ChunkDescriptor, block_id: str, data: bytes):
        self.blob_service.put_block(
            self.container_name, self.blob_name, block_id, data,
            content_md5=self._transactional_md5(data),
        )
        with self._lock:
            self._block_ids[chunk.sequence] = block_id
        self.speed_summary.increment(len(data))


class PageBlobUploader(_Uploader):
    """Creates a page blob and writes its non-empty pages."""

    def upload(self, stream, size: int) -> int:
        """Upload ``size`` bytes read from ``stream``.

        Returns:
            int: Number of page ranges actually written.

        Raises:
            AlignmentError: If ``size`` is not a multiple of 512.
        """
        plan = TransferPlan.build(size, self.config.page_chunk_size, constants.PAGE_SIZE,
                                  self.config.parallel_operation_thread_count)
        self.speed_summary.reset(size)
        self.blob_service.create_page_blob(
            self.container_name, self.blob_name, size, content_settings=self.content_settings
        )
        if size == 0:
            return 0

        whole_md5 = self._new_whole_md5()
        skipped = 0
        batch = BatchOperation('putPage', plan.concurrency)
        with batch:
            for chunk in plan:
                data = read_exact(stream, chunk.length)
                if whole_md5 is not None:
                    whole_md5.update(data)
                if is_all_zero(data):
                    # A new page blob already reads as zeros.
                    skipped += 1
                    self.speed_summary.increment(len(data))
                    continue
                if not batch.add_operation(self._put_page, chunk, data):
                    break
        batch.wait()

        if whole_md5 is not None:
            self.blob_service.set_blob_properties(
                self.container_name, self.blob_name,
                content_settings=self.content_settings,
                blob_content_md5=encode_md5_digest(whole_md5),
            )
        written = len(plan) - skipped
        logger.info(f"Uploaded {self.blob_name}: {written} page range(s) written, {skipped} empty skipped")
        return written

    def _put_page(self, chunk: ChunkDescriptor, data: bytes):
        self.blob_service.put_page(
            self.container_name, self.blob_name, data, chunk.offset, chunk.end,
            content_md5=self._transactional_md5(data),
        )
        self.speed_summary.increment(len(data))
