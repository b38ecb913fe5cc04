from .batch import BatchOperation
from .download import OrderedChunkWriter, RangeDownloader
from .plan import ChunkDescriptor, TransferPlan
from .speed_summary import SpeedSummary
from .upload import BlockBlobUploader, PageBlobUploader, generate_block_id_prefix, get_block_id

__all__ = [
    'BatchOperation',
    'BlockBlobUploader',
    'ChunkDescriptor',
    'OrderedChunkWriter',
    'PageBlobUploader',
    'RangeDownloader',
    'SpeedSummary',
    'TransferPlan',
    'generate_block_id_prefix',
    'get_block_id',
]
