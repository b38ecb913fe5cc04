"""Partitioning of a payload into ordered, aligned chunks."""
from dataclasses import dataclass, field
from typing import Iterator, List

from ..errors import AlignmentError


@dataclass(frozen=True)
class ChunkDescriptor:
    sequence: int
    offset: int
    length: int

    @property
    def end(self) -> int:
        """Inclusive end offset, as used in Range headers."""
        return self.offset + self.length - 1


@dataclass(frozen=True)
class TransferPlan:
    """Chunks covering [0, total_size) exactly, in offset order."""
    total_size: int
    chunk_size: int
    alignment: int = 1
    concurrency: int = 1
    chunks: List[ChunkDescriptor] = field(default_factory=list)

    @classmethod
    def build(cls, total_size: int, chunk_size: int, alignment: int = 1,
              concurrency: int = 1) -> 'TransferPlan':
        """Split ``total_size`` bytes into chunks of at most ``chunk_size``.

        Raises:
            AlignmentError: If ``total_size`` or ``chunk_size`` is not a
                multiple of ``alignment``. Nothing is rounded.
            ValueError: On negative sizes or a non-positive chunk size.
        """
        if total_size < 0:
            raise ValueError(f"total_size must be >= 0, got {total_size}")
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be > 0, got {chunk_size}")
        if alignment < 1:
            raise ValueError(f"alignment must be >= 1, got {alignment}")
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        if chunk_size % alignment:
            raise AlignmentError(
                f"Chunk size {chunk_size} is not a multiple of the {alignment}-byte boundary"
            )
        if total_size % alignment:
            raise AlignmentError(
                f"Size {total_size} is not a multiple of the {alignment}-byte boundary"
            )

        chunks = []
        offset = 0
        sequence = 0
        while offset < total_size:
            length = min(chunk_size, total_size - offset)
            chunks.append(ChunkDescriptor(sequence, offset, length))
            offset += length
            sequence += 1

        return cls(total_size, chunk_size, alignment, concurrency, chunks)

    def __iter__(self) -> Iterator[ChunkDescriptor]:
        return iter(self.chunks)

    def __len__(self) -> int:
        return len(self.chunks)
