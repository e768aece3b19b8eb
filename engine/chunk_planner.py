"""Chunk boundary planning and validation of stored chunk layouts."""

from typing import List, Sequence

from common.exceptions import InvariantViolation
from common.types import ChunkPlan, ChunkRecord


def chunk_count(file_size: int, chunk_size: int) -> int:
    """Number of chunks needed for a file: ceil(file_size / chunk_size)."""
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if file_size < 0:
        raise ValueError(f"file_size must be non-negative, got {file_size}")
    return -(-file_size // chunk_size)


def plan_chunks(file_size: int, chunk_size: int) -> List[ChunkPlan]:
    """
    Split [0, file_size) into consecutive ranges of at most chunk_size bytes.

    The plan depends only on its arguments, so upload and later reads agree on
    chunk boundaries without touching the original file.
    """
    return [
        ChunkPlan(
            index=index,
            start=index * chunk_size,
            end=min((index + 1) * chunk_size, file_size),
        )
        for index in range(chunk_count(file_size, chunk_size))
    ]


def validate_layout(chunks: Sequence[ChunkRecord], file_size: int) -> None:
    """
    Check that index-ordered chunks partition [0, file_size).

    Raises:
        InvariantViolation: If there are no chunks, indices are not 0..n-1, ranges
            are not contiguous, or their lengths do not add up to file_size
    """
    if not chunks:
        raise InvariantViolation("File has no chunk records")

    expected_start = 0
    for position, chunk in enumerate(chunks):
        if chunk.index != position:
            raise InvariantViolation(
                f"Chunk index {chunk.index} found at position {position} [file_id={chunk.file_id}]"
            )
        if chunk.range.start != expected_start or chunk.range.end < chunk.range.start:
            raise InvariantViolation(
                f"Chunk {chunk.index} range [{chunk.range.start}, {chunk.range.end}) "
                f"does not continue from offset {expected_start} [file_id={chunk.file_id}]"
            )
        expected_start = chunk.range.end

    if expected_start != file_size:
        raise InvariantViolation(
            f"Chunks cover {expected_start} bytes but file size is {file_size} "
            f"[file_id={chunks[0].file_id}]"
        )
