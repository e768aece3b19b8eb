"""Map a byte range of a file onto the chunks that hold it."""

from typing import List, Sequence

from common.exceptions import RangeNotSatisfiable
from common.types import ChunkRecord, ChunkSlice


def resolve_range(
    chunks: Sequence[ChunkRecord],
    start: int,
    end: int,
    file_size: int,
) -> List[ChunkSlice]:
    """
    Select the chunks overlapping [start, end) and the window of each to keep.

    Args:
        chunks: Chunk records of the file, ordered by index
        start: First byte wanted
        end: One past the last byte wanted
        file_size: Size of the file in bytes

    Returns:
        Slices in increasing chunk index order; inner offsets are relative to
        each chunk's plaintext

    Raises:
        RangeNotSatisfiable: If start >= file_size, end > file_size or start >= end
    """
    if start < 0 or start >= file_size or end > file_size or start >= end:
        raise RangeNotSatisfiable(start, end, file_size)

    slices = []
    for chunk in chunks:
        if chunk.range.start >= end or chunk.range.end <= start:
            continue
        slices.append(
            ChunkSlice(
                chunk=chunk,
                inner_start=max(0, start - chunk.range.start),
                inner_end=min(chunk.range.end, end) - chunk.range.start,
            )
        )
    return slices
