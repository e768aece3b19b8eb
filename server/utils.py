"""Utility helper functions for the range server."""

from typing import Optional, Tuple
from urllib.parse import quote

from common.exceptions import RangeNotSatisfiable


def parse_range_header(header: Optional[str], size: int) -> Optional[Tuple[int, int]]:
    """
    Parse an HTTP Range header into a half-open byte range.

    Only the first range of a multi-range request is honoured. A last-byte
    position past the end of the file is clamped to the file.

    Args:
        header: Raw Range header value (e.g., "bytes=0-499", "bytes=500-", "bytes=-500")
        size: File size in bytes

    Returns:
        (start, end) with end exclusive, or None when no header was sent

    Raises:
        RangeNotSatisfiable: If the header is malformed or selects no bytes
    """
    if header is None:
        return None

    unit, sep, ranges = header.strip().partition('=')
    if not sep or unit.strip().lower() != 'bytes':
        raise RangeNotSatisfiable(0, 0, size)

    first = ranges.split(',')[0].strip()
    first_text, dash, last_text = first.partition('-')
    if not dash:
        raise RangeNotSatisfiable(0, 0, size)

    try:
        if not first_text:
            suffix = int(last_text)
            if suffix <= 0:
                raise RangeNotSatisfiable(0, 0, size)
            return max(0, size - suffix), size

        start = int(first_text)
        end = size if not last_text else min(int(last_text), size - 1) + 1
    except ValueError:
        raise RangeNotSatisfiable(0, 0, size)

    if start < 0 or end <= start:
        raise RangeNotSatisfiable(start, max(end, start), size)
    return start, end


def content_disposition(filename: str) -> str:
    """Attachment disposition with an ASCII fallback and an RFC 5987 UTF-8 name."""
    fallback = filename.encode('ascii', 'replace').decode('ascii').replace('"', "'")
    return f'attachment; filename="{fallback}"; filename*=UTF-8\'\'{quote(filename)}'
