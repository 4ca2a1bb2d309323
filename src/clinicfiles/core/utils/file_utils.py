"""
File utility functions.
"""

from typing import Iterator, Union

BytesLike = Union[bytes, bytearray, memoryview]


def normalize_content_type(content_type: str) -> str:
    """Lower-case a MIME type and drop any parameters (``; charset=...``)."""
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def iter_byte_slices(data: BytesLike, size: int) -> Iterator[bytes]:
    """Yield consecutive slices of at most ``size`` bytes without copying the whole buffer."""
    if size <= 0:
        raise ValueError("Slice size must be positive")
    view = memoryview(data)
    for offset in range(0, len(view), size):
        yield bytes(view[offset : offset + size])


def format_size(num_bytes: int) -> str:
    """Human readable size, e.g. ``2.0MB``."""
    if num_bytes < 1024:
        return f"{num_bytes}B"
    if num_bytes < 1024 * 1024:
        return f"{num_bytes / 1024:.1f}KB"
    return f"{num_bytes / 1024 / 1024:.1f}MB"
