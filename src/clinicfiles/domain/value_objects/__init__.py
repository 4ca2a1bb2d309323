"""
Value objects package for domain layer.
"""

from .attachment_point import AttachmentPoint
from .chunked_reference import ChunkedReference

__all__ = [
    "AttachmentPoint",
    "ChunkedReference",
]
