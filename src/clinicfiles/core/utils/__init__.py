"""
Utility functions shared across the engine.
"""

from .datetime_utils import get_current_timestamp
from .file_utils import format_size, iter_byte_slices, normalize_content_type

__all__ = [
    "get_current_timestamp",
    "format_size",
    "iter_byte_slices",
    "normalize_content_type",
]
