"""
Domain entities package.
"""

from .blob_descriptor import BlobDescriptor
from .chunk import Chunk, ChunkObjectInfo, expected_chunk_count
from .stage import Stage

__all__ = [
    "BlobDescriptor",
    "Chunk",
    "ChunkObjectInfo",
    "Stage",
    "expected_chunk_count",
]
