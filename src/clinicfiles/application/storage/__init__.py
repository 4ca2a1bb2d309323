"""
Hybrid blob storage engine components.
"""

from .base64_stream import Base64ChunkStream, estimate_decoded_size
from .chunked_io import ChunkedBlobReader, ChunkedBlobWriter, ReadHandle, WriteHandle
from .inline_codec import InlineBlobCodec
from .reference_manager import BlobReferenceManager
from .strategy import StoragePlan, StorageStrategySelector

__all__ = [
    "Base64ChunkStream",
    "BlobReferenceManager",
    "ChunkedBlobReader",
    "ChunkedBlobWriter",
    "InlineBlobCodec",
    "ReadHandle",
    "StoragePlan",
    "StorageStrategySelector",
    "WriteHandle",
    "estimate_decoded_size",
]
