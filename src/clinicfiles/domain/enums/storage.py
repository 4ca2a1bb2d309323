"""
Storage mode and upload source enums.
"""

from enum import Enum


class StorageMode(str, Enum):
    """Where a file's bytes live."""
    INLINE = "inline"    # Embedded in the stage record
    CHUNKED = "chunked"  # Ordered chunks in the external chunk store


class SourceEncoding(str, Enum):
    """How an upload's payload arrives."""
    BINARY = "binary"  # Already-decoded bytes
    BASE64 = "base64"  # Base64 text, size only estimated until decoded
