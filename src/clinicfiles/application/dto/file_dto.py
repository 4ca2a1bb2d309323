"""File DTOs exchanged with the transport layer.

Uploaded metadata is an open mapping; it is validated here at the boundary
and passed through opaquely afterwards.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, AsyncIterator, Dict, Optional, Union

from ...core.exceptions import ValidationError
from ...domain.entities.blob_descriptor import BlobDescriptor
from ...domain.enums.storage import SourceEncoding
from ...domain.value_objects.attachment_point import AttachmentPoint
from ...domain.value_objects.chunked_reference import ChunkedReference

FileSource = Union[bytes, bytearray, memoryview, str]

_SCALAR_TYPES = (str, int, float, bool, datetime, type(None))


def validate_metadata(metadata: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Check that metadata maps string keys to scalars or arrays of scalars."""
    if metadata is None:
        return {}
    if not isinstance(metadata, dict):
        raise ValidationError("Metadata must be a mapping", {"field": "metadata"})

    cleaned: Dict[str, Any] = {}
    for key, value in metadata.items():
        # Keys become dotted paths in atomic updates
        if not isinstance(key, str) or not key or "." in key or key.startswith("$"):
            raise ValidationError(
                f"Invalid metadata key: {key!r}", {"field": "metadata", "key": key}
            )
        if isinstance(value, (list, tuple)):
            if not all(isinstance(item, _SCALAR_TYPES) for item in value):
                raise ValidationError(
                    f"Metadata '{key}' must contain only scalar values",
                    {"field": "metadata", "key": key},
                )
            cleaned[key] = list(value)
        elif isinstance(value, _SCALAR_TYPES):
            cleaned[key] = value
        else:
            raise ValidationError(
                f"Metadata '{key}' has unsupported type {type(value).__name__}",
                {"field": "metadata", "key": key},
            )
    return cleaned


@dataclass
class StoreFileRequest:
    """Request DTO for storing one file at an attachment point."""

    attachment_point: AttachmentPoint
    source: FileSource
    content_type: str
    file_name: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    file_id: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.source, (bytes, bytearray, memoryview, str)):
            raise ValidationError(
                "File source must be bytes or a base64 string",
                {"field": "source", "type": type(self.source).__name__},
            )
        if not self.file_name or not self.file_name.strip():
            raise ValidationError("file_name is required", {"field": "file_name"})
        if self.file_id is None:
            self.file_id = uuid.uuid4().hex
        elif not self.file_id.strip():
            raise ValidationError("file_id cannot be blank", {"field": "file_id"})
        self.metadata = validate_metadata(self.metadata)

    @property
    def source_encoding(self) -> SourceEncoding:
        """Base64 for text sources, binary otherwise."""
        if isinstance(self.source, str):
            return SourceEncoding.BASE64
        return SourceEncoding.BINARY


@dataclass
class ResolvedFile:
    """A descriptor located at its attachment point."""

    attachment_point: AttachmentPoint
    descriptor: BlobDescriptor

    @property
    def data(self) -> Optional[bytes]:
        """Embedded bytes for inline files."""
        return self.descriptor.inline_payload

    @property
    def reference(self) -> Optional[ChunkedReference]:
        """Chunk store reference for chunked files."""
        return self.descriptor.chunked_reference


@dataclass
class FetchedFile:
    """Response DTO with a file's full content."""

    data: bytes
    content_type: str
    file_name: str


@dataclass
class FileStream:
    """Response DTO with a file's content as a lazy chunk sequence."""

    descriptor: BlobDescriptor
    chunks: AsyncIterator[bytes]

    @property
    def content_type(self) -> str:
        return self.descriptor.content_type

    @property
    def file_name(self) -> str:
        return self.descriptor.file_name

    @property
    def size(self) -> int:
        return self.descriptor.size
