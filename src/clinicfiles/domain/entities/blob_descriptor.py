"""BlobDescriptor domain entity describing one stored file."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Optional

from ...core.exceptions import ValidationError
from ...core.utils.datetime_utils import get_current_timestamp
from ..enums.storage import StorageMode
from ..value_objects.chunked_reference import ChunkedReference


@dataclass
class BlobDescriptor:
    """One stored file inside a stage's file list.

    Exactly one of ``inline_payload`` / ``chunked_reference`` is set, and
    which one must agree with ``storage_mode``.
    """

    file_id: str
    storage_mode: StorageMode
    content_type: str
    file_name: str
    size: int
    upload_date: datetime = field(default_factory=get_current_timestamp)
    metadata: Dict[str, Any] = field(default_factory=dict)
    inline_payload: Optional[bytes] = field(default=None, repr=False)
    chunked_reference: Optional[ChunkedReference] = None

    def __post_init__(self) -> None:
        """Validate descriptor invariants."""
        if not self.file_id:
            raise ValidationError("file_id is required", {"field": "file_id"})
        self.storage_mode = StorageMode(self.storage_mode)
        if self.size < 0:
            raise ValidationError(
                f"File size cannot be negative, got {self.size}",
                {"field": "size", "value": self.size},
            )

        has_payload = self.inline_payload is not None
        has_reference = self.chunked_reference is not None
        if self.storage_mode is StorageMode.INLINE and (not has_payload or has_reference):
            raise ValidationError(
                "Inline descriptor must carry a payload and no chunk reference",
                {"file_id": self.file_id},
            )
        if self.storage_mode is StorageMode.CHUNKED and (not has_reference or has_payload):
            raise ValidationError(
                "Chunked descriptor must carry a chunk reference and no payload",
                {"file_id": self.file_id},
            )

    @property
    def is_inline(self) -> bool:
        """Check if the bytes are embedded in the record."""
        return self.storage_mode is StorageMode.INLINE

    @property
    def is_chunked(self) -> bool:
        """Check if the bytes live in the chunk store."""
        return self.storage_mode is StorageMode.CHUNKED

    def with_metadata(self, updates: Dict[str, Any]) -> "BlobDescriptor":
        """Return a copy with ``updates`` merged into the metadata."""
        return replace(self, metadata={**self.metadata, **updates})
