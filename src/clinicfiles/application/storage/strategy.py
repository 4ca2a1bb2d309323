"""
Inline vs chunked storage selection.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List

from ...core.config import FileStorageSettings
from ...core.exceptions import SizeExceededError, UnsupportedMediaTypeError
from ...core.utils.file_utils import normalize_content_type
from ...domain.enums.storage import SourceEncoding, StorageMode
from .base64_stream import estimate_decoded_size

logger = logging.getLogger("clinicfiles")


@dataclass(frozen=True)
class StoragePlan:
    """Outcome of validating and sizing one upload."""

    mode: StorageMode
    content_type: str
    source_encoding: SourceEncoding
    estimated_size: int


class StorageStrategySelector:
    """Decides per upload whether bytes are embedded or chunked.

    Raw uploads and base64 uploads are judged against separate thresholds;
    sizes at or below the threshold stay inline.
    """

    def __init__(
        self,
        inline_threshold_bytes: int,
        base64_inline_threshold_bytes: int,
        max_upload_bytes: int,
        allowed_content_types: Iterable[str],
    ) -> None:
        self.inline_threshold_bytes = inline_threshold_bytes
        self.base64_inline_threshold_bytes = base64_inline_threshold_bytes
        self.max_upload_bytes = max_upload_bytes
        self.allowed_content_types: List[str] = [
            normalize_content_type(ct) for ct in allowed_content_types
        ]

    @classmethod
    def from_settings(cls, settings: FileStorageSettings) -> "StorageStrategySelector":
        return cls(
            inline_threshold_bytes=settings.inline_threshold_bytes,
            base64_inline_threshold_bytes=settings.base64_inline_threshold_bytes,
            max_upload_bytes=settings.max_upload_bytes,
            allowed_content_types=settings.allowed_content_types,
        )

    def validate_content_type(self, content_type: str) -> str:
        """Return the normalized content type or raise UnsupportedMediaTypeError."""
        normalized = normalize_content_type(content_type)
        if normalized not in self.allowed_content_types:
            raise UnsupportedMediaTypeError(content_type or "", self.allowed_content_types)
        return normalized

    def threshold_for(self, source_encoding: SourceEncoding) -> int:
        if source_encoding is SourceEncoding.BASE64:
            return self.base64_inline_threshold_bytes
        return self.inline_threshold_bytes

    def estimate_size(self, payload_length: int, source_encoding: SourceEncoding) -> int:
        """Decoded size in bytes; estimated from encoded length for base64."""
        if source_encoding is SourceEncoding.BASE64:
            return estimate_decoded_size(payload_length)
        return payload_length

    def decide(self, payload_size_bytes: int, source_encoding: SourceEncoding) -> StorageMode:
        """Pure size-based decision; ties resolve to inline."""
        if payload_size_bytes < 0:
            raise ValueError("Payload size cannot be negative")
        if payload_size_bytes <= self.threshold_for(SourceEncoding(source_encoding)):
            return StorageMode.INLINE
        return StorageMode.CHUNKED

    def plan(
        self, content_type: str, payload_length: int, source_encoding: SourceEncoding
    ) -> StoragePlan:
        """Validate the content type, enforce the hard maximum, then decide."""
        normalized = self.validate_content_type(content_type)
        size = self.estimate_size(payload_length, source_encoding)
        if size > self.max_upload_bytes:
            raise SizeExceededError(size, self.max_upload_bytes)

        mode = self.decide(size, source_encoding)
        logger.debug(
            f"Storage decision: {mode.value} for {source_encoding.value} payload "
            f"of ~{size} bytes (threshold {self.threshold_for(source_encoding)})"
        )
        return StoragePlan(
            mode=mode,
            content_type=normalized,
            source_encoding=source_encoding,
            estimated_size=size,
        )
