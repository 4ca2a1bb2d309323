"""
Inline blob codec: small payloads embedded in the stage record.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from ...core.exceptions import ValidationError
from ...core.utils.datetime_utils import get_current_timestamp
from ...core.utils.file_utils import BytesLike
from ...domain.entities.blob_descriptor import BlobDescriptor
from ...domain.enums.storage import StorageMode


class InlineBlobCodec:
    """Pure, synchronous wrapper between bytes and inline descriptors.

    No size limit is enforced here; the strategy selector keeps inline
    payloads small.
    """

    def encode(
        self,
        data: BytesLike,
        content_type: str,
        file_name: str,
        file_id: str,
        metadata: Optional[Dict[str, Any]] = None,
        upload_date: Optional[datetime] = None,
    ) -> BlobDescriptor:
        payload = bytes(data)
        return BlobDescriptor(
            file_id=file_id,
            storage_mode=StorageMode.INLINE,
            content_type=content_type,
            file_name=file_name,
            size=len(payload),
            upload_date=upload_date or get_current_timestamp(),
            metadata=dict(metadata or {}),
            inline_payload=payload,
        )

    def decode(self, descriptor: BlobDescriptor) -> bytes:
        if not descriptor.is_inline or descriptor.inline_payload is None:
            raise ValidationError(
                f"File '{descriptor.file_id}' is not stored inline",
                {"file_id": descriptor.file_id, "storage_mode": descriptor.storage_mode.value},
            )
        return descriptor.inline_payload
