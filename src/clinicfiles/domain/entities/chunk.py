"""Chunk store entities."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict

from ...core.utils.datetime_utils import get_current_timestamp


@dataclass(frozen=True)
class Chunk:
    """One ordered segment of a chunked object."""

    object_id: str
    sequence_index: int
    data: bytes = field(repr=False)


@dataclass(frozen=True)
class ChunkObjectInfo:
    """Store-side metadata of a finalized chunked object."""

    object_id: str
    file_name: str
    content_type: str
    length: int
    chunk_size: int
    upload_date: datetime = field(default_factory=get_current_timestamp)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def chunk_count(self) -> int:
        """Number of chunks this object should consist of."""
        return expected_chunk_count(self.length, self.chunk_size)


def expected_chunk_count(length: int, chunk_size: int) -> int:
    """ceil(length / chunk_size); an empty object has no chunks."""
    return -(-length // chunk_size)
