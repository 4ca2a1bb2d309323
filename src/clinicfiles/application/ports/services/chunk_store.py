"""
Chunk store interface for externally stored file objects.
"""

from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional

from ....domain.entities.chunk import Chunk, ChunkObjectInfo


class ChunkStore(ABC):
    """Abstract store of ordered binary chunks addressed by object id.

    An object becomes visible to ``get_object_info`` only once finalized;
    chunks appended to an object that is never finalized are orphans.
    """

    @property
    @abstractmethod
    def store_name(self) -> str:
        """Name recorded in chunked references pointing into this store."""
        pass

    @abstractmethod
    async def create_object(self) -> str:
        """Allocate a new object id."""
        pass

    @abstractmethod
    async def append_chunk(self, object_id: str, sequence_index: int, data: bytes) -> None:
        """Persist one chunk."""
        pass

    @abstractmethod
    async def finalize_object(self, info: ChunkObjectInfo) -> ChunkObjectInfo:
        """Record the object's metadata. Finalizing the same object twice is a no-op."""
        pass

    @abstractmethod
    def read_chunks(self, object_id: str) -> AsyncIterator[Chunk]:
        """Yield stored chunks ordered by sequence index."""
        pass

    @abstractmethod
    async def get_object_info(self, object_id: str) -> Optional[ChunkObjectInfo]:
        """Metadata of a finalized object, or None."""
        pass

    @abstractmethod
    async def delete_object(self, object_id: str) -> bool:
        """Delete the object and all of its chunks. Returns whether anything existed."""
        pass
