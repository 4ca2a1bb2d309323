"""InMemoryChunkStore: dict-based chunk storage for development and testing."""

import uuid
from typing import AsyncIterator, Dict, List, Optional

from clinicfiles.application.ports.services.chunk_store import ChunkStore
from clinicfiles.core.exceptions import ChunkSequenceError
from clinicfiles.domain.entities.chunk import Chunk, ChunkObjectInfo


class InMemoryChunkStore(ChunkStore):
    """In-memory chunk store for development and testing."""

    def __init__(self, store_name: str = "patient_files") -> None:
        self._store_name = store_name
        self._chunks: Dict[str, Dict[int, bytes]] = {}
        self._objects: Dict[str, ChunkObjectInfo] = {}

    @property
    def store_name(self) -> str:
        return self._store_name

    async def create_object(self) -> str:
        return uuid.uuid4().hex

    async def append_chunk(self, object_id: str, sequence_index: int, data: bytes) -> None:
        chunks = self._chunks.setdefault(object_id, {})
        if sequence_index in chunks:
            raise ChunkSequenceError(object_id, f"chunk {sequence_index} already stored")
        chunks[sequence_index] = bytes(data)

    async def finalize_object(self, info: ChunkObjectInfo) -> ChunkObjectInfo:
        self._objects[info.object_id] = info
        return info

    async def read_chunks(self, object_id: str) -> AsyncIterator[Chunk]:
        chunks = self._chunks.get(object_id, {})
        for index in sorted(chunks):
            yield Chunk(object_id=object_id, sequence_index=index, data=chunks[index])

    async def get_object_info(self, object_id: str) -> Optional[ChunkObjectInfo]:
        return self._objects.get(object_id)

    async def delete_object(self, object_id: str) -> bool:
        had_info = self._objects.pop(object_id, None) is not None
        had_chunks = self._chunks.pop(object_id, None) is not None
        return had_info or had_chunks

    def chunk_count(self, object_id: str) -> int:
        """Number of stored chunks, finalized or not."""
        return len(self._chunks.get(object_id, {}))

    def object_ids(self) -> List[str]:
        """Ids of every object with stored chunks or metadata."""
        return sorted(set(self._chunks) | set(self._objects))
