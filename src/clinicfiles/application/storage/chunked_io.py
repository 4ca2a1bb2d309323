"""
Chunked blob writer and reader.

The writer buffers at most one chunk; the reader yields one stored chunk
at a time. Neither ever holds a whole payload.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Iterable, Optional

from ...core.exceptions import ChunkSequenceError, NotFoundError, StorageUnavailableError
from ...core.utils.datetime_utils import get_current_timestamp
from ...core.utils.file_utils import BytesLike
from ...domain.entities.chunk import ChunkObjectInfo
from ..ports.services.chunk_store import ChunkStore

logger = logging.getLogger("clinicfiles")


@dataclass
class WriteHandle:
    """State of one in-progress chunked upload. Not safe to share between writers."""

    object_id: str
    file_name: str
    content_type: str
    chunk_size: int
    metadata: Dict[str, Any] = field(default_factory=dict)
    buffer: bytearray = field(default_factory=bytearray, repr=False)
    next_index: int = 0
    length: int = 0
    info: Optional[ChunkObjectInfo] = None

    @property
    def finished(self) -> bool:
        return self.info is not None


@dataclass
class ReadHandle:
    """A finalized object opened for reading."""

    info: ChunkObjectInfo

    @property
    def object_id(self) -> str:
        return self.info.object_id


class ChunkedBlobWriter:
    """Writes a byte stream as fixed-size ordered chunks."""

    def __init__(self, store: ChunkStore, chunk_size: int) -> None:
        if chunk_size <= 0:
            raise ValueError("Chunk size must be positive")
        self._store = store
        self.chunk_size = chunk_size

    async def open(
        self,
        file_name: str,
        content_type: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> WriteHandle:
        object_id = await self._store.create_object()
        logger.debug(f"Opened chunked object {object_id} for {file_name}")
        return WriteHandle(
            object_id=object_id,
            file_name=file_name,
            content_type=content_type,
            chunk_size=self.chunk_size,
            metadata=dict(metadata or {}),
        )

    async def write(self, handle: WriteHandle, data: BytesLike) -> None:
        """Append bytes, flushing every chunk that fills up."""
        if handle.finished:
            raise ValueError(f"Chunked object {handle.object_id} is already finished")

        view = memoryview(data)
        offset = 0
        while offset < len(view):
            take = min(handle.chunk_size - len(handle.buffer), len(view) - offset)
            handle.buffer += view[offset : offset + take]
            offset += take
            if len(handle.buffer) == handle.chunk_size:
                await self._flush(handle)

    async def finish(self, handle: WriteHandle) -> str:
        """Flush the final partial chunk and finalize the object.

        Calling finish again on a finished handle returns the same id.
        """
        info = await self.finalize(handle)
        return info.object_id

    async def finalize(self, handle: WriteHandle) -> ChunkObjectInfo:
        """Like finish, but returns the stored object info."""
        if handle.info is not None:
            return handle.info

        if handle.buffer:
            await self._flush(handle)

        info = ChunkObjectInfo(
            object_id=handle.object_id,
            file_name=handle.file_name,
            content_type=handle.content_type,
            length=handle.length,
            chunk_size=handle.chunk_size,
            upload_date=get_current_timestamp(),
            metadata=handle.metadata,
        )
        try:
            handle.info = await self._store.finalize_object(info)
        except StorageUnavailableError:
            logger.warning(
                f"Finalize failed for chunked object {handle.object_id}; "
                f"{handle.next_index} chunks left orphaned"
            )
            raise

        logger.info(
            f"Stored chunked object {handle.object_id}: {handle.length} bytes "
            f"in {handle.next_index} chunks"
        )
        return handle.info

    async def write_all(
        self,
        file_name: str,
        content_type: str,
        pieces: Iterable[BytesLike],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ChunkObjectInfo:
        """Open, stream every piece, and finish.

        A store failure leaves the flushed chunks orphaned. A failure of the
        source itself (e.g. a DecodeError from ``pieces``) deletes the partial
        object before the error propagates.
        """
        handle = await self.open(file_name, content_type, metadata)
        try:
            for piece in pieces:
                await self.write(handle, piece)
            info = await self.finalize(handle)
        except StorageUnavailableError:
            raise
        except Exception:
            await self.discard(handle.object_id)
            raise
        return info

    async def discard(self, object_id: str) -> None:
        """Best-effort removal of an object that will never be referenced."""
        try:
            await self._store.delete_object(object_id)
            logger.info(f"Discarded chunked object {object_id}")
        except StorageUnavailableError as e:
            logger.error(f"Could not discard chunked object {object_id}, left orphaned: {e}")

    async def _flush(self, handle: WriteHandle) -> None:
        data = bytes(handle.buffer)
        try:
            await self._store.append_chunk(handle.object_id, handle.next_index, data)
        except StorageUnavailableError:
            logger.warning(
                f"Chunk {handle.next_index} of object {handle.object_id} failed; "
                f"{handle.next_index} earlier chunks left orphaned"
            )
            raise
        logger.debug(f"Flushed chunk {handle.next_index} of {handle.object_id} ({len(data)} bytes)")
        handle.buffer.clear()
        handle.next_index += 1
        handle.length += len(data)


class ChunkedBlobReader:
    """Reassembles chunked objects by concatenation in sequence order.

    There is no per-chunk checksum; gaps, duplicates, wrong chunk lengths
    and length mismatches raise ChunkSequenceError instead of returning
    truncated output.
    """

    def __init__(self, store: ChunkStore) -> None:
        self._store = store

    async def open(self, object_id: str) -> ReadHandle:
        info = await self._store.get_object_info(object_id)
        if info is None:
            raise NotFoundError(
                f"Chunked object '{object_id}' not found",
                {"object_id": object_id},
            )
        return ReadHandle(info=info)

    async def read(self, handle: ReadHandle) -> AsyncIterator[bytes]:
        info = handle.info
        expected_chunks = info.chunk_count
        expected_index = 0

        async for chunk in self._store.read_chunks(info.object_id):
            if chunk.sequence_index != expected_index:
                problem = "duplicate" if chunk.sequence_index < expected_index else "gap"
                raise ChunkSequenceError(
                    info.object_id,
                    f"{problem}: expected chunk {expected_index}, got {chunk.sequence_index}",
                )
            if expected_index >= expected_chunks:
                raise ChunkSequenceError(
                    info.object_id,
                    f"unexpected extra chunk {chunk.sequence_index} (expected {expected_chunks})",
                )

            if expected_index < expected_chunks - 1:
                expected_len = info.chunk_size
            else:
                expected_len = info.length - info.chunk_size * (expected_chunks - 1)
            if len(chunk.data) != expected_len:
                raise ChunkSequenceError(
                    info.object_id,
                    f"chunk {expected_index} has {len(chunk.data)} bytes, expected {expected_len}",
                )

            expected_index += 1
            yield chunk.data

        if expected_index != expected_chunks:
            raise ChunkSequenceError(
                info.object_id,
                f"missing chunks: got {expected_index} of {expected_chunks}",
            )

    async def read_all(self, handle: ReadHandle) -> bytes:
        """Concatenate the whole object; memory grows with the object size."""
        parts = [part async for part in self.read(handle)]
        return b"".join(parts)
