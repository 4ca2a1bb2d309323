"""
File storage service: the caller-facing operations of the engine.

Store clients are injected; the service owns no connection state.
"""

import logging
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional

from ...core.config import FileStorageSettings
from ...core.exceptions import AttachConflictError, DuplicateFileError, NotFoundError
from ...core.utils.file_utils import format_size, iter_byte_slices
from ...domain.entities.blob_descriptor import BlobDescriptor
from ...domain.entities.chunk import ChunkObjectInfo
from ...domain.enums.storage import SourceEncoding, StorageMode
from ...domain.value_objects.attachment_point import AttachmentPoint
from ...domain.value_objects.chunked_reference import ChunkedReference
from ..dto.file_dto import (
    FetchedFile,
    FileSource,
    FileStream,
    StoreFileRequest,
    validate_metadata,
)
from ..ports.repositories.stage_file_repo import StageFileRepository
from ..ports.services.chunk_store import ChunkStore
from ..storage.base64_stream import Base64ChunkStream
from ..storage.chunked_io import ChunkedBlobReader, ChunkedBlobWriter
from ..storage.inline_codec import InlineBlobCodec
from ..storage.reference_manager import BlobReferenceManager
from ..storage.strategy import StoragePlan, StorageStrategySelector

logger = logging.getLogger("clinicfiles")


class FileStorageService:
    """Stores, fetches, streams, lists and removes stage files."""

    def __init__(
        self,
        repository: StageFileRepository,
        chunk_store: ChunkStore,
        settings: Optional[FileStorageSettings] = None,
    ) -> None:
        self.settings = settings or FileStorageSettings()
        self._chunk_store = chunk_store
        self._selector = StorageStrategySelector.from_settings(self.settings)
        self._codec = InlineBlobCodec()
        self._writer = ChunkedBlobWriter(chunk_store, self.settings.chunk_size_bytes)
        self._reader = ChunkedBlobReader(chunk_store)
        self._references = BlobReferenceManager(repository, chunk_store)

    @property
    def selector(self) -> StorageStrategySelector:
        return self._selector

    @property
    def references(self) -> BlobReferenceManager:
        return self._references

    async def store_file(
        self,
        attachment_point: AttachmentPoint,
        source: FileSource,
        content_type: str,
        file_name: str,
        metadata: Optional[Dict[str, Any]] = None,
        file_id: Optional[str] = None,
    ) -> BlobDescriptor:
        """Validate, pick a tier, write the payload and attach its descriptor.

        Every validation (identifiers, metadata, content type, size, stage
        existence, duplicate id) runs before the first store mutation.
        """
        request = StoreFileRequest(
            attachment_point=attachment_point,
            source=source,
            content_type=content_type,
            file_name=file_name,
            metadata=metadata or {},
            file_id=file_id,
        )
        plan = self._plan(request)

        stage = await self._references.get_stage(attachment_point)
        if stage.has_file(request.file_id):
            raise DuplicateFileError(request.file_id, str(attachment_point))

        descriptor = await self._write_payload(request, plan)
        if descriptor.is_inline:
            await self._references.attach(attachment_point, descriptor)
            return descriptor

        try:
            await self._references.attach(attachment_point, descriptor)
        except (NotFoundError, DuplicateFileError, AttachConflictError):
            # The stage vanished or the id was taken while we were writing
            await self._writer.discard(descriptor.chunked_reference.object_id)
            raise
        return descriptor

    async def fetch_file(self, attachment_point: AttachmentPoint, file_id: str) -> FetchedFile:
        """Full content of a file, reassembled for chunked storage."""
        resolved = await self._references.resolve(attachment_point, file_id)
        descriptor = resolved.descriptor
        if descriptor.is_inline:
            data = self._codec.decode(descriptor)
        else:
            handle = await self._reader.open(resolved.reference.object_id)
            data = await self._reader.read_all(handle)
        return FetchedFile(
            data=data,
            content_type=descriptor.content_type,
            file_name=descriptor.file_name,
        )

    async def open_file_stream(
        self, attachment_point: AttachmentPoint, file_id: str
    ) -> FileStream:
        """Content as a lazy chunk sequence, for serving large files."""
        resolved = await self._references.resolve(attachment_point, file_id)
        descriptor = resolved.descriptor
        if descriptor.is_inline:
            chunks = _single_chunk(self._codec.decode(descriptor))
        else:
            handle = await self._reader.open(resolved.reference.object_id)
            chunks = self._reader.read(handle)
        return FileStream(descriptor=descriptor, chunks=chunks)

    async def remove_file(self, attachment_point: AttachmentPoint, file_id: str) -> bool:
        return await self._references.detach(attachment_point, file_id)

    async def list_files(self, patient_id: str) -> List[BlobDescriptor]:
        return await self._references.list_by_patient(patient_id)

    async def update_file_metadata(
        self, attachment_point: AttachmentPoint, file_id: str, metadata: Dict[str, Any]
    ) -> BlobDescriptor:
        """Metadata-only update; payload and storage mode never change."""
        return await self._references.update_metadata(
            attachment_point, file_id, validate_metadata(metadata)
        )

    async def get_object_info(self, object_id: str) -> ChunkObjectInfo:
        info = await self._chunk_store.get_object_info(object_id)
        if info is None:
            raise NotFoundError(
                f"Chunked object '{object_id}' not found", {"object_id": object_id}
            )
        return info

    async def write_payload(self, request: StoreFileRequest) -> BlobDescriptor:
        """Validate and write a payload to its tier without attaching it anywhere.

        The caller owns the returned descriptor; a chunked object that never
        gets referenced is an orphan.
        """
        return await self._write_payload(request, self._plan(request))

    def _plan(self, request: StoreFileRequest) -> StoragePlan:
        return self._selector.plan(
            request.content_type, len(request.source), request.source_encoding
        )

    async def _write_payload(self, request: StoreFileRequest, plan: StoragePlan) -> BlobDescriptor:
        if plan.mode is StorageMode.INLINE:
            return self._encode_inline(request, plan)
        logger.info(
            f"Large file detected (~{format_size(plan.estimated_size)}), chunking {request.file_id}"
        )
        return await self._write_chunked(request, plan)

    def _encode_inline(self, request: StoreFileRequest, plan: StoragePlan) -> BlobDescriptor:
        if plan.source_encoding is SourceEncoding.BASE64:
            data = Base64ChunkStream(request.source, self.settings.chunk_size_bytes).read_all()
        else:
            data = request.source
        return self._codec.encode(
            data,
            content_type=plan.content_type,
            file_name=request.file_name,
            file_id=request.file_id,
            metadata={"uploaded_by": self.settings.default_uploaded_by, **request.metadata},
        )

    async def _write_chunked(self, request: StoreFileRequest, plan: StoragePlan) -> BlobDescriptor:
        point = request.attachment_point
        metadata = {
            "uploaded_by": self.settings.default_uploaded_by,
            **request.metadata,
            "patient_id": point.patient_id,
            "episode_id": point.episode_id,
            "stage_id": point.stage_id,
            "file_id": request.file_id,
        }

        pieces: Iterable[bytes]
        if plan.source_encoding is SourceEncoding.BASE64:
            pieces = Base64ChunkStream(request.source, self.settings.chunk_size_bytes)
        else:
            pieces = iter_byte_slices(request.source, self.settings.chunk_size_bytes)

        info = await self._writer.write_all(
            request.file_name, plan.content_type, pieces, metadata
        )
        return BlobDescriptor(
            file_id=request.file_id,
            storage_mode=StorageMode.CHUNKED,
            content_type=plan.content_type,
            file_name=request.file_name,
            size=info.length,
            upload_date=info.upload_date,
            metadata=metadata,
            chunked_reference=ChunkedReference(
                store_name=self._chunk_store.store_name, object_id=info.object_id
            ),
        )


async def _single_chunk(data: bytes) -> AsyncIterator[bytes]:
    yield data
