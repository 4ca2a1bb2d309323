"""
Blob reference manager: attaches descriptors to stages and coordinates
deletion across the stage record and the chunk store.
"""

import logging
from typing import Any, Dict, List

from ...core.exceptions import AttachConflictError, DuplicateFileError, NotFoundError
from ...domain.entities.blob_descriptor import BlobDescriptor
from ...domain.entities.stage import Stage
from ...domain.value_objects.attachment_point import AttachmentPoint
from ..dto.file_dto import ResolvedFile
from ..ports.repositories.stage_file_repo import StageFileRepository
from ..ports.services.chunk_store import ChunkStore

logger = logging.getLogger("clinicfiles")

# Conditional push is retried once when the stage exists and no duplicate is
# visible, i.e. a concurrent detach of the same file id raced with us.
_PUSH_ATTEMPTS = 2


class BlobReferenceManager:
    """Owns the descriptor lifecycle at attachment points."""

    def __init__(self, repository: StageFileRepository, chunk_store: ChunkStore) -> None:
        self._repository = repository
        self._chunk_store = chunk_store

    async def get_stage(self, point: AttachmentPoint) -> Stage:
        """Look up a stage or raise NotFoundError."""
        stage = await self._repository.find_stage(point)
        if stage is None:
            raise NotFoundError(
                f"Stage not found at {point}",
                {
                    "patient_id": point.patient_id,
                    "episode_id": point.episode_id,
                    "stage_id": point.stage_id,
                },
            )
        return stage

    async def attach(self, point: AttachmentPoint, descriptor: BlobDescriptor) -> Stage:
        """Append a descriptor to the stage's file list atomically."""
        for _ in range(_PUSH_ATTEMPTS):
            stage = await self._repository.push_file(point, descriptor)
            if stage is not None:
                logger.info(
                    f"Attached file {descriptor.file_id} ({descriptor.storage_mode.value}, "
                    f"{descriptor.size} bytes) to {point}"
                )
                return stage

            # Nothing matched: tell a missing coordinate from a duplicate id
            current = await self.get_stage(point)
            if current.has_file(descriptor.file_id):
                raise DuplicateFileError(descriptor.file_id, str(point))

        logger.warning(
            f"Attach of file {descriptor.file_id} to {point} lost {_PUSH_ATTEMPTS} races "
            f"with concurrent stage updates"
        )
        raise AttachConflictError(descriptor.file_id, str(point), _PUSH_ATTEMPTS)

    async def resolve(self, point: AttachmentPoint, file_id: str) -> ResolvedFile:
        """Find a descriptor; inline bytes or the chunk reference come with it."""
        stage = await self.get_stage(point)
        descriptor = stage.find_file(file_id)
        if descriptor is None:
            raise NotFoundError(
                f"File '{file_id}' not found at {point}",
                {"file_id": file_id, "attachment_point": str(point)},
            )
        return ResolvedFile(attachment_point=point, descriptor=descriptor)

    async def detach(self, point: AttachmentPoint, file_id: str) -> bool:
        """Remove a descriptor, deleting chunk data first.

        A crash between the two steps leaves an orphaned chunk object rather
        than a reference to deleted data. Returns False if nothing matched.
        """
        stage = await self._repository.find_stage(point)
        descriptor = stage.find_file(file_id) if stage else None
        if descriptor is None:
            logger.info(f"Detach skipped: file {file_id} not found at {point}")
            return False

        if descriptor.is_chunked and descriptor.chunked_reference is not None:
            object_id = descriptor.chunked_reference.object_id
            deleted = await self._chunk_store.delete_object(object_id)
            if not deleted:
                logger.warning(
                    f"Chunked object {object_id} for file {file_id} was already gone"
                )

        removed = await self._repository.pull_file(point, file_id)
        if removed:
            logger.info(f"Detached file {file_id} from {point}")
        return removed

    async def update_metadata(
        self, point: AttachmentPoint, file_id: str, metadata: Dict[str, Any]
    ) -> BlobDescriptor:
        """Merge metadata into a descriptor without touching its payload."""
        stage = await self._repository.set_file_metadata(point, file_id, metadata)
        descriptor = stage.find_file(file_id) if stage else None
        if descriptor is None:
            raise NotFoundError(
                f"File '{file_id}' not found at {point}",
                {"file_id": file_id, "attachment_point": str(point)},
            )
        logger.info(f"Updated metadata of file {file_id} at {point}: {sorted(metadata)}")
        return descriptor

    async def list_by_patient(self, patient_id: str) -> List[BlobDescriptor]:
        """All descriptors of a patient across every episode and stage."""
        stages = await self._repository.list_patient_stages(patient_id)
        return [descriptor for stage in stages for descriptor in stage.files]
