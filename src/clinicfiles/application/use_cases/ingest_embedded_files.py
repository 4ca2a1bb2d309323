"""Ingest files embedded as base64 inside a patient payload.

Walks episodes -> stages -> files of a patient document that is about to be
created and turns every base64 ``binary_data`` into a stored descriptor.
"""

import logging
from typing import Any, Dict, List, Optional

from bson import ObjectId

from ...core.exceptions import FileStorageError, ValidationError
from ...domain.entities.blob_descriptor import BlobDescriptor
from ...domain.value_objects.attachment_point import AttachmentPoint
from ..dto.file_dto import StoreFileRequest
from ..services.file_storage_service import FileStorageService

logger = logging.getLogger("clinicfiles")


def _extract_base64(binary: Any) -> Optional[str]:
    """Accept either a bare base64 string or ``{"base64": ...}`` / ``{"data": ...}``."""
    if isinstance(binary, str):
        return binary
    if isinstance(binary, dict):
        value = binary.get("base64") or binary.get("data")
        if isinstance(value, str):
            return value
    return None


class IngestEmbeddedFilesUseCase:
    """Use case for storing base64 files embedded in new patient episodes.

    Routing uses the base64 threshold. Files that carry no data at all are
    dropped; stages without an id get one.
    """

    def __init__(self, file_storage: FileStorageService):
        self._file_storage = file_storage

    async def execute(self, patient_id: str, episodes: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Return copies of ``episodes`` whose stage ``files`` are BlobDescriptors."""
        result: List[Dict[str, Any]] = []
        for episode in episodes or []:
            episode_id = episode.get("episode_id")
            stages = []
            for stage in episode.get("stages") or []:
                stage_id = stage.get("stage_id") or str(ObjectId())
                point = AttachmentPoint(patient_id, episode_id, stage_id)

                files: List[BlobDescriptor] = []
                for entry in stage.get("files") or []:
                    descriptor = await self._ingest_file(point, entry)
                    if descriptor is not None:
                        files.append(descriptor)
                stages.append({**stage, "stage_id": stage_id, "files": files})

            result.append({**episode, "stages": stages})
        return result

    async def _ingest_file(
        self, point: AttachmentPoint, entry: Any
    ) -> Optional[BlobDescriptor]:
        if isinstance(entry, BlobDescriptor):
            return entry

        file_id = entry.get("file_id")
        if not file_id:
            raise ValidationError("file_id is required", {"field": "file_id"})

        binary = entry.get("binary_data")
        encoded = _extract_base64(binary)
        if encoded is None:
            # Only files that carry data are kept
            logger.debug(f"Skipping file {file_id}: no embedded data")
            return None

        details = binary if isinstance(binary, dict) else {}
        try:
            request = StoreFileRequest(
                attachment_point=point,
                source=encoded,
                content_type=details.get("content_type") or entry.get("file_type") or "",
                file_name=details.get("file_name") or file_id,
                metadata=entry.get("metadata") or {},
                file_id=file_id,
            )
            return await self._file_storage.write_payload(request)
        except FileStorageError as e:
            logger.error(f"Error processing file {file_id}: {e.message}")
            raise
