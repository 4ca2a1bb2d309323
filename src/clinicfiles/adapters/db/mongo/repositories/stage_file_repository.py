"""
MongoDB implementation of StageFileRepository.

All mutations are single conditional updates on the patient record using
array filters, so concurrent uploads to the same stage never lose writes.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from clinicfiles.application.ports.repositories.stage_file_repo import StageFileRepository
from clinicfiles.core.exceptions import FileStorageError, StorageUnavailableError
from clinicfiles.core.utils.datetime_utils import get_current_timestamp
from clinicfiles.domain.entities.blob_descriptor import BlobDescriptor
from clinicfiles.domain.entities.stage import Stage
from clinicfiles.domain.enums.storage import StorageMode
from clinicfiles.domain.value_objects.attachment_point import AttachmentPoint
from clinicfiles.domain.value_objects.chunked_reference import ChunkedReference

from ..models.patient_m import FileRefMongo, StageFileMongo, StageMongo

logger = logging.getLogger("clinicfiles")

STORE_NAME = "parent document store"
FILES_PATH = "episodes.$[ep].stages.$[st].files"


class MongoStageFileRepository(StageFileRepository):
    """MongoDB implementation of StageFileRepository."""

    def __init__(self, collection):
        """Initialize with the patients collection (AsyncIOMotorCollection)."""
        self._collection = collection

    async def find_stage(self, point: AttachmentPoint) -> Optional[Stage]:
        """Find the stage at an attachment point."""
        try:
            doc = await self._collection.find_one(
                self._stage_filter(point), projection=self._projection(point)
            )
        except PyMongoError as e:
            logger.error(f"Failed to find stage {point}: {e}")
            raise StorageUnavailableError(STORE_NAME, str(e)) from e
        return self._stage_from_document(doc, point)

    async def push_file(
        self, point: AttachmentPoint, descriptor: BlobDescriptor
    ) -> Optional[Stage]:
        """Append a descriptor unless its file id is already in the stage."""
        now = get_current_timestamp()
        try:
            doc = await self._collection.find_one_and_update(
                self._stage_filter(point, {"files.file_id": {"$ne": descriptor.file_id}}),
                {
                    "$push": {FILES_PATH: self._descriptor_to_mongo(descriptor)},
                    "$set": {"episodes.$[ep].updated_at": now, "updated_at": now},
                },
                array_filters=self._array_filters(point),
                projection=self._projection(point),
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            logger.error(f"Failed to push file {descriptor.file_id} to {point}: {e}")
            raise StorageUnavailableError(STORE_NAME, str(e)) from e
        return self._stage_from_document(doc, point)

    async def pull_file(self, point: AttachmentPoint, file_id: str) -> bool:
        """Remove a descriptor from the stage's files."""
        now = get_current_timestamp()
        try:
            result = await self._collection.update_one(
                self._stage_filter(point, {"files.file_id": file_id}),
                {
                    "$pull": {FILES_PATH: {"file_id": file_id}},
                    "$set": {"episodes.$[ep].updated_at": now, "updated_at": now},
                },
                array_filters=self._array_filters(point),
            )
        except PyMongoError as e:
            logger.error(f"Failed to pull file {file_id} from {point}: {e}")
            raise StorageUnavailableError(STORE_NAME, str(e)) from e
        return result.modified_count > 0

    async def set_file_metadata(
        self, point: AttachmentPoint, file_id: str, metadata: Dict[str, Any]
    ) -> Optional[Stage]:
        """Merge metadata keys into one file entry."""
        if not metadata:
            stage = await self.find_stage(point)
            return stage if stage is not None and stage.has_file(file_id) else None

        updates: Dict[str, Any] = {
            f"{FILES_PATH}.$[f].metadata.{key}": value for key, value in metadata.items()
        }
        updates["updated_at"] = get_current_timestamp()
        try:
            doc = await self._collection.find_one_and_update(
                self._stage_filter(point, {"files.file_id": file_id}),
                {"$set": updates},
                array_filters=self._array_filters(point) + [{"f.file_id": file_id}],
                projection=self._projection(point),
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            logger.error(f"Failed to update metadata of file {file_id} at {point}: {e}")
            raise StorageUnavailableError(STORE_NAME, str(e)) from e
        return self._stage_from_document(doc, point)

    async def list_patient_stages(self, patient_id: str) -> List[Stage]:
        """All stages of a patient, in episode then stage order."""
        try:
            doc = await self._collection.find_one(
                {"patient_id": patient_id}, projection={"patient_id": 1, "episodes": 1}
            )
        except PyMongoError as e:
            logger.error(f"Failed to list stages of patient {patient_id}: {e}")
            raise StorageUnavailableError(STORE_NAME, str(e)) from e

        if not doc:
            return []
        stages: List[Stage] = []
        for episode in doc.get("episodes") or []:
            for raw_stage in episode.get("stages") or []:
                stage = self._mongo_to_stage(patient_id, episode.get("episode_id"), raw_stage)
                if stage is not None:
                    stages.append(stage)
        return stages

    @staticmethod
    def _stage_filter(point: AttachmentPoint, stage_condition: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Match the patient whose episode contains the stage (and optional stage condition)."""
        stage_match: Dict[str, Any] = {"stage_id": point.stage_id}
        if stage_condition:
            stage_match.update(stage_condition)
        return {
            "patient_id": point.patient_id,
            "episodes": {
                "$elemMatch": {
                    "episode_id": point.episode_id,
                    "stages": {"$elemMatch": stage_match},
                }
            },
        }

    @staticmethod
    def _array_filters(point: AttachmentPoint) -> List[Dict[str, Any]]:
        return [{"ep.episode_id": point.episode_id}, {"st.stage_id": point.stage_id}]

    @staticmethod
    def _projection(point: AttachmentPoint) -> Dict[str, Any]:
        return {
            "patient_id": 1,
            "episodes": {"$elemMatch": {"episode_id": point.episode_id}},
        }

    def _stage_from_document(
        self, doc: Optional[Dict[str, Any]], point: AttachmentPoint
    ) -> Optional[Stage]:
        if not doc:
            return None
        for episode in doc.get("episodes") or []:
            if episode.get("episode_id") != point.episode_id:
                continue
            for raw_stage in episode.get("stages") or []:
                if raw_stage.get("stage_id") == point.stage_id:
                    return self._mongo_to_stage(point.patient_id, point.episode_id, raw_stage)
        return None

    def _mongo_to_stage(
        self, patient_id: str, episode_id: Optional[str], raw_stage: Dict[str, Any]
    ) -> Optional[Stage]:
        """Convert an embedded stage to the domain entity, skipping unreadable files."""
        raw_files = raw_stage.get("files") or []
        try:
            stage_mongo = StageMongo.model_validate({**raw_stage, "files": []})
        except PydanticValidationError as e:
            logger.warning(f"Skipping malformed stage in patient {patient_id}: {e}")
            return None

        files: List[BlobDescriptor] = []
        for raw_file in raw_files:
            try:
                files.append(self._mongo_to_descriptor(StageFileMongo.model_validate(raw_file)))
            except (PydanticValidationError, FileStorageError) as e:
                logger.warning(
                    f"Skipping malformed file entry in stage {stage_mongo.stage_id}: {e}"
                )

        return Stage(
            patient_id=patient_id,
            episode_id=episode_id or "",
            stage_id=stage_mongo.stage_id,
            name=stage_mongo.name,
            status=stage_mongo.status,
            files=files,
        )

    @staticmethod
    def _descriptor_to_mongo(descriptor: BlobDescriptor) -> Dict[str, Any]:
        """Convert a domain descriptor to its embedded document."""
        file_ref = None
        if descriptor.chunked_reference is not None:
            file_ref = FileRefMongo(
                store_name=descriptor.chunked_reference.store_name,
                object_id=descriptor.chunked_reference.object_id,
            )
        file_mongo = StageFileMongo(
            file_id=descriptor.file_id,
            storage_mode=descriptor.storage_mode,
            content_type=descriptor.content_type,
            file_name=descriptor.file_name,
            size=descriptor.size,
            upload_date=descriptor.upload_date,
            binary_data=descriptor.inline_payload,
            file_ref=file_ref,
            metadata=descriptor.metadata,
        )
        doc = file_mongo.model_dump()
        doc["storage_mode"] = descriptor.storage_mode.value
        return doc

    @staticmethod
    def _mongo_to_descriptor(file_mongo: StageFileMongo) -> BlobDescriptor:
        """Convert an embedded document to a domain descriptor."""
        reference = None
        if file_mongo.file_ref is not None:
            reference = ChunkedReference(
                store_name=file_mongo.file_ref.store_name,
                object_id=file_mongo.file_ref.object_id,
            )
        return BlobDescriptor(
            file_id=file_mongo.file_id,
            storage_mode=StorageMode(file_mongo.storage_mode),
            content_type=file_mongo.content_type,
            file_name=file_mongo.file_name,
            size=file_mongo.size,
            upload_date=file_mongo.upload_date,
            metadata=dict(file_mongo.metadata),
            inline_payload=file_mongo.binary_data,
            chunked_reference=reference,
        )
