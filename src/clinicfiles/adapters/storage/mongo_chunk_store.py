"""
MongoDB chunk store using the GridFS collection layout.

``<bucket>.files`` holds one document per finalized object and
``<bucket>.chunks`` holds ``{files_id, n, data}`` documents, so stored
objects stay readable by GridFS-aware tools such as mongofiles.
"""

import logging
from typing import Any, AsyncIterator, Dict, Optional

from bson import Binary, ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError

from clinicfiles.application.ports.services.chunk_store import ChunkStore
from clinicfiles.core.exceptions import (
    ChunkSequenceError,
    StorageUnavailableError,
    ValidationError,
)
from clinicfiles.domain.entities.chunk import Chunk, ChunkObjectInfo

logger = logging.getLogger("clinicfiles")

STORE_NAME = "chunk store"


def _to_object_id(object_id: str) -> Optional[ObjectId]:
    try:
        return ObjectId(object_id)
    except (InvalidId, TypeError):
        return None


class MongoChunkStore(ChunkStore):
    """ChunkStore backed by a GridFS-compatible bucket."""

    def __init__(self, database, bucket_name: str = "patient_files", read_batch_size: int = 4):
        """Initialize with an AsyncIOMotorDatabase.

        ``read_batch_size`` bounds how many chunks a read cursor fetches per
        round trip, which bounds read memory to a few chunks.
        """
        self._bucket_name = bucket_name
        self._files = database[f"{bucket_name}.files"]
        self._chunks = database[f"{bucket_name}.chunks"]
        self._read_batch_size = read_batch_size

    @property
    def store_name(self) -> str:
        return self._bucket_name

    async def ensure_indexes(self) -> None:
        """Create the standard GridFS indexes."""
        try:
            await self._chunks.create_index(
                [("files_id", ASCENDING), ("n", ASCENDING)], unique=True
            )
            await self._files.create_index([("filename", ASCENDING), ("uploadDate", ASCENDING)])
        except PyMongoError as e:
            logger.error(f"Failed to create indexes for bucket {self._bucket_name}: {e}")
            raise StorageUnavailableError(STORE_NAME, str(e)) from e
        logger.info(f"Chunk store indexes ready for bucket {self._bucket_name}")

    async def create_object(self) -> str:
        return str(ObjectId())

    async def append_chunk(self, object_id: str, sequence_index: int, data: bytes) -> None:
        oid = self._require_object_id(object_id)
        try:
            await self._chunks.insert_one(
                {"files_id": oid, "n": sequence_index, "data": Binary(bytes(data))}
            )
        except DuplicateKeyError as e:
            raise ChunkSequenceError(
                object_id, f"chunk {sequence_index} already stored"
            ) from e
        except PyMongoError as e:
            raise StorageUnavailableError(STORE_NAME, str(e), {"object_id": object_id}) from e

    async def finalize_object(self, info: ChunkObjectInfo) -> ChunkObjectInfo:
        oid = self._require_object_id(info.object_id)
        try:
            # Upsert keeps a repeated finalize a no-op
            await self._files.replace_one({"_id": oid}, self._info_to_mongo(oid, info), upsert=True)
        except PyMongoError as e:
            raise StorageUnavailableError(
                STORE_NAME, str(e), {"object_id": info.object_id}
            ) from e
        return info

    async def read_chunks(self, object_id: str) -> AsyncIterator[Chunk]:
        oid = _to_object_id(object_id)
        if oid is None:
            return
        try:
            cursor = self._chunks.find(
                {"files_id": oid},
                sort=[("n", ASCENDING)],
                batch_size=self._read_batch_size,
            )
            async for doc in cursor:
                yield Chunk(object_id=object_id, sequence_index=doc["n"], data=bytes(doc["data"]))
        except PyMongoError as e:
            raise StorageUnavailableError(STORE_NAME, str(e), {"object_id": object_id}) from e

    async def get_object_info(self, object_id: str) -> Optional[ChunkObjectInfo]:
        oid = _to_object_id(object_id)
        if oid is None:
            return None
        try:
            doc = await self._files.find_one({"_id": oid})
        except PyMongoError as e:
            raise StorageUnavailableError(STORE_NAME, str(e), {"object_id": object_id}) from e
        return self._mongo_to_info(doc) if doc else None

    async def delete_object(self, object_id: str) -> bool:
        oid = _to_object_id(object_id)
        if oid is None:
            return False
        try:
            # Files document first so a half-finished delete is never readable
            files_result = await self._files.delete_one({"_id": oid})
            chunks_result = await self._chunks.delete_many({"files_id": oid})
        except PyMongoError as e:
            raise StorageUnavailableError(STORE_NAME, str(e), {"object_id": object_id}) from e
        deleted = files_result.deleted_count > 0 or chunks_result.deleted_count > 0
        if deleted:
            logger.debug(
                f"Deleted chunked object {object_id} ({chunks_result.deleted_count} chunks)"
            )
        return deleted

    @staticmethod
    def _require_object_id(object_id: str) -> ObjectId:
        oid = _to_object_id(object_id)
        if oid is None:
            raise ValidationError(
                f"Invalid chunk object id '{object_id}'", {"object_id": object_id}
            )
        return oid

    @staticmethod
    def _info_to_mongo(oid: ObjectId, info: ChunkObjectInfo) -> Dict[str, Any]:
        return {
            "_id": oid,
            "length": info.length,
            "chunkSize": info.chunk_size,
            "uploadDate": info.upload_date,
            "filename": info.file_name,
            "contentType": info.content_type,
            "metadata": dict(info.metadata),
        }

    @staticmethod
    def _mongo_to_info(doc: Dict[str, Any]) -> ChunkObjectInfo:
        metadata = doc.get("metadata") or {}
        return ChunkObjectInfo(
            object_id=str(doc["_id"]),
            file_name=doc.get("filename", ""),
            # Older GridFS writers keep the content type in metadata
            content_type=doc.get("contentType") or metadata.get("contentType", ""),
            length=doc["length"],
            chunk_size=doc["chunkSize"],
            upload_date=doc["uploadDate"],
            metadata=dict(metadata),
        )
