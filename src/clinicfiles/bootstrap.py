"""
Wiring for the file storage engine: MongoDB client, Beanie models,
repositories and services.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import certifi
from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClient
from pydantic import ValidationError as PydanticValidationError

from .adapters.db.mongo.models.patient_m import PATIENTS_COLLECTION, PatientMongo
from .adapters.db.mongo.repositories.stage_file_repository import MongoStageFileRepository
from .adapters.storage.mongo_chunk_store import MongoChunkStore
from .application.services.file_storage_service import FileStorageService
from .application.use_cases.ingest_embedded_files import IngestEmbeddedFilesUseCase
from .core.config import DatabaseSettings, Settings, get_settings
from .core.exceptions import ConfigurationError
from .core.structured_logger import configure_logging

logger = logging.getLogger("clinicfiles")


@dataclass
class FileStorageRuntime:
    """Everything a host application needs to store and serve stage files."""

    client: AsyncIOMotorClient
    service: FileStorageService
    ingestor: IngestEmbeddedFilesUseCase

    def close(self) -> None:
        self.client.close()
        logger.info("Database connection closed")


def create_mongo_client(settings: DatabaseSettings) -> AsyncIOMotorClient:
    """Create the motor client. TLS is enabled only for Atlas SRV URIs."""
    if settings.uri.startswith("mongodb+srv://"):
        return AsyncIOMotorClient(
            settings.uri,
            serverSelectionTimeoutMS=settings.server_selection_timeout_ms,
            tz_aware=True,
            tls=True,
            tlsCAFile=certifi.where(),
            tlsAllowInvalidCertificates=False,
        )
    return AsyncIOMotorClient(
        settings.uri,
        serverSelectionTimeoutMS=settings.server_selection_timeout_ms,
        tz_aware=True,
    )


async def create_file_storage(settings: Optional[Settings] = None) -> FileStorageRuntime:
    """Connect to MongoDB and build the file storage service."""
    if settings is None:
        try:
            settings = get_settings()
        except PydanticValidationError as e:
            raise ConfigurationError("Invalid file storage configuration", {"errors": e.errors()}) from e
    configure_logging(settings.logging)

    client = create_mongo_client(settings.database)
    try:
        db = client[settings.database.db_name]
        await init_beanie(database=db, document_models=[PatientMongo])

        chunk_store = MongoChunkStore(db, bucket_name=settings.file_storage.bucket_name)
        await chunk_store.ensure_indexes()

        repository = MongoStageFileRepository(db[PATIENTS_COLLECTION])
        service = FileStorageService(repository, chunk_store, settings.file_storage)
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        client.close()
        raise

    logger.info(
        f"File storage ready (db={settings.database.db_name}, "
        f"bucket={settings.file_storage.bucket_name})"
    )
    return FileStorageRuntime(
        client=client,
        service=service,
        ingestor=IngestEmbeddedFilesUseCase(service),
    )
