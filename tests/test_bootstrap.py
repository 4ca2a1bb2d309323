"""
Tests for wiring the file storage engine, with MongoDB mocked out.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from clinicfiles import bootstrap
from clinicfiles.application.services.file_storage_service import FileStorageService
from clinicfiles.core.config import DatabaseSettings, FileStorageSettings, Settings
from clinicfiles.core.exceptions import ConfigurationError


def _settings(uri="mongodb://localhost:27017"):
    return Settings(
        database=DatabaseSettings(uri=uri, db_name="testdb"),
        file_storage=FileStorageSettings(bucket_name="test_files"),
    )


def test_local_uri_connects_without_tls():
    with patch.object(bootstrap, "AsyncIOMotorClient") as client_cls:
        bootstrap.create_mongo_client(DatabaseSettings(uri="mongodb://localhost:27017"))

    kwargs = client_cls.call_args.kwargs
    assert "tls" not in kwargs
    assert kwargs["tz_aware"] is True
    assert kwargs["serverSelectionTimeoutMS"] == 15000


def test_srv_uri_enables_tls_with_certifi_bundle():
    with patch.object(bootstrap, "AsyncIOMotorClient") as client_cls, patch.object(
        bootstrap.certifi, "where", return_value="/tmp/ca.pem"
    ):
        bootstrap.create_mongo_client(DatabaseSettings(uri="mongodb+srv://cluster.example.net"))

    kwargs = client_cls.call_args.kwargs
    assert kwargs["tls"] is True
    assert kwargs["tlsCAFile"] == "/tmp/ca.pem"


@pytest.mark.asyncio
async def test_create_file_storage_wires_service():
    client = MagicMock()
    with patch.object(bootstrap, "create_mongo_client", return_value=client), patch.object(
        bootstrap, "init_beanie", new=AsyncMock()
    ) as init_beanie, patch.object(
        bootstrap.MongoChunkStore, "ensure_indexes", new=AsyncMock()
    ) as ensure_indexes, patch.object(bootstrap, "configure_logging"):
        runtime = await bootstrap.create_file_storage(_settings())

    assert isinstance(runtime.service, FileStorageService)
    assert runtime.service.settings.bucket_name == "test_files"
    assert runtime.ingestor is not None
    init_beanie.assert_awaited_once()
    assert init_beanie.call_args.kwargs["document_models"] == [bootstrap.PatientMongo]
    ensure_indexes.assert_awaited_once()
    client.__getitem__.assert_called_with("testdb")

    runtime.close()
    client.close.assert_called_once()


@pytest.mark.asyncio
async def test_repository_queries_the_collection_beanie_indexes():
    client = MagicMock()
    db = client.__getitem__.return_value
    with patch.object(bootstrap, "create_mongo_client", return_value=client), patch.object(
        bootstrap, "init_beanie", new=AsyncMock()
    ), patch.object(bootstrap.MongoChunkStore, "ensure_indexes", new=AsyncMock()), patch.object(
        bootstrap, "MongoStageFileRepository"
    ) as repository_cls, patch.object(bootstrap, "configure_logging"):
        await bootstrap.create_file_storage(_settings())

    assert bootstrap.PatientMongo.Settings.name == "patients"
    db.__getitem__.assert_any_call(bootstrap.PatientMongo.Settings.name)
    repository_cls.assert_called_once_with(db[bootstrap.PatientMongo.Settings.name])


@pytest.mark.asyncio
async def test_create_file_storage_closes_client_on_failure():
    client = MagicMock()
    with patch.object(bootstrap, "create_mongo_client", return_value=client), patch.object(
        bootstrap, "init_beanie", new=AsyncMock(side_effect=RuntimeError("no server"))
    ), patch.object(bootstrap, "configure_logging"):
        with pytest.raises(RuntimeError):
            await bootstrap.create_file_storage(_settings())

    client.close.assert_called_once()


@pytest.mark.asyncio
async def test_invalid_environment_raises_configuration_error():
    def broken_settings():
        return DatabaseSettings(uri="postgres://localhost")

    with patch.object(bootstrap, "get_settings", side_effect=broken_settings):
        with pytest.raises(ConfigurationError) as exc_info:
            await bootstrap.create_file_storage()

    assert exc_info.value.error_code == "CONFIG_ERROR"
