"""
Tests for the GridFS-layout chunk store, against mocked collections.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import Binary, ObjectId
from pymongo.errors import AutoReconnect, DuplicateKeyError

from clinicfiles.adapters.storage.mongo_chunk_store import MongoChunkStore
from clinicfiles.application.storage.chunked_io import ChunkedBlobReader, ChunkedBlobWriter
from clinicfiles.core.exceptions import (
    ChunkSequenceError,
    StorageUnavailableError,
    ValidationError,
)
from clinicfiles.domain.entities.chunk import ChunkObjectInfo

UPLOADED = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeCursor:
    def __init__(self, docs):
        self._docs = list(docs)

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for doc in self._docs:
            yield doc


def _collection():
    collection = MagicMock()
    for name in ("insert_one", "replace_one", "find_one", "delete_one", "delete_many", "create_index"):
        setattr(collection, name, AsyncMock())
    return collection


@pytest.fixture
def files():
    return _collection()


@pytest.fixture
def chunks():
    return _collection()


@pytest.fixture
def store(files, chunks):
    database = {"patient_files.files": files, "patient_files.chunks": chunks}
    return MongoChunkStore(database, bucket_name="patient_files", read_batch_size=4)


@pytest.mark.asyncio
async def test_create_object_returns_object_id(store):
    object_id = await store.create_object()
    assert ObjectId.is_valid(object_id)
    assert store.store_name == "patient_files"


@pytest.mark.asyncio
async def test_ensure_indexes(store, files, chunks):
    await store.ensure_indexes()

    args, kwargs = chunks.create_index.call_args
    assert args[0] == [("files_id", 1), ("n", 1)]
    assert kwargs == {"unique": True}
    files.create_index.assert_awaited_once()


@pytest.mark.asyncio
async def test_append_chunk_writes_gridfs_document(store, chunks):
    object_id = str(ObjectId())

    await store.append_chunk(object_id, 3, b"data")

    doc = chunks.insert_one.call_args.args[0]
    assert doc == {"files_id": ObjectId(object_id), "n": 3, "data": Binary(b"data")}


@pytest.mark.asyncio
async def test_duplicate_chunk_raises_sequence_error(store, chunks):
    chunks.insert_one.side_effect = DuplicateKeyError("E11000 duplicate key")

    with pytest.raises(ChunkSequenceError):
        await store.append_chunk(str(ObjectId()), 0, b"data")


@pytest.mark.asyncio
async def test_append_to_invalid_object_id_is_rejected(store):
    with pytest.raises(ValidationError):
        await store.append_chunk("not-an-object-id", 0, b"data")


@pytest.mark.asyncio
async def test_finalize_upserts_files_document(store, files):
    object_id = str(ObjectId())
    info = ChunkObjectInfo(
        object_id=object_id,
        file_name="report.pdf",
        content_type="application/pdf",
        length=10,
        chunk_size=4,
        upload_date=UPLOADED,
        metadata={"patient_id": "P1"},
    )

    assert await store.finalize_object(info) == info

    args, kwargs = files.replace_one.call_args
    assert args[0] == {"_id": ObjectId(object_id)}
    assert args[1] == {
        "_id": ObjectId(object_id),
        "length": 10,
        "chunkSize": 4,
        "uploadDate": UPLOADED,
        "filename": "report.pdf",
        "contentType": "application/pdf",
        "metadata": {"patient_id": "P1"},
    }
    assert kwargs == {"upsert": True}


@pytest.mark.asyncio
async def test_get_object_info_maps_files_document(store, files):
    oid = ObjectId()
    files.find_one.return_value = {
        "_id": oid,
        "length": 10,
        "chunkSize": 4,
        "uploadDate": UPLOADED,
        "filename": "report.pdf",
        "metadata": {"contentType": "application/pdf"},
    }

    info = await store.get_object_info(str(oid))

    assert info.object_id == str(oid)
    assert info.content_type == "application/pdf"
    assert info.chunk_count == 3


@pytest.mark.asyncio
async def test_get_object_info_unknown_or_invalid(store, files):
    files.find_one.return_value = None
    assert await store.get_object_info(str(ObjectId())) is None
    assert await store.get_object_info("bogus") is None


@pytest.mark.asyncio
async def test_read_chunks_sorted_with_small_batches(store, chunks):
    oid = ObjectId()
    chunks.find = MagicMock(
        return_value=FakeCursor(
            [{"files_id": oid, "n": 0, "data": b"abcd"}, {"files_id": oid, "n": 1, "data": b"ef"}]
        )
    )

    result = [chunk async for chunk in store.read_chunks(str(oid))]

    assert [(c.sequence_index, c.data) for c in result] == [(0, b"abcd"), (1, b"ef")]
    args, kwargs = chunks.find.call_args
    assert args[0] == {"files_id": oid}
    assert kwargs["sort"] == [("n", 1)]
    assert kwargs["batch_size"] == 4


@pytest.mark.asyncio
async def test_reader_over_mongo_store(store, files, chunks):
    oid = ObjectId()
    files.find_one.return_value = {
        "_id": oid, "length": 6, "chunkSize": 4, "uploadDate": UPLOADED,
        "filename": "a.pdf", "contentType": "application/pdf", "metadata": {},
    }
    chunks.find = MagicMock(
        return_value=FakeCursor(
            [{"files_id": oid, "n": 0, "data": b"abcd"}, {"files_id": oid, "n": 1, "data": b"ef"}]
        )
    )
    reader = ChunkedBlobReader(store)

    assert await reader.read_all(await reader.open(str(oid))) == b"abcdef"


@pytest.mark.asyncio
async def test_writer_over_mongo_store(store, files, chunks):
    info = await ChunkedBlobWriter(store, 4).write_all("a.pdf", "application/pdf", [b"abcdefghij"])

    assert chunks.insert_one.await_count == 3
    assert [c.args[0]["n"] for c in chunks.insert_one.call_args_list] == [0, 1, 2]
    assert info.length == 10
    files.replace_one.assert_awaited_once()


@pytest.mark.asyncio
async def test_delete_object_removes_files_doc_then_chunks(store, files, chunks):
    oid = ObjectId()
    calls = []
    files.delete_one.side_effect = lambda q: calls.append("files") or MagicMock(deleted_count=1)
    chunks.delete_many.side_effect = lambda q: calls.append("chunks") or MagicMock(deleted_count=3)

    assert await store.delete_object(str(oid)) is True
    assert calls == ["files", "chunks"]
    chunks.delete_many.assert_awaited_once_with({"files_id": oid})


@pytest.mark.asyncio
async def test_delete_missing_object_returns_false(store, files, chunks):
    files.delete_one.return_value = MagicMock(deleted_count=0)
    chunks.delete_many.return_value = MagicMock(deleted_count=0)

    assert await store.delete_object(str(ObjectId())) is False
    assert await store.delete_object("bogus") is False


@pytest.mark.asyncio
async def test_driver_errors_become_storage_unavailable(store, chunks):
    chunks.insert_one.side_effect = AutoReconnect("connection reset")

    with pytest.raises(StorageUnavailableError) as exc_info:
        await store.append_chunk(str(ObjectId()), 0, b"data")
    assert exc_info.value.store == "chunk store"
