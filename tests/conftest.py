"""
Shared fixtures: in-memory stage repository and chunk store wired into
the file storage service.
"""

import copy
from typing import Any, Dict, List, Optional

import pytest

from clinicfiles.adapters.storage.memory_chunk_store import InMemoryChunkStore
from clinicfiles.application.ports.repositories.stage_file_repo import StageFileRepository
from clinicfiles.application.services.file_storage_service import FileStorageService
from clinicfiles.core.config import FileStorageSettings
from clinicfiles.domain.entities.blob_descriptor import BlobDescriptor
from clinicfiles.domain.entities.stage import Stage
from clinicfiles.domain.value_objects.attachment_point import AttachmentPoint


class InMemoryStageFileRepository(StageFileRepository):
    """Dict-backed StageFileRepository with the same conditional semantics."""

    def __init__(self) -> None:
        self._stages: Dict[AttachmentPoint, Stage] = {}
        self.push_calls = 0
        self.pull_calls = 0

    def add_stage(self, patient_id: str, episode_id: str, stage_id: str, name: str = "") -> AttachmentPoint:
        point = AttachmentPoint(patient_id, episode_id, stage_id)
        self._stages[point] = Stage(patient_id, episode_id, stage_id, name=name)
        return point

    def remove_stage(self, point: AttachmentPoint) -> None:
        self._stages.pop(point, None)

    def stage(self, point: AttachmentPoint) -> Optional[Stage]:
        return self._stages.get(point)

    async def find_stage(self, point: AttachmentPoint) -> Optional[Stage]:
        stage = self._stages.get(point)
        return copy.deepcopy(stage) if stage is not None else None

    async def push_file(self, point: AttachmentPoint, descriptor: BlobDescriptor) -> Optional[Stage]:
        self.push_calls += 1
        stage = self._stages.get(point)
        if stage is None or stage.has_file(descriptor.file_id):
            return None
        stage.files.append(descriptor)
        return copy.deepcopy(stage)

    async def pull_file(self, point: AttachmentPoint, file_id: str) -> bool:
        self.pull_calls += 1
        stage = self._stages.get(point)
        if stage is None or not stage.has_file(file_id):
            return False
        stage.files = [f for f in stage.files if f.file_id != file_id]
        return True

    async def set_file_metadata(
        self, point: AttachmentPoint, file_id: str, metadata: Dict[str, Any]
    ) -> Optional[Stage]:
        stage = self._stages.get(point)
        if stage is None or not stage.has_file(file_id):
            return None
        stage.files = [
            f.with_metadata(metadata) if f.file_id == file_id else f for f in stage.files
        ]
        return copy.deepcopy(stage)

    async def list_patient_stages(self, patient_id: str) -> List[Stage]:
        return [
            copy.deepcopy(stage)
            for point, stage in self._stages.items()
            if point.patient_id == patient_id
        ]


@pytest.fixture
def repository():
    return InMemoryStageFileRepository()


@pytest.fixture
def chunk_store():
    return InMemoryChunkStore()


@pytest.fixture
def point(repository):
    """An existing stage: patient P1, episode E1, stage S1."""
    return repository.add_stage("P1", "E1", "S1", name="Consultation")


@pytest.fixture
def settings():
    return FileStorageSettings()


@pytest.fixture
def service(repository, chunk_store, settings):
    return FileStorageService(repository, chunk_store, settings)


@pytest.fixture
def small_settings():
    """Tiny thresholds so chunking paths run on a few bytes."""
    return FileStorageSettings(
        inline_threshold_bytes=8,
        base64_inline_threshold_bytes=8,
        chunk_size_bytes=6,
        max_upload_bytes=1024,
    )


@pytest.fixture
def small_service(repository, chunk_store, small_settings):
    return FileStorageService(repository, chunk_store, small_settings)
