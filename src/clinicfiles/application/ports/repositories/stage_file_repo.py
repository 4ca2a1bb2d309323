"""
Stage file repository interface for the parent document store.

Every mutating method must be a single atomic conditional update against
the patient record; implementations must not read-modify-write a cached copy.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ....domain.entities.blob_descriptor import BlobDescriptor
from ....domain.entities.stage import Stage
from ....domain.value_objects.attachment_point import AttachmentPoint


class StageFileRepository(ABC):
    """Abstract repository for stage file lists."""

    @abstractmethod
    async def find_stage(self, point: AttachmentPoint) -> Optional[Stage]:
        """Find the stage at an attachment point."""
        pass

    @abstractmethod
    async def push_file(
        self, point: AttachmentPoint, descriptor: BlobDescriptor
    ) -> Optional[Stage]:
        """Append a descriptor to the stage's files if its file id is not present yet.

        Returns the updated stage, or None if no stage matched the condition
        (missing coordinate or duplicate file id).
        """
        pass

    @abstractmethod
    async def pull_file(self, point: AttachmentPoint, file_id: str) -> bool:
        """Remove a descriptor from the stage's files. Returns whether one was removed."""
        pass

    @abstractmethod
    async def set_file_metadata(
        self, point: AttachmentPoint, file_id: str, metadata: Dict[str, Any]
    ) -> Optional[Stage]:
        """Merge metadata keys into one file's metadata. Returns None if the file is missing."""
        pass

    @abstractmethod
    async def list_patient_stages(self, patient_id: str) -> List[Stage]:
        """All stages of a patient, in episode then stage order."""
        pass
