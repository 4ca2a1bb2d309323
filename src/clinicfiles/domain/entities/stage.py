"""Stage domain entity: the owner of an ordered file list."""

from dataclasses import dataclass, field
from typing import List, Optional

from ..value_objects.attachment_point import AttachmentPoint
from .blob_descriptor import BlobDescriptor


@dataclass
class Stage:
    """A treatment stage inside a patient's episode."""

    patient_id: str
    episode_id: str
    stage_id: str
    name: str = ""
    status: str = "pending"
    files: List[BlobDescriptor] = field(default_factory=list)

    @property
    def attachment_point(self) -> AttachmentPoint:
        """Coordinate of this stage."""
        return AttachmentPoint(self.patient_id, self.episode_id, self.stage_id)

    def find_file(self, file_id: str) -> Optional[BlobDescriptor]:
        """Find a file descriptor by id."""
        for descriptor in self.files:
            if descriptor.file_id == file_id:
                return descriptor
        return None

    def has_file(self, file_id: str) -> bool:
        """Check if a file id is already attached."""
        return self.find_file(file_id) is not None
