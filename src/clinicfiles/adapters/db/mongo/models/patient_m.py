"""
MongoDB models for the patient -> episode -> stage -> files tree.

Only the fields the file engine reads or writes are modelled strictly;
everything else in the patient record is ignored on read.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from beanie import Document
from pydantic import BaseModel, ConfigDict, Field
from pymongo import ASCENDING, IndexModel

from clinicfiles.core.utils.datetime_utils import get_current_timestamp
from clinicfiles.domain.enums.storage import StorageMode

PATIENTS_COLLECTION = "patients"


class FileRefMongo(BaseModel):
    """Embedded pointer into the chunk store."""
    store_name: str = Field(..., description="Chunk store bucket name")
    object_id: str = Field(..., description="Chunk store object id")


class StageFileMongo(BaseModel):
    """Embedded file entry in a stage's files array."""
    model_config = ConfigDict(extra="ignore")

    file_id: str = Field(..., description="Caller-supplied file id, unique within the stage")
    storage_mode: StorageMode = Field(..., description="inline or chunked")
    content_type: str = Field(..., description="MIME type")
    file_name: str = Field(..., description="Original file name")
    size: int = Field(..., description="Size in bytes")
    upload_date: datetime = Field(default_factory=get_current_timestamp)
    binary_data: Optional[bytes] = Field(None, description="Inline payload")
    file_ref: Optional[FileRefMongo] = Field(None, description="Chunked object reference")
    metadata: Dict[str, Any] = Field(default_factory=dict)


class StageMongo(BaseModel):
    """Embedded stage of an episode."""
    model_config = ConfigDict(extra="ignore")

    stage_id: str = Field(..., description="Stage id")
    name: str = Field(default="")
    date: Optional[str] = None
    time: Optional[str] = None
    ward: Optional[str] = None
    status: str = Field(default="pending")  # pending, in-progress, completed, cancelled
    files: List[StageFileMongo] = Field(default_factory=list)
    notes: Optional[str] = None


class EpisodeMongo(BaseModel):
    """Embedded treatment episode."""
    model_config = ConfigDict(extra="ignore")

    episode_id: str = Field(..., description="Episode id")
    date: Optional[str] = None
    diagnosis: Optional[str] = None
    doctor: Optional[str] = None
    stages: List[StageMongo] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=get_current_timestamp)
    updated_at: datetime = Field(default_factory=get_current_timestamp)


class PatientMongo(Document):
    """MongoDB model for the patient record that owns every stage file."""

    patient_id: str = Field(..., description="Patient ID")
    name: str = Field(..., description="Patient name")
    birth_date: str = Field(..., description="Birth date")
    gender: str = Field(..., description="male, female or other")
    phone: str = Field(..., description="Phone number")
    email: Optional[str] = None
    address: Optional[str] = None
    episodes: List[EpisodeMongo] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=get_current_timestamp)
    updated_at: datetime = Field(default_factory=get_current_timestamp)

    class Settings:
        name = PATIENTS_COLLECTION
        indexes = [
            IndexModel([("patient_id", ASCENDING)], unique=True),
            "episodes.episode_id",                  # Episode lookups inside the record
            "episodes.stages.stage_id",             # Attachment point filters
        ]
