"""
Attachment point value object: the (patient, episode, stage) coordinate
that owns a file list.
"""

from dataclasses import dataclass

from ...core.exceptions import ValidationError


@dataclass(frozen=True)
class AttachmentPoint:
    """Immutable patient -> episode -> stage coordinate."""

    patient_id: str
    episode_id: str
    stage_id: str

    def __post_init__(self) -> None:
        """Validate that every identifier is present."""
        for field_name in ("patient_id", "episode_id", "stage_id"):
            value = getattr(self, field_name)
            if not isinstance(value, str) or not value.strip():
                raise ValidationError(
                    f"{field_name} is required",
                    {"field": field_name, "value": value},
                )

    def __str__(self) -> str:
        """String representation."""
        return f"{self.patient_id}/{self.episode_id}/{self.stage_id}"
