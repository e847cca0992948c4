"""Recording session ODM schema."""

from datetime import datetime
from typing import Any

from beanie import Document
from pydantic import BaseModel, Field, field_validator
from pymongo import IndexModel

from .schema_utils import parse_mongo_datetime
from .session_state import RecordingStatus


class RecordingRecord(BaseModel):
    """A local capture of the owner's published output to a file."""

    recording_id: str
    owner_id: str

    file_name: str
    file_path: str
    source_url: str

    status: RecordingStatus = RecordingStatus.RECORDING
    pid: int | None = None
    # Bytes; populated at stop, 0 when the artifact could not be measured
    file_size: int = 0
    error_detail: str | None = None

    started_at: datetime
    ended_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    version: int = Field(default=1)

    @field_validator("started_at", "ended_at", "created_at", "updated_at", mode="before")
    @classmethod
    def _parse_datetime(cls, v: Any) -> Any:
        """Parse MongoDB Extended JSON datetime format."""
        return parse_mongo_datetime(v)


class Recording(RecordingRecord, Document):
    """Recording session document model."""

    class Settings:
        name = "recording_session"
        indexes = [
            IndexModel([("recording_id", 1)], unique=True, name="recording_id_unique"),
            IndexModel(
                [("owner_id", 1)],
                partialFilterExpression={"status": "recording"},
                unique=True,
                name="owner_id_recording_unique",
            ),
        ]
