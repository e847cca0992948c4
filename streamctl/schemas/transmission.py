"""Transmission ODM schema."""

from datetime import datetime
from typing import Any

from beanie import Document
from pydantic import BaseModel, Field, field_validator
from pymongo import IndexModel

from .schema_utils import parse_mongo_datetime
from .session_state import TransmissionKind, TransmissionStatus


class TransmissionRecord(BaseModel):
    """Playlist-driven (or external-source) broadcast. Never deleted."""

    transmission_id: str
    owner_id: str

    title: str
    description: str = ""
    playlist_id: str | None = None

    status: TransmissionStatus = TransmissionStatus.ACTIVE
    kind: TransmissionKind = TransmissionKind.PLAYLIST
    loop_playlist: bool = True
    # Set when the start was compensated after a failed manifest provisioning
    rollback_reason: str | None = None

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


class Transmission(TransmissionRecord, Document):
    """Transmission document model."""

    class Settings:
        name = "transmission"
        indexes = [
            IndexModel([("transmission_id", 1)], unique=True, name="transmission_id_unique"),
            IndexModel(
                [("owner_id", 1)],
                partialFilterExpression={"status": "active"},
                unique=True,
                name="owner_id_active_unique",
            ),
            IndexModel([("owner_id", 1), ("started_at", -1)], name="owner_id_started_at"),
        ]
