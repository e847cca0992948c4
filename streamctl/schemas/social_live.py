"""Social live session ODM schema."""

from datetime import datetime
from typing import Any

from beanie import Document
from pydantic import BaseModel, Field, field_validator
from pymongo import IndexModel

from .schema_utils import parse_mongo_datetime
from .session_state import SocialLiveStatus


class LiveMetrics(BaseModel):
    """Last-known activity metrics, refreshed on status reads."""

    bitrate_kbps: float = 0
    viewers: int = 0
    uptime_seconds: int = 0
    refreshed_at: datetime | None = None


class SocialLiveRecord(BaseModel):
    """A push of the owner's output to one external platform."""

    live_id: str
    owner_id: str
    platform_id: str
    title: str | None = None

    status: SocialLiveStatus = SocialLiveStatus.STARTING

    # Push target, kept so a restart can reuse it
    target_url: str
    stream_key: str | None = None

    # Handle returned by the media server when the push was created; required to stop it
    push_handle: str | None = None
    push_method: str | None = None

    metrics: LiveMetrics = Field(default_factory=LiveMetrics)
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


class SocialLive(SocialLiveRecord, Document):
    """Social live document model."""

    class Settings:
        name = "social_live"
        indexes = [
            IndexModel([("live_id", 1)], unique=True, name="live_id_unique"),
            IndexModel([("owner_id", 1), ("started_at", -1)], name="owner_id_started_at"),
        ]
