"""Endpoint configuration ODM schema."""

from datetime import datetime
from typing import Any

from beanie import Document
from pydantic import BaseModel, Field, field_validator
from pymongo import IndexModel

from .schema_utils import parse_mongo_datetime
from .session_state import PowerState


class MediaServerRef(BaseModel):
    """Media server instance an owner's application lives on."""

    server_id: str
    host: str
    api_port: int = 8087
    api_user: str | None = None
    api_password: str | None = None
    is_active: bool = True


class EndpointRecord(BaseModel):
    """Per-owner binding to a media server application."""

    owner_id: str
    # Application name on the media server; also the path segment of every stream URL
    login: str
    server: MediaServerRef

    power_state: PowerState = PowerState.OFF
    is_blocked: bool = False

    created_at: datetime
    updated_at: datetime

    version: int = Field(default=1)

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _parse_datetime(cls, v: Any) -> Any:
        """Parse MongoDB Extended JSON datetime format."""
        return parse_mongo_datetime(v)


class EndpointConfig(EndpointRecord, Document):
    """Endpoint configuration document model."""

    class Settings:
        name = "endpoint_config"
        indexes = [
            IndexModel([("owner_id", 1)], unique=True, name="owner_id_unique"),
            IndexModel([("server.server_id", 1), ("login", 1)], unique=True, name="server_login_unique"),
        ]
