"""Beanie ODM schemas for MongoDB collections."""

from .catalog import DEFAULT_PLATFORMS, Playlist, PlaylistRecord, PlatformRecord, StreamingPlatform
from .endpoint import EndpointConfig, EndpointRecord, MediaServerRef
from .init import init_beanie_odm
from .recording import Recording, RecordingRecord
from .session_state import (
    PowerState,
    RecordingStatus,
    SocialLiveStatus,
    TransmissionKind,
    TransmissionStatus,
)
from .social_live import LiveMetrics, SocialLive, SocialLiveRecord
from .transmission import Transmission, TransmissionRecord

__all__ = [
    "DEFAULT_PLATFORMS",
    "EndpointConfig",
    "EndpointRecord",
    "LiveMetrics",
    "MediaServerRef",
    "Playlist",
    "PlaylistRecord",
    "PlatformRecord",
    "PowerState",
    "Recording",
    "RecordingRecord",
    "RecordingStatus",
    "SocialLive",
    "SocialLiveRecord",
    "SocialLiveStatus",
    "StreamingPlatform",
    "Transmission",
    "TransmissionKind",
    "TransmissionRecord",
    "TransmissionStatus",
    "init_beanie_odm",
]
