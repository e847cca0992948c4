"""Read-mostly catalog schemas: owner playlists and streaming platforms."""

from beanie import Document
from pydantic import BaseModel, Field
from pymongo import IndexModel


class PlaylistRecord(BaseModel):
    playlist_id: str
    owner_id: str
    name: str
    item_ids: list[str] = Field(default_factory=list)

    @property
    def item_count(self) -> int:
        return len(self.item_ids)


class Playlist(PlaylistRecord, Document):
    """Playlist document model."""

    class Settings:
        name = "playlist"
        indexes = [
            IndexModel([("playlist_id", 1)], unique=True, name="playlist_id_unique"),
            "owner_id",
        ]


class PlatformRecord(BaseModel):
    platform_id: str
    name: str
    # Empty for platforms whose ingest URL is supplied by the owner
    rtmp_base_url: str = ""
    requires_stream_key: bool = True
    supports_https: bool = False
    is_active: bool = True


class StreamingPlatform(PlatformRecord, Document):
    """Streaming platform document model."""

    class Settings:
        name = "streaming_platform"
        indexes = [
            IndexModel([("platform_id", 1)], unique=True, name="platform_id_unique"),
        ]


DEFAULT_PLATFORMS: list[PlatformRecord] = [
    PlatformRecord(
        platform_id="youtube",
        name="YouTube Live",
        rtmp_base_url="rtmp://a.rtmp.youtube.com/live2/",
        requires_stream_key=True,
        supports_https=True,
    ),
    PlatformRecord(
        platform_id="facebook",
        name="Facebook Live",
        rtmp_base_url="rtmps://live-api-s.facebook.com:443/rtmp/",
        requires_stream_key=True,
        supports_https=True,
    ),
    PlatformRecord(
        platform_id="twitch",
        name="Twitch",
        rtmp_base_url="rtmp://live.twitch.tv/app/",
        requires_stream_key=True,
        supports_https=False,
    ),
    PlatformRecord(
        platform_id="custom",
        name="Custom Server",
        rtmp_base_url="",
        requires_stream_key=True,
        supports_https=False,
    ),
]
