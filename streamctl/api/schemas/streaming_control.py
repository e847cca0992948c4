from pydantic import BaseModel, Field


class StartTransmissionIn(BaseModel):
    """Request to start a playlist transmission."""

    playlist_id: str = Field(description="Playlist to broadcast, must belong to the caller")
    title: str | None = Field(default=None, description="Defaults to the playlist name")
    description: str | None = Field(default=None, description="Free text shown to viewers")
    loop_playlist: bool = Field(default=True, description="Repeat the playlist when it ends")
    enable_recording: bool = Field(default=False, description="Record the output once the transmission is up")


class StartSocialLiveIn(BaseModel):
    """Request to push the caller's output to an external platform."""

    platform_id: str = Field(description="Platform from the catalog (youtube, facebook, twitch, custom)")
    stream_key: str | None = Field(default=None, description="Stream key issued by the platform")
    rtmp_url: str | None = Field(default=None, description="Overrides the platform's RTMP base URL")
    title: str | None = Field(default=None, description="Label of the live")


class AdminTargetIn(BaseModel):
    """Target of an administrative operation."""

    owner_id: str = Field(description="Owner whose endpoint is administered")


class DiagnosticsIn(BaseModel):
    """Request to run read-only diagnostics."""

    test_type: str = Field(default="all", description="all, server, playback_url or ssl")
