"""Session Store interface.

Records are plain pydantic models; every update is version-checked and
returns the stored copy with its version bumped.
"""

from abc import ABC, abstractmethod
from typing import Any

from streamctl.schemas import (
    EndpointRecord,
    PlatformRecord,
    PlaylistRecord,
    RecordingRecord,
    SocialLiveRecord,
    TransmissionRecord,
)

SOCIAL_LIVE_LIST_LIMIT = 50


class SessionStore(ABC):
    """Persisted records for endpoints, transmissions, social lives and recordings."""

    # ==================== ENDPOINTS ====================

    @abstractmethod
    async def get_endpoint(self, owner_id: str) -> EndpointRecord | None: ...

    @abstractmethod
    async def save_endpoint(self, endpoint: EndpointRecord) -> EndpointRecord:
        """Insert or replace the endpoint configuration of `endpoint.owner_id`."""

    @abstractmethod
    async def update_endpoint(self, endpoint: EndpointRecord, changes: dict[str, Any]) -> EndpointRecord: ...

    @abstractmethod
    async def delete_endpoint(self, owner_id: str) -> bool: ...

    # ==================== TRANSMISSIONS ====================

    @abstractmethod
    async def create_transmission(self, transmission: TransmissionRecord) -> TransmissionRecord:
        """Insert a transmission.

        Raises AppError (E_TRANSMISSION_ACTIVE) if the record is active and the
        owner already has an active transmission.
        """

    @abstractmethod
    async def get_transmission(self, owner_id: str, transmission_id: str) -> TransmissionRecord | None: ...

    @abstractmethod
    async def get_active_transmission(self, owner_id: str) -> TransmissionRecord | None: ...

    @abstractmethod
    async def update_transmission(
        self, transmission: TransmissionRecord, changes: dict[str, Any]
    ) -> TransmissionRecord: ...

    # ==================== SOCIAL LIVES ====================

    @abstractmethod
    async def create_social_live(self, live: SocialLiveRecord) -> SocialLiveRecord: ...

    @abstractmethod
    async def get_social_live(self, owner_id: str, live_id: str) -> SocialLiveRecord | None: ...

    @abstractmethod
    async def update_social_live(self, live: SocialLiveRecord, changes: dict[str, Any]) -> SocialLiveRecord: ...

    @abstractmethod
    async def delete_social_live(self, owner_id: str, live_id: str) -> bool: ...

    @abstractmethod
    async def list_social_lives(
        self,
        owner_id: str,
        active_only: bool = False,
        limit: int = SOCIAL_LIVE_LIST_LIMIT,
    ) -> list[SocialLiveRecord]:
        """Most recent first."""

    # ==================== RECORDINGS ====================

    @abstractmethod
    async def create_recording(self, recording: RecordingRecord) -> RecordingRecord:
        """Insert a recording.

        Raises AppError (E_RECORDING_IN_PROGRESS) if the owner already has one
        in `recording` status.
        """

    @abstractmethod
    async def get_recording(self, owner_id: str, recording_id: str) -> RecordingRecord | None: ...

    @abstractmethod
    async def get_active_recording(self, owner_id: str) -> RecordingRecord | None: ...

    @abstractmethod
    async def update_recording(self, recording: RecordingRecord, changes: dict[str, Any]) -> RecordingRecord: ...

    # ==================== CATALOG ====================

    @abstractmethod
    async def get_playlist(self, owner_id: str, playlist_id: str) -> PlaylistRecord | None: ...

    @abstractmethod
    async def save_playlist(self, playlist: PlaylistRecord) -> PlaylistRecord: ...

    @abstractmethod
    async def list_platforms(self) -> list[PlatformRecord]: ...

    @abstractmethod
    async def save_platform(self, platform: PlatformRecord) -> PlatformRecord: ...
