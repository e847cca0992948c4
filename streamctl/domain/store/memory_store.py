"""In-memory Session Store.

Check-then-insert runs without awaiting in between, so within one event loop
the active-per-owner invariants hold without extra locking.
"""

from typing import Any, TypeVar

from pydantic import BaseModel

from streamctl.schemas import (
    EndpointRecord,
    PlatformRecord,
    PlaylistRecord,
    RecordingRecord,
    RecordingStatus,
    SocialLiveRecord,
    SocialLiveStatus,
    TransmissionRecord,
    TransmissionStatus,
)
from streamctl.shared.utils import utc_now

from ._errors import recording_in_progress, transmission_active, version_conflict
from .session_store import SOCIAL_LIVE_LIST_LIMIT, SessionStore

RecordT = TypeVar("RecordT", bound=BaseModel)


def _bump(stored: RecordT, changes: dict[str, Any]) -> RecordT:
    return stored.model_copy(
        update={**changes, "updated_at": utc_now(), "version": stored.version + 1},  # type: ignore[attr-defined]
        deep=True,
    )


class MemorySessionStore(SessionStore):
    def __init__(self):
        self._endpoints: dict[str, EndpointRecord] = {}
        self._transmissions: dict[str, TransmissionRecord] = {}
        self._social_lives: dict[str, SocialLiveRecord] = {}
        self._recordings: dict[str, RecordingRecord] = {}
        self._playlists: dict[str, PlaylistRecord] = {}
        self._platforms: dict[str, PlatformRecord] = {}

    def _check_version(self, kind: str, record_id: str, stored: BaseModel | None, expected: int) -> None:
        if stored is None or stored.version != expected:  # type: ignore[attr-defined]
            raise version_conflict(kind, record_id, expected)

    # ==================== ENDPOINTS ====================

    async def get_endpoint(self, owner_id: str) -> EndpointRecord | None:
        endpoint = self._endpoints.get(owner_id)
        return endpoint.model_copy(deep=True) if endpoint else None

    async def save_endpoint(self, endpoint: EndpointRecord) -> EndpointRecord:
        self._endpoints[endpoint.owner_id] = endpoint.model_copy(deep=True)
        return endpoint

    async def update_endpoint(self, endpoint: EndpointRecord, changes: dict[str, Any]) -> EndpointRecord:
        stored = self._endpoints.get(endpoint.owner_id)
        self._check_version("Endpoint", endpoint.owner_id, stored, endpoint.version)
        updated = _bump(stored, changes)  # type: ignore[arg-type]
        self._endpoints[endpoint.owner_id] = updated
        return updated.model_copy(deep=True)

    async def delete_endpoint(self, owner_id: str) -> bool:
        return self._endpoints.pop(owner_id, None) is not None

    # ==================== TRANSMISSIONS ====================

    async def create_transmission(self, transmission: TransmissionRecord) -> TransmissionRecord:
        if transmission.status == TransmissionStatus.ACTIVE and any(
            t.owner_id == transmission.owner_id and t.status == TransmissionStatus.ACTIVE
            for t in self._transmissions.values()
        ):
            raise transmission_active(transmission.owner_id)
        self._transmissions[transmission.transmission_id] = transmission.model_copy(deep=True)
        return transmission

    async def get_transmission(self, owner_id: str, transmission_id: str) -> TransmissionRecord | None:
        transmission = self._transmissions.get(transmission_id)
        if transmission is None or transmission.owner_id != owner_id:
            return None
        return transmission.model_copy(deep=True)

    async def get_active_transmission(self, owner_id: str) -> TransmissionRecord | None:
        for transmission in self._transmissions.values():
            if transmission.owner_id == owner_id and transmission.status == TransmissionStatus.ACTIVE:
                return transmission.model_copy(deep=True)
        return None

    async def update_transmission(
        self, transmission: TransmissionRecord, changes: dict[str, Any]
    ) -> TransmissionRecord:
        stored = self._transmissions.get(transmission.transmission_id)
        self._check_version("Transmission", transmission.transmission_id, stored, transmission.version)
        updated = _bump(stored, changes)  # type: ignore[arg-type]
        self._transmissions[transmission.transmission_id] = updated
        return updated.model_copy(deep=True)

    def list_transmissions(self, owner_id: str) -> list[TransmissionRecord]:
        """All transmissions of an owner in insertion order (inspection helper)."""
        return [t.model_copy(deep=True) for t in self._transmissions.values() if t.owner_id == owner_id]

    # ==================== SOCIAL LIVES ====================

    async def create_social_live(self, live: SocialLiveRecord) -> SocialLiveRecord:
        self._social_lives[live.live_id] = live.model_copy(deep=True)
        return live

    async def get_social_live(self, owner_id: str, live_id: str) -> SocialLiveRecord | None:
        live = self._social_lives.get(live_id)
        if live is None or live.owner_id != owner_id:
            return None
        return live.model_copy(deep=True)

    async def update_social_live(self, live: SocialLiveRecord, changes: dict[str, Any]) -> SocialLiveRecord:
        stored = self._social_lives.get(live.live_id)
        self._check_version("SocialLive", live.live_id, stored, live.version)
        updated = _bump(stored, changes)  # type: ignore[arg-type]
        self._social_lives[live.live_id] = updated
        return updated.model_copy(deep=True)

    async def delete_social_live(self, owner_id: str, live_id: str) -> bool:
        live = self._social_lives.get(live_id)
        if live is None or live.owner_id != owner_id:
            return False
        del self._social_lives[live_id]
        return True

    async def list_social_lives(
        self,
        owner_id: str,
        active_only: bool = False,
        limit: int = SOCIAL_LIVE_LIST_LIMIT,
    ) -> list[SocialLiveRecord]:
        active_states = SocialLiveStatus.active_states()
        lives = [
            live
            for live in self._social_lives.values()
            if live.owner_id == owner_id and (not active_only or live.status in active_states)
        ]
        lives.sort(key=lambda live: live.started_at, reverse=True)
        return [live.model_copy(deep=True) for live in lives[:limit]]

    # ==================== RECORDINGS ====================

    async def create_recording(self, recording: RecordingRecord) -> RecordingRecord:
        if recording.status == RecordingStatus.RECORDING and any(
            r.owner_id == recording.owner_id and r.status == RecordingStatus.RECORDING
            for r in self._recordings.values()
        ):
            raise recording_in_progress(recording.owner_id)
        self._recordings[recording.recording_id] = recording.model_copy(deep=True)
        return recording

    async def get_recording(self, owner_id: str, recording_id: str) -> RecordingRecord | None:
        recording = self._recordings.get(recording_id)
        if recording is None or recording.owner_id != owner_id:
            return None
        return recording.model_copy(deep=True)

    async def get_active_recording(self, owner_id: str) -> RecordingRecord | None:
        for recording in self._recordings.values():
            if recording.owner_id == owner_id and recording.status == RecordingStatus.RECORDING:
                return recording.model_copy(deep=True)
        return None

    async def update_recording(self, recording: RecordingRecord, changes: dict[str, Any]) -> RecordingRecord:
        stored = self._recordings.get(recording.recording_id)
        self._check_version("Recording", recording.recording_id, stored, recording.version)
        updated = _bump(stored, changes)  # type: ignore[arg-type]
        self._recordings[recording.recording_id] = updated
        return updated.model_copy(deep=True)

    def list_recordings(self, owner_id: str) -> list[RecordingRecord]:
        """All recordings of an owner in insertion order (inspection helper)."""
        return [r.model_copy(deep=True) for r in self._recordings.values() if r.owner_id == owner_id]

    # ==================== CATALOG ====================

    async def get_playlist(self, owner_id: str, playlist_id: str) -> PlaylistRecord | None:
        playlist = self._playlists.get(playlist_id)
        if playlist is None or playlist.owner_id != owner_id:
            return None
        return playlist.model_copy(deep=True)

    async def save_playlist(self, playlist: PlaylistRecord) -> PlaylistRecord:
        self._playlists[playlist.playlist_id] = playlist.model_copy(deep=True)
        return playlist

    async def list_platforms(self) -> list[PlatformRecord]:
        return [platform.model_copy(deep=True) for platform in self._platforms.values()]

    async def save_platform(self, platform: PlatformRecord) -> PlatformRecord:
        self._platforms[platform.platform_id] = platform.model_copy(deep=True)
        return platform
