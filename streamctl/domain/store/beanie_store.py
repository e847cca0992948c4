"""MongoDB Session Store on Beanie ODM.

Active-per-owner invariants are enforced by partial unique indexes, so a
concurrent insert from another instance surfaces as DuplicateKeyError.
"""

from typing import Any, TypeVar

from beanie import Document
from beanie.operators import In, Set
from loguru import logger
from pydantic import BaseModel
from pymongo.errors import DuplicateKeyError

from streamctl.schemas import (
    EndpointConfig,
    EndpointRecord,
    Playlist,
    PlatformRecord,
    PlaylistRecord,
    Recording,
    RecordingRecord,
    RecordingStatus,
    SocialLive,
    SocialLiveRecord,
    SocialLiveStatus,
    StreamingPlatform,
    Transmission,
    TransmissionRecord,
    TransmissionStatus,
)
from streamctl.shared.utils import utc_now

from ._errors import recording_in_progress, transmission_active, version_conflict
from .session_store import SOCIAL_LIVE_LIST_LIMIT, SessionStore

RecordT = TypeVar("RecordT", bound=BaseModel)


def _to_record(record_cls: type[RecordT], doc: Document | None) -> RecordT | None:
    if doc is None:
        return None
    return record_cls.model_validate(doc.model_dump(exclude={"id", "revision_id"}))


class BeanieSessionStore(SessionStore):
    async def _update_with_version_check(
        self,
        doc_cls: type[Document],
        key: dict[str, Any],
        record: RecordT,
        changes: dict[str, Any],
    ) -> RecordT:
        """Set `changes` on the document matching `key` only if its version is unchanged."""
        current_version = record.version  # type: ignore[attr-defined]
        new_version = current_version + 1
        update_fields = {**changes, "updated_at": utc_now(), "version": new_version}

        result = await doc_cls.find({**key, "version": current_version}).update(Set(update_fields))
        if not result or result.modified_count == 0:
            record_id = next(iter(key.values()))
            logger.warning(
                f"{doc_cls.__name__} {record_id} version conflict (expected version {current_version})"
            )
            raise version_conflict(doc_cls.__name__, record_id, current_version)

        logger.debug(f"{doc_cls.__name__} {key} updated (version {current_version} -> {new_version})")
        return record.model_copy(update=update_fields)

    # ==================== ENDPOINTS ====================

    async def get_endpoint(self, owner_id: str) -> EndpointRecord | None:
        return _to_record(EndpointRecord, await EndpointConfig.find_one({"owner_id": owner_id}))

    async def save_endpoint(self, endpoint: EndpointRecord) -> EndpointRecord:
        await EndpointConfig.find({"owner_id": endpoint.owner_id}).delete()
        await EndpointConfig(**endpoint.model_dump()).insert()
        return endpoint

    async def update_endpoint(self, endpoint: EndpointRecord, changes: dict[str, Any]) -> EndpointRecord:
        return await self._update_with_version_check(
            EndpointConfig, {"owner_id": endpoint.owner_id}, endpoint, changes
        )

    async def delete_endpoint(self, owner_id: str) -> bool:
        result = await EndpointConfig.find({"owner_id": owner_id}).delete()
        return bool(result and result.deleted_count)

    # ==================== TRANSMISSIONS ====================

    async def create_transmission(self, transmission: TransmissionRecord) -> TransmissionRecord:
        try:
            await Transmission(**transmission.model_dump()).insert()
        except DuplicateKeyError as e:
            raise transmission_active(transmission.owner_id) from e
        return transmission

    async def get_transmission(self, owner_id: str, transmission_id: str) -> TransmissionRecord | None:
        doc = await Transmission.find_one({"transmission_id": transmission_id, "owner_id": owner_id})
        return _to_record(TransmissionRecord, doc)

    async def get_active_transmission(self, owner_id: str) -> TransmissionRecord | None:
        doc = await Transmission.find_one({"owner_id": owner_id, "status": TransmissionStatus.ACTIVE.value})
        return _to_record(TransmissionRecord, doc)

    async def update_transmission(
        self, transmission: TransmissionRecord, changes: dict[str, Any]
    ) -> TransmissionRecord:
        return await self._update_with_version_check(
            Transmission, {"transmission_id": transmission.transmission_id}, transmission, changes
        )

    # ==================== SOCIAL LIVES ====================

    async def create_social_live(self, live: SocialLiveRecord) -> SocialLiveRecord:
        await SocialLive(**live.model_dump()).insert()
        return live

    async def get_social_live(self, owner_id: str, live_id: str) -> SocialLiveRecord | None:
        doc = await SocialLive.find_one({"live_id": live_id, "owner_id": owner_id})
        return _to_record(SocialLiveRecord, doc)

    async def update_social_live(self, live: SocialLiveRecord, changes: dict[str, Any]) -> SocialLiveRecord:
        return await self._update_with_version_check(SocialLive, {"live_id": live.live_id}, live, changes)

    async def delete_social_live(self, owner_id: str, live_id: str) -> bool:
        result = await SocialLive.find({"live_id": live_id, "owner_id": owner_id}).delete()
        return bool(result and result.deleted_count)

    async def list_social_lives(
        self,
        owner_id: str,
        active_only: bool = False,
        limit: int = SOCIAL_LIVE_LIST_LIMIT,
    ) -> list[SocialLiveRecord]:
        query = SocialLive.find({"owner_id": owner_id})
        if active_only:
            query = query.find(In(SocialLive.status, SocialLiveStatus.active_states()))
        docs = await query.sort([("started_at", -1)]).limit(limit).to_list()
        return [_to_record(SocialLiveRecord, doc) for doc in docs]  # type: ignore[misc]

    # ==================== RECORDINGS ====================

    async def create_recording(self, recording: RecordingRecord) -> RecordingRecord:
        try:
            await Recording(**recording.model_dump()).insert()
        except DuplicateKeyError as e:
            raise recording_in_progress(recording.owner_id) from e
        return recording

    async def get_recording(self, owner_id: str, recording_id: str) -> RecordingRecord | None:
        doc = await Recording.find_one({"recording_id": recording_id, "owner_id": owner_id})
        return _to_record(RecordingRecord, doc)

    async def get_active_recording(self, owner_id: str) -> RecordingRecord | None:
        doc = await Recording.find_one({"owner_id": owner_id, "status": RecordingStatus.RECORDING.value})
        return _to_record(RecordingRecord, doc)

    async def update_recording(self, recording: RecordingRecord, changes: dict[str, Any]) -> RecordingRecord:
        return await self._update_with_version_check(
            Recording, {"recording_id": recording.recording_id}, recording, changes
        )

    # ==================== CATALOG ====================

    async def get_playlist(self, owner_id: str, playlist_id: str) -> PlaylistRecord | None:
        doc = await Playlist.find_one({"playlist_id": playlist_id, "owner_id": owner_id})
        return _to_record(PlaylistRecord, doc)

    async def save_playlist(self, playlist: PlaylistRecord) -> PlaylistRecord:
        await Playlist.find({"playlist_id": playlist.playlist_id}).delete()
        await Playlist(**playlist.model_dump()).insert()
        return playlist

    async def list_platforms(self) -> list[PlatformRecord]:
        docs = await StreamingPlatform.find({"is_active": True}).sort([("name", 1)]).to_list()
        return [_to_record(PlatformRecord, doc) for doc in docs]  # type: ignore[misc]

    async def save_platform(self, platform: PlatformRecord) -> PlatformRecord:
        await StreamingPlatform.find({"platform_id": platform.platform_id}).delete()
        await StreamingPlatform(**platform.model_dump()).insert()
        return platform
