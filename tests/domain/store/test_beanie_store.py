"""Tests for BeanieSessionStore against a real MongoDB (skipped without MONGO_URL_TEST)."""

import asyncio

import pytest

from streamctl.domain.store import BeanieSessionStore
from streamctl.schemas import PlatformRecord, RecordingStatus, SocialLiveStatus, TransmissionStatus
from streamctl.utils.app_errors import AppError, AppErrorCode
from tests.fixtures.control_fixtures import OTHER_OWNER_ID, OWNER_ID, make_endpoint, make_playlist
from tests.fixtures.store_fixtures import make_live, make_recording, make_transmission


@pytest.fixture
def beanie_store(clean_beanie_db) -> BeanieSessionStore:
    return BeanieSessionStore()


class TestBeanieEndpoint:
    async def test_save_and_get(self, beanie_store):
        await beanie_store.save_endpoint(make_endpoint())

        endpoint = await beanie_store.get_endpoint(OWNER_ID)

        assert endpoint.login == "login_owner_1"
        assert endpoint.server.host == "stream.example.com"

    async def test_stale_update_is_conflict(self, beanie_store):
        """Test the version filter rejects a write based on a stale read."""
        # Arrange
        await beanie_store.save_endpoint(make_endpoint())
        stale = await beanie_store.get_endpoint(OWNER_ID)
        await beanie_store.update_endpoint(stale, {"is_blocked": True})

        # Act
        with pytest.raises(AppError) as exc_info:
            await beanie_store.update_endpoint(stale, {"is_blocked": False})

        # Assert
        assert exc_info.value.errcode == AppErrorCode.E_VERSION_CONFLICT
        stored = await beanie_store.get_endpoint(OWNER_ID)
        assert stored.is_blocked is True
        assert stored.version == stale.version + 1

    async def test_delete(self, beanie_store):
        await beanie_store.save_endpoint(make_endpoint())

        assert await beanie_store.delete_endpoint(OWNER_ID) is True
        assert await beanie_store.delete_endpoint(OWNER_ID) is False


class TestBeanieActivePerOwner:
    """Tests for the partial unique indexes."""

    async def test_concurrent_active_transmissions(self, beanie_store):
        """Test only one of several concurrent inserts for an owner succeeds."""
        results = await asyncio.gather(
            *(beanie_store.create_transmission(make_transmission()) for _ in range(4)),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, AppError)]
        assert len(errors) == 3
        assert all(e.errcode == AppErrorCode.E_TRANSMISSION_ACTIVE for e in errors)

    async def test_finished_transmission_frees_slot(self, beanie_store):
        first = await beanie_store.create_transmission(make_transmission())
        await beanie_store.update_transmission(first, {"status": TransmissionStatus.FINISHED})

        await beanie_store.create_transmission(make_transmission())

        active = await beanie_store.get_active_transmission(OWNER_ID)
        assert active.transmission_id != first.transmission_id

    async def test_second_recording_rejected(self, beanie_store):
        first = await beanie_store.create_recording(make_recording())

        with pytest.raises(AppError) as exc_info:
            await beanie_store.create_recording(make_recording())

        assert exc_info.value.errcode == AppErrorCode.E_RECORDING_IN_PROGRESS
        await beanie_store.update_recording(first, {"status": RecordingStatus.STOPPED})
        await beanie_store.create_recording(make_recording())


class TestBeanieSocialLives:
    async def test_list_is_owner_scoped_and_filtered(self, beanie_store):
        newer = await beanie_store.create_social_live(make_live())
        await beanie_store.create_social_live(make_live(started_offset=-60, status=SocialLiveStatus.STOPPED))
        await beanie_store.create_social_live(make_live(owner_id=OTHER_OWNER_ID))

        everything = await beanie_store.list_social_lives(OWNER_ID)
        active = await beanie_store.list_social_lives(OWNER_ID, active_only=True)

        assert len(everything) == 2
        assert everything[0].live_id == newer.live_id
        assert [live.live_id for live in active] == [newer.live_id]


class TestBeanieCatalog:
    async def test_playlist_and_platforms(self, beanie_store):
        await beanie_store.save_playlist(make_playlist())
        await beanie_store.save_platform(PlatformRecord(platform_id="kick", name="Kick"))
        await beanie_store.save_platform(PlatformRecord(platform_id="old", name="Old", is_active=False))

        playlist = await beanie_store.get_playlist(OWNER_ID, "pl-1")
        platforms = await beanie_store.list_platforms()

        assert playlist.item_ids == ["video-0", "video-1", "video-2"]
        assert [p.platform_id for p in platforms] == ["kick"]
