"""Tests for transmission operations."""

import asyncio
import re

import httpx

from streamctl.domain.control import ControlDependencies, Outcome, StartTransmissionOptions, StreamingControlService
from streamctl.schemas import PowerState, TransmissionStatus
from streamctl.services.integrations.manifest_service import HttpManifestProvisioner, ManifestResult
from streamctl.services.integrations.media_server import CommandResult
from streamctl.services.integrations.wowza_service import WowzaRestChannel
from streamctl.utils.app_errors import AppError, AppErrorCode, HttpStatusCode
from tests.fixtures.control_fixtures import (
    OTHER_OWNER_ID,
    OWNER_ID,
    REMOTE_TIMEOUT,
    make_endpoint,
    make_playlist,
    never_answers,
)

PLAYBACK_URL_PATTERN = re.compile(r"^https://[^/]+/(?P<login>[^/]+)/(?P=login)/playlist\.m3u8$")


class TestStartTransmission:
    """Tests for start_transmission."""

    async def test_start_returns_urls_and_active_row(self, service, store, provisioner, endpoint, playlist):
        """Test a 3-item playlist starts an active transmission with a playback URL."""
        # Act
        result = await service.start_transmission(OWNER_ID, playlist.playlist_id)

        # Assert
        assert result.success is True
        assert result.transmission.status == TransmissionStatus.ACTIVE
        assert result.item_count == 3
        assert result.playlist_name == "Morning Show"
        assert result.transmission.title == "Morning Show"
        assert PLAYBACK_URL_PATTERN.match(result.urls.playback_hls)
        assert result.urls.direct_hls.endswith("/smil:playlist_schedule.smil/playlist.m3u8")
        provisioner.provision.assert_awaited_once()
        active = await store.get_active_transmission(OWNER_ID)
        assert active.transmission_id == result.transmission.transmission_id

    async def test_second_start_finalizes_first(self, service, store, endpoint, playlist):
        """Test starting another playlist finalizes the previous transmission first."""
        # Arrange
        await store.save_playlist(make_playlist(playlist_id="pl-2", name="Evening Show"))
        first = await service.start_transmission(OWNER_ID, playlist.playlist_id)

        # Act
        second = await service.start_transmission(OWNER_ID, "pl-2")

        # Assert
        assert second.success is True
        assert second.finalized_transmission_id == first.transmission.transmission_id
        previous = await store.get_transmission(OWNER_ID, first.transmission.transmission_id)
        assert previous.status == TransmissionStatus.FINISHED
        assert previous.ended_at is not None
        assert previous.ended_at <= second.transmission.started_at
        rows = store.list_transmissions(OWNER_ID)
        assert [t.status for t in rows].count(TransmissionStatus.ACTIVE) == 1

    async def test_start_activates_app_and_sets_power_on(self, service, store, channel, endpoint, playlist):
        """Test a stopped remote application is activated during start."""
        result = await service.start_transmission(OWNER_ID, playlist.playlist_id)

        assert result.success is True
        assert result.warnings == []
        channel.activate.assert_awaited_once()
        stored = await store.get_endpoint(OWNER_ID)
        assert stored.power_state == PowerState.ON

    async def test_activation_failure_only_warns(self, service, store, channel, endpoint, playlist):
        """Test a remote activation failure keeps the transmission and reports a warning."""
        # Arrange
        channel.activate.return_value = CommandResult(ok=False, detail="ambiguous reply")

        # Act
        result = await service.start_transmission(OWNER_ID, playlist.playlist_id)

        # Assert
        assert result.success is True
        assert len(result.warnings) == 1
        assert result.urls is not None
        assert (await store.get_active_transmission(OWNER_ID)) is not None

    async def test_provisioner_hints_override_urls(self, service, provisioner, endpoint, playlist):
        """Test URL hints from the provisioner win over derived URLs."""
        provisioner.provision.return_value = ManifestResult(
            ok=True,
            manifest_name="custom.smil",
            hints={"direct_hls": "https://cdn.example.com/custom.m3u8"},
        )

        result = await service.start_transmission(OWNER_ID, playlist.playlist_id)

        assert result.manifest_name == "custom.smil"
        assert result.urls.direct_hls == "https://cdn.example.com/custom.m3u8"
        assert "smil:custom.smil" in result.urls.direct_rtmp

    async def test_loop_option_forwarded_to_provisioner(self, service, provisioner, endpoint, playlist):
        """Test loop_playlist reaches the provisioner."""
        await service.start_transmission(
            OWNER_ID, playlist.playlist_id, options=StartTransmissionOptions(loop_playlist=False)
        )

        args = provisioner.provision.await_args.args
        assert args[0] == OWNER_ID
        assert args[3] is False

    async def test_enable_recording_starts_recording(self, service, store, capture, endpoint, playlist):
        """Test enable_recording starts a recording after the transmission is up."""
        result = await service.start_transmission(
            OWNER_ID, playlist.playlist_id, options=StartTransmissionOptions(enable_recording=True)
        )

        assert result.success is True
        assert result.recording is not None
        assert result.recording.pid == 4242
        capture.spawn.assert_awaited_once()

    async def test_enable_recording_failure_is_warning(self, service, store, capture, endpoint, playlist):
        """Test a recording that cannot start does not fail the transmission."""
        # Arrange
        capture.spawn.side_effect = AppError(
            errcode=AppErrorCode.E_PROCESS_ERROR,
            errmesg="Capture process exited immediately",
            status_code=HttpStatusCode.INTERNAL_SERVER_ERROR,
            detail="Connection refused",
        )

        # Act
        result = await service.start_transmission(
            OWNER_ID, playlist.playlist_id, options=StartTransmissionOptions(enable_recording=True)
        )

        # Assert
        assert result.success is True
        assert any("Recording was not started" in w for w in result.warnings)
        assert (await store.get_active_transmission(OWNER_ID)) is not None


class TestStartTransmissionRollback:
    """Tests for manifest failure compensation."""

    async def test_manifest_rejection_rolls_back(self, service, store, provisioner, channel, endpoint, playlist):
        """Test a failed manifest leaves no active row and returns no URLs."""
        # Arrange
        provisioner.provision.return_value = ManifestResult(ok=False, error="disk full")

        # Act
        result = await service.start_transmission(OWNER_ID, playlist.playlist_id)

        # Assert
        assert result.success is False
        assert result.errcode == AppErrorCode.E_MANIFEST_FAILED
        assert result.outcome == Outcome.REMOTE_ERROR
        assert result.urls is None
        assert result.transmission.status == TransmissionStatus.FINISHED
        assert "disk full" in result.transmission.rollback_reason
        assert await store.get_active_transmission(OWNER_ID) is None
        channel.activate.assert_not_awaited()

    async def test_manifest_timeout_rolls_back(self, service, store, provisioner, endpoint, playlist):
        """Test a provisioner that never answers is reported as timeout and rolled back."""
        provisioner.provision.side_effect = never_answers

        result = await service.start_transmission(OWNER_ID, playlist.playlist_id)

        assert result.success is False
        assert result.outcome == Outcome.REMOTE_TIMEOUT
        assert result.urls is None
        assert await store.get_active_transmission(OWNER_ID) is None

    async def test_manifest_crash_rolls_back(self, service, store, provisioner, channel, endpoint, playlist):
        """Test an unexpected provisioner exception is reported as a manifest failure and rolled back."""
        provisioner.provision.side_effect = AttributeError("'list' object has no attribute 'get'")

        result = await service.start_transmission(OWNER_ID, playlist.playlist_id)

        assert result.success is False
        assert result.errcode == AppErrorCode.E_MANIFEST_FAILED
        assert result.transmission.status == TransmissionStatus.FINISHED
        assert "AttributeError" in result.transmission.rollback_reason
        assert await store.get_active_transmission(OWNER_ID) is None
        channel.activate.assert_not_awaited()

    async def test_non_object_provisioner_reply_rolls_back(self, deps, store, endpoint, playlist):
        """Test a provisioner answering a JSON array leaves no active row."""
        # Arrange
        deps.provisioner = HttpManifestProvisioner(
            base_url="http://provisioner.local",
            timeout=1,
            demo_mode=False,
            transport=httpx.MockTransport(lambda r: httpx.Response(200, json=["unexpected"])),
        )
        service = StreamingControlService(deps)

        # Act
        result = await service.start_transmission(OWNER_ID, playlist.playlist_id)

        # Assert
        assert result.success is False
        assert result.errcode == AppErrorCode.E_MANIFEST_FAILED
        assert result.urls is None
        assert await store.get_active_transmission(OWNER_ID) is None

    async def test_rollback_keeps_previous_finalized(self, service, store, provisioner, endpoint, playlist):
        """Test the superseded transmission stays finished when the new one rolls back."""
        # Arrange
        first = await service.start_transmission(OWNER_ID, playlist.playlist_id)
        provisioner.provision.return_value = ManifestResult(ok=False, error="bad schedule")

        # Act
        second = await service.start_transmission(OWNER_ID, playlist.playlist_id)

        # Assert
        assert second.success is False
        assert second.finalized_transmission_id == first.transmission.transmission_id
        assert await store.get_active_transmission(OWNER_ID) is None


class TestStartTransmissionActivation:
    """Tests for remote application activation during start."""

    async def test_status_query_error_only_warns(self, service, store, channel, endpoint, playlist):
        channel.is_running.side_effect = AppError(
            errcode=AppErrorCode.E_REMOTE_ERROR,
            errmesg="Media server sent an unrecognized reply",
            status_code=HttpStatusCode.BAD_GATEWAY,
            detail="Unrecognized reply: OK",
        )

        result = await service.start_transmission(OWNER_ID, playlist.playlist_id)

        assert result.success is True
        assert len(result.warnings) == 1
        assert result.urls is not None
        channel.activate.assert_not_awaited()

    async def test_plain_text_media_server_only_warns(self, store, provisioner, capture, endpoint, playlist):
        """Test a media server answering plain text keeps the transmission and returns URLs."""
        # Arrange
        channel = WowzaRestChannel(
            timeout=1,
            demo_mode=False,
            transport=httpx.MockTransport(lambda r: httpx.Response(200, text="OK")),
        )
        service = StreamingControlService(
            ControlDependencies(
                store=store,
                channel=channel,
                provisioner=provisioner,
                capture=capture,
                remote_timeout=REMOTE_TIMEOUT,
                manifest_timeout=REMOTE_TIMEOUT,
            )
        )

        # Act
        result = await service.start_transmission(OWNER_ID, playlist.playlist_id)

        # Assert
        assert result.success is True
        assert len(result.warnings) == 1
        assert result.urls is not None
        assert (await store.get_active_transmission(OWNER_ID)) is not None


class TestStartTransmissionValidation:
    """Tests for pre-flight validation (no side effects)."""

    async def test_empty_playlist_rejected(self, service, store, provisioner, endpoint):
        """Test an empty playlist is a validation error with zero side effects."""
        await store.save_playlist(make_playlist(item_count=0))

        result = await service.start_transmission(OWNER_ID, "pl-1")

        assert result.success is False
        assert result.outcome == Outcome.VALIDATION_ERROR
        assert result.errcode == AppErrorCode.E_PLAYLIST_EMPTY
        assert store.list_transmissions(OWNER_ID) == []
        provisioner.provision.assert_not_awaited()

    async def test_foreign_playlist_looks_missing(self, service, store, endpoint):
        """Test another owner's playlist is reported exactly like a missing one."""
        await store.save_playlist(make_playlist(playlist_id="pl-foreign", owner_id=OTHER_OWNER_ID))

        foreign = await service.start_transmission(OWNER_ID, "pl-foreign")
        missing = await service.start_transmission(OWNER_ID, "pl-missing")

        assert foreign.errcode == missing.errcode == AppErrorCode.E_PLAYLIST_NOT_FOUND
        assert foreign.outcome == Outcome.VALIDATION_ERROR
        assert store.list_transmissions(OWNER_ID) == []

    async def test_blocked_endpoint_rejected(self, service, store, playlist):
        """Test a blocked endpoint cannot start a transmission."""
        await store.save_endpoint(make_endpoint(is_blocked=True))

        result = await service.start_transmission(OWNER_ID, playlist.playlist_id)

        assert result.outcome == Outcome.CONFLICT
        assert store.list_transmissions(OWNER_ID) == []


class TestConcurrentStarts:
    """Tests for the single-active invariant under concurrency."""

    async def test_concurrent_starts_leave_one_active(self, service, store, endpoint, playlist):
        """Test N concurrent starts for one owner end with exactly one active transmission."""
        # Act
        results = await asyncio.gather(*(service.start_transmission(OWNER_ID, "pl-1") for _ in range(8)))

        # Assert
        assert all(r.success for r in results)
        rows = store.list_transmissions(OWNER_ID)
        assert len(rows) == 8
        assert [t.status for t in rows].count(TransmissionStatus.ACTIVE) == 1

    async def test_owners_are_independent(self, service, store, provisioner, endpoint, playlist):
        """Test one owner's failure does not affect another owner's start."""
        # Arrange
        await store.save_endpoint(make_endpoint(owner_id=OTHER_OWNER_ID))
        await store.save_playlist(make_playlist(playlist_id="pl-other", owner_id=OTHER_OWNER_ID))

        async def provision(owner_id, login, playlist, loop):
            if owner_id == OWNER_ID:
                return ManifestResult(ok=False, error="broken")
            return ManifestResult(ok=True, manifest_name="playlist_schedule.smil")

        provisioner.provision.side_effect = provision

        # Act
        mine, other = await asyncio.gather(
            service.start_transmission(OWNER_ID, "pl-1"),
            service.start_transmission(OTHER_OWNER_ID, "pl-other"),
        )

        # Assert
        assert mine.success is False
        assert other.success is True
        assert await store.get_active_transmission(OWNER_ID) is None
        assert await store.get_active_transmission(OTHER_OWNER_ID) is not None


class TestStopAndReload:
    """Tests for stop_transmission, reload_schedule and transmission_status."""

    async def test_stop_is_owner_scoped(self, service, store, endpoint, playlist):
        """Test another owner cannot stop (or learn about) a transmission."""
        started = await service.start_transmission(OWNER_ID, playlist.playlist_id)
        tx_id = started.transmission.transmission_id

        foreign = await service.stop_transmission(OTHER_OWNER_ID, tx_id)

        assert foreign.success is False
        assert foreign.outcome == Outcome.NOT_FOUND
        assert (await store.get_active_transmission(OWNER_ID)).transmission_id == tx_id

    async def test_stop_then_stop_again(self, service, store, channel, endpoint, playlist):
        """Test stop finishes the transmission, a second stop is a no-op and the app keeps running."""
        started = await service.start_transmission(OWNER_ID, playlist.playlist_id)
        tx_id = started.transmission.transmission_id

        stopped = await service.stop_transmission(OWNER_ID, tx_id)
        again = await service.stop_transmission(OWNER_ID, tx_id)

        assert stopped.success is True
        assert stopped.transmission.status == TransmissionStatus.FINISHED
        assert again.success is True
        assert again.already_inactive is True
        channel.deactivate.assert_not_awaited()

    async def test_reload_schedule_reprovisions(self, service, provisioner, channel, endpoint, playlist):
        """Test reload regenerates the manifest without touching the remote application."""
        started = await service.start_transmission(OWNER_ID, playlist.playlist_id)
        channel.reset_mock()

        result = await service.reload_schedule(OWNER_ID)

        assert result.success is True
        assert result.transmission_id == started.transmission.transmission_id
        assert provisioner.provision.await_count == 2
        channel.activate.assert_not_awaited()
        channel.is_running.assert_not_awaited()

    async def test_reload_without_active_is_not_found(self, service, endpoint):
        """Test reload with no active transmission is not_found."""
        result = await service.reload_schedule(OWNER_ID)

        assert result.outcome == Outcome.NOT_FOUND

    async def test_transmission_status(self, service, endpoint, playlist):
        """Test status reports the active playlist transmission."""
        idle = await service.transmission_status(OWNER_ID)
        await service.start_transmission(OWNER_ID, playlist.playlist_id)
        live = await service.transmission_status(OWNER_ID)

        assert idle.is_live is False
        assert live.is_live is True
        assert live.stream_type == "playlist"
