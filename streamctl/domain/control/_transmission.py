"""Transmission operations.

start_transmission is a compensating sequence:
1. validate the playlist (no side effects on failure)
2. under the owner lock: finalize the active transmission, create the new one
3. provision the manifest; failure rolls the new transmission back to finished
4. make sure the remote application runs; failures only produce warnings
5. derive the public URLs
"""

from loguru import logger

from streamctl.domain.utils.idgen import new_transmission_id
from streamctl.domain.utils.stream_urls import build_stream_urls
from streamctl.schemas import (
    EndpointRecord,
    PlaylistRecord,
    PowerState,
    TransmissionKind,
    TransmissionRecord,
    TransmissionStatus,
)
from streamctl.services.integrations.manifest_service import ManifestResult
from streamctl.shared.utils import utc_now
from streamctl.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

from ._base import BaseOperations, ControlDependencies
from ._recording import RecordingOperations
from .control_models import (
    Outcome,
    ReloadScheduleResult,
    StartTransmissionOptions,
    TransmissionResult,
    TransmissionStatusResult,
)
from .state_machine import Effect, Intent, TransmissionStateMachine


class TransmissionOperations(BaseOperations):
    """Operations for playlist transmissions."""

    def __init__(self, deps: ControlDependencies):
        super().__init__(deps)
        self._recordings = RecordingOperations(deps)

    async def _get_playable_playlist(self, owner_id: str, playlist_id: str) -> PlaylistRecord:
        """Missing and foreign playlists are reported alike."""
        playlist = await self.store.get_playlist(owner_id, playlist_id)
        if playlist is None:
            raise AppError(
                errcode=AppErrorCode.E_PLAYLIST_NOT_FOUND,
                errmesg=f"Playlist {playlist_id} not found",
                status_code=HttpStatusCode.BAD_REQUEST,
            )
        if playlist.item_count == 0:
            raise AppError(
                errcode=AppErrorCode.E_PLAYLIST_EMPTY,
                errmesg=f'Playlist "{playlist.name}" has no items. Add videos before starting the transmission.',
                status_code=HttpStatusCode.BAD_REQUEST,
            )
        return playlist

    async def _provision(
        self,
        endpoint: EndpointRecord,
        playlist: PlaylistRecord | None,
        loop: bool,
    ) -> ManifestResult:
        """Provision the manifest. Rejections come back as `ok=False`; AppError covers timeouts and transport."""
        return await self._with_timeout(
            self.provisioner.provision(endpoint.owner_id, endpoint.login, playlist, loop),
            self.deps.manifest_timeout,
            f"manifest provisioning for {endpoint.login}",
        )

    async def _ensure_app_running(self, endpoint: EndpointRecord) -> list[str]:
        """Activate the remote application if needed. Every failure becomes a warning."""
        try:
            running = await self._remote(
                self.channel.is_running(endpoint.server, endpoint.login), f"status of {endpoint.login}"
            )
            if not running:
                logger.info(f"Activating remote application {endpoint.login}")
                result = await self._remote(
                    self.channel.activate(endpoint.server, endpoint.login), f"activate {endpoint.login}"
                )
                if not result.ok:
                    logger.warning(f"Activation of {endpoint.login} not confirmed: {result.detail}")
                    return [f"Remote application activation was not confirmed: {result.detail}"]
            if endpoint.power_state != PowerState.ON:
                await self.store.update_endpoint(endpoint, {"power_state": PowerState.ON})
        except AppError as e:
            logger.warning(f"Could not activate {endpoint.login}: {e.errmesg} {e.detail or ''}")
            return [f"Remote application could not be activated: {self._describe(e)}"]
        return []

    async def start_transmission(
        self,
        owner_id: str,
        playlist_id: str,
        title: str | None = None,
        description: str | None = None,
        options: StartTransmissionOptions | None = None,
    ) -> TransmissionResult:
        owner_id = self._require(owner_id, "owner_id")
        playlist_id = self._require(playlist_id, "playlist_id")
        options = options or StartTransmissionOptions()

        playlist = await self._get_playable_playlist(owner_id, playlist_id)

        logger.info(f"Starting transmission of playlist {playlist_id} for owner {owner_id}")

        async with self.owner_lock.hold(owner_id):
            endpoint = await self._get_endpoint(owner_id)
            self._ensure_not_blocked(endpoint)

            active = await self.store.get_active_transmission(owner_id)
            decision = TransmissionStateMachine.decide(active.status if active else None, Intent.START)
            assert decision is not None

            finalized_id: str | None = None
            if active and Effect.FINALIZE_PREVIOUS in decision.effects:
                await self.store.update_transmission(
                    active, {"status": TransmissionStatus.FINISHED, "ended_at": utc_now()}
                )
                finalized_id = active.transmission_id
                logger.info(f"Previous transmission {finalized_id} finalized for owner {owner_id}")

            now = utc_now()
            transmission = await self.store.create_transmission(
                TransmissionRecord(
                    transmission_id=new_transmission_id(),
                    owner_id=owner_id,
                    title=(title or "").strip() or playlist.name,
                    description=description or "",
                    playlist_id=playlist.playlist_id,
                    status=decision.target,
                    kind=TransmissionKind.PLAYLIST,
                    loop_playlist=options.loop_playlist,
                    started_at=now,
                    created_at=now,
                    updated_at=now,
                )
            )
            logger.info(f"Transmission {transmission.transmission_id} created for owner {owner_id}")

            manifest_error: AppError | None = None
            try:
                manifest = await self._provision(endpoint, playlist, options.loop_playlist)
                if not manifest.ok:
                    manifest_error = AppError(
                        errcode=AppErrorCode.E_MANIFEST_FAILED,
                        errmesg="Could not generate the playlist manifest",
                        status_code=HttpStatusCode.BAD_GATEWAY,
                        detail=manifest.error,
                    )
            except AppError as e:
                manifest_error = e
            except Exception as e:
                logger.exception(f"Manifest provisioning crashed for {endpoint.login}")
                manifest_error = AppError(
                    errcode=AppErrorCode.E_MANIFEST_FAILED,
                    errmesg="Could not generate the playlist manifest",
                    status_code=HttpStatusCode.BAD_GATEWAY,
                    detail=f"{type(e).__name__}: {e}",
                )

            if manifest_error is not None:
                transmission = await self.store.update_transmission(
                    transmission,
                    {
                        "status": TransmissionStatus.FINISHED,
                        "ended_at": utc_now(),
                        "rollback_reason": self._describe(manifest_error),
                    },
                )
                logger.warning(
                    f"Transmission {transmission.transmission_id} rolled back: {transmission.rollback_reason}"
                )
                return TransmissionResult.failure(
                    manifest_error,
                    transmission=self._transmission_view(transmission),
                    finalized_transmission_id=finalized_id,
                    playlist_name=playlist.name,
                    item_count=playlist.item_count,
                )

            warnings = await self._ensure_app_running(endpoint)

        manifest_name = manifest.manifest_name or self.deps.manifest_default_name
        urls = build_stream_urls(
            endpoint.server.host,
            endpoint.login,
            manifest_name,
            self.deps.player_base_url,
            playlist_id=playlist.playlist_id,
            rtmp_port=self.deps.rtmp_port,
            hints=manifest.hints,
        )

        result = TransmissionResult(
            message=f'Transmission of playlist "{playlist.name}" started',
            transmission=self._transmission_view(transmission),
            finalized_transmission_id=finalized_id,
            playlist_name=playlist.name,
            item_count=playlist.item_count,
            manifest_name=manifest_name,
            urls=urls,
            warnings=warnings,
        )

        if options.enable_recording:
            try:
                recording = await self._recordings.start_recording(owner_id)
            except AppError as e:
                result.warnings.append(f"Recording was not started: {self._describe(e)}")
            else:
                result.recording = recording.recording
                if not recording.success:
                    result.warnings.append(f"Recording was not started: {recording.message}")

        return result

    async def stop_transmission(self, owner_id: str, transmission_id: str) -> TransmissionResult:
        """Finish a transmission. The remote application is left running."""
        owner_id = self._require(owner_id, "owner_id")
        transmission_id = self._require(transmission_id, "transmission_id")

        async with self.owner_lock.hold(owner_id):
            transmission = await self.store.get_transmission(owner_id, transmission_id)
            if transmission is None:
                raise AppError(
                    errcode=AppErrorCode.E_TRANSMISSION_NOT_FOUND,
                    errmesg=f"Transmission {transmission_id} not found",
                    status_code=HttpStatusCode.NOT_FOUND,
                )

            decision = TransmissionStateMachine.decide(transmission.status, Intent.STOP)
            if decision is None or decision.is_noop:
                return TransmissionResult(
                    outcome=Outcome.ALREADY_IN_STATE,
                    already_inactive=True,
                    message="Transmission already finished",
                    transmission=self._transmission_view(transmission),
                )

            transmission = await self.store.update_transmission(
                transmission, {"status": decision.target, "ended_at": utc_now()}
            )

        logger.info(f"Transmission {transmission_id} finished for owner {owner_id}")
        return TransmissionResult(
            message="Transmission finished",
            transmission=self._transmission_view(transmission),
        )

    async def reload_schedule(self, owner_id: str) -> ReloadScheduleResult:
        """Regenerate the manifest of the active transmission without touching the remote application."""
        owner_id = self._require(owner_id, "owner_id")
        endpoint = await self._get_endpoint(owner_id)

        async with self.owner_lock.hold(owner_id):
            active = await self.store.get_active_transmission(owner_id)
            if active is None:
                raise AppError(
                    errcode=AppErrorCode.E_TRANSMISSION_NOT_FOUND,
                    errmesg="No active transmission to reload",
                    status_code=HttpStatusCode.NOT_FOUND,
                )

            playlist = None
            if active.playlist_id:
                playlist = await self.store.get_playlist(owner_id, active.playlist_id)

            manifest = await self._provision(endpoint, playlist, active.loop_playlist)
            if not manifest.ok:
                raise AppError(
                    errcode=AppErrorCode.E_MANIFEST_FAILED,
                    errmesg="Could not regenerate the playlist manifest",
                    status_code=HttpStatusCode.BAD_GATEWAY,
                    detail=manifest.error,
                )

        manifest_name = manifest.manifest_name or self.deps.manifest_default_name
        logger.info(f"Schedule reloaded for owner {owner_id} (transmission {active.transmission_id})")
        return ReloadScheduleResult(
            message="Schedule reloaded without interrupting the transmission",
            transmission_id=active.transmission_id,
            manifest_name=manifest_name,
            urls=build_stream_urls(
                endpoint.server.host,
                endpoint.login,
                manifest_name,
                self.deps.player_base_url,
                playlist_id=active.playlist_id,
                rtmp_port=self.deps.rtmp_port,
                hints=manifest.hints,
            ),
        )

    async def transmission_status(self, owner_id: str) -> TransmissionStatusResult:
        owner_id = self._require(owner_id, "owner_id")
        active = await self.store.get_active_transmission(owner_id)
        if active is None:
            return TransmissionStatusResult(is_live=False, message="No active transmission")

        return TransmissionStatusResult(
            is_live=True,
            stream_type=active.kind,
            transmission=self._transmission_view(active),
        )
