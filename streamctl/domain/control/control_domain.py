"""Streaming control service - lifecycle orchestrator entry point."""

from collections.abc import Awaitable
from typing import TypeVar

from loguru import logger

from streamctl.domain.store import SessionStore
from streamctl.services.capture.ffmpeg_supervisor import FfmpegCaptureSupervisor
from streamctl.services.integrations.manifest_service import HttpManifestProvisioner
from streamctl.services.integrations.wowza_service import WowzaRestChannel
from streamctl.shared.lock import build_owner_lock
from streamctl.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

from ._base import ControlDependencies
from ._diagnostics import DiagnosticsOperations
from ._endpoint import EndpointOperations
from ._recording import RecordingOperations
from ._social_live import SocialLiveOperations
from ._transmission import TransmissionOperations
from .control_models import (
    ActorRole,
    ControlResult,
    DiagnosticsResult,
    EndpointResult,
    EndpointStatusResult,
    IncomingStreamResult,
    PlatformCatalogResult,
    RecordingResult,
    ReloadScheduleResult,
    RemoveEndpointResult,
    SocialLiveListResult,
    SocialLiveResult,
    SourceUrlsResult,
    StartSocialLiveParams,
    StartTransmissionOptions,
    TransmissionResult,
    TransmissionStatusResult,
)

R = TypeVar("R", bound=ControlResult)


class StreamingControlService:
    """Owner-scoped control operations.

    Every method returns a result; expected failures (validation, not found,
    conflicts, remote errors and timeouts) are reported through `success`,
    `outcome` and `errcode` instead of being raised.
    """

    def __init__(self, deps: ControlDependencies):
        self.deps = deps
        self._endpoint = EndpointOperations(deps)
        self._transmission = TransmissionOperations(deps)
        self._recording = RecordingOperations(deps)
        self._social_live = SocialLiveOperations(deps)
        self._diagnostics = DiagnosticsOperations(deps)

    @staticmethod
    async def _guard(result_cls: type[R], operation: str, owner_id: str | None, call: Awaitable[R]) -> R:
        try:
            return await call
        except AppError as e:
            logger.info(f"{operation} failed for owner {owner_id}: {e.errcode} {e.errmesg} caller={e.caller_info}")
            return result_cls.failure(e)
        except Exception as e:
            logger.exception(f"{operation} crashed for owner {owner_id}: {e}")
            return result_cls.failure(
                AppError(
                    errcode=AppErrorCode.E_INTERNAL_ERROR,
                    errmesg="We are sorry, an error occurred.",
                    status_code=HttpStatusCode.INTERNAL_SERVER_ERROR,
                )
            )

    # ==================== ENDPOINT ====================

    async def toggle_on(self, owner_id: str) -> EndpointResult:
        """Activate the owner's remote application. Already on is a successful no-op."""
        return await self._guard(EndpointResult, "toggle_on", owner_id, self._endpoint.toggle_on(owner_id))

    async def toggle_off(self, owner_id: str) -> EndpointResult:
        """Deactivate the owner's remote application. Already off is a successful no-op."""
        return await self._guard(EndpointResult, "toggle_off", owner_id, self._endpoint.toggle_off(owner_id))

    async def restart(self, owner_id: str) -> EndpointResult:
        return await self._guard(EndpointResult, "restart", owner_id, self._endpoint.restart(owner_id))

    async def block(self, owner_id: str, actor_role: ActorRole | str | None) -> EndpointResult:
        return await self._guard(EndpointResult, "block", owner_id, self._endpoint.block(owner_id, actor_role))

    async def unblock(self, owner_id: str, actor_role: ActorRole | str | None) -> EndpointResult:
        return await self._guard(EndpointResult, "unblock", owner_id, self._endpoint.unblock(owner_id, actor_role))

    async def remove(self, owner_id: str, actor_role: ActorRole | str | None) -> RemoveEndpointResult:
        """Remove the endpoint configuration. Refused while a transmission is active."""
        return await self._guard(
            RemoveEndpointResult, "remove", owner_id, self._endpoint.remove(owner_id, actor_role)
        )

    async def endpoint_status(self, owner_id: str) -> EndpointStatusResult:
        return await self._guard(
            EndpointStatusResult, "endpoint_status", owner_id, self._endpoint.endpoint_status(owner_id)
        )

    async def source_urls(self, owner_id: str) -> SourceUrlsResult:
        return await self._guard(SourceUrlsResult, "source_urls", owner_id, self._endpoint.source_urls(owner_id))

    async def incoming_stream_status(self, owner_id: str) -> IncomingStreamResult:
        return await self._guard(
            IncomingStreamResult,
            "incoming_stream_status",
            owner_id,
            self._endpoint.incoming_stream_status(owner_id),
        )

    # ==================== TRANSMISSION ====================

    async def start_transmission(
        self,
        owner_id: str,
        playlist_id: str,
        title: str | None = None,
        description: str | None = None,
        options: StartTransmissionOptions | None = None,
    ) -> TransmissionResult:
        """Start a playlist transmission, finalizing the owner's active one first.

        A failed manifest provisioning rolls the new transmission back to finished.
        """
        return await self._guard(
            TransmissionResult,
            "start_transmission",
            owner_id,
            self._transmission.start_transmission(
                owner_id,
                playlist_id,
                title=title,
                description=description,
                options=options,
            ),
        )

    async def stop_transmission(self, owner_id: str, transmission_id: str) -> TransmissionResult:
        return await self._guard(
            TransmissionResult,
            "stop_transmission",
            owner_id,
            self._transmission.stop_transmission(owner_id, transmission_id),
        )

    async def reload_schedule(self, owner_id: str) -> ReloadScheduleResult:
        return await self._guard(
            ReloadScheduleResult, "reload_schedule", owner_id, self._transmission.reload_schedule(owner_id)
        )

    async def transmission_status(self, owner_id: str) -> TransmissionStatusResult:
        return await self._guard(
            TransmissionStatusResult,
            "transmission_status",
            owner_id,
            self._transmission.transmission_status(owner_id),
        )

    # ==================== SOCIAL LIVE ====================

    async def start_social_live(self, owner_id: str, params: StartSocialLiveParams) -> SocialLiveResult:
        return await self._guard(
            SocialLiveResult, "start_social_live", owner_id, self._social_live.start_social_live(owner_id, params)
        )

    async def stop_social_live(self, owner_id: str, live_id: str) -> SocialLiveResult:
        return await self._guard(
            SocialLiveResult, "stop_social_live", owner_id, self._social_live.stop_social_live(owner_id, live_id)
        )

    async def restart_social_live(self, owner_id: str, live_id: str) -> SocialLiveResult:
        """Stop then start with the same platform and credentials under a new id."""
        return await self._guard(
            SocialLiveResult,
            "restart_social_live",
            owner_id,
            self._social_live.restart_social_live(owner_id, live_id),
        )

    async def social_live_status(self, owner_id: str, live_id: str) -> SocialLiveResult:
        return await self._guard(
            SocialLiveResult,
            "social_live_status",
            owner_id,
            self._social_live.social_live_status(owner_id, live_id),
        )

    async def remove_social_live(self, owner_id: str, live_id: str) -> SocialLiveResult:
        return await self._guard(
            SocialLiveResult,
            "remove_social_live",
            owner_id,
            self._social_live.remove_social_live(owner_id, live_id),
        )

    async def list_social_lives(self, owner_id: str, active_only: bool = False) -> SocialLiveListResult:
        return await self._guard(
            SocialLiveListResult,
            "list_social_lives",
            owner_id,
            self._social_live.list_social_lives(owner_id, active_only=active_only),
        )

    async def platform_catalog(self) -> PlatformCatalogResult:
        return await self._guard(PlatformCatalogResult, "platform_catalog", None, self._social_live.platform_catalog())

    # ==================== RECORDING ====================

    async def start_recording(self, owner_id: str) -> RecordingResult:
        """Start capturing the owner's published output. Rejected while a recording is in progress."""
        return await self._guard(RecordingResult, "start_recording", owner_id, self._recording.start_recording(owner_id))

    async def stop_recording(self, owner_id: str) -> RecordingResult:
        return await self._guard(RecordingResult, "stop_recording", owner_id, self._recording.stop_recording(owner_id))

    async def recording_status(self, owner_id: str) -> RecordingResult:
        return await self._guard(
            RecordingResult, "recording_status", owner_id, self._recording.recording_status(owner_id)
        )

    # ==================== DIAGNOSTICS ====================

    async def run_diagnostics(self, owner_id: str, selector: str | None = "all") -> DiagnosticsResult:
        return await self._guard(
            DiagnosticsResult, "run_diagnostics", owner_id, self._diagnostics.run_diagnostics(owner_id, selector)
        )


def build_streaming_control_service(store: SessionStore) -> StreamingControlService:
    """Service wired to the configured media server, provisioner, capture binary and owner lock."""
    return StreamingControlService(
        ControlDependencies(
            store=store,
            channel=WowzaRestChannel(),
            provisioner=HttpManifestProvisioner(),
            capture=FfmpegCaptureSupervisor(),
            owner_lock=build_owner_lock(),
        )
    )
