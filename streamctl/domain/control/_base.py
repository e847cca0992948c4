"""Base class and collaborators shared by the control operations."""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from loguru import logger

from streamctl.app_config import get_app_environ_config
from streamctl.domain.store import SessionStore
from streamctl.schemas import (
    EndpointRecord,
    RecordingRecord,
    SocialLiveRecord,
    TransmissionRecord,
)
from streamctl.services.capture.supervisor import CaptureProcessSupervisor
from streamctl.services.integrations.manifest_service import ManifestProvisioner
from streamctl.services.integrations.media_server import RemoteControlChannel
from streamctl.shared.lock import KeyedAsyncLock, OwnerLock
from streamctl.utils.app_errors import AppError, AppErrorCode, HttpStatusCode, RemoteTimeoutError

from .control_models import (
    ActorRole,
    RecordingResponse,
    SocialLiveResponse,
    TransmissionResponse,
)

T = TypeVar("T")


class ControlDependencies:
    """Collaborators and tunables of the control operations.

    Tunables default to the application config; tests pass small values.
    """

    def __init__(
        self,
        store: SessionStore,
        channel: RemoteControlChannel,
        provisioner: ManifestProvisioner,
        capture: CaptureProcessSupervisor,
        owner_lock: OwnerLock | None = None,
        remote_timeout: float | None = None,
        manifest_timeout: float | None = None,
        capture_settle_seconds: float | None = None,
        recordings_root: str | None = None,
    ):
        cfg = get_app_environ_config()
        self.store = store
        self.channel = channel
        self.provisioner = provisioner
        self.capture = capture
        self.owner_lock = owner_lock or KeyedAsyncLock()

        self.remote_timeout = remote_timeout if remote_timeout is not None else cfg.REMOTE_COMMAND_TIMEOUT_SECONDS
        self.manifest_timeout = (
            manifest_timeout if manifest_timeout is not None else cfg.MANIFEST_PROVISION_TIMEOUT_SECONDS
        )
        self.capture_settle_seconds = (
            capture_settle_seconds if capture_settle_seconds is not None else cfg.CAPTURE_SETTLE_SECONDS
        )
        self.recordings_root = recordings_root or cfg.RECORDINGS_ROOT
        self.recordings_dirname = cfg.RECORDINGS_DIRNAME
        self.manifest_default_name = cfg.MANIFEST_DEFAULT_NAME
        self.player_base_url = cfg.PLAYER_BASE_URL
        self.rtmp_port = cfg.MEDIA_SERVER_RTMP_PORT


class BaseOperations:
    """Base class with lookups, guards and timeout wrappers shared by all operations."""

    def __init__(self, deps: ControlDependencies):
        self.deps = deps
        self.store = deps.store
        self.channel = deps.channel
        self.provisioner = deps.provisioner
        self.capture = deps.capture
        self.owner_lock = deps.owner_lock

    async def _with_timeout(self, awaitable: Awaitable[T], seconds: float, what: str) -> T:
        """Await a collaborator call, turning expiry into RemoteTimeoutError."""
        try:
            return await asyncio.wait_for(awaitable, timeout=seconds)
        except asyncio.TimeoutError as e:
            logger.warning(f"Timed out after {seconds}s: {what}")
            raise RemoteTimeoutError(
                errmesg=f"Could not determine state: {what} timed out",
                detail=f"no answer within {seconds}s",
            ) from e

    async def _remote(self, awaitable: Awaitable[T], what: str) -> T:
        return await self._with_timeout(awaitable, self.deps.remote_timeout, what)

    @staticmethod
    def _require(value: str | None, name: str) -> str:
        if not value or not str(value).strip():
            raise AppError(
                errcode=AppErrorCode.E_INVALID_REQUEST,
                errmesg=f"{name} is required",
                status_code=HttpStatusCode.BAD_REQUEST,
            )
        return str(value).strip()

    @staticmethod
    def _require_elevated_role(actor_role: ActorRole | str | None) -> None:
        """Raise before any lookup when the actor may not administer endpoints."""
        try:
            role = ActorRole(actor_role) if actor_role is not None else None
        except ValueError:
            role = None
        if role not in ActorRole.elevated_roles():
            raise AppError(
                errcode=AppErrorCode.E_FORBIDDEN,
                errmesg="Only administrators and resellers can perform this operation",
                status_code=HttpStatusCode.FORBIDDEN,
            )

    async def _get_endpoint(self, owner_id: str) -> EndpointRecord:
        endpoint = await self.store.get_endpoint(owner_id)
        if not endpoint:
            raise AppError(
                errcode=AppErrorCode.E_ENDPOINT_NOT_FOUND,
                errmesg=f"No streaming endpoint configured for owner {owner_id}",
                status_code=HttpStatusCode.NOT_FOUND,
            )
        return endpoint

    @staticmethod
    def _ensure_not_blocked(endpoint: EndpointRecord) -> None:
        if endpoint.is_blocked:
            raise AppError(
                errcode=AppErrorCode.E_ENDPOINT_BLOCKED,
                errmesg=f"Streaming endpoint {endpoint.login} is blocked",
                status_code=HttpStatusCode.CONFLICT,
            )

    @staticmethod
    def _describe(error: AppError) -> str:
        return f"{error.errmesg} ({error.detail})" if error.detail else error.errmesg

    @staticmethod
    def _transmission_view(transmission: TransmissionRecord) -> TransmissionResponse:
        return TransmissionResponse(**transmission.model_dump(mode="json"))

    @staticmethod
    def _social_live_view(live: SocialLiveRecord) -> SocialLiveResponse:
        return SocialLiveResponse(**live.model_dump(mode="json", exclude={"stream_key", "target_url"}))

    @staticmethod
    def _recording_view(recording: RecordingRecord) -> RecordingResponse:
        return RecordingResponse(**recording.model_dump(mode="json"))
