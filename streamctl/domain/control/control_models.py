"""Result and view models returned by the streaming control service."""

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from streamctl.domain.utils.stream_urls import SourceUrls, StreamUrls
from streamctl.schemas import (
    LiveMetrics,
    PowerState,
    RecordingStatus,
    SocialLiveStatus,
    TransmissionKind,
    TransmissionStatus,
)
from streamctl.utils.app_errors import AppError, AppErrorCode


class Outcome(str, Enum):
    OK = "ok"
    ALREADY_IN_STATE = "already_in_state"
    VALIDATION_ERROR = "validation_error"
    NOT_FOUND = "not_found"
    AUTHORIZATION_ERROR = "authorization_error"
    CONFLICT = "conflict"
    REMOTE_ERROR = "remote_error"
    REMOTE_TIMEOUT = "remote_timeout"
    PROCESS_ERROR = "process_error"
    INTERNAL_ERROR = "internal_error"

    def __str__(self) -> str:
        return self.value


class ActorRole(str, Enum):
    ADMIN = "admin"
    RESELLER = "reseller"
    USER = "user"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def elevated_roles(cls) -> set["ActorRole"]:
        return {ActorRole.ADMIN, ActorRole.RESELLER}


_OUTCOME_BY_ERRCODE: dict[str, Outcome] = {
    AppErrorCode.E_INVALID_REQUEST: Outcome.VALIDATION_ERROR,
    AppErrorCode.E_PLAYLIST_EMPTY: Outcome.VALIDATION_ERROR,
    AppErrorCode.E_UNAUTHORIZED: Outcome.AUTHORIZATION_ERROR,
    AppErrorCode.E_FORBIDDEN: Outcome.AUTHORIZATION_ERROR,
    AppErrorCode.E_ENDPOINT_NOT_FOUND: Outcome.NOT_FOUND,
    AppErrorCode.E_PLAYLIST_NOT_FOUND: Outcome.VALIDATION_ERROR,
    AppErrorCode.E_PLATFORM_NOT_FOUND: Outcome.NOT_FOUND,
    AppErrorCode.E_TRANSMISSION_NOT_FOUND: Outcome.NOT_FOUND,
    AppErrorCode.E_SOCIAL_LIVE_NOT_FOUND: Outcome.NOT_FOUND,
    AppErrorCode.E_RECORDING_NOT_FOUND: Outcome.NOT_FOUND,
    AppErrorCode.E_ENDPOINT_BLOCKED: Outcome.CONFLICT,
    AppErrorCode.E_TRANSMISSION_ACTIVE: Outcome.CONFLICT,
    AppErrorCode.E_SOCIAL_LIVE_ACTIVE: Outcome.CONFLICT,
    AppErrorCode.E_VERSION_CONFLICT: Outcome.CONFLICT,
    AppErrorCode.E_OWNER_BUSY: Outcome.CONFLICT,
    AppErrorCode.E_RECORDING_IN_PROGRESS: Outcome.ALREADY_IN_STATE,
    AppErrorCode.E_ALREADY_IN_STATE: Outcome.ALREADY_IN_STATE,
    AppErrorCode.E_MANIFEST_FAILED: Outcome.REMOTE_ERROR,
    AppErrorCode.E_REMOTE_ERROR: Outcome.REMOTE_ERROR,
    AppErrorCode.E_REMOTE_TIMEOUT: Outcome.REMOTE_TIMEOUT,
    AppErrorCode.E_PROCESS_ERROR: Outcome.PROCESS_ERROR,
    AppErrorCode.E_INTERNAL_ERROR: Outcome.INTERNAL_ERROR,
}


def outcome_for(errcode: str) -> Outcome:
    return _OUTCOME_BY_ERRCODE.get(errcode, Outcome.INTERNAL_ERROR)


class ControlResult(BaseModel):
    """Common envelope of every control operation. Expected failures are values, never raised."""

    success: bool = True
    outcome: Outcome = Outcome.OK
    errcode: str | None = None
    message: str = ""
    # Raw diagnostic of the collaborator that failed (remote reply, process stderr)
    detail: str | None = None
    warnings: list[str] = Field(default_factory=list)
    already_active: bool = False
    already_inactive: bool = False

    @classmethod
    def failure(cls, error: AppError, **fields):
        return cls(
            success=False,
            outcome=outcome_for(error.errcode),
            errcode=error.errcode,
            message=error.errmesg,
            detail=error.detail,
            **fields,
        )


# ==================== VIEWS ====================


class TransmissionResponse(BaseModel):
    transmission_id: str
    owner_id: str
    title: str
    description: str
    playlist_id: str | None
    status: TransmissionStatus
    kind: TransmissionKind
    rollback_reason: str | None = None
    started_at: datetime
    ended_at: datetime | None = None


class SocialLiveResponse(BaseModel):
    """Social live view; the stored stream key never leaves the service."""

    live_id: str
    owner_id: str
    platform_id: str
    title: str | None = None
    status: SocialLiveStatus
    push_handle: str | None = None
    push_method: str | None = None
    metrics: LiveMetrics
    error_detail: str | None = None
    started_at: datetime
    ended_at: datetime | None = None


class RecordingResponse(BaseModel):
    recording_id: str
    owner_id: str
    file_name: str
    file_path: str
    status: RecordingStatus
    pid: int | None = None
    file_size: int = 0
    error_detail: str | None = None
    started_at: datetime
    ended_at: datetime | None = None


class PlatformResponse(BaseModel):
    platform_id: str
    name: str
    rtmp_base_url: str
    requires_stream_key: bool
    supports_https: bool


# ==================== RESULTS ====================


class EndpointResult(ControlResult):
    owner_id: str | None = None
    power_state: PowerState | None = None
    is_blocked: bool | None = None


class EndpointStatusResult(EndpointResult):
    login: str | None = None
    server_host: str | None = None
    # None when the media server could not be asked
    remote_running: bool | None = None


class RemoveEndpointResult(ControlResult):
    owner_id: str | None = None
    removed: bool = False


class TransmissionResult(ControlResult):
    transmission: TransmissionResponse | None = None
    # Set when starting finalized a previous active transmission
    finalized_transmission_id: str | None = None
    playlist_name: str | None = None
    item_count: int = 0
    manifest_name: str | None = None
    urls: StreamUrls | None = None
    recording: RecordingResponse | None = None


class TransmissionStatusResult(ControlResult):
    is_live: bool = False
    stream_type: TransmissionKind | None = None
    transmission: TransmissionResponse | None = None


class ReloadScheduleResult(ControlResult):
    transmission_id: str | None = None
    manifest_name: str | None = None
    urls: StreamUrls | None = None


class SourceUrlsResult(ControlResult):
    login: str | None = None
    server_host: str | None = None
    urls: SourceUrls | None = None


class IncomingStreamResult(ControlResult):
    is_live: bool = False
    stream_name: str | None = None
    uptime_seconds: int = 0
    bitrate_kbps: float = 0
    viewers: int = 0


class SocialLiveResult(ControlResult):
    live: SocialLiveResponse | None = None
    confirmation_method: str | None = None
    # Status: whether the media server reports the push active, None when not asked
    remote_active: bool | None = None
    # Restart: the row that was stopped and kept as history
    previous_live_id: str | None = None


class SocialLiveListResult(ControlResult):
    lives: list[SocialLiveResponse] = Field(default_factory=list)


class RecordingResult(ControlResult):
    recording: RecordingResponse | None = None
    process_alive: bool | None = None


class DiagnosticCheck(BaseModel):
    status: Literal["success", "warning", "error"]
    title: str
    message: str
    detail: str | None = None


class DiagnosticsResult(ControlResult):
    checks: list[DiagnosticCheck] = Field(default_factory=list)


class PlatformCatalogResult(ControlResult):
    platforms: list[PlatformResponse] = Field(default_factory=list)
    source: Literal["store", "defaults"] = "store"


# ==================== PARAMS ====================


class StartTransmissionOptions(BaseModel):
    loop_playlist: bool = True
    enable_recording: bool = False


class StartSocialLiveParams(BaseModel):
    platform_id: str
    stream_key: str | None = None
    # Overrides the platform's RTMP base URL (required for the custom platform)
    rtmp_url: str | None = None
    title: str | None = None
