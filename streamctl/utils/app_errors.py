"""Application error type raised below the orchestrator boundary."""

import inspect
from enum import Enum, IntEnum
from uuid import uuid4


class HttpStatusCode(IntEnum):
    OK = 200
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    CONFLICT = 409
    INTERNAL_SERVER_ERROR = 500
    BAD_GATEWAY = 502
    GATEWAY_TIMEOUT = 504


class AppErrorCode(str, Enum):
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_UNAUTHORIZED = "E_UNAUTHORIZED"
    E_FORBIDDEN = "E_FORBIDDEN"
    E_ENDPOINT_NOT_FOUND = "E_ENDPOINT_NOT_FOUND"
    E_ENDPOINT_BLOCKED = "E_ENDPOINT_BLOCKED"
    E_PLAYLIST_NOT_FOUND = "E_PLAYLIST_NOT_FOUND"
    E_PLAYLIST_EMPTY = "E_PLAYLIST_EMPTY"
    E_PLATFORM_NOT_FOUND = "E_PLATFORM_NOT_FOUND"
    E_TRANSMISSION_NOT_FOUND = "E_TRANSMISSION_NOT_FOUND"
    E_TRANSMISSION_ACTIVE = "E_TRANSMISSION_ACTIVE"
    E_SOCIAL_LIVE_NOT_FOUND = "E_SOCIAL_LIVE_NOT_FOUND"
    E_SOCIAL_LIVE_ACTIVE = "E_SOCIAL_LIVE_ACTIVE"
    E_RECORDING_NOT_FOUND = "E_RECORDING_NOT_FOUND"
    E_RECORDING_IN_PROGRESS = "E_RECORDING_IN_PROGRESS"
    E_ALREADY_IN_STATE = "E_ALREADY_IN_STATE"
    E_VERSION_CONFLICT = "E_VERSION_CONFLICT"
    E_OWNER_BUSY = "E_OWNER_BUSY"
    E_MANIFEST_FAILED = "E_MANIFEST_FAILED"
    E_REMOTE_ERROR = "E_REMOTE_ERROR"
    E_REMOTE_TIMEOUT = "E_REMOTE_TIMEOUT"
    E_PROCESS_ERROR = "E_PROCESS_ERROR"
    E_INTERNAL_ERROR = "E_INTERNAL_ERROR"

    def __str__(self) -> str:
        return self.value


class AppError(Exception):
    """Error carrying an error code, a human message and an HTTP status.

    `detail` holds the raw diagnostic of a collaborator (remote output,
    process stderr) so it can be passed through to the caller.
    """

    def __init__(
        self,
        errcode: AppErrorCode | str,
        errmesg: str,
        status_code: HttpStatusCode | int = HttpStatusCode.BAD_REQUEST,
        detail: str | None = None,
    ):
        super().__init__(errmesg)
        self.errcode = str(errcode)
        self.errmesg = errmesg
        self.status_code = int(status_code)
        self.detail = detail
        self.erresid = uuid4().hex[:10]

        caller_frame = inspect.stack()[1]
        module = inspect.getmodule(caller_frame.frame)
        module_name = (
            module.__name__ if module and getattr(module, "__name__", None) else caller_frame.filename
        )
        self.caller_info = f"{module_name}:{caller_frame.function}:{caller_frame.lineno}"

    def __repr__(self) -> str:
        return f"AppError(errcode={self.errcode!r}, errmesg={self.errmesg!r})"


class RemoteTimeoutError(AppError):
    """A collaborator did not answer within its timeout; its state is unknown."""

    def __init__(self, errmesg: str, detail: str | None = None):
        super().__init__(
            errcode=AppErrorCode.E_REMOTE_TIMEOUT,
            errmesg=errmesg,
            status_code=HttpStatusCode.GATEWAY_TIMEOUT,
            detail=detail,
        )
