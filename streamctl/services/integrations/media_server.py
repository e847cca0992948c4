"""Remote Control Channel interface for the media server."""

from abc import ABC, abstractmethod

from pydantic import BaseModel

from streamctl.schemas import MediaServerRef


class CommandResult(BaseModel):
    """Outcome of a state-changing remote command. `ok=False` covers rejections and ambiguous replies."""

    ok: bool
    detail: str = ""


class PushResult(BaseModel):
    ok: bool
    # Identifier the media server knows the push by; required to stop it later
    handle: str | None = None
    confirmed: bool = False
    method: str = ""
    detail: str = ""


class PushStatus(BaseModel):
    active: bool
    state: str = ""
    bitrate_kbps: float = 0
    viewers: int = 0
    uptime_seconds: int = 0


class IncomingStream(BaseModel):
    name: str
    is_connected: bool = False
    uptime_seconds: int = 0
    bitrate_kbps: float = 0
    viewers: int = 0


class RemoteControlChannel(ABC):
    """Commands against one application (named after the owner's login) on a media server.

    Transport failures raise AppError (E_REMOTE_ERROR); timeouts raise RemoteTimeoutError.
    """

    @abstractmethod
    async def is_running(self, server: MediaServerRef, app: str) -> bool: ...

    @abstractmethod
    async def activate(self, server: MediaServerRef, app: str) -> CommandResult: ...

    @abstractmethod
    async def deactivate(self, server: MediaServerRef, app: str) -> CommandResult:
        """Stop the application. An application that is not running is reported as ok."""

    @abstractmethod
    async def push_to_platform(
        self,
        server: MediaServerRef,
        app: str,
        push_name: str,
        target_url: str,
        stream_key: str | None,
    ) -> PushResult: ...

    @abstractmethod
    async def stop_push(self, server: MediaServerRef, app: str, handle: str) -> CommandResult:
        """Remove a push. A push the server no longer knows is reported as ok."""

    @abstractmethod
    async def query_push(self, server: MediaServerRef, app: str, handle: str) -> PushStatus | None:
        """Current state of a push, None when the server does not know the handle."""

    @abstractmethod
    async def incoming_streams(self, server: MediaServerRef, app: str) -> list[IncomingStream]: ...
