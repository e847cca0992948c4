"""Wowza Streaming Engine REST client.

Implements the Remote Control Channel over the v2 REST API:
`http://{host}:{api_port}/v2/servers/_defaultServer_/vhosts/_defaultVHost_/applications/{app}/...`

Usage:
    from streamctl.services.integrations.wowza_service import WowzaRestChannel

    channel = WowzaRestChannel()
    running = await channel.is_running(endpoint.server, endpoint.login)
"""

from urllib.parse import urlsplit

import httpx
from loguru import logger

from streamctl.app_config import get_app_environ_config
from streamctl.schemas import MediaServerRef
from streamctl.utils.app_errors import AppError, AppErrorCode, HttpStatusCode, RemoteTimeoutError

from .media_server import CommandResult, IncomingStream, PushResult, PushStatus, RemoteControlChannel

_APP_ROOT = "/v2/servers/_defaultServer_/vhosts/_defaultVHost_/applications"
PUSH_METHOD = "wowza-pushpublish"


def split_push_target(target_url: str, stream_key: str | None) -> dict:
    """Break an RTMP(S) ingest URL into the fields of a push-publish map entry.

    With a stream key the whole path is the application; without one the last
    path segment is taken as the stream name.
    """
    parts = urlsplit(target_url)
    secure = parts.scheme == "rtmps"
    segments = [s for s in parts.path.split("/") if s]
    if not stream_key and segments:
        stream_key = segments.pop()

    return {
        "host": parts.hostname or "",
        "port": parts.port or (443 if secure else 1935),
        "application": "/".join(segments),
        "streamName": stream_key or "",
        "sendSSL": secure,
    }


class WowzaRestChannel(RemoteControlChannel):
    """Remote Control Channel backed by the Wowza REST API (basic auth, bounded timeout)."""

    def __init__(
        self,
        timeout: float | None = None,
        demo_mode: bool | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._cfg = get_app_environ_config()
        self._timeout = timeout if timeout is not None else self._cfg.REMOTE_COMMAND_TIMEOUT_SECONDS
        self._demo_mode = self._cfg.DEMO_MODE if demo_mode is None else demo_mode
        self._transport = transport
        logger.info(f"WowzaRestChannel initialized (demo_mode={self._demo_mode})")

    def _auth(self, server: MediaServerRef) -> httpx.BasicAuth:
        return httpx.BasicAuth(
            server.api_user or self._cfg.MEDIA_SERVER_API_USER,
            server.api_password or self._cfg.MEDIA_SERVER_API_PASSWORD,
        )

    async def _request(
        self,
        server: MediaServerRef,
        method: str,
        app: str,
        path: str = "",
        json: dict | None = None,
    ) -> httpx.Response:
        url = f"http://{server.host}:{server.api_port}{_APP_ROOT}/{app}{path}"
        logger.debug(f"Wowza {method} {url}")
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                auth=self._auth(server),
                transport=self._transport,
            ) as client:
                return await client.request(
                    method,
                    url,
                    json=json,
                    headers={"Accept": "application/json", "Content-Type": "application/json"},
                )
        except httpx.TimeoutException as e:
            raise RemoteTimeoutError(
                errmesg=f"Media server {server.host} did not answer {method} {app}{path}",
                detail=str(e) or type(e).__name__,
            ) from e
        except httpx.HTTPError as e:
            raise AppError(
                errcode=AppErrorCode.E_REMOTE_ERROR,
                errmesg=f"Media server {server.host} is unreachable",
                status_code=HttpStatusCode.BAD_GATEWAY,
                detail=str(e) or type(e).__name__,
            ) from e

    @staticmethod
    def _remote_error(response: httpx.Response, action: str) -> AppError:
        return AppError(
            errcode=AppErrorCode.E_REMOTE_ERROR,
            errmesg=f"Media server rejected {action}",
            status_code=HttpStatusCode.BAD_GATEWAY,
            detail=f"HTTP {response.status_code}: {response.text}",
        )

    @staticmethod
    def _json_object(response: httpx.Response, action: str) -> dict:
        """Decode a JSON object reply; any other body is an unrecognized remote answer."""
        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            raise AppError(
                errcode=AppErrorCode.E_REMOTE_ERROR,
                errmesg=f"Media server sent an unrecognized reply to {action}",
                status_code=HttpStatusCode.BAD_GATEWAY,
                detail=f"Unrecognized reply: {response.text}",
            )
        return data

    @staticmethod
    def _command_result(response: httpx.Response) -> CommandResult:
        """Only an explicit `success: true` counts; anything else is reported with the raw reply."""
        if response.is_error:
            return CommandResult(ok=False, detail=f"HTTP {response.status_code}: {response.text}")
        try:
            data = response.json()
        except ValueError:
            return CommandResult(ok=False, detail=f"Unrecognized reply: {response.text}")
        if isinstance(data, dict) and data.get("success") is True:
            return CommandResult(ok=True, detail=str(data.get("message") or ""))
        return CommandResult(ok=False, detail=f"Unrecognized reply: {response.text}")

    async def is_running(self, server: MediaServerRef, app: str) -> bool:
        if self._demo_mode:
            logger.info(f"Wowza DEMO_MODE=true: stubbed is_running for {app}")
            return False

        response = await self._request(server, "GET", app, "/instances")
        if response.status_code == 404:
            return False
        if response.is_error:
            raise self._remote_error(response, f"status query for {app}")
        data = self._json_object(response, f"status query for {app}")
        return bool(data.get("instanceList"))

    async def activate(self, server: MediaServerRef, app: str) -> CommandResult:
        if self._demo_mode:
            logger.info(f"Wowza DEMO_MODE=true: stubbed activate for {app}")
            return CommandResult(ok=True, detail="demo")

        result = self._command_result(await self._request(server, "PUT", app, "/actions/restart"))
        logger.info(f"Wowza activate {app} on {server.host}: ok={result.ok} detail={result.detail}")
        return result

    async def deactivate(self, server: MediaServerRef, app: str) -> CommandResult:
        if self._demo_mode:
            logger.info(f"Wowza DEMO_MODE=true: stubbed deactivate for {app}")
            return CommandResult(ok=True, detail="demo")

        response = await self._request(server, "PUT", app, "/actions/shutdown")
        if response.status_code == 404:
            return CommandResult(ok=True, detail="application not running")
        result = self._command_result(response)
        logger.info(f"Wowza deactivate {app} on {server.host}: ok={result.ok} detail={result.detail}")
        return result

    async def push_to_platform(
        self,
        server: MediaServerRef,
        app: str,
        push_name: str,
        target_url: str,
        stream_key: str | None,
    ) -> PushResult:
        if self._demo_mode:
            logger.info(f"Wowza DEMO_MODE=true: stubbed push {push_name} for {app}")
            return PushResult(ok=True, handle=push_name, confirmed=True, method=PUSH_METHOD, detail="demo")

        body = {
            "entryName": push_name,
            "sourceStreamName": app,
            "profile": "rtmp",
            "enabled": True,
            **split_push_target(target_url, stream_key),
        }
        response = await self._request(server, "POST", app, f"/pushpublish/mapentries/{push_name}", json=body)
        result = self._command_result(response)
        logger.info(f"Wowza push {push_name} for {app}: ok={result.ok} detail={result.detail}")
        if not result.ok:
            return PushResult(ok=False, method=PUSH_METHOD, detail=result.detail)
        return PushResult(ok=True, handle=push_name, confirmed=True, method=PUSH_METHOD, detail=result.detail)

    async def stop_push(self, server: MediaServerRef, app: str, handle: str) -> CommandResult:
        if self._demo_mode:
            logger.info(f"Wowza DEMO_MODE=true: stubbed stop_push {handle} for {app}")
            return CommandResult(ok=True, detail="demo")

        response = await self._request(server, "DELETE", app, f"/pushpublish/mapentries/{handle}")
        if response.status_code == 404:
            return CommandResult(ok=True, detail="push not found")
        return self._command_result(response)

    async def query_push(self, server: MediaServerRef, app: str, handle: str) -> PushStatus | None:
        if self._demo_mode:
            return PushStatus(active=True, state="Active")

        response = await self._request(server, "GET", app, f"/pushpublish/mapentries/{handle}")
        if response.status_code == 404:
            return None
        if response.is_error:
            raise self._remote_error(response, f"push query for {handle}")

        data = self._json_object(response, f"push query for {handle}")
        state = str(data.get("sessionStatus") or ("Active" if data.get("enabled") else "Disabled"))
        return PushStatus(
            active=state.lower() in {"active", "connected"},
            state=state,
            bitrate_kbps=float(data.get("bitrate") or 0) / 1000,
            viewers=int(data.get("viewers") or 0),
            uptime_seconds=int(data.get("uptimeMilliseconds") or 0) // 1000,
        )

    async def incoming_streams(self, server: MediaServerRef, app: str) -> list[IncomingStream]:
        if self._demo_mode:
            return []

        response = await self._request(server, "GET", app, "/instances/_definst_/incomingstreams")
        if response.status_code == 404:
            return []
        if response.is_error:
            raise self._remote_error(response, f"incoming stream query for {app}")

        data = self._json_object(response, f"incoming stream query for {app}")
        streams = data.get("incomingstreams") or []
        if not isinstance(streams, list):
            streams = []
        # No listener count in this listing; viewers stays 0.
        return [
            IncomingStream(
                name=str(stream.get("name") or ""),
                is_connected=stream.get("isConnected") is True,
                uptime_seconds=int(stream.get("uptimeMilliseconds") or 0) // 1000,
                bitrate_kbps=float(stream.get("totalIncomingBitrate") or 0) / 1000,
            )
            for stream in streams
            if isinstance(stream, dict)
        ]
