"""Manifest Provisioner client.

The provisioning service (re)generates the SMIL manifest the media server
reads for an owner's playlist schedule.
"""

from abc import ABC, abstractmethod

import httpx
from loguru import logger
from pydantic import BaseModel, Field

from streamctl.app_config import get_app_environ_config
from streamctl.schemas import PlaylistRecord
from streamctl.utils.app_errors import AppError, AppErrorCode, HttpStatusCode, RemoteTimeoutError


class ManifestResult(BaseModel):
    ok: bool
    manifest_name: str | None = None
    error: str | None = None
    # URL hints returned by the provisioner, keyed like StreamUrls fields
    hints: dict[str, str] = Field(default_factory=dict)


class ManifestProvisioner(ABC):
    @abstractmethod
    async def provision(
        self,
        owner_id: str,
        login: str,
        playlist: PlaylistRecord | None,
        loop: bool = True,
    ) -> ManifestResult:
        """(Re)generate the owner's manifest. `playlist=None` rebuilds it from the stored schedule."""


class HttpManifestProvisioner(ManifestProvisioner):
    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        demo_mode: bool | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        cfg = get_app_environ_config()
        self.base_url = (base_url or cfg.MANIFEST_PROVISIONER_URL or "").rstrip("/")
        self.api_key = api_key or cfg.MANIFEST_PROVISIONER_API_KEY
        self.timeout = timeout if timeout is not None else cfg.MANIFEST_PROVISION_TIMEOUT_SECONDS
        self.default_manifest_name = cfg.MANIFEST_DEFAULT_NAME
        self._demo_mode = cfg.DEMO_MODE if demo_mode is None else demo_mode
        self._transport = transport

    def _build_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self.api_key:
            headers["X-Api-Key"] = self.api_key
        return headers

    async def provision(
        self,
        owner_id: str,
        login: str,
        playlist: PlaylistRecord | None,
        loop: bool = True,
    ) -> ManifestResult:
        """Call the provisioner's manifest endpoint."""
        if self._demo_mode:
            logger.info(f"Manifest provisioner DEMO_MODE=true: stubbed manifest for owner={owner_id}")
            return ManifestResult(ok=True, manifest_name=self.default_manifest_name)

        if not self.base_url:
            raise AppError(
                errcode=AppErrorCode.E_INVALID_REQUEST,
                errmesg="MANIFEST_PROVISIONER_URL must be configured. Set it in env.local or environment variables.",
                status_code=HttpStatusCode.BAD_REQUEST,
            )

        body = {
            "owner_id": owner_id,
            "login": login,
            "playlist_id": playlist.playlist_id if playlist else None,
            "item_ids": playlist.item_ids if playlist else None,
            "loop": loop,
        }
        url = f"{self.base_url}/api/v1/manifests/{login}"
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.post(url, json=body, headers=self._build_headers(), timeout=self.timeout)
        except httpx.TimeoutException as e:
            raise RemoteTimeoutError(
                errmesg=f"Manifest provisioner did not answer for {login}",
                detail=str(e) or type(e).__name__,
            ) from e
        except httpx.HTTPError as e:
            return ManifestResult(ok=False, error=f"Manifest provisioner unreachable: {e}")

        if response.is_error:
            logger.warning(f"Manifest provisioning failed for {login}: HTTP {response.status_code} {response.text}")
            return ManifestResult(ok=False, error=f"HTTP {response.status_code}: {response.text}")

        try:
            data = response.json()
        except ValueError:
            return ManifestResult(ok=False, error=f"Unrecognized reply: {response.text}")
        if not isinstance(data, dict):
            return ManifestResult(ok=False, error=f"Unrecognized reply: {response.text}")

        if not data.get("success"):
            return ManifestResult(ok=False, error=str(data.get("errmesg") or data.get("error") or response.text))

        results = data.get("results") or {}
        if not isinstance(results, dict):
            return ManifestResult(ok=False, error=f"Unrecognized reply: {response.text}")
        urls = results.get("urls") or {}
        logger.debug(f"Manifest provisioned for {login}: {results}")
        return ManifestResult(
            ok=True,
            manifest_name=str(results.get("manifest_name") or self.default_manifest_name),
            hints={k: str(v) for k, v in urls.items()} if isinstance(urls, dict) else {},
        )
