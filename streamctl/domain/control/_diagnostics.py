"""Read-only diagnostics of an owner's streaming setup."""

import ipaddress

from loguru import logger

from streamctl.domain.utils.stream_urls import playback_hls_url
from streamctl.schemas import EndpointRecord
from streamctl.utils.app_errors import AppError, AppErrorCode

from ._base import BaseOperations
from .control_models import DiagnosticCheck, DiagnosticsResult

# Legacy selector names still sent by older clients
_SELECTOR_ALIASES = {
    "wowza": "server",
    "m3u8": "playback_url",
}

DIAGNOSTIC_SELECTORS = ("server", "playback_url", "ssl")


def _is_ip_address(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


class DiagnosticsOperations(BaseOperations):
    """Checks are never mutating; every problem becomes a check entry."""

    async def _check_server(self, endpoint: EndpointRecord) -> DiagnosticCheck:
        server = endpoint.server
        if not server.is_active:
            return DiagnosticCheck(
                status="error",
                title="Media server",
                message="Media server is not active or not configured",
                detail=f"Host: {server.host}",
            )

        try:
            running = await self._remote(
                self.channel.is_running(server, endpoint.login), f"status of {endpoint.login}"
            )
        except AppError as e:
            status = "warning" if e.errcode == AppErrorCode.E_REMOTE_TIMEOUT else "error"
            return DiagnosticCheck(
                status=status,
                title="Media server",
                message="Media server could not be reached",
                detail=self._describe(e),
            )

        return DiagnosticCheck(
            status="success",
            title="Media server",
            message=(
                "Media server is active and the application is running"
                if running
                else "Media server is active, the application is stopped"
            ),
            detail=f"Host: {server.host}",
        )

    @staticmethod
    def _check_playback_url(endpoint: EndpointRecord) -> DiagnosticCheck:
        return DiagnosticCheck(
            status="success",
            title="Playback URL",
            message="Playback link is configured",
            detail=playback_hls_url(endpoint.server.host, endpoint.login),
        )

    @staticmethod
    def _check_ssl(endpoint: EndpointRecord) -> DiagnosticCheck:
        host = endpoint.server.host
        if _is_ip_address(host):
            return DiagnosticCheck(
                status="warning",
                title="SSL certificate",
                message="The media server is addressed by IP, HTTPS playback needs a domain name",
                detail=f"Host: {host}",
            )
        return DiagnosticCheck(
            status="success",
            title="SSL certificate",
            message="HTTPS playback is configured for the media server domain",
            detail=f"Host: {host}",
        )

    async def run_diagnostics(self, owner_id: str, selector: str | None = "all") -> DiagnosticsResult:
        owner_id = self._require(owner_id, "owner_id")
        selector = (selector or "all").strip().lower()
        selector = _SELECTOR_ALIASES.get(selector, selector)

        endpoint = await self.store.get_endpoint(owner_id)
        if endpoint is None:
            return DiagnosticsResult(
                checks=[
                    DiagnosticCheck(
                        status="error",
                        title="Streaming not configured",
                        message="No streaming endpoint is configured for this account",
                    )
                ]
            )

        checks: list[DiagnosticCheck] = []
        if selector in ("all", "server"):
            checks.append(await self._check_server(endpoint))
        if selector in ("all", "playback_url"):
            checks.append(self._check_playback_url(endpoint))
        if selector in ("all", "ssl"):
            checks.append(self._check_ssl(endpoint))

        if not checks:
            checks.append(
                DiagnosticCheck(
                    status="warning",
                    title="No check executed",
                    message=f"Unknown diagnostic {selector!r}, choose one of: all, {', '.join(DIAGNOSTIC_SELECTORS)}",
                )
            )

        logger.debug(f"Diagnostics {selector} for owner {owner_id}: {[c.status for c in checks]}")
        return DiagnosticsResult(checks=checks)
