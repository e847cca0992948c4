"""Endpoint operations: power, administration and read-only endpoint queries."""

from loguru import logger

from streamctl.domain.utils.stream_urls import build_source_urls
from streamctl.schemas import EndpointRecord
from streamctl.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

from ._base import BaseOperations
from .control_models import (
    ActorRole,
    EndpointResult,
    EndpointStatusResult,
    IncomingStreamResult,
    Outcome,
    RemoveEndpointResult,
    SourceUrlsResult,
)
from .state_machine import Effect, Intent, PowerStateMachine


class EndpointOperations(BaseOperations):
    """Operations on an owner's streaming endpoint."""

    def _endpoint_result(self, endpoint: EndpointRecord, **fields) -> EndpointResult:
        return EndpointResult(
            owner_id=endpoint.owner_id,
            power_state=endpoint.power_state,
            is_blocked=endpoint.is_blocked,
            **fields,
        )

    async def _power(self, endpoint: EndpointRecord, intent: Intent) -> tuple[EndpointRecord, bool]:
        """Drive the endpoint to the power state requested by `intent`.

        Returns the endpoint and whether a remote command was issued.
        Raises AppError when the channel rejects the command; state is left unchanged.
        """
        decision = PowerStateMachine.decide(endpoint.power_state, intent)
        if decision is None or decision.is_noop:
            return endpoint, False

        if Effect.ACTIVATE_APP in decision.effects:
            result = await self._remote(
                self.channel.activate(endpoint.server, endpoint.login), f"activate {endpoint.login}"
            )
        else:
            result = await self._remote(
                self.channel.deactivate(endpoint.server, endpoint.login), f"deactivate {endpoint.login}"
            )

        if not result.ok:
            raise AppError(
                errcode=AppErrorCode.E_REMOTE_ERROR,
                errmesg=f"Media server did not switch {endpoint.login} {decision.target}",
                status_code=HttpStatusCode.BAD_GATEWAY,
                detail=result.detail,
            )

        endpoint = await self.store.update_endpoint(endpoint, {"power_state": decision.target})
        logger.info(f"Endpoint {endpoint.login} (owner={endpoint.owner_id}) switched {decision.target}")
        return endpoint, True

    async def toggle_on(self, owner_id: str) -> EndpointResult:
        owner_id = self._require(owner_id, "owner_id")
        async with self.owner_lock.hold(owner_id):
            endpoint = await self._get_endpoint(owner_id)
            self._ensure_not_blocked(endpoint)
            endpoint, issued = await self._power(endpoint, Intent.START)

        if not issued:
            return self._endpoint_result(
                endpoint,
                outcome=Outcome.ALREADY_IN_STATE,
                already_active=True,
                message="Streaming is already on",
            )
        return self._endpoint_result(endpoint, message="Streaming turned on")

    async def toggle_off(self, owner_id: str) -> EndpointResult:
        owner_id = self._require(owner_id, "owner_id")
        async with self.owner_lock.hold(owner_id):
            endpoint = await self._get_endpoint(owner_id)
            endpoint, issued = await self._power(endpoint, Intent.STOP)

        if not issued:
            return self._endpoint_result(
                endpoint,
                outcome=Outcome.ALREADY_IN_STATE,
                already_inactive=True,
                message="Streaming is already off",
            )
        return self._endpoint_result(endpoint, message="Streaming turned off")

    async def restart(self, owner_id: str) -> EndpointResult:
        """Power off then on. A failed power-off aborts before power-on is attempted."""
        owner_id = self._require(owner_id, "owner_id")
        async with self.owner_lock.hold(owner_id):
            endpoint = await self._get_endpoint(owner_id)
            self._ensure_not_blocked(endpoint)

            try:
                endpoint, _ = await self._power(endpoint, Intent.STOP)
            except AppError as e:
                logger.warning(f"Restart of {endpoint.login} aborted, power off failed: {e.errmesg}")
                raise AppError(
                    errcode=e.errcode,
                    errmesg=f"Restart aborted, power off failed: {e.errmesg}",
                    status_code=e.status_code,
                    detail=e.detail,
                ) from e

            endpoint, _ = await self._power(endpoint, Intent.START)

        return self._endpoint_result(endpoint, message="Streaming restarted")

    async def _set_blocked(self, owner_id: str, actor_role: ActorRole | str | None, blocked: bool) -> EndpointResult:
        self._require_elevated_role(actor_role)
        owner_id = self._require(owner_id, "owner_id")
        async with self.owner_lock.hold(owner_id):
            endpoint = await self._get_endpoint(owner_id)
            if endpoint.is_blocked == blocked:
                return self._endpoint_result(
                    endpoint,
                    outcome=Outcome.ALREADY_IN_STATE,
                    already_active=blocked,
                    already_inactive=not blocked,
                    message=f"Streaming is already {'blocked' if blocked else 'unblocked'}",
                )
            endpoint = await self.store.update_endpoint(endpoint, {"is_blocked": blocked})

        logger.info(f"Endpoint {endpoint.login} {'blocked' if blocked else 'unblocked'} by {actor_role}")
        return self._endpoint_result(endpoint, message=f"Streaming {'blocked' if blocked else 'unblocked'}")

    async def block(self, owner_id: str, actor_role: ActorRole | str | None) -> EndpointResult:
        return await self._set_blocked(owner_id, actor_role, blocked=True)

    async def unblock(self, owner_id: str, actor_role: ActorRole | str | None) -> EndpointResult:
        return await self._set_blocked(owner_id, actor_role, blocked=False)

    async def remove(self, owner_id: str, actor_role: ActorRole | str | None) -> RemoveEndpointResult:
        """Remove the endpoint. Refused while a transmission is active."""
        self._require_elevated_role(actor_role)
        owner_id = self._require(owner_id, "owner_id")
        warnings: list[str] = []

        async with self.owner_lock.hold(owner_id):
            endpoint = await self._get_endpoint(owner_id)

            active = await self.store.get_active_transmission(owner_id)
            if active:
                raise AppError(
                    errcode=AppErrorCode.E_TRANSMISSION_ACTIVE,
                    errmesg=f"Stop transmission {active.transmission_id} before removing the endpoint",
                    status_code=HttpStatusCode.CONFLICT,
                )

            try:
                result = await self._remote(
                    self.channel.deactivate(endpoint.server, endpoint.login), f"deactivate {endpoint.login}"
                )
                if not result.ok:
                    warnings.append(f"Media server did not confirm shutdown: {result.detail}")
            except AppError as e:
                warnings.append(f"Media server shutdown skipped: {self._describe(e)}")

            await self.store.delete_endpoint(owner_id)

        logger.info(f"Endpoint {endpoint.login} (owner={owner_id}) removed by {actor_role}")
        return RemoveEndpointResult(
            owner_id=owner_id,
            removed=True,
            message="Streaming endpoint removed",
            warnings=warnings,
        )

    async def endpoint_status(self, owner_id: str) -> EndpointStatusResult:
        owner_id = self._require(owner_id, "owner_id")
        endpoint = await self._get_endpoint(owner_id)
        warnings: list[str] = []
        remote_running: bool | None = None
        try:
            remote_running = await self._remote(
                self.channel.is_running(endpoint.server, endpoint.login), f"status of {endpoint.login}"
            )
        except AppError as e:
            warnings.append(f"Could not query the media server: {self._describe(e)}")

        return EndpointStatusResult(
            owner_id=endpoint.owner_id,
            power_state=endpoint.power_state,
            is_blocked=endpoint.is_blocked,
            login=endpoint.login,
            server_host=endpoint.server.host,
            remote_running=remote_running,
            warnings=warnings,
        )

    async def source_urls(self, owner_id: str) -> SourceUrlsResult:
        owner_id = self._require(owner_id, "owner_id")
        endpoint = await self._get_endpoint(owner_id)
        return SourceUrlsResult(
            login=endpoint.login,
            server_host=endpoint.server.host,
            urls=build_source_urls(endpoint.server.host, endpoint.login, self.deps.rtmp_port),
        )

    async def incoming_stream_status(self, owner_id: str) -> IncomingStreamResult:
        """Whether an encoder is currently publishing into the owner's application."""
        owner_id = self._require(owner_id, "owner_id")
        endpoint = await self._get_endpoint(owner_id)
        streams = await self._remote(
            self.channel.incoming_streams(endpoint.server, endpoint.login), f"incoming streams of {endpoint.login}"
        )
        connected = next((s for s in streams if s.is_connected), None)
        if connected is None:
            return IncomingStreamResult(is_live=False, message="No encoder is publishing")

        return IncomingStreamResult(
            is_live=True,
            stream_name=connected.name,
            uptime_seconds=connected.uptime_seconds,
            bitrate_kbps=connected.bitrate_kbps,
            viewers=connected.viewers,
        )


