"""Social live operations: pushes of the owner's output to external platforms."""

from loguru import logger

from streamctl.domain.store import SOCIAL_LIVE_LIST_LIMIT
from streamctl.domain.utils.idgen import new_social_live_id
from streamctl.schemas import (
    DEFAULT_PLATFORMS,
    EndpointRecord,
    LiveMetrics,
    PlatformRecord,
    SocialLiveRecord,
    SocialLiveStatus,
)
from streamctl.shared.utils import utc_now
from streamctl.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

from ._base import BaseOperations
from .control_models import (
    Outcome,
    PlatformCatalogResult,
    PlatformResponse,
    SocialLiveListResult,
    SocialLiveResult,
    StartSocialLiveParams,
)
from .state_machine import Effect, Intent, SocialLiveStateMachine


class SocialLiveOperations(BaseOperations):
    """Operations for social live pushes."""

    async def _platforms(self) -> tuple[list[PlatformRecord], bool]:
        """Persisted catalog, or the static defaults when nothing is persisted."""
        platforms = await self.store.list_platforms()
        if platforms:
            return platforms, False
        return [p.model_copy() for p in DEFAULT_PLATFORMS], True

    async def _get_platform(self, platform_id: str) -> PlatformRecord:
        platforms, _ = await self._platforms()
        platform = next((p for p in platforms if p.platform_id == platform_id and p.is_active), None)
        if platform is None:
            raise AppError(
                errcode=AppErrorCode.E_PLATFORM_NOT_FOUND,
                errmesg=f"Streaming platform {platform_id} not found",
                status_code=HttpStatusCode.NOT_FOUND,
            )
        return platform

    async def _get_live(self, owner_id: str, live_id: str) -> SocialLiveRecord:
        live = await self.store.get_social_live(owner_id, live_id)
        if live is None:
            raise AppError(
                errcode=AppErrorCode.E_SOCIAL_LIVE_NOT_FOUND,
                errmesg=f"Social live {live_id} not found",
                status_code=HttpStatusCode.NOT_FOUND,
            )
        return live

    async def _transition(self, live: SocialLiveRecord, status: SocialLiveStatus, **changes) -> SocialLiveRecord:
        if not SocialLiveStateMachine.can_transition(live.status, status):
            raise AppError(
                errcode=AppErrorCode.E_INVALID_REQUEST,
                errmesg=f"Invalid state transition: {live.status} -> {status}",
                status_code=HttpStatusCode.BAD_REQUEST,
            )
        if SocialLiveStateMachine.is_terminal(status) or status == SocialLiveStatus.ERROR:
            changes.setdefault("ended_at", utc_now())
        updated = await self.store.update_social_live(live, {"status": status, **changes})
        logger.info(f"Social live {live.live_id} (owner={live.owner_id}) {live.status} -> {status}")
        return updated

    async def _start_push(
        self,
        endpoint: EndpointRecord,
        platform_id: str,
        target_url: str,
        stream_key: str | None,
        title: str | None,
    ) -> SocialLiveResult:
        decision = SocialLiveStateMachine.decide(None, Intent.START)
        assert decision is not None and Effect.PUSH in decision.effects

        now = utc_now()
        live = await self.store.create_social_live(
            SocialLiveRecord(
                live_id=new_social_live_id(),
                owner_id=endpoint.owner_id,
                platform_id=platform_id,
                title=title,
                status=decision.target,
                target_url=target_url,
                stream_key=stream_key,
                started_at=now,
                created_at=now,
                updated_at=now,
            )
        )

        try:
            push = await self._remote(
                self.channel.push_to_platform(endpoint.server, endpoint.login, live.live_id, target_url, stream_key),
                f"push of {endpoint.login} to {platform_id}",
            )
        except AppError as e:
            live = await self._transition(live, SocialLiveStatus.ERROR, error_detail=self._describe(e))
            return SocialLiveResult.failure(e, live=self._social_live_view(live))

        if not push.ok or not push.handle:
            error = AppError(
                errcode=AppErrorCode.E_REMOTE_ERROR,
                errmesg=f"Media server refused the push to {platform_id}",
                status_code=HttpStatusCode.BAD_GATEWAY,
                detail=push.detail,
            )
            live = await self._transition(live, SocialLiveStatus.ERROR, error_detail=push.detail)
            return SocialLiveResult.failure(error, live=self._social_live_view(live))

        changes = {"push_handle": push.handle, "push_method": push.method}
        if push.confirmed:
            live = await self._transition(live, SocialLiveStatus.ACTIVE, **changes)
        else:
            live = await self.store.update_social_live(live, changes)

        return SocialLiveResult(
            message=f"Live on {platform_id} {'started' if push.confirmed else 'requested'}",
            live=self._social_live_view(live),
            confirmation_method=push.method,
        )

    async def start_social_live(self, owner_id: str, params: StartSocialLiveParams) -> SocialLiveResult:
        owner_id = self._require(owner_id, "owner_id")
        platform_id = self._require(params.platform_id, "platform_id")

        platform = await self._get_platform(platform_id)
        target_url = (params.rtmp_url or "").strip() or platform.rtmp_base_url
        if not target_url:
            raise AppError(
                errcode=AppErrorCode.E_INVALID_REQUEST,
                errmesg=f"An RTMP URL is required for platform {platform.name}",
                status_code=HttpStatusCode.BAD_REQUEST,
            )
        stream_key = (params.stream_key or "").strip() or None
        if platform.requires_stream_key and not stream_key:
            raise AppError(
                errcode=AppErrorCode.E_INVALID_REQUEST,
                errmesg=f"A stream key is required for platform {platform.name}",
                status_code=HttpStatusCode.BAD_REQUEST,
            )

        async with self.owner_lock.hold(owner_id):
            endpoint = await self._get_endpoint(owner_id)
            self._ensure_not_blocked(endpoint)

            logger.info(f"Starting social live on {platform_id} for owner {owner_id}")
            return await self._start_push(endpoint, platform_id, target_url, stream_key, params.title)

    async def _stop(self, endpoint: EndpointRecord, live: SocialLiveRecord) -> SocialLiveResult:
        decision = SocialLiveStateMachine.decide(live.status, Intent.STOP)
        if decision is None or decision.is_noop:
            return SocialLiveResult(
                outcome=Outcome.ALREADY_IN_STATE,
                already_inactive=True,
                message="Live already stopped",
                live=self._social_live_view(live),
            )

        if decision.target == SocialLiveStatus.STOPPING and live.status != SocialLiveStatus.STOPPING:
            live = await self._transition(live, SocialLiveStatus.STOPPING)

        if live.push_handle and Effect.STOP_PUSH in decision.effects:
            try:
                result = await self._remote(
                    self.channel.stop_push(endpoint.server, endpoint.login, live.push_handle),
                    f"stop push {live.push_handle}",
                )
            except AppError as e:
                # State unknown; the row stays in `stopping` so the stop can be retried
                return SocialLiveResult.failure(e, live=self._social_live_view(live))

            if not result.ok:
                error = AppError(
                    errcode=AppErrorCode.E_REMOTE_ERROR,
                    errmesg=f"Media server refused to stop push {live.push_handle}",
                    status_code=HttpStatusCode.BAD_GATEWAY,
                    detail=result.detail,
                )
                if live.status != SocialLiveStatus.ERROR:
                    live = await self._transition(live, SocialLiveStatus.ERROR, error_detail=result.detail)
                return SocialLiveResult.failure(error, live=self._social_live_view(live))

        live = await self._transition(live, SocialLiveStatus.STOPPED)
        return SocialLiveResult(message="Live stopped", live=self._social_live_view(live))

    async def stop_social_live(self, owner_id: str, live_id: str) -> SocialLiveResult:
        owner_id = self._require(owner_id, "owner_id")
        live_id = self._require(live_id, "live_id")
        async with self.owner_lock.hold(owner_id):
            live = await self._get_live(owner_id, live_id)
            endpoint = await self._get_endpoint(owner_id)
            return await self._stop(endpoint, live)

    async def restart_social_live(self, owner_id: str, live_id: str) -> SocialLiveResult:
        """Stop then start with the same platform and credentials. The old row is kept as history."""
        owner_id = self._require(owner_id, "owner_id")
        live_id = self._require(live_id, "live_id")
        async with self.owner_lock.hold(owner_id):
            live = await self._get_live(owner_id, live_id)
            endpoint = await self._get_endpoint(owner_id)
            self._ensure_not_blocked(endpoint)

            stopped = await self._stop(endpoint, live)
            if not stopped.success:
                logger.warning(f"Restart of social live {live_id} aborted, stop failed: {stopped.message}")
                stopped.message = f"Restart aborted, stop failed: {stopped.message}"
                return stopped

            started = await self._start_push(endpoint, live.platform_id, live.target_url, live.stream_key, live.title)

        started.previous_live_id = live_id
        return started

    async def social_live_status(self, owner_id: str, live_id: str) -> SocialLiveResult:
        """Read-through status. Stored status only moves when a `starting` push is found active."""
        owner_id = self._require(owner_id, "owner_id")
        live_id = self._require(live_id, "live_id")
        live = await self._get_live(owner_id, live_id)

        if not live.push_handle or live.status not in (SocialLiveStatus.STARTING, SocialLiveStatus.ACTIVE):
            return SocialLiveResult(live=self._social_live_view(live), confirmation_method=live.push_method)

        endpoint = await self._get_endpoint(owner_id)
        try:
            status = await self._remote(
                self.channel.query_push(endpoint.server, endpoint.login, live.push_handle),
                f"query push {live.push_handle}",
            )
        except AppError as e:
            return SocialLiveResult(
                live=self._social_live_view(live),
                confirmation_method=live.push_method,
                warnings=[f"Could not query the media server: {self._describe(e)}"],
            )

        if status is None or not status.active:
            return SocialLiveResult(
                live=self._social_live_view(live),
                confirmation_method=live.push_method,
                remote_active=False,
                message="Push is not active on the media server",
            )

        changes = {
            "metrics": LiveMetrics(
                bitrate_kbps=status.bitrate_kbps,
                viewers=status.viewers,
                uptime_seconds=status.uptime_seconds,
                refreshed_at=utc_now(),
            )
        }
        async with self.owner_lock.hold(owner_id):
            current = await self._get_live(owner_id, live_id)
            if current.push_handle != live.push_handle or current.status not in (
                SocialLiveStatus.STARTING,
                SocialLiveStatus.ACTIVE,
            ):
                # Moved on while the media server was queried
                return SocialLiveResult(live=self._social_live_view(current), confirmation_method=current.push_method)

            decision = SocialLiveStateMachine.decide(current.status, Intent.CONFIRM)
            if decision is not None and not decision.is_noop:
                live = await self._transition(current, decision.target, **changes)
            else:
                live = await self.store.update_social_live(current, changes)

        return SocialLiveResult(
            live=self._social_live_view(live),
            confirmation_method=live.push_method,
            remote_active=True,
            message=f"Push is {status.state or 'active'}",
        )

    async def remove_social_live(self, owner_id: str, live_id: str) -> SocialLiveResult:
        owner_id = self._require(owner_id, "owner_id")
        live_id = self._require(live_id, "live_id")
        async with self.owner_lock.hold(owner_id):
            live = await self._get_live(owner_id, live_id)
            decision = SocialLiveStateMachine.decide(live.status, Intent.REMOVE)
            if decision is None:
                raise AppError(
                    errcode=AppErrorCode.E_SOCIAL_LIVE_ACTIVE,
                    errmesg=f"Stop social live {live_id} before removing it",
                    status_code=HttpStatusCode.CONFLICT,
                )
            await self.store.delete_social_live(owner_id, live_id)

        logger.info(f"Social live {live_id} removed for owner {owner_id}")
        return SocialLiveResult(message="Live removed", live=self._social_live_view(live))

    async def list_social_lives(self, owner_id: str, active_only: bool = False) -> SocialLiveListResult:
        owner_id = self._require(owner_id, "owner_id")
        lives = await self.store.list_social_lives(owner_id, active_only=active_only, limit=SOCIAL_LIVE_LIST_LIMIT)
        return SocialLiveListResult(lives=[self._social_live_view(live) for live in lives])

    async def platform_catalog(self) -> PlatformCatalogResult:
        platforms, from_defaults = await self._platforms()
        return PlatformCatalogResult(
            platforms=[PlatformResponse(**p.model_dump()) for p in platforms if p.is_active],
            source="defaults" if from_defaults else "store",
        )
