from fastapi import APIRouter, Query
from fastapi.responses import ORJSONResponse

from streamctl.api.dependency import ControlService, CurrentUser
from streamctl.api.schemas.base import CwFailureOut, CwOut
from streamctl.api.schemas.streaming_control import (
    AdminTargetIn,
    DiagnosticsIn,
    StartSocialLiveIn,
    StartTransmissionIn,
)
from streamctl.domain.control import ControlResult, Outcome, StartSocialLiveParams, StartTransmissionOptions
from streamctl.utils.app_errors import HttpStatusCode

router = APIRouter(prefix="/streaming")

_STATUS_BY_OUTCOME = {
    Outcome.VALIDATION_ERROR: HttpStatusCode.BAD_REQUEST,
    Outcome.NOT_FOUND: HttpStatusCode.NOT_FOUND,
    Outcome.AUTHORIZATION_ERROR: HttpStatusCode.FORBIDDEN,
    Outcome.CONFLICT: HttpStatusCode.CONFLICT,
    # Only reached by rejections such as a second start-recording
    Outcome.ALREADY_IN_STATE: HttpStatusCode.CONFLICT,
    Outcome.REMOTE_ERROR: HttpStatusCode.BAD_GATEWAY,
    Outcome.REMOTE_TIMEOUT: HttpStatusCode.GATEWAY_TIMEOUT,
    Outcome.PROCESS_ERROR: HttpStatusCode.INTERNAL_SERVER_ERROR,
    Outcome.INTERNAL_ERROR: HttpStatusCode.INTERNAL_SERVER_ERROR,
}


def status_for(result: ControlResult) -> int:
    if result.success:
        return HttpStatusCode.OK
    return int(_STATUS_BY_OUTCOME.get(result.outcome, HttpStatusCode.INTERNAL_SERVER_ERROR))


def control_response(result: ControlResult):
    """Wrap a control result in the success or failure envelope."""
    if result.success:
        return CwOut(results=result.model_dump(mode="json"))

    failure = CwFailureOut(
        errcode=result.errcode or "E_INTERNAL_ERROR",
        errmesg=result.message or "We are sorry, an error occurred.",
        detail=result.detail,
        results=result.model_dump(mode="json"),
    )
    return ORJSONResponse(status_code=status_for(result), content=failure.model_dump(mode="json"))


# ==================== ENDPOINT ====================


@router.post("/toggle_on")
async def toggle_on(user: CurrentUser, service: ControlService):
    """Turn the caller's streaming endpoint on."""
    return control_response(await service.toggle_on(user.user_id))


@router.post("/toggle_off")
async def toggle_off(user: CurrentUser, service: ControlService):
    """Turn the caller's streaming endpoint off."""
    return control_response(await service.toggle_off(user.user_id))


@router.post("/restart")
async def restart(user: CurrentUser, service: ControlService):
    return control_response(await service.restart(user.user_id))


@router.get("/status")
async def endpoint_status(user: CurrentUser, service: ControlService):
    return control_response(await service.endpoint_status(user.user_id))


@router.get("/source_urls")
async def source_urls(user: CurrentUser, service: ControlService):
    """Ingest and playback URLs for the caller's encoder."""
    return control_response(await service.source_urls(user.user_id))


@router.get("/incoming_stream")
async def incoming_stream(user: CurrentUser, service: ControlService):
    return control_response(await service.incoming_stream_status(user.user_id))


@router.post("/admin/block")
async def block(body: AdminTargetIn, user: CurrentUser, service: ControlService):
    return control_response(await service.block(body.owner_id, user.role))


@router.post("/admin/unblock")
async def unblock(body: AdminTargetIn, user: CurrentUser, service: ControlService):
    return control_response(await service.unblock(body.owner_id, user.role))


@router.post("/admin/remove")
async def remove(body: AdminTargetIn, user: CurrentUser, service: ControlService):
    return control_response(await service.remove(body.owner_id, user.role))


# ==================== TRANSMISSION ====================


@router.post("/transmissions/start")
async def start_transmission(body: StartTransmissionIn, user: CurrentUser, service: ControlService):
    """Start broadcasting a playlist, finishing the caller's current transmission first."""
    result = await service.start_transmission(
        user.user_id,
        body.playlist_id,
        title=body.title,
        description=body.description,
        options=StartTransmissionOptions(
            loop_playlist=body.loop_playlist,
            enable_recording=body.enable_recording,
        ),
    )
    return control_response(result)


@router.post("/transmissions/reload_schedule")
async def reload_schedule(user: CurrentUser, service: ControlService):
    return control_response(await service.reload_schedule(user.user_id))


@router.get("/transmissions/status")
async def transmission_status(user: CurrentUser, service: ControlService):
    return control_response(await service.transmission_status(user.user_id))


@router.post("/transmissions/{transmission_id}/stop")
async def stop_transmission(transmission_id: str, user: CurrentUser, service: ControlService):
    return control_response(await service.stop_transmission(user.user_id, transmission_id))


# ==================== SOCIAL LIVE ====================


@router.get("/platforms")
async def platforms(user: CurrentUser, service: ControlService):
    return control_response(await service.platform_catalog())


@router.get("/social_lives")
async def list_social_lives(
    user: CurrentUser,
    service: ControlService,
    active_only: bool = Query(False, description="Only starting, active and stopping lives"),
):
    return control_response(await service.list_social_lives(user.user_id, active_only=active_only))


@router.post("/social_lives/start")
async def start_social_live(body: StartSocialLiveIn, user: CurrentUser, service: ControlService):
    params = StartSocialLiveParams(
        platform_id=body.platform_id,
        stream_key=body.stream_key,
        rtmp_url=body.rtmp_url,
        title=body.title,
    )
    return control_response(await service.start_social_live(user.user_id, params))


@router.get("/social_lives/{live_id}")
async def social_live_status(live_id: str, user: CurrentUser, service: ControlService):
    return control_response(await service.social_live_status(user.user_id, live_id))


@router.post("/social_lives/{live_id}/stop")
async def stop_social_live(live_id: str, user: CurrentUser, service: ControlService):
    return control_response(await service.stop_social_live(user.user_id, live_id))


@router.post("/social_lives/{live_id}/restart")
async def restart_social_live(live_id: str, user: CurrentUser, service: ControlService):
    return control_response(await service.restart_social_live(user.user_id, live_id))


@router.delete("/social_lives/{live_id}")
async def remove_social_live(live_id: str, user: CurrentUser, service: ControlService):
    return control_response(await service.remove_social_live(user.user_id, live_id))


# ==================== RECORDING ====================


@router.post("/recordings/start")
async def start_recording(user: CurrentUser, service: ControlService):
    return control_response(await service.start_recording(user.user_id))


@router.post("/recordings/stop")
async def stop_recording(user: CurrentUser, service: ControlService):
    return control_response(await service.stop_recording(user.user_id))


@router.get("/recordings/status")
async def recording_status(user: CurrentUser, service: ControlService):
    return control_response(await service.recording_status(user.user_id))


# ==================== DIAGNOSTICS ====================


@router.post("/diagnostics")
async def diagnostics(body: DiagnosticsIn, user: CurrentUser, service: ControlService):
    return control_response(await service.run_diagnostics(user.user_id, body.test_type))
