"""Errors raised by Session Store implementations."""

from streamctl.utils.app_errors import AppError, AppErrorCode, HttpStatusCode


def version_conflict(kind: str, record_id: str, version: int) -> AppError:
    return AppError(
        errcode=AppErrorCode.E_VERSION_CONFLICT,
        errmesg=f"{kind} {record_id} was modified concurrently (expected version {version})",
        status_code=HttpStatusCode.CONFLICT,
    )


def transmission_active(owner_id: str) -> AppError:
    return AppError(
        errcode=AppErrorCode.E_TRANSMISSION_ACTIVE,
        errmesg=f"Owner {owner_id} already has an active transmission",
        status_code=HttpStatusCode.CONFLICT,
    )


def recording_in_progress(owner_id: str) -> AppError:
    return AppError(
        errcode=AppErrorCode.E_RECORDING_IN_PROGRESS,
        errmesg=f"Owner {owner_id} already has a recording in progress",
        status_code=HttpStatusCode.CONFLICT,
    )
