from fastapi import Request
from fastapi.responses import ORJSONResponse
from loguru import logger

from streamctl.shared.api.utils import ApiFailure
from streamctl.utils.app_errors import AppError, AppErrorCode


async def app_error_handler(request: Request, exc: AppError) -> ORJSONResponse:
    """
    Custom exception handler for AppError raised outside the control service
    (identity resolution, request parsing helpers).
    """
    # Log with the caller info captured when AppError was raised
    log_msg = f"{exc.errcode} {exc.erresid} msg={exc.errmesg} caller={exc.caller_info}"
    if exc.errcode == AppErrorCode.E_INTERNAL_ERROR.value:
        logger.error(log_msg)
    else:
        logger.warning(log_msg)

    failure = ApiFailure(errcode=exc.errcode, errmesg=exc.errmesg, erresid=exc.erresid, detail=exc.detail)
    return ORJSONResponse(status_code=exc.status_code, content=failure.model_dump())
