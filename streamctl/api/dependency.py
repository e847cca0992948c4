from typing import Annotated

from fastapi import Depends, Request
from loguru import logger
from pydantic import BaseModel

from streamctl.domain.control import ActorRole, StreamingControlService
from streamctl.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

# Identity headers set by the authenticating gateway in front of the service
USER_ID_HEADER = "X-User-Id"
USER_ROLE_HEADER = "X-User-Role"
USER_LOGIN_HEADER = "X-User-Login"


class User(BaseModel):
    user_id: str
    role: ActorRole = ActorRole.USER
    login: str | None = None


async def get_current_user(request: Request) -> User:
    user_id = (request.headers.get(USER_ID_HEADER) or "").strip()
    if not user_id:
        raise AppError(
            errcode=AppErrorCode.E_UNAUTHORIZED,
            errmesg="Missing user identity",
            status_code=HttpStatusCode.UNAUTHORIZED,
        )

    raw_role = (request.headers.get(USER_ROLE_HEADER) or "").strip().lower()
    try:
        role = ActorRole(raw_role) if raw_role else ActorRole.USER
    except ValueError:
        logger.warning("Unknown role {!r} for user_id {}, treated as user", raw_role, user_id)
        role = ActorRole.USER

    logger.debug("Request user_id: {} role: {}", user_id, role)
    return User(user_id=user_id, role=role, login=request.headers.get(USER_LOGIN_HEADER))


def get_control_service(request: Request) -> StreamingControlService:
    """The service built at startup and kept on the application state."""
    return request.app.state.control_service


CurrentUser = Annotated[User, Depends(get_current_user)]
ControlService = Annotated[StreamingControlService, Depends(get_control_service)]
