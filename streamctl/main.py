import time
import traceback
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from granian import Granian
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from streamctl.api.errors import app_error_handler
from streamctl.api.routers.streaming_control import router as streaming_control_router
from streamctl.app_config import get_app_environ_config
from streamctl.domain.control import build_streaming_control_service
from streamctl.domain.store import BeanieSessionStore, MemorySessionStore, SessionStore
from streamctl.schemas.init_schemas import init_schema
from streamctl.shared.api.health import router as health_router
from streamctl.shared.api.utils import E_INVALID_PARAMS, api_failure, init_logger
from streamctl.shared.config import config
from streamctl.shared.storage.mongo import MongoManager
from streamctl.shared.storage.redis import close_cache_clients
from streamctl.utils.app_errors import AppError, AppErrorCode


class HTTPLoggingMiddleware(BaseHTTPMiddleware):
    """Access log line per request; unhandled errors become a 500 failure envelope."""

    async def dispatch(self, request: Request, call_next):  # type: ignore
        started = time.perf_counter()
        request_id = uuid.uuid4().hex[:8]
        route = f"{request.method} {request.url.path}"
        logger.info(f"[{request_id}] {route}")

        try:
            response = await call_next(request)
        except Exception as exc:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.error(
                f"[{request_id}] Unhandled exception in {route} after {elapsed_ms:.2f}ms: "
                f"{type(exc).__name__}: {exc}\n{traceback.format_exc()}"
            )
            failure = api_failure(
                errcode=AppErrorCode.E_INTERNAL_ERROR,
                errmesg=f"Internal server error (request_id: {request_id})",
            )
            return ORJSONResponse(status_code=500, content=failure.model_dump())

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(f"[{request_id}] {route} -> {response.status_code} ({elapsed_ms:.2f}ms)")
        return response


async def app_validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()

    logger.warning(
        "Validation error: path={} method={} errors={}",
        request.url.path,
        request.method,
        errors,
    )

    failure = api_failure(E_INVALID_PARAMS, errmesg=str(errors))

    return ORJSONResponse(status_code=422, content=failure.model_dump())


async def build_session_store() -> SessionStore:
    if get_app_environ_config().SESSION_STORE_BACKEND == "memory":
        logger.warning("Using the in-memory session store, state is lost on restart")
        return MemorySessionStore()

    # Initialize MongoDB schemas and Beanie ODM
    await init_schema()
    return BeanieSessionStore()


@asynccontextmanager
async def lifespan(server: FastAPI):
    init_logger()

    logger.info("Application startup...")

    store = await build_session_store()
    server.state.control_service = build_streaming_control_service(store)

    yield

    logger.info("Application shutdown...")

    await close_cache_clients()
    MongoManager().close_all()


app = FastAPI(
    version="1.0",
    title="Streaming Control API",
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
    default_response_class=ORJSONResponse,
    lifespan=lifespan,
)

DEBUG = get_app_environ_config().DEBUG

app.add_middleware(HTTPLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,  # type: ignore
    allow_origins=[o.strip() for o in (config.get("API_CORS_ORIGINS") or "*").split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(RequestValidationError, app_validation_exception_handler)  # type: ignore
app.add_exception_handler(AppError, app_error_handler)  # type: ignore

app.include_router(health_router)
app.include_router(streaming_control_router, prefix="/api")


def build_granian_kwargs():
    app_config = get_app_environ_config()
    kwargs = {
        "interface": "asgi",
        "address": app_config.API_HOST,
        "port": app_config.API_PORT,
        "workers": app_config.API_WORKERS,
        "reload": DEBUG,
    }

    return kwargs


if __name__ == "__main__":
    granian_kwargs = build_granian_kwargs()
    Granian("streamctl.main:app", **granian_kwargs).serve()
