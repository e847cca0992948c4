from pydantic import BaseModel

from streamctl.shared.config import config


class AppEnvironConfig(BaseModel):
    # Public demo switch: when enabled, external integrations use stubs and avoid network calls.
    DEMO_MODE: bool = config.get("DEMO_MODE", "true").strip().lower() == "true"  # type: ignore
    DEBUG: bool = config.get("DEBUG", "false").strip().lower() == "true"  # type: ignore

    API_HOST: str = config.get("API_HOST", "0.0.0.0").strip()  # type: ignore
    API_PORT: int = int((config.get("API_PORT") or "").strip() or 8000)
    API_WORKERS: int = int((config.get("API_WORKERS") or "").strip() or 1)

    # Media server (Wowza REST API) configuration
    MEDIA_SERVER_DEFAULT_HOST: str = config.get(
        "MEDIA_SERVER_DEFAULT_HOST", "stream.example.com"
    ).strip()  # type: ignore
    MEDIA_SERVER_API_PORT: int = int((config.get("MEDIA_SERVER_API_PORT") or "").strip() or 8087)
    MEDIA_SERVER_RTMP_PORT: int = int((config.get("MEDIA_SERVER_RTMP_PORT") or "").strip() or 1935)
    MEDIA_SERVER_API_USER: str = config.get("MEDIA_SERVER_API_USER", "admin").strip()  # type: ignore
    MEDIA_SERVER_API_PASSWORD: str = config.get("MEDIA_SERVER_API_PASSWORD", "").strip()  # type: ignore
    # Seconds before a single remote command is reported as timed out
    REMOTE_COMMAND_TIMEOUT_SECONDS: float = float(
        (config.get("REMOTE_COMMAND_TIMEOUT_SECONDS") or "").strip() or 5
    )

    # Manifest provisioner
    MANIFEST_PROVISIONER_URL: str | None = (
        config.get("MANIFEST_PROVISIONER_URL") or ""
    ).strip() or None
    MANIFEST_PROVISIONER_API_KEY: str | None = (
        config.get("MANIFEST_PROVISIONER_API_KEY") or ""
    ).strip() or None
    MANIFEST_PROVISION_TIMEOUT_SECONDS: float = float(
        (config.get("MANIFEST_PROVISION_TIMEOUT_SECONDS") or "").strip() or 15
    )
    MANIFEST_DEFAULT_NAME: str = config.get(
        "MANIFEST_DEFAULT_NAME", "playlist_schedule.smil"
    ).strip()  # type: ignore

    # Public player page
    PLAYER_BASE_URL: str = config.get("PLAYER_BASE_URL", "http://localhost:3001").strip()  # type: ignore

    # Recording / capture process
    RECORDINGS_ROOT: str = config.get("RECORDINGS_ROOT", "/var/www/html/content").strip()  # type: ignore
    RECORDINGS_DIRNAME: str = config.get("RECORDINGS_DIRNAME", "recordings").strip()  # type: ignore
    CAPTURE_BINARY: str = config.get("CAPTURE_BINARY", "ffmpeg").strip()  # type: ignore
    CAPTURE_STARTUP_PROBE_SECONDS: float = float(
        (config.get("CAPTURE_STARTUP_PROBE_SECONDS") or "").strip() or 0.5
    )
    CAPTURE_STOP_GRACE_SECONDS: float = float(
        (config.get("CAPTURE_STOP_GRACE_SECONDS") or "").strip() or 10
    )
    # Delay after the capture process exits before the artifact size is measured
    CAPTURE_SETTLE_SECONDS: float = float(
        (config.get("CAPTURE_SETTLE_SECONDS") or "").strip() or 2
    )

    # Session store: `mongo` (Beanie) or `memory` (single process, nothing persisted)
    SESSION_STORE_BACKEND: str = config.get("SESSION_STORE_BACKEND", "mongo").strip().lower()  # type: ignore

    # Owner lock: in-process by default, Redis-backed when several instances share a store
    OWNER_LOCK_BACKEND: str = config.get("OWNER_LOCK_BACKEND", "local").strip().lower()  # type: ignore
    OWNER_LOCK_TTL_SECONDS: int = int((config.get("OWNER_LOCK_TTL_SECONDS") or "").strip() or 120)
    OWNER_LOCK_WAIT_SECONDS: float = float(
        (config.get("OWNER_LOCK_WAIT_SECONDS") or "").strip() or 30
    )


_app_environ_config = AppEnvironConfig()


def get_app_environ_config() -> AppEnvironConfig:
    return _app_environ_config
