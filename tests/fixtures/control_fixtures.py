"""Collaborator doubles and seeded records for control-service tests."""

from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from streamctl.domain.control import ControlDependencies, StreamingControlService
from streamctl.domain.store import MemorySessionStore
from streamctl.schemas import EndpointRecord, MediaServerRef, PlaylistRecord, PowerState
from streamctl.services.capture.supervisor import CaptureProcessSupervisor
from streamctl.services.integrations.manifest_service import ManifestProvisioner, ManifestResult
from streamctl.services.integrations.media_server import (
    CommandResult,
    PushResult,
    PushStatus,
    RemoteControlChannel,
)
from streamctl.shared.utils import utc_now

OWNER_ID = "owner-1"
OTHER_OWNER_ID = "owner-2"
MEDIA_HOST = "stream.example.com"

# Small enough to keep timeout tests fast
REMOTE_TIMEOUT = 0.2


def make_endpoint(
    owner_id: str = OWNER_ID,
    login: str | None = None,
    host: str = MEDIA_HOST,
    power_state: PowerState = PowerState.OFF,
    is_blocked: bool = False,
    server_active: bool = True,
) -> EndpointRecord:
    now = utc_now()
    return EndpointRecord(
        owner_id=owner_id,
        login=login or f"login_{owner_id.replace('-', '_')}",
        server=MediaServerRef(server_id="srv-1", host=host, is_active=server_active),
        power_state=power_state,
        is_blocked=is_blocked,
        created_at=now,
        updated_at=now,
    )


def make_playlist(
    playlist_id: str = "pl-1",
    owner_id: str = OWNER_ID,
    name: str = "Morning Show",
    item_count: int = 3,
) -> PlaylistRecord:
    return PlaylistRecord(
        playlist_id=playlist_id,
        owner_id=owner_id,
        name=name,
        item_ids=[f"video-{i}" for i in range(item_count)],
    )


async def never_answers(*args, **kwargs):
    """Side effect for a collaborator that hangs past any timeout."""
    import asyncio

    await asyncio.sleep(3600)


@pytest.fixture
def store() -> MemorySessionStore:
    return MemorySessionStore()


@pytest.fixture
def channel() -> AsyncMock:
    """Remote Control Channel double: everything succeeds, applications start stopped."""
    mock = AsyncMock(spec=RemoteControlChannel)
    mock.is_running.return_value = False
    mock.activate.return_value = CommandResult(ok=True, detail="restarted")
    mock.deactivate.return_value = CommandResult(ok=True, detail="shutdown")
    mock.push_to_platform.return_value = PushResult(
        ok=True, handle="push-handle-1", confirmed=True, method="wowza-pushpublish"
    )
    mock.stop_push.return_value = CommandResult(ok=True)
    mock.query_push.return_value = PushStatus(
        active=True, state="Active", bitrate_kbps=2500.0, viewers=12, uptime_seconds=90
    )
    mock.incoming_streams.return_value = []
    return mock


@pytest.fixture
def provisioner() -> AsyncMock:
    mock = AsyncMock(spec=ManifestProvisioner)
    mock.provision.return_value = ManifestResult(ok=True, manifest_name="playlist_schedule.smil")
    return mock


@pytest.fixture
def capture() -> AsyncMock:
    mock = AsyncMock(spec=CaptureProcessSupervisor)
    mock.spawn.return_value = 4242
    mock.terminate.return_value = None
    mock.size.return_value = 1_048_576
    mock.is_alive.return_value = True
    return mock


@pytest.fixture
def deps(store, channel, provisioner, capture, tmp_path) -> ControlDependencies:
    return ControlDependencies(
        store=store,
        channel=channel,
        provisioner=provisioner,
        capture=capture,
        remote_timeout=REMOTE_TIMEOUT,
        manifest_timeout=REMOTE_TIMEOUT,
        capture_settle_seconds=0,
        recordings_root=str(tmp_path),
    )


@pytest.fixture
def service(deps: ControlDependencies) -> StreamingControlService:
    return StreamingControlService(deps)


@pytest_asyncio.fixture
async def endpoint(store: MemorySessionStore) -> EndpointRecord:
    """Owner endpoint, powered off."""
    return await store.save_endpoint(make_endpoint())


@pytest_asyncio.fixture
async def playlist(store: MemorySessionStore) -> PlaylistRecord:
    return await store.save_playlist(make_playlist())
