"""Recording operations."""

import asyncio
from pathlib import Path

from loguru import logger

from streamctl.domain.utils.idgen import new_recording_id
from streamctl.domain.utils.stream_urls import playback_hls_url
from streamctl.schemas import EndpointRecord, RecordingRecord, RecordingStatus
from streamctl.shared.utils import utc_now
from streamctl.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

from ._base import BaseOperations
from .control_models import Outcome, RecordingResult
from .state_machine import Intent, RecordingStateMachine


def recording_file_name(now) -> str:
    """`recording_<UTC ISO timestamp>.mp4` with `:` and `.` made filesystem-safe."""
    stamp = now.isoformat().replace(":", "-").replace(".", "-").replace("+00-00", "Z")
    return f"recording_{stamp}.mp4"


class RecordingOperations(BaseOperations):
    """Operations for local recordings of an owner's published output."""

    def _recording_dir(self, endpoint: EndpointRecord) -> Path:
        return Path(self.deps.recordings_root) / endpoint.login / self.deps.recordings_dirname

    async def start_recording(self, owner_id: str) -> RecordingResult:
        owner_id = self._require(owner_id, "owner_id")
        async with self.owner_lock.hold(owner_id):
            return await self._start_recording_locked(owner_id)

    async def _start_recording_locked(self, owner_id: str) -> RecordingResult:
        """Check-then-create of a recording. Caller holds the owner lock."""
        endpoint = await self._get_endpoint(owner_id)

        active = await self.store.get_active_recording(owner_id)
        decision = RecordingStateMachine.decide(active.status if active else None, Intent.START)
        if active and decision and decision.is_noop:
            logger.info(f"Recording {active.recording_id} already in progress for owner {owner_id}")
            return RecordingResult(
                success=False,
                outcome=Outcome.ALREADY_IN_STATE,
                errcode=AppErrorCode.E_RECORDING_IN_PROGRESS.value,
                message="A recording is already in progress",
                already_active=True,
                recording=self._recording_view(active),
            )

        directory = self._recording_dir(endpoint)
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise AppError(
                errcode=AppErrorCode.E_PROCESS_ERROR,
                errmesg=f"Could not prepare recording directory {directory}",
                status_code=HttpStatusCode.INTERNAL_SERVER_ERROR,
                detail=str(e),
            ) from e

        now = utc_now()
        file_name = recording_file_name(now)
        recording = await self.store.create_recording(
            RecordingRecord(
                recording_id=new_recording_id(),
                owner_id=owner_id,
                file_name=file_name,
                file_path=str(directory / file_name),
                source_url=playback_hls_url(endpoint.server.host, endpoint.login),
                status=decision.target if decision else RecordingStatus.RECORDING,
                started_at=now,
                created_at=now,
                updated_at=now,
            )
        )

        try:
            pid = await self.capture.spawn(recording.recording_id, recording.source_url, recording.file_path)
        except AppError as e:
            logger.error(f"Recording {recording.recording_id} failed to start: {e.errmesg} {e.detail or ''}")
            recording = await self.store.update_recording(
                recording,
                {
                    "status": RecordingStatus.ERROR,
                    "error_detail": e.detail or e.errmesg,
                    "ended_at": utc_now(),
                },
            )
            return RecordingResult.failure(e, recording=self._recording_view(recording))

        recording = await self.store.update_recording(recording, {"pid": pid})
        logger.info(f"Recording {recording.recording_id} started for owner {owner_id} (pid={pid})")
        return RecordingResult(
            message="Recording started",
            recording=self._recording_view(recording),
            process_alive=True,
        )

    async def stop_recording(self, owner_id: str) -> RecordingResult:
        """Stop the active recording. Nothing recording is a successful no-op."""
        owner_id = self._require(owner_id, "owner_id")
        warnings: list[str] = []

        async with self.owner_lock.hold(owner_id):
            active = await self.store.get_active_recording(owner_id)
            decision = RecordingStateMachine.decide(active.status if active else None, Intent.STOP)
            if active is None or decision is None or decision.is_noop:
                return RecordingResult(
                    outcome=Outcome.ALREADY_IN_STATE,
                    already_inactive=True,
                    message="No recording in progress",
                )

            try:
                await self.capture.terminate(active.recording_id, active.pid)
            except AppError as e:
                warnings.append(f"Capture process did not stop cleanly: {self._describe(e)}")

            await asyncio.sleep(self.deps.capture_settle_seconds)

            size = self.capture.size(active.file_path)
            if size is None:
                warnings.append(f"Could not measure {active.file_name}, size reported as 0")

            recording = await self.store.update_recording(
                active,
                {
                    "status": decision.target,
                    "file_size": size or 0,
                    "ended_at": utc_now(),
                },
            )

        logger.info(f"Recording {recording.recording_id} stopped for owner {owner_id} ({recording.file_size} bytes)")
        return RecordingResult(
            message="Recording stopped",
            recording=self._recording_view(recording),
            process_alive=False,
            warnings=warnings,
        )

    async def recording_status(self, owner_id: str) -> RecordingResult:
        owner_id = self._require(owner_id, "owner_id")
        active = await self.store.get_active_recording(owner_id)
        if active is None:
            return RecordingResult(message="No recording in progress")

        return RecordingResult(
            recording=self._recording_view(active),
            process_alive=self.capture.is_alive(active.recording_id, active.pid),
        )
