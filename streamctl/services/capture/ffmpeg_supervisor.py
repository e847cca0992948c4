"""ffmpeg-backed Capture Process Supervisor.

Each recording runs `ffmpeg -i <source> -c copy -bsf:a aac_adtstoasc -y <dest>`
as a child process. stderr is drained in the background so the pipe never
fills; the last lines are kept for error reports.
"""

import asyncio
import os
import signal
from collections import deque

from loguru import logger

from streamctl.app_config import get_app_environ_config
from streamctl.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

from .supervisor import CaptureProcessSupervisor

_STDERR_TAIL_LINES = 20
_PID_POLL_INTERVAL = 0.2


def build_capture_args(binary: str, source_url: str, destination: str) -> list[str]:
    return [binary, "-i", source_url, "-c", "copy", "-bsf:a", "aac_adtstoasc", "-y", destination]


def _pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


class FfmpegCaptureSupervisor(CaptureProcessSupervisor):
    def __init__(
        self,
        binary: str | None = None,
        startup_probe_seconds: float | None = None,
        stop_grace_seconds: float | None = None,
    ):
        cfg = get_app_environ_config()
        self.binary = binary or cfg.CAPTURE_BINARY
        self.startup_probe_seconds = (
            startup_probe_seconds if startup_probe_seconds is not None else cfg.CAPTURE_STARTUP_PROBE_SECONDS
        )
        self.stop_grace_seconds = (
            stop_grace_seconds if stop_grace_seconds is not None else cfg.CAPTURE_STOP_GRACE_SECONDS
        )
        self._processes: dict[str, asyncio.subprocess.Process] = {}
        self._drains: dict[str, asyncio.Task] = {}

    async def _drain(self, recording_id: str, stream: asyncio.StreamReader, tail: deque) -> None:
        while True:
            line = await stream.readline()
            if not line:
                break
            text = line.decode(errors="replace").rstrip()
            tail.append(text)
            logger.debug(f"[capture {recording_id}] {text}")

    async def spawn(self, recording_id: str, source_url: str, destination: str) -> int:
        args = build_capture_args(self.binary, source_url, destination)
        logger.info(f"Spawning capture for recording {recording_id}: {' '.join(args)}")
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise AppError(
                errcode=AppErrorCode.E_PROCESS_ERROR,
                errmesg=f"Could not start capture process {self.binary}",
                status_code=HttpStatusCode.INTERNAL_SERVER_ERROR,
                detail=str(e),
            ) from e

        tail: deque[str] = deque(maxlen=_STDERR_TAIL_LINES)
        drain = asyncio.create_task(self._drain(recording_id, process.stderr, tail))  # type: ignore[arg-type]

        try:
            await asyncio.wait_for(process.wait(), timeout=self.startup_probe_seconds)
        except asyncio.TimeoutError:
            self._processes[recording_id] = process
            self._drains[recording_id] = drain
            logger.info(f"Capture for recording {recording_id} running with pid={process.pid}")
            return process.pid

        await drain
        raise AppError(
            errcode=AppErrorCode.E_PROCESS_ERROR,
            errmesg=f"Capture process exited immediately with code {process.returncode}",
            status_code=HttpStatusCode.INTERNAL_SERVER_ERROR,
            detail="\n".join(tail),
        )

    async def terminate(self, recording_id: str, pid: int | None = None) -> None:
        process = self._processes.pop(recording_id, None)
        drain = self._drains.pop(recording_id, None)

        if process is None:
            # Not spawned by this instance (e.g. after a restart); fall back to the stored pid
            if pid is not None:
                await self._terminate_pid(recording_id, pid)
            return

        if process.returncode is None:
            try:
                process.send_signal(signal.SIGTERM)
            except ProcessLookupError:
                logger.info(f"Capture process for recording {recording_id} already gone")
            else:
                try:
                    await asyncio.wait_for(process.wait(), timeout=self.stop_grace_seconds)
                except asyncio.TimeoutError:
                    logger.warning(
                        f"Capture process {process.pid} for recording {recording_id} ignored SIGTERM, killing"
                    )
                    process.kill()
                    await process.wait()

        if drain is not None:
            await drain
        logger.info(f"Capture for recording {recording_id} exited with code {process.returncode}")

    async def _terminate_pid(self, recording_id: str, pid: int) -> None:
        try:
            os.kill(pid, signal.SIGTERM)
        except ProcessLookupError:
            logger.info(f"Capture process {pid} for recording {recording_id} already gone")
            return

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.stop_grace_seconds
        while _pid_alive(pid):
            if loop.time() >= deadline:
                logger.warning(f"Capture process {pid} for recording {recording_id} ignored SIGTERM, killing")
                try:
                    os.kill(pid, signal.SIGKILL)
                except ProcessLookupError:
                    pass
                return
            await asyncio.sleep(_PID_POLL_INTERVAL)

    def size(self, path: str) -> int | None:
        try:
            return os.path.getsize(path)
        except OSError:
            return None

    def is_alive(self, recording_id: str, pid: int | None = None) -> bool:
        process = self._processes.get(recording_id)
        if process is not None:
            return process.returncode is None
        return pid is not None and _pid_alive(pid)
