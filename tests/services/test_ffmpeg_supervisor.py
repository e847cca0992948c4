"""Tests for the ffmpeg Capture Process Supervisor."""

import asyncio
import signal
from unittest.mock import patch

import pytest

from streamctl.services.capture.ffmpeg_supervisor import FfmpegCaptureSupervisor, build_capture_args
from streamctl.utils.app_errors import AppError, AppErrorCode

SOURCE = "https://stream.example.com/a/a/playlist.m3u8"


class FakeProcess:
    """Stands in for asyncio.subprocess.Process; exits when signalled."""

    def __init__(self, pid: int = 4242, exit_code: int | None = None, stderr_lines: list[str] | None = None):
        self.pid = pid
        self.returncode = exit_code
        self.signals: list[int] = []
        self.stderr = asyncio.StreamReader()
        for line in stderr_lines or []:
            self.stderr.feed_data(f"{line}\n".encode())
        self._exited = asyncio.Event()
        if exit_code is not None:
            self._finish(exit_code)

    def _finish(self, code: int) -> None:
        self.returncode = code
        self.stderr.feed_eof()
        self._exited.set()

    async def wait(self) -> int:
        await self._exited.wait()
        return self.returncode

    def send_signal(self, sig: int) -> None:
        self.signals.append(sig)
        self._finish(-sig)

    def kill(self) -> None:
        self.signals.append(signal.SIGKILL)
        self._finish(-signal.SIGKILL)


@pytest.fixture
def supervisor() -> FfmpegCaptureSupervisor:
    return FfmpegCaptureSupervisor(binary="ffmpeg", startup_probe_seconds=0.05, stop_grace_seconds=0.5)


class TestBuildCaptureArgs:
    def test_stream_copy_args(self):
        args = build_capture_args("ffmpeg", SOURCE, "/data/a/recordings/r.mp4")

        assert args == [
            "ffmpeg",
            "-i",
            SOURCE,
            "-c",
            "copy",
            "-bsf:a",
            "aac_adtstoasc",
            "-y",
            "/data/a/recordings/r.mp4",
        ]


class TestSpawn:
    """Tests for spawn."""

    async def test_spawn_returns_pid_when_process_survives_probe(self, supervisor):
        process = FakeProcess()

        with patch("asyncio.create_subprocess_exec", return_value=process) as create:
            pid = await supervisor.spawn("rec_1", SOURCE, "/tmp/r.mp4")

        assert pid == 4242
        assert create.await_args.args[:3] == ("ffmpeg", "-i", SOURCE)
        assert supervisor.is_alive("rec_1") is True

        await supervisor.terminate("rec_1")

    async def test_immediate_exit_is_process_error(self, supervisor):
        """Test a process that exits during the startup probe reports its stderr tail."""
        process = FakeProcess(exit_code=1, stderr_lines=["Opening input", "Server returned 404 Not Found"])

        with patch("asyncio.create_subprocess_exec", return_value=process):
            with pytest.raises(AppError) as exc_info:
                await supervisor.spawn("rec_1", SOURCE, "/tmp/r.mp4")

        assert exc_info.value.errcode == AppErrorCode.E_PROCESS_ERROR
        assert "Server returned 404 Not Found" in exc_info.value.detail
        assert supervisor.is_alive("rec_1") is False

    async def test_missing_binary_is_process_error(self, supervisor):
        with patch("asyncio.create_subprocess_exec", side_effect=FileNotFoundError("ffmpeg")):
            with pytest.raises(AppError) as exc_info:
                await supervisor.spawn("rec_1", SOURCE, "/tmp/r.mp4")

        assert exc_info.value.errcode == AppErrorCode.E_PROCESS_ERROR


class TestTerminate:
    async def test_terminate_sends_sigterm_and_waits(self, supervisor):
        process = FakeProcess()
        with patch("asyncio.create_subprocess_exec", return_value=process):
            await supervisor.spawn("rec_1", SOURCE, "/tmp/r.mp4")

        await supervisor.terminate("rec_1")

        assert process.signals == [signal.SIGTERM]
        assert supervisor.is_alive("rec_1") is False

    async def test_terminate_already_exited_process(self, supervisor):
        """Test a process that exited on its own is not signalled again."""
        process = FakeProcess()
        with patch("asyncio.create_subprocess_exec", return_value=process):
            await supervisor.spawn("rec_1", SOURCE, "/tmp/r.mp4")
        process._finish(0)

        await supervisor.terminate("rec_1")

        assert process.signals == []

    async def test_terminate_unknown_pid_is_noop(self, supervisor):
        with patch("os.kill", side_effect=ProcessLookupError) as kill:
            await supervisor.terminate("rec_other", pid=999_999)

        kill.assert_called_once_with(999_999, signal.SIGTERM)


class TestSizeAndLiveness:
    def test_size_of_existing_file(self, supervisor, tmp_path):
        artifact = tmp_path / "r.mp4"
        artifact.write_bytes(b"\x00" * 2048)

        assert supervisor.size(str(artifact)) == 2048

    def test_size_of_missing_file_is_none(self, supervisor, tmp_path):
        assert supervisor.size(str(tmp_path / "missing.mp4")) is None

    def test_unknown_recording_without_pid_is_dead(self, supervisor):
        assert supervisor.is_alive("rec_unknown") is False
