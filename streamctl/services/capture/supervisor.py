"""Capture Process Supervisor interface."""

from abc import ABC, abstractmethod


class CaptureProcessSupervisor(ABC):
    """Tracks one local capture process per recording id."""

    @abstractmethod
    async def spawn(self, recording_id: str, source_url: str, destination: str) -> int:
        """Start capturing `source_url` into `destination`; return the process id.

        Raises AppError (E_PROCESS_ERROR) if the process cannot start or exits immediately.
        """

    @abstractmethod
    async def terminate(self, recording_id: str, pid: int | None = None) -> None:
        """Ask the process to finish gracefully. A missing or vanished process is not an error."""

    @abstractmethod
    def size(self, path: str) -> int | None:
        """Size of the artifact in bytes, None when it cannot be measured."""

    @abstractmethod
    def is_alive(self, recording_id: str, pid: int | None = None) -> bool: ...
