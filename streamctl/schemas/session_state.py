"""Common enums used across schemas."""

from enum import Enum


class PowerState(str, Enum):
    """Last observed power state of an owner's application on the media server."""

    ON = "on"
    OFF = "off"

    def __str__(self) -> str:
        return self.value


class TransmissionStatus(str, Enum):
    """Transmission lifecycle states.

    ACTIVE → FINISHED

    - ACTIVE: Output is being produced from the referenced playlist. At most one per owner.
    - FINISHED: Stopped by the owner, superseded by a newer start, or rolled back
      because its manifest could not be provisioned (see `rollback_reason`).
    """

    ACTIVE = "active"
    FINISHED = "finished"

    def __str__(self) -> str:
        return self.value


class TransmissionKind(str, Enum):
    PLAYLIST = "playlist"
    EXTERNAL_SOURCE = "external_source"

    def __str__(self) -> str:
        return self.value


class SocialLiveStatus(str, Enum):
    """Social live push states.

    STARTING → ACTIVE → STOPPING → STOPPED
        ↓         ↓         ↓
      ERROR     ERROR     ERROR → STOPPED

    - STARTING: Row created, push requested but not yet confirmed by the media server.
    - ACTIVE: Media server confirmed the push (at start or on a later status read).
    - STOPPING: Stop requested with the stored push handle.
    - STOPPED: Push removed from the media server. Terminal.
    - ERROR: Unrecoverable activation or stop failure.
    """

    STARTING = "starting"
    ACTIVE = "active"
    STOPPING = "stopping"
    STOPPED = "stopped"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def active_states(cls) -> list["SocialLiveStatus"]:
        """States in which the push may still be producing output."""
        return [
            SocialLiveStatus.STARTING,
            SocialLiveStatus.ACTIVE,
            SocialLiveStatus.STOPPING,
        ]


class RecordingStatus(str, Enum):
    """Recording states. RECORDING → STOPPED | ERROR."""

    RECORDING = "recording"
    STOPPED = "stopped"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value


__all__ = [
    "PowerState",
    "RecordingStatus",
    "SocialLiveStatus",
    "TransmissionKind",
    "TransmissionStatus",
]
