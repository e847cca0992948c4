"""State-transition tables for every session kind.

Each machine holds two tables:
- TRANSITIONS: which stored status may follow which.
- INTENTS: (current status, requested intent) -> target status, side effects
  to run, and the outcome reported to the caller. `None` as a status means
  "no record" (e.g. no active recording for the owner).

Operations look up their decision here instead of branching on status.
"""

from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict

from streamctl.schemas import PowerState, RecordingStatus, SocialLiveStatus, TransmissionStatus

from .control_models import Outcome


class Intent(str, Enum):
    START = "start"
    STOP = "stop"
    # A read observed the remote side active
    CONFIRM = "confirm"
    REMOVE = "remove"

    def __str__(self) -> str:
        return self.value


class Effect(str, Enum):
    ACTIVATE_APP = "activate_app"
    DEACTIVATE_APP = "deactivate_app"
    FINALIZE_PREVIOUS = "finalize_previous"
    CREATE_RECORD = "create_record"
    PROVISION_MANIFEST = "provision_manifest"
    PUSH = "push"
    STOP_PUSH = "stop_push"
    SPAWN_CAPTURE = "spawn_capture"
    TERMINATE_CAPTURE = "terminate_capture"
    DELETE_RECORD = "delete_record"

    def __str__(self) -> str:
        return self.value


class Transition(BaseModel):
    model_config = ConfigDict(frozen=True)

    target: Any
    effects: tuple[Effect, ...] = ()
    outcome: Outcome = Outcome.OK

    @property
    def is_noop(self) -> bool:
        return self.outcome == Outcome.ALREADY_IN_STATE


class _StateMachine:
    TRANSITIONS: ClassVar[dict[Any, set[Any]]] = {}
    TERMINAL_STATES: ClassVar[set[Any]] = set()
    INTENTS: ClassVar[dict[tuple[Any, Intent], Transition]] = {}

    @classmethod
    def can_transition(cls, current: Any, new: Any) -> bool:
        """Check if state transition is valid."""
        return new in cls.TRANSITIONS.get(current, set())

    @classmethod
    def is_terminal(cls, state: Any) -> bool:
        return state in cls.TERMINAL_STATES

    @classmethod
    def decide(cls, current: Any, intent: Intent) -> Transition | None:
        """Decision for `intent` in `current`, None when the intent is not allowed there."""
        return cls.INTENTS.get((current, intent))


class PowerStateMachine(_StateMachine):
    """Endpoint power: OFF <-> ON. Requesting the current state is a no-op."""

    TRANSITIONS = {
        PowerState.OFF: {PowerState.ON},
        PowerState.ON: {PowerState.OFF},
    }

    INTENTS = {
        (PowerState.OFF, Intent.START): Transition(target=PowerState.ON, effects=(Effect.ACTIVATE_APP,)),
        (PowerState.ON, Intent.START): Transition(target=PowerState.ON, outcome=Outcome.ALREADY_IN_STATE),
        (PowerState.ON, Intent.STOP): Transition(target=PowerState.OFF, effects=(Effect.DEACTIVATE_APP,)),
        (PowerState.OFF, Intent.STOP): Transition(target=PowerState.OFF, outcome=Outcome.ALREADY_IN_STATE),
    }


class TransmissionStateMachine(_StateMachine):
    """Transmission: ACTIVE -> FINISHED. Starting over an active one supersedes it."""

    TRANSITIONS = {
        TransmissionStatus.ACTIVE: {TransmissionStatus.FINISHED},
        TransmissionStatus.FINISHED: set(),
    }
    TERMINAL_STATES = {TransmissionStatus.FINISHED}

    _START_EFFECTS = (Effect.CREATE_RECORD, Effect.PROVISION_MANIFEST, Effect.ACTIVATE_APP)

    INTENTS = {
        (None, Intent.START): Transition(target=TransmissionStatus.ACTIVE, effects=_START_EFFECTS),
        (TransmissionStatus.ACTIVE, Intent.START): Transition(
            target=TransmissionStatus.ACTIVE,
            effects=(Effect.FINALIZE_PREVIOUS, *_START_EFFECTS),
        ),
        (TransmissionStatus.ACTIVE, Intent.STOP): Transition(target=TransmissionStatus.FINISHED),
        (TransmissionStatus.FINISHED, Intent.STOP): Transition(
            target=TransmissionStatus.FINISHED, outcome=Outcome.ALREADY_IN_STATE
        ),
    }


class RecordingStateMachine(_StateMachine):
    """Recording: RECORDING -> STOPPED | ERROR. A second start is rejected, never superseded."""

    TRANSITIONS = {
        RecordingStatus.RECORDING: {RecordingStatus.STOPPED, RecordingStatus.ERROR},
        RecordingStatus.STOPPED: set(),
        RecordingStatus.ERROR: set(),
    }
    TERMINAL_STATES = {RecordingStatus.STOPPED, RecordingStatus.ERROR}

    INTENTS = {
        (None, Intent.START): Transition(target=RecordingStatus.RECORDING, effects=(Effect.SPAWN_CAPTURE,)),
        (RecordingStatus.RECORDING, Intent.START): Transition(
            target=RecordingStatus.RECORDING, outcome=Outcome.ALREADY_IN_STATE
        ),
        (RecordingStatus.RECORDING, Intent.STOP): Transition(
            target=RecordingStatus.STOPPED, effects=(Effect.TERMINATE_CAPTURE,)
        ),
        (None, Intent.STOP): Transition(target=None, outcome=Outcome.ALREADY_IN_STATE),
    }


class SocialLiveStateMachine(_StateMachine):
    """Social live push.

    - STARTING -> ACTIVE (push confirmed) | STOPPING | ERROR
    - ACTIVE -> STOPPING | ERROR
    - STOPPING -> STOPPED | ERROR
    - ERROR -> STOPPED (stop after a failed activation)
    - STOPPED is terminal
    """

    TRANSITIONS = {
        SocialLiveStatus.STARTING: {
            SocialLiveStatus.ACTIVE,
            SocialLiveStatus.STOPPING,
            SocialLiveStatus.ERROR,
        },
        SocialLiveStatus.ACTIVE: {SocialLiveStatus.STOPPING, SocialLiveStatus.ERROR},
        SocialLiveStatus.STOPPING: {SocialLiveStatus.STOPPED, SocialLiveStatus.ERROR},
        SocialLiveStatus.ERROR: {SocialLiveStatus.STOPPED},
        SocialLiveStatus.STOPPED: set(),
    }
    TERMINAL_STATES = {SocialLiveStatus.STOPPED}

    INTENTS = {
        (None, Intent.START): Transition(
            target=SocialLiveStatus.STARTING, effects=(Effect.CREATE_RECORD, Effect.PUSH)
        ),
        (SocialLiveStatus.STARTING, Intent.STOP): Transition(
            target=SocialLiveStatus.STOPPING, effects=(Effect.STOP_PUSH,)
        ),
        (SocialLiveStatus.ACTIVE, Intent.STOP): Transition(
            target=SocialLiveStatus.STOPPING, effects=(Effect.STOP_PUSH,)
        ),
        # A stop interrupted between STOPPING and STOPPED is retried
        (SocialLiveStatus.STOPPING, Intent.STOP): Transition(
            target=SocialLiveStatus.STOPPING, effects=(Effect.STOP_PUSH,)
        ),
        (SocialLiveStatus.ERROR, Intent.STOP): Transition(
            target=SocialLiveStatus.STOPPED, effects=(Effect.STOP_PUSH,)
        ),
        (SocialLiveStatus.STOPPED, Intent.STOP): Transition(
            target=SocialLiveStatus.STOPPED, outcome=Outcome.ALREADY_IN_STATE
        ),
        (SocialLiveStatus.STARTING, Intent.CONFIRM): Transition(target=SocialLiveStatus.ACTIVE),
        (SocialLiveStatus.ACTIVE, Intent.CONFIRM): Transition(
            target=SocialLiveStatus.ACTIVE, outcome=Outcome.ALREADY_IN_STATE
        ),
        (SocialLiveStatus.STOPPED, Intent.REMOVE): Transition(target=None, effects=(Effect.DELETE_RECORD,)),
        (SocialLiveStatus.ERROR, Intent.REMOVE): Transition(target=None, effects=(Effect.DELETE_RECORD,)),
    }


__all__ = [
    "Effect",
    "Intent",
    "PowerStateMachine",
    "RecordingStateMachine",
    "SocialLiveStateMachine",
    "Transition",
    "TransmissionStateMachine",
]
