"""
Lifecycle orchestrator.

`StreamingControlService` is the entry point; the `_*.py` modules hold one
group of operations each and share `BaseOperations`.
"""

from ._base import ControlDependencies
from .control_domain import StreamingControlService, build_streaming_control_service
from .control_models import ActorRole, ControlResult, Outcome, StartSocialLiveParams, StartTransmissionOptions

__all__ = [
    "ActorRole",
    "ControlDependencies",
    "ControlResult",
    "Outcome",
    "StartSocialLiveParams",
    "StartTransmissionOptions",
    "StreamingControlService",
    "build_streaming_control_service",
]
