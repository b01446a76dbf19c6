"""
Typed models for the encounter counter.

These are plain dataclasses shared by the capture, recognition, detection
and persistence layers.
"""

from .frame import FrameData
from .recognition import RecognitionResult
from .encounter_event import EncounterEvent
from .counter_state import CounterState
from .status import ControllerStatus, Mode

__all__ = [
    # Frame
    "FrameData",
    # Recognition
    "RecognitionResult",
    # Counting
    "EncounterEvent",
    "CounterState",
    # Status
    "ControllerStatus",
    "Mode",
]
