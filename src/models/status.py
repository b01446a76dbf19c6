"""
ControllerStatus model for rendering the counter's current state.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class Mode(str, Enum):
    """User-facing mode of the encounter counter."""
    INIT = "init"
    PAUSE = "pause"
    WALK = "walk"
    ENCOUNTER = "encounter"

    @property
    def message(self) -> str:
        return {
            Mode.INIT: "Init, press S to start.",
            Mode.PAUSE: "Pause",
            Mode.WALK: "Walk",
            Mode.ENCOUNTER: "Encounter",
        }[self]


@dataclass(frozen=True)
class ControllerStatus:
    """
    Point-in-time snapshot of the controller.

    Attributes:
        count: Current encounter count.
        running: Whether counting is active.
        mode: Derived user-facing mode.
        detector_state: Name of the detector state (idle/armed/cooldown).
        last_label: Label of the most recent encounter.
        permission_denied: Screen capture is being refused by the platform.
        capture_degraded: Capture has failed for several consecutive ticks.
        last_save_failed: The most recent save attempt failed.
    """
    count: int
    running: bool
    mode: Mode
    detector_state: str
    last_label: Optional[str] = None
    permission_denied: bool = False
    capture_degraded: bool = False
    last_save_failed: bool = False

    @property
    def message(self) -> str:
        return self.mode.message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "running": self.running,
            "mode": self.mode.value,
            "message": self.message,
            "detector_state": self.detector_state,
            "last_label": self.last_label,
            "permission_denied": self.permission_denied,
            "capture_degraded": self.capture_degraded,
            "last_save_failed": self.last_save_failed,
        }
