"""
CounterState model: the running encounter count and run/pause flag.

All mutation goes through named operations so the invariants stay checkable:
the count is never negative and only decreases through reset().
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .encounter_event import EncounterEvent


@dataclass
class CounterState:
    """
    Running counter state owned by the controller.

    Attributes:
        count: Number of confirmed encounters.
        running: Whether the capture loop is counting.
        last_saved_count: Count written by the last successful save.
        last_label: Label of the most recent encounter, if any.
    """
    count: int = 0
    running: bool = False
    last_saved_count: int = 0
    last_label: Optional[str] = None
    _last_saved_running: bool = field(default=False, init=False, repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.count, int) or self.count < 0:
            raise ValueError(f"count must be a non-negative integer, got {self.count!r}")

    @classmethod
    def fresh(cls) -> "CounterState":
        return cls()

    @classmethod
    def from_record(cls, count: int, running: bool, last_label: Optional[str] = None) -> "CounterState":
        """Build a state that matches what is already on disk."""
        state = cls(
            count=count,
            running=running,
            last_saved_count=count,
            last_label=last_label,
        )
        state._last_saved_running = running
        return state

    @property
    def dirty(self) -> bool:
        """True while in-memory state is ahead of the last successful save."""
        return self.count != self.last_saved_count or self.running != self._last_saved_running

    def record_encounter(self, event: EncounterEvent) -> int:
        """Increment the count for a confirmed encounter and return the new total."""
        self.count += 1
        self.last_label = event.label
        return self.count

    def pause(self) -> None:
        self.running = False

    def resume(self) -> None:
        self.running = True

    def reset(self) -> None:
        """Explicit reset to zero; the only way the count goes down."""
        self.count = 0
        self.last_label = None

    def mark_saved(self) -> None:
        self.last_saved_count = self.count
        self._last_saved_running = self.running

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "running": self.running,
            "last_label": self.last_label,
        }
