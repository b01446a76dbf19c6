"""
Encounter detection state machine.

Turns a noisy stream of recognition results into discrete encounter events:
- IDLE: no candidate label seen
- ARMED: a candidate was seen, waiting for repeats to reject one-frame noise
- COOLDOWN: an encounter was just counted; the same screen stays visible for
  several polls, so further matches are suppressed until the cooldown ends

The detector only returns events. It never touches the counter state, so it
can be driven in isolation with a scripted list of results.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from models.encounter_event import EncounterEvent
from models.recognition import RecognitionResult


class DetectorState(str, Enum):
    """States of the encounter detector."""
    IDLE = "idle"
    ARMED = "armed"
    COOLDOWN = "cooldown"


@dataclass
class DetectorConfig:
    """
    Configuration for the encounter detector.

    Attributes:
        threshold: Minimum confidence for a result to count as a match.
        required_matches: Consecutive same-label matches needed to confirm.
        cooldown_seconds: Suppression window after a confirmed encounter.
        label_change_ends_cooldown: A confident, different label ends the
            cooldown early (the screen changed to a new encounter).
    """
    threshold: float = 0.6
    required_matches: int = 2
    cooldown_seconds: float = 8.0
    label_change_ends_cooldown: bool = True

    def __post_init__(self) -> None:
        if not 0.0 <= self.threshold <= 1.0:
            raise ValueError(f"threshold must be in [0, 1], got {self.threshold}")
        if self.required_matches < 1:
            raise ValueError(f"required_matches must be >= 1, got {self.required_matches}")
        if self.cooldown_seconds < 0:
            raise ValueError(f"cooldown_seconds must be >= 0, got {self.cooldown_seconds}")


class EncounterDetector:
    """
    Debouncing detector for encounter screens.

    Transitions for each result with confidence c and label L:
    - IDLE + match                  -> ARMED (label=L, consecutive=1)
    - IDLE + no match               -> IDLE
    - ARMED + match, same label     -> consecutive += 1; emit and enter
                                       COOLDOWN once consecutive >= K
    - ARMED + match, other label    -> ARMED with the new label, consecutive=1
    - ARMED + no match              -> IDLE
    - COOLDOWN, before expiry       -> COOLDOWN (no event)
    - COOLDOWN, at/after expiry     -> IDLE, then the same result is
                                       evaluated again as if in IDLE

    A match is a non-empty label with c >= threshold. Time is taken from the
    result timestamps, not the wall clock.
    """

    def __init__(self, config: Optional[DetectorConfig] = None):
        self._config = config or DetectorConfig()
        self._state = DetectorState.IDLE
        self._label: Optional[str] = None
        self._consecutive = 0
        self._run_min_confidence = 1.0
        self._cooldown_expiry: Optional[float] = None

    @property
    def config(self) -> DetectorConfig:
        return self._config

    @property
    def state(self) -> DetectorState:
        return self._state

    @property
    def label(self) -> Optional[str]:
        """Candidate label while ARMED, counted label while in COOLDOWN."""
        return self._label

    @property
    def consecutive(self) -> int:
        return self._consecutive

    @property
    def cooldown_expiry(self) -> Optional[float]:
        return self._cooldown_expiry

    def reset(self) -> None:
        """Force the detector back to IDLE, dropping any candidate or cooldown."""
        self._enter_idle()

    def is_match(self, result: RecognitionResult) -> bool:
        return not result.is_empty and result.confidence >= self._config.threshold

    def process(self, result: RecognitionResult) -> Optional[EncounterEvent]:
        """
        Feed one recognition result.

        Returns:
            The EncounterEvent confirmed by this result, or None.
        """
        if self._state == DetectorState.COOLDOWN:
            if result.timestamp < self._cooldown_expiry:
                if (
                    self._config.label_change_ends_cooldown
                    and self.is_match(result)
                    and result.label != self._label
                ):
                    logging.debug(
                        f"[DETECT] cooldown broken by new label {result.label!r} "
                        f"(was {self._label!r})"
                    )
                    self._enter_idle()
                return None
            self._enter_idle()

        if self._state == DetectorState.IDLE:
            if self.is_match(result):
                return self._arm(result)
            return None

        # ARMED
        if not self.is_match(result):
            self._enter_idle()
            return None
        if result.label != self._label:
            return self._arm(result)

        self._consecutive += 1
        self._run_min_confidence = min(self._run_min_confidence, result.confidence)
        if self._consecutive >= self._config.required_matches:
            return self._confirm(result)
        return None

    def _arm(self, result: RecognitionResult) -> Optional[EncounterEvent]:
        self._state = DetectorState.ARMED
        self._label = result.label
        self._consecutive = 1
        self._run_min_confidence = result.confidence
        if self._consecutive >= self._config.required_matches:
            return self._confirm(result)
        return None

    def _confirm(self, result: RecognitionResult) -> EncounterEvent:
        event = EncounterEvent(
            label=self._label,
            timestamp=result.timestamp,
            confirmations=self._consecutive,
            confidence=self._run_min_confidence,
        )
        self._state = DetectorState.COOLDOWN
        self._cooldown_expiry = result.timestamp + self._config.cooldown_seconds
        self._consecutive = 0
        return event

    def _enter_idle(self) -> None:
        self._state = DetectorState.IDLE
        self._label = None
        self._consecutive = 0
        self._run_min_confidence = 1.0
        self._cooldown_expiry = None

    def snapshot(self) -> Dict[str, Any]:
        return {
            "state": self._state.value,
            "label": self._label,
            "consecutive": self._consecutive,
            "cooldown_expiry": self._cooldown_expiry,
        }


def create_detector_from_config(detector_cfg: Dict[str, Any]) -> EncounterDetector:
    """
    Factory function to create an EncounterDetector from config dict.

    Args:
        detector_cfg: Detector section of the application config.
    """
    config = DetectorConfig(
        threshold=float(detector_cfg.get("threshold", 0.6)),
        required_matches=int(detector_cfg.get("required_matches", 2)),
        cooldown_seconds=float(detector_cfg.get("cooldown_seconds", 8.0)),
        label_change_ends_cooldown=bool(detector_cfg.get("label_change_ends_cooldown", True)),
    )
    return EncounterDetector(config)
