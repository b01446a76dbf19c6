"""
Encounter detection algorithms.

The detector consumes recognition results and produces encounter events.
It does not own or modify the counter; the controller applies its events.
"""

from .detector import (
    DetectorConfig,
    DetectorState,
    EncounterDetector,
    create_detector_from_config,
)

__all__ = [
    "DetectorConfig",
    "DetectorState",
    "EncounterDetector",
    "create_detector_from_config",
]
