"""
EncounterEvent model for confirmed encounters.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class EncounterEvent:
    """
    An event emitted when the detector confirms one encounter.

    Attributes:
        label: Label of the confirming recognition results (e.g., "pidgey").
        timestamp: Timestamp of the result that confirmed the encounter.
        confirmations: Consecutive matching results that led to the event.
        confidence: Lowest confidence seen in the confirming run.
    """
    label: str
    timestamp: float
    confirmations: int = 1
    confidence: float = 1.0

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "label": self.label,
            "timestamp": self.timestamp,
            "confirmations": self.confirmations,
            "confidence": self.confidence,
        }
