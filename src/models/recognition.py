"""
RecognitionResult model produced by recognizers.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RecognitionResult:
    """
    Text/pattern evidence extracted from one frame.

    Attributes:
        label: Extracted label (normalized text). Empty when nothing was found.
        confidence: Recognizer confidence in [0, 1].
        timestamp: Timestamp of the frame the evidence came from.
        frame_index: Index of that frame.
    """
    label: str
    confidence: float
    timestamp: float
    frame_index: int = 0

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be in [0, 1], got {self.confidence}")

    @classmethod
    def empty(cls, timestamp: float, frame_index: int = 0) -> "RecognitionResult":
        """Result for a frame with no usable evidence."""
        return cls(label="", confidence=0.0, timestamp=timestamp, frame_index=frame_index)

    @property
    def is_empty(self) -> bool:
        return not self.label.strip()

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "confidence": self.confidence,
            "timestamp": self.timestamp,
            "frame_index": self.frame_index,
        }
