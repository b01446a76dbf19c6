"""
Recognizer interface.

A recognizer maps the pixels of one frame to a label plus a confidence. It is
treated as an opaque function so any OCR engine or classifier can be swapped
in.
"""

from __future__ import annotations

from typing import Protocol

from models.frame import FrameData
from models.recognition import RecognitionResult


class RecognitionError(RuntimeError):
    """The recognizer could not produce a result for a frame."""


class Recognizer(Protocol):
    def recognize(self, frame_data: FrameData) -> RecognitionResult:
        ...
