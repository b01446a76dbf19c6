"""
Recognition layer: turns a captured frame into a scored label.
"""

from typing import Any, Dict

from .backend import RecognitionError, Recognizer
from .tesseract_backend import TesseractConfig, TesseractRecognizer


def create_recognizer_from_config(recognition_cfg: Dict[str, Any]) -> Recognizer:
    """
    Factory function to create a Recognizer from the recognition config dict.

    Args:
        recognition_cfg: Recognition section of the application config.
    """
    backend = recognition_cfg.get("backend", "tesseract")
    if backend == "tesseract":
        return TesseractRecognizer(TesseractConfig.from_dict(recognition_cfg.get("tesseract", {}) or {}))
    raise ValueError(f"Unknown recognition backend: {backend}")


__all__ = [
    "RecognitionError",
    "Recognizer",
    "TesseractConfig",
    "TesseractRecognizer",
    "create_recognizer_from_config",
]
