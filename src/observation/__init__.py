"""
Observation layer for pluggable screen/image sources.

This layer abstracts where frames come from (live screen, saved screenshots)
from the counting pipeline. Each source implements the FrameSource interface
and returns FrameData objects.
"""

from typing import Any, Dict, Optional

from .base import (
    CaptureError,
    CaptureUnavailable,
    FrameSource,
    FrameSourceConfig,
    PermissionDenied,
)
from .image_source import ImageFileSource, ImageFileSourceConfig
from .screen_source import ScreenRegion, ScreenSource, ScreenSourceConfig


def create_source_from_config(capture_cfg: Dict[str, Any], source_id: Optional[str] = None) -> FrameSource:
    """
    Factory function to create a FrameSource from the capture config dict.

    Args:
        capture_cfg: Capture section of the application config.
        source_id: Optional identifier override.
    """
    backend = capture_cfg.get("backend", "screen")
    if backend == "screen":
        return ScreenSource(ScreenSourceConfig.from_capture_config(capture_cfg, source_id))
    if backend == "image":
        return ImageFileSource(ImageFileSourceConfig.from_capture_config(capture_cfg, source_id))
    raise ValueError(f"Unknown capture backend: {backend}")


__all__ = [
    "CaptureError",
    "CaptureUnavailable",
    "PermissionDenied",
    "FrameSource",
    "FrameSourceConfig",
    "ScreenSource",
    "ScreenSourceConfig",
    "ScreenRegion",
    "ImageFileSource",
    "ImageFileSourceConfig",
    "create_source_from_config",
]
