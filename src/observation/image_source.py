"""
OpenCV-based still image source.

Supports:
- A single screenshot file (returned on every capture)
- A directory of screenshots (replayed in name order, cycling)

Useful for tuning the recognizer and detector offline against saved screens.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import cv2

from models.frame import FrameData
from .base import CaptureUnavailable, FrameSource, FrameSourceConfig

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".bmp", ".tif", ".tiff", ".webp")


@dataclass
class ImageFileSourceConfig(FrameSourceConfig):
    """
    Configuration for image file sources.

    Attributes:
        path: Image file or directory of image files.
        loop: Restart from the first image after the last one.
        grayscale: Load images as single-channel grayscale.
    """
    path: str = ""
    loop: bool = True
    grayscale: bool = False

    @classmethod
    def from_capture_config(cls, capture_cfg: Dict[str, Any], source_id: Optional[str] = None) -> "ImageFileSourceConfig":
        path = capture_cfg.get("image_path", "")
        return cls(
            source_id=source_id or capture_cfg.get("source_id") or os.path.basename(os.path.normpath(path)) or "images",
            path=path,
            loop=bool(capture_cfg.get("loop", True)),
            grayscale=bool(capture_cfg.get("grayscale", False)),
        )


def list_images(path: str) -> List[str]:
    """Return the image files for a file or directory path, sorted by name."""
    if os.path.isfile(path):
        return [path]
    if os.path.isdir(path):
        return [
            os.path.join(path, name)
            for name in sorted(os.listdir(path))
            if name.lower().endswith(IMAGE_EXTENSIONS)
        ]
    return []


class ImageFileSource(FrameSource):
    """
    Frame source that replays image files from disk.

    Example:
        config = ImageFileSourceConfig(path="screens/")
        with ImageFileSource(config) as source:
            frame_data = source.capture()
    """

    def __init__(self, config: ImageFileSourceConfig, clock: Callable[[], float] = time.time):
        super().__init__(config)
        self._image_config = config
        self._clock = clock
        self._paths: List[str] = []
        self._pos = 0

    @property
    def paths(self) -> List[str]:
        return list(self._paths)

    def open(self) -> None:
        if self._is_open:
            return

        self._paths = list_images(self._image_config.path)
        if not self._paths:
            raise CaptureUnavailable(f"No images found at {self._image_config.path!r}")

        self._pos = 0
        self._frame_index = 0
        self._is_open = True
        logging.info(
            f"ImageFileSource opened: source_id={self.source_id}, images={len(self._paths)}"
        )

    def capture(self) -> FrameData:
        if not self._is_open:
            raise CaptureUnavailable("Image source is not open")

        if self._pos >= len(self._paths):
            if not self._image_config.loop:
                raise CaptureUnavailable("Image source exhausted")
            self._pos = 0

        path = self._paths[self._pos]
        self._pos += 1

        flags = cv2.IMREAD_GRAYSCALE if self._image_config.grayscale else cv2.IMREAD_COLOR
        image = cv2.imread(path, flags)
        if image is None:
            raise CaptureUnavailable(f"Could not read image {path}")

        self._frame_index += 1
        return FrameData.from_numpy(
            image,
            timestamp=self._clock(),
            frame_index=self._frame_index,
            source=self.source_id,
        )

    def close(self) -> None:
        self._is_open = False
