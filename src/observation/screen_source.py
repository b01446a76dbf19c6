"""
mss-based screen observation source.

Captures one monitor, or a region of it, per call. mss failures are mapped
onto the capture error taxonomy so the controller can tell a transient
failure from the platform refusing capture.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import cv2
import mss
import numpy as np
from mss.exception import ScreenShotError

from models.frame import FrameData
from .base import CaptureUnavailable, FrameSource, FrameSourceConfig, PermissionDenied

# Substrings in platform error messages that mean capture was refused
PERMISSION_HINTS = (
    "permission",
    "access denied",
    "access is denied",
    "not permitted",
    "not authorized",
)


@dataclass
class ScreenRegion:
    """Capture rectangle in pixels, relative to the selected monitor."""
    left: int
    top: int
    width: int
    height: int

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ScreenRegion":
        return cls(
            left=int(d.get("left", 0)),
            top=int(d.get("top", 0)),
            width=int(d["width"]),
            height=int(d["height"]),
        )

    def to_dict(self) -> Dict[str, int]:
        return {"left": self.left, "top": self.top, "width": self.width, "height": self.height}


@dataclass
class ScreenSourceConfig(FrameSourceConfig):
    """
    Configuration for screen capture.

    Attributes:
        monitor: mss monitor index (1 = primary, 0 = all monitors combined).
        region: Optional capture rectangle inside that monitor.
        grayscale: Convert frames to single-channel grayscale.
    """
    monitor: int = 1
    region: Optional[ScreenRegion] = None
    grayscale: bool = False

    @classmethod
    def from_capture_config(cls, capture_cfg: Dict[str, Any], source_id: Optional[str] = None) -> "ScreenSourceConfig":
        """
        Adapter: Create ScreenSourceConfig from the capture config dict.

        Args:
            capture_cfg: Capture configuration dict (from config.yaml).
            source_id: Identifier override for this source.
        """
        monitor = int(capture_cfg.get("monitor", 1))
        region_cfg = capture_cfg.get("region")
        return cls(
            source_id=source_id or capture_cfg.get("source_id") or f"monitor-{monitor}",
            monitor=monitor,
            region=ScreenRegion.from_dict(region_cfg) if region_cfg else None,
            grayscale=bool(capture_cfg.get("grayscale", False)),
        )


def _is_permission_error(exc: BaseException) -> bool:
    message = str(exc).lower()
    return any(hint in message for hint in PERMISSION_HINTS)


class ScreenSource(FrameSource):
    """
    Screen capture source backed by mss.

    The mss handle is bound to the thread that opened it, so open() and
    capture() must run on the polling thread.

    Example:
        config = ScreenSourceConfig(monitor=1)
        with ScreenSource(config) as source:
            frame_data = source.capture()
    """

    def __init__(self, config: ScreenSourceConfig):
        super().__init__(config)
        self._screen_config = config
        self._sct = None
        self._bbox: Optional[Dict[str, int]] = None

    @property
    def bbox(self) -> Optional[Dict[str, int]]:
        """Absolute capture rectangle, resolved on open()."""
        return self._bbox

    def open(self) -> None:
        """Acquire the mss handle and resolve the capture rectangle."""
        if self._is_open:
            return

        try:
            self._sct = mss.mss()
            monitors = self._sct.monitors
        except PermissionError as e:
            self._release()
            raise PermissionDenied(f"Screen capture refused: {e}") from e
        except ScreenShotError as e:
            self._release()
            if _is_permission_error(e):
                raise PermissionDenied(f"Screen capture refused: {e}") from e
            raise CaptureUnavailable(f"Screen capture unavailable: {e}") from e

        index = self._screen_config.monitor
        if index < 0 or index >= len(monitors):
            self._release()
            raise CaptureUnavailable(
                f"Monitor {index} not found ({len(monitors) - 1} monitors available)"
            )

        monitor = monitors[index]
        region = self._screen_config.region
        if region is None:
            self._bbox = {
                "left": monitor["left"],
                "top": monitor["top"],
                "width": monitor["width"],
                "height": monitor["height"],
            }
        else:
            self._bbox = {
                "left": monitor["left"] + region.left,
                "top": monitor["top"] + region.top,
                "width": region.width,
                "height": region.height,
            }

        self._is_open = True
        self._frame_index = 0
        logging.info(f"ScreenSource opened: source_id={self.source_id}, bbox={self._bbox}")

    def capture(self) -> FrameData:
        """Grab the capture rectangle once."""
        if not self._is_open or self._sct is None:
            raise CaptureUnavailable("Screen source is not open")

        try:
            shot = self._sct.grab(self._bbox)
        except PermissionError as e:
            raise PermissionDenied(f"Screen capture refused: {e}") from e
        except ScreenShotError as e:
            if _is_permission_error(e):
                raise PermissionDenied(f"Screen capture refused: {e}") from e
            raise CaptureUnavailable(f"Screen grab failed: {e}") from e

        timestamp = time.time()
        bgra = np.asarray(shot)
        if bgra.size == 0:
            raise CaptureUnavailable("Screen grab returned an empty image")

        if self._screen_config.grayscale:
            frame = cv2.cvtColor(bgra, cv2.COLOR_BGRA2GRAY)
        else:
            frame = cv2.cvtColor(bgra, cv2.COLOR_BGRA2BGR)

        self._frame_index += 1
        return FrameData.from_numpy(
            frame,
            timestamp=timestamp,
            frame_index=self._frame_index,
            source=self.source_id,
        )

    def close(self) -> None:
        """Release the mss handle."""
        self._release()
        if self._is_open:
            logging.info(f"ScreenSource closed: source_id={self.source_id}")
        self._is_open = False

    def _release(self) -> None:
        if self._sct is not None:
            try:
                self._sct.close()
            except ScreenShotError as e:
                logging.warning(f"Error closing screen capture: {e}")
            self._sct = None
