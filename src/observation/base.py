"""
FrameSource interface for pluggable screen/image sources.

This defines the contract every capture source implements so the controller
can poll any of them the same way:
- Live screen capture of one monitor or a region of it
- Still images or image folders replayed for offline tuning
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict


class CaptureError(RuntimeError):
    """Base class for capture failures."""


class CaptureUnavailable(CaptureError):
    """Transient failure: no frame this tick, try again on the next one."""


class PermissionDenied(CaptureError):
    """The platform refused screen capture; needs user action to recover."""


@dataclass
class FrameSourceConfig:
    """
    Base configuration for frame sources.

    Attributes:
        source_id: Identifier for this source/region (e.g., "monitor-1").
        metadata: Additional source-specific configuration.
    """
    source_id: str = "default"
    metadata: Dict[str, Any] = field(default_factory=dict)


class FrameSource(ABC):
    """
    Abstract base class for frame sources.

    Lifecycle:
        1. Create instance with config
        2. Call open() to acquire the capture handle
        3. Call capture() once per polling tick
        4. Call close() to release resources

    Can also be used as a context manager:
        with ScreenSource(config) as source:
            frame_data = source.capture()
    """

    def __init__(self, config: FrameSourceConfig):
        self._config = config
        self._is_open = False
        self._frame_index = 0

    @property
    def source_id(self) -> str:
        """Identifier for this source."""
        return self._config.source_id

    @property
    def is_open(self) -> bool:
        """Whether the source is currently open and ready to capture."""
        return self._is_open

    @property
    def frame_index(self) -> int:
        """Number of frames captured since open."""
        return self._frame_index

    @abstractmethod
    def open(self) -> None:
        """
        Open/initialize the source. Must be called before capture().

        Raises:
            CaptureUnavailable: If the source cannot be opened right now.
            PermissionDenied: If the platform refuses capture.
        """
        pass

    @abstractmethod
    def capture(self):
        """
        Capture the current content of the configured region.

        Must return within one polling interval; never spins waiting for a
        new frame.

        Returns:
            FrameData for the captured image.

        Raises:
            CaptureUnavailable: No frame could be produced this time.
            PermissionDenied: The platform refused capture.
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """
        Release any resources held by the source. Safe to call multiple times.
        """
        pass

    def __enter__(self) -> "FrameSource":
        """Context manager entry - opens the source."""
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit - closes the source."""
        self.close()
