"""
Controller for the encounter counter.

Drives the capture -> recognize -> detect -> persist loop on a timer and
applies the user commands (start, pause, reset, quit). Every tick and every
command runs under one lock, so commands from another thread always land
between ticks.

Recognition is the only step that leaves the polling thread: it runs on a
single worker, and a tick waits for it at most recognition_timeout seconds.
A call that overruns is abandoned (its late result is discarded), and ticks
that come due while it is still running are skipped rather than queued.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from algorithms.encounter import DetectorState, EncounterDetector, create_detector_from_config
from models.counter_state import CounterState
from models.encounter_event import EncounterEvent
from models.frame import FrameData
from models.status import ControllerStatus, Mode
from observation import CaptureUnavailable, FrameSource, PermissionDenied, create_source_from_config
from recognition import RecognitionError, Recognizer, create_recognizer_from_config
from storage import StateSaveError, StateStore

NOTICE_PERMISSION_DENIED = "permission_denied"
NOTICE_CAPTURE_UNAVAILABLE = "capture_unavailable"
NOTICE_SAVE_FAILED = "save_failed"


class TickOutcome(str, Enum):
    """What a single tick did."""
    PAUSED = "paused"
    BUSY = "busy"
    CAPTURE_FAILED = "capture_failed"
    PERMISSION_DENIED = "permission_denied"
    NO_EVIDENCE = "no_evidence"
    OBSERVED = "observed"
    ENCOUNTER = "encounter"


@dataclass
class ControllerConfig:
    """
    Configuration for the controller.

    Attributes:
        poll_interval: Seconds between ticks.
        recognition_timeout: Max seconds a tick waits for recognition.
            None = use poll_interval.
        capture_warning_after: Consecutive capture failures before a warning.
        stats_log_interval: Seconds between status log messages.
    """
    poll_interval: float = 0.5
    recognition_timeout: Optional[float] = None
    capture_warning_after: int = 5
    stats_log_interval: float = 60.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ControllerConfig":
        timeout = d.get("recognition_timeout")
        return cls(
            poll_interval=float(d.get("poll_interval", 0.5)),
            recognition_timeout=float(timeout) if timeout is not None else None,
            capture_warning_after=int(d.get("capture_warning_after", 5)),
            stats_log_interval=float(d.get("stats_log_interval", 60.0)),
        )

    @property
    def effective_recognition_timeout(self) -> float:
        if self.recognition_timeout is None:
            return self.poll_interval
        return self.recognition_timeout


@dataclass
class ControllerStats:
    """Runtime statistics for the controller."""
    tick_count: int = 0
    frames_captured: int = 0
    recognitions: int = 0
    busy_skips: int = 0
    recognition_timeouts: int = 0
    recognition_errors: int = 0
    consecutive_capture_failures: int = 0
    session_encounters: int = 0
    start_time: float = field(default_factory=time.time)
    last_stats_log_time: float = field(default_factory=time.time)


class EncounterController:
    """
    Owns the polling loop, the counter state and the command surface.

    Example:
        controller = create_controller_from_config(config)
        threading.Thread(target=controller.run, daemon=True).start()
        controller.start()
        ...
        controller.quit()
    """

    def __init__(
        self,
        source: FrameSource,
        recognizer: Recognizer,
        detector: EncounterDetector,
        store: StateStore,
        state: Optional[CounterState] = None,
        config: Optional[ControllerConfig] = None,
    ):
        self.source = source
        self.recognizer = recognizer
        self.detector = detector
        self.store = store
        self.state = state if state is not None else store.load_or_default()
        self.config = config or ControllerConfig()
        self.stats = ControllerStats()

        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._inflight: Optional[Future] = None
        self._callbacks: List[Callable[[EncounterEvent, CounterState], None]] = []
        self._notice_callbacks: List[Callable[[str, str], None]] = []

        self._has_started = self.state.running
        self._permission_denied = False
        self._capture_degraded = False
        self._save_failed = False
        self._timeout_warned = False

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    def add_callback(self, callback: Callable[[EncounterEvent, CounterState], None]) -> None:
        """
        Add a callback to be called after each counted encounter.

        Args:
            callback: Function taking (event, state) as arguments.
        """
        self._callbacks.append(callback)

    def add_notice_callback(self, callback: Callable[[str, str], None]) -> None:
        """
        Add a callback for user-facing notices.

        Args:
            callback: Function taking (kind, message). Kinds are
                "permission_denied", "capture_unavailable" and "save_failed";
                each is delivered once per failure episode.
        """
        self._notice_callbacks.append(callback)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start (or resume) counting. Detector state is kept as-is."""
        with self._lock:
            self._has_started = True
            if self.state.running:
                return
            self.state.resume()
            logging.info(f"Counting started (count={self.state.count})")
            self._persist()

    resume = start

    def pause(self) -> None:
        """Stop counting and persist immediately."""
        with self._lock:
            self.state.pause()
            logging.info(f"Counting paused (count={self.state.count})")
            self._persist()

    def reset(self) -> None:
        """Reset the count to zero and force the detector back to idle."""
        with self._lock:
            self.state.reset()
            self.detector.reset()
            logging.info("Counter reset to 0")
            self._persist()

    def quit(self) -> None:
        """Persist and stop the polling loop after the current tick."""
        with self._lock:
            self._stop_event.set()
            self._persist()
            logging.info("Quit requested")

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @property
    def recognition_in_flight(self) -> bool:
        with self._lock:
            return self._inflight is not None and not self._inflight.done()

    @property
    def is_stopped(self) -> bool:
        return self._stop_event.is_set()

    def status(self) -> ControllerStatus:
        """Return a snapshot of the current state."""
        with self._lock:
            if not self.state.running:
                mode = Mode.INIT if not self._has_started and self.state.count == 0 else Mode.PAUSE
            elif self.detector.state == DetectorState.COOLDOWN:
                mode = Mode.ENCOUNTER
            else:
                mode = Mode.WALK
            return ControllerStatus(
                count=self.state.count,
                running=self.state.running,
                mode=mode,
                detector_state=self.detector.state.value,
                last_label=self.state.last_label,
                permission_denied=self._permission_denied,
                capture_degraded=self._capture_degraded,
                last_save_failed=self._save_failed,
            )

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def tick(self) -> TickOutcome:
        """Run one capture -> recognize -> detect -> persist step."""
        with self._lock:
            self.stats.tick_count += 1

            if self.state.dirty and self._save_failed:
                self._persist()

            if not self.state.running:
                return TickOutcome.PAUSED

            if self._inflight is not None:
                if not self._inflight.done():
                    self.stats.busy_skips += 1
                    return TickOutcome.BUSY
                self._discard_abandoned()

            try:
                frame_data = self._capture()
            except PermissionDenied as e:
                self._on_permission_denied(e)
                return TickOutcome.PERMISSION_DENIED
            except CaptureUnavailable as e:
                self._on_capture_unavailable(e)
                return TickOutcome.CAPTURE_FAILED
            self._on_capture_ok()

            result = self._recognize(frame_data)
            if result is None:
                return TickOutcome.NO_EVIDENCE

            event = self.detector.process(result)
            if event is None:
                return TickOutcome.OBSERVED

            self._apply_event(event)
            return TickOutcome.ENCOUNTER

    def run(self) -> None:
        """
        Run the polling loop until quit() is called.

        Ticks every poll_interval seconds; waits on an event so quit() wakes
        the loop immediately. Persists and releases resources on exit.
        """
        self._stop_event.clear()
        self.stats = ControllerStats()

        logging.info(
            f"Controller started: source={self.source.source_id}, "
            f"count={self.state.count}, running={self.state.running}"
        )
        try:
            while not self._stop_event.is_set():
                started = time.monotonic()
                self.tick()
                self._handle_periodic_tasks()
                elapsed = time.monotonic() - started
                self._stop_event.wait(max(0.0, self.config.poll_interval - elapsed))
        except KeyboardInterrupt:
            logging.info("Controller interrupted by user")
        except Exception as e:
            logging.exception(f"Controller error: {e}")
        finally:
            self.close()

    def close(self) -> None:
        """Persist pending changes and release the source and worker."""
        with self._lock:
            self._stop_event.set()
            if self.state.dirty:
                self._persist()

            try:
                self.source.close()
            except Exception as e:
                logging.warning(f"Error closing source: {e}")

            if self._executor is not None:
                self._executor.shutdown(wait=False, cancel_futures=True)
                self._executor = None
            self._inflight = None

        logging.info(f"Controller stopped (count={self.state.count})")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _capture(self) -> FrameData:
        if not self.source.is_open:
            self.source.open()
        frame_data = self.source.capture()
        self.stats.frames_captured += 1
        return frame_data

    def _recognize(self, frame_data: FrameData):
        """Run recognition on the worker; None means no evidence this tick."""
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="recognizer")

        timeout = self.config.effective_recognition_timeout
        future = self._executor.submit(self.recognizer.recognize, frame_data)
        try:
            result = future.result(timeout=timeout)
        except FutureTimeoutError:
            self._inflight = future
            self.stats.recognition_timeouts += 1
            if not self._timeout_warned:
                self._timeout_warned = True
                logging.warning(
                    f"Recognition exceeded {timeout:.2f}s; result abandoned "
                    f"(consider raising controller.recognition_timeout)"
                )
            else:
                logging.debug(f"[TICK] recognition timeout frame={frame_data.frame_index}")
            return None
        except RecognitionError as e:
            self.stats.recognition_errors += 1
            logging.debug(f"[TICK] recognition error frame={frame_data.frame_index}: {e}")
            return None

        self.stats.recognitions += 1
        return result

    def _discard_abandoned(self) -> None:
        future, self._inflight = self._inflight, None
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logging.debug(f"[TICK] abandoned recognition failed: {exc}")
        else:
            logging.debug("[TICK] abandoned recognition result discarded")

    def _apply_event(self, event: EncounterEvent) -> None:
        total = self.state.record_encounter(event)
        self.stats.session_encounters += 1
        logging.info(
            f"Encounter counted: label={event.label!r}, "
            f"confidence={event.confidence:.2f}, total={total}"
        )
        self._persist()

        for callback in self._callbacks:
            try:
                callback(event, self.state)
            except Exception as e:
                logging.warning(f"Callback error: {e}")

    def _persist(self) -> bool:
        try:
            self.store.save(self.state)
        except StateSaveError as e:
            if not self._save_failed:
                self._save_failed = True
                self._notify(NOTICE_SAVE_FAILED, f"{e}; keeping count in memory")
            else:
                logging.debug(f"Save still failing: {e}")
            return False

        if self._save_failed:
            logging.info(f"State saved after earlier failure (count={self.state.count})")
        self._save_failed = False
        return True

    def _on_permission_denied(self, error: PermissionDenied) -> None:
        self.stats.consecutive_capture_failures = 0
        if self._permission_denied:
            logging.debug(f"Screen capture still refused: {error}")
            return
        self._permission_denied = True
        self._notify(
            NOTICE_PERMISSION_DENIED,
            f"Screen capture permission denied ({error}). Grant screen recording "
            f"permission to this program; polling continues.",
        )

    def _on_capture_unavailable(self, error: CaptureUnavailable) -> None:
        self.stats.consecutive_capture_failures += 1
        failures = self.stats.consecutive_capture_failures
        if failures == self.config.capture_warning_after:
            self._capture_degraded = True
            self._notify(
                NOTICE_CAPTURE_UNAVAILABLE,
                f"Screen capture failed {failures} consecutive times: {error}",
            )
        else:
            logging.debug(f"Capture failed ({failures}): {error}")

    def _on_capture_ok(self) -> None:
        if self._permission_denied:
            logging.info("Screen capture permission restored")
        if self._capture_degraded:
            logging.info("Screen capture recovered")
        self._permission_denied = False
        self._capture_degraded = False
        self.stats.consecutive_capture_failures = 0

    def _notify(self, kind: str, message: str) -> None:
        logging.warning(message)
        for callback in self._notice_callbacks:
            try:
                callback(kind, message)
            except Exception as e:
                logging.warning(f"Notice callback error: {e}")

    def _handle_periodic_tasks(self) -> None:
        """Log statistics periodically."""
        now = time.time()
        if now - self.stats.last_stats_log_time >= self.config.stats_log_interval:
            logging.info(
                f"Controller stats: ticks={self.stats.tick_count}, "
                f"frames={self.stats.frames_captured}, "
                f"recognitions={self.stats.recognitions}, "
                f"busy_skips={self.stats.busy_skips}, "
                f"timeouts={self.stats.recognition_timeouts}, "
                f"encounters={self.stats.session_encounters}, "
                f"count={self.state.count}"
            )
            self.stats.last_stats_log_time = now


def create_controller_from_config(
    config: Dict[str, Any],
    source: Optional[FrameSource] = None,
) -> EncounterController:
    """
    Factory function to create an EncounterController from the config dict.

    Args:
        config: Full application config dict.
        source: Optional frame source overriding the capture section.
    """
    if source is None:
        source = create_source_from_config(config.get("capture", {}) or {})
    recognizer = create_recognizer_from_config(config.get("recognition", {}) or {})
    detector = create_detector_from_config(config.get("detector", {}) or {})
    store = StateStore(config["storage"]["state_path"])
    controller_config = ControllerConfig.from_dict(config.get("controller", {}) or {})

    return EncounterController(
        source=source,
        recognizer=recognizer,
        detector=detector,
        store=store,
        state=store.load_or_default(),
        config=controller_config,
    )
