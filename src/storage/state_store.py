"""
Persistence for the encounter counter.

The counter is stored as a small versioned JSON record. Saves are atomic: the
record is written to a temporary file in the same directory, flushed to disk
and then renamed over the previous file, so an interrupted save leaves the
last good record in place.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from typing import Any, Dict, Optional

from models.counter_state import CounterState

# Schema version - increment when the record layout changes
SCHEMA_VERSION = 1


class StateStoreError(Exception):
    """Base class for persistence errors."""


class StateNotFound(StateStoreError):
    """No persisted record exists yet."""


class CorruptStateError(StateStoreError):
    """The persisted record cannot be parsed or has an unknown schema."""


class StateSaveError(StateStoreError):
    """Writing the record failed; the previous record is untouched."""


@dataclass(frozen=True)
class PersistedRecord:
    """
    On-disk representation of CounterState.

    Attributes:
        count: Encounter count (>= 0).
        running: Whether counting was active.
        last_label: Label of the most recent encounter.
        schema_version: Record layout version.
    """
    count: int
    running: bool
    last_label: Optional[str] = None
    schema_version: int = SCHEMA_VERSION

    @classmethod
    def from_state(cls, state: CounterState) -> "PersistedRecord":
        return cls(count=state.count, running=state.running, last_label=state.last_label)

    @classmethod
    def from_dict(cls, d: Any) -> "PersistedRecord":
        """
        Validate and build a record from decoded JSON.

        Raises:
            CorruptStateError: On unknown schema versions or invalid fields.
        """
        if not isinstance(d, dict):
            raise CorruptStateError("Record must be a JSON object")

        version = d.get("schema_version")
        if version != SCHEMA_VERSION or isinstance(version, bool):
            raise CorruptStateError(f"Unknown schema_version: {version!r}")

        count = d.get("count")
        if not isinstance(count, int) or isinstance(count, bool) or count < 0:
            raise CorruptStateError(f"count must be a non-negative integer, got {count!r}")

        running = d.get("running")
        if not isinstance(running, bool):
            raise CorruptStateError(f"running must be a boolean, got {running!r}")

        last_label = d.get("last_label")
        if last_label is not None and not isinstance(last_label, str):
            raise CorruptStateError(f"last_label must be a string, got {last_label!r}")

        return cls(count=count, running=running, last_label=last_label, schema_version=version)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema_version": self.schema_version,
            "count": self.count,
            "running": self.running,
            "last_label": self.last_label,
        }

    def to_state(self) -> CounterState:
        return CounterState.from_record(self.count, self.running, self.last_label)


class StateStore:
    """
    JSON file store for CounterState.

    Example:
        store = StateStore("data/state.json")
        state = store.load_or_default()
        store.save(state)
    """

    def __init__(self, path: str):
        """
        Args:
            path: Path to the JSON state file.
        """
        self.path = path

    def save(self, state: CounterState) -> None:
        """
        Atomically write the state and mark it saved.

        Raises:
            StateSaveError: If the record could not be written.
        """
        record = PersistedRecord.from_state(state)
        directory = os.path.dirname(os.path.abspath(self.path))
        tmp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{os.path.basename(self.path)}.", suffix=".tmp", dir=directory
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(record.to_dict(), f)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
            tmp_path = None
        except OSError as e:
            raise StateSaveError(f"Failed to save state to {self.path}: {e}") from e
        finally:
            if tmp_path is not None:
                try:
                    os.remove(tmp_path)
                except OSError:
                    logging.debug(f"Could not remove temp file {tmp_path}")

        state.mark_saved()
        logging.debug(f"State saved: {record.to_dict()}")

    def load(self) -> CounterState:
        """
        Load the persisted state.

        Raises:
            StateNotFound: If no state file exists.
            CorruptStateError: If the file is unreadable or invalid.
        """
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except FileNotFoundError as e:
            raise StateNotFound(f"No state file at {self.path}") from e
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CorruptStateError(f"State file {self.path} is not valid JSON: {e}") from e
        except OSError as e:
            raise CorruptStateError(f"State file {self.path} could not be read: {e}") from e

        return PersistedRecord.from_dict(raw).to_state()

    def load_or_default(self) -> CounterState:
        """Load the persisted state, falling back to a fresh zero state."""
        try:
            state = self.load()
        except StateNotFound:
            logging.info(f"No saved state at {self.path}, starting from zero")
            return CounterState.fresh()
        except CorruptStateError as e:
            logging.warning(f"{e}; starting from zero")
            return CounterState.fresh()

        logging.info(f"Loaded state from {self.path}: count={state.count}, running={state.running}")
        return state
