"""
Tests for the counter state store.

Covers the JSON record layout, schema versioning, and atomic saves.
"""

import json
import os

import pytest

from models.counter_state import CounterState
from models.encounter_event import EncounterEvent
from storage.state_store import (
    SCHEMA_VERSION,
    CorruptStateError,
    PersistedRecord,
    StateNotFound,
    StateSaveError,
    StateStore,
)


class SimulatedCrash(BaseException):
    """Stands in for the process dying mid-save."""


@pytest.fixture
def state_path(tmp_path):
    return str(tmp_path / "data" / "state.json")


@pytest.fixture
def store(state_path):
    return StateStore(state_path)


def _write(path, payload):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(payload if isinstance(payload, str) else json.dumps(payload))


class TestSaveLoad:
    def test_round_trip(self, store):
        """Saving then loading reproduces count and running flag."""
        state = CounterState.fresh()
        state.resume()
        for i in range(3):
            state.record_encounter(EncounterEvent(label="pidgey", timestamp=float(i)))

        store.save(state)
        loaded = store.load()

        assert loaded.count == 3
        assert loaded.running is True
        assert loaded.last_label == "pidgey"
        assert not loaded.dirty

    def test_save_marks_state_saved(self, store):
        state = CounterState.fresh()
        state.record_encounter(EncounterEvent(label="pidgey", timestamp=0.0))
        assert state.dirty

        store.save(state)

        assert not state.dirty
        assert state.last_saved_count == 1

    def test_creates_parent_directory(self, store, state_path):
        store.save(CounterState.fresh())
        assert os.path.exists(state_path)

    def test_record_layout(self, store, state_path):
        state = CounterState.from_record(count=5, running=False)
        store.save(state)

        with open(state_path, encoding="utf-8") as f:
            raw = json.load(f)

        assert raw == {
            "schema_version": SCHEMA_VERSION,
            "count": 5,
            "running": False,
            "last_label": None,
        }

    def test_overwrites_previous_record(self, store):
        store.save(CounterState.from_record(count=1, running=True))
        store.save(CounterState.from_record(count=2, running=False))

        loaded = store.load()
        assert loaded.count == 2
        assert loaded.running is False

    def test_no_temp_files_left_behind(self, store, state_path):
        store.save(CounterState.fresh())
        leftovers = [n for n in os.listdir(os.path.dirname(state_path)) if n.endswith(".tmp")]
        assert leftovers == []


class TestLoadErrors:
    def test_missing_file(self, store):
        with pytest.raises(StateNotFound):
            store.load()

    def test_invalid_json(self, store, state_path):
        _write(state_path, "{not json")
        with pytest.raises(CorruptStateError):
            store.load()

    def test_unknown_schema_version(self, store, state_path):
        _write(state_path, {"schema_version": 99, "count": 3, "running": True})
        with pytest.raises(CorruptStateError, match="schema_version"):
            store.load()

    def test_missing_schema_version(self, store, state_path):
        _write(state_path, {"count": 3, "running": True})
        with pytest.raises(CorruptStateError):
            store.load()

    @pytest.mark.parametrize(
        "record",
        [
            {"schema_version": 1, "count": -1, "running": True},
            {"schema_version": 1, "count": "3", "running": True},
            {"schema_version": 1, "count": True, "running": True},
            {"schema_version": 1, "count": 3, "running": "yes"},
            {"schema_version": 1, "count": 3, "running": True, "last_label": 7},
            [1, 2, 3],
        ],
    )
    def test_invalid_fields(self, store, state_path, record):
        _write(state_path, record)
        with pytest.raises(CorruptStateError):
            store.load()

    def test_last_label_optional(self, store, state_path):
        _write(state_path, {"schema_version": 1, "count": 3, "running": True})
        loaded = store.load()
        assert loaded.count == 3
        assert loaded.last_label is None


class TestLoadOrDefault:
    def test_missing_file_gives_fresh_state(self, store):
        state = store.load_or_default()
        assert state.count == 0
        assert state.running is False

    def test_corrupt_file_gives_fresh_state(self, store, state_path, caplog):
        _write(state_path, "garbage")

        with caplog.at_level("WARNING"):
            state = store.load_or_default()

        assert state.count == 0
        assert state.running is False
        assert any(r.levelname == "WARNING" for r in caplog.records)

    def test_valid_file_loaded(self, store):
        store.save(CounterState.from_record(count=12, running=True))
        state = store.load_or_default()
        assert state.count == 12
        assert state.running is True


class TestAtomicity:
    def test_failed_replace_keeps_previous_record(self, store, state_path, monkeypatch):
        """A save that fails before the rename leaves the last good record loadable."""
        store.save(CounterState.from_record(count=10, running=True))

        def failing_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(os, "replace", failing_replace)
        state = CounterState.from_record(count=10, running=True)
        state.record_encounter(EncounterEvent(label="pidgey", timestamp=0.0))

        with pytest.raises(StateSaveError):
            store.save(state)

        monkeypatch.undo()
        assert store.load().count == 10
        assert state.dirty
        leftovers = [n for n in os.listdir(os.path.dirname(state_path)) if n.endswith(".tmp")]
        assert leftovers == []

    def test_interrupted_write_keeps_previous_record(self, store, monkeypatch):
        """An abort in the middle of writing never touches the previous record."""
        store.save(CounterState.from_record(count=4, running=False))

        def abort(fd):
            raise SimulatedCrash()

        monkeypatch.setattr(os, "fsync", abort)
        with pytest.raises(SimulatedCrash):
            store.save(CounterState.from_record(count=5, running=True))

        monkeypatch.undo()
        loaded = store.load()
        assert loaded.count == 4
        assert loaded.running is False

    def test_stray_temp_file_from_crash_is_ignored(self, store, state_path):
        """A temp file left by a killed process does not affect loading."""
        store.save(CounterState.from_record(count=8, running=True))
        _write(os.path.join(os.path.dirname(state_path), ".state.json.abc123.tmp"), '{"count": ')

        assert store.load().count == 8


class TestPersistedRecord:
    def test_from_state_and_back(self):
        state = CounterState.from_record(count=3, running=True, last_label="oddish")
        record = PersistedRecord.from_state(state)
        assert record.schema_version == SCHEMA_VERSION
        assert record.to_state().to_dict() == state.to_dict()
