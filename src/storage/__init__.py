"""
Storage layer: crash-safe persistence of the encounter counter.
"""

from .state_store import (
    SCHEMA_VERSION,
    CorruptStateError,
    PersistedRecord,
    StateNotFound,
    StateSaveError,
    StateStore,
    StateStoreError,
)

__all__ = [
    "SCHEMA_VERSION",
    "CorruptStateError",
    "PersistedRecord",
    "StateNotFound",
    "StateSaveError",
    "StateStore",
    "StateStoreError",
]
