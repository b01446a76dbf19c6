"""
Pipeline module for the encounter counter.

The controller orchestrates the full processing flow:
- Frame acquisition from the configured frame source
- Recognition on a single background worker
- Encounter detection (debounce and cooldown)
- Counter updates and crash-safe persistence
"""

from .controller import (
    ControllerConfig,
    ControllerStats,
    EncounterController,
    TickOutcome,
    create_controller_from_config,
)

__all__ = [
    "ControllerConfig",
    "ControllerStats",
    "EncounterController",
    "TickOutcome",
    "create_controller_from_config",
]
