"""
Pytest configuration and shared fixtures.
"""

import os
import sys

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
capture:
  backend: "screen"
  monitor: 1

recognition:
  backend: "tesseract"
  tesseract:
    psm: 11

detector:
  threshold: 0.6
  required_matches: 2
  cooldown_seconds: 8.0

controller:
  poll_interval: 0.5

storage:
  state_path: "data/test_state.json"

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "capture": {
            "backend": "screen",
            "monitor": 1,
        },
        "recognition": {
            "backend": "tesseract",
            "tesseract": {"psm": 11, "crop": [0.0, 0.0, 1.0, 0.5]},
        },
        "detector": {
            "threshold": 0.8,
            "required_matches": 2,
            "cooldown_seconds": 5.0,
        },
        "controller": {
            "poll_interval": 0.5,
            "capture_warning_after": 3,
        },
        "storage": {
            "state_path": "data/state.json",
        },
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }
