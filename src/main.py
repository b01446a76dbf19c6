"""
Encounter counter: watches the game screen and counts encounters.

Captures the screen on a timer, reads the encounter banner with OCR, debounces
the readings into discrete encounters and keeps a persistent count.

Usage:
    python src/main.py --config config/config.yaml --autostart

Arguments:
    --config: Path to configuration file
    --image: Replay an image file or directory instead of the live screen
    --autostart: Start counting immediately

Console commands (type and press Enter):
    s / start   start or resume counting
    p / pause   pause counting
    r / reset   reset the count to zero
    q / quit    save and exit
"""

import os
import sys
import argparse
import logging
import threading
import yaml
from typing import Any, Dict, Iterable, Optional, Tuple

from ops.logging import setup_logging
from pipeline.controller import EncounterController, create_controller_from_config

COMMAND_ALIASES = {
    "s": "start",
    "start": "start",
    "resume": "start",
    "p": "pause",
    "pause": "pause",
    "r": "reset",
    "reset": "reset",
    "q": "quit",
    "quit": "quit",
    "exit": "quit",
}

HELP_TEXT = "Commands: s(tart), p(ause), r(eset), q(uit). Enter shows the current count."

VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `config/default.yaml` (checked in)
    - `config/config.yaml` (local overrides)
    - plus any explicitly provided `--config` path (treated as overrides)
    """
    try:
        base_path = os.path.join(os.path.dirname(config_path), "default.yaml")
        base_cfg: Dict[str, Any] = {}
        if os.path.exists(base_path):
            with open(base_path, "r") as f:
                base_cfg = yaml.safe_load(f) or {}

        local_overrides_path = os.path.join(os.path.dirname(config_path), "config.yaml")
        local_cfg: Dict[str, Any] = {}
        if os.path.exists(local_overrides_path):
            with open(local_overrides_path, "r") as f:
                local_cfg = yaml.safe_load(f) or {}

        merged = _deep_merge(base_cfg, local_cfg)

        # Finally apply explicit config_path if it's not the local override file itself
        if os.path.exists(config_path) and os.path.abspath(config_path) != os.path.abspath(local_overrides_path):
            with open(config_path, "r") as f:
                explicit_cfg = yaml.safe_load(f) or {}
            merged = _deep_merge(merged, explicit_cfg)

        return merged
    except Exception as e:
        logging.error(f"Failed to load configuration: {e}")
        sys.exit(1)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    # Required top-level sections
    required_sections = ['capture', 'detector', 'storage', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    # Validate capture settings
    capture = config.get('capture') or {}
    backend = capture.get('backend', 'screen')
    if backend not in ('screen', 'image'):
        return False, "capture.backend must be one of: screen, image"
    if backend == 'image':
        if not isinstance(capture.get('image_path'), str) or not capture.get('image_path'):
            return False, "capture.image_path is required when capture.backend is 'image'"
    else:
        monitor = capture.get('monitor', 1)
        if not isinstance(monitor, int) or isinstance(monitor, bool) or monitor < 0:
            return False, "capture.monitor must be a non-negative integer"
        region = capture.get('region')
        if region is not None:
            if not isinstance(region, dict):
                return False, "capture.region must be a mapping of left, top, width, height"
            if not _is_positive_int(region.get('width')) or not _is_positive_int(region.get('height')):
                return False, "capture.region width and height must be positive integers"
            for key in ('left', 'top'):
                offset = region.get(key, 0)
                if not isinstance(offset, int) or isinstance(offset, bool) or offset < 0:
                    return False, f"capture.region.{key} must be a non-negative integer"

    # Validate recognition settings (optional; defaults to tesseract)
    recognition = config.get('recognition') or {}
    if recognition.get('backend', 'tesseract') != 'tesseract':
        return False, "recognition.backend must be: tesseract"
    tesseract = recognition.get('tesseract') or {}
    crop = tesseract.get('crop')
    if crop is not None:
        if not isinstance(crop, list) or len(crop) != 4 or not all(_is_number(v) for v in crop):
            return False, "recognition.tesseract.crop must be a list of [x1, y1, x2, y2] ratios"
        x1, y1, x2, y2 = crop
        if not all(0 <= v <= 1 for v in crop) or x1 >= x2 or y1 >= y2:
            return False, "recognition.tesseract.crop ratios must be within 0..1 with x1 < x2 and y1 < y2"
    if 'psm' in tesseract and not _is_positive_int(tesseract['psm']):
        return False, "recognition.tesseract.psm must be a positive integer"

    # Validate detector settings
    detector = config.get('detector') or {}
    if 'threshold' in detector:
        threshold = detector['threshold']
        if not _is_number(threshold) or not (0 <= threshold <= 1):
            return False, "detector.threshold must be between 0 and 1"
    if 'required_matches' in detector and not _is_positive_int(detector['required_matches']):
        return False, "detector.required_matches must be a positive integer"
    if 'cooldown_seconds' in detector:
        cooldown = detector['cooldown_seconds']
        if not _is_number(cooldown) or cooldown < 0:
            return False, "detector.cooldown_seconds must be a non-negative number"

    # Validate controller settings (optional)
    controller = config.get('controller') or {}
    if 'poll_interval' in controller:
        if not _is_number(controller['poll_interval']) or controller['poll_interval'] <= 0:
            return False, "controller.poll_interval must be a positive number"
    timeout = controller.get('recognition_timeout')
    if timeout is not None and (not _is_number(timeout) or timeout <= 0):
        return False, "controller.recognition_timeout must be a positive number"
    if 'capture_warning_after' in controller and not _is_positive_int(controller['capture_warning_after']):
        return False, "controller.capture_warning_after must be a positive integer"

    # Validate storage settings
    storage = config.get('storage') or {}
    if 'state_path' not in storage:
        return False, "Missing storage.state_path"
    if not isinstance(storage['state_path'], str) or not storage['state_path']:
        return False, "storage.state_path must be a non-empty string"

    # Validate log settings
    if config['log_path'] is not None and not isinstance(config['log_path'], str):
        return False, "log_path must be a string"
    if config['log_level'] not in VALID_LOG_LEVELS:
        return False, f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}"

    return True, None


def parse_command(line: str) -> Optional[str]:
    """Map a console line to one of start, pause, reset, quit (None if unknown)."""
    return COMMAND_ALIASES.get(line.strip().lower())


def dispatch_command(controller: EncounterController, command: str) -> bool:
    """
    Apply a parsed command to the controller.

    Returns:
        False once the command was quit, True otherwise.
    """
    if command == "start":
        controller.start()
    elif command == "pause":
        controller.pause()
    elif command == "reset":
        controller.reset()
    elif command == "quit":
        controller.quit()
        return False
    else:
        raise ValueError(f"Unknown command: {command}")
    return True


def format_status(controller: EncounterController) -> str:
    status = controller.status()
    line = f"[{status.message}] encounters: {status.count}"
    if status.last_label:
        line += f" (last: {status.last_label})"
    if status.permission_denied:
        line += " - screen capture permission required"
    return line


def run_console(controller: EncounterController, lines: Iterable[str]) -> None:
    """Read commands line by line until quit or end of input."""
    for line in lines:
        if not line.strip():
            print(format_status(controller))
            continue
        command = parse_command(line)
        if command is None:
            print(f"Unknown command {line.strip()!r}. {HELP_TEXT}")
            continue
        if not dispatch_command(controller, command):
            return
        print(format_status(controller))


def main():
    """Main application function."""
    # Parse command-line arguments
    parser = argparse.ArgumentParser(description='Encounter Counter')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--image', type=str, default=None,
                        help='Replay an image file or directory instead of the screen')
    parser.add_argument('--autostart', action='store_true',
                        help='Start counting immediately')
    args = parser.parse_args()

    # Load configuration
    config = load_config(args.config)
    if args.image:
        config['capture'] = {'backend': 'image', 'image_path': args.image}

    # Validate configuration
    is_valid, error_msg = validate_config(config)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        sys.exit(1)

    # Setup logging
    setup_logging(config['log_path'], config['log_level'])

    logging.info("Starting Encounter Counter")

    controller = create_controller_from_config(config)
    controller.add_notice_callback(lambda kind, message: print(f"!! {message}"))
    controller.add_callback(
        lambda event, state: print(f"Encounter #{state.count}: {event.label}")
    )
    if args.autostart:
        controller.start()

    loop_thread = threading.Thread(target=controller.run, name="controller", daemon=True)
    loop_thread.start()

    print(HELP_TEXT)
    print(format_status(controller))
    try:
        run_console(controller, sys.stdin)
        # stdin closed without quit: keep counting until interrupted
        while loop_thread.is_alive() and not controller.is_stopped:
            loop_thread.join(timeout=0.5)
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
    finally:
        controller.quit()
        loop_thread.join(timeout=5.0)


if __name__ == "__main__":
    main()
