"""
Settings Module for the Klotski game

Provides persistent storage for user preferences using JSON.
Relative paths inside the settings are anchored with ``resolve_path``.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)

# Default settings
DEFAULT_SETTINGS: Dict[str, Any] = {
    "levels_dir": "levels",
    "saves_dir": "data/saves",
    "log_file": "data/klotski.log",
    "log_level": "INFO",
    "user": None,  # None plays as a guest; guest games are never saved
}


def load_settings(path: Path) -> Dict[str, Any]:
    """
    Load settings from a JSON file.

    Args:
        path: Settings file location

    Returns:
        Settings dictionary. Returns defaults if file missing or invalid.
    """
    if not path.exists():
        logger.debug("Settings file %s not found, using defaults", path)
        return DEFAULT_SETTINGS.copy()

    try:
        with open(path, "r", encoding="utf-8") as f:
            settings = json.load(f)
        if not isinstance(settings, dict):
            raise ValueError("top level must be an object")

        # Merge with defaults to handle missing keys
        result = DEFAULT_SETTINGS.copy()
        result.update(settings)
        logger.debug("Settings loaded: %s", result)
        return result

    except (json.JSONDecodeError, ValueError, OSError) as e:
        logger.warning("Failed to load settings from %s: %s, using defaults", path, e)
        return DEFAULT_SETTINGS.copy()


def save_settings(settings: Dict[str, Any], path: Path) -> None:
    """
    Save settings to a JSON file.

    Args:
        settings: Settings dictionary to save
        path: Settings file location
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(settings, f, indent=2)
        logger.debug("Settings saved: %s", settings)
    except OSError as e:
        logger.error("Failed to save settings: %s", e)


def resolve_path(settings: Dict[str, Any], key: str, base: Path) -> Path:
    """Return setting *key* as a path, anchored at *base* when relative."""
    value = Path(settings[key]).expanduser()
    return value if value.is_absolute() else base / value
