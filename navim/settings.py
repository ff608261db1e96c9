"""Persistent viewer settings.

Settings live in ``config.json`` in the user's config directory. Missing
keys fall back to defaults; invalid values are ignored with a warning so
a hand-edited file can never stop the viewer from starting.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Optional

import platformdirs

from .constants import ViewerConstants

logger = logging.getLogger(__name__)

APP_NAME = "navim"


def config_dir() -> Path:
    """Return the platform-appropriate config directory for navim."""
    return Path(platformdirs.user_config_dir(APP_NAME))


@dataclass
class ViewerSettings:
    """User preferences that shape rendering and navigation."""
    width: int = ViewerConstants.DEFAULT_WIDTH
    image_columns: int = ViewerConstants.DEFAULT_IMAGE_COLUMNS
    max_images: int = ViewerConstants.DEFAULT_MAX_IMAGES
    scrolloff: int = ViewerConstants.SCROLLOFF
    wrap_links: bool = False
    invert_images: bool = False


# Inclusive ranges for integer settings
_RANGES = {
    'width': (ViewerConstants.MIN_WIDTH, ViewerConstants.MAX_WIDTH),
    'image_columns': (1, ViewerConstants.MAX_WIDTH),
    'max_images': (0, 50),
    'scrolloff': (0, 20),
}

_BOOLEANS = ('wrap_links', 'invert_images')


def validate_setting(key: str, value: Any) -> bool:
    """Validate a setting value.

    Args:
        key: Setting key name.
        value: Setting value to validate.

    Returns:
        True if the setting is known and the value acceptable.
    """
    if key in _BOOLEANS:
        return isinstance(value, bool)
    if key in _RANGES:
        # bool is an int subclass; reject it for numeric settings
        if not isinstance(value, int) or isinstance(value, bool):
            return False
        low, high = _RANGES[key]
        return low <= value <= high
    return False


def settings_file(directory: Optional[Path] = None) -> Path:
    return (directory or config_dir()) / "config.json"


def load_settings(path: Optional[Path] = None) -> ViewerSettings:
    """Load settings from disk, merged over the defaults.

    Returns the defaults if the file doesn't exist or can't be read.
    """
    path = path or settings_file()
    settings = ViewerSettings()
    if not path.exists():
        return settings

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
        logger.warning(f"Could not load settings from {path}: {e}")
        return settings

    if not isinstance(data, dict):
        logger.warning("Settings file has invalid format (not a dict), ignoring")
        return settings

    for field in fields(ViewerSettings):
        if field.name not in data:
            continue
        value = data[field.name]
        if validate_setting(field.name, value):
            setattr(settings, field.name, value)
        else:
            logger.warning(f"Ignoring invalid setting {field.name}={value!r}")
    return settings


def save_settings(settings: ViewerSettings, path: Optional[Path] = None) -> bool:
    """Save settings to disk atomically.

    Returns:
        True if save was successful, False otherwise.
    """
    path = path or settings_file()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.warning(f"Could not create config directory {path.parent}: {e}")
        return False

    # Atomic write pattern (temp file + rename)
    temp_file = path.with_suffix('.tmp')
    try:
        with open(temp_file, 'w', encoding='utf-8') as f:
            json.dump(asdict(settings), f, indent=2)
        temp_file.replace(path)
        return True
    except OSError as e:
        logger.warning(f"Could not save settings to {path}: {e}")
        try:
            if temp_file.exists():
                temp_file.unlink()
        except OSError:
            pass
        return False
