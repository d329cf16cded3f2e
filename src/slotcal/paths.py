from __future__ import annotations

import os
from pathlib import Path


def default_data_dir() -> Path:
    """Return the default SlotCal data directory.

    Default: %APPDATA%/SlotCal on Windows, otherwise ~/.slotcal
    """
    appdata = os.environ.get("APPDATA")
    if appdata:
        return Path(appdata) / "SlotCal"
    return Path.home() / ".slotcal"


def default_config_path() -> Path:
    return default_data_dir() / "config.toml"
