"""
Settings Persistence - tray export defaults stored as JSON.

The command line reads these to fill in arguments the user did not give;
the save editor itself only ever receives plain values.
"""

import json
import logging
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)


DEFAULT_SETTINGS_PATH = Path.home() / ".simtray" / "settings.json"


# ═══════════════════════════════════════════════════════════════════════════════
# RESULT TYPES
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class SettingsResult:
    """Result of a settings load/save. ``settings`` is always usable."""
    success: bool
    message: str
    settings: 'TrayExportSettings' = None
    settings_path: Optional[str] = None


# ═══════════════════════════════════════════════════════════════════════════════
# SETTINGS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class TrayExportSettings:
    """Defaults for listing saves and exporting households."""
    version: str = "1.0"
    saves_root: str = ""
    export_root: str = ""
    creator_name: str = ""
    creator_id: int = 0
    generate_thumbnails: bool = True

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> "TrayExportSettings":
        """Create from dictionary; unknown keys are ignored."""
        settings = cls()
        for key, value in data.items():
            if hasattr(settings, key):
                setattr(settings, key, value)
        return settings


def load_settings(file_path: str = None) -> SettingsResult:
    """
    Load settings from JSON.

    A missing file is not an error: defaults are returned. An unreadable or
    malformed file gives success=False together with defaults.
    """
    path = Path(file_path) if file_path else DEFAULT_SETTINGS_PATH

    if not path.exists():
        return SettingsResult(
            True,
            "No settings file found, using defaults",
            settings=TrayExportSettings(),
            settings_path=str(path),
        )

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        logger.warning("Invalid settings JSON in %s: %s", path, e)
        return SettingsResult(False, f"Invalid JSON: {e}", settings=TrayExportSettings(),
                              settings_path=str(path))
    except OSError as e:
        logger.warning("Could not read settings %s: %s", path, e)
        return SettingsResult(False, f"Load failed: {e}", settings=TrayExportSettings(),
                              settings_path=str(path))

    if not isinstance(data, dict):
        return SettingsResult(False, "Settings file must contain a JSON object",
                              settings=TrayExportSettings(), settings_path=str(path))

    return SettingsResult(
        True,
        f"Loaded settings from {path.name}",
        settings=TrayExportSettings.from_dict(data),
        settings_path=str(path),
    )


def save_settings(settings: TrayExportSettings, file_path: str = None) -> SettingsResult:
    path = Path(file_path) if file_path else DEFAULT_SETTINGS_PATH
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(settings.to_dict(), f, indent=2)
    except OSError as e:
        return SettingsResult(False, f"Save failed: {e}", settings=settings, settings_path=str(path))

    return SettingsResult(True, f"Saved settings to {path.name}", settings=settings,
                          settings_path=str(path))


__all__ = [
    'DEFAULT_SETTINGS_PATH',
    'SettingsResult',
    'TrayExportSettings',
    'load_settings',
    'save_settings',
]
