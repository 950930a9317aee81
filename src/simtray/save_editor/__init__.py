"""
Save Editor - household projection and tray export for The Sims 4 saves.
"""

from .models import (
    SaveFileEntry,
    MemberView,
    HouseholdView,
    SaveSnapshot,
    SaveLoadResult,
    ExportRequest,
    ExportResult,
)
from .household_reader import SaveHouseholdReader
from .tray_exporter import HouseholdTrayExporter
from .save_catalog import get_primary_save_files
from .coordinator import SaveHouseholdCoordinator

__all__ = [
    'SaveFileEntry',
    'MemberView',
    'HouseholdView',
    'SaveSnapshot',
    'SaveLoadResult',
    'ExportRequest',
    'ExportResult',
    'SaveHouseholdReader',
    'HouseholdTrayExporter',
    'get_primary_save_files',
    'SaveHouseholdCoordinator',
]
