"""
Save Household Coordinator

Session-level entry point used by the CLI: lists saves, loads and caches
household snapshots per save path, and runs exports with a final check of
the written .trayitem.
"""

import logging
import os
from typing import Dict, List, Optional

from simtray.errors import FormatError
from simtray.formats.tray import TRAY_ITEM_EXT, read_tray_item
from .household_reader import SaveHouseholdReader
from .models import ExportRequest, ExportResult, SaveFileEntry, SaveLoadResult, SaveSnapshot
from .save_catalog import get_primary_save_files
from .tray_exporter import HouseholdTrayExporter, safe_delete_directory

logger = logging.getLogger(__name__)


def normalize_path(path: str) -> str:
    return os.path.normcase(os.path.abspath(path))


class SaveHouseholdCoordinator:
    """
    Owns the snapshot cache for one session.

    Usage:
        coordinator = SaveHouseholdCoordinator()
        loaded = coordinator.try_load_households(path)
        if loaded.success:
            for household in loaded.snapshot.households:
                ...
    """

    def __init__(self,
                 reader: Optional[SaveHouseholdReader] = None,
                 exporter: Optional[HouseholdTrayExporter] = None):
        self.reader = reader or SaveHouseholdReader()
        self.exporter = exporter or HouseholdTrayExporter(self.reader)
        self._snapshots: Dict[str, SaveSnapshot] = {}

    def get_save_files(self, saves_root: str) -> List[SaveFileEntry]:
        return get_primary_save_files(saves_root)

    def try_load_households(self, save_path: str) -> SaveLoadResult:
        """Load a save without raising; the snapshot is cached on success."""
        try:
            snapshot = self.reader.load(save_path)
        except Exception as e:
            logger.warning("Could not load %s: %s", save_path, e)
            return SaveLoadResult(success=False, error=str(e))

        self._snapshots[normalize_path(save_path)] = snapshot
        return SaveLoadResult(success=True, snapshot=snapshot)

    def cached_snapshot(self, save_path: str) -> Optional[SaveSnapshot]:
        if not save_path:
            return None
        return self._snapshots.get(normalize_path(save_path))

    def export(self, request: ExportRequest) -> ExportResult:
        """Export, then re-read the .trayitem; an unreadable one undoes the export."""
        result = self.exporter.export(request)
        if not result.succeeded:
            return result

        tray_item_path = next(
            (path for path in result.written_files if path.lower().endswith(TRAY_ITEM_EXT)),
            None,
        )
        try:
            if tray_item_path is None or not os.path.isfile(tray_item_path):
                raise FormatError("Tray item file was not written.")
            metadata = read_tray_item(tray_item_path)
        except Exception as e:
            safe_delete_directory(result.export_directory)
            logger.warning("Rolled back %s: tray item check failed: %s", result.export_directory, e)
            return ExportResult.failed(f"Tray item validation failed: {e}")

        logger.debug("Verified tray item %s (%s)", tray_item_path, metadata.name)
        return result


__all__ = ['SaveHouseholdCoordinator', 'normalize_path']
