"""
Save Catalog - lists the primary save slots of a saves folder.

The game keeps rolling backups next to each slot (``Slot_00000001.save.ver0``
and so on); only the primary ``.save`` files are listed.
"""

import logging
import os
from datetime import datetime
from typing import List

from .models import SaveFileEntry

logger = logging.getLogger(__name__)


SAVE_EXTENSION = ".save"
BACKUP_MARKER = ".ver"


def is_primary_save_name(file_name: str) -> bool:
    lowered = file_name.lower()
    return lowered.endswith(SAVE_EXTENSION) and BACKUP_MARKER not in lowered


def get_primary_save_files(saves_root: str) -> List[SaveFileEntry]:
    """
    Primary saves directly inside saves_root, newest first.

    Returns an empty list when the root is blank, missing or unreadable.
    """
    if not saves_root or not str(saves_root).strip():
        return []
    if not os.path.isdir(saves_root):
        logger.warning("Saves folder does not exist: %s", saves_root)
        return []

    entries = []
    try:
        with os.scandir(saves_root) as it:
            for item in it:
                if not item.is_file() or not is_primary_save_name(item.name):
                    continue
                stat = item.stat()
                entries.append(SaveFileEntry(
                    file_path=os.path.abspath(item.path),
                    file_name=item.name,
                    last_write_time=datetime.fromtimestamp(stat.st_mtime),
                    length_bytes=stat.st_size,
                ))
    except OSError as e:
        logger.warning("Could not list saves in %s: %s", saves_root, e)
        return []

    # Newest first, then by name
    entries.sort(key=lambda e: e.file_name.lower())
    entries.sort(key=lambda e: e.last_write_time, reverse=True)
    return entries


__all__ = ['get_primary_save_files', 'is_primary_save_name']
