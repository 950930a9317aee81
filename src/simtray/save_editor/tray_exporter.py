"""
Household Tray Exporter

Writes one household of a save as a tray bundle the game's Library can
import. The household binary is the save's own HouseholdData record
re-encoded, not a rebuild from the projection.

The bundle is written into a freshly created directory. If any write
fails, or the finished bundle does not have exactly the expected files,
the directory is removed again and a failed ExportResult is returned.
"""

import logging
import os
import re
import secrets
import shutil
import time
from datetime import datetime
from typing import List, Optional

from simtray.errors import EligibilityError, ExportIOError, NotFoundError
from simtray.formats.proto.exchange import (
    ExchangeItemType,
    SpecificData,
    TrayHouseholdMetadata,
    TrayMetadata,
    TraySimMetadata,
)
from simtray.formats.proto.persistence import HouseholdData
from simtray.formats.tray import (
    HOUSEHOLD_BINARY_EXT,
    HOUSEHOLD_PORTRAIT_EXT,
    MAX_HOUSEHOLD_MEMBERS,
    SIM_GLYPH_EXT,
    TRAY_ITEM_EXT,
    TrayFileType,
    build_file_name,
    encode_tray_item,
    placeholder_png,
    sim_glyph_type,
)
from .household_reader import SaveHouseholdReader
from .models import ExportRequest, ExportResult, HouseholdView

logger = logging.getLogger(__name__)


MAX_DIRECTORY_ATTEMPTS = 100
THUMBNAILS_DISABLED_WARNING = "Member thumbnails were disabled; .sgi placeholders were not generated."

_INVALID_FILE_NAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def generate_instance_id() -> int:
    """Random non-zero 64-bit bundle instance id."""
    value = 0
    while value == 0:
        value = secrets.randbits(64)
    return value


def sanitize_file_name(value: str) -> str:
    sanitized = _INVALID_FILE_NAME_CHARS.sub("_", value.strip()).strip()
    return sanitized if sanitized else "Household"


def safe_delete_directory(path: str):
    """Best-effort recursive delete; errors are logged and ignored."""
    try:
        if path and os.path.isdir(path):
            shutil.rmtree(path)
    except OSError as e:
        logger.warning("Rollback could not remove %s: %s", path, e)


def expected_glyph_count(household: HouseholdView, generate_thumbnails: bool) -> int:
    return min(household.size, MAX_HOUSEHOLD_MEMBERS) if generate_thumbnails else 0


def validate_written_files(written_files: List[str], expected_sgi_count: int) -> bool:
    """Exactly 1 trayitem, 1 householdbinary, 2 hhi, N sgi, all on disk."""
    if not written_files:
        return False

    def count(extension: str) -> int:
        return sum(1 for path in written_files if path.lower().endswith(extension))

    if (count(TRAY_ITEM_EXT) != 1
            or count(HOUSEHOLD_BINARY_EXT) != 1
            or count(HOUSEHOLD_PORTRAIT_EXT) != 2
            or count(SIM_GLYPH_EXT) != expected_sgi_count):
        return False

    return all(os.path.isfile(path) for path in written_files)


class HouseholdTrayExporter:
    """
    Exports save households as tray bundles.

    The source save is always loaded again; a snapshot held by the caller
    is never trusted for the export decision.
    """

    def __init__(self, reader: Optional[SaveHouseholdReader] = None):
        self.reader = reader or SaveHouseholdReader()

    def export(self, request: ExportRequest) -> ExportResult:
        """
        Export one household.

        Never raises for library or I/O failures; they come back as a
        failed ExportResult with the error message.
        """
        try:
            return self._export(request)
        except Exception as e:
            logger.warning("Export of household %X failed: %s", request.household_id, e)
            return ExportResult.failed(str(e))

    def _export(self, request: ExportRequest) -> ExportResult:
        if not request.export_root or not os.path.isdir(request.export_root):
            return ExportResult.failed("Export root path does not exist.")

        snapshot = self.reader.load(request.source_save_path)
        household = snapshot.find_household(request.household_id)
        if household is None:
            raise NotFoundError("The requested household was not found in the source save.")

        if not household.can_export:
            raise EligibilityError(household.export_block_reason or "This household cannot be exported.")

        raw_household = snapshot.raw_household(household.household_id)
        if raw_household is None:
            raise NotFoundError("The raw household payload was not available for export.")

        instance_id = generate_instance_id()
        export_directory = self.create_unique_export_directory(
            request.export_root, household.name, household.household_id
        )

        try:
            written_files, warnings = self._write_bundle(
                export_directory, instance_id, household, raw_household, request
            )
        except Exception as e:
            safe_delete_directory(export_directory)
            logger.warning("Rolled back %s after write failure: %s", export_directory, e)
            return ExportResult.failed(str(e))

        if not self.validate_bundle(written_files, expected_glyph_count(household, request.generate_thumbnails)):
            safe_delete_directory(export_directory)
            logger.warning("Rolled back incomplete bundle %s", export_directory)
            return ExportResult.failed("The exported tray bundle is incomplete.")

        logger.info(
            "Exported household %X to %s (%d files)",
            household.household_id, export_directory, len(written_files),
        )
        return ExportResult(
            succeeded=True,
            export_directory=export_directory,
            instance_id_hex=f"0x{instance_id:016X}",
            written_files=written_files,
            warnings=warnings,
        )

    def validate_bundle(self, written_files: List[str], expected_sgi_count: int) -> bool:
        return validate_written_files(written_files, expected_sgi_count)

    # ── bundle writing ─────────────────────────────────────────────────────

    def _write_bundle(self,
                      export_directory: str,
                      instance_id: int,
                      household: HouseholdView,
                      raw_household: HouseholdData,
                      request: ExportRequest):
        written_files: List[str] = []
        warnings: List[str] = []

        def target(type_code: int, extension: str) -> str:
            return os.path.join(export_directory, build_file_name(type_code, instance_id, extension))

        path = target(TrayFileType.TRAY_ITEM, TRAY_ITEM_EXT)
        metadata = build_tray_metadata(instance_id, household, request)
        self.write_file(path, encode_tray_item(metadata))
        written_files.append(path)

        path = target(TrayFileType.HOUSEHOLD_BINARY, HOUSEHOLD_BINARY_EXT)
        self.write_file(path, raw_household.to_bytes())
        written_files.append(path)

        for portrait_type in (TrayFileType.HOUSEHOLD_PORTRAIT_PRIMARY,
                              TrayFileType.HOUSEHOLD_PORTRAIT_SECONDARY):
            path = target(portrait_type, HOUSEHOLD_PORTRAIT_EXT)
            self.write_file(path, placeholder_png())
            written_files.append(path)

        if request.generate_thumbnails:
            for slot in range(1, expected_glyph_count(household, True) + 1):
                path = target(sim_glyph_type(slot), SIM_GLYPH_EXT)
                self.write_file(path, placeholder_png())
                written_files.append(path)
        else:
            warnings.append(THUMBNAILS_DISABLED_WARNING)

        return written_files, warnings

    @staticmethod
    def write_file(path: str, data: bytes):
        # 'x' refuses to overwrite anything already in the new directory
        with open(path, 'xb') as f:
            f.write(data)

    @staticmethod
    def create_unique_export_directory(export_root: str, household_name: str, household_id: int) -> str:
        """
        Create ``{name}_{id:X}_{yyyyMMdd_HHmmss}`` under export_root, adding
        ``_1``, ``_2``... on collision.

        Raises:
            ExportIOError: No free name within MAX_DIRECTORY_ATTEMPTS
        """
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        safe_name = sanitize_file_name(household_name or "Household")
        base_name = f"{safe_name}_{household_id:X}_{timestamp}"
        root = os.path.abspath(export_root)

        for attempt in range(MAX_DIRECTORY_ATTEMPTS):
            directory_name = base_name if attempt == 0 else f"{base_name}_{attempt}"
            full_path = os.path.join(root, directory_name)
            try:
                os.mkdir(full_path)
            except FileExistsError:
                continue
            return full_path

        raise ExportIOError("Unable to create a unique export directory.")


def build_tray_metadata(instance_id: int, household: HouseholdView, request: ExportRequest) -> TrayMetadata:
    """Library metadata for the bundle: names, creator and member summary."""
    hh_metadata = TrayHouseholdMetadata(family_size=household.size, pending_babies=0)
    for member in household.members:
        hh_metadata.sim_data.append(TraySimMetadata(
            first_name=member.first_name,
            last_name=member.last_name,
            id=member.sim_id,
            gender=member.gender,
            age=member.age,
            species=member.species,
            occult_types=member.occult_flags,
        ))

    return TrayMetadata(
        id=instance_id,
        type=ExchangeItemType.EXCHANGE_HOUSEHOLD,
        name=household.name,
        description=household.description,
        creator_id=request.creator_id,
        creator_name=request.creator_name,
        item_timestamp=int(time.time()),
        metadata=SpecificData(hh_metadata=hh_metadata, is_hidden=False),
    )


__all__ = [
    'HouseholdTrayExporter',
    'build_tray_metadata',
    'generate_instance_id',
    'sanitize_file_name',
    'validate_written_files',
    'safe_delete_directory',
    'THUMBNAILS_DISABLED_WARNING',
]
