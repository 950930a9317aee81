"""
Household Reader for The Sims 4 saves

Finds the SaveGameData resource (type 0x0000000D) in a save package,
decodes it and projects households, sims and zones into HouseholdView
objects, each with an export verdict.

Duplicate ids in the save keep their first occurrence; id 0 is treated as
an invalid record and dropped.
"""

import logging
import os
from datetime import datetime
from typing import Dict, Iterable, List, Tuple

from simtray.errors import FormatError, NotFoundError
from simtray.formats.dbpf import DBPFTypeID, extract_resource, read_package
from simtray.formats.proto.persistence import HouseholdData, SaveGameData, SimData, ZoneData
from simtray.formats.tray import MAX_HOUSEHOLD_MEMBERS
from .models import HouseholdView, MemberView, SaveSnapshot

logger = logging.getLogger(__name__)


# Block reasons, in the order they are checked
REASON_SIZE_OUT_OF_RANGE = "Only households with 1 to 8 members are supported."
REASON_MISSING_MEMBERS = "Some household members are missing from save sim data."
REASON_NO_MEMBERS = "No supported household members were found."
REASON_NOT_HUMAN_LIKE = "Only human-like households are supported in this phase."

HUMAN_LIKE_SPECIES = (0, 1)


def index_first_seen(records: Iterable, key_attr: str) -> Dict[int, object]:
    """Map id -> record, keeping the first record per id and skipping id 0."""
    index: Dict[int, object] = {}
    for record in records:
        if record is None:
            continue
        key = getattr(record, key_attr)
        if key == 0 or key in index:
            continue
        index[key] = record
    return index


def is_human_like_species(species: int) -> bool:
    return species in HUMAN_LIKE_SPECIES


def resolve_export_block_reason(household_size: int,
                                missing_member_count: int,
                                members: List[MemberView]) -> str:
    """Empty string when exportable, otherwise the first failing rule."""
    if household_size < 1 or household_size > MAX_HOUSEHOLD_MEMBERS:
        return REASON_SIZE_OUT_OF_RANGE
    if missing_member_count > 0:
        return REASON_MISSING_MEMBERS
    if not members:
        return REASON_NO_MEMBERS
    if any(not member.is_human_like for member in members):
        return REASON_NOT_HUMAN_LIKE
    return ""


def household_sort_key(household: HouseholdData) -> str:
    """Named households by name; unnamed ones after them by hex id."""
    if household.name.strip():
        # one character in, one character out ("ß" stays "ß")
        return "".join(c.upper() if len(c.upper()) == 1 else c for c in household.name)
    return f"~{household.household_id:016X}"


def fallback_household_name(household_id: int, members: List[MemberView]) -> str:
    if members and members[0].last_name.strip():
        return members[0].last_name
    return f"Household {household_id:X}"


class SaveHouseholdReader:
    """
    Projects a save file into households.

    Stateless: every load() reads the file again.
    """

    def load(self, save_file_path: str) -> SaveSnapshot:
        """
        Load households from a save.

        Raises:
            NotFoundError: The file does not exist
            FormatError: The package is malformed, has no live save-data
                resource, or the save record cannot be decoded
        """
        if not save_file_path or not str(save_file_path).strip():
            raise ValueError("Save file path must not be empty")
        if not os.path.isfile(save_file_path):
            raise NotFoundError(f"Save file was not found: {save_file_path}")

        save = self.read_save_game_data(save_file_path)

        sim_index = index_first_seen(save.sims, "sim_id")
        zone_index = index_first_seen(save.zones, "zone_id")
        household_index = index_first_seen(save.households, "household_id")

        households = [
            self._project_household(household, sim_index, zone_index)
            for household in sorted(household_index.values(), key=household_sort_key)
        ]

        logger.info(
            "Loaded %s: %d households, %d sims, %d zones",
            save_file_path, len(households), len(sim_index), len(zone_index),
        )

        return SaveSnapshot(
            save_path=os.path.abspath(save_file_path),
            slot_name=save.slot_name,
            last_write_time=datetime.fromtimestamp(os.path.getmtime(save_file_path)),
            households=households,
            _raw_households=household_index,
            _raw_sims=sim_index,
        )

    def read_save_game_data(self, save_file_path: str) -> SaveGameData:
        """Locate, extract and decode the SaveGameData resource."""
        package = read_package(save_file_path)
        entry = package.find_first(DBPFTypeID.SAVE_GAME_DATA)
        if entry is None:
            raise FormatError(
                f"SaveGameData resource (0x{DBPFTypeID.SAVE_GAME_DATA:08X}) was not found."
            )

        logger.debug("SaveGameData at %s (%d bytes stored)", entry.key_hex, entry.compressed_size)
        data = extract_resource(save_file_path, entry).raise_for_error()
        return SaveGameData.from_bytes(data)

    def _project_household(self,
                           household: HouseholdData,
                           sim_index: Dict[int, SimData],
                           zone_index: Dict[int, ZoneData]) -> HouseholdView:
        member_ids = household.member_ids
        members, missing_count = self._resolve_members(member_ids, sim_index)

        block_reason = resolve_export_block_reason(len(member_ids), missing_count, members)
        zone = zone_index.get(household.home_zone)

        name = household.name
        if not name.strip():
            name = fallback_household_name(household.household_id, members)

        return HouseholdView(
            household_id=household.household_id,
            name=name,
            description=household.description,
            funds=household.money,
            home_zone_id=household.home_zone,
            home_zone_name=zone.name if zone is not None else "",
            size=len(member_ids),
            members=tuple(members),
            can_export=not block_reason,
            export_block_reason=block_reason,
        )

    @staticmethod
    def _resolve_members(member_ids: List[int],
                         sim_index: Dict[int, SimData]) -> Tuple[List[MemberView], int]:
        members = []
        missing = 0
        for member_id in member_ids:
            sim = sim_index.get(member_id)
            if sim is None:
                missing += 1
                continue

            species = sim.extended_species
            human_like = is_human_like_species(species)
            members.append(MemberView(
                sim_id=sim.sim_id,
                first_name=sim.first_name,
                last_name=sim.last_name,
                age=sim.age,
                gender=sim.gender,
                species=species,
                is_human_like=human_like,
                can_render_thumbnail=human_like,
            ))
        return members, missing


__all__ = [
    'SaveHouseholdReader',
    'REASON_SIZE_OUT_OF_RANGE',
    'REASON_MISSING_MEMBERS',
    'REASON_NO_MEMBERS',
    'REASON_NOT_HUMAN_LIKE',
    'resolve_export_block_reason',
    'household_sort_key',
]
