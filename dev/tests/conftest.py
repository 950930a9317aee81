"""
SimTray Suite - shared test fixtures

Synthesises DBPF packages and SaveGameData payloads on disk so the tests
need no game files. Packages are laid out as header, resource data, index.
"""

import struct
import zlib
from dataclasses import dataclass
from typing import List, Optional, Sequence

import pytest

from simtray.formats.dbpf import CompressionType, DBPFTypeID
from simtray.formats.proto.persistence import (
    HouseholdData,
    IdList,
    SaveGameData,
    SaveSlotData,
    SimData,
    ZoneData,
)


# ═══════════════════════════════════════════════════════════════════════════════
# PACKAGE BUILDER
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class Resource:
    """One resource to place in a synthetic package."""
    type: int
    group: int = 0
    instance: int = 0
    data: bytes = b""
    compression: int = CompressionType.UNCOMPRESSED
    stored: Optional[bytes] = None    # overrides the bytes written to disk

    def stored_bytes(self) -> bytes:
        if self.stored is not None:
            return self.stored
        if self.compression == CompressionType.ZLIB:
            return zlib.compress(self.data)
        return self.data


def build_package_bytes(resources: Sequence[Resource],
                        constant_flags: int = 0,
                        hint: object = "total",
                        legacy_offset: bool = False,
                        entry_count: Optional[int] = None,
                        index_offset: Optional[int] = None) -> bytes:
    """
    Build a DBPF 2.1 package.

    hint: "total" (flags + constants + entries), "stride" (bytes per entry),
    "legacy" (32) or an explicit integer.
    """
    header_size = 96
    blob = bytearray()
    placements = []
    for resource in resources:
        stored = resource.stored_bytes()
        placements.append((header_size + len(blob), stored))
        blob += stored

    first = resources[0] if resources else Resource(type=0)
    constants = []
    if constant_flags & 0x1:
        constants.append(first.type)
    if constant_flags & 0x2:
        constants.append(first.group)
    if constant_flags & 0x4:
        constants.append(first.instance >> 32)

    index = bytearray(struct.pack('<I', constant_flags))
    for value in constants:
        index += struct.pack('<I', value)

    for resource, (offset, stored) in zip(resources, placements):
        if not constant_flags & 0x1:
            index += struct.pack('<I', resource.type)
        if not constant_flags & 0x2:
            index += struct.pack('<I', resource.group)
        if not constant_flags & 0x4:
            index += struct.pack('<I', resource.instance >> 32)
        index += struct.pack('<I', resource.instance & 0xFFFFFFFF)
        index += struct.pack('<I', offset)
        index += struct.pack('<I', len(stored) | 0x80000000)
        index += struct.pack('<I', len(resource.data))
        index += struct.pack('<HH', resource.compression, 1)

    per_entry = 32 - 4 * len(constants)
    if hint == "total":
        hint_value = 4 + 4 * len(constants) + per_entry * len(resources)
    elif hint == "stride":
        hint_value = per_entry
    elif hint == "legacy":
        hint_value = 32
    else:
        hint_value = int(hint)

    computed_offset = header_size + len(blob)
    if index_offset is None:
        index_offset = computed_offset
    count = len(resources) if entry_count is None else entry_count

    header = bytearray(header_size)
    header[0:4] = b"DBPF"
    struct.pack_into('<II', header, 4, 2, 1)
    struct.pack_into('<I', header, 36, count)
    struct.pack_into('<I', header, 44, hint_value)
    if legacy_offset:
        struct.pack_into('<I', header, 40, index_offset)
    else:
        struct.pack_into('<I', header, 40, 0xDEADBEEF)    # must be ignored
        struct.pack_into('<Q', header, 64, index_offset)

    return bytes(header) + bytes(blob) + bytes(index)


# ═══════════════════════════════════════════════════════════════════════════════
# SAVE RECORD BUILDERS
# ═══════════════════════════════════════════════════════════════════════════════

def make_sim(sim_id: int, first_name: str = "", last_name: str = "",
             species: int = 1, age: int = 16, gender: int = 1,
             household_id: int = 0) -> SimData:
    return SimData(
        sim_id=sim_id,
        household_id=household_id,
        first_name=first_name,
        last_name=last_name,
        gender=gender,
        age=age,
        extended_species=species,
    )


def make_household(household_id: int, name: str, member_ids: List[int],
                   home_zone: int = 0, money: int = 0,
                   description: str = "") -> HouseholdData:
    return HouseholdData(
        household_id=household_id,
        name=name,
        home_zone=home_zone,
        money=money,
        sims=IdList(ids=list(member_ids)),
        description=description,
    )


def build_save_bytes(households=(), sims=(), zones=(), slot_name: str = "") -> bytes:
    save = SaveGameData(
        save_slot=SaveSlotData(slot_name=slot_name) if slot_name else None,
        households=list(households),
        sims=list(sims),
        zones=list(zones),
    )
    return save.to_bytes()


# Household ids of the sample save
GOTH_ID = 0x1000000000000100
NAMELESS_ID = 0x200
PETS_ID = 0x300
BROKEN_ID = 0x400
EMPTY_ID = 0x500
HUGE_ID = 0x600
HOME_ZONE_ID = 0x900


def sample_save_records():
    """A save covering every export verdict."""
    sims = [
        make_sim(1, "Bella", "Goth", household_id=GOTH_ID),
        make_sim(2, "Mortimer", "Goth", gender=0, household_id=GOTH_ID),
        make_sim(3, "Cassandra", "Goth", age=8, household_id=GOTH_ID),
        make_sim(4, "", "Solo", species=0, household_id=NAMELESS_ID),
        make_sim(5, "Rex", "", species=2, household_id=PETS_ID),
        make_sim(6, "Pet", "Owner", household_id=PETS_ID),
        make_sim(7, "Lonely", "Broken", household_id=BROKEN_ID),
        # Duplicate id: the first record wins
        make_sim(1, "Impostor", "Goth"),
        # Id 0 is never indexed
        make_sim(0, "Zero", "Sim"),
    ]
    sims.extend(make_sim(100 + i, f"Member{i}", "Huge", household_id=HUGE_ID) for i in range(9))

    households = [
        make_household(PETS_ID, "pets", [5, 6]),
        make_household(GOTH_ID, "Goth", [1, 2, 3], home_zone=HOME_ZONE_ID, money=20000,
                       description="Family of the manor"),
        make_household(NAMELESS_ID, "", [4]),
        make_household(BROKEN_ID, "Broken", [7, 0xDEAD]),
        make_household(EMPTY_ID, "Empty", []),
        make_household(HUGE_ID, "Huge", [100 + i for i in range(9)]),
        make_household(GOTH_ID, "Second Goth", [1]),
        make_household(0, "Zero", [1]),
    ]
    zones = [ZoneData(zone_id=HOME_ZONE_ID, name="Goth Manor", household_id=GOTH_ID)]
    return households, sims, zones


# ═══════════════════════════════════════════════════════════════════════════════
# FIXTURES
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.fixture
def package_factory(tmp_path):
    """Write a synthetic package; returns its path."""
    def factory(name: str = "test.package", resources: Sequence[Resource] = (), **kwargs) -> str:
        path = tmp_path / name
        path.write_bytes(build_package_bytes(list(resources), **kwargs))
        return str(path)
    return factory


@pytest.fixture
def save_factory(package_factory):
    """Write a save whose SaveGameData holds the given records."""
    def factory(name: str = "Slot_00000001.save", households=(), sims=(), zones=(),
                slot_name: str = "", compression: int = CompressionType.ZLIB,
                extra_resources: Sequence[Resource] = ()) -> str:
        payload = build_save_bytes(households, sims, zones, slot_name)
        resources = list(extra_resources) + [
            Resource(type=DBPFTypeID.SAVE_GAME_DATA, instance=1, data=payload, compression=compression)
        ]
        return package_factory(name, resources)
    return factory


@pytest.fixture
def sample_save(save_factory):
    households, sims, zones = sample_save_records()
    return save_factory(households=households, sims=sims, zones=zones, slot_name="Autumn Slot")


@pytest.fixture
def export_root(tmp_path):
    root = tmp_path / "Tray"
    root.mkdir()
    return str(root)
