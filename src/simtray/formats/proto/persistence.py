"""
Persistence Records - The Sims 4 SaveGameData subset

Only the fields the household projection needs are declared; every other
field of these records is carried through ``unknown_fields`` untouched.
Ids that the game writes as fixed64 stay fixed64 so that a household
record re-encodes to the same bytes it was read from.
"""

from dataclasses import field
from typing import List, Optional

from .base import FieldKind, ProtoField, ProtoMessage, proto_record


@proto_record
class IdList(ProtoMessage):
    """Packed list of 64-bit object ids (EA.Sims4.IdList)."""
    FIELDS = (
        ProtoField(1, "ids", FieldKind.FIXED64, repeated=True, packed=True),
    )

    ids: List[int] = field(default_factory=list)


@proto_record
class SaveSlotData(ProtoMessage):
    FIELDS = (
        ProtoField(9, "slot_name", FieldKind.STRING),
    )

    slot_name: str = ""


@proto_record
class HouseholdData(ProtoMessage):
    """A household: funds, home lot and member sim ids."""
    FIELDS = (
        ProtoField(2, "household_id", FieldKind.FIXED64, required=True),
        ProtoField(3, "name", FieldKind.STRING),
        ProtoField(4, "home_zone", FieldKind.FIXED64),
        ProtoField(5, "money", FieldKind.UINT),
        ProtoField(11, "sims", FieldKind.MESSAGE, message=IdList),
        ProtoField(18, "description", FieldKind.STRING),
    )

    household_id: int = 0
    name: str = ""
    home_zone: int = 0
    money: int = 0
    sims: Optional[IdList] = None
    description: str = ""

    @property
    def member_ids(self) -> List[int]:
        return list(self.sims.ids) if self.sims is not None else []


@proto_record
class SimData(ProtoMessage):
    """A sim. ``extended_species`` is the species code (0/1 human-like)."""
    FIELDS = (
        ProtoField(1, "sim_id", FieldKind.FIXED64, required=True),
        ProtoField(4, "household_id", FieldKind.FIXED64),
        ProtoField(5, "first_name", FieldKind.STRING),
        ProtoField(6, "last_name", FieldKind.STRING),
        ProtoField(7, "gender", FieldKind.UINT),
        ProtoField(8, "age", FieldKind.UINT),
        ProtoField(22, "household_name", FieldKind.STRING),
        ProtoField(60, "extended_species", FieldKind.UINT),
    )

    sim_id: int = 0
    household_id: int = 0
    first_name: str = ""
    last_name: str = ""
    gender: int = 0
    age: int = 0
    household_name: str = ""
    extended_species: int = 0


@proto_record
class ZoneData(ProtoMessage):
    FIELDS = (
        ProtoField(1, "zone_id", FieldKind.FIXED64),
        ProtoField(2, "name", FieldKind.STRING),
        ProtoField(6, "household_id", FieldKind.FIXED64),
    )

    zone_id: int = 0
    name: str = ""
    household_id: int = 0


@proto_record
class SaveGameData(ProtoMessage):
    """Top-level record of the 0x0000000D save resource."""
    FIELDS = (
        ProtoField(2, "save_slot", FieldKind.MESSAGE, message=SaveSlotData),
        ProtoField(5, "households", FieldKind.MESSAGE, repeated=True, message=HouseholdData),
        ProtoField(6, "sims", FieldKind.MESSAGE, repeated=True, message=SimData),
        ProtoField(7, "zones", FieldKind.MESSAGE, repeated=True, message=ZoneData),
    )

    save_slot: Optional[SaveSlotData] = None
    households: List[HouseholdData] = field(default_factory=list)
    sims: List[SimData] = field(default_factory=list)
    zones: List[ZoneData] = field(default_factory=list)

    @property
    def slot_name(self) -> str:
        return self.save_slot.slot_name if self.save_slot is not None else ""


__all__ = [
    'IdList',
    'SaveSlotData',
    'HouseholdData',
    'SimData',
    'ZoneData',
    'SaveGameData',
]
