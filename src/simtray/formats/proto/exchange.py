"""
Exchange Records - tray item metadata

The payload of a ``.trayitem`` file: what the game's Library shows for an
exported household before it loads the household binary.
"""

from dataclasses import field
from enum import IntEnum
from typing import List, Optional

from .base import FieldKind, ProtoField, ProtoMessage, proto_record


class ExchangeItemType(IntEnum):
    EXCHANGE_INVALIDTYPE = 0
    EXCHANGE_HOUSEHOLD = 1
    EXCHANGE_BLUEPRINT = 2
    EXCHANGE_ROOM = 3
    EXCHANGE_ALLTYPES = 4
    EXCHANGE_PART = 5


@proto_record
class TraySimMetadata(ProtoMessage):
    FIELDS = (
        ProtoField(3, "first_name", FieldKind.STRING),
        ProtoField(4, "last_name", FieldKind.STRING),
        ProtoField(5, "id", FieldKind.UINT),
        ProtoField(6, "gender", FieldKind.UINT),
        ProtoField(9, "age", FieldKind.UINT),
        ProtoField(12, "species", FieldKind.UINT),
        ProtoField(14, "occult_types", FieldKind.UINT),
    )

    first_name: str = ""
    last_name: str = ""
    id: int = 0
    gender: int = 0
    age: int = 0
    species: int = 0
    occult_types: int = 0


@proto_record
class TrayHouseholdMetadata(ProtoMessage):
    FIELDS = (
        ProtoField(1, "family_size", FieldKind.UINT),
        ProtoField(2, "sim_data", FieldKind.MESSAGE, repeated=True, message=TraySimMetadata),
        ProtoField(3, "pending_babies", FieldKind.UINT),
    )

    family_size: int = 0
    sim_data: List[TraySimMetadata] = field(default_factory=list)
    pending_babies: int = 0


@proto_record
class SpecificData(ProtoMessage):
    FIELDS = (
        ProtoField(2, "hh_metadata", FieldKind.MESSAGE, message=TrayHouseholdMetadata),
        ProtoField(3, "is_hidden", FieldKind.BOOL),
    )

    hh_metadata: Optional[TrayHouseholdMetadata] = None
    is_hidden: bool = False


@proto_record
class TrayMetadata(ProtoMessage):
    FIELDS = (
        ProtoField(1, "id", FieldKind.UINT),
        ProtoField(2, "type", FieldKind.ENUM, enum=ExchangeItemType),
        ProtoField(4, "name", FieldKind.STRING),
        ProtoField(5, "description", FieldKind.STRING),
        ProtoField(6, "creator_id", FieldKind.UINT),
        ProtoField(7, "creator_name", FieldKind.STRING),
        ProtoField(10, "metadata", FieldKind.MESSAGE, message=SpecificData),
        ProtoField(11, "item_timestamp", FieldKind.UINT),
    )

    id: int = 0
    type: int = ExchangeItemType.EXCHANGE_INVALIDTYPE
    name: str = ""
    description: str = ""
    creator_id: int = 0
    creator_name: str = ""
    metadata: Optional[SpecificData] = None
    item_timestamp: int = 0


__all__ = [
    'ExchangeItemType',
    'TraySimMetadata',
    'TrayHouseholdMetadata',
    'SpecificData',
    'TrayMetadata',
]
