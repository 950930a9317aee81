"""Protobuf record codec and The Sims 4 record definitions."""

from .base import WireType, FieldKind, ProtoField, ProtoMessage, proto_record
from .persistence import IdList, SaveSlotData, HouseholdData, SimData, ZoneData, SaveGameData
from .exchange import (
    ExchangeItemType,
    TraySimMetadata,
    TrayHouseholdMetadata,
    SpecificData,
    TrayMetadata,
)

__all__ = [
    # Codec
    'WireType', 'FieldKind', 'ProtoField', 'ProtoMessage', 'proto_record',
    # Persistence
    'IdList', 'SaveSlotData', 'HouseholdData', 'SimData', 'ZoneData', 'SaveGameData',
    # Exchange
    'ExchangeItemType', 'TraySimMetadata', 'TrayHouseholdMetadata', 'SpecificData', 'TrayMetadata',
]
