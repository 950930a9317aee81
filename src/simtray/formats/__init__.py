"""SimTray formats package - file format parsers."""
from .dbpf import IndexedPackage, IndexEntry, DBPFTypeID, read_package, extract_resource
from .proto import ProtoMessage, SaveGameData, HouseholdData, SimData, ZoneData, TrayMetadata
from .tray import build_file_name, read_tray_item

__all__ = [
    # DBPF
    'IndexedPackage', 'IndexEntry', 'DBPFTypeID', 'read_package', 'extract_resource',
    # Records
    'ProtoMessage', 'SaveGameData', 'HouseholdData', 'SimData', 'ZoneData', 'TrayMetadata',
    # Tray
    'build_file_name', 'read_tray_item',
]
