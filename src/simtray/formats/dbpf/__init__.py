"""DBPF Format Support (Database Packed File)"""

from .dbpf import (
    DBPF_SIGNATURE,
    DBPFTypeID,
    CompressionType,
    IndexFlags,
    IndexEntry,
    IndexedPackage,
    ResourceReadResult,
    read_package,
    extract_resource,
)

__all__ = [
    'DBPF_SIGNATURE',
    'DBPFTypeID',
    'CompressionType',
    'IndexFlags',
    'IndexEntry',
    'IndexedPackage',
    'ResourceReadResult',
    'read_package',
    'extract_resource',
]
