"""
DBPF Format - Database Packed File (The Sims 4 package / save container)

The Sims 4 stores saves and tray data in DBPF 2.x containers. This module
only reads them: header and index parsing plus on-demand extraction of a
single resource. Nothing here writes or rebuilds an index.

Structure:
  Header (96 bytes, little-endian):
    - Magic: "DBPF" (u32 1179664964)
    - Entry count        @36 (u32)
    - Index offset (low) @40 (u32, legacy)
    - Index record size  @44 (u32, hint only)
    - Index offset (64)  @64 (u64, wins when non-zero)

  Index:
    - Flags word; bits 0/1/2 mark type / group / instance-high as constant
    - One u32 per constant field, in bit order
    - Per entry, the remaining (32 - 4 * constants) bytes of the logical
      32-byte record:
        type@0 group@4 instance-high@8 instance-low@12 offset@16
        size|flag@20 uncompressed-size@24 compression@28 (u16)

  Resource data:
    - Raw bytes, or a 2-byte zlib header followed by a raw deflate stream
"""

import logging
import os
import zlib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from typing import Dict, List, Optional, Tuple

from simtray.errors import FormatError
from simtray.utils.binary import IoBuffer, ByteOrder

logger = logging.getLogger(__name__)


DBPF_SIGNATURE = 1179664964  # b"DBPF" read as little-endian u32
HEADER_SIZE = 96
ENTRY_RECORD_SIZE = 32
ZLIB_HEADER_BYTE = 0x78


class DBPFTypeID(IntEnum):
    """DBPF resource type IDs used by this suite."""

    SAVE_GAME_DATA = 0x0000000D  # Protobuf SaveGameData


class CompressionType(IntEnum):
    """Compression codes stored in the low 16 bits of an index record."""

    UNCOMPRESSED = 0x0000
    ZLIB = 0x5A42       # 23106
    DELETED = 0xFFE0    # 65504, entry is a tombstone


class IndexFlags(IntEnum):
    """Index flag bits: which key fields are stored once for all entries."""

    CONSTANT_TYPE = 0x1
    CONSTANT_GROUP = 0x2
    CONSTANT_INSTANCE_HIGH = 0x4


@dataclass(frozen=True)
class IndexEntry:
    """A single resource entry in a DBPF index."""

    type: int = 0
    group: int = 0
    instance: int = 0
    is_deleted: bool = False
    data_offset: int = 0
    compressed_size: int = 0
    uncompressed_size: int = 0
    compression_code: int = 0

    @property
    def key(self) -> Tuple[int, int, int]:
        """Return the resource key (Type, Group, Instance)."""
        return (self.type, self.group, self.instance)

    @property
    def key_hex(self) -> str:
        return f"{self.type:08X}:{self.group:08X}:{self.instance:016X}"


@dataclass(frozen=True)
class IndexedPackage:
    """Immutable snapshot of one package index."""

    path: str
    length: int
    last_write_time: datetime
    entries: Tuple[IndexEntry, ...] = ()

    def live_entries(self) -> List[IndexEntry]:
        """Entries that are not deletion tombstones, in index order."""
        return [entry for entry in self.entries if not entry.is_deleted]

    def find_first(self, type_id: int) -> Optional[IndexEntry]:
        """First non-deleted entry of a type, or None."""
        for entry in self.entries:
            if not entry.is_deleted and entry.type == type_id:
                return entry
        return None

    def count_by_type(self) -> Dict[int, int]:
        counts: Dict[int, int] = {}
        for entry in self.entries:
            counts[entry.type] = counts.get(entry.type, 0) + 1
        return counts


@dataclass
class ResourceReadResult:
    """Outcome of extract_resource. On failure data is always empty."""

    success: bool
    data: bytes = b""
    error: Optional[str] = None

    def raise_for_error(self) -> bytes:
        """Return the bytes, or raise FormatError carrying the error message."""
        if not self.success:
            raise FormatError(self.error or "Failed to read package resource.")
        return self.data


@dataclass
class _IndexLayout:
    """Resolved shape of the index block."""
    flags: int
    template: bytearray = field(default_factory=lambda: bytearray(ENTRY_RECORD_SIZE))
    constant_words: int = 0

    @property
    def constant_type(self) -> bool:
        return bool(self.flags & IndexFlags.CONSTANT_TYPE)

    @property
    def constant_group(self) -> bool:
        return bool(self.flags & IndexFlags.CONSTANT_GROUP)

    @property
    def constant_instance_high(self) -> bool:
        return bool(self.flags & IndexFlags.CONSTANT_INSTANCE_HIGH)

    @property
    def overhead_bytes(self) -> int:
        """Flags word plus the constant words."""
        return 4 + self.constant_words * 4

    @property
    def variable_bytes_per_entry(self) -> int:
        return ENTRY_RECORD_SIZE - self.constant_words * 4


def _file_snapshot(path: str) -> Tuple[int, datetime]:
    stat = os.stat(path)
    return stat.st_size, datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)


def read_package(path: str) -> IndexedPackage:
    """
    Read the header and index of a DBPF package.

    Args:
        path: Package file path

    Returns:
        IndexedPackage snapshot

    Raises:
        FormatError: Bad magic, truncated data or an unresolvable index layout
        FileNotFoundError: path does not exist
    """
    if not path or not str(path).strip():
        raise ValueError("Package path must not be empty")

    with open(path, 'rb') as f:
        io = IoBuffer.from_stream(f, ByteOrder.LITTLE_ENDIAN)
        file_length = io.length

        header = IoBuffer.from_bytes(io.read_bytes(HEADER_SIZE))
        magic = header.read_uint32()
        if magic != DBPF_SIGNATURE:
            raise FormatError(f"Not a DBPF package file: {path}")

        header.seek(36)
        entry_count = header.read_uint32()
        index_offset_low = header.read_uint32()
        index_record_size = header.read_uint32()
        header.seek(64)
        index_offset_64 = header.read_uint64()

        length, last_write = _file_snapshot(path)
        if entry_count == 0:
            return IndexedPackage(path=path, length=length, last_write_time=last_write)

        index_offset = index_offset_64 if index_offset_64 != 0 else index_offset_low
        logger.debug(
            "%s: %d entries, index @%d (hint %d bytes)",
            path, entry_count, index_offset, index_record_size,
        )

        io.seek(index_offset)
        layout = _read_index_layout(io)

        total_variable_bytes = resolve_variable_byte_count(
            path,
            file_length - index_offset - layout.overhead_bytes,
            index_record_size,
            entry_count,
            layout.overhead_bytes,
            layout.variable_bytes_per_entry,
        )
        per_entry = layout.variable_bytes_per_entry
        if per_entry < 20 or per_entry > 32 or total_variable_bytes <= 0:
            raise FormatError("Unsupported DBPF index record size.")

        block = io.read_bytes(total_variable_bytes)

    entries = []
    for entry_index in range(entry_count):
        start = entry_index * per_entry
        record = _splice_entry(layout, block[start:start + per_entry])
        entries.append(_decode_entry(record))

    return IndexedPackage(
        path=path,
        length=length,
        last_write_time=last_write,
        entries=tuple(entries),
    )


def _read_index_layout(io: IoBuffer) -> _IndexLayout:
    """Read the flags word and the constant-field template."""
    layout = _IndexLayout(flags=io.read_uint32())

    # Constant words appear in bit order and land at their fixed offsets
    for present, offset in (
        (layout.constant_type, 0),
        (layout.constant_group, 4),
        (layout.constant_instance_high, 8),
    ):
        if present:
            layout.template[offset:offset + 4] = io.read_bytes(4)
            layout.constant_words += 1

    return layout


def resolve_variable_byte_count(path: str,
                                available_bytes: int,
                                index_record_size: int,
                                entry_count: int,
                                overhead_bytes: int,
                                variable_bytes_per_entry: int) -> int:
    """
    Work out how many per-entry bytes follow the index header.

    The header's record-size field means different things across format
    revisions. Three readings are tried in order and the first one that is
    self-consistent and fits in the file wins:

      1. total index size including the flags/constant overhead
      2. the per-entry stride itself
      3. the legacy full 32-byte record marker

    Anything else is rejected rather than guessed.
    """
    if entry_count <= 0:
        return 0

    if index_record_size >= overhead_bytes:
        candidate_total = index_record_size - overhead_bytes
        if (candidate_total > 0
                and candidate_total % entry_count == 0
                and candidate_total // entry_count == variable_bytes_per_entry
                and candidate_total <= available_bytes):
            logger.debug("Index size resolved from total-size hint: %d", candidate_total)
            return candidate_total

    if index_record_size == variable_bytes_per_entry:
        candidate_total = variable_bytes_per_entry * entry_count
        if candidate_total <= available_bytes:
            logger.debug("Index size resolved from stride hint: %d", candidate_total)
            return candidate_total

    if index_record_size == ENTRY_RECORD_SIZE:
        candidate_per_entry = index_record_size - (overhead_bytes - 4)
        if candidate_per_entry == variable_bytes_per_entry:
            candidate_total = candidate_per_entry * entry_count
            if candidate_total <= available_bytes:
                logger.debug("Index size resolved from legacy 32-byte marker: %d", candidate_total)
                return candidate_total

    raise FormatError(f"Unsupported DBPF index record size for '{path}'.")


def _splice_entry(layout: _IndexLayout, variable: bytes) -> bytes:
    """Rebuild the 32-byte logical record from the template and variable bytes."""
    record = bytearray(layout.template)
    cursor = 0

    for constant, offset in (
        (layout.constant_type, 0),
        (layout.constant_group, 4),
        (layout.constant_instance_high, 8),
    ):
        if not constant:
            record[offset:offset + 4] = variable[cursor:cursor + 4]
            cursor += 4

    # instance-low onward is always per-entry
    tail = len(variable) - cursor
    record[12:12 + tail] = variable[cursor:]
    return bytes(record)


def _decode_entry(record: bytes) -> IndexEntry:
    io = IoBuffer.from_bytes(record)
    type_id = io.read_uint32()
    group_id = io.read_uint32()
    instance_high = io.read_uint32()
    instance_low = io.read_uint32()
    position = io.read_uint32()
    size_and_flag = io.read_uint32()
    uncompressed_size = io.read_uint32()
    compression_code = io.read_uint16()

    return IndexEntry(
        type=type_id,
        group=group_id,
        instance=(instance_high << 32) | instance_low,
        is_deleted=compression_code == CompressionType.DELETED,
        data_offset=position,
        compressed_size=size_and_flag & 0x7FFFFFFF,
        uncompressed_size=uncompressed_size,
        compression_code=compression_code,
    )


def extract_resource(path: str, entry: IndexEntry) -> ResourceReadResult:
    """
    Read and decompress the bytes of one index entry.

    Failures are reported through the result, never raised.

    Args:
        path: Package file path
        entry: Entry from read_package() on the same file

    Returns:
        ResourceReadResult
    """
    if entry.is_deleted:
        return ResourceReadResult(False, error="Deleted package entry.")

    try:
        with open(path, 'rb') as f:
            f.seek(entry.data_offset)
            io = IoBuffer.from_stream(f)

            if entry.compression_code == CompressionType.UNCOMPRESSED:
                return ResourceReadResult(True, io.read_bytes(entry.compressed_size))

            if entry.compression_code == CompressionType.ZLIB:
                zlib_header = io.read_bytes(2)
                if zlib_header[0] != ZLIB_HEADER_BYTE:
                    return ResourceReadResult(False, error="Invalid ZLIB signature.")

                # Whatever follows the deflate stream (adler32) is ignored
                payload = f.read(max(entry.compressed_size - 2, 0))
                inflater = zlib.decompressobj(-zlib.MAX_WBITS)
                data = inflater.decompress(payload) + inflater.flush()
                if not inflater.eof:
                    return ResourceReadResult(False, error="Truncated deflate stream.")
                return ResourceReadResult(True, data)

            return ResourceReadResult(
                False, error=f"Unsupported compression type: {entry.compression_code}."
            )
    except (OSError, zlib.error, FormatError) as e:
        return ResourceReadResult(False, error=f"Failed to read package resource: {e}")


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
    'resolve_variable_byte_count',
]
