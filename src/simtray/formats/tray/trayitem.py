"""
Tray Bundle Format - files the game's Library reads from the Tray folder

A household export is a flat set of files sharing one 64-bit instance id:

  0x00000001!0x<instance>.trayitem         8-byte header + TrayMetadata
  0x00000002!0x<instance>.householdbinary  HouseholdData record
  0x00000010!0x<instance>.hhi              household portrait
  0x00000011!0x<instance>.hhi              household portrait
  0x000000N3!0x<instance>.sgi              one sim glyph per member slot N

.trayitem header (little-endian):
  - u32 type code (1)
  - u32 payload length
"""

import io
import logging
from enum import IntEnum
from functools import lru_cache

from PIL import Image

from simtray.errors import FormatError
from simtray.formats.proto.exchange import TrayMetadata
from simtray.utils.binary import IoBuffer

logger = logging.getLogger(__name__)


TRAY_ITEM_EXT = ".trayitem"
HOUSEHOLD_BINARY_EXT = ".householdbinary"
HOUSEHOLD_PORTRAIT_EXT = ".hhi"
SIM_GLYPH_EXT = ".sgi"

MAX_HOUSEHOLD_MEMBERS = 8


class TrayFileType(IntEnum):
    """Type codes used in tray bundle file names."""
    TRAY_ITEM = 0x1
    HOUSEHOLD_BINARY = 0x2
    HOUSEHOLD_PORTRAIT_PRIMARY = 0x10
    HOUSEHOLD_PORTRAIT_SECONDARY = 0x11


def sim_glyph_type(slot: int) -> int:
    """Type code of the .sgi for member slot 1..8."""
    return (slot << 4) | 0x3


def build_file_name(type_code: int, instance_id: int, extension: str) -> str:
    return f"0x{type_code:08X}!0x{instance_id:016X}{extension}"


def encode_tray_item(metadata: TrayMetadata) -> bytes:
    """Header plus serialized metadata."""
    payload = metadata.to_bytes()
    if len(payload) > 0xFFFFFFFF:
        raise FormatError("Tray metadata payload is too large")

    out = IoBuffer.from_bytes()
    out.write_uint32(TrayFileType.TRAY_ITEM)
    out.write_uint32(len(payload))
    out.write_bytes(payload)
    return out.getvalue()


def decode_tray_item(data: bytes) -> TrayMetadata:
    """
    Parse .trayitem bytes.

    Raises:
        FormatError: Wrong type code, length mismatch or bad payload
    """
    buf = IoBuffer.from_bytes(data)
    type_code = buf.read_uint32()
    if type_code != TrayFileType.TRAY_ITEM:
        raise FormatError(f"Unexpected tray item type code: {type_code}")

    length = buf.read_uint32()
    if length != len(data) - 8:
        raise FormatError(
            f"Tray item payload length {length} does not match file size {len(data) - 8}"
        )
    return TrayMetadata.from_bytes(buf.read_bytes(length))


def read_tray_item(path: str) -> TrayMetadata:
    with open(path, 'rb') as f:
        return decode_tray_item(f.read())


@lru_cache(maxsize=1)
def placeholder_png() -> bytes:
    """A 1x1 transparent grayscale PNG used for portraits and glyphs."""
    image = Image.new("LA", (1, 1), (0, 0))
    out = io.BytesIO()
    image.save(out, format="PNG")
    logger.debug("Generated %d-byte placeholder PNG", out.tell())
    return out.getvalue()


__all__ = [
    'TRAY_ITEM_EXT',
    'HOUSEHOLD_BINARY_EXT',
    'HOUSEHOLD_PORTRAIT_EXT',
    'SIM_GLYPH_EXT',
    'MAX_HOUSEHOLD_MEMBERS',
    'TrayFileType',
    'sim_glyph_type',
    'build_file_name',
    'encode_tray_item',
    'decode_tray_item',
    'read_tray_item',
    'placeholder_png',
]
