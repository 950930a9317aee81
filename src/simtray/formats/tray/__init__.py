"""Tray bundle file naming, .trayitem framing and placeholder images."""

from .trayitem import (
    TRAY_ITEM_EXT,
    HOUSEHOLD_BINARY_EXT,
    HOUSEHOLD_PORTRAIT_EXT,
    SIM_GLYPH_EXT,
    MAX_HOUSEHOLD_MEMBERS,
    TrayFileType,
    sim_glyph_type,
    build_file_name,
    encode_tray_item,
    decode_tray_item,
    read_tray_item,
    placeholder_png,
)

__all__ = [
    'TRAY_ITEM_EXT', 'HOUSEHOLD_BINARY_EXT', 'HOUSEHOLD_PORTRAIT_EXT', 'SIM_GLYPH_EXT',
    'MAX_HOUSEHOLD_MEMBERS', 'TrayFileType', 'sim_glyph_type', 'build_file_name',
    'encode_tray_item', 'decode_tray_item', 'read_tray_item', 'placeholder_png',
]
