#!/usr/bin/env python3
"""simtray - command line for SimTray Suite.

Inspect Sims 4 save packages, list their households and export a
household to a tray bundle the game's Library can pick up.

Usage:
    simtray inspect <package>
    simtray saves [<saves-dir>]
    simtray households <slot.save>
    simtray export <slot.save> <household-id> [<dest-dir>]
        [--creator-name NAME] [--creator-id ID] [--no-thumbnails]

Output formats (before the command):
    --format table    (default, human-readable)
    --format json     (machine-readable)
    --format yaml

Defaults for the saves folder, export folder and creator come from
~/.simtray/settings.json (or --config PATH).
"""

import sys
import json
import logging
import argparse
from typing import List, Optional

from simtray import __version__
from simtray.config import load_settings
from simtray.errors import SimTrayError
from simtray.formats.dbpf import CompressionType, read_package
from simtray.save_editor import ExportRequest, SaveHouseholdCoordinator

logger = logging.getLogger(__name__)


def parse_household_id(value: str) -> int:
    """Household id as decimal, or hex with or without a 0x prefix."""
    text = value.strip()
    if text.lower().startswith("0x"):
        return int(text[2:], 16)
    try:
        return int(text)
    except ValueError:
        return int(text, 16)


def _household_id_arg(value: str) -> int:
    try:
        return parse_household_id(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid household id: {value!r}")


def _compression_label(code: int) -> str:
    try:
        return CompressionType(code).name.lower()
    except ValueError:
        return f"0x{code:04X}"


def _yaml_scalar(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(str(value), ensure_ascii=False)


def to_yaml(data, indent: int = 0) -> str:
    """Plain YAML for the nested dicts/lists the commands produce."""
    pad = "  " * indent
    lines = []
    if isinstance(data, dict):
        for key, value in data.items():
            if isinstance(value, (dict, list)) and value:
                lines.append(f"{pad}{key}:")
                lines.append(to_yaml(value, indent + 1))
            elif isinstance(value, dict):
                lines.append(f"{pad}{key}: {{}}")
            elif isinstance(value, list):
                lines.append(f"{pad}{key}: []")
            else:
                lines.append(f"{pad}{key}: {_yaml_scalar(value)}")
    elif isinstance(data, list):
        for item in data:
            if isinstance(item, (dict, list)) and item:
                nested = to_yaml(item, indent + 1).split("\n")
                lines.append(f"{pad}- {nested[0].lstrip()}")
                lines.extend(nested[1:])
            else:
                lines.append(f"{pad}- {_yaml_scalar(item)}")
    else:
        lines.append(f"{pad}{_yaml_scalar(data)}")
    return "\n".join(lines)


def emit(args, data, table: str):
    if args.format == "json":
        print(json.dumps(data, indent=2, ensure_ascii=False))
    elif args.format == "yaml":
        print(to_yaml(data))
    else:
        print(table)


def fail(message: str) -> int:
    print(f"ERROR: {message}", file=sys.stderr)
    return 1


# ─── inspect ──────────────────────────────────────────────────────────────────

def cmd_inspect(args, settings) -> int:
    """Header summary and index of a package."""
    try:
        package = read_package(args.file)
    except (SimTrayError, OSError, ValueError) as e:
        return fail(f"Failed to read {args.file}: {e}")

    live = package.live_entries()
    data = {
        "path": package.path,
        "length": package.length,
        "last_write_time": package.last_write_time.isoformat(),
        "entry_count": len(package.entries),
        "live_entry_count": len(live),
        "entries": [
            {
                "key": entry.key_hex,
                "deleted": entry.is_deleted,
                "offset": entry.data_offset,
                "compressed_size": entry.compressed_size,
                "uncompressed_size": entry.uncompressed_size,
                "compression": _compression_label(entry.compression_code),
            }
            for entry in package.entries
        ],
    }

    lines = [
        f"Package: {package.path}",
        f"Size: {package.length:,} bytes  |  Modified: {package.last_write_time:%Y-%m-%d %H:%M:%S} UTC",
        f"Entries: {len(package.entries)}  ({len(live)} live)",
    ]
    if package.entries:
        lines.append("")
        lines.append(f"  {'TYPE:GROUP:INSTANCE':<37} {'OFFSET':>10} {'STORED':>10} {'SIZE':>10}  CODEC")
        lines.append(f"  {'─' * 80}")
        for entry in package.entries:
            codec = "deleted" if entry.is_deleted else _compression_label(entry.compression_code)
            lines.append(
                f"  {entry.key_hex:<37} {entry.data_offset:>10} {entry.compressed_size:>10} "
                f"{entry.uncompressed_size:>10}  {codec}"
            )

    emit(args, data, "\n".join(lines))
    return 0


# ─── saves ────────────────────────────────────────────────────────────────────

def cmd_saves(args, settings) -> int:
    """List primary save slots, newest first."""
    saves_root = args.directory or settings.saves_root
    if not saves_root:
        return fail("No saves folder given and none configured.")

    entries = SaveHouseholdCoordinator().get_save_files(saves_root)
    data = {
        "saves_root": saves_root,
        "saves": [
            {
                "file_name": entry.file_name,
                "path": entry.file_path,
                "last_write_time": entry.last_write_time.isoformat(),
                "length": entry.length_bytes,
            }
            for entry in entries
        ],
    }

    lines = [f"Saves in {saves_root}: {len(entries)}"]
    for entry in entries:
        lines.append(f"  {entry.display_label}")

    emit(args, data, "\n".join(lines))
    return 0


# ─── households ───────────────────────────────────────────────────────────────

def _household_dict(household) -> dict:
    return {
        "household_id": f"0x{household.household_id:016X}",
        "name": household.name,
        "description": household.description,
        "funds": household.funds,
        "home_zone_id": f"0x{household.home_zone_id:016X}",
        "home_zone_name": household.home_zone_name,
        "size": household.size,
        "can_export": household.can_export,
        "export_block_reason": household.export_block_reason,
        "members": [
            {
                "sim_id": f"0x{member.sim_id:016X}",
                "first_name": member.first_name,
                "last_name": member.last_name,
                "age": member.age,
                "gender": member.gender,
                "species": member.species,
                "human_like": member.is_human_like,
            }
            for member in household.members
        ],
    }


def cmd_households(args, settings) -> int:
    """Households of a save with their export verdict."""
    loaded = SaveHouseholdCoordinator().try_load_households(args.file)
    if not loaded.success:
        return fail(f"Failed to load {args.file}: {loaded.error}")

    snapshot = loaded.snapshot
    data = {
        "save": snapshot.save_path,
        "slot_name": snapshot.slot_name,
        "households": [_household_dict(h) for h in snapshot.households],
    }

    lines = [
        f"Save: {snapshot.save_path}",
        f"Slot: {snapshot.slot_name or '(unnamed)'}  |  Households: {len(snapshot.households)}",
    ]
    for household in snapshot.households:
        status = "exportable" if household.can_export else f"blocked: {household.export_block_reason}"
        lines.append("")
        lines.append(f"[{household.household_id:X}] {household.display_label}  §{household.funds:,}  "
                     f"{household.location_label}")
        lines.append(f"  {status}")
        for member in household.members:
            lines.append(f"    {member.full_name:<30} {member.subtitle}")

    emit(args, data, "\n".join(lines))
    return 0


# ─── export ───────────────────────────────────────────────────────────────────

def cmd_export(args, settings) -> int:
    """Export one household as a tray bundle."""
    export_root = args.destination or settings.export_root
    if not export_root:
        return fail("No export folder given and none configured.")

    request = ExportRequest(
        source_save_path=args.file,
        household_id=args.household_id,
        export_root=export_root,
        creator_name=args.creator_name if args.creator_name is not None else settings.creator_name,
        creator_id=args.creator_id if args.creator_id is not None else settings.creator_id,
        generate_thumbnails=settings.generate_thumbnails and not args.no_thumbnails,
    )

    result = SaveHouseholdCoordinator().export(request)
    data = {
        "succeeded": result.succeeded,
        "export_directory": result.export_directory,
        "instance_id": result.instance_id_hex,
        "written_files": list(result.written_files),
        "warnings": list(result.warnings),
        "error": result.error,
    }

    if result.succeeded:
        lines = [f"Exported to {result.export_directory}", f"Instance: {result.instance_id_hex}"]
        lines.extend(f"  {path}" for path in result.written_files)
        lines.extend(f"WARNING: {warning}" for warning in result.warnings)
        emit(args, data, "\n".join(lines))
        return 0

    if args.format == "table":
        return fail(f"Export failed: {result.error}")
    emit(args, data, "")
    return 1


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="simtray",
        description="Inspect Sims 4 save packages and export households "
                    "to tray bundles.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--format", choices=["table", "json", "yaml"],
                        default="table", help="Output format (default: table)")
    parser.add_argument("--config", help="Settings file (default: ~/.simtray/settings.json)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", help="Command to run")

    # inspect
    p = sub.add_parser("inspect", help="Show a package header and index")
    p.add_argument("file", help="Path to a .package or .save file")

    # saves
    p = sub.add_parser("saves", help="List primary save slots")
    p.add_argument("directory", nargs="?", help="Saves folder (default: configured saves_root)")

    # households
    p = sub.add_parser("households", help="List households of a save")
    p.add_argument("file", help="Path to Slot_XXXXXXXX.save")

    # export
    p = sub.add_parser("export", help="Export a household to a tray bundle")
    p.add_argument("file", help="Path to Slot_XXXXXXXX.save")
    p.add_argument("household_id", type=_household_id_arg, help="Household id (decimal or 0x hex)")
    p.add_argument("destination", nargs="?", help="Export folder (default: configured export_root)")
    p.add_argument("--creator-name", help="Creator name stored in the tray item")
    p.add_argument("--creator-id", type=int, help="Creator id stored in the tray item")
    p.add_argument("--no-thumbnails", action="store_true", help="Skip per-member .sgi placeholders")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        return 0

    loaded = load_settings(args.config)
    if not loaded.success:
        logger.warning("%s; using default settings", loaded.message)
    settings = loaded.settings

    commands = {
        "inspect": cmd_inspect,
        "saves": cmd_saves,
        "households": cmd_households,
        "export": cmd_export,
    }

    cmd_func = commands.get(args.command)
    if cmd_func is None:
        parser.print_help()
        return 1
    return cmd_func(args, settings)


if __name__ == "__main__":
    sys.exit(main())
