"""
savestate CLI - inspect and maintain a savestate folder.

Commands:
- savestate info: Show version and resolved settings
- savestate inspect: Report frame status of the main file and each backup slot
- savestate show: Load the savestate through the pipeline and print it
- savestate backup: Rotate backups so slot 0 holds the current main file
- savestate clear: Delete the main file, backups and debug export
"""

import argparse
import logging
import sys
from typing import Any

from pydantic import ValidationError

from savestate.config import StreamerSettings, load_settings
from savestate.errors import ConfigurationError
from savestate.frame import validate_frame
from savestate.models import DocumentSavestate
from savestate.serializers import PydanticJsonSerializer
from savestate.streamer import SavestateStreamer


def _resolve_settings(args: argparse.Namespace) -> StreamerSettings:
    """Load settings from --config and environment, then apply CLI flags."""
    settings = load_settings(getattr(args, "config", None))
    overrides: dict[str, Any] = {}
    if getattr(args, "folder", None):
        overrides["folder_path"] = args.folder
    if getattr(args, "backup_count", None) is not None:
        overrides["backup_count"] = args.backup_count
    if getattr(args, "no_validate", False):
        overrides["validate_files"] = False
    if not overrides:
        return settings
    try:
        return StreamerSettings.model_validate({**settings.model_dump(), **overrides})
    except ValidationError as e:
        raise ConfigurationError(message=f"Invalid command-line settings:\n{e}") from e


def _build_streamer(settings: StreamerSettings) -> SavestateStreamer[DocumentSavestate]:
    config = settings.to_config(DocumentSavestate())
    streamer: SavestateStreamer[DocumentSavestate] = SavestateStreamer(config)
    streamer.initialize(PydanticJsonSerializer(DocumentSavestate))
    return streamer


def cmd_info(args: argparse.Namespace) -> int:
    """Show version and resolved settings."""
    from savestate import __version__

    settings = _resolve_settings(args)
    print(f"savestate {__version__}")
    print()
    print("Settings:")
    print(f"  Folder:          {settings.folder_path}")
    print(f"  Backup count:    {settings.backup_count}")
    print(f"  Validate files:  {settings.validate_files}")
    print(f"  Debug mode:      {settings.debug_mode}")
    print(f"  Max version:     {settings.max_version or 'unbounded'}")
    return 0


def cmd_inspect(args: argparse.Namespace) -> int:
    """Report frame status of the main file and every backup slot."""
    settings = _resolve_settings(args)
    config = settings.to_config(DocumentSavestate())
    streamer: SavestateStreamer[DocumentSavestate] = SavestateStreamer(config)

    entries = [("main", streamer.file_path)]
    entries += [(f"backup{i}", streamer.backup_path(i)) for i in range(settings.backup_count)]

    print(f"Folder: {streamer.folder}")
    for label, path in entries:
        if not path.exists():
            print(f"  {label:<8} missing")
            continue
        data = path.read_bytes()
        if not settings.validate_files:
            print(f"  {label:<8} {len(data)} bytes (raw, unvalidated)")
            continue
        result = validate_frame(data, max_version=settings.max_version)
        if result.ok:
            print(f"  {label:<8} {len(data)} bytes, v{result.version}, ok")
        else:
            print(f"  {label:<8} {len(data)} bytes, INVALID ({result.reason})")
    return 0


def cmd_show(args: argparse.Namespace) -> int:
    """Load the savestate and print it with the load outcome."""
    streamer = _build_streamer(_resolve_settings(args))
    result = streamer.load_with_report()

    print(f"Outcome: {result.outcome.value} (source: {result.source})")
    print(f"Version: {result.state.version}")
    print(result.state.model_dump_json(indent=2))
    if args.verbose:
        print()
        print("Diagnostics:")
        for message in result.messages:
            print(f"  - {message}")
    return 0


def cmd_backup(args: argparse.Namespace) -> int:
    """Rotate backups so slot 0 holds the current main file."""
    streamer = _build_streamer(_resolve_settings(args))
    if streamer.create_backup():
        print(f"Backup created at {streamer.backup_path(0)}")
        return 0
    print("No backup created.", file=sys.stderr)
    return 1


def cmd_clear(args: argparse.Namespace) -> int:
    """Delete every save file in the folder."""
    streamer = _build_streamer(_resolve_settings(args))
    if not args.yes:
        print(f"Refusing to delete saves in {streamer.folder} without --yes", file=sys.stderr)
        return 1
    removed = streamer.delete_all_saves()
    print(f"Deleted {removed} file(s) from {streamer.folder}")
    return 0


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-f",
        "--folder",
        type=str,
        help="Save folder (default: from config, SAVESTATE_FOLDER_PATH or per-user data dir)",
    )
    parser.add_argument(
        "--backup-count",
        type=int,
        help="Number of backup slots (0-5)",
    )
    parser.add_argument(
        "--no-validate",
        action="store_true",
        help="Treat files as raw payloads without a frame header",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="savestate",
        description="savestate - inspect and maintain a savestate folder",
    )

    try:
        from savestate import __version__

        version_str = f"%(prog)s {__version__}"
    except ImportError:
        version_str = "%(prog)s 0.3.0"

    parser.add_argument("--version", action="version", version=version_str)
    parser.add_argument("--config", type=str, help="Path to YAML configuration file")
    parser.add_argument(
        "--log-level",
        type=str,
        default="warning",
        choices=["debug", "info", "warning", "error"],
        help="Log level (default: warning)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    info_parser = subparsers.add_parser("info", help="Show version and settings")
    _add_common_arguments(info_parser)

    inspect_parser = subparsers.add_parser("inspect", help="Check main file and backup frames")
    _add_common_arguments(inspect_parser)

    show_parser = subparsers.add_parser("show", help="Load and print the savestate")
    _add_common_arguments(show_parser)
    show_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Print load diagnostics",
    )

    backup_parser = subparsers.add_parser("backup", help="Create a backup of the main file")
    _add_common_arguments(backup_parser)

    clear_parser = subparsers.add_parser("clear", help="Delete all save files")
    _add_common_arguments(clear_parser)
    clear_parser.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Confirm deletion",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(levelname)s %(name)s: %(message)s",
    )

    commands = {
        "info": cmd_info,
        "inspect": cmd_inspect,
        "show": cmd_show,
        "backup": cmd_backup,
        "clear": cmd_clear,
    }
    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        return 0

    try:
        return handler(args)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
