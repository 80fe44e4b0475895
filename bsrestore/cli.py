"""
Command-line interface for bsrestore.

Notes
-----
The CLI is intentionally thin. It parses arguments, asks for overwrite
confirmation, and delegates to engine modules.

Exit codes
----------
- 0: success
- 1: restore failed (missing volume or block, bad descriptor, decode or write
  failure, superblock sizing failure) or overwrite declined
- 2: unusable backup root or output path
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Callable

from restore_engine.build_info import current_build_info
from restore_engine.errors import OutputPathError, RestoreEngineError, SizeDerivationError
from restore_engine.log import setup_logging
from restore_engine.render import render_volume_description
from restore_engine.service import RestoreOptions, load_volume, run_restore
from restore_engine.store_paths import (
    BACKUP_ROOT_ENV_VAR,
    default_backup_root,
    list_volumes,
    resolve_store_root,
)


def _add_backup_root_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--backup-root",
        type=Path,
        default=None,
        help=f"Directory containing 'backupstore'. Defaults to ${BACKUP_ROOT_ENV_VAR}.",
    )


def _add_logging_arguments(parser: argparse.ArgumentParser) -> None:
    level = parser.add_mutually_exclusive_group(required=False)
    level.add_argument("--debug", action="store_true", help="Log per-block progress.")
    level.add_argument("--trace", action="store_true", help="Log every payload read and write.")
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write DEBUG+ log records to this file.",
    )


def build_parser() -> argparse.ArgumentParser:
    """
    Build and return the top-level argument parser.

    Returns
    -------
    argparse.ArgumentParser
        Configured parser.
    """
    parser = argparse.ArgumentParser(
        prog="bsrestore",
        description="Reconstruct a raw volume image from an incremental backup store",
    )
    parser.add_argument("--version", action="store_true", help="Print version and commit")
    sub = parser.add_subparsers(dest="command", required=False)

    restore_p = sub.add_parser(
        "restore",
        help="Replay a volume's backups into a raw image file",
    )
    _add_backup_root_argument(restore_p)
    restore_p.add_argument("--volume", required=True, help="Volume name to restore")
    restore_p.add_argument("--outfile", required=True, type=Path, help="Output image file")
    restore_p.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing output file without asking.",
    )
    restore_p.add_argument(
        "--journal",
        type=Path,
        default=None,
        help="Write a JSONL execution journal to this path.",
    )
    _add_logging_arguments(restore_p)

    describe_p = sub.add_parser("describe", help="Describe a volume's backup chain")
    _add_backup_root_argument(describe_p)
    describe_p.add_argument("--volume", required=True, help="Volume name to describe")
    describe_p.add_argument(
        "--blocks",
        action="store_true",
        help="List every block reference of every backup.",
    )
    _add_logging_arguments(describe_p)

    list_p = sub.add_parser("list-volumes", help="List volumes in the backup store")
    _add_backup_root_argument(list_p)
    _add_logging_arguments(list_p)

    return parser


def _confirm_overwrite(output_path: Path, prompt: Callable[[str], str]) -> bool:
    print(f"Output file {output_path} already exists")
    try:
        answer = prompt("Do you want to overwrite it? [y/n] ")
    except EOFError:
        print("Failed to read input")
        return False
    return answer.strip().lower() == "y"


def main(argv: list[str] | None = None, *, prompt: Callable[[str], str] = input) -> int:
    """
    CLI entry point.

    Parameters
    ----------
    argv:
        Optional argument vector. If None, argparse uses sys.argv.
    prompt:
        Line reader used for the overwrite confirmation.

    Returns
    -------
    int
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(current_build_info().render())
        return 0

    if args.command is None:
        parser.print_help()
        return 2

    setup_logging(debug=args.debug, trace=args.trace, log_file=args.log_file)

    backup_root = args.backup_root or default_backup_root()
    if backup_root is None:
        print(f"ERROR: --backup-root is required when ${BACKUP_ROOT_ENV_VAR} is not set.")
        return 2

    try:
        if args.command == "list-volumes":
            for volume in list_volumes(resolve_store_root(backup_root)):
                print(volume.path)
            return 0

        if args.command == "describe":
            volume_backup = load_volume(backup_root, args.volume)
            print(render_volume_description(volume_backup, include_blocks=args.blocks))
            return 0

        if args.command == "restore":
            overwrite = bool(args.force)
            if args.outfile.is_file() and not overwrite:
                if not _confirm_overwrite(args.outfile, prompt):
                    print("Aborting")
                    return 1
                overwrite = True

            result = run_restore(
                RestoreOptions(
                    backup_root=backup_root,
                    volume_name=args.volume,
                    output_path=args.outfile,
                    overwrite=overwrite,
                    journal_path=args.journal,
                )
            )
            print(
                f"Superblock: {result.superblock.block_count} blocks "
                f"of size {result.superblock.block_size}"
            )
            print(f"Total size of backup: {result.superblock.total_size}")
            print("Restore Complete. Filesystem can now be mounted")
            print(f"Run 'sudo mount -o loop {result.output_path} /mountpoint' to mount the image")
            return 0
    except OutputPathError as exc:
        print(f"ERROR: {exc}")
        return 2
    except SizeDerivationError as exc:
        print(f"ERROR: {exc}")
        print(
            "Failed to read superblock. This tool only works with ext filesystems. "
            "The raw image has been created, but you may need to resize the filesystem "
            "or extend the data with zeroes."
        )
        return 1
    except RestoreEngineError as exc:
        print(f"ERROR: {exc}")
        return 1

    parser.print_help()
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
