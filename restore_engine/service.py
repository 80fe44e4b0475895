from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from .assemble import AssemblyResult, assemble_image
from .catalog import load_catalog
from .data_models import Superblock, VolumeBackup
from .errors import JournalWriteError, OutputPathError, RestoreEngineError
from .journal import Clock, RestoreJournal, SystemClock
from .log import get_logger
from .store_paths import resolve_store_root, resolve_volume_path, validate_output_path
from .superblock import truncate_to_superblock


@dataclass(frozen=True)
class RestoreOptions:
    """
    Inputs of a single image restore run.

    Attributes
    ----------
    backup_root : Path
        Directory that contains ``backupstore``.
    volume_name : str
        Volume to reconstruct.
    output_path : Path
        Image file to create.
    overwrite : bool
        Replace an existing output file instead of refusing.
    journal_path : Path | None
        Optional JSONL journal recording run progress.
    """

    backup_root: Path
    volume_name: str
    output_path: Path
    overwrite: bool = False
    journal_path: Path | None = None


@dataclass(frozen=True)
class RestoreResult:
    """
    Outcome of a successful restore run.

    Attributes
    ----------
    output_path : Path
        The reconstructed image.
    volume_backup : VolumeBackup
        The replayed backup chain.
    assembly : AssemblyResult
        Replay summary.
    superblock : Superblock
        Geometry the image was truncated to.
    """

    output_path: Path
    volume_backup: VolumeBackup
    assembly: AssemblyResult
    superblock: Superblock


def load_volume(backup_root: Path, volume_name: str) -> VolumeBackup:
    """
    Locate a volume in the store under backup_root and load its backup chain.

    Raises
    ------
    OutputPathError
        If backup_root has no ``backupstore`` directory.
    VolumeNotFoundError
        If the volume is not in the store.
    CatalogError
        If a descriptor cannot be read or parsed.
    """
    store_root = resolve_store_root(backup_root)
    volume_path = resolve_volume_path(store_root, volume_name)
    get_logger(source="service", volume=volume_name).info(
        f"Found backups for {volume_name} at {volume_path}"
    )
    return load_catalog(volume_path)


def _open_output(output_path: Path, *, overwrite: bool) -> BinaryIO:
    if overwrite and output_path.exists():
        try:
            output_path.unlink()
        except OSError as exc:
            raise OutputPathError(f"Failed to remove existing output file {output_path}") from exc
    try:
        return output_path.open("x+b")
    except OSError as exc:
        raise OutputPathError(f"Failed to create output file {output_path}") from exc


def run_restore(options: RestoreOptions, *, clock: Clock | None = None) -> RestoreResult:
    """
    Reconstruct a volume image from its backup chain.

    Parameters
    ----------
    options:
        Run inputs.
    clock:
        Injectable clock used for deterministic journaling.

    Returns
    -------
    RestoreResult
        Summary of the completed run.

    Raises
    ------
    RestoreEngineError
        On any failure. A SizeDerivationError leaves the fully assembled,
        untruncated image on disk; other failures may leave a partial image.
    """
    log = get_logger(source="service", volume=options.volume_name)
    journal = None
    if options.journal_path is not None:
        journal = RestoreJournal(options.journal_path, clock=clock or SystemClock())
        journal.append(
            "restore_started",
            {
                "backup_root": str(options.backup_root),
                "volume": options.volume_name,
                "output_path": str(options.output_path),
                "overwrite": options.overwrite,
            },
        )

    try:
        output_path = validate_output_path(options.output_path, overwrite=options.overwrite)
        volume_backup = load_volume(options.backup_root, options.volume_name)
        if journal is not None:
            journal.append(
                "catalog_loaded",
                {
                    "volume_path": str(volume_backup.backup_path),
                    "backups": [backup.identifier for backup in volume_backup.backups],
                    "block_references": volume_backup.block_count,
                },
            )

        with _open_output(output_path, overwrite=options.overwrite) as handle:
            assembly = assemble_image(volume_backup, handle, journal=journal)
            log.info(
                f"Replayed {assembly.backups_replayed} backups, "
                f"{assembly.blocks_written} blocks, {assembly.bytes_written} bytes"
            )
            superblock = truncate_to_superblock(handle)
    except RestoreEngineError as exc:
        if journal is not None and not isinstance(exc, JournalWriteError):
            try:
                journal.append(
                    "restore_failed",
                    {"error_type": type(exc).__name__, "error": str(exc)},
                )
            except JournalWriteError as journal_exc:
                log.warning(f"Could not record failure in journal: {journal_exc}")
        raise

    log.info(
        f"Superblock: {superblock.block_count} blocks of size {superblock.block_size}, "
        f"truncated image to {superblock.total_size} bytes"
    )
    if journal is not None:
        journal.append(
            "image_truncated",
            {
                "block_count": superblock.block_count,
                "block_size": superblock.block_size,
                "total_size": superblock.total_size,
                "high_water_mark": assembly.high_water_mark,
            },
        )

    return RestoreResult(
        output_path=output_path,
        volume_backup=volume_backup,
        assembly=assembly,
        superblock=superblock,
    )
