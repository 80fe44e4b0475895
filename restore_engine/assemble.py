from __future__ import annotations

from dataclasses import dataclass
from typing import BinaryIO

from .compression import decompress_block, parse_compression_method
from .data_models import Backup, Block, VolumeBackup
from .errors import (
    BlockDecodeError,
    BlockReadError,
    ImageWriteError,
    UnsupportedCompressionError,
)
from .journal import RestoreJournal
from .log import get_logger
from .store_paths import resolve_block_path

# Checksums are shortened to this many characters in progress lines.
_CHECKSUM_PREVIEW = 20


@dataclass(frozen=True)
class AssemblyResult:
    """
    Summary of a completed replay.

    Attributes
    ----------
    backups_replayed : int
        Number of backups replayed onto the image.
    blocks_written : int
        Number of block writes performed (overwritten offsets count every time).
    bytes_written : int
        Total decompressed bytes written.
    high_water_mark : int
        Largest ``offset + length`` written, i.e. the untruncated image extent.
    """

    backups_replayed: int
    blocks_written: int
    bytes_written: int
    high_water_mark: int


def write_block_at(handle: BinaryIO, offset: int, data: bytes) -> None:
    """
    Write a buffer at an absolute offset of the output image.

    Only bytes ``[offset, offset + len(data))`` change. Nothing is read or
    merged; a later write to the same range replaces the earlier one.

    Raises
    ------
    ImageWriteError
        If the seek or the write fails, or fewer bytes than requested land.
    """
    if offset < 0:
        raise ImageWriteError(f"Negative block offset {offset}")
    try:
        handle.seek(offset)
        written = handle.write(data)
    except (OSError, ValueError) as exc:
        raise ImageWriteError(f"Failed to write {len(data)} bytes at offset {offset}: {exc}") from exc
    if written is not None and written != len(data):
        raise ImageWriteError(
            f"Short write at offset {offset}: wrote {written} of {len(data)} bytes"
        )


def _read_payload(volume_backup: VolumeBackup, backup: Backup, block: Block) -> bytes:
    block_path = resolve_block_path(volume_backup.backup_path, block.checksum)
    try:
        return block_path.read_bytes()
    except OSError as exc:
        raise BlockReadError(
            f"Failed to read block {block.checksum} of backup {backup.identifier}: {block_path}"
        ) from exc


def assemble_image(
    volume_backup: VolumeBackup,
    handle: BinaryIO,
    *,
    journal: RestoreJournal | None = None,
) -> AssemblyResult:
    """
    Replay a volume's backup chain onto an open output image.

    Backups are replayed in the order given by ``volume_backup.backups``
    (ascending creation time) and blocks in descriptor order, so a later
    backup's block overwrites an earlier one at the same offset.

    Parameters
    ----------
    volume_backup:
        The loaded backup chain.
    handle:
        Output image opened for binary read/write. It is only written here.
    journal:
        Optional append-only execution journal.

    Returns
    -------
    AssemblyResult
        Replay summary.

    Raises
    ------
    BlockNotFoundError
        If a block payload is missing from the store.
    BlockReadError
        If a block payload cannot be read.
    BlockDecodeError
        If a payload cannot be decoded or the backup declares an unsupported method.
    ImageWriteError
        If writing to the output image fails.
    """
    log = get_logger(source="assemble", volume=volume_backup.name)
    total_backups = len(volume_backup.backups)
    blocks_written = 0
    bytes_written = 0
    high_water_mark = 0

    for backup_index, backup in enumerate(volume_backup.backups, start=1):
        if not backup.blocks:
            log.info(f"[pass {backup_index}/{total_backups}] {backup.name} has no blocks")
            continue

        try:
            method = parse_compression_method(backup.compression)
        except UnsupportedCompressionError as exc:
            raise UnsupportedCompressionError(f"Backup {backup.identifier}: {exc}") from exc

        log.info(
            f"[pass {backup_index}/{total_backups}] Replaying {backup.name} "
            f"({len(backup.blocks)} blocks, {method.value}, created {backup.created_at.isoformat()})"
        )
        if journal is not None:
            journal.append(
                "backup_replay_started",
                {
                    "backup": backup.identifier,
                    "pass": backup_index,
                    "blocks": len(backup.blocks),
                    "compression": method.value,
                },
            )

        total_blocks = len(backup.blocks)
        backup_bytes = 0
        for block_index, block in enumerate(backup.blocks, start=1):
            percentage = block_index / total_blocks * 100
            log.debug(
                f"[pass {backup_index}/{total_backups}] [{percentage:.2f}%] "
                f"Block {block.checksum[:_CHECKSUM_PREVIEW]}* "
                f"{{offset={block.offset}}} {{{method.value}}}"
            )

            payload = _read_payload(volume_backup, backup, block)
            try:
                data = decompress_block(payload, method)
            except BlockDecodeError as exc:
                raise BlockDecodeError(
                    f"Failed to decompress block {block.checksum} of backup {backup.identifier}: {exc}"
                ) from exc

            try:
                write_block_at(handle, block.offset, data)
            except ImageWriteError as exc:
                raise ImageWriteError(f"Block {block.checksum}: {exc}") from exc

            log.trace(f"Wrote {len(data)} bytes for {block.checksum} at {block.offset}")
            blocks_written += 1
            backup_bytes += len(data)
            high_water_mark = max(high_water_mark, block.offset + len(data))

        bytes_written += backup_bytes
        if journal is not None:
            journal.append(
                "backup_replayed",
                {
                    "backup": backup.identifier,
                    "pass": backup_index,
                    "bytes_written": backup_bytes,
                },
            )

    try:
        handle.flush()
    except OSError as exc:
        raise ImageWriteError(f"Failed to flush output image: {exc}") from exc

    return AssemblyResult(
        backups_replayed=total_backups,
        blocks_written=blocks_written,
        bytes_written=bytes_written,
        high_water_mark=high_water_mark,
    )
