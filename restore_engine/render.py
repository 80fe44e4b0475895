"""
Rendering for volume descriptions.

This module summarizes a loaded backup chain and renders it to deterministic,
human-readable text.
"""

from __future__ import annotations

from dataclasses import dataclass

from restore_engine.data_models import VolumeBackup

# The store splits volumes into blocks of this size before compressing them.
STORE_BLOCK_SIZE = 2 * 1024 * 1024


@dataclass(frozen=True, slots=True)
class BackupSummary:
    """Per-backup line of a volume description."""

    identifier: str
    created_at: str
    size: int
    compression: str
    block_count: int


@dataclass(frozen=True, slots=True)
class VolumeDescription:
    """
    Summary of a volume's backup chain.

    Attributes
    ----------
    name:
        Volume name.
    backup_path:
        Volume directory inside the store.
    backups:
        One summary per backup, in replay order.
    block_count:
        Total block references across all backups.
    approximate_size:
        Cumulative uncompressed bytes, assuming every block is a full store block.
    """

    name: str
    backup_path: str
    backups: tuple[BackupSummary, ...]
    block_count: int
    approximate_size: int


def describe_volume(volume_backup: VolumeBackup) -> VolumeDescription:
    """Summarize a loaded backup chain."""
    summaries = tuple(
        BackupSummary(
            identifier=backup.identifier,
            created_at=backup.created_at.isoformat(),
            size=backup.size,
            compression=backup.compression,
            block_count=len(backup.blocks),
        )
        for backup in volume_backup.backups
    )
    block_count = volume_backup.block_count
    return VolumeDescription(
        name=volume_backup.name,
        backup_path=str(volume_backup.backup_path),
        backups=summaries,
        block_count=block_count,
        approximate_size=block_count * STORE_BLOCK_SIZE,
    )


def render_volume_description(
    volume_backup: VolumeBackup,
    *,
    include_blocks: bool = False,
) -> str:
    """
    Render a volume's backup chain as deterministic plain text.

    Parameters
    ----------
    volume_backup:
        The loaded backup chain.
    include_blocks:
        If True, list every block reference under its backup.

    Returns
    -------
    str
        Text report.
    """
    description = describe_volume(volume_backup)

    lines: list[str] = []
    lines.append(f"Volume: {description.name}")
    lines.append(f"Location: {description.backup_path}")
    lines.append(f"Number of Backups: {len(description.backups)}")

    for summary, backup in zip(description.backups, volume_backup.backups):
        lines.append("")
        lines.append(f"Backup: {summary.identifier}")
        lines.append(f"Created: {summary.created_at}")
        lines.append(f"Size: {summary.size}")
        lines.append(f"Compression: {summary.compression or '(none declared)'}")
        lines.append(f"Blocks: {summary.block_count}")
        if include_blocks:
            for block in backup.blocks:
                lines.append(f"[block] Checksum: {block.checksum}; Offset: {block.offset}")

    lines.append("")
    lines.append(f"Total block references: {description.block_count}")
    lines.append(
        f"Approximate Cumulative Size: {description.approximate_size // (1024 * 1024)}mb"
    )
    return "\n".join(lines)
