"""
Shared fixtures for restore engine tests.

Tests build real backup stores on disk under ``tmp_path`` with lz4 and gzip
payloads, using the same layout the engine reads.
"""

from __future__ import annotations

import json
import struct
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterable

import pytest

from restore_engine.compression import CompressionMethod, compress_block


@dataclass(frozen=True)
class FixedClock:
    """Clock pinned to one aware instant, for reproducible journal timestamps."""

    fixed_time: datetime

    def now(self) -> datetime:
        return self.fixed_time


def make_superblock(
    *,
    block_count: int,
    log_block_size: int,
    inodes_count: int = 128,
    first_data_block: int = 0,
) -> bytes:
    """Return the first seven superblock fields as stored on disk."""
    return struct.pack(
        "<7I",
        inodes_count,
        block_count,
        0,
        0,
        0,
        first_data_block,
        log_block_size,
    )


def image_head(*, block_count: int, log_block_size: int, length: int = 4096) -> bytes:
    """Return the start of an image holding a superblock at byte 1024."""
    head = bytearray(length)
    record = make_superblock(block_count=block_count, log_block_size=log_block_size)
    head[1024 : 1024 + len(record)] = record
    return bytes(head)


class StoreBuilder:
    """Writes a backup store tree rooted at ``<backup_root>/backupstore``."""

    def __init__(self, backup_root: Path) -> None:
        self.backup_root = backup_root
        self.store_root = backup_root / "backupstore"
        self.store_root.mkdir(parents=True, exist_ok=True)

    def volume(self, name: str, shards: tuple[str, str] = ("3f", "a1")) -> Path:
        path = self.store_root / "volumes" / shards[0] / shards[1] / name
        (path / "backups").mkdir(parents=True, exist_ok=True)
        (path / "blocks").mkdir(parents=True, exist_ok=True)
        return path

    def block(
        self,
        volume_path: Path,
        checksum: str,
        data: bytes,
        method: CompressionMethod = CompressionMethod.LZ4,
        shards: tuple[str, str] | None = None,
    ) -> Path:
        first, second = shards or (checksum[:2] or "00", checksum[2:4] or "00")
        path = volume_path / "blocks" / first / second / f"{checksum}.blk"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(compress_block(data, method))
        return path

    def backup(
        self,
        volume_path: Path,
        file_name: str,
        *,
        created: str,
        blocks: Iterable[tuple[int, str]],
        size: str = "1048576",
        compression: str = "lz4",
    ) -> Path:
        payload = {
            "Name": file_name,
            "CreatedTime": created,
            "Size": size,
            "CompressionMethod": compression,
            "Blocks": [{"Offset": offset, "BlockChecksum": checksum} for offset, checksum in blocks],
        }
        path = volume_path / "backups" / f"{file_name}.cfg"
        path.write_text(json.dumps(payload), encoding="utf-8")
        return path


@pytest.fixture
def store(tmp_path: Path) -> StoreBuilder:
    """An empty backup store under ``tmp_path / 'root'``."""
    return StoreBuilder(tmp_path / "root")
