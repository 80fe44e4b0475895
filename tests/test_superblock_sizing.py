from __future__ import annotations

from pathlib import Path

import pytest
from conftest import image_head, make_superblock

from restore_engine.errors import SizeDerivationError
from restore_engine.superblock import read_superblock, truncate_to_superblock


def test_read_superblock_uses_block_count_and_log_size(tmp_path: Path) -> None:
    path = tmp_path / "image.raw"
    path.write_bytes(image_head(block_count=100, log_block_size=2))

    with path.open("rb") as handle:
        superblock = read_superblock(handle)

    assert superblock.block_count == 100
    assert superblock.block_size == 4096
    assert superblock.total_size == 409600


def test_read_superblock_ignores_other_fields(tmp_path: Path) -> None:
    path = tmp_path / "image.raw"
    record = make_superblock(
        block_count=8, log_block_size=0, inodes_count=0xFFFFFFFF, first_data_block=1
    )
    path.write_bytes(b"\x00" * 1024 + record)

    with path.open("rb") as handle:
        superblock = read_superblock(handle)

    assert superblock.total_size == 8 * 1024


def test_truncate_shrinks_image_to_superblock_size(tmp_path: Path) -> None:
    path = tmp_path / "image.raw"
    path.write_bytes(image_head(block_count=100, log_block_size=2, length=500_000))

    with path.open("r+b") as handle:
        truncate_to_superblock(handle)

    assert path.stat().st_size == 409600


def test_truncate_extends_short_image_with_zeros(tmp_path: Path) -> None:
    path = tmp_path / "image.raw"
    head = image_head(block_count=4, log_block_size=0, length=2048)
    path.write_bytes(head)

    with path.open("r+b") as handle:
        superblock = truncate_to_superblock(handle)

    data = path.read_bytes()
    assert superblock.total_size == 4096
    assert len(data) == 4096
    assert data[:2048] == head
    assert data[2048:] == b"\x00" * 2048


@pytest.mark.parametrize("length", [0, 1024, 1024 + 27])
def test_short_image_fails_and_is_left_on_disk(tmp_path: Path, length: int) -> None:
    path = tmp_path / "image.raw"
    path.write_bytes(b"\x01" * length)

    with path.open("r+b") as handle:
        with pytest.raises(SizeDerivationError):
            truncate_to_superblock(handle)

    assert path.read_bytes() == b"\x01" * length


def test_implausible_block_size_exponent_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "image.raw"
    path.write_bytes(image_head(block_count=1, log_block_size=0xFFFFFFFF))

    with path.open("r+b") as handle:
        with pytest.raises(SizeDerivationError):
            read_superblock(handle)
