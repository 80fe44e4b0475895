"""
Final image sizing from the embedded ext2/3/4 superblock.

The superblock starts at byte 1024 of the image. Its first seven fields are
little-endian uint32 values:

    s_inodes_count, s_blocks_count, s_r_blocks_count, s_free_blocks_count,
    s_free_inodes_count, s_first_data_block, s_log_block_size

Only the block count and the block size exponent are used.
"""

from __future__ import annotations

import struct
from typing import BinaryIO

from .data_models import Superblock
from .errors import SizeDerivationError

SUPERBLOCK_OFFSET = 1024
_SUPERBLOCK_FIELDS = struct.Struct("<7I")
# ext4 itself caps the exponent at 6 (64 KiB blocks); values above this are corrupt.
_MAX_LOG_BLOCK_SIZE = 16


def read_superblock(handle: BinaryIO) -> Superblock:
    """
    Read the superblock of an assembled image.

    Parameters
    ----------
    handle:
        Image opened for binary reading.

    Returns
    -------
    Superblock
        Block count and block size (``1024 << s_log_block_size``).

    Raises
    ------
    SizeDerivationError
        If the image is too short to hold the record or cannot be read.
    """
    try:
        handle.seek(SUPERBLOCK_OFFSET)
        raw = handle.read(_SUPERBLOCK_FIELDS.size)
    except OSError as exc:
        raise SizeDerivationError(f"Failed to read superblock: {exc}") from exc

    if raw is None or len(raw) < _SUPERBLOCK_FIELDS.size:
        got = 0 if raw is None else len(raw)
        raise SizeDerivationError(
            f"Image too short for a superblock: read {got} of {_SUPERBLOCK_FIELDS.size} "
            f"bytes at offset {SUPERBLOCK_OFFSET}"
        )

    (
        _inodes_count,
        blocks_count,
        _r_blocks_count,
        _free_blocks_count,
        _free_inodes_count,
        _first_data_block,
        log_block_size,
    ) = _SUPERBLOCK_FIELDS.unpack(raw)

    if log_block_size > _MAX_LOG_BLOCK_SIZE:
        raise SizeDerivationError(f"Implausible superblock block size exponent: {log_block_size}")

    return Superblock(block_count=blocks_count, block_size=1024 << log_block_size)


def truncate_to_superblock(handle: BinaryIO) -> Superblock:
    """
    Truncate an assembled image to the size its superblock declares.

    The file is cut (or zero-extended) to exactly ``block_count * block_size``
    bytes. On failure the image is left as assembled.

    Raises
    ------
    SizeDerivationError
        If the superblock cannot be read or the truncate fails.
    """
    superblock = read_superblock(handle)
    try:
        handle.truncate(superblock.total_size)
        handle.flush()
    except (OSError, OverflowError) as exc:
        raise SizeDerivationError(
            f"Failed to truncate image to {superblock.total_size} bytes: {exc}"
        ) from exc
    return superblock
