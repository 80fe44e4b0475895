"""Data models for the restore engine.

This module defines the typed, immutable representation of a volume's backup
chain as read from the store's ``backups/*.cfg`` descriptors, plus the parsed
filesystem superblock used to size the final image.

Descriptor payloads look like::

    {
        "CreatedTime": "2023-01-01T00:00:00Z",
        "Size": "1024",
        "CompressionMethod": "lz4",
        "Blocks": [{"Offset": 0, "BlockChecksum": "..."}]
    }
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping, Self

# RFC 3339 date-time: date, "T", time with optional fraction, and a mandatory zone.
_RFC3339_PATTERN = re.compile(
    r"[0-9]{4}-[0-9]{2}-[0-9]{2}[Tt][0-9]{2}:[0-9]{2}:[0-9]{2}"
    r"(\.[0-9]+)?([Zz]|[+-][0-9]{2}:[0-9]{2})"
)
# ASCII digits only, matched against the whole string (no trailing newline).
_DECIMAL_PATTERN = re.compile(r"[+-]?[0-9]+")


def datetime_from_rfc3339(value: str) -> datetime:
    """Parse an RFC 3339 timestamp as an aware datetime.

    Parameters
    ----------
    value
        Timestamp such as ``2023-01-01T00:00:00Z`` or
        ``2023-01-01T02:00:00.5+02:00``.

    Returns
    -------
    datetime
        A timezone-aware datetime.

    Raises
    ------
    ValueError
        If the text is not an RFC 3339 date-time with a zone designator.
    """

    if not isinstance(value, str) or not _RFC3339_PATTERN.fullmatch(value):
        raise ValueError(f"not an RFC 3339 timestamp: {value!r}")
    normalized = value.upper()
    if normalized.endswith("Z"):
        normalized = normalized[:-1] + "+00:00"
    return datetime.fromisoformat(normalized)


def int_from_decimal_text(value: str) -> int:
    """Parse a decimal integer carried as JSON text (e.g. ``"1024"``).

    Raises
    ------
    ValueError
        If the value is not a string holding a base-10 integer.
    """

    if not isinstance(value, str) or not _DECIMAL_PATTERN.fullmatch(value):
        raise ValueError(f"not a decimal integer string: {value!r}")
    return int(value)


def _require_keys(payload: Mapping[str, Any], keys: set[str], *, context: str) -> None:
    missing = keys.difference(payload.keys())
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ValueError(f"Missing required keys in {context}: {missing_str}")


@dataclass(frozen=True, slots=True)
class Block:
    """One changed block of a backup.

    Attributes
    ----------
    offset
        Absolute byte offset of the block in the reconstructed image.
    checksum
        Store-wide content address of the block's compressed payload.
    """

    offset: int
    checksum: str

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> Self:
        """Construct a :class:`Block` from a descriptor ``Blocks`` entry."""

        if not isinstance(payload, Mapping):
            raise ValueError(f"block entry must be an object, got {type(payload).__name__}")
        _require_keys(payload, {"Offset", "BlockChecksum"}, context="block")
        offset = payload["Offset"]
        checksum = payload["BlockChecksum"]
        if isinstance(offset, bool) or not isinstance(offset, int):
            raise ValueError(f"block Offset must be an integer, got {offset!r}")
        if not isinstance(checksum, str):
            raise ValueError(f"block BlockChecksum must be a string, got {checksum!r}")
        return cls(offset=offset, checksum=checksum)

    def to_dict(self) -> dict[str, Any]:
        """Convert this model to descriptor form."""

        return {"Offset": self.offset, "BlockChecksum": self.checksum}


@dataclass(frozen=True, slots=True)
class Backup:
    """One point-in-time incremental snapshot of a volume.

    Attributes
    ----------
    identifier
        Path of the descriptor this backup was read from.
    created_at
        Creation time (timezone-aware).
    size
        Declared volume size in bytes.
    compression
        Compression method tag, kept verbatim; validated when blocks are decoded.
    blocks
        Changed blocks in descriptor order.
    """

    identifier: str
    created_at: datetime
    size: int
    compression: str
    blocks: tuple[Block, ...]

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any], *, identifier: str) -> Self:
        """Construct a :class:`Backup` from a parsed descriptor.

        Raises
        ------
        ValueError
            If a required key is missing or a field is malformed.
        """

        if not isinstance(payload, Mapping):
            raise ValueError("backup descriptor must be a JSON object")
        _require_keys(payload, {"CreatedTime", "Size"}, context="backup descriptor")

        compression = payload.get("CompressionMethod", "")
        if not isinstance(compression, str):
            raise ValueError(f"CompressionMethod must be a string, got {compression!r}")

        raw_blocks = payload.get("Blocks")
        if raw_blocks is None:
            raw_blocks = []
        if not isinstance(raw_blocks, list):
            raise ValueError("Blocks must be a list")

        return cls(
            identifier=identifier,
            created_at=datetime_from_rfc3339(payload["CreatedTime"]),
            size=int_from_decimal_text(payload["Size"]),
            compression=compression,
            blocks=tuple(Block.from_dict(entry) for entry in raw_blocks),
        )

    @property
    def name(self) -> str:
        """Descriptor file name without its ``.cfg`` suffix."""

        return Path(self.identifier).stem


@dataclass(frozen=True, slots=True)
class VolumeBackup:
    """A volume's complete backup chain.

    Attributes
    ----------
    name
        Volume name.
    backup_path
        Volume directory inside the store.
    backups
        Backups in ascending creation order.
    """

    name: str
    backup_path: Path
    backups: tuple[Backup, ...]

    @property
    def block_count(self) -> int:
        """Total number of block references across all backups."""

        return sum(len(backup.blocks) for backup in self.backups)


@dataclass(frozen=True, slots=True)
class Superblock:
    """Image geometry derived from an ext2/3/4 superblock."""

    block_count: int
    block_size: int

    @property
    def total_size(self) -> int:
        """Exact byte length of the filesystem image."""

        return self.block_count * self.block_size
