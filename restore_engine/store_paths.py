"""
Backup store path resolution and output path safety gates.

The backup store keeps volumes and block payloads in a two-level sharded tree:

    <backup_root>/backupstore/volumes/<shard>/<shard>/<volume_name>/
    <volume_dir>/blocks/<shard>/<shard>/<checksum>.blk

Shard names are opaque; nothing here derives them from the stored name. Every
lookup is a bounded enumeration of exactly two directory levels followed by an
exact name match. When a lookup matches more than once, the lexicographically
smallest path wins.

The store is only ever read. The single write-side check in this module is
the output image path gate.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator

from .errors import BlockNotFoundError, OutputPathError, StoreIOError, VolumeNotFoundError
from .log import get_logger

STORE_DIRNAME = "backupstore"
VOLUMES_DIRNAME = "volumes"
BLOCKS_DIRNAME = "blocks"
BLOCK_SUFFIX = ".blk"

BACKUP_ROOT_ENV_VAR = "BSRESTORE_BACKUP_ROOT"

log = get_logger(source="paths")


@dataclass(frozen=True, slots=True)
class VolumeLocation:
    """
    A volume directory discovered inside the store.

    Attributes
    ----------
    name:
        Volume name (the final path component).
    path:
        Absolute path to the volume directory.
    """

    name: str
    path: Path


def default_backup_root() -> Path | None:
    """Return the backup root configured through the environment, if any."""
    value = os.environ.get(BACKUP_ROOT_ENV_VAR, "").strip()
    if not value:
        return None
    return Path(value).expanduser()


def resolve_store_root(backup_root: Path) -> Path:
    """
    Return the ``backupstore`` directory under a backup root.

    Raises
    ------
    OutputPathError
        If the backup root does not contain a ``backupstore`` directory.
    """
    store_root = Path(backup_root).expanduser() / STORE_DIRNAME
    if not store_root.is_dir():
        raise OutputPathError(f"Backup root {backup_root} does not contain {STORE_DIRNAME}")
    return store_root


def _sorted_subdirectories(directory: Path) -> list[Path]:
    try:
        entries = list(directory.iterdir())
    except (FileNotFoundError, NotADirectoryError):
        return []
    except OSError as exc:
        raise StoreIOError(f"Failed to list store directory: {directory}") from exc
    return sorted((entry for entry in entries if entry.is_dir()), key=lambda p: p.name)


def _iter_sharded_entries(shard_root: Path) -> Iterator[Path]:
    """Yield every ``<shard_root>/<shard>/<shard>`` directory in name order."""
    for first in _sorted_subdirectories(shard_root):
        yield from _sorted_subdirectories(first)


def _is_plain_name(name: str) -> bool:
    if not name or name in {".", ".."}:
        return False
    return not any(sep and sep in name for sep in ("/", os.sep, os.altsep))


def _find_sharded(
    shard_root: Path,
    entry_name: str,
    accept: Callable[[Path], bool],
) -> list[Path]:
    matches: list[Path] = []
    if not _is_plain_name(entry_name):
        return matches
    for shard in _iter_sharded_entries(shard_root):
        candidate = shard / entry_name
        if accept(candidate):
            matches.append(candidate)
    return sorted(matches, key=lambda p: p.as_posix())


def _pick_first(matches: list[Path], *, what: str) -> Path:
    if len(matches) > 1:
        log.warning(
            f"{what} found at {len(matches)} locations, using {matches[0]} "
            f"(others: {', '.join(str(p) for p in matches[1:])})"
        )
    return matches[0]


def resolve_volume_path(store_root: Path, volume_name: str) -> Path:
    """
    Locate a volume directory inside the sharded ``volumes`` tree.

    Parameters
    ----------
    store_root:
        The ``backupstore`` directory.
    volume_name:
        Exact name of the volume directory.

    Returns
    -------
    pathlib.Path
        Path to the volume directory.

    Raises
    ------
    VolumeNotFoundError
        If no ``volumes/<shard>/<shard>/<volume_name>`` directory exists.
    """
    matches = _find_sharded(store_root / VOLUMES_DIRNAME, volume_name, Path.is_dir)
    if not matches:
        raise VolumeNotFoundError(f"could not find backup for {volume_name}")
    return _pick_first(matches, what=f"Volume {volume_name}")


def resolve_block_path(volume_path: Path, checksum: str) -> Path:
    """
    Locate the payload file for a block checksum.

    Parameters
    ----------
    volume_path:
        The volume directory returned by :func:`resolve_volume_path`.
    checksum:
        Content-addressed block checksum.

    Returns
    -------
    pathlib.Path
        Path to ``blocks/<shard>/<shard>/<checksum>.blk``.

    Raises
    ------
    BlockNotFoundError
        If no payload file exists for the checksum.
    """
    file_name = f"{checksum}{BLOCK_SUFFIX}"
    matches = _find_sharded(volume_path / BLOCKS_DIRNAME, file_name, Path.is_file)
    if not matches:
        raise BlockNotFoundError(f"could not find block {checksum}")
    return _pick_first(matches, what=f"Block {checksum}")


def list_volumes(store_root: Path) -> list[VolumeLocation]:
    """
    Enumerate every volume directory in the store.

    Returns
    -------
    list[VolumeLocation]
        Volumes sorted by name, then by path.
    """
    volumes: list[VolumeLocation] = []
    for shard in _iter_sharded_entries(store_root / VOLUMES_DIRNAME):
        for entry in _sorted_subdirectories(shard):
            volumes.append(VolumeLocation(name=entry.name, path=entry))
    return sorted(volumes, key=lambda v: (v.name, v.path.as_posix()))


def validate_output_path(output_path: Path, *, overwrite: bool) -> Path:
    """
    Validate the output image path before a run.

    Parameters
    ----------
    output_path:
        Candidate path of the reconstructed image.
    overwrite:
        If True, an existing regular file at output_path may be replaced.

    Returns
    -------
    pathlib.Path
        The expanded output path.

    Raises
    ------
    OutputPathError
        If the parent directory is missing, the path is a directory, or the file
        exists and overwrite is False.
    """
    output_path = Path(output_path).expanduser()

    if not output_path.parent.is_dir():
        raise OutputPathError(f"Output directory for {output_path} does not exist")

    if output_path.is_dir():
        raise OutputPathError(f"Output path is a directory: {output_path}")

    if output_path.exists() and not overwrite:
        raise OutputPathError(f"Output file {output_path} already exists")

    return output_path
