"""
Backup catalog discovery and loading.

A volume directory holds one JSON descriptor per backup under ``backups/``.
This module reads every descriptor and returns the volume's backup chain in
replay order.

Design constraints
------------------
- The store is read-only; nothing here writes.
- Descriptors are listed in file-name order, so ties between equal creation
  times resolve the same way on every platform.
- One unreadable or malformed descriptor fails the whole load.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterator

from .data_models import Backup, VolumeBackup
from .errors import CatalogIOError, CatalogParseError
from .log import get_logger

BACKUPS_DIRNAME = "backups"
DESCRIPTOR_SUFFIX = ".cfg"

log = get_logger(source="catalog")


def iter_backup_config_paths(volume_path: Path) -> Iterator[Path]:
    """Yield backup descriptor paths under a volume directory, in file-name order."""
    backups_root = volume_path / BACKUPS_DIRNAME
    try:
        entries = sorted(backups_root.iterdir(), key=lambda p: p.name)
    except FileNotFoundError:
        return
    except OSError as exc:
        raise CatalogIOError(f"Failed to list backups: {backups_root}") from exc

    for path in entries:
        if path.suffix == DESCRIPTOR_SUFFIX and path.is_file():
            yield path


def read_backup_config(config_path: Path) -> Backup:
    """
    Read and validate a single backup descriptor.

    Raises
    ------
    CatalogIOError
        If the descriptor cannot be read.
    CatalogParseError
        If the descriptor is not valid JSON or has malformed fields.
    """
    try:
        text = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CatalogIOError(f"Failed to read backup descriptor: {config_path}") from exc
    except UnicodeDecodeError as exc:
        raise CatalogParseError(f"Backup descriptor is not UTF-8 text: {config_path}") from exc

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise CatalogParseError(f"Invalid JSON in backup descriptor: {config_path}") from exc

    try:
        return Backup.from_dict(payload, identifier=str(config_path))
    except ValueError as exc:
        raise CatalogParseError(f"Invalid backup descriptor {config_path}: {exc}") from exc


def load_catalog(volume_path: Path) -> VolumeBackup:
    """
    Load every backup of a volume and order them for replay.

    Parameters
    ----------
    volume_path:
        Volume directory inside the store.

    Returns
    -------
    VolumeBackup
        The volume's backups in ascending creation order. Equal creation
        times keep descriptor file-name order.

    Raises
    ------
    CatalogIOError
        If a descriptor cannot be listed or read.
    CatalogParseError
        If any descriptor is malformed.
    """
    backups = [read_backup_config(path) for path in iter_backup_config_paths(volume_path)]
    backups.sort(key=lambda b: b.created_at)

    volume_backup = VolumeBackup(
        name=volume_path.name,
        backup_path=volume_path,
        backups=tuple(backups),
    )
    log.bind(volume=volume_backup.name).debug(
        f"Loaded {len(volume_backup.backups)} backups "
        f"({volume_backup.block_count} block references) from {volume_path}"
    )
    return volume_backup
