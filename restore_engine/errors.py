"""
Domain exceptions for the restore engine.

Notes
-----
The engine intentionally avoids raising generic exceptions from core logic.
Every expected failure mode maps to a domain exception with a clear meaning,
and every one of them is fatal to a restore run.
"""

from __future__ import annotations


class RestoreEngineError(RuntimeError):
    """Base exception for all restore engine failures."""


class StoreNotFoundError(RestoreEngineError):
    """Raised when an entry cannot be located inside the backup store."""


class VolumeNotFoundError(StoreNotFoundError):
    """Raised when no volume directory matches the requested name."""


class BlockNotFoundError(StoreNotFoundError):
    """Raised when no payload file exists for a block checksum."""


class StoreIOError(RestoreEngineError):
    """Raised when a directory of the backup store cannot be listed."""


class OutputPathError(RestoreEngineError):
    """Raised when the backup root or output image path is unusable."""


class CatalogError(RestoreEngineError):
    """Base class for backup catalog failures."""


class CatalogIOError(CatalogError):
    """Raised when a backup descriptor cannot be listed, opened, or read."""


class CatalogParseError(CatalogError):
    """Raised when a backup descriptor has malformed content."""


class BlockReadError(RestoreEngineError):
    """Raised when a block payload file cannot be read."""


class BlockDecodeError(RestoreEngineError):
    """Raised when a block payload cannot be decompressed."""


class UnsupportedCompressionError(BlockDecodeError):
    """Raised when a backup declares a compression method outside the supported set."""


class ImageWriteError(RestoreEngineError):
    """Raised when writing to the output image fails."""


class SizeDerivationError(RestoreEngineError):
    """
    Raised when the final image size cannot be derived from its superblock.

    The assembled image is left on disk when this is raised.
    """


class JournalWriteError(RestoreEngineError):
    """Raised when the run journal cannot be created or appended to."""
