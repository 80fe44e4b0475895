from __future__ import annotations

import gzip
import zlib
from enum import Enum

import lz4.frame

from .errors import BlockDecodeError, UnsupportedCompressionError


class CompressionMethod(str, Enum):
    """
    Compression methods a backup may declare for its block payloads.
    """

    LZ4 = "lz4"
    GZIP = "gzip"


def parse_compression_method(tag: str) -> CompressionMethod:
    """
    Map a descriptor compression tag to a supported method.

    Parameters
    ----------
    tag:
        The ``CompressionMethod`` value of a backup descriptor.

    Returns
    -------
    CompressionMethod
        The matching method.

    Raises
    ------
    UnsupportedCompressionError
        If the tag is not one of the supported methods. Payloads are never
        passed through undecoded.
    """
    try:
        return CompressionMethod(tag)
    except ValueError as exc:
        supported = ", ".join(m.value for m in CompressionMethod)
        raise UnsupportedCompressionError(
            f"Unsupported compression method {tag!r} (supported: {supported})"
        ) from exc


def decompress_block(payload: bytes, method: CompressionMethod) -> bytes:
    """
    Decode a compressed block payload.

    Parameters
    ----------
    payload:
        Raw bytes of a ``.blk`` file.
    method:
        Compression method declared by the owning backup.

    Returns
    -------
    bytes
        The decompressed block content.

    Raises
    ------
    BlockDecodeError
        If the payload is truncated or malformed.
    UnsupportedCompressionError
        If method is not a CompressionMethod.
    """
    if method is CompressionMethod.LZ4:
        decompressor = lz4.frame.LZ4FrameDecompressor()
        try:
            data = decompressor.decompress(payload)
        except (RuntimeError, ValueError, EOFError) as exc:
            raise BlockDecodeError(f"Invalid lz4 frame: {exc}") from exc
        if not decompressor.eof:
            raise BlockDecodeError("Truncated lz4 frame")
        return data

    if method is CompressionMethod.GZIP:
        if not payload:
            raise BlockDecodeError("Empty gzip payload")
        try:
            return gzip.decompress(payload)
        except (OSError, EOFError, zlib.error) as exc:
            raise BlockDecodeError(f"Invalid gzip member: {exc}") from exc

    raise UnsupportedCompressionError(f"Unsupported compression method: {method!r}")


def compress_block(data: bytes, method: CompressionMethod) -> bytes:
    """
    Encode block content the way the backup store writes ``.blk`` payloads.

    Raises
    ------
    UnsupportedCompressionError
        If method is not a CompressionMethod.
    """
    if method is CompressionMethod.LZ4:
        return lz4.frame.compress(data)

    if method is CompressionMethod.GZIP:
        return gzip.compress(data)

    raise UnsupportedCompressionError(f"Unsupported compression method: {method!r}")
