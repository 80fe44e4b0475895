from __future__ import annotations

import io
from datetime import datetime, timezone
from pathlib import Path

import pytest
from conftest import FixedClock

from restore_engine.assemble import assemble_image, write_block_at
from restore_engine.catalog import load_catalog
from restore_engine.compression import CompressionMethod
from restore_engine.errors import (
    BlockDecodeError,
    BlockNotFoundError,
    ImageWriteError,
    UnsupportedCompressionError,
)
from restore_engine.journal import RestoreJournal, read_journal_events


def test_write_block_at_changes_only_target_range() -> None:
    original = bytes(range(256)) * 16
    handle = io.BytesIO(original)

    write_block_at(handle, 100, b"\xff" * 50)

    result = handle.getvalue()
    assert len(result) == len(original)
    assert result[:100] == original[:100]
    assert result[100:150] == b"\xff" * 50
    assert result[150:] == original[150:]


def test_write_block_at_extends_past_end_with_zero_gap() -> None:
    handle = io.BytesIO(b"abc")

    write_block_at(handle, 10, b"xyz")

    assert handle.getvalue() == b"abc" + b"\x00" * 7 + b"xyz"


def test_write_block_at_rejects_negative_offset() -> None:
    with pytest.raises(ImageWriteError):
        write_block_at(io.BytesIO(), -1, b"x")


def test_write_block_at_wraps_io_failure(tmp_path: Path) -> None:
    path = tmp_path / "ro.img"
    path.write_bytes(b"")
    with path.open("rb") as handle:
        with pytest.raises(ImageWriteError):
            write_block_at(handle, 0, b"x")


def test_later_backup_wins_at_same_offset(store) -> None:
    volume = store.volume("pvc-1234")
    store.block(volume, "aaaa1111", b"A" * 4096)
    store.block(volume, "bbbb2222", b"B" * 4096, method=CompressionMethod.GZIP)
    store.block(volume, "cccc3333", b"C" * 4096)
    # The later backup sorts first by file name; replay must still follow creation time.
    store.backup(volume, "a-later", created="2023-02-01T00:00:00Z", compression="gzip", blocks=[(0, "bbbb2222")])
    store.backup(
        volume,
        "z-earlier",
        created="2023-01-01T00:00:00Z",
        blocks=[(0, "aaaa1111"), (4096, "cccc3333")],
    )

    handle = io.BytesIO()
    result = assemble_image(load_catalog(volume), handle)

    image = handle.getvalue()
    assert image[:4096] == b"B" * 4096
    assert image[4096:8192] == b"C" * 4096
    assert result.backups_replayed == 2
    assert result.blocks_written == 3
    assert result.bytes_written == 3 * 4096
    assert result.high_water_mark == 8192


def test_blocks_within_backup_replay_in_declared_order(store) -> None:
    volume = store.volume("pvc-1234")
    store.block(volume, "aaaa1111", b"A" * 16)
    store.block(volume, "bbbb2222", b"B" * 8)
    store.backup(
        volume,
        "b1",
        created="2023-01-01T00:00:00Z",
        blocks=[(0, "aaaa1111"), (4, "bbbb2222")],
    )

    handle = io.BytesIO()
    assemble_image(load_catalog(volume), handle)

    assert handle.getvalue() == b"AAAA" + b"B" * 8 + b"AAAA"


def test_same_checksum_shared_across_backups(store) -> None:
    volume = store.volume("pvc-1234")
    store.block(volume, "aaaa1111", b"shared")
    store.backup(volume, "b1", created="2023-01-01T00:00:00Z", blocks=[(0, "aaaa1111")])
    store.backup(volume, "b2", created="2023-01-02T00:00:00Z", blocks=[(6, "aaaa1111")])

    handle = io.BytesIO()
    assemble_image(load_catalog(volume), handle)

    assert handle.getvalue() == b"sharedshared"


def test_missing_block_is_fatal(store) -> None:
    volume = store.volume("pvc-1234")
    store.backup(volume, "b1", created="2023-01-01T00:00:00Z", blocks=[(0, "ffff0000")])

    with pytest.raises(BlockNotFoundError, match="ffff0000"):
        assemble_image(load_catalog(volume), io.BytesIO())


def test_unsupported_compression_writes_nothing(store) -> None:
    volume = store.volume("pvc-1234")
    store.block(volume, "aaaa1111", b"A" * 16)
    store.backup(
        volume,
        "b1",
        created="2023-01-01T00:00:00Z",
        compression="snappy",
        blocks=[(0, "aaaa1111")],
    )

    handle = io.BytesIO()
    with pytest.raises(UnsupportedCompressionError, match="b1.cfg"):
        assemble_image(load_catalog(volume), handle)
    assert handle.getvalue() == b""


def test_corrupt_payload_names_checksum_and_backup(store) -> None:
    volume = store.volume("pvc-1234")
    path = store.block(volume, "aaaa1111", b"A" * 16)
    path.write_bytes(b"garbage")
    store.backup(volume, "b1", created="2023-01-01T00:00:00Z", blocks=[(0, "aaaa1111")])

    with pytest.raises(BlockDecodeError, match="aaaa1111.*b1.cfg"):
        assemble_image(load_catalog(volume), io.BytesIO())


def test_backup_without_blocks_is_skipped(store) -> None:
    volume = store.volume("pvc-1234")
    store.backup(volume, "b1", created="2023-01-01T00:00:00Z", compression="", blocks=[])

    result = assemble_image(load_catalog(volume), io.BytesIO())

    assert result.blocks_written == 0


def test_assemble_records_journal_events(store, tmp_path: Path) -> None:
    volume = store.volume("pvc-1234")
    store.block(volume, "aaaa1111", b"A" * 16)
    store.backup(volume, "b1", created="2023-01-01T00:00:00Z", blocks=[(0, "aaaa1111")])
    journal = RestoreJournal(
        tmp_path / "journal.jsonl",
        clock=FixedClock(datetime(2024, 1, 1, tzinfo=timezone.utc)),
    )

    assemble_image(load_catalog(volume), io.BytesIO(), journal=journal)

    events = read_journal_events(journal.path)
    assert [e["event"] for e in events] == ["backup_replay_started", "backup_replayed"]
    assert events[0]["data"]["compression"] == "lz4"
    assert events[1]["data"]["bytes_written"] == 16
