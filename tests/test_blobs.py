"""
Blob store: allow-list, size limit, naming, and no partial files on failure.
"""

from __future__ import annotations

import io
import os
import re
from pathlib import Path

import pytest

from app.blobs import BlobStore, is_allowed, new_blob_name, pick_extension
from app.errors import NotFoundError, PayloadTooLarge, StorageError, UnsupportedMediaType

NAME_RE = re.compile(r"^\d+-[A-Za-z0-9_-]{8}\.(jpg|jpeg|png|webp)$")


def _files(store: BlobStore) -> list[str]:
    return sorted(os.listdir(store.root))


def test_store_writes_bytes_verbatim(blobs: BlobStore) -> None:
    data = b"\x89PNG\r\n\x1a\n" + b"\x00" * 100
    ref = blobs.store(io.BytesIO(data), "image/png", "shot.PNG")
    assert NAME_RE.match(ref.name)
    assert ref.name.endswith(".png")
    assert ref.url == f"/uploads/{ref.name}"
    assert ref.size == len(data)
    assert Path(ref.path).read_bytes() == data
    assert _files(blobs) == [ref.name]


def test_names_are_unique_within_the_same_tick(blobs: BlobStore) -> None:
    names = {blobs.store(io.BytesIO(b"x"), "image/jpeg", "a.jpg").name for _ in range(50)}
    assert len(names) == 50


def test_exactly_max_size_is_accepted(tmp_path: Path) -> None:
    store = BlobStore(str(tmp_path), max_bytes=1024)
    ref = store.store(io.BytesIO(b"a" * 1024), "image/jpeg", "a.jpg")
    assert ref.size == 1024


def test_oversized_upload_rejected_without_leftovers(blobs: BlobStore) -> None:
    data = b"\xff" * (6 * 1024 * 1024)
    with pytest.raises(PayloadTooLarge):
        blobs.store(io.BytesIO(data), "image/jpeg", "big.jpg")
    assert _files(blobs) == []


def test_txt_file_rejected_regardless_of_size(blobs: BlobStore) -> None:
    with pytest.raises(UnsupportedMediaType):
        blobs.store(io.BytesIO(b"hi"), "text/plain", "notes.txt")
    assert _files(blobs) == []


@pytest.mark.parametrize(
    "mime,name,expected",
    [
        ("image/jpeg", "a.jpg", True),
        ("application/octet-stream", "a.webp", True),
        ("image/png", "a.txt", True),
        ("image/webp; charset=binary", None, True),
        ("text/plain", "a.txt", False),
        ("image/gif", "a.gif", False),
        (None, None, False),
    ],
)
def test_allow_list(mime, name, expected) -> None:
    assert is_allowed(mime, name) is expected


@pytest.mark.parametrize(
    "mime,name,expected",
    [
        ("image/png", "photo.PNG", ".png"),
        ("image/jpeg", "photo", ".jpg"),
        ("image/webp", "photo.txt", ".webp"),
        ("application/octet-stream", "photo.jpeg", ".jpeg"),
    ],
)
def test_pick_extension(mime, name, expected) -> None:
    assert pick_extension(mime, name) == expected


def test_blob_name_format() -> None:
    assert NAME_RE.match(new_blob_name(".jpg"))


def test_resolve(blobs: BlobStore) -> None:
    ref = blobs.store(io.BytesIO(b"x"), "image/jpeg", "a.jpg")
    assert blobs.resolve(ref.name) == ref.path
    for bad in ["missing.jpg", "../db.json", "..", "", ".hidden"]:
        with pytest.raises(NotFoundError):
            blobs.resolve(bad)


def test_write_failure_raises_storage_error(tmp_path: Path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("not a directory")
    store = BlobStore(str(blocker / "uploads"), max_bytes=1024)
    with pytest.raises(StorageError):
        store.store(io.BytesIO(b"x"), "image/jpeg", "a.jpg")


def test_discard_removes_file(blobs: BlobStore) -> None:
    ref = blobs.store(io.BytesIO(b"x"), "image/jpeg", "a.jpg")
    blobs.discard(ref)
    blobs.discard(ref)
    assert _files(blobs) == []


class _BrokenStream:
    def __init__(self) -> None:
        self.calls = 0

    def read(self, size: int = -1) -> bytes:
        self.calls += 1
        if self.calls > 1:
            raise ValueError("I/O operation on closed file")
        return b"partial"


def test_failed_read_leaves_no_part_file(blobs: BlobStore) -> None:
    with pytest.raises(ValueError):
        blobs.store(_BrokenStream(), "image/jpeg", "a.jpg")
    assert _files(blobs) == []
