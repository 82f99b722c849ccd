"""Unit tests for the directory-backed blob store."""

from __future__ import annotations

import io

import pytest

from filevault.core.exceptions import NotFound
from filevault.services.blob_store import LocalBlobStore, make_storage_key


def test_storage_keys_are_unique_per_upload() -> None:
    first = make_storage_key("report.pdf")
    second = make_storage_key("report.pdf")
    assert first != second
    assert first.endswith("/report.pdf")


def test_storage_key_strips_directories_from_filename() -> None:
    assert make_storage_key("../../etc/passwd").endswith("/passwd")
    assert make_storage_key("").endswith("/blob")


def test_store_read_exists_remove(blob_store: LocalBlobStore) -> None:
    key = blob_store.store(io.BytesIO(b"hello world"), "hello.txt")

    assert blob_store.exists(key) is True
    assert b"".join(blob_store.read(key, chunk_size=4)) == b"hello world"

    blob_store.remove(key)
    assert blob_store.exists(key) is False


def test_read_missing_blob_raises_not_found(blob_store: LocalBlobStore) -> None:
    with pytest.raises(NotFound):
        blob_store.read("missing/blob.bin")


def test_keys_cannot_escape_the_root(blob_store: LocalBlobStore) -> None:
    assert blob_store.exists("../outside.txt") is False
    with pytest.raises(NotFound):
        blob_store.read("../outside.txt")


def test_remove_is_idempotent(blob_store: LocalBlobStore) -> None:
    key = blob_store.store(io.BytesIO(b"x"), "x.bin")
    blob_store.remove(key)
    blob_store.remove(key)
    assert blob_store.exists(key) is False
