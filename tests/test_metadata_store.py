"""Tests for per-file key/value metadata."""

from __future__ import annotations

import pytest

from filevault.core.exceptions import NotFound, PermissionDenied, ValidationFailed
from filevault.services.file_service import FileRegistry
from filevault.services.metadata_service import MetadataStore
from filevault.services.permission_service import PermissionLedger

OWNER = "owner"
READER = "reader"
WRITER = "writer"


@pytest.fixture()
def store(db) -> MetadataStore:
    return MetadataStore(db)


async def _shared_file(db, blob_store, put_blob):
    file = await FileRegistry(db, blob_store).resolve_or_create(OWNER, "f.txt", "/", put_blob(b"x"))
    ledger = PermissionLedger(db)
    await ledger.grant(OWNER, file.id, READER, can_read=True)
    await ledger.grant(OWNER, file.id, WRITER, can_read=True, can_write=True)
    return file


@pytest.mark.asyncio
async def test_add_update_delete_round(db, blob_store, put_blob, store) -> None:
    file = await _shared_file(db, blob_store, put_blob)

    await store.add_metadata(file.id, "project", "apollo", OWNER)
    await store.add_metadata(file.id, "author", "kim", WRITER)
    updated = await store.update_metadata(file.id, "project", "gemini", WRITER)
    assert updated.value == "gemini"

    entries = await store.get_metadata(file.id, READER)
    assert [(e.key, e.value) for e in entries] == [("author", "kim"), ("project", "gemini")]

    await store.delete_metadata(file.id, "author", OWNER)
    assert [e.key for e in await store.get_metadata(file.id, OWNER)] == ["project"]


@pytest.mark.asyncio
async def test_read_grant_cannot_mutate(db, blob_store, put_blob, store) -> None:
    file = await _shared_file(db, blob_store, put_blob)
    await store.add_metadata(file.id, "k", "v", OWNER)

    with pytest.raises(PermissionDenied):
        await store.add_metadata(file.id, "other", "v", READER)
    with pytest.raises(PermissionDenied):
        await store.update_metadata(file.id, "k", "changed", READER)
    with pytest.raises(PermissionDenied):
        await store.delete_metadata(file.id, "k", READER)
    with pytest.raises(PermissionDenied):
        await store.get_metadata(file.id, "stranger")


@pytest.mark.asyncio
async def test_missing_keys_and_files(db, blob_store, put_blob, store) -> None:
    file = await _shared_file(db, blob_store, put_blob)

    with pytest.raises(NotFound):
        await store.update_metadata(file.id, "absent", "v", OWNER)
    with pytest.raises(NotFound):
        await store.delete_metadata(file.id, "absent", OWNER)
    with pytest.raises(NotFound):
        await store.get_metadata("missing", OWNER)


@pytest.mark.asyncio
async def test_duplicate_key_is_rejected(db, blob_store, put_blob, store) -> None:
    file = await _shared_file(db, blob_store, put_blob)
    file_id = file.id
    await store.add_metadata(file_id, "k", "v", OWNER)

    with pytest.raises(ValidationFailed):
        await store.add_metadata(file_id, "k", "again", OWNER)
    # the rollback expired every loaded object, so only plain values are used from here
    assert [e.value for e in await store.get_metadata(file_id, OWNER)] == ["v"]
