"""Tests for duplicate grouping by current content hash."""

from __future__ import annotations

import pytest

from filevault.core.exceptions import NotFound, PermissionDenied
from filevault.services.duplicate_service import DuplicateIndex
from filevault.services.file_service import FileRegistry
from filevault.services.version_service import VersionStore

USER = "user-u"
OTHER = "user-v"


@pytest.mark.asyncio
async def test_groups_exclude_singletons_and_are_sorted_by_hash(db, blob_store, put_blob) -> None:
    registry = FileRegistry(db, blob_store)
    a1 = await registry.resolve_or_create(USER, "a1.txt", "/", put_blob(b"alpha"))
    a2 = await registry.resolve_or_create(USER, "a2.txt", "/x", put_blob(b"alpha"))
    await registry.resolve_or_create(USER, "unique.txt", "/", put_blob(b"unique"))
    b1 = await registry.resolve_or_create(USER, "b1.txt", "/", put_blob(b"bravo"))
    b2 = await registry.resolve_or_create(USER, "b2.txt", "/", put_blob(b"bravo"))
    b3 = await registry.resolve_or_create(USER, "b3.txt", "/", put_blob(b"bravo"))
    await registry.resolve_or_create(OTHER, "a.txt", "/", put_blob(b"alpha"))

    groups = await DuplicateIndex(db).find_duplicates_for_user(USER)

    assert all(len(g.files) > 1 for g in groups)
    assert [g.hash for g in groups] == sorted(g.hash for g in groups)
    by_hash = {g.hash: {f.id for f in g.files} for g in groups}
    assert by_hash == {a1.current_hash: {a1.id, a2.id}, b1.current_hash: {b1.id, b2.id, b3.id}}
    for group in groups:
        assert all(f.current_hash == group.hash for f in group.files)


@pytest.mark.asyncio
async def test_group_order_is_stable_between_calls(db, blob_store, put_blob) -> None:
    registry = FileRegistry(db, blob_store)
    for name in ("c.txt", "a.txt", "b.txt"):
        await registry.resolve_or_create(USER, name, "/", put_blob(b"same"))
    index = DuplicateIndex(db)

    first = [[f.id for f in g.files] for g in await index.find_duplicates_for_user(USER)]
    second = [[f.id for f in g.files] for g in await index.find_duplicates_for_user(USER)]

    assert first == second


@pytest.mark.asyncio
async def test_duplicates_follow_the_current_pointer(db, blob_store, put_blob) -> None:
    registry = FileRegistry(db, blob_store)
    a = await registry.resolve_or_create(USER, "a.txt", "/", put_blob(b"one"))
    await registry.resolve_or_create(USER, "b.txt", "/", put_blob(b"two"))
    index = DuplicateIndex(db)
    assert await index.find_duplicates_for_user(USER) == []

    await registry.resolve_or_create(USER, "a.txt", "/", put_blob(b"two"))
    assert len(await index.find_duplicates_for_user(USER)) == 1

    await VersionStore(db, blob_store).restore(a.id, 0, USER)
    assert await index.find_duplicates_for_user(USER) == []


@pytest.mark.asyncio
async def test_duplicates_of_excludes_the_file_itself(db, blob_store, put_blob) -> None:
    registry = FileRegistry(db, blob_store)
    a = await registry.resolve_or_create(USER, "a.txt", "/", put_blob(b"dup"))
    b = await registry.resolve_or_create(USER, "b.txt", "/", put_blob(b"dup"))
    await registry.resolve_or_create(USER, "c.txt", "/", put_blob(b"other"))
    await registry.resolve_or_create(OTHER, "d.txt", "/", put_blob(b"dup"))

    duplicates = await DuplicateIndex(db).find_duplicates_of(a.id, USER)

    assert [f.id for f in duplicates] == [b.id]


@pytest.mark.asyncio
async def test_duplicates_of_checks_ownership(db, blob_store, put_blob) -> None:
    registry = FileRegistry(db, blob_store)
    a = await registry.resolve_or_create(USER, "a.txt", "/", put_blob(b"dup"))
    index = DuplicateIndex(db)

    with pytest.raises(PermissionDenied):
        await index.find_duplicates_of(a.id, OTHER)
    with pytest.raises(NotFound):
        await index.find_duplicates_of("missing", USER)
