"""Tests for the model-level id and timestamp defaults."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from filevault.models import base
from filevault.services.file_service import FileRegistry

FROZEN = datetime(2020, 1, 1, tzinfo=timezone.utc)


class FrozenDatetime(datetime):
    @classmethod
    def now(cls, tz=None):
        return FROZEN


@pytest.fixture()
def frozen_clock(monkeypatch) -> None:
    monkeypatch.setattr(base, "datetime", FrozenDatetime)
    monkeypatch.setattr(base, "_last_timestamp", datetime.min.replace(tzinfo=timezone.utc))


def test_utcnow_is_strictly_increasing() -> None:
    stamps = [base.utcnow() for _ in range(1000)]
    assert all(earlier < later for earlier, later in zip(stamps, stamps[1:]))


def test_utcnow_breaks_ties_within_the_same_microsecond(frozen_clock) -> None:
    stamps = [base.utcnow() for _ in range(3)]
    assert stamps == [FROZEN, FROZEN + timedelta(microseconds=1), FROZEN + timedelta(microseconds=2)]


def test_new_ids_are_unique() -> None:
    assert len({base.new_id() for _ in range(100)}) == 100


@pytest.mark.asyncio
async def test_listing_keeps_insertion_order_when_clock_stalls(db, blob_store, put_blob, frozen_clock) -> None:
    registry = FileRegistry(db, blob_store)
    created = [
        (await registry.resolve_or_create("user-u", f"{name}.txt", "/", put_blob(name.encode()))).id
        for name in ("zeta", "alpha", "mid", "beta", "omega")
    ]

    assert [f.id for f in await registry.list_for_user("user-u")] == created
