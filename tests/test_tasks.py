"""Tests for the blob reclamation worker task."""

from __future__ import annotations

import io

import pytest
from celery.exceptions import Retry
from kombu.exceptions import OperationalError

from filevault import tasks
from filevault.core.exceptions import StorageIOError


def test_reclaim_blobs_removes_every_key(blob_store, monkeypatch) -> None:
    keys = [blob_store.store(io.BytesIO(b"x"), f"{i}.bin") for i in range(3)]
    monkeypatch.setattr(tasks, "get_worker_blob_store", lambda: blob_store)

    assert tasks.reclaim_blobs.run(keys) == 3
    assert not any(blob_store.exists(key) for key in keys)


def test_reclaim_blobs_retries_failed_keys(blob_store, monkeypatch) -> None:
    good = blob_store.store(io.BytesIO(b"x"), "good.bin")
    bad = blob_store.store(io.BytesIO(b"x"), "bad.bin")
    real_remove = blob_store.remove

    def flaky_remove(storage_key: str) -> None:
        if storage_key == bad:
            raise StorageIOError("bucket offline")
        real_remove(storage_key)

    monkeypatch.setattr(blob_store, "remove", flaky_remove)
    monkeypatch.setattr(tasks, "get_worker_blob_store", lambda: blob_store)

    with pytest.raises(Retry):
        tasks.reclaim_blobs.run([good, bad])
    assert not blob_store.exists(good)
    assert blob_store.exists(bad)


def test_enqueue_reclaim_swallows_broker_outage(monkeypatch) -> None:
    def unavailable(*args, **kwargs):
        raise OperationalError("broker down")

    monkeypatch.setattr(tasks.reclaim_blobs, "delay", unavailable)
    tasks.enqueue_reclaim(["a/b.bin"])
