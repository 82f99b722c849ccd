from celery_app import app
from filevault.core.config import settings
from filevault.core.exceptions import FileVaultError
from filevault.services.blob_store import BlobStore, create_blob_store
from functools import lru_cache
from kombu.exceptions import OperationalError
from typing import List
import logging

logger = logging.getLogger(__name__)

RECLAIM_BASE_COUNTDOWN = 30


@lru_cache
def get_worker_blob_store() -> BlobStore:
    return create_blob_store(settings)


@app.task(bind=True, max_retries=3)
def reclaim_blobs(self, storage_keys: List[str]):
    """Remove blobs left behind by a file delete; retry the ones that still fail."""
    blob_store = get_worker_blob_store()
    remaining = []
    for storage_key in storage_keys:
        try:
            blob_store.remove(storage_key)
        except FileVaultError as exc:
            logger.warning("Reclaim of %s failed: %s", storage_key, exc.message)
            remaining.append(storage_key)

    if remaining:
        countdown = RECLAIM_BASE_COUNTDOWN * 2 ** self.request.retries
        raise self.retry(args=(remaining,), countdown=countdown)
    return len(storage_keys)


def enqueue_reclaim(storage_keys: List[str]) -> None:
    """Hand unreclaimed keys to the worker. A broker outage leaks the blobs, it never fails the caller."""
    try:
        reclaim_blobs.delay(storage_keys)
    except OperationalError as exc:
        logger.warning("Could not schedule reclamation of %d blobs: %s", len(storage_keys), exc)
