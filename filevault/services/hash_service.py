import hashlib
import logging

from fastapi.concurrency import run_in_threadpool

from filevault.services.blob_store import BlobStore, DEFAULT_CHUNK_SIZE

logger = logging.getLogger(__name__)


class ContentHasher:
    """MD5 fingerprint of a stored blob, used for version identity and duplicate detection.

    MD5 is a deduplication fingerprint here, not a security boundary.
    """

    def __init__(self, blob_store: BlobStore, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.blob_store = blob_store
        self.chunk_size = chunk_size

    def hash_blob(self, storage_key: str) -> str:
        digest = hashlib.md5(usedforsecurity=False)
        for chunk in self.blob_store.read(storage_key, self.chunk_size):
            digest.update(chunk)
        return digest.hexdigest()

    async def hash(self, storage_key: str) -> str:
        """Hash the blob in the thread pool so the event loop is never blocked."""
        digest = await run_in_threadpool(self.hash_blob, storage_key)
        logger.debug("Hashed %s -> %s", storage_key, digest)
        return digest
